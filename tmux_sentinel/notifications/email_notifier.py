"""
Email notification channel for escalation alerts
"""

import os
import smtplib
import logging
from pathlib import Path
from datetime import datetime
from email.mime.text import MIMEText
from typing import Optional
from dotenv import load_dotenv

from ..core.errors import NotificationError

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Sends alerts over SMTP, configured from the environment"""

    def __init__(self, env_path: Optional[Path] = None):
        """Initialize email notifier with settings from the environment or a .env file"""
        if env_path is not None:
            if env_path.exists():
                load_dotenv(env_path)
                logger.info(f"Loaded email settings from {env_path}")
            else:
                logger.warning(f"No .env file found at {env_path}")

        self.smtp_server = os.getenv('SMTP_SERVER')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME')
        self.smtp_password = os.getenv('SMTP_PASSWORD')
        self.sender_email = os.getenv('SENDER_EMAIL', self.smtp_username)
        self.recipient_email = os.getenv('RECIPIENT_EMAIL', self.smtp_username)
        self.use_tls = os.getenv('SMTP_USE_TLS', 'true').lower() == 'true'

        self.subject_prefix = os.getenv('EMAIL_SUBJECT_PREFIX', '').strip()
        if self.subject_prefix and not self.subject_prefix.endswith(' '):
            self.subject_prefix += ' '

        self.enabled = all([
            self.smtp_server,
            self.smtp_username,
            self.smtp_password,
            self.recipient_email
        ])

        if not self.enabled:
            logger.info("Email notifications disabled - missing SMTP configuration")
        else:
            logger.info(f"Email notifications enabled - will send to {self.recipient_email}")

    def build_subject(self, message: str) -> str:
        """Subject from the first line of the message, markdown stripped."""
        first_line = message.strip().split('\n')[0].lstrip('#').strip()[:50]
        subject = f"Tmux Sentinel: {first_line}"
        if self.subject_prefix:
            subject = f"{self.subject_prefix}{subject}"
        return subject

    def send(self, message: str, timeout: float) -> None:
        """
        Send message as a plain-text email.

        Raises:
            NotificationError: If email is not configured or delivery failed
        """
        if not self.enabled:
            raise NotificationError("email notifications are not configured")

        body = '\n'.join([
            message,
            "",
            "-" * 50,
            f"Sent at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} by Tmux Sentinel",
        ])
        msg = MIMEText(body, 'plain', 'utf-8')
        msg['Subject'] = self.build_subject(message)
        msg['From'] = self.sender_email
        msg['To'] = self.recipient_email

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=timeout) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP delivery to {self.recipient_email} failed: {e}") from e

        logger.info(f"Alert email sent to {self.recipient_email}")
