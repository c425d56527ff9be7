#!/usr/bin/env python3
"""
Escalation Tests for Tmux Sentinel
Tests the batched alert, the email channel and the status oracle
"""

import os
import sys
import smtplib
import subprocess
import unittest
from pathlib import Path
from unittest.mock import patch, MagicMock

# Add parent directory to path
sys.path.append(str(Path(__file__).parent))

from tmux_sentinel.core.errors import CommandTimeout, ExternalToolFailure, NotificationError
from tmux_sentinel.core.models import (
    ClassificationResult, RecoveryAttempt, RecoveryOutcome, RecoveryResult, SessionState
)
from tmux_sentinel.monitoring.escalation import EscalationNotifier, format_alert
from tmux_sentinel.monitoring.signatures import DEFAULT_SIGNATURES
from tmux_sentinel.monitoring.status_oracle import CommandStatusOracle, run_oracle
from tmux_sentinel.notifications.email_notifier import EmailNotifier
from tmux_sentinel.testing import FakeNotifier, FakeStatusOracle

SMTP_ENV = {
    'SMTP_SERVER': 'smtp.example.com',
    'SMTP_PORT': '2525',
    'SMTP_USERNAME': 'sentinel@example.com',
    'SMTP_PASSWORD': 'secret',
    'RECIPIENT_EMAIL': 'oncall@example.com',
    'SMTP_USE_TLS': 'true',
}


def result(session_id, outcome):
    state = SessionState.STALLED if outcome is RecoveryOutcome.STILL_STUCK else SessionState.ACTIVE
    final = ClassificationResult(
        session_id, state,
        matched_signature=DEFAULT_SIGNATURES[0] if state is SessionState.STALLED else None,
        evidence=("Do you want to proceed?",) if state is SessionState.STALLED else ()
    )
    attempts = tuple(RecoveryAttempt(session_id, i, text, state) for i, text in enumerate(["y", "", "n"]))
    return RecoveryResult(session_id, outcome, attempts, final)


class TestEscalationNotifier(unittest.TestCase):
    """Test single batched escalation per run"""

    def test_nothing_to_escalate(self):
        notifier = FakeNotifier()
        event = EscalationNotifier(notifier).notify([result("api", RecoveryOutcome.RECOVERED)])

        self.assertIsNone(event)
        self.assertEqual(notifier.messages, [])

    def test_one_alert_for_all_stuck_sessions(self):
        notifier = FakeNotifier()
        event = EscalationNotifier(notifier, timeout=3.0).notify([
            result("api", RecoveryOutcome.STILL_STUCK),
            result("web", RecoveryOutcome.RECOVERED),
            result("docs", RecoveryOutcome.STILL_STUCK),
        ])

        self.assertEqual(len(notifier.messages), 1)
        self.assertEqual(event.session_ids, frozenset({"api", "docs"}))
        self.assertTrue(event.delivered)
        self.assertIsNone(event.error)
        self.assertNotIn("**web**", notifier.messages[0])

    def test_dispatch_failure_recorded(self):
        event = EscalationNotifier(FakeNotifier(fail=True)).notify([result("api", RecoveryOutcome.STILL_STUCK)])

        self.assertFalse(event.delivered)
        self.assertEqual(event.error, "notifier unavailable")

    def test_no_notifier_configured(self):
        event = EscalationNotifier(None).notify([result("api", RecoveryOutcome.STILL_STUCK)])
        self.assertFalse(event.delivered)
        self.assertEqual(event.error, "no notifier configured")

    def test_alert_body(self):
        body = format_alert([result("api", RecoveryOutcome.STILL_STUCK)])

        self.assertTrue(body.startswith("# 🚨 AI Team Token Waste Alert"))
        self.assertIn("**api**: approval-prompt", body)
        self.assertIn("'y', '', 'n'", body)
        self.assertIn("> Do you want to proceed?", body)


class TestEmailNotifier(unittest.TestCase):
    """Test the SMTP channel with smtplib mocked out"""

    def test_disabled_without_configuration(self):
        with patch.dict(os.environ, {}, clear=True):
            notifier = EmailNotifier()

        self.assertFalse(notifier.enabled)
        with self.assertRaises(NotificationError):
            notifier.send("# Alert", timeout=1.0)

    @patch('tmux_sentinel.notifications.email_notifier.smtplib.SMTP')
    def test_sends_over_tls(self, mock_smtp):
        with patch.dict(os.environ, SMTP_ENV, clear=True):
            notifier = EmailNotifier()

        server = mock_smtp.return_value.__enter__.return_value
        notifier.send("# 🚨 AI Team Token Waste Alert\n\nbody", timeout=7.0)

        mock_smtp.assert_called_once_with('smtp.example.com', 2525, timeout=7.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with('sentinel@example.com', 'secret')
        sent = server.send_message.call_args.args[0]
        self.assertEqual(sent['To'], 'oncall@example.com')
        self.assertEqual(sent['Subject'], "Tmux Sentinel: 🚨 AI Team Token Waste Alert")
        self.assertFalse(sent.is_multipart())
        self.assertEqual(sent.get_content_type(), 'text/plain')

    @patch('tmux_sentinel.notifications.email_notifier.smtplib.SMTP')
    def test_smtp_failure_raises_notification_error(self, mock_smtp):
        with patch.dict(os.environ, SMTP_ENV, clear=True):
            notifier = EmailNotifier()
        mock_smtp.return_value.__enter__.return_value.login.side_effect = \
            smtplib.SMTPAuthenticationError(535, b'bad credentials')

        with self.assertRaises(NotificationError):
            notifier.send("# Alert", timeout=1.0)

    def test_subject_prefix(self):
        env = dict(SMTP_ENV, EMAIL_SUBJECT_PREFIX='[prod]')
        with patch.dict(os.environ, env, clear=True):
            notifier = EmailNotifier()
        self.assertEqual(notifier.build_subject("## Stuck\nmore"), "[prod] Tmux Sentinel: Stuck")


class TestStatusOracle(unittest.TestCase):
    """Test the external status command wrapper"""

    def test_no_oracle(self):
        self.assertIsNone(run_oracle(None, 1.0))

    def test_fake_oracles(self):
        self.assertTrue(run_oracle(FakeStatusOracle(ok=True), 1.0).ok)
        failed = run_oracle(FakeStatusOracle(ok=False), 1.0)
        self.assertFalse(failed.ok)
        self.assertEqual(failed.error, "status check reported errors")

    @patch('tmux_sentinel.monitoring.status_oracle.run_command')
    def test_command_oracle(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(['status'], 0, '', '')
        oracle = CommandStatusOracle(['./status.sh', '--quiet'])

        self.assertTrue(run_oracle(oracle, 30.0).ok)
        mock_run.assert_called_once_with(['./status.sh', '--quiet'], timeout=30.0, check=True)

    @patch('tmux_sentinel.monitoring.status_oracle.run_command')
    def test_command_oracle_failures(self, mock_run):
        oracle = CommandStatusOracle(['./status.sh'])
        for error in (CommandTimeout('./status.sh', 30.0), ExternalToolFailure('exited with 2')):
            with self.subTest(error=error):
                mock_run.side_effect = error
                outcome = run_oracle(oracle, 30.0)
                self.assertFalse(outcome.ok)
                self.assertEqual(outcome.error, str(error))

    def test_empty_command_rejected(self):
        with self.assertRaises(ValueError):
            CommandStatusOracle([])


if __name__ == '__main__':
    unittest.main()
