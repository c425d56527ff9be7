"""
Tmux Session IO Module

Capture and keystroke injection against tmux panes. Every call carries an
explicit timeout and failures are raised as typed errors.
"""

import logging
import os
from typing import List, Optional

from ..core.errors import CommandTimeout, ExternalToolFailure, InjectionError, SessionNotFound
from ..utils.subprocess_wrapper import run_command

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = (
    "can't find session",
    "can't find window",
    "can't find pane",
    "no server running",
    "session not found",
    "no such file or directory",  # socket path of a server that is gone
)


def _is_not_found(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)


class TmuxSessionIO:
    """Session IO backed by the tmux binary"""

    def __init__(self, socket_path: Optional[str] = None):
        """
        Args:
            socket_path: Optional custom socket path for isolation
        """
        self.socket_path = socket_path
        self.base_cmd = ["tmux"]
        if socket_path:
            self.base_cmd.extend(["-S", os.path.expanduser(socket_path)])

    def capture(self, session_id: str, timeout: float) -> Optional[List[str]]:
        """
        Capture the visible content of a session's active pane.

        Wrapped lines are joined so that a prompt split by the pane width
        still matches its signature.

        Returns:
            Captured lines, or None if the session does not exist

        Raises:
            CommandTimeout: If tmux did not answer in time
            ExternalToolFailure: If tmux failed for another reason
        """
        result = run_command(
            self.base_cmd + ['capture-pane', '-p', '-J', '-t', session_id],
            timeout=timeout,
            check=False
        )
        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            if _is_not_found(stderr):
                logger.debug(f"Session {session_id} not found: {stderr}")
                return None
            raise ExternalToolFailure(f"capture-pane failed for {session_id}: {stderr}")

        return result.stdout.splitlines()

    def send_keys(self, session_id: str, text: str, timeout: float) -> None:
        """
        Type text into a session followed by Enter, as one tmux call.

        Raises:
            SessionNotFound: If the session vanished
            InjectionError: If tmux rejected or timed out the keystrokes
        """
        keys = [text, 'Enter'] if text else ['Enter']
        try:
            result = run_command(
                self.base_cmd + ['send-keys', '-t', session_id] + keys,
                timeout=timeout,
                check=False
            )
        except (CommandTimeout, ExternalToolFailure) as e:
            raise InjectionError(str(e)) from e

        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            if _is_not_found(stderr):
                raise SessionNotFound(session_id)
            raise InjectionError(f"send-keys failed for {session_id}: {stderr}")

        logger.debug(f"Sent {text!r} + Enter to {session_id}")
