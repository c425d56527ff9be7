"""
Pane Sampler

Takes bounded, read-only snapshots of a session's visible output.
"""

import time
import logging
from typing import Optional

from ..core.models import PaneSnapshot

logger = logging.getLogger(__name__)


class PaneSampler:
    """Captures the last N non-padding lines of a session's pane."""

    def __init__(self, session_io, capture_lines: int = 50, timeout: float = 10.0):
        self.session_io = session_io
        self.capture_lines = capture_lines
        self.timeout = timeout

    def sample(self, session_id: str) -> Optional[PaneSnapshot]:
        """
        Snapshot a session.

        Returns:
            PaneSnapshot, or None if the session does not exist

        Raises:
            CommandTimeout, ExternalToolFailure: from the session IO
        """
        lines = self.session_io.capture(session_id, self.timeout)
        if lines is None:
            return None

        # tmux pads the capture to the pane height with blank lines
        trimmed = list(lines)
        while trimmed and not trimmed[-1].strip():
            trimmed.pop()

        snapshot = PaneSnapshot(
            session_id=session_id,
            captured_at=time.time(),
            lines=tuple(trimmed[-self.capture_lines:])
        )
        logger.debug(f"Sampled {len(snapshot.lines)} lines from {session_id}")
        return snapshot
