"""
Run Context Module

One RunContext is built per run and threaded through every phase. It holds
the settings, the collaborators and the cancellation flag, so tests can
swap any collaborator for an in-memory fake.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from ..utils.config_loader import MonitorSettings


@dataclass
class RunContext:
    """
    Per-run dependencies.

    Attributes:
        registry: object with list_targets() -> [TrackedProject]
        session_io: object with capture() and send_keys()
        vcs: object with inspect(path, timeout) -> GitActivity
        notifier: object with send(message, timeout), or None
        status_oracle: object with check(timeout), or None
        report_store: object with save(report) -> Path, or None
    """
    registry: Any
    session_io: Any
    vcs: Any
    settings: MonitorSettings = field(default_factory=MonitorSettings)
    notifier: Optional[Any] = None
    status_oracle: Optional[Any] = None
    report_store: Optional[Any] = None
    collect_host_metrics: bool = True
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        """Ask the run to stop between units."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()
