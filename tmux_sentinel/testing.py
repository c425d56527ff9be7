"""
In-memory fakes of the monitor's collaborators, for tests and dry runs.
"""

import threading
from collections import defaultdict, deque
from typing import Dict, List, Optional, Sequence

from .core.errors import (
    ConfigurationError, ExternalToolFailure, NotificationError, SessionNotFound
)
from .core.models import GitActivity, TrackedProject


class FakeRegistry:
    """Registry returning a fixed project list, or raising a configuration error."""

    def __init__(self, projects: Sequence[TrackedProject] = (), error: Optional[str] = None):
        self.projects = list(projects)
        self.error = error

    def list_targets(self) -> List[TrackedProject]:
        if self.error:
            raise ConfigurationError(self.error)
        return list(self.projects)


class FakeSessionIO:
    """
    Scripted session IO.

    Each session has a queue of screens. capture() returns the current
    screen; send_keys() records the input and advances to the next screen
    (the last screen sticks). Sessions not in screens are NotFound.
    """

    def __init__(self, screens: Optional[Dict[str, Sequence[Sequence[str]]]] = None):
        self._screens = {sid: deque(list(s) for s in seq) for sid, seq in (screens or {}).items()}
        self.sent: Dict[str, List[str]] = defaultdict(list)
        self.capture_errors: Dict[str, Exception] = {}
        self.send_errors: Dict[str, Exception] = {}
        self.vanish_after_send: set = set()
        self._lock = threading.Lock()

    def capture(self, session_id: str, timeout: float) -> Optional[List[str]]:
        with self._lock:
            if session_id in self.capture_errors:
                raise self.capture_errors[session_id]
            screens = self._screens.get(session_id)
            if not screens:
                return None
            return list(screens[0])

    def send_keys(self, session_id: str, text: str, timeout: float) -> None:
        with self._lock:
            if session_id in self.send_errors:
                raise self.send_errors[session_id]
            if session_id not in self._screens:
                raise SessionNotFound(session_id)
            self.sent[session_id].append(text)
            screens = self._screens[session_id]
            if session_id in self.vanish_after_send:
                del self._screens[session_id]
            elif len(screens) > 1:
                screens.popleft()


class FakeVersionControl:
    """Returns canned GitActivity per path; unknown paths are missing."""

    def __init__(self, repos: Optional[Dict[str, GitActivity]] = None,
                 errors: Optional[Dict[str, Exception]] = None):
        self.repos = dict(repos or {})
        self.errors = dict(errors or {})
        self.inspected: List[str] = []

    def inspect(self, path: str, timeout: float) -> GitActivity:
        self.inspected.append(path)
        if path in self.errors:
            raise self.errors[path]
        if path not in self.repos:
            return GitActivity(project_name=path, error=f"Project path not found: {path}")
        return self.repos[path]


class FakeNotifier:
    """Records messages; fails every send when fail is set."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[str] = []

    def send(self, message: str, timeout: float) -> None:
        if self.fail:
            raise NotificationError("notifier unavailable")
        self.messages.append(message)


class FakeStatusOracle:
    """Status oracle with a fixed answer."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.calls = 0

    def check(self, timeout: float) -> None:
        self.calls += 1
        if not self.ok:
            raise ExternalToolFailure("status check reported errors")
