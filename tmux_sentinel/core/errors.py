"""
Error taxonomy for the session health monitor.

Only ConfigurationError is fatal to a run. Every other error is absorbed at
the unit boundary and surfaced as a structured field of the report.
"""


class SentinelError(Exception):
    """Base class for all monitor errors"""
    pass


class ConfigurationError(SentinelError):
    """Registry or settings missing, unreadable or malformed"""
    pass


class SessionNotFound(SentinelError):
    """Target tmux session does not exist"""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class CommandTimeout(SentinelError):
    """External command did not finish within its timeout"""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"Command timed out after {timeout}s: {command}")
        self.command = command
        self.timeout = timeout


class ExternalToolFailure(SentinelError):
    """External tool (tmux, git, smtp, status command) reported failure"""
    pass


class InjectionError(ExternalToolFailure):
    """Keystrokes could not be delivered to a session"""
    pass


class NotificationError(ExternalToolFailure):
    """Escalation alert could not be dispatched"""
    pass
