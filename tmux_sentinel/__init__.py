"""
Tmux Sentinel - Session Health Monitoring for AI Agent Teams

Watches a fleet of long-running agent sessions inside tmux, detects the
ones blocked on an interactive prompt, answers the prompt automatically
where it can, confirms real progress from git and escalates what stays
stuck.

This package provides:
- Stall detection against an ordered catalog of prompt signatures
- Bounded automatic recovery with per-session serialization
- Git ground-truth verification, isolated per project
- Batched escalation and an append-only JSON report per run

Version: 1.0.0
"""

from .core.context import RunContext
from .core.errors import (
    SentinelError, ConfigurationError, SessionNotFound, CommandTimeout,
    ExternalToolFailure, InjectionError, NotificationError
)
from .core.models import (
    TrackedProject, PaneSnapshot, StallSignature, SessionState,
    ClassificationResult, GitActivity, RecoveryAttempt, RecoveryOutcome,
    RecoveryResult, EscalationEvent, MonitoringReport, OverallHealth, RunMode
)
from .core.monitor import SessionHealthMonitor
from .monitoring.signatures import DEFAULT_SIGNATURES
from .monitoring.stall_detector import classify
from .utils.config_loader import ConfigLoader, MonitorSettings, FileRegistry

__version__ = "1.0.0"
__description__ = "Stall detection and recovery for agent sessions running in tmux"

__all__ = [
    # Run driver
    'SessionHealthMonitor', 'RunContext', 'RunMode',

    # Data model
    'TrackedProject', 'PaneSnapshot', 'StallSignature', 'SessionState',
    'ClassificationResult', 'GitActivity', 'RecoveryAttempt', 'RecoveryOutcome',
    'RecoveryResult', 'EscalationEvent', 'MonitoringReport', 'OverallHealth',

    # Detection
    'DEFAULT_SIGNATURES', 'classify',

    # Configuration
    'ConfigLoader', 'MonitorSettings', 'FileRegistry',

    # Errors
    'SentinelError', 'ConfigurationError', 'SessionNotFound', 'CommandTimeout',
    'ExternalToolFailure', 'InjectionError', 'NotificationError',

    '__version__',
    '__description__'
]


def get_version():
    """Get the current version of Tmux Sentinel."""
    return __version__


def create_monitor(**kwargs):
    """
    Create a SessionHealthMonitor from RunContext fields.

    Args:
        **kwargs: RunContext fields (registry, session_io, vcs, settings,
            notifier, status_oracle, report_store, ...)

    Returns:
        SessionHealthMonitor: Monitor bound to a fresh context
    """
    console = kwargs.pop('console', None)
    return SessionHealthMonitor(RunContext(**kwargs), console=console)
