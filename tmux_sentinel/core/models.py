"""
Data Model Module

Dataclasses and enums shared by every phase of a monitoring run. Instances
are immutable once built; phases hand them to each other and the report
aggregator serializes them with to_dict().
"""

import re
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, FrozenSet


class SessionState(Enum):
    """Classification of a session's visible output."""
    STALLED = "stalled"
    UNKNOWN = "unknown"
    ACTIVE = "active"


class RecoveryOutcome(Enum):
    """Terminal state of a recovery loop."""
    RECOVERED = "recovered"
    STILL_STUCK = "still-stuck"


class OverallHealth(Enum):
    """Run-level health label."""
    EXCELLENT = "excellent"
    NEEDS_ATTENTION = "needs-attention"


class RunMode(Enum):
    """Invocation modes of the monitor."""
    FULL = "full"
    QUICK = "quick"
    VERIFY_ONLY = "verify-only"
    RECOVERY_ONLY = "recovery-only"

    @classmethod
    def parse(cls, value: str) -> 'RunMode':
        """Parse a mode name, accepting the legacy 'git' and 'stuck' names."""
        aliases = {'git': cls.VERIFY_ONLY, 'stuck': cls.RECOVERY_ONLY}
        normalized = value.strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


def _jsonable(value: Any) -> Any:
    """Convert enums, tuples and sets inside asdict() output to JSON types."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (frozenset, set)):
        return sorted(_jsonable(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


@dataclass(frozen=True)
class TrackedProject:
    """A registered project and the tmux session working on it."""
    name: str
    path: str
    session: Optional[str] = None

    @property
    def session_id(self) -> str:
        return self.session or self.name


@dataclass(frozen=True)
class PaneSnapshot:
    """Bounded capture of a session's visible output."""
    session_id: str
    captured_at: float
    lines: Tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not any(line.strip() for line in self.lines)


@dataclass(frozen=True)
class StallSignature:
    """
    Known text pattern of a session blocked on input.

    Literal patterns match as substrings of a line; regex patterns are
    searched with re.search. fallback_inputs, when set, replaces the
    default recovery inputs for sessions stalled on this signature.
    """
    pattern: str
    label: str
    regex: bool = False
    fallback_inputs: Optional[Tuple[str, ...]] = None

    def matches(self, line: str) -> bool:
        if self.regex:
            return re.search(self.pattern, line) is not None
        return self.pattern in line

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one session."""
    session_id: str
    state: SessionState
    matched_signature: Optional[StallSignature] = None
    evidence: Tuple[str, ...] = ()
    project_name: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class GitActivity:
    """Version-control state of one tracked project."""
    project_name: str
    last_change_id: Optional[str] = None
    last_author: Optional[str] = None
    last_relative_time: Optional[str] = None
    last_subject: Optional[str] = None
    pending_change_count: Optional[int] = None
    branch: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RecoveryAttempt:
    """One fallback-input injection and the re-classification that followed."""
    session_id: str
    attempt_index: int
    injected_input: str
    result_state: SessionState
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class RecoveryResult:
    """Full record of a session's recovery loop."""
    session_id: str
    outcome: RecoveryOutcome
    attempts: Tuple[RecoveryAttempt, ...]
    final: ClassificationResult


@dataclass(frozen=True)
class EscalationEvent:
    """The single batched alert of a run."""
    reason: str
    session_ids: FrozenSet[str]
    timestamp: str
    delivered: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class OracleResult:
    """Result of the external status check."""
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ProjectStatus:
    """Per-project outcome of each check: never omitted from a report."""
    git: str
    session: str
    recovery: str


@dataclass(frozen=True)
class ReportSummary:
    projects_checked: int
    stalled_count: int
    overall_health: OverallHealth
    stuck_prompts: int = 0
    recovered_count: int = 0
    git_errors: int = 0
    status_oracle: str = "skipped"
    phases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MonitoringReport:
    """Everything a run found, assembled once after all units finished."""
    timestamp: str
    duration_ms: int
    mode: RunMode
    git_activity: Dict[str, GitActivity]
    classifications: List[ClassificationResult]
    recovery_attempts: List[RecoveryAttempt]
    summary: ReportSummary
    projects: Dict[str, ProjectStatus] = field(default_factory=dict)
    escalation: Optional[EscalationEvent] = None
    status_oracle: Optional[OracleResult] = None
    host: Optional[Dict[str, Any]] = None
    interrupted: bool = False

    @property
    def overall_health(self) -> OverallHealth:
        return self.summary.overall_health

    @property
    def exit_code(self) -> int:
        return 0 if self.summary.overall_health is OverallHealth.EXCELLENT else 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return _jsonable(asdict(self))
