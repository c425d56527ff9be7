"""
Report Aggregator Module

Merges the unit results of a run into one MonitoringReport, derives the
overall health label and persists the report to an append-only directory.
"""

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.models import (
    ClassificationResult, EscalationEvent, GitActivity, MonitoringReport,
    OracleResult, OverallHealth, ProjectStatus, RecoveryOutcome, RecoveryResult,
    ReportSummary, RunMode, SessionState, TrackedProject
)
from ..utils.file_utils import FileUtils

logger = logging.getLogger(__name__)

SKIPPED = "skipped"


def compute_overall_health(final_states: Iterable[SessionState],
                           outcomes: Iterable[RecoveryOutcome],
                           git_activity: Iterable[GitActivity],
                           oracle: Optional[OracleResult],
                           interrupted: bool = False) -> OverallHealth:
    """
    Excellent iff nothing is left stalled or still stuck, no git check
    failed and the status oracle, when used, succeeded.
    """
    if interrupted:
        return OverallHealth.NEEDS_ATTENTION
    if any(state is SessionState.STALLED for state in final_states):
        return OverallHealth.NEEDS_ATTENTION
    if any(outcome is RecoveryOutcome.STILL_STUCK for outcome in outcomes):
        return OverallHealth.NEEDS_ATTENTION
    if any(activity.error for activity in git_activity):
        return OverallHealth.NEEDS_ATTENTION
    if oracle is not None and not oracle.ok:
        return OverallHealth.NEEDS_ATTENTION
    return OverallHealth.EXCELLENT


class ReportAggregator:
    """Single-threaded join of all unit outputs."""

    def aggregate(self,
                  mode: RunMode,
                  started_at: datetime,
                  duration_ms: int,
                  projects: Sequence[TrackedProject],
                  classifications: Optional[Mapping[str, ClassificationResult]] = None,
                  git_activity: Optional[Mapping[str, GitActivity]] = None,
                  recovery: Optional[Mapping[str, RecoveryResult]] = None,
                  escalation: Optional[EscalationEvent] = None,
                  oracle: Optional[OracleResult] = None,
                  host: Optional[Dict[str, Any]] = None,
                  phases: Sequence[str] = (),
                  interrupted: bool = False) -> MonitoringReport:
        """
        Build the report.

        Args:
            classifications: Initial classification per project name, or
                None when sessions were not checked in this mode
            git_activity: GitActivity per project name, or None when the
                verifier did not run
            recovery: RecoveryResult per session id, or None when recovery
                did not run
        """
        final: List[ClassificationResult] = []
        statuses: Dict[str, ProjectStatus] = {}
        stalled_projects = 0
        initially_stalled = 0

        for project in projects:
            git_status = SKIPPED
            if git_activity is not None:
                activity = git_activity.get(project.name)
                git_status = "error" if activity is None or activity.error else "ok"

            session_status = SKIPPED
            recovery_status = SKIPPED
            if classifications is not None:
                initial = classifications[project.name]
                result = initial
                outcome = None
                if initial.state is SessionState.STALLED:
                    initially_stalled += 1
                    if recovery is not None and initial.session_id in recovery:
                        recovered = recovery[initial.session_id]
                        result = replace(recovered.final, project_name=project.name)
                        outcome = recovered.outcome
                        recovery_status = outcome.value
                elif recovery is not None:
                    recovery_status = "not-needed"

                final.append(result)
                session_status = result.state.value
                if result.state is SessionState.STALLED or outcome is RecoveryOutcome.STILL_STUCK:
                    stalled_projects += 1

            statuses[project.name] = ProjectStatus(
                git=git_status, session=session_status, recovery=recovery_status
            )

        attempts = []
        if recovery is not None:
            for result in recovery.values():
                attempts.extend(result.attempts)

        activities = dict(git_activity) if git_activity is not None else {}
        git_errors = len([a for a in activities.values() if a.error])
        outcomes = [r.outcome for r in recovery.values()] if recovery is not None else []

        health = compute_overall_health(
            final_states=[c.state for c in final],
            outcomes=outcomes,
            git_activity=activities.values(),
            oracle=oracle,
            interrupted=interrupted
        )

        if oracle is None:
            oracle_status = SKIPPED
        else:
            oracle_status = "operational" if oracle.ok else "error"

        summary = ReportSummary(
            projects_checked=len(projects),
            stalled_count=stalled_projects,
            overall_health=health,
            stuck_prompts=initially_stalled,
            recovered_count=len([o for o in outcomes if o is RecoveryOutcome.RECOVERED]),
            git_errors=git_errors,
            status_oracle=oracle_status,
            phases=tuple(phases)
        )

        return MonitoringReport(
            timestamp=started_at.isoformat(),
            duration_ms=duration_ms,
            mode=mode,
            git_activity=activities,
            classifications=final,
            recovery_attempts=attempts,
            summary=summary,
            projects=statuses,
            escalation=escalation,
            status_oracle=oracle,
            host=host,
            interrupted=interrupted
        )


class ReportStore:
    """Append-only directory of persisted reports."""

    def __init__(self, reports_dir: Path):
        self.reports_dir = reports_dir

    def path_for(self, report: MonitoringReport) -> Path:
        epoch_ms = int(datetime.fromisoformat(report.timestamp).timestamp() * 1000)
        return self.reports_dir / f"monitoring-{epoch_ms}.json"

    def save(self, report: MonitoringReport) -> Path:
        """Write report to a new file and return its path."""
        path = FileUtils.write_json_exclusive(self.path_for(report), report.to_dict())
        logger.info(f"Report saved: {path}")
        return path
