"""
Session Health Monitor

Drives one bounded monitoring run:

    Idle -> Sampling -> Classifying -> (Stalled? -> Recovering -> Recovered|StillStuck : Verified)
         -> Aggregating -> Done

Per-project units run concurrently on a bounded worker pool. Results are
joined before the single-threaded aggregation step.
"""

import time
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from rich.console import Console

from .context import RunContext
from .errors import SentinelError
from .models import (
    ClassificationResult, EscalationEvent, GitActivity, MonitoringReport,
    OracleResult, RecoveryOutcome, RecoveryResult, RunMode, SessionState, TrackedProject
)
from ..git.verifier import GroundTruthVerifier
from ..monitoring.escalation import EscalationNotifier
from ..monitoring.host_metrics import collect_system_metrics
from ..monitoring.recovery import RecoveryOrchestrator
from ..monitoring.report import ReportAggregator
from ..monitoring.stall_detector import classify
from ..monitoring.status_oracle import run_oracle
from ..tmux.pane_sampler import PaneSampler

logger = logging.getLogger(__name__)


@dataclass
class PhaseResults:
    """What the phases of one mode produced, handed to the aggregator."""
    classifications: Optional[Dict[str, ClassificationResult]] = None
    git_activity: Optional[Dict[str, GitActivity]] = None
    recovery: Optional[Dict[str, RecoveryResult]] = None
    escalation: Optional[EscalationEvent] = None
    oracle: Optional[OracleResult] = None
    host: Optional[Dict[str, Any]] = None
    phases: List[str] = field(default_factory=list)


class SessionHealthMonitor:
    """
    Detects stalled sessions, recovers what it can and reports the rest.

    All collaborators come from the RunContext, so one monitor instance
    serves exactly one run configuration.
    """

    def __init__(self, context: RunContext, console: Optional[Console] = None):
        self.context = context
        self.console = console or Console()
        settings = context.settings

        self.sampler = PaneSampler(
            context.session_io,
            capture_lines=settings.capture_lines,
            timeout=settings.capture_timeout
        )
        self.verifier = GroundTruthVerifier(context.vcs, timeout=settings.git_timeout)
        self.recovery = RecoveryOrchestrator(
            context.session_io,
            self.sampler,
            signatures=settings.signatures,
            fallback_inputs=settings.fallback_inputs,
            max_attempts=settings.max_attempts,
            settle_delay=settings.settle_delay,
            send_timeout=settings.send_timeout,
            evidence_lines=settings.evidence_lines,
            cancel_event=context.cancel_event
        )
        self.escalation = EscalationNotifier(context.notifier, timeout=settings.notify_timeout)
        self.aggregator = ReportAggregator()
        self.last_report_path: Optional[Path] = None

        self._handlers: Dict[RunMode, Callable[[List[TrackedProject], Executor], PhaseResults]] = {
            RunMode.FULL: self._run_full,
            RunMode.QUICK: self._run_quick,
            RunMode.VERIFY_ONLY: self._run_verify_only,
            RunMode.RECOVERY_ONLY: self._run_recovery_only,
        }

    def run(self, mode: RunMode = RunMode.FULL) -> MonitoringReport:
        """
        Execute one run in the given mode.

        Returns:
            The aggregated MonitoringReport (also persisted in full mode)

        Raises:
            ConfigurationError: If the registry cannot be loaded. Nothing
                else escapes: unit failures are recorded in the report.
        """
        if isinstance(mode, str):
            mode = RunMode.parse(mode)

        projects = list(self.context.registry.list_targets())
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()
        self.console.print(f"[blue]🔍 Monitoring {len(projects)} project(s) ({mode.value} mode)...[/blue]")

        with ThreadPoolExecutor(max_workers=self.context.settings.max_workers,
                                thread_name_prefix="sentinel") as executor:
            results = self._handlers[mode](projects, executor)

        results.phases.append("aggregate")
        duration_ms = int((time.monotonic() - started) * 1000)
        report = self.aggregator.aggregate(
            mode=mode,
            started_at=started_at,
            duration_ms=duration_ms,
            projects=projects,
            classifications=results.classifications,
            git_activity=results.git_activity,
            recovery=results.recovery,
            escalation=results.escalation,
            oracle=results.oracle,
            host=results.host,
            phases=results.phases,
            interrupted=self.context.cancelled
        )

        if mode is RunMode.FULL:
            self._persist(report)
        return report

    # Phase handlers

    def _run_full(self, projects: List[TrackedProject], executor: Executor) -> PhaseResults:
        results = PhaseResults(phases=["sample", "classify", "verify"])

        session_futures = self._submit_session_checks(projects, executor)
        git_futures = self.verifier.submit_all(projects, executor, self.context.cancel_event)
        oracle_future = self._submit_oracle(executor)

        results.classifications = self._join(session_futures)
        results.git_activity = {project.name: future.result() for project, future in git_futures}
        if oracle_future is not None:
            results.oracle = oracle_future.result()
            results.phases.append("status-check")

        results.recovery = self._recover(results.classifications, executor)
        results.phases.append("recover")

        if self.context.cancelled:
            logger.warning("Run cancelled, escalation skipped")
        else:
            results.escalation = self.escalation.notify(list(results.recovery.values()))
            results.phases.append("escalate")

        results.host = self._host_snapshot()
        return results

    def _run_quick(self, projects: List[TrackedProject], executor: Executor) -> PhaseResults:
        results = PhaseResults(phases=["sample", "classify"])
        session_futures = self._submit_session_checks(projects, executor)
        oracle_future = self._submit_oracle(executor)

        results.classifications = self._join(session_futures)
        if oracle_future is not None:
            results.oracle = oracle_future.result()
            results.phases.append("status-check")
        return results

    def _run_verify_only(self, projects: List[TrackedProject], executor: Executor) -> PhaseResults:
        results = PhaseResults(phases=["verify"])
        results.git_activity = self.verifier.verify_all(projects, executor, self.context.cancel_event)
        return results

    def _run_recovery_only(self, projects: List[TrackedProject], executor: Executor) -> PhaseResults:
        results = PhaseResults(phases=["sample", "classify", "recover"])
        results.classifications = self._join(self._submit_session_checks(projects, executor))
        results.recovery = self._recover(results.classifications, executor)
        return results

    # Units

    def check_session(self, project: TrackedProject) -> ClassificationResult:
        """Sample and classify one project's session; never raises."""
        session_id = project.session_id
        if self.context.cancelled:
            return ClassificationResult(session_id, SessionState.UNKNOWN,
                                        project_name=project.name, error="cancelled")

        settings = self.context.settings
        try:
            snapshot = self.sampler.sample(session_id)
        except SentinelError as e:
            logger.warning(f"{project.name}: capture of {session_id} failed: {e}")
            return ClassificationResult(session_id, SessionState.UNKNOWN,
                                        project_name=project.name, error=str(e))
        except Exception as e:
            logger.error(f"{project.name}: capture of {session_id} crashed: {e}")
            return ClassificationResult(session_id, SessionState.UNKNOWN,
                                        project_name=project.name, error=str(e) or type(e).__name__)

        result = classify(snapshot, settings.signatures, settings.evidence_lines, session_id=session_id)
        result = replace(result, project_name=project.name,
                         error="session not found" if snapshot is None else None)

        if result.state is SessionState.STALLED:
            self.console.print(
                f"[red]🚨 {project.name}: session {session_id} stalled "
                f"({result.matched_signature.label})[/red]"
            )
        elif result.state is SessionState.UNKNOWN:
            self.console.print(f"[yellow]⚠ {project.name}: session {session_id} state unknown[/yellow]")
        return result

    def _submit_session_checks(self, projects: List[TrackedProject],
                               executor: Executor) -> List[Tuple[TrackedProject, Future]]:
        return [(project, executor.submit(self.check_session, project)) for project in projects]

    @staticmethod
    def _join(futures: List[Tuple[TrackedProject, Future]]) -> Dict[str, ClassificationResult]:
        return {project.name: future.result() for project, future in futures}

    def _submit_oracle(self, executor: Executor) -> Optional[Future]:
        if self.context.status_oracle is None:
            return None
        return executor.submit(run_oracle, self.context.status_oracle,
                               self.context.settings.oracle_timeout)

    def _recover(self, classifications: Dict[str, ClassificationResult],
                 executor: Executor) -> Dict[str, RecoveryResult]:
        stalled = [c for c in classifications.values() if c.state is SessionState.STALLED]
        if not stalled:
            self.console.print("[green]✅ No stuck prompts detected[/green]")
            return {}

        self.console.print(f"[blue]🔧 Attempting to recover {len(stalled)} stalled session(s)...[/blue]")
        outcomes = self.recovery.recover_all(stalled, executor)
        for session_id, outcome in outcomes.items():
            if outcome.outcome is RecoveryOutcome.RECOVERED:
                self.console.print(f"[green]✅ Recovered {session_id} after {len(outcome.attempts)} attempt(s)[/green]")
            else:
                self.console.print(f"[red]❌ {session_id} still stuck after {len(outcome.attempts)} attempt(s)[/red]")
        return outcomes

    def _host_snapshot(self) -> Optional[Dict[str, Any]]:
        if not self.context.collect_host_metrics:
            return None
        try:
            return collect_system_metrics().to_dict()
        except Exception as e:
            logger.warning(f"Host metrics unavailable: {e}")
            return None

    def _persist(self, report: MonitoringReport) -> None:
        store = self.context.report_store
        if store is None:
            return
        try:
            self.last_report_path = store.save(report)
        except OSError as e:
            logger.error(f"Failed to save report: {e}")
            self.console.print(f"[red]❌ Failed to save report: {e}[/red]")
