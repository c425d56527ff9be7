"""
Report View Module

Rich console rendering of a MonitoringReport: one row per project plus the
summary block.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from ..core.models import MonitoringReport, OverallHealth

_STATUS_STYLE = {
    "ok": "green",
    "active": "green",
    "recovered": "green",
    "not-needed": "dim",
    "skipped": "dim",
    "unknown": "yellow",
    "error": "red",
    "stalled": "red",
    "still-stuck": "red",
}


def _styled(value: str) -> str:
    style = _STATUS_STYLE.get(value, "white")
    return f"[{style}]{value}[/{style}]"


class ReportView:
    """Displays monitoring reports on a rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def build_table(self, report: MonitoringReport) -> Table:
        """Per-project table: git check, session state, recovery outcome."""
        table = Table(title="Tracked Projects")
        table.add_column("Project", style="cyan", no_wrap=True)
        table.add_column("Git")
        table.add_column("Branch")
        table.add_column("Pending", justify="right")
        table.add_column("Last change")
        table.add_column("Session")
        table.add_column("Recovery")

        for name, status in report.projects.items():
            activity = report.git_activity.get(name)
            branch = pending = last_change = ""
            if activity is not None:
                branch = activity.branch or ""
                pending = "" if activity.pending_change_count is None else str(activity.pending_change_count)
                last_change = activity.error or activity.last_relative_time or ""
            table.add_row(
                name,
                _styled(status.git),
                branch,
                pending,
                last_change,
                _styled(status.session),
                _styled(status.recovery),
            )
        return table

    def display(self, report: MonitoringReport, saved_to: Optional[Path] = None) -> None:
        """Print the project table and the summary block."""
        summary = report.summary
        self.console.print(self.build_table(report))

        lines = [
            f"Mode: {report.mode.value}",
            f"Duration: {report.duration_ms / 1000:.1f}s",
            f"Projects checked: {summary.projects_checked}",
            f"Status check: {summary.status_oracle}",
            f"Stuck prompts: {summary.stuck_prompts} (recovered {summary.recovered_count})",
            f"Still stalled: {summary.stalled_count}",
            f"Git errors: {summary.git_errors}",
        ]
        if report.escalation is not None:
            delivery = "sent" if report.escalation.delivered else f"failed: {report.escalation.error}"
            lines.append(f"Escalation: {len(report.escalation.session_ids)} session(s), {delivery}")
        if report.interrupted:
            lines.append("[yellow]Run was interrupted[/yellow]")

        healthy = summary.overall_health is OverallHealth.EXCELLENT
        color = "green" if healthy else "yellow"
        lines.append(f"\n🎯 Status: [{color}]{summary.overall_health.value.upper()}[/{color}]")
        if saved_to is not None:
            lines.append(f"💾 Report saved: {saved_to}")

        self.console.print(Panel('\n'.join(lines), title="🔍 Session Health Report", border_style=color))
