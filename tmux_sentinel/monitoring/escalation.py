"""
Escalation Notifier

Batches every session that could not be recovered into one alert.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from ..core.models import EscalationEvent, RecoveryOutcome, RecoveryResult

logger = logging.getLogger(__name__)

REASON = "sessions still stuck after automatic recovery"


def format_alert(results: Sequence[RecoveryResult]) -> str:
    """Markdown body of the batched alert."""
    lines = [
        "# 🚨 AI Team Token Waste Alert",
        "",
        f"**Detected {len(results)} stuck AI session(s)**",
        "",
        "## Stuck Sessions:",
    ]
    for result in results:
        signature = result.final.matched_signature
        label = signature.label if signature else result.final.state.value
        tried = ', '.join(repr(a.injected_input) for a in result.attempts) or 'none'
        lines.append(f"- **{result.session_id}**: {label} (inputs tried: {tried})")
        for evidence in result.final.evidence[-3:]:
            lines.append(f"    > {evidence}")

    lines.extend([
        "",
        "## Actions Taken:",
        "- Automatic fallback inputs were sent and each session re-checked",
        "- Manual intervention is required for the sessions above",
        "",
        "## Next Steps:",
        "1. Attach to each session with `tmux attach -t <session>`",
        "2. Review the prompts the agents are blocked on",
        "3. Consider adding signature-specific fallback inputs",
    ])
    return '\n'.join(lines)


class EscalationNotifier:
    """Dispatches at most one alert per run through a Notifier."""

    def __init__(self, notifier, timeout: float = 30.0):
        self.notifier = notifier
        self.timeout = timeout

    def notify(self, results: Sequence[RecoveryResult]) -> Optional[EscalationEvent]:
        """
        Send one alert covering every StillStuck result.

        Returns:
            The EscalationEvent, or None when nothing needed escalating.
            Dispatch failure is recorded on the event, never raised.
        """
        stuck = [r for r in results if r.outcome is RecoveryOutcome.STILL_STUCK]
        if not stuck:
            return None

        session_ids = frozenset(r.session_id for r in stuck)
        timestamp = datetime.now(timezone.utc).isoformat()
        message = format_alert(stuck)

        if self.notifier is None:
            logger.warning("No notifier configured, escalation not sent")
            return EscalationEvent(REASON, session_ids, timestamp, delivered=False,
                                   error="no notifier configured")

        try:
            self.notifier.send(message, self.timeout)
        except Exception as e:
            logger.error(f"Failed to send escalation alert: {e}")
            return EscalationEvent(REASON, session_ids, timestamp, delivered=False,
                                   error=str(e) or type(e).__name__)

        logger.info(f"Escalation sent for {len(session_ids)} session(s)")
        return EscalationEvent(REASON, session_ids, timestamp, delivered=True)
