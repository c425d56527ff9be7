"""
Stall Detector

Pure classification of a pane snapshot against an ordered signature list.
No I/O and no state: identical inputs always give identical results.
"""

from typing import Optional, Sequence

from ..core.models import ClassificationResult, PaneSnapshot, SessionState, StallSignature


def classify(snapshot: Optional[PaneSnapshot],
             signatures: Sequence[StallSignature],
             evidence_lines: int = 5,
             session_id: Optional[str] = None) -> ClassificationResult:
    """
    Classify a session as stalled, active or unknown.

    Signatures are tried in order; the first one matching any line decides
    the result. Absent or blank content is Unknown, never Active.

    Args:
        snapshot: Captured pane content, or None when the capture failed
        signatures: Stall signatures in priority order
        evidence_lines: Number of trailing lines kept as evidence
        session_id: Session id to report when snapshot is None
    """
    if snapshot is None:
        return ClassificationResult(session_id=session_id or "", state=SessionState.UNKNOWN)

    evidence = tuple(snapshot.lines[-evidence_lines:]) if evidence_lines > 0 else ()

    if snapshot.is_empty:
        return ClassificationResult(
            session_id=snapshot.session_id,
            state=SessionState.UNKNOWN,
            evidence=evidence
        )

    for signature in signatures:
        if any(signature.matches(line) for line in snapshot.lines):
            return ClassificationResult(
                session_id=snapshot.session_id,
                state=SessionState.STALLED,
                matched_signature=signature,
                evidence=evidence
            )

    return ClassificationResult(
        session_id=snapshot.session_id,
        state=SessionState.ACTIVE,
        evidence=evidence
    )
