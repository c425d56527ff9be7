"""
Recovery Orchestrator

Drives each stalled session through a bounded attempt loop:

    Stalled -> Attempting(k) -> Recovered | StillStuck

Every attempt injects one fallback input, waits for the session to settle,
re-samples and re-classifies. The loop stops at the first Active result.
Injections into one session are serialized; different sessions recover
concurrently.
"""

import time
import logging
import threading
from concurrent.futures import Executor
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from ..core.errors import SentinelError
from ..core.models import (
    ClassificationResult, RecoveryAttempt, RecoveryOutcome, RecoveryResult,
    SessionState, StallSignature
)
from .signatures import fallback_inputs_for
from .stall_detector import classify

logger = logging.getLogger(__name__)


class RecoveryOrchestrator:
    """Bounded, per-session-serialized recovery of stalled sessions."""

    def __init__(self,
                 session_io,
                 sampler,
                 signatures: Sequence[StallSignature],
                 fallback_inputs: Sequence[str] = ("y", "", "n"),
                 max_attempts: int = 3,
                 settle_delay: float = 1.0,
                 send_timeout: float = 5.0,
                 evidence_lines: int = 5,
                 cancel_event: Optional[threading.Event] = None,
                 sleep=time.sleep):
        self.session_io = session_io
        self.sampler = sampler
        self.signatures = tuple(signatures)
        self.fallback_inputs = tuple(fallback_inputs)
        self.max_attempts = max_attempts
        self.settle_delay = settle_delay
        self.send_timeout = send_timeout
        self.evidence_lines = evidence_lines
        self.cancel_event = cancel_event
        self._sleep = sleep
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(session_id, threading.Lock())

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def plan_for(self, classification: ClassificationResult) -> List[str]:
        """Ordered inputs this session will receive, already bounded."""
        inputs = fallback_inputs_for(classification.matched_signature, self.fallback_inputs)
        return list(inputs[:self.max_attempts])

    def recover(self, classification: ClassificationResult) -> RecoveryResult:
        """
        Run the attempt loop for one stalled session.

        Args:
            classification: A Stalled classification of the session

        Returns:
            RecoveryResult with the attempts made and the last classification
        """
        session_id = classification.session_id
        if classification.state is not SessionState.STALLED:
            raise ValueError(f"Session {session_id} is not stalled")

        attempts: List[RecoveryAttempt] = []
        current = classification
        plan = self.plan_for(classification)
        label = classification.matched_signature.label if classification.matched_signature else "?"
        logger.info(f"Recovering {session_id} ({label}) with up to {len(plan)} inputs")

        with self._lock_for(session_id):
            for index, text in enumerate(plan):
                # Stop between attempts only, never inside one
                if self._cancelled():
                    logger.warning(f"Recovery of {session_id} interrupted before attempt {index}")
                    break

                try:
                    self.session_io.send_keys(session_id, text, self.send_timeout)
                except SentinelError as e:
                    logger.warning(f"Injection into {session_id} failed: {e}")
                    attempts.append(RecoveryAttempt(
                        session_id=session_id,
                        attempt_index=index,
                        injected_input=text,
                        result_state=current.state,
                        error=str(e)
                    ))
                    break

                if self.settle_delay > 0:
                    self._sleep(self.settle_delay)

                try:
                    snapshot = self.sampler.sample(session_id)
                except SentinelError as e:
                    current = ClassificationResult(
                        session_id=session_id,
                        state=SessionState.UNKNOWN,
                        project_name=classification.project_name,
                        error=str(e)
                    )
                    attempts.append(self._record(current, index, text))
                    continue

                current = classify(snapshot, self.signatures, self.evidence_lines, session_id=session_id)
                current = replace(
                    current,
                    project_name=classification.project_name,
                    error=None if snapshot is not None else "session vanished during recovery"
                )
                attempts.append(self._record(current, index, text))

                if current.state is SessionState.ACTIVE:
                    logger.info(f"Recovered {session_id} with input {text!r} (attempt {index})")
                    return RecoveryResult(session_id, RecoveryOutcome.RECOVERED, tuple(attempts), current)

                if snapshot is None:
                    logger.warning(f"Session {session_id} vanished during recovery")
                    break

        logger.warning(f"Session {session_id} still stuck after {len(attempts)} attempts")
        return RecoveryResult(session_id, RecoveryOutcome.STILL_STUCK, tuple(attempts), current)

    @staticmethod
    def _record(result: ClassificationResult, index: int, text: str) -> RecoveryAttempt:
        return RecoveryAttempt(
            session_id=result.session_id,
            attempt_index=index,
            injected_input=text,
            result_state=result.state,
            error=result.error
        )

    def recover_all(self, classifications: Sequence[ClassificationResult],
                    executor: Executor) -> Dict[str, RecoveryResult]:
        """
        Recover every stalled session concurrently, once per session id.

        Returns:
            Mapping of session id to its RecoveryResult
        """
        stalled: Dict[str, ClassificationResult] = {}
        for result in classifications:
            if result.state is SessionState.STALLED and result.session_id not in stalled:
                stalled[result.session_id] = result

        futures = {
            session_id: executor.submit(self.recover, result)
            for session_id, result in stalled.items()
        }

        results = {}
        for session_id, future in futures.items():
            try:
                results[session_id] = future.result()
            except Exception as e:
                logger.error(f"Recovery loop for {session_id} crashed: {e}")
                original = stalled[session_id]
                failed = replace(original, error=f"recovery failed: {e}")
                results[session_id] = RecoveryResult(session_id, RecoveryOutcome.STILL_STUCK, (), failed)
        return results
