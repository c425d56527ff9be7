"""
External status oracle: an independent status command whose exit status
is folded into the run's overall health.
"""

import logging
from typing import List, Optional

from ..core.errors import CommandTimeout, ExternalToolFailure
from ..core.models import OracleResult
from ..utils.subprocess_wrapper import run_command

logger = logging.getLogger(__name__)


class CommandStatusOracle:
    """Succeeds iff the configured command exits with status 0."""

    def __init__(self, command: List[str]):
        if not command:
            raise ValueError("status command must not be empty")
        self.command = list(command)

    def check(self, timeout: float) -> None:
        """
        Raises:
            CommandTimeout, ExternalToolFailure: when the status is not ok
        """
        run_command(self.command, timeout=timeout, check=True)


def run_oracle(oracle, timeout: float) -> Optional[OracleResult]:
    """Invoke an oracle at the unit boundary; None when no oracle is configured."""
    if oracle is None:
        return None
    try:
        oracle.check(timeout)
    except (CommandTimeout, ExternalToolFailure) as e:
        logger.warning(f"Status check failed: {e}")
        return OracleResult(ok=False, error=str(e))
    except Exception as e:
        logger.error(f"Status check crashed: {e}")
        return OracleResult(ok=False, error=str(e) or type(e).__name__)

    logger.info("Status check operational")
    return OracleResult(ok=True)
