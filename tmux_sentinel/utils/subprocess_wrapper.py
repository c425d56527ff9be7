"""
Subprocess wrapper with explicit timeouts and typed failures.

Every external command the monitor runs goes through run_command() so that
no call can block a unit indefinitely.
"""

import subprocess
import time
import logging
from typing import Optional, Union, List
from pathlib import Path

from ..core.errors import CommandTimeout, ExternalToolFailure

logger = logging.getLogger(__name__)


def _describe(cmd: Union[str, List[str]]) -> str:
    return cmd if isinstance(cmd, str) else ' '.join(cmd)


def run_command(
    cmd: List[str],
    timeout: float,
    check: bool = True,
    cwd: Optional[Union[str, Path]] = None,
    max_retries: int = 1,
    retry_delay: float = 0.5,
) -> subprocess.CompletedProcess:
    """
    Run a command with a mandatory timeout.

    Args:
        cmd: Command to run as an argument list
        timeout: Seconds before the command is killed
        check: Raise ExternalToolFailure on non-zero exit
        cwd: Working directory for command
        max_retries: Total attempts for failures other than timeouts.
            Keep at 1 for commands with side effects.
        retry_delay: Delay between attempts in seconds

    Returns:
        subprocess.CompletedProcess object

    Raises:
        CommandTimeout: If the command exceeded its timeout
        ExternalToolFailure: If the command could not run or exited non-zero
    """
    description = _describe(cmd)
    last_error: Optional[ExternalToolFailure] = None

    max_retries = max(1, max_retries)
    for attempt in range(max_retries):
        if attempt > 0:
            logger.info(f"Retry attempt {attempt + 1}/{max_retries} for command: {description}")
            time.sleep(retry_delay)

        logger.debug(f"Running: {description}")
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                timeout=timeout,
                check=False,
                capture_output=True,
                text=True,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout}s: {description}")
            raise CommandTimeout(description, timeout)
        except OSError as e:
            # Command not found or not executable: retrying will not help
            raise ExternalToolFailure(f"Cannot run {description}: {e}") from e

        if not check or result.returncode == 0:
            return result

        stderr = (result.stderr or '').strip()
        logger.warning(f"Command failed with exit code {result.returncode}: {description}")
        logger.debug(f"stderr: {stderr}")
        last_error = ExternalToolFailure(
            f"{description} exited with {result.returncode}: {stderr or 'no output'}"
        )

    raise last_error
