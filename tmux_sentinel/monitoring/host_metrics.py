"""
Host snapshot recorded alongside a full report. Informational only: it
never influences overall health.
"""

import shutil
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List

import psutil

logger = logging.getLogger(__name__)


@dataclass
class SystemMetrics:
    """System performance metrics."""
    cpu_percent: float
    memory_percent: float
    disk_percent: float
    load_average: List[float]
    process_count: int
    tmux_available: bool
    git_available: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def collect_system_metrics(disk_path: str = '/') -> SystemMetrics:
    """Collect current host metrics without blocking on a CPU interval."""
    try:
        load_avg = list(psutil.getloadavg())
    except (AttributeError, OSError):
        load_avg = [0.0, 0.0, 0.0]

    try:
        disk_percent = psutil.disk_usage(disk_path).percent
    except OSError as e:
        logger.debug(f"Disk usage unavailable for {disk_path}: {e}")
        disk_percent = 0.0

    return SystemMetrics(
        cpu_percent=psutil.cpu_percent(interval=None),
        memory_percent=psutil.virtual_memory().percent,
        disk_percent=disk_percent,
        load_average=load_avg,
        process_count=len(psutil.pids()),
        tmux_available=shutil.which('tmux') is not None,
        git_available=shutil.which('git') is not None
    )
