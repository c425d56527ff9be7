"""
Ground-Truth Verifier

Confirms progress from version-control state instead of trusting what a
session prints. Each project is inspected independently; one project's
failure never stops the others.
"""

import logging
from concurrent.futures import Executor, Future
from dataclasses import replace
from pathlib import Path
from threading import Event
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.errors import CommandTimeout, ExternalToolFailure
from ..core.models import GitActivity, TrackedProject
from ..utils.subprocess_wrapper import run_command

logger = logging.getLogger(__name__)

LOG_FORMAT = '%H|%an|%ar|%s'


class GitVersionControl:
    """VersionControl backed by the git binary"""

    def inspect(self, path: str, timeout: float) -> GitActivity:
        """
        Run the three read-only inspections against a working tree.

        Each inspection is attempted even when another one failed; the
        failures are joined into GitActivity.error.
        """
        repo = Path(path)
        if not repo.is_dir():
            return GitActivity(project_name=path, error=f"Project path not found: {path}")

        errors = []
        fields = {}

        try:
            fields.update(self._latest_change(repo, timeout))
        except (CommandTimeout, ExternalToolFailure) as e:
            errors.append(f"log: {e}")

        try:
            fields['pending_change_count'] = self._pending_changes(repo, timeout)
        except (CommandTimeout, ExternalToolFailure) as e:
            errors.append(f"status: {e}")

        try:
            fields['branch'] = self._current_branch(repo, timeout)
        except (CommandTimeout, ExternalToolFailure) as e:
            errors.append(f"branch: {e}")

        return GitActivity(
            project_name=path,
            error='; '.join(errors) if errors else None,
            **fields
        )

    def _git(self, repo: Path, args: List[str], timeout: float):
        return run_command(['git', '-C', str(repo)] + args, timeout=timeout, check=False)

    def _latest_change(self, repo: Path, timeout: float) -> Dict[str, Optional[str]]:
        result = self._git(repo, ['log', '-1', f'--format={LOG_FORMAT}'], timeout)
        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            # A fresh repository has a branch but no history yet
            if 'does not have any commits' in stderr:
                return {}
            raise ExternalToolFailure(stderr or f"git log exited with {result.returncode}")

        line = result.stdout.strip()
        if not line:
            return {}
        change_id, author, relative_time, subject = (line.split('|', 3) + [None] * 4)[:4]
        return {
            'last_change_id': change_id,
            'last_author': author,
            'last_relative_time': relative_time,
            'last_subject': subject,
        }

    def _pending_changes(self, repo: Path, timeout: float) -> int:
        result = self._git(repo, ['status', '--porcelain'], timeout)
        if result.returncode != 0:
            raise ExternalToolFailure((result.stderr or '').strip() or "git status failed")
        return len([line for line in result.stdout.splitlines() if line.strip()])

    def _current_branch(self, repo: Path, timeout: float) -> str:
        result = self._git(repo, ['branch', '--show-current'], timeout)
        if result.returncode != 0:
            raise ExternalToolFailure((result.stderr or '').strip() or "git branch failed")
        return result.stdout.strip() or "(detached)"


class GroundTruthVerifier:
    """Inspects every tracked project's repository in isolation."""

    def __init__(self, vcs, timeout: float = 15.0):
        self.vcs = vcs
        self.timeout = timeout

    def verify(self, project: TrackedProject) -> GitActivity:
        """Inspect one project; never raises."""
        try:
            activity = self.vcs.inspect(project.path, self.timeout)
        except Exception as e:
            logger.warning(f"Git inspection failed for {project.name}: {e}")
            return GitActivity(project_name=project.name, error=str(e) or type(e).__name__)

        activity = replace(activity, project_name=project.name)
        if activity.error:
            logger.warning(f"{project.name}: {activity.error}")
        else:
            logger.info(
                f"{project.name}: branch {activity.branch}, "
                f"{activity.pending_change_count} pending, last change {activity.last_relative_time or 'none'}"
            )
        return activity

    def submit_all(self, projects: Sequence[TrackedProject],
                   executor: Executor,
                   cancel_event: Optional[Event] = None) -> List[Tuple[TrackedProject, Future]]:
        """
        Schedule one inspection per project on executor without waiting.

        Projects not yet started when cancel_event is set are recorded with
        error "cancelled".
        """
        def unit(project: TrackedProject) -> GitActivity:
            if cancel_event is not None and cancel_event.is_set():
                return GitActivity(project_name=project.name, error="cancelled")
            return self.verify(project)

        return [(project, executor.submit(unit, project)) for project in projects]

    def verify_all(self, projects: Sequence[TrackedProject],
                   executor: Executor,
                   cancel_event: Optional[Event] = None) -> Dict[str, GitActivity]:
        """Inspect all projects concurrently; the result preserves registry order."""
        futures = self.submit_all(projects, executor, cancel_event)
        return {project.name: future.result() for project, future in futures}
