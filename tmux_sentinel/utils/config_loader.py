"""
Configuration Loader Module

Loads the project registry and the monitor settings, validating both once
at the boundary so that malformed shapes never reach the monitoring phases.
Every problem is raised as ConfigurationError.
"""

import os
import re
import shlex
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple, Union

import psutil

from ..core.errors import ConfigurationError
from ..core.models import StallSignature, TrackedProject
from ..monitoring.signatures import DEFAULT_SIGNATURES, DEFAULT_FALLBACK_INPUTS
from .file_utils import FileUtils

logger = logging.getLogger(__name__)

NUMBER = (int, float)


@dataclass
class ConfigValidationRule:
    """Configuration validation rule."""
    field_path: str
    required: bool = True
    field_type: Union[type, Tuple[type, ...]] = str
    min_value: Optional[Union[int, float]] = None
    max_value: Optional[Union[int, float]] = None


@dataclass
class ConfigSchema:
    """Configuration schema definition."""
    name: str
    version: str
    rules: List[ConfigValidationRule] = field(default_factory=list)

    def add_rule(self, **kwargs) -> 'ConfigSchema':
        """Add validation rule."""
        self.rules.append(ConfigValidationRule(**kwargs))
        return self

    def validate(self, data: Dict[str, Any]) -> List[str]:
        """Return the list of validation errors (empty when valid)."""
        errors = []
        for rule in self.rules:
            value = _get_nested_value(data, rule.field_path)
            if value is None:
                if rule.required:
                    errors.append(f"Required field missing: {rule.field_path}")
                continue

            expected = rule.field_type if isinstance(rule.field_type, tuple) else (rule.field_type,)
            if isinstance(value, bool) and bool not in expected:
                errors.append(f"Field {rule.field_path} must not be a boolean")
                continue
            if not isinstance(value, expected):
                names = '/'.join(t.__name__ for t in expected)
                errors.append(
                    f"Field {rule.field_path} must be {names}, got {type(value).__name__}"
                )
                continue

            if rule.min_value is not None and value < rule.min_value:
                errors.append(f"Field {rule.field_path} must be >= {rule.min_value}, got {value}")
            if rule.max_value is not None and value > rule.max_value:
                errors.append(f"Field {rule.field_path} must be <= {rule.max_value}, got {value}")
        return errors


def _get_nested_value(data: Dict[str, Any], path: str) -> Any:
    """Get nested value using dot notation."""
    current: Any = data
    for key in path.split('.'):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return None
    return current


def _substitute_environment_variables(data: Any) -> Any:
    """Recursively substitute ${VAR} and $VAR references in strings."""
    if isinstance(data, dict):
        return {k: _substitute_environment_variables(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_substitute_environment_variables(item) for item in data]
    if isinstance(data, str):
        def replace_env_var(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        pattern = r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)'
        return re.sub(pattern, replace_env_var, data)
    return data


def default_worker_limit() -> int:
    """Worker limit for the per-project fan-out, capped to spare the host."""
    return max(1, min(8, psutil.cpu_count(logical=True) or 1))


@dataclass
class MonitorSettings:
    """Tunables of a monitoring run."""
    capture_lines: int = 50
    evidence_lines: int = 5
    capture_timeout: float = 10.0
    send_timeout: float = 5.0
    git_timeout: float = 15.0
    notify_timeout: float = 30.0
    oracle_timeout: float = 30.0
    settle_delay: float = 1.0
    max_attempts: int = 3
    max_workers: int = field(default_factory=default_worker_limit)
    fallback_inputs: Tuple[str, ...] = DEFAULT_FALLBACK_INPUTS
    reports_dir: Path = Path('reports')
    status_command: Optional[List[str]] = None
    signatures: Tuple[StallSignature, ...] = DEFAULT_SIGNATURES


SETTINGS_SCHEMA = ConfigSchema("monitor_settings", "1.0")
SETTINGS_SCHEMA.add_rule(
    field_path="capture_lines", required=False, field_type=int, min_value=5, max_value=500
).add_rule(
    field_path="evidence_lines", required=False, field_type=int, min_value=1, max_value=50
).add_rule(
    field_path="capture_timeout", required=False, field_type=NUMBER, min_value=0.1
).add_rule(
    field_path="send_timeout", required=False, field_type=NUMBER, min_value=0.1
).add_rule(
    field_path="git_timeout", required=False, field_type=NUMBER, min_value=0.1
).add_rule(
    field_path="notify_timeout", required=False, field_type=NUMBER, min_value=0.1
).add_rule(
    field_path="oracle_timeout", required=False, field_type=NUMBER, min_value=0.1
).add_rule(
    field_path="settle_delay", required=False, field_type=NUMBER, min_value=0
).add_rule(
    field_path="max_attempts", required=False, field_type=int, min_value=1, max_value=10
).add_rule(
    field_path="max_workers", required=False, field_type=int, min_value=1, max_value=64
).add_rule(
    field_path="fallback_inputs", required=False, field_type=list
).add_rule(
    field_path="reports_dir", required=False, field_type=str
).add_rule(
    field_path="status_command", required=False, field_type=(str, list)
).add_rule(
    field_path="signatures", required=False, field_type=list
)


class ConfigLoader:
    """
    Loads and validates the registry and settings files.

    Features:
    - JSON and YAML configuration support
    - Schema validation with detailed error reporting
    - Environment variable substitution
    """

    def load_registry(self, registry_path: Path) -> List[TrackedProject]:
        """
        Load the ordered name -> path registry.

        Accepted shape: {"projectPaths": {"name": "path" | {"path": ..., "session": ...}}}

        Raises:
            ConfigurationError: If the registry is missing or malformed
        """
        data = _substitute_environment_variables(FileUtils.read_structured(registry_path))
        entries = data.get('projectPaths')
        if not isinstance(entries, dict):
            raise ConfigurationError(f"{registry_path}: 'projectPaths' must be a mapping")

        projects = []
        errors = []
        for name, entry in entries.items():
            if not isinstance(name, str) or not name.strip():
                errors.append(f"invalid project name: {name!r}")
                continue

            session = None
            if isinstance(entry, dict):
                path = entry.get('path')
                session = entry.get('session')
                if session is not None and (not isinstance(session, str) or not session.strip()):
                    errors.append(f"{name}: 'session' must be a non-empty string")
                    continue
            else:
                path = entry

            if not isinstance(path, str) or not path.strip():
                errors.append(f"{name}: path must be a non-empty string")
                continue

            projects.append(TrackedProject(
                name=name,
                path=str(Path(path).expanduser()),
                session=session
            ))

        if errors:
            raise ConfigurationError(f"{registry_path}: " + '; '.join(errors))

        logger.info(f"Loaded {len(projects)} tracked projects from {registry_path}")
        return projects

    def load_settings(self, settings_path: Optional[Path] = None,
                      overrides: Optional[Dict[str, Any]] = None) -> MonitorSettings:
        """
        Load monitor settings, falling back to defaults for absent keys.

        Args:
            settings_path: Optional JSON/YAML settings file
            overrides: Values applied on top of the file (e.g. from the CLI)

        Raises:
            ConfigurationError: If the file is unreadable or fails validation
        """
        data: Dict[str, Any] = {}
        if settings_path is not None:
            data = _substitute_environment_variables(FileUtils.read_structured(settings_path))
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        known = {f.name for f in fields(MonitorSettings)}
        unknown = sorted(set(data) - known)
        errors = [f"Unknown setting: {key}" for key in unknown]
        errors.extend(SETTINGS_SCHEMA.validate(data))
        if errors:
            raise ConfigurationError("Invalid monitor settings: " + '; '.join(errors))

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key == 'fallback_inputs':
                kwargs[key] = self._parse_inputs(value, 'fallback_inputs')
            elif key == 'signatures':
                # An empty catalog would classify every pane as active
                if not value:
                    raise ConfigurationError("signatures must be a non-empty list")
                kwargs[key] = tuple(self._parse_signature(item, i) for i, item in enumerate(value))
            elif key == 'status_command':
                kwargs[key] = shlex.split(value) if isinstance(value, str) else [str(v) for v in value]
            elif key == 'reports_dir':
                kwargs[key] = Path(value).expanduser()
            elif key in ('capture_timeout', 'send_timeout', 'git_timeout',
                         'notify_timeout', 'oracle_timeout', 'settle_delay'):
                kwargs[key] = float(value)
            else:
                kwargs[key] = value

        return MonitorSettings(**kwargs)

    @staticmethod
    def _parse_inputs(value: Any, where: str) -> Tuple[str, ...]:
        if not isinstance(value, list) or not value or not all(isinstance(v, str) for v in value):
            raise ConfigurationError(f"{where} must be a non-empty list of strings")
        return tuple(value)

    def _parse_signature(self, item: Any, index: int) -> StallSignature:
        where = f"signatures[{index}]"
        if not isinstance(item, dict):
            raise ConfigurationError(f"{where} must be a mapping")

        pattern = item.get('pattern')
        label = item.get('label')
        if not isinstance(pattern, str) or not pattern:
            raise ConfigurationError(f"{where}.pattern must be a non-empty string")
        if not isinstance(label, str) or not label:
            raise ConfigurationError(f"{where}.label must be a non-empty string")

        regex = bool(item.get('regex', False))
        if regex:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"{where}.pattern is not a valid regex: {e}") from e

        fallback = item.get('fallback_inputs')
        if fallback is not None:
            fallback = self._parse_inputs(fallback, f"{where}.fallback_inputs")

        return StallSignature(pattern=pattern, label=label, regex=regex, fallback_inputs=fallback)


class FileRegistry:
    """Registry backed by a project-paths file, read once per run."""

    def __init__(self, registry_path: Path, loader: Optional[ConfigLoader] = None):
        self.registry_path = registry_path
        self.loader = loader or ConfigLoader()

    def list_targets(self) -> List[TrackedProject]:
        return self.loader.load_registry(self.registry_path)
