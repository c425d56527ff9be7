"""
File Utilities Module

JSON/YAML reading for configuration and append-only JSON writing for
reports.
"""

import json
import logging
import yaml
from pathlib import Path
from typing import Dict, Any, List, Tuple

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """object_pairs_hook refusing a key that appears twice in one object."""
    data: Dict[str, Any] = {}
    for key, value in pairs:
        if key in data:
            raise ConfigurationError(f"Duplicate key: {key!r}")
        data[key] = value
    return data


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys instead of keeping the last."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                continue
            if duplicate:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping", node.start_mark,
                    f"found duplicate key {key!r}", key_node.start_mark
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)

class FileUtils:
    """
    File operation utilities with error handling and validation.
    """

    @staticmethod
    def read_structured(file_path: Path) -> Dict[str, Any]:
        """
        Read a JSON or YAML file, chosen by extension.

        Args:
            file_path: Path to .json, .yaml or .yml file

        Returns:
            Parsed mapping

        Raises:
            ConfigurationError: If the file is missing, unreadable,
                unparseable or not a mapping
        """
        if not file_path.exists():
            raise ConfigurationError(f"Config file not found: {file_path}")

        try:
            text = file_path.read_text(encoding='utf-8')
        except OSError as e:
            raise ConfigurationError(f"Cannot read {file_path}: {e}") from e

        try:
            if file_path.suffix.lower() in ('.yaml', '.yml'):
                data = yaml.load(text, Loader=_UniqueKeyLoader)
            else:
                data = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {file_path}: {e}") from e
        except ConfigurationError as e:
            raise ConfigurationError(f"Invalid config in {file_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Expected a mapping at the top of {file_path}, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def write_json_exclusive(file_path: Path, data: Dict[str, Any], indent: int = 2) -> Path:
        """
        Write JSON to a new file, never replacing an existing one.

        On a name collision a numeric suffix is added to the stem.

        Args:
            file_path: Preferred path to write
            data: Data to write
            indent: JSON indentation

        Returns:
            Path actually written
        """
        # A failed dump must never leave a partial report on disk
        content = json.dumps(data, indent=indent, ensure_ascii=False)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        candidate = file_path
        counter = 1

        while True:
            try:
                with open(candidate, 'x', encoding='utf-8') as f:
                    f.write(content)
                return candidate
            except FileExistsError:
                candidate = file_path.with_name(f"{file_path.stem}-{counter}{file_path.suffix}")
                counter += 1
