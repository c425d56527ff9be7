#!/usr/bin/env python3
"""
Configuration Tests for Tmux Sentinel
Tests registry and settings validation at the load boundary
"""

import os
import sys
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path
sys.path.append(str(Path(__file__).parent))

from tmux_sentinel.core.errors import ConfigurationError
from tmux_sentinel.monitoring.signatures import DEFAULT_SIGNATURES
from tmux_sentinel.utils.config_loader import (
    ConfigLoader, ConfigSchema, FileRegistry, MonitorSettings, default_worker_limit
)


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.loader = ConfigLoader()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def write(self, name, content):
        path = self.test_dir / name
        path.write_text(content if isinstance(content, str) else json.dumps(content))
        return path


class TestRegistry(ConfigTestCase):
    """Test project registry loading"""

    def test_json_registry_keeps_order(self):
        path = self.write("project-paths.json", {"projectPaths": {
            "web": "/work/web",
            "api": {"path": "/work/api", "session": "api-agent"},
        }})
        projects = self.loader.load_registry(path)

        self.assertEqual([p.name for p in projects], ["web", "api"])
        self.assertEqual(projects[0].session_id, "web")
        self.assertEqual(projects[1].session_id, "api-agent")
        self.assertEqual(projects[1].path, "/work/api")

    def test_yaml_registry(self):
        path = self.write("projects.yaml", "projectPaths:\n  docs: /work/docs\n")
        projects = FileRegistry(path).list_targets()
        self.assertEqual(projects[0].path, "/work/docs")

    def test_paths_expanded(self):
        path = self.write("projects.json", {"projectPaths": {
            "home": "~/repo",
            "env": "${SENTINEL_TEST_ROOT}/svc",
        }})
        with patch.dict(os.environ, {"SENTINEL_TEST_ROOT": "/srv"}):
            projects = self.loader.load_registry(path)

        self.assertEqual(projects[0].path, str(Path("~/repo").expanduser()))
        self.assertEqual(projects[1].path, "/srv/svc")

    def test_empty_registry(self):
        path = self.write("projects.json", {"projectPaths": {}})
        self.assertEqual(self.loader.load_registry(path), [])

    def test_invalid_registries_rejected(self):
        cases = {
            "missing.json": None,
            "broken.json": "{not json",
            "list.json": [1, 2],
            "no-key.json": {"projects": {}},
            "not-mapping.json": {"projectPaths": ["/work/a"]},
            "bad-path.json": {"projectPaths": {"a": 42}},
            "empty-path.json": {"projectPaths": {"a": "  "}},
            "bad-session.json": {"projectPaths": {"a": {"path": "/a", "session": ""}}},
            "broken.yaml": "projectPaths: [unclosed",
        }
        for name, content in cases.items():
            with self.subTest(name=name):
                path = self.test_dir / name if content is None else self.write(name, content)
                with self.assertRaises(ConfigurationError):
                    self.loader.load_registry(path)

    def test_duplicate_project_names_rejected(self):
        """A repeated name must not silently replace the earlier entry"""
        cases = {
            "dup.json": '{"projectPaths": {"api": "/a", "api": "/b"}}',
            "dup.yaml": "projectPaths:\n  api: /a\n  api: /b\n",
        }
        for name, content in cases.items():
            with self.subTest(name=name):
                path = self.write(name, content)
                with self.assertRaises(ConfigurationError) as ctx:
                    self.loader.load_registry(path)
                self.assertIn("api", str(ctx.exception))

    def test_all_problems_reported_together(self):
        path = self.write("projects.json", {"projectPaths": {"a": 1, "b": None}})
        with self.assertRaises(ConfigurationError) as ctx:
            self.loader.load_registry(path)
        self.assertIn("a:", str(ctx.exception))
        self.assertIn("b:", str(ctx.exception))


class TestSettings(ConfigTestCase):
    """Test monitor settings loading"""

    def test_defaults(self):
        settings = self.loader.load_settings()

        self.assertEqual(settings.capture_lines, 50)
        self.assertEqual(settings.max_attempts, 3)
        self.assertEqual(settings.fallback_inputs, ("y", "", "n"))
        self.assertEqual(settings.signatures, DEFAULT_SIGNATURES)
        self.assertIsNone(settings.status_command)
        self.assertEqual(settings.reports_dir, Path("reports"))
        self.assertGreaterEqual(settings.max_workers, 1)

    def test_yaml_settings(self):
        path = self.write("sentinel.yaml", "\n".join([
            "max_attempts: 2",
            "settle_delay: 2",
            "fallback_inputs: ['1', '']",
            "status_command: ./scripts/status.sh --quiet",
            "signatures:",
            "  - pattern: 'Overwrite .*\\?'",
            "    label: overwrite",
            "    regex: true",
            "    fallback_inputs: ['n']",
        ]))
        settings = self.loader.load_settings(path)

        self.assertEqual(settings.max_attempts, 2)
        self.assertEqual(settings.settle_delay, 2.0)
        self.assertIsInstance(settings.settle_delay, float)
        self.assertEqual(settings.fallback_inputs, ("1", ""))
        self.assertEqual(settings.status_command, ["./scripts/status.sh", "--quiet"])
        self.assertEqual(len(settings.signatures), 1)
        self.assertTrue(settings.signatures[0].regex)
        self.assertEqual(settings.signatures[0].fallback_inputs, ("n",))

    def test_overrides_applied(self):
        path = self.write("sentinel.json", {"reports_dir": "/tmp/a", "max_workers": 2})
        settings = self.loader.load_settings(path, overrides={"reports_dir": "/tmp/b", "max_workers": None})

        self.assertEqual(settings.reports_dir, Path("/tmp/b"))
        self.assertEqual(settings.max_workers, 2)

    def test_invalid_settings_rejected(self):
        cases = [
            {"max_attempts": 0},
            {"max_attempts": 11},
            {"capture_lines": "many"},
            {"capture_lines": True},
            {"settle_delay": -1},
            {"fallback_inputs": []},
            {"fallback_inputs": ["y", 1]},
            {"signatures": [{"pattern": "x"}]},
            {"signatures": [{"pattern": "(", "label": "bad", "regex": True}]},
            {"poll_interval": 5},
            {"signatures": []},
        ]
        for data in cases:
            with self.subTest(data=data):
                path = self.write("sentinel.json", data)
                with self.assertRaises(ConfigurationError):
                    self.loader.load_settings(path)

    def test_worker_limit_bounded(self):
        with patch('tmux_sentinel.utils.config_loader.psutil.cpu_count', return_value=64):
            self.assertEqual(default_worker_limit(), 8)
        with patch('tmux_sentinel.utils.config_loader.psutil.cpu_count', return_value=None):
            self.assertEqual(default_worker_limit(), 1)

    def test_dataclass_defaults_match_loader(self):
        self.assertEqual(MonitorSettings().evidence_lines, self.loader.load_settings().evidence_lines)


class TestConfigSchema(unittest.TestCase):

    def test_collects_every_error(self):
        schema = ConfigSchema("demo", "1.0")
        schema.add_rule(field_path="limits.max", field_type=int, max_value=10)
        schema.add_rule(field_path="name", field_type=str)

        errors = schema.validate({"limits": {"max": 20}})
        self.assertEqual(len(errors), 2)
        self.assertIn("Required field missing: name", errors)


if __name__ == '__main__':
    unittest.main()
