#!/usr/bin/env python3
"""
Session IO Tests for Tmux Sentinel
Tests tmux capture/injection and the subprocess wrapper with subprocess mocked
"""

import sys
import subprocess
import unittest
from pathlib import Path
from unittest.mock import patch, Mock

# Add parent directory to path
sys.path.append(str(Path(__file__).parent))

from tmux_sentinel.core.errors import (
    CommandTimeout, ExternalToolFailure, InjectionError, SessionNotFound
)
from tmux_sentinel.tmux.pane_sampler import PaneSampler
from tmux_sentinel.tmux.session_io import TmuxSessionIO
from tmux_sentinel.utils.subprocess_wrapper import run_command

RUN = 'tmux_sentinel.utils.subprocess_wrapper.subprocess.run'


def completed(returncode=0, stdout='', stderr=''):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


class TestRunCommand(unittest.TestCase):
    """Test run_command() error translation"""

    @patch(RUN)
    def test_success(self, mock_run):
        mock_run.return_value = completed(stdout='ok\n')
        result = run_command(['tmux', 'ls'], timeout=2.0)

        self.assertEqual(result.stdout, 'ok\n')
        self.assertEqual(mock_run.call_args.kwargs['timeout'], 2.0)

    @patch(RUN)
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(['tmux', 'ls'], 2.0)
        with self.assertRaises(CommandTimeout) as ctx:
            run_command(['tmux', 'ls'], timeout=2.0)
        self.assertEqual(ctx.exception.timeout, 2.0)

    @patch(RUN)
    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError("No such file or directory: 'tmux'")
        with self.assertRaises(ExternalToolFailure):
            run_command(['tmux', 'ls'], timeout=2.0)

    @patch('tmux_sentinel.utils.subprocess_wrapper.time.sleep')
    @patch(RUN)
    def test_retries_nonzero_exit(self, mock_run, mock_sleep):
        mock_run.side_effect = [completed(1, stderr='busy'), completed(0, stdout='done')]
        result = run_command(['git', 'status'], timeout=2.0, max_retries=2)

        self.assertEqual(result.stdout, 'done')
        self.assertEqual(mock_run.call_count, 2)
        mock_sleep.assert_called_once()

    @patch(RUN)
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = completed(2, stderr='bad flag')
        with self.assertRaises(ExternalToolFailure) as ctx:
            run_command(['git', 'nope'], timeout=2.0)
        self.assertIn('exited with 2: bad flag', str(ctx.exception))

        self.assertEqual(run_command(['git', 'nope'], timeout=2.0, check=False).returncode, 2)


class TestTmuxSessionIO(unittest.TestCase):
    """Test TmuxSessionIO command lines and error mapping"""

    def setUp(self):
        self.io = TmuxSessionIO()

    @patch(RUN)
    def test_capture(self, mock_run):
        mock_run.return_value = completed(stdout='line one\nDo you want to proceed?\n')
        lines = self.io.capture('agent-1', timeout=3.0)

        self.assertEqual(lines, ['line one', 'Do you want to proceed?'])
        self.assertEqual(mock_run.call_args.args[0],
                         ['tmux', 'capture-pane', '-p', '-J', '-t', 'agent-1'])

    @patch(RUN)
    def test_capture_missing_session(self, mock_run):
        mock_run.return_value = completed(1, stderr="can't find session: agent-9")
        self.assertIsNone(self.io.capture('agent-9', timeout=3.0))

    @patch(RUN)
    def test_capture_other_failure(self, mock_run):
        mock_run.return_value = completed(1, stderr='protocol version mismatch')
        with self.assertRaises(ExternalToolFailure):
            self.io.capture('agent-1', timeout=3.0)

    @patch(RUN)
    def test_send_keys_single_call(self, mock_run):
        """Text and Enter go out in one send-keys invocation"""
        mock_run.return_value = completed()
        self.io.send_keys('agent-1', 'y', timeout=5.0)

        mock_run.assert_called_once()
        self.assertEqual(mock_run.call_args.args[0],
                         ['tmux', 'send-keys', '-t', 'agent-1', 'y', 'Enter'])

    @patch(RUN)
    def test_send_blank_input(self, mock_run):
        mock_run.return_value = completed()
        self.io.send_keys('agent-1', '', timeout=5.0)
        self.assertEqual(mock_run.call_args.args[0], ['tmux', 'send-keys', '-t', 'agent-1', 'Enter'])

    @patch(RUN)
    def test_send_keys_errors(self, mock_run):
        mock_run.return_value = completed(1, stderr="can't find session: agent-1")
        with self.assertRaises(SessionNotFound):
            self.io.send_keys('agent-1', 'y', timeout=5.0)

        mock_run.return_value = completed(1, stderr='server exited unexpectedly')
        with self.assertRaises(InjectionError):
            self.io.send_keys('agent-1', 'y', timeout=5.0)

        mock_run.side_effect = subprocess.TimeoutExpired(['tmux'], 5.0)
        with self.assertRaises(InjectionError):
            self.io.send_keys('agent-1', 'y', timeout=5.0)

    @patch(RUN)
    def test_socket_path(self, mock_run):
        mock_run.return_value = completed(stdout='ready\n')
        lines = TmuxSessionIO(socket_path='/tmp/sentinel.sock').capture('agent-1', timeout=3.0)

        self.assertEqual(lines, ['ready'])
        self.assertEqual(mock_run.call_args.args[0][:3], ['tmux', '-S', '/tmp/sentinel.sock'])


class TestPaneSampler(unittest.TestCase):
    """Test bounded snapshots"""

    def test_keeps_last_lines_without_padding(self):
        session_io = Mock()
        session_io.capture.return_value = [f"line {i}" for i in range(100)] + ["", "   ", ""]
        snapshot = PaneSampler(session_io, capture_lines=10, timeout=2.0).sample('agent-1')

        self.assertEqual(len(snapshot.lines), 10)
        self.assertEqual(snapshot.lines[-1], "line 99")
        session_io.capture.assert_called_once_with('agent-1', 2.0)

    def test_missing_session(self):
        session_io = Mock()
        session_io.capture.return_value = None
        self.assertIsNone(PaneSampler(session_io).sample('gone'))

    def test_blank_pane_is_empty(self):
        session_io = Mock()
        session_io.capture.return_value = ["", ""]
        snapshot = PaneSampler(session_io).sample('agent-1')
        self.assertTrue(snapshot.is_empty)


if __name__ == '__main__':
    unittest.main()
