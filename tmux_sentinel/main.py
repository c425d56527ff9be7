"""
Main entry point for Tmux Sentinel.

Wires the real collaborators (tmux, git, SMTP, status command) into a
RunContext, runs one monitoring pass and maps the report to an exit status.
"""

import os
import sys
import json
import signal
import logging
import argparse
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv
from rich.console import Console

from .core.context import RunContext
from .core.errors import ConfigurationError
from .core.models import RunMode
from .core.monitor import SessionHealthMonitor
from .cli.report_view import ReportView
from .git.verifier import GitVersionControl
from .monitoring.report import ReportStore
from .monitoring.status_oracle import CommandStatusOracle
from .notifications.email_notifier import EmailNotifier
from .tmux.session_io import TmuxSessionIO
from .utils.config_loader import ConfigLoader, FileRegistry

logger = logging.getLogger(__name__)

console = Console()

EXIT_CONFIGURATION_ERROR = 2

DEFAULT_REGISTRY = Path('configs') / 'project-paths.json'


def create_context(registry_path: Path,
                   settings_path: Optional[Path] = None,
                   reports_dir: Optional[Path] = None,
                   socket_path: Optional[str] = None,
                   max_workers: Optional[int] = None) -> RunContext:
    """
    Build the RunContext for a run against the real tools.

    Raises:
        ConfigurationError: If the settings file is invalid
    """
    loader = ConfigLoader()
    overrides = {
        'reports_dir': str(reports_dir) if reports_dir else None,
        'max_workers': max_workers,
    }
    settings = loader.load_settings(settings_path, overrides=overrides)

    oracle = CommandStatusOracle(settings.status_command) if settings.status_command else None

    return RunContext(
        registry=FileRegistry(registry_path, loader),
        session_io=TmuxSessionIO(socket_path=socket_path),
        vcs=GitVersionControl(),
        settings=settings,
        notifier=EmailNotifier(),
        status_oracle=oracle,
        report_store=ReportStore(settings.reports_dir),
    )


def create_monitor(context: RunContext, output: Optional[Console] = None) -> SessionHealthMonitor:
    """Create a monitor for a prepared context, printing progress to output."""
    return SessionHealthMonitor(context, console=output or console)


def _install_signal_handlers(context: RunContext, output: Console) -> None:
    def handle(signum, frame):
        output.print("[yellow]⚠️  Interrupt received, finishing current units...[/yellow]")
        context.cancel()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Tmux Sentinel - detect, recover and report stalled agent sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        'mode',
        nargs='?',
        default=RunMode.FULL.value,
        choices=[m.value for m in RunMode] + ['git', 'stuck'],
        help='Run mode (default: full)'
    )
    parser.add_argument(
        '--registry', '-r',
        type=Path,
        default=Path(os.environ.get('SENTINEL_REGISTRY', str(DEFAULT_REGISTRY))),
        help='Project registry file (JSON or YAML)'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        default=Path(os.environ['SENTINEL_CONFIG']) if os.environ.get('SENTINEL_CONFIG') else None,
        help='Monitor settings file (JSON or YAML)'
    )
    parser.add_argument(
        '--reports-dir',
        type=Path,
        default=Path(os.environ['SENTINEL_REPORTS_DIR']) if os.environ.get('SENTINEL_REPORTS_DIR') else None,
        help='Directory for persisted reports'
    )
    parser.add_argument(
        '--socket', '-S',
        type=str,
        help='tmux server socket path'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Maximum concurrent units'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the report as JSON instead of a table'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one monitoring pass.

    Returns:
        0 when overall health is excellent, 1 when it needs attention,
        2 when the registry or settings are unusable
    """
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # stdout carries only the report document in --json mode
    progress = Console(stderr=True) if args.json else console

    try:
        context = create_context(
            registry_path=args.registry,
            settings_path=args.config,
            reports_dir=args.reports_dir,
            socket_path=args.socket,
            max_workers=args.workers
        )
        _install_signal_handlers(context, progress)
        monitor = create_monitor(context, progress)
        report = monitor.run(RunMode.parse(args.mode))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        progress.print(f"[red]❌ Configuration error: {e}[/red]")
        return EXIT_CONFIGURATION_ERROR

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        ReportView(console).display(report, saved_to=monitor.last_report_path)

    return report.exit_code


if __name__ == '__main__':
    sys.exit(main())
