"""Entry point for the stackhealth CLI."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console

from stackhealth.config import settings
from stackhealth.health.engine import run_checks
from stackhealth.health.probes import DockerProbeClient, ProbeClient
from stackhealth.report import ReportPrinter, report_to_dict
from stackhealth.stack.registry import StackConfigError, load_stack

logger = logging.getLogger(__name__)

EXIT_USAGE = 2

EPILOG = """\
Examples:
  stackhealth                # Full health check
  stackhealth --quick        # Quick health check
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackhealth",
        description="MCP Client Health Check: verify every service in the compose stack.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--quick", action="store_true",
        help="Run only basic container health checks",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print a JSON report instead of the colored one",
    )
    parser.add_argument(
        "--stack-file", default=settings.stack_file,
        help="YAML stack definition (default: %(default)s, built-in stack if missing)",
    )
    parser.add_argument(
        "--project-dir", default=settings.compose_project_dir,
        help="Compose project directory, also the base for data directories (default: %(default)s)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Debug logging on stderr",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(
    argv: list[str] | None = None,
    client: ProbeClient | None = None,
    console: Console | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        stack = load_stack(Path(args.stack_file))
    except StackConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    project_dir = Path(args.project_dir)
    logger.debug("Stack %s: %d probes, project dir %s", stack.name, len(stack.probes), project_dir)
    if client is None:
        client = DockerProbeClient(
            docker_bin=settings.docker_bin,
            project_dir=project_dir,
            command_timeout=settings.command_timeout_seconds,
        )
    console = console or Console()

    if args.json:
        run = run_checks(stack, client, quick=args.quick, base_dir=project_dir)
        console.print_json(json.dumps(report_to_dict(run, stack.name)))
        return run.exit_code

    printer = ReportPrinter(console)
    printer.print_header(stack.title)
    run = run_checks(
        stack, client, quick=args.quick, base_dir=project_dir,
        on_result=printer.print_result,
    )
    printer.print_summary(run)
    return run.exit_code


if __name__ == "__main__":
    sys.exit(main())
