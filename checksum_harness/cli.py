"""Command-line interface for the S3 checksum compliance harness.

Provides argument parsing and main entry point for running scenarios
from the command line.
"""

import argparse
import logging
import sys
from typing import Optional

from rich.logging import RichHandler

from checksum_harness.config import ConfigError, load_settings
from checksum_harness.reporters import ConsoleReporter, JsonReporter, Reporter
from checksum_harness.runner import HarnessRunner
from checksum_harness.scenarios import SCENARIO_DEFINITIONS, build_scenarios
from checksum_harness.server import SetupError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ERROR = 2
EXIT_INTERRUPTED = 130


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def on_run_start(self, instance) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_run_start(instance)

    def on_scenario_start(self, scenario) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_scenario_start(scenario)

    def on_scenario_complete(self, result) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_scenario_complete(result)

    def on_run_complete(self, run_result) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_run_complete(run_result)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="s3-checksum-harness",
        description="Test an S3-compatible server's upload checksum handling",
    )

    parser.add_argument(
        "-c", "--config",
        default="harness.json",
        help="Path to configuration file (default: harness.json)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress per-scenario output, show only summary",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "-s", "--scenarios",
        metavar="LIST",
        help="Comma-separated list of scenario ids to run",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=1,
        metavar="N",
        help="Number of scenarios to run at once (default: 1)",
    )

    parser.add_argument(
        "--image",
        help="Server image to test (overrides configuration)",
    )

    parser.add_argument(
        "--github-actions",
        action="store_true",
        help="Enable GitHub Actions output mode",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List available scenarios and exit",
    )

    return parser.parse_args(argv)


def configure_logging(verbosity: int) -> None:
    """Route log records through rich."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        List of configured reporters
    """
    reporters: list[Reporter] = [ConsoleReporter(quiet=args.quiet)]

    if args.json_output or args.github_actions:
        reporters.append(JsonReporter(
            output_path=args.json_output,
            github_output=args.github_actions,
        ))

    return reporters


def parse_scenario_filter(filter_str: Optional[str]) -> Optional[list[str]]:
    """Split a comma-separated scenario list, or None for all."""
    if not filter_str:
        return None
    return [s.strip() for s in filter_str.split(",") if s.strip()]


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for scenario failures, 2 for
        configuration or setup errors, 130 when interrupted
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    if args.list:
        for scenario_id, definition in SCENARIO_DEFINITIONS.items():
            print(f"{scenario_id}: {definition['name']}")
        return EXIT_OK

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.image:
        settings.image = args.image

    try:
        scenarios = build_scenarios(settings, parse_scenario_filter(args.scenarios))
    except KeyError as e:
        print(f"No matching scenarios: {e.args[0]}", file=sys.stderr)
        return EXIT_ERROR

    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    runner = HarnessRunner(
        settings,
        scenarios,
        reporter=reporter,
        concurrency=args.concurrency,
    )

    try:
        result = runner.run()
    except SetupError as e:
        print(f"Setup error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED

    return EXIT_OK if result.all_passed else EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
