"""Tests for CLI entry point.

Tests the command-line interface and argument parsing.
"""

import logging
from unittest.mock import Mock, patch

import pytest

from checksum_harness.cli import (
    EXIT_ERROR,
    EXIT_FAILURES,
    EXIT_INTERRUPTED,
    EXIT_OK,
    CompositeReporter,
    configure_logging,
    create_reporters,
    main,
    parse_args,
    parse_scenario_filter,
)
from checksum_harness.config import ConfigError, HarnessSettings
from checksum_harness.reporters import ConsoleReporter, JsonReporter
from checksum_harness.server import ServerStartError


class TestParseArgs:
    """Tests for argument parsing."""

    def test_default_args(self):
        """Should have sensible defaults."""
        args = parse_args([])

        assert args.config == "harness.json"
        assert args.quiet is False
        assert args.verbose == 0
        assert args.json_output is None
        assert args.scenarios is None
        assert args.concurrency == 1
        assert args.image is None
        assert args.list is False

    def test_config_short_flag(self):
        """Should accept -c short flag."""
        args = parse_args(["-c", "custom.json"])
        assert args.config == "custom.json"

    def test_verbosity_counts(self):
        """-vv raises verbosity to 2."""
        assert parse_args(["-vv"]).verbose == 2

    def test_scenario_filter(self):
        """Should accept -s to filter scenarios."""
        args = parse_args(["-s", "small_text_no_checksum"])
        assert args.scenarios == "small_text_no_checksum"

    def test_concurrency_is_int(self):
        """--concurrency parses as an integer."""
        assert parse_args(["--concurrency", "4"]).concurrency == 4

    def test_multiple_args(self):
        """Should handle multiple arguments together."""
        args = parse_args([
            "-c", "ci.json",
            "-q",
            "-j", "out/results.json",
            "--image", "minio/minio:latest",
            "--github-actions",
        ])

        assert args.config == "ci.json"
        assert args.quiet is True
        assert args.json_output == "out/results.json"
        assert args.image == "minio/minio:latest"
        assert args.github_actions is True


class TestParseScenarioFilter:
    """Tests for parse_scenario_filter."""

    def test_none(self):
        assert parse_scenario_filter(None) is None

    def test_strips_spaces_and_empties(self):
        assert parse_scenario_filter(" a , b,,") == ["a", "b"]


class TestCreateReporters:
    """Tests for reporter creation."""

    def test_creates_console_reporter_by_default(self):
        """Should create ConsoleReporter by default."""
        reporters = create_reporters(parse_args([]))

        assert len(reporters) == 1
        assert isinstance(reporters[0], ConsoleReporter)

    def test_console_reporter_quiet_mode(self):
        """Should pass quiet flag to ConsoleReporter."""
        reporters = create_reporters(parse_args(["-q"]))
        assert reporters[0].quiet is True

    def test_creates_json_reporter_when_requested(self):
        """Should add JsonReporter with the output path."""
        reporters = create_reporters(parse_args(["-j", "results.json"]))

        assert isinstance(reporters[1], JsonReporter)
        assert reporters[1].output_path == "results.json"

    def test_github_actions_enables_json_output(self):
        """--github-actions should add a JsonReporter writing GITHUB_OUTPUT."""
        reporters = create_reporters(parse_args(["--github-actions"]))

        assert isinstance(reporters[1], JsonReporter)
        assert reporters[1].github_output is True


class TestCompositeReporter:
    """Tests for CompositeReporter."""

    def test_delegates_to_all(self):
        """Every callback reaches every reporter."""
        first, second = Mock(), Mock()
        composite = CompositeReporter([first, second])

        composite.on_run_start("instance")
        composite.on_scenario_start("scenario")
        composite.on_scenario_complete("result")
        composite.on_run_complete("run")

        for reporter in (first, second):
            reporter.on_run_start.assert_called_once_with("instance")
            reporter.on_scenario_start.assert_called_once_with("scenario")
            reporter.on_scenario_complete.assert_called_once_with("result")
            reporter.on_run_complete.assert_called_once_with("run")


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    @pytest.mark.parametrize("verbosity,level", [
        (0, logging.WARNING),
        (1, logging.INFO),
        (2, logging.DEBUG),
        (5, logging.DEBUG),
    ])
    def test_levels(self, verbosity, level):
        """Each -v lowers the threshold."""
        configure_logging(verbosity)
        assert logging.getLogger().level == level

    def test_uses_rich_handler(self):
        """Records are rendered by rich."""
        from rich.logging import RichHandler

        configure_logging(0)
        assert any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)


class TestMain:
    """Tests for main entry point."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        with patch("checksum_harness.cli.configure_logging"):
            yield

    @pytest.fixture
    def mock_load(self):
        with patch("checksum_harness.cli.load_settings") as mock_load:
            mock_load.return_value = HarnessSettings()
            yield mock_load

    @pytest.fixture
    def mock_runner_class(self):
        with patch("checksum_harness.cli.HarnessRunner") as mock_runner_class:
            mock_runner_class.return_value.run.return_value = Mock(all_passed=True)
            yield mock_runner_class

    def test_main_loads_config(self, mock_load, mock_runner_class):
        """Should load settings from the given path."""
        main(["--config", "test.json"])
        mock_load.assert_called_once_with("test.json")

    def test_main_returns_0_on_success(self, mock_load, mock_runner_class):
        """Should return 0 when every scenario passes."""
        assert main([]) == EXIT_OK
        mock_runner_class.return_value.run.assert_called_once()

    def test_main_returns_1_on_failure(self, mock_load, mock_runner_class):
        """Should return 1 when any scenario fails."""
        mock_runner_class.return_value.run.return_value = Mock(all_passed=False)
        assert main([]) == EXIT_FAILURES

    def test_main_returns_2_on_config_error(self, mock_load, mock_runner_class, capsys):
        """Should return 2 when settings fail to load."""
        mock_load.side_effect = ConfigError("Invalid JSON in config file")

        assert main([]) == EXIT_ERROR
        assert "Configuration error" in capsys.readouterr().err
        mock_runner_class.assert_not_called()

    def test_main_returns_2_on_setup_error(self, mock_load, mock_runner_class, capsys):
        """A server that never comes up is a setup error."""
        mock_runner_class.return_value.run.side_effect = ServerStartError("not ready after 60s")

        assert main([]) == EXIT_ERROR
        assert "Setup error: not ready after 60s" in capsys.readouterr().err

    def test_main_returns_130_on_interrupt(self, mock_load, mock_runner_class):
        """Ctrl-C maps to the conventional exit code."""
        mock_runner_class.return_value.run.side_effect = KeyboardInterrupt
        assert main([]) == EXIT_INTERRUPTED

    def test_main_unknown_scenario(self, mock_load, mock_runner_class, capsys):
        """Unknown scenario ids are rejected before anything starts."""
        assert main(["-s", "nope"]) == EXIT_ERROR
        assert "No matching scenarios" in capsys.readouterr().err
        mock_runner_class.assert_not_called()

    def test_main_filters_scenarios(self, mock_load, mock_runner_class):
        """Runner only gets the selected scenarios."""
        main(["-s", "empty_no_checksum,small_text_no_checksum"])

        scenarios = mock_runner_class.call_args.args[1]
        assert [s.scenario_id for s in scenarios] == ["empty_no_checksum", "small_text_no_checksum"]

    def test_main_image_override(self, mock_load, mock_runner_class):
        """--image replaces the configured image."""
        main(["--image", "minio/minio:latest"])

        settings = mock_runner_class.call_args.args[0]
        assert settings.image == "minio/minio:latest"

    def test_main_passes_concurrency(self, mock_load, mock_runner_class):
        main(["--concurrency", "2"])
        assert mock_runner_class.call_args.kwargs["concurrency"] == 2

    def test_main_uses_composite_reporter(self, mock_load, mock_runner_class):
        """Should use CompositeReporter when multiple reporters needed."""
        main(["--json-output", "results.json"])

        reporter = mock_runner_class.call_args.kwargs["reporter"]
        assert isinstance(reporter, CompositeReporter)

    def test_main_list(self, mock_load, mock_runner_class, capsys):
        """--list prints scenario ids without starting a server."""
        assert main(["--list"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "small_text_no_checksum:" in out
        assert "large_binary_default_checksum:" in out
        mock_runner_class.assert_not_called()
        mock_load.assert_not_called()
