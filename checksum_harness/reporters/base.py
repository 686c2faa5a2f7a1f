"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from checksum_harness.models import ScenarioResult, ServerInstance, UploadScenario
    from checksum_harness.runner import RunResult


class Reporter(ABC):
    """Abstract base class for scenario result reporters."""

    @abstractmethod
    def on_run_start(self, instance: "ServerInstance") -> None:
        """Called once the server is ready, before any scenario runs."""
        pass

    @abstractmethod
    def on_scenario_start(self, scenario: "UploadScenario") -> None:
        """Called when a scenario starts."""
        pass

    @abstractmethod
    def on_scenario_complete(self, result: "ScenarioResult") -> None:
        """Called when a scenario completes."""
        pass

    @abstractmethod
    def on_run_complete(self, run_result: "RunResult") -> None:
        """Called when all scenarios are complete."""
        pass
