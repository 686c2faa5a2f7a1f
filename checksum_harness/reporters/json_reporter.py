"""JSON reporter for structured output and GitHub Actions integration.

Generates JSON output suitable for:
- CI artifacts
- GitHub Actions workflow outputs
"""

import json
import os
from pathlib import Path
from typing import Optional

from checksum_harness.models import ScenarioResult, ServerInstance, UploadScenario
from checksum_harness.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
        github_output: If True, write to GITHUB_OUTPUT for Actions
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        github_output: bool = False,
    ):
        self.output_path = output_path
        self.github_output = github_output
        self._results: list[ScenarioResult] = []

    def on_run_start(self, instance: ServerInstance) -> None:
        """No-op for JSON reporter."""
        pass

    def on_scenario_start(self, scenario: UploadScenario) -> None:
        """No-op for JSON reporter."""
        pass

    def on_scenario_complete(self, result: ScenarioResult) -> None:
        """Collect the result."""
        self._results.append(result)

    def on_run_complete(self, run_result) -> dict:
        """Generate and write JSON output.

        Args:
            run_result: RunResult of the session

        Returns:
            The generated JSON data as a dictionary
        """
        output = run_result.to_dict()

        if self.output_path:
            self._write_to_file(output)

        if self.github_output:
            self._write_github_output(output)

        return output

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)

    def _write_github_output(self, output: dict) -> None:
        """Append summary values and full results to $GITHUB_OUTPUT."""
        github_output_file = os.environ.get("GITHUB_OUTPUT")
        if not github_output_file:
            return

        summary = output["summary"]
        with open(github_output_file, "a", encoding="utf-8") as f:
            f.write(f"all_passed={str(summary['all_passed']).lower()}\n")
            f.write(f"total_scenarios={summary['total_scenarios']}\n")
            f.write(f"passed_scenarios={summary['passed']}\n")
            f.write(f"expected_failures={summary['expected_failures']}\n")
            f.write(f"failed_scenarios={summary['failed']}\n")

            # Write full JSON as multiline output
            f.write("results<<EOF\n")
            f.write(json.dumps(output))
            f.write("\nEOF\n")
