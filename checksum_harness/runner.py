"""Scenario runner and session orchestrator.

Coordinates test execution against one ephemeral server, managing:
- Server lifecycle (acquire once, release on every exit path)
- One S3 client per checksum mode, shared across scenarios
- Per-scenario bucket creation, upload and read-back
- Outcome verification and reporter callbacks
"""

import io
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig, create_transfer_manager
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
)
from s3transfer.exceptions import CancelledError

from checksum_harness.config import HarnessSettings
from checksum_harness.models import (
    BucketHandle,
    ChecksumMode,
    ErrorKind,
    Expectation,
    Failed,
    ResultStatus,
    ScenarioResult,
    Succeeded,
    UploadOutcome,
    UploadScenario,
)
from checksum_harness.payloads import build_payload
from checksum_harness.s3_client import build_s3_client
from checksum_harness.server import ServerFixture, SetupError, running_server
from checksum_harness.verifier import verify_outcome

logger = logging.getLogger(__name__)

# How often a running transfer checks for cancellation (seconds)
CANCEL_POLL_INTERVAL = 0.1

# HeadObject error codes meaning "no object at this key"
MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class BucketSetupError(SetupError):
    """Raised when a scenario's bucket cannot be created."""

    pass


def classify_error(error: Exception, stage: str = "upload") -> Failed:
    """Turn an SDK exception into Failed outcome data.

    Args:
        error: The exception raised by boto3/botocore/s3transfer.
        stage: "setup", "upload" or "read-back".

    Returns:
        Failed with kind SERVICE for structured S3 errors, CONNECTIVITY for
        transport failures, CANCELLED for cancelled transfers and CLIENT for
        anything else the SDK raised.
    """
    if isinstance(error, S3UploadFailedError) and isinstance(error.__cause__, ClientError):
        error = error.__cause__

    if isinstance(error, ClientError):
        response = error.response or {}
        err = response.get("Error", {})
        return Failed(
            kind=ErrorKind.SERVICE,
            code=err.get("Code"),
            message=err.get("Message") or str(error),
            status_code=response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            stage=stage,
        )

    if isinstance(error, CancelledError):
        return Failed(kind=ErrorKind.CANCELLED, message=str(error) or "cancelled", stage=stage)

    if isinstance(error, (BotoConnectionError, HTTPClientError)):
        return Failed(kind=ErrorKind.CONNECTIVITY, message=str(error), stage=stage)

    return Failed(kind=ErrorKind.CLIENT, message=f"{type(error).__name__}: {error}", stage=stage)


@dataclass
class ScenarioExecution:
    """What running one scenario produced."""

    scenario: UploadScenario
    bucket: Optional[BucketHandle]
    payload: bytes
    outcome: UploadOutcome


class ScenarioRunner:
    """Executes one UploadScenario end-to-end.

    Steps are strictly sequential: create bucket -> upload -> read-back.
    Upload and read-back errors become Failed outcome data for the
    verifier; only bucket creation failures raise. Every S3 call first
    checks the cancel event, so a set event stops the scenario at its
    next step.
    """

    def __init__(
        self,
        client: Any,
        settings: HarnessSettings,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize the runner.

        Args:
            client: boto3 S3 client configured for the scenario's checksum mode
            settings: Harness settings (multipart threshold, chunk size, algorithm)
            cancel_event: Set to abort in-flight transfers
        """
        self.client = client
        self.settings = settings
        self.cancel_event = cancel_event or threading.Event()

    def transfer_config(self) -> TransferConfig:
        return TransferConfig(
            multipart_threshold=self.settings.multipart_threshold,
            multipart_chunksize=self.settings.multipart_chunksize,
            preferred_transfer_client="classic",
        )

    def _check_cancelled(self, action: str) -> None:
        if self.cancel_event.is_set():
            raise CancelledError(f"cancelled before {action}")

    def create_bucket(self, scenario: UploadScenario) -> BucketHandle:
        """Create a uniquely named bucket for the scenario.

        Raises:
            BucketSetupError: If the bucket cannot be created.
            CancelledError: If the cancel event is already set.
        """
        self._check_cancelled("CreateBucket")
        bucket = BucketHandle.generate(scenario.bucket_prefix)
        try:
            self.client.create_bucket(Bucket=bucket.name)
        except (ClientError, BotoCoreError) as e:
            raise BucketSetupError(f"Failed to create bucket {bucket.name}: {e}") from e
        logger.debug("Created bucket %s", bucket.name)
        return bucket

    def upload(self, scenario: UploadScenario, bucket: BucketHandle, payload: bytes) -> None:
        """Upload the payload through the SDK's managed transfer.

        The transfer uses multipart when the payload reaches the multipart
        threshold. Raises whatever the SDK raises.
        """
        self._check_cancelled("upload")
        extra_args = {"ContentType": scenario.content_type}
        if scenario.checksum_mode == ChecksumMode.DEFAULT and self.settings.checksum_algorithm:
            extra_args["ChecksumAlgorithm"] = self.settings.checksum_algorithm

        path = "multipart" if len(payload) >= self.settings.multipart_threshold else "single-part"
        logger.info(
            "%s: %s upload of %d bytes to %s/%s (checksum %s)",
            scenario.scenario_id, path, len(payload), bucket.name,
            scenario.object_key, scenario.checksum_mode.value,
        )

        with create_transfer_manager(self.client, self.transfer_config()) as manager:
            future = manager.upload(
                io.BytesIO(payload),
                bucket.name,
                scenario.object_key,
                extra_args=extra_args,
            )
            while not future.done():
                if self.cancel_event.wait(CANCEL_POLL_INTERVAL):
                    future.cancel()
                    break
            future.result()

    def read_back(self, bucket: BucketHandle, key: str) -> Succeeded:
        """Fetch the object and return its bytes and HTTP status."""
        self._check_cancelled("GetObject")
        response = self.client.get_object(Bucket=bucket.name, Key=key)
        body = response["Body"]
        try:
            data = body.read()
        finally:
            body.close()
        return Succeeded(
            retrieved=data,
            status_code=response["ResponseMetadata"]["HTTPStatusCode"],
        )

    def object_exists(self, bucket: BucketHandle, key: str) -> Optional[bool]:
        """Check whether an object is retrievable at the key.

        Returns:
            True or False, or None if the check failed or was cancelled.
        """
        if self.cancel_event.is_set():
            return None
        try:
            self.client.head_object(Bucket=bucket.name, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                return False
            logger.warning("HeadObject %s/%s failed: %s", bucket.name, key, e)
            return None
        except BotoCoreError as e:
            logger.warning("HeadObject %s/%s failed: %s", bucket.name, key, e)
            return None
        return True

    def run(self, scenario: UploadScenario, payload: Optional[bytes] = None) -> ScenarioExecution:
        """Run a scenario and capture its outcome.

        Args:
            scenario: The scenario to run.
            payload: Bytes to upload (built from the scenario if omitted).

        Returns:
            ScenarioExecution with the bucket, payload and outcome.

        Raises:
            BucketSetupError: If bucket creation fails.
        """
        if payload is None:
            payload = build_payload(scenario)

        try:
            bucket = self.create_bucket(scenario)
        except CancelledError as e:
            return ScenarioExecution(scenario, None, payload, classify_error(e, stage="setup"))

        try:
            self.upload(scenario, bucket, payload)
        except (ClientError, BotoCoreError, S3UploadFailedError, CancelledError) as e:
            outcome = classify_error(e, stage="upload")
            if outcome.kind == ErrorKind.SERVICE:
                outcome.object_exists = self.object_exists(bucket, scenario.object_key)
            return ScenarioExecution(scenario, bucket, payload, outcome)

        try:
            outcome = self.read_back(bucket, scenario.object_key)
        except (ClientError, BotoCoreError, CancelledError) as e:
            outcome = classify_error(e, stage="read-back")

        return ScenarioExecution(scenario, bucket, payload, outcome)


def describe_outcome(outcome: UploadOutcome) -> str:
    """Short label of what actually happened."""
    if isinstance(outcome, Succeeded):
        return "success"
    label = f"{outcome.kind.value} error"
    if outcome.code:
        label += f" ({outcome.code})"
    return label


@dataclass
class RunResult:
    """Result of running all scenarios against one server."""

    scenarios: dict[str, ScenarioResult]
    total_duration: float
    endpoint: Optional[str] = None
    image: Optional[str] = None
    timestamp: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))

    @property
    def all_passed(self) -> bool:
        """Check if every scenario passed (expected failures count as passed)."""
        return all(
            r.status in (ResultStatus.PASS, ResultStatus.EXPECTED_FAILURE)
            for r in self.scenarios.values()
        )

    def count(self, status: ResultStatus) -> int:
        return sum(1 for r in self.scenarios.values() if r.status == status)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        scenarios_dict = {}
        for scenario_id, result in self.scenarios.items():
            scenarios_dict[scenario_id] = {
                "name": result.scenario_name,
                "status": result.status.value,
                "expected": result.expected,
                "actual": result.actual,
                "failure_class": result.failure_class.value,
                "error_code": result.error_code,
                "error_message": result.error_message,
                "known_issue": result.known_issue,
                "duration_seconds": result.duration_seconds,
            }

        return {
            "timestamp": self.timestamp,
            "server": {"image": self.image, "endpoint": self.endpoint},
            "scenarios": scenarios_dict,
            "summary": {
                "total_scenarios": len(self.scenarios),
                "passed": self.count(ResultStatus.PASS),
                "expected_failures": self.count(ResultStatus.EXPECTED_FAILURE),
                "failed": self.count(ResultStatus.FAIL),
                "errors": self.count(ResultStatus.ERROR),
                "all_passed": self.all_passed,
            },
            "total_duration": self.total_duration,
        }


class HarnessRunner:
    """Main runner that orchestrates a harness session.

    Coordinates:
    - Acquiring and releasing the server
    - Building one client per checksum mode
    - Running scenarios sequentially or on a thread pool
    - Calling reporter callbacks for progress
    """

    def __init__(
        self,
        settings: HarnessSettings,
        scenarios: list[UploadScenario],
        reporter: Optional[Any] = None,
        concurrency: int = 1,
        fixture_factory: Callable[[HarnessSettings], ServerFixture] = ServerFixture,
        client_factory: Callable[..., Any] = build_s3_client,
    ):
        """Initialize the runner.

        Args:
            settings: Harness settings
            scenarios: Scenarios to run
            reporter: Optional reporter for progress callbacks
            concurrency: Number of scenarios run at once
            fixture_factory: Builds the server fixture
            client_factory: Builds an S3 client for (instance, mode, settings)
        """
        self.settings = settings
        self.scenarios = scenarios
        self.reporter = reporter
        self.concurrency = max(1, concurrency)
        self.fixture_factory = fixture_factory
        self.client_factory = client_factory
        self.cancel_event = threading.Event()

    def run(self) -> RunResult:
        """Run every scenario against a fresh server.

        Returns:
            RunResult containing a result per scenario

        Raises:
            SetupError: If the server never becomes ready or a bucket
                cannot be created. The server is released first.
        """
        start_time = time.time()
        results: dict[str, ScenarioResult] = {}

        with running_server(self.settings, self.fixture_factory) as instance:
            if self.reporter:
                self.reporter.on_run_start(instance)

            modes = {s.checksum_mode for s in self.scenarios}
            clients = {mode: self.client_factory(instance, mode, self.settings) for mode in modes}

            try:
                if self.concurrency == 1:
                    for scenario in self.scenarios:
                        results[scenario.scenario_id] = self.run_scenario(
                            scenario, clients[scenario.checksum_mode]
                        )
                else:
                    results = self._run_concurrently(clients)
            except BaseException:
                # Abort transfers still running on other threads
                self.cancel_event.set()
                raise

            endpoint = instance.endpoint_url
            image = instance.image

        ordered = {s.scenario_id: results[s.scenario_id] for s in self.scenarios}
        run_result = RunResult(
            scenarios=ordered,
            total_duration=time.time() - start_time,
            endpoint=endpoint,
            image=image,
        )

        if self.reporter:
            self.reporter.on_run_complete(run_result)

        return run_result

    def _run_concurrently(self, clients: dict[ChecksumMode, Any]) -> dict[str, ScenarioResult]:
        results: dict[str, ScenarioResult] = {}
        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            futures = {
                pool.submit(self.run_scenario, s, clients[s.checksum_mode]): s
                for s in self.scenarios
            }
            try:
                for future in as_completed(futures):
                    result = future.result()
                    results[result.scenario_id] = result
            except BaseException:
                self.cancel_event.set()
                for future in futures:
                    future.cancel()
                raise
        return results

    def run_scenario(self, scenario: UploadScenario, client: Any) -> ScenarioResult:
        """Run and verify one scenario.

        Args:
            scenario: The scenario to run
            client: S3 client for the scenario's checksum mode

        Returns:
            ScenarioResult for reporting
        """
        if self.reporter:
            self.reporter.on_scenario_start(scenario)

        start_time = time.time()
        execution = ScenarioRunner(client, self.settings, self.cancel_event).run(scenario)
        verdict = verify_outcome(scenario, execution.outcome, execution.payload)

        outcome = execution.outcome
        result = ScenarioResult(
            scenario_id=scenario.scenario_id,
            scenario_name=scenario.name,
            status=verdict.status,
            expected="success" if scenario.expectation == Expectation.SUCCESS else "service error",
            actual=describe_outcome(outcome),
            failure_class=verdict.failure_class,
            error_code=outcome.code if isinstance(outcome, Failed) else None,
            error_message=None if verdict.status == ResultStatus.PASS else verdict.message,
            duration_seconds=time.time() - start_time,
            known_issue=scenario.is_known_issue,
            bucket_name=execution.bucket.name if execution.bucket else None,
        )

        if self.reporter:
            self.reporter.on_scenario_complete(result)

        return result
