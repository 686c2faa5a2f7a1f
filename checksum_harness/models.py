"""Data models for the S3 checksum compliance harness."""

import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# S3 bucket naming rules: 3-63 chars, lowercase letters, digits and hyphens
_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")


class ServerNotReadyError(RuntimeError):
    """Raised when a storage server is addressed before it is Ready."""

    pass


class ReadinessState(Enum):
    """Lifecycle state of a storage-server instance."""

    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"


class ChecksumMode(Enum):
    """Client checksum behaviour used for an upload."""

    DISABLED = "disabled"
    DEFAULT = "default"


class PayloadKind(Enum):
    """Content class of a scenario payload."""

    TEXT = "text"
    RANDOM = "random"


class Expectation(Enum):
    """Expected outcome of a scenario."""

    SUCCESS = "success"
    FAILURE = "failure"


class ErrorKind(Enum):
    """Classification of an error captured during a scenario."""

    SERVICE = "service"
    CONNECTIVITY = "connectivity"
    CLIENT = "client"
    CANCELLED = "cancelled"


class ResultStatus(Enum):
    """Status of a scenario."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"
    EXPECTED_FAILURE = "expected_failure"


class FailureClass(Enum):
    """Which kind of deviation a verdict reports."""

    NONE = "none"
    SERVICE_ERROR = "service_error"
    CONTENT_MISMATCH = "content_mismatch"
    INFRASTRUCTURE = "infrastructure"
    UNEXPECTED_SUCCESS = "unexpected_success"
    LINGERING_OBJECT = "lingering_object"


@dataclass
class ServerInstance:
    """One running storage-server container."""

    host: str
    port: int
    access_key: str
    secret_key: str
    state: ReadinessState = ReadinessState.STARTING
    container_id: Optional[str] = None
    image: Optional[str] = None

    @property
    def endpoint_url(self) -> str:
        """Plaintext endpoint URL of the mapped port."""
        return f"http://{self.host}:{self.port}"

    @property
    def is_ready(self) -> bool:
        return self.state == ReadinessState.READY

    def require_ready(self) -> None:
        """Raise ServerNotReadyError unless the readiness probe has passed."""
        if not self.is_ready:
            raise ServerNotReadyError(
                f"Server at {self.endpoint_url} is {self.state.value}, not ready"
            )


@dataclass(frozen=True)
class BucketHandle:
    """A scenario-scoped bucket name."""

    name: str

    def __post_init__(self):
        if not _BUCKET_NAME_RE.match(self.name):
            raise ValueError(f"Invalid bucket name: {self.name!r}")

    @classmethod
    def generate(cls, prefix: str) -> "BucketHandle":
        """Create a handle named ``<prefix>-<uuid4>``.

        Args:
            prefix: Human-readable prefix, e.g. "bucket-no-checksum".

        Returns:
            A new BucketHandle with a globally unique name.

        Raises:
            ValueError: If the resulting name breaks S3 naming rules.
        """
        return cls(name=f"{prefix.lower()}-{uuid.uuid4()}")


@dataclass(frozen=True)
class UploadScenario:
    """Configuration of one upload test case."""

    scenario_id: str
    name: str
    payload_kind: PayloadKind
    payload_size: int
    checksum_mode: ChecksumMode
    expectation: Expectation
    object_key: str
    content_type: str = "application/octet-stream"
    text: Optional[str] = None
    bucket_prefix: str = "bucket"
    description: str = ""
    known_issue: Optional[str] = None

    @property
    def is_known_issue(self) -> bool:
        return self.known_issue is not None


class UploadOutcome:
    """Result of executing a scenario: Succeeded or Failed."""

    succeeded = False


@dataclass
class Succeeded(UploadOutcome):
    """Upload completed and the object was read back."""

    retrieved: bytes
    status_code: int = 200

    succeeded = True


@dataclass
class Failed(UploadOutcome):
    """Upload or read-back raised an error."""

    kind: ErrorKind
    message: str
    code: Optional[str] = None
    status_code: Optional[int] = None
    stage: str = "upload"
    object_exists: Optional[bool] = None

    succeeded = False

    def describe(self) -> str:
        """One-line description used in diagnostics."""
        parts = [f"{self.kind.value} error during {self.stage}"]
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}")
        if self.code:
            parts.append(self.code)
        return f"{', '.join(parts)}: {self.message}"


@dataclass
class Verdict:
    """Judgement of an outcome against a scenario's expectation."""

    status: ResultStatus
    failure_class: FailureClass
    message: str
    known_issue: bool = False

    @property
    def passed(self) -> bool:
        return self.status in (ResultStatus.PASS, ResultStatus.EXPECTED_FAILURE)


@dataclass
class ScenarioResult:
    """Reported result of a single scenario."""

    scenario_id: str
    scenario_name: str
    status: ResultStatus
    expected: str
    actual: str
    failure_class: FailureClass = FailureClass.NONE
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    duration_seconds: float = 0.0
    known_issue: bool = False
    bucket_name: Optional[str] = None
