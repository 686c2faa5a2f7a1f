"""Configuration loading for the S3 checksum compliance harness.

Supports two configuration sources:
1. Environment variables (for CI/CD) - take priority, field by field
2. harness.json file (for local development)

Environment Variable Format:
    HARNESS_{FIELD}=value
    HARNESS_EXPECT_{SCENARIO_ID}=success|failure

Example:
    HARNESS_IMAGE=rustfs/rustfs:1.0.0-alpha.80
    HARNESS_MULTIPART_THRESHOLD=16777216
    HARNESS_EXPECT_LARGE_BINARY_DEFAULT_CHECKSUM=success
"""

import dataclasses
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

MiB = 1024 * 1024

# S3 minimum part size for every part except the last
MIN_PART_SIZE = 5 * MiB

SUPPORTED_CHECKSUM_ALGORITHMS = ("CRC32", "CRC32C", "SHA1", "SHA256", "CRC64NVME")

EXPECTATION_VALUES = ("success", "failure")

ENV_PREFIX = "HARNESS_"
EXPECT_ENV_PREFIX = "HARNESS_EXPECT_"


class ConfigError(Exception):
    """Raised when configuration loading fails."""

    pass


@dataclass
class HarnessSettings:
    """Settings for the server fixture, client factory and scenarios.

    The multipart threshold and checksum algorithm are defined by the client
    SDK, not by this harness; they are exposed here so the harness stays
    valid as SDK defaults change.
    """

    # Server fixture
    image: str = "rustfs/rustfs:latest"
    internal_port: int = 9000
    env_prefix: str = "RUSTFS_"
    access_key: str = "admin"
    secret_key: str = "admin123"
    host: str = "localhost"
    docker_endpoint: Optional[str] = None
    readiness_timeout: float = 60.0
    readiness_interval: float = 0.5
    # Client factory
    region: str = "us-east-1"
    request_timeout: float = 60.0
    max_attempts: int = 1
    # Upload path selection
    multipart_threshold: int = 16 * MiB
    multipart_chunksize: int = 8 * MiB
    large_payload_size: int = 20 * MiB
    checksum_algorithm: Optional[str] = None
    # Scenario expectation overrides: scenario_id -> "success" | "failure"
    expectations: dict[str, str] = field(default_factory=dict)

    def validate(self) -> "HarnessSettings":
        """Check cross-field constraints.

        Returns:
            self, for chaining.

        Raises:
            ConfigError: If any value is out of range or inconsistent.
        """
        for name in ("internal_port", "max_attempts", "multipart_threshold", "large_payload_size"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"'{name}' must be positive")

        for name in ("readiness_timeout", "readiness_interval", "request_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"'{name}' must be positive")

        if self.multipart_chunksize < MIN_PART_SIZE:
            raise ConfigError(
                f"'multipart_chunksize' must be at least {MIN_PART_SIZE} bytes"
            )

        # The large-payload scenarios only mean something on the multipart path
        if self.large_payload_size <= self.multipart_threshold:
            raise ConfigError(
                "'large_payload_size' must exceed 'multipart_threshold' "
                f"({self.large_payload_size} <= {self.multipart_threshold})"
            )

        if (
            self.checksum_algorithm is not None
            and self.checksum_algorithm not in SUPPORTED_CHECKSUM_ALGORITHMS
        ):
            raise ConfigError(
                f"Unsupported checksum algorithm '{self.checksum_algorithm}'. "
                f"Expected one of: {', '.join(SUPPORTED_CHECKSUM_ALGORITHMS)}"
            )

        for scenario_id, value in self.expectations.items():
            if value not in EXPECTATION_VALUES:
                raise ConfigError(
                    f"Invalid expectation '{value}' for scenario '{scenario_id}'. "
                    "Expected 'success' or 'failure'"
                )

        return self


_FIELD_TYPES = {f.name: f.type for f in dataclasses.fields(HarnessSettings)}


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw JSON or environment value to the field's type."""
    field_type = _FIELD_TYPES[name]

    if name == "expectations":
        if not isinstance(value, dict):
            raise ConfigError("'expectations' must be an object")
        return {str(k): str(v).lower() for k, v in value.items()}

    if name == "checksum_algorithm":
        if value in (None, ""):
            return None
        return str(value).upper()

    if name == "docker_endpoint":
        return str(value) if value not in (None, "") else None

    try:
        if field_type is int:
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if field_type is float:
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{name}': {value!r}") from e

    return str(value)


def load_from_json(config_path: str) -> dict[str, Any]:
    """Load settings overrides from a JSON file.

    Args:
        config_path: Path to the harness.json file.

    Returns:
        Dictionary of field name to coerced value.

    Raises:
        ConfigError: If the file doesn't exist, contains invalid JSON,
                    or names an unknown setting.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    overrides: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _FIELD_TYPES:
            raise ConfigError(f"Unknown setting '{key}' in {config_path}")
        overrides[key] = _coerce(key, value)

    return overrides


def load_from_env(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Load settings overrides from HARNESS_* environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ).

    Returns:
        Dictionary of field name to coerced value.

    Raises:
        ConfigError: If a variable holds a malformed value.
    """
    if environ is None:
        environ = os.environ

    overrides: dict[str, Any] = {}
    expectations: dict[str, str] = {}

    for env_key, env_value in environ.items():
        if env_key.startswith(EXPECT_ENV_PREFIX):
            # HARNESS_EXPECT_LARGE_BINARY_DEFAULT_CHECKSUM -> large_binary_default_checksum
            scenario_id = env_key[len(EXPECT_ENV_PREFIX):].lower()
            expectations[scenario_id] = env_value.strip().lower()
            continue

        if not env_key.startswith(ENV_PREFIX):
            continue

        name = env_key[len(ENV_PREFIX):].lower()
        if name not in _FIELD_TYPES or name == "expectations":
            continue

        overrides[name] = _coerce(name, env_value)

    if expectations:
        overrides["expectations"] = expectations

    return overrides


def load_settings(
    config_path: str = "harness.json",
    environ: Optional[Mapping[str, str]] = None,
) -> HarnessSettings:
    """Load harness settings with environment priority.

    Priority order:
    1. Environment variables (HARNESS_*)
    2. harness.json file, if it exists
    3. Built-in defaults

    Args:
        config_path: Path to harness.json.
        environ: Mapping to read variables from (defaults to os.environ).

    Returns:
        Validated HarnessSettings.

    Raises:
        ConfigError: If any source is malformed or the result is invalid.
    """
    values: dict[str, Any] = {}

    if Path(config_path).exists():
        values.update(load_from_json(config_path))

    env_values = load_from_env(environ)
    # Expectation overrides merge rather than replace
    if "expectations" in env_values:
        merged = dict(values.get("expectations", {}))
        merged.update(env_values.pop("expectations"))
        values["expectations"] = merged
    values.update(env_values)

    return HarnessSettings(**values).validate()
