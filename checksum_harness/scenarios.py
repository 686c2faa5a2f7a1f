"""Scenario definitions for S3 checksum compliance testing.

This module contains:
- SCENARIO_DEFINITIONS: Upload scenarios
  - Single-part uploads (text payloads, well under the multipart threshold)
  - Multipart uploads (random payloads above the multipart threshold)
- build_scenarios: Materialises UploadScenario objects from settings

Sizes of large payloads come from HarnessSettings so they always exceed the
configured multipart threshold.
"""

from typing import Optional

from checksum_harness.config import HarnessSettings
from checksum_harness.models import (
    ChecksumMode,
    Expectation,
    PayloadKind,
    UploadScenario,
)

SMALL_TEXT_CONTENT = "This is a test file uploaded without checksum validation."

# Upstream report for multipart uploads with default SDK checksums
CHECKSUM_ISSUE_URL = "https://github.com/rustfs/rustfs/issues/1731"

# Sentinel for "use settings.large_payload_size"
LARGE = "large"

SCENARIO_DEFINITIONS = {
    # === SINGLE-PART UPLOADS ===
    "small_text_no_checksum": {
        "name": "Single-Part: Checksum Disabled",
        "description": "Short text upload with default checksums disabled. MUST round-trip exactly.",
        "payload_kind": PayloadKind.TEXT,
        "text": SMALL_TEXT_CONTENT,
        "content_type": "text/plain",
        "checksum_mode": ChecksumMode.DISABLED,
        "expectation": Expectation.SUCCESS,
        "object_key": "test-file-no-checksum.txt",
        "bucket_prefix": "bucket-no-checksum",
    },
    "empty_no_checksum": {
        "name": "Single-Part: Empty Object, Checksum Disabled",
        "description": "Zero-byte upload with default checksums disabled. MUST round-trip exactly.",
        "payload_kind": PayloadKind.TEXT,
        "text": "",
        "content_type": "text/plain",
        "checksum_mode": ChecksumMode.DISABLED,
        "expectation": Expectation.SUCCESS,
        "object_key": "test-file-empty.txt",
        "bucket_prefix": "bucket-empty",
    },
    # === MULTIPART UPLOADS ===
    "large_binary_no_checksum": {
        "name": "Multipart: Checksum Disabled",
        "description": "Random payload above the multipart threshold with default checksums disabled. MUST round-trip exactly.",
        "payload_kind": PayloadKind.RANDOM,
        "payload_size": LARGE,
        "content_type": "application/octet-stream",
        "checksum_mode": ChecksumMode.DISABLED,
        "expectation": Expectation.SUCCESS,
        "object_key": "test-file-large-no-checksum.bin",
        "bucket_prefix": "bucket-large-no-checksum",
    },
    "large_binary_default_checksum": {
        "name": "Multipart: Default Checksum (Known Issue)",
        "description": "Random payload above the multipart threshold with SDK default checksums. "
                       "The server currently rejects it with a service error.",
        "payload_kind": PayloadKind.RANDOM,
        "payload_size": LARGE,
        "content_type": "application/octet-stream",
        "checksum_mode": ChecksumMode.DEFAULT,
        "expectation": Expectation.FAILURE,
        "object_key": "test-file-with-checksum.txt",
        "bucket_prefix": "bucket-with-checksum",
        "known_issue": CHECKSUM_ISSUE_URL,
    },
}

SINGLE_PART_SCENARIOS = ["small_text_no_checksum", "empty_no_checksum"]
MULTIPART_SCENARIOS = ["large_binary_no_checksum", "large_binary_default_checksum"]


def _build(scenario_id: str, definition: dict, settings: HarnessSettings) -> UploadScenario:
    kind = definition["payload_kind"]
    if kind == PayloadKind.TEXT:
        size = len(definition["text"].encode("utf-8"))
    elif definition["payload_size"] == LARGE:
        size = settings.large_payload_size
    else:
        size = definition["payload_size"]

    expectation = definition["expectation"]
    override = settings.expectations.get(scenario_id)
    if override is not None:
        expectation = Expectation(override)

    return UploadScenario(
        scenario_id=scenario_id,
        name=definition["name"],
        description=definition["description"],
        payload_kind=kind,
        payload_size=size,
        text=definition.get("text"),
        content_type=definition["content_type"],
        checksum_mode=definition["checksum_mode"],
        expectation=expectation,
        object_key=definition["object_key"],
        bucket_prefix=definition["bucket_prefix"],
        known_issue=definition.get("known_issue"),
    )


def build_scenarios(
    settings: HarnessSettings,
    scenario_ids: Optional[list[str]] = None,
) -> list[UploadScenario]:
    """Build scenarios from their definitions.

    Args:
        settings: Harness settings (payload sizes, expectation overrides)
        scenario_ids: Optional subset to build, in the given order

    Returns:
        List of UploadScenario

    Raises:
        KeyError: If an id is not defined.
    """
    if scenario_ids is None:
        scenario_ids = list(SCENARIO_DEFINITIONS)

    unknown = [s for s in scenario_ids if s not in SCENARIO_DEFINITIONS]
    if unknown:
        raise KeyError(f"Unknown scenario(s): {', '.join(unknown)}")

    return [_build(s, SCENARIO_DEFINITIONS[s], settings) for s in scenario_ids]


def get_scenario(scenario_id: str, settings: HarnessSettings) -> UploadScenario:
    """Build a single scenario by id."""
    return build_scenarios(settings, [scenario_id])[0]
