"""Outcome verification for upload scenarios.

Judges an UploadOutcome against the scenario's expectation:

Expect success:
- Bytes identical and read-back returned HTTP 200   -> PASS
- Read-back bytes differ (silent corruption)          -> FAIL, content mismatch
- Read-back status other than 200                    -> FAIL, service error
- Service-level error                                 -> FAIL, service error
- Connectivity / client-side / cancelled              -> ERROR, infrastructure

Expect failure (known-issue scenarios):
- Upload rejected by the service, nothing stored     -> EXPECTED_FAILURE
- Service-level error, object still retrievable       -> FAIL, lingering object
- Connectivity / client-side / cancelled              -> ERROR, infrastructure
- Upload succeeded (even if read-back then failed)   -> FAIL, unexpected success

An expected-failure scenario is a regression tripwire: once the server is
fixed it starts failing, and its expectation must be flipped to success
(HARNESS_EXPECT_<SCENARIO_ID>=success, or in the scenario definition).
"""

import logging
from typing import Optional

from checksum_harness.models import (
    ErrorKind,
    Expectation,
    Failed,
    FailureClass,
    ResultStatus,
    Succeeded,
    UploadOutcome,
    UploadScenario,
    Verdict,
)

logger = logging.getLogger(__name__)

EXPECTED_READ_STATUS = 200


def find_mismatch(expected: bytes, actual: bytes) -> Optional[int]:
    """Return the first offset where two byte strings differ, or None."""
    for offset, (a, b) in enumerate(zip(expected, actual)):
        if a != b:
            return offset
    if len(expected) != len(actual):
        return min(len(expected), len(actual))
    return None


def _infrastructure(outcome: Failed) -> Verdict:
    return Verdict(
        status=ResultStatus.ERROR,
        failure_class=FailureClass.INFRASTRUCTURE,
        message=f"Harness/connectivity error, not a storage-protocol result: {outcome.describe()}",
    )


def _verify_success(scenario: UploadScenario, outcome: UploadOutcome, payload: bytes) -> Verdict:
    if isinstance(outcome, Failed):
        if outcome.kind != ErrorKind.SERVICE:
            return _infrastructure(outcome)
        return Verdict(
            status=ResultStatus.FAIL,
            failure_class=FailureClass.SERVICE_ERROR,
            message=f"Upload error: {outcome.describe()}",
        )

    offset = find_mismatch(payload, outcome.retrieved)
    if offset is not None:
        return Verdict(
            status=ResultStatus.FAIL,
            failure_class=FailureClass.CONTENT_MISMATCH,
            message=(
                "Content mismatch after successful upload (silent corruption): "
                f"uploaded {len(payload)} bytes, read back {len(outcome.retrieved)} bytes, "
                f"first difference at offset {offset}"
            ),
        )

    if outcome.status_code != EXPECTED_READ_STATUS:
        return Verdict(
            status=ResultStatus.FAIL,
            failure_class=FailureClass.SERVICE_ERROR,
            message=(
                f"Read-back returned HTTP {outcome.status_code}, "
                f"expected {EXPECTED_READ_STATUS}"
            ),
        )

    return Verdict(
        status=ResultStatus.PASS,
        failure_class=FailureClass.NONE,
        message=f"Round-trip of {len(payload)} bytes matched (HTTP {outcome.status_code})",
    )


def _unexpected_success(scenario: UploadScenario, detail: str) -> Verdict:
    message = f"Upload unexpectedly succeeded; {detail}."
    if scenario.is_known_issue:
        message += (
            f" Known issue {scenario.known_issue} appears fixed: flip this "
            "scenario's expectation to success."
        )
    return Verdict(
        status=ResultStatus.FAIL,
        failure_class=FailureClass.UNEXPECTED_SUCCESS,
        message=message,
        known_issue=scenario.is_known_issue,
    )


def _verify_failure(scenario: UploadScenario, outcome: UploadOutcome, payload: bytes) -> Verdict:
    known = scenario.is_known_issue

    if isinstance(outcome, Succeeded):
        match = "matched" if outcome.retrieved == payload else "did NOT match"
        return _unexpected_success(scenario, f"read-back content {match}")

    if outcome.kind != ErrorKind.SERVICE:
        verdict = _infrastructure(outcome)
        verdict.known_issue = known
        return verdict

    # A read-back error means the upload itself went through
    if outcome.stage != "upload":
        return _unexpected_success(scenario, outcome.describe())

    # The exact code varies by server version, so it is logged, not matched
    logger.info(
        "%s: service error %s (HTTP %s): %s",
        scenario.scenario_id, outcome.code, outcome.status_code, outcome.message,
    )

    if outcome.object_exists:
        return Verdict(
            status=ResultStatus.FAIL,
            failure_class=FailureClass.LINGERING_OBJECT,
            message=f"Upload failed but an object is retrievable at '{scenario.object_key}': {outcome.describe()}",
            known_issue=known,
        )

    message = f"Failed as expected: {outcome.describe()}"
    if known:
        message += f" [known issue {scenario.known_issue}; this check fails once it is fixed]"
    return Verdict(
        status=ResultStatus.EXPECTED_FAILURE,
        failure_class=FailureClass.NONE,
        message=message,
        known_issue=known,
    )


def verify_outcome(
    scenario: UploadScenario,
    outcome: UploadOutcome,
    payload: bytes,
) -> Verdict:
    """Judge an outcome against the scenario's expectation.

    Args:
        scenario: The scenario that was run.
        outcome: Its Succeeded or Failed outcome.
        payload: The bytes that were uploaded.

    Returns:
        Verdict with status, failure class and diagnostic message.
    """
    if scenario.expectation == Expectation.SUCCESS:
        verdict = _verify_success(scenario, outcome, payload)
    else:
        verdict = _verify_failure(scenario, outcome, payload)

    if not verdict.passed:
        logger.warning("%s: %s", scenario.scenario_id, verdict.message)
    return verdict


def assert_outcome(
    scenario: UploadScenario,
    outcome: UploadOutcome,
    payload: bytes,
) -> Verdict:
    """Assert that an outcome matches the expectation.

    Raises:
        AssertionError: With the verdict's diagnostic if it did not pass.
    """
    verdict = verify_outcome(scenario, outcome, payload)
    assert verdict.passed, (
        f"[{verdict.status.value}/{verdict.failure_class.value}] "
        f"{scenario.name}: {verdict.message}"
    )
    return verdict
