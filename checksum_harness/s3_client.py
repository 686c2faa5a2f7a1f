"""S3 client factory for the checksum harness.

Creates boto3 S3 clients bound to a ready server instance, with path-style
addressing and plaintext transport.

The checksum mode is applied at client level: botocore reads
``request_checksum_calculation`` / ``response_checksum_validation`` from the
client config, so "disabled" gets its own client rather than a per-call flag.
"""

from typing import Optional

import boto3
from botocore.client import Config

from checksum_harness.config import HarnessSettings
from checksum_harness.models import ChecksumMode, ServerInstance

# botocore value meaning "only when the operation requires it"
WHEN_REQUIRED = "when_required"


def build_client_config(
    checksum_mode: ChecksumMode,
    settings: HarnessSettings,
) -> Config:
    """Build the botocore Config for a checksum mode.

    Args:
        checksum_mode: DISABLED skips default checksum calculation and
                       validation; DEFAULT leaves the SDK untouched.
        settings: Harness settings for timeouts and retries.

    Returns:
        A botocore Config.
    """
    options = {
        "signature_version": "s3v4",
        "s3": {"addressing_style": "path"},
        "connect_timeout": settings.request_timeout,
        "read_timeout": settings.request_timeout,
        "retries": {"max_attempts": settings.max_attempts, "mode": "standard"},
    }

    if checksum_mode == ChecksumMode.DISABLED:
        options["request_checksum_calculation"] = WHEN_REQUIRED
        options["response_checksum_validation"] = WHEN_REQUIRED

    return Config(**options)


def build_s3_client(
    instance: ServerInstance,
    checksum_mode: ChecksumMode = ChecksumMode.DEFAULT,
    settings: Optional[HarnessSettings] = None,
):
    """Build a boto3 S3 client for the given server instance.

    Args:
        instance: A READY server instance.
        checksum_mode: Checksum behaviour of the returned client.
        settings: Harness settings (defaults if omitted).

    Returns:
        A boto3 S3 client addressing the instance.

    Raises:
        ServerNotReadyError: If the instance has not passed its readiness probe.
    """
    instance.require_ready()
    if settings is None:
        settings = HarnessSettings()

    return boto3.client(
        "s3",
        endpoint_url=instance.endpoint_url,
        aws_access_key_id=instance.access_key,
        aws_secret_access_key=instance.secret_key,
        region_name=settings.region,
        use_ssl=False,
        config=build_client_config(checksum_mode, settings),
    )
