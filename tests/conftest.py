"""Shared fixtures for the harness tests."""

import boto3
import pytest
from moto import mock_aws

from checksum_harness.config import MiB, HarnessSettings
from checksum_harness.models import ChecksumMode, ReadinessState, ServerInstance
from checksum_harness.s3_client import build_client_config


@pytest.fixture
def small_settings() -> HarnessSettings:
    """Settings with the smallest sizes an S3 multipart upload accepts."""
    return HarnessSettings(
        multipart_threshold=5 * MiB,
        multipart_chunksize=5 * MiB,
        large_payload_size=6 * MiB,
    )


@pytest.fixture
def ready_instance() -> ServerInstance:
    return ServerInstance(
        host="localhost",
        port=49153,
        access_key="admin",
        secret_key="admin123",
        state=ReadinessState.READY,
        container_id="abc123",
        image="rustfs/rustfs:latest",
    )


@pytest.fixture
def aws():
    """Run the test inside moto's in-memory S3."""
    with mock_aws():
        yield


def moto_client(mode: ChecksumMode, settings: HarnessSettings):
    """S3 client against moto, configured like build_s3_client."""
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        config=build_client_config(mode, settings),
    )


@pytest.fixture
def make_moto_client(aws):
    """Factory with the client_factory signature used by HarnessRunner."""

    def factory(instance, mode, settings):
        return moto_client(mode, settings)

    return factory
