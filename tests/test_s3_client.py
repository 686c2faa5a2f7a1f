"""Tests for S3 client factory module."""

from unittest.mock import MagicMock, patch

import pytest

from checksum_harness.config import HarnessSettings
from checksum_harness.models import (
    ChecksumMode,
    ReadinessState,
    ServerInstance,
    ServerNotReadyError,
)
from checksum_harness.runner import ScenarioRunner
from checksum_harness.s3_client import build_client_config, build_s3_client
from checksum_harness.scenarios import get_scenario


class TestBuildS3Client:
    """Tests for build_s3_client function."""

    @pytest.fixture
    def instance(self) -> ServerInstance:
        """Create a ready server instance."""
        return ServerInstance(
            host="localhost",
            port=49153,
            access_key="admin",
            secret_key="admin123",
            state=ReadinessState.READY,
        )

    @patch("checksum_harness.s3_client.boto3.client")
    def test_correct_endpoint_and_credentials(self, mock_boto_client: MagicMock, instance):
        """Verify endpoint, credentials, and region are passed to boto3."""
        build_s3_client(instance)

        mock_boto_client.assert_called_once()
        call_kwargs = mock_boto_client.call_args.kwargs

        assert call_kwargs["endpoint_url"] == "http://localhost:49153"
        assert call_kwargs["aws_access_key_id"] == "admin"
        assert call_kwargs["aws_secret_access_key"] == "admin123"
        assert call_kwargs["region_name"] == "us-east-1"

    @patch("checksum_harness.s3_client.boto3.client")
    def test_plaintext_transport(self, mock_boto_client: MagicMock, instance):
        """Verify TLS is disabled."""
        build_s3_client(instance)
        assert mock_boto_client.call_args.kwargs["use_ssl"] is False

    @patch("checksum_harness.s3_client.boto3.client")
    def test_path_addressing_style(self, mock_boto_client: MagicMock, instance):
        """Verify path addressing style is always configured."""
        build_s3_client(instance)

        config = mock_boto_client.call_args.kwargs["config"]
        assert config.s3["addressing_style"] == "path"

    @patch("checksum_harness.s3_client.boto3.client")
    def test_first_argument_is_s3(self, mock_boto_client: MagicMock, instance):
        """Verify first argument to boto3.client is 's3'."""
        build_s3_client(instance)
        assert mock_boto_client.call_args.args[0] == "s3"

    @patch("checksum_harness.s3_client.boto3.client")
    def test_returns_s3_client(self, mock_boto_client: MagicMock, instance):
        """Verify function returns the boto3 client."""
        mock_client = MagicMock()
        mock_boto_client.return_value = mock_client

        assert build_s3_client(instance) is mock_client

    @patch("checksum_harness.s3_client.boto3.client")
    def test_rejects_instance_that_is_not_ready(self, mock_boto_client: MagicMock, instance):
        """No client is built before the readiness probe has passed."""
        instance.state = ReadinessState.STARTING

        with pytest.raises(ServerNotReadyError):
            build_s3_client(instance)

        mock_boto_client.assert_not_called()

    @patch("checksum_harness.s3_client.boto3.client")
    def test_uses_settings_region(self, mock_boto_client: MagicMock, instance):
        """Region comes from settings when provided."""
        build_s3_client(instance, settings=HarnessSettings(region="eu-west-1"))
        assert mock_boto_client.call_args.kwargs["region_name"] == "eu-west-1"


class TestBuildClientConfig:
    """Tests for checksum mode handling in the botocore Config."""

    def test_disabled_mode_only_when_required(self):
        """Disabled mode limits checksum calculation and validation."""
        config = build_client_config(ChecksumMode.DISABLED, HarnessSettings())

        assert config.request_checksum_calculation == "when_required"
        assert config.response_checksum_validation == "when_required"

    def test_default_mode_leaves_sdk_defaults(self):
        """Default mode does not touch checksum options."""
        config = build_client_config(ChecksumMode.DEFAULT, HarnessSettings())

        assert config.request_checksum_calculation in (None, "when_supported")
        assert config.response_checksum_validation in (None, "when_supported")

    def test_signature_version_is_s3v4(self):
        """Verify signature version is set to s3v4."""
        config = build_client_config(ChecksumMode.DEFAULT, HarnessSettings())
        assert config.signature_version == "s3v4"

    def test_request_timeouts(self):
        """Request timeout bounds connect and read."""
        config = build_client_config(ChecksumMode.DEFAULT, HarnessSettings(request_timeout=7.0))

        assert config.connect_timeout == 7.0
        assert config.read_timeout == 7.0

    def test_retries_bounded(self):
        """Retry attempts come from settings."""
        config = build_client_config(ChecksumMode.DEFAULT, HarnessSettings(max_attempts=2))
        assert config.retries["max_attempts"] == 2


CHECKSUM_HEADER_PREFIXES = ("x-amz-checksum-", "x-amz-sdk-checksum-algorithm", "x-amz-trailer")


def checksum_headers(headers) -> list[str]:
    return [h for h in (k.lower() for k in headers.keys()) if h.startswith(CHECKSUM_HEADER_PREFIXES)]


class TestChecksumHeadersOnTheWire:
    """What each checksum mode actually sends, recorded against moto."""

    @pytest.fixture
    def sent(self):
        """Operation name and headers of every request, in order."""
        return []

    def recording_client(self, make_moto_client, mode, settings, sent):
        client = make_moto_client(None, mode, settings)

        def record(request, event_name, **kwargs):
            sent.append((event_name.rsplit(".", 1)[-1], dict(request.headers)))

        # Ahead of moto's responder so every request is seen
        client.meta.events.register_first("before-send.s3", record)
        return client

    def run_scenario(self, client, scenario_id, settings):
        scenario = get_scenario(scenario_id, settings)
        return ScenarioRunner(client, settings).run(scenario)

    def test_disabled_single_part_sends_no_checksum(self, make_moto_client, small_settings, sent):
        """PutObject carries no checksum headers when checksums are disabled."""
        client = self.recording_client(make_moto_client, ChecksumMode.DISABLED, small_settings, sent)

        self.run_scenario(client, "small_text_no_checksum", small_settings)

        puts = [headers for op, headers in sent if op == "PutObject"]
        assert len(puts) == 1
        assert checksum_headers(puts[0]) == []

    def test_disabled_multipart_sends_no_checksum(self, make_moto_client, small_settings, sent):
        """UploadPart carries no checksum headers when checksums are disabled."""
        client = self.recording_client(make_moto_client, ChecksumMode.DISABLED, small_settings, sent)

        self.run_scenario(client, "large_binary_no_checksum", small_settings)

        parts = [headers for op, headers in sent if op == "UploadPart"]
        assert len(parts) == 2
        for headers in parts:
            assert checksum_headers(headers) == []

    def test_default_multipart_sends_checksums(self, make_moto_client, small_settings, sent):
        """UploadPart carries SDK checksum headers in default mode."""
        client = self.recording_client(make_moto_client, ChecksumMode.DEFAULT, small_settings, sent)

        self.run_scenario(client, "large_binary_default_checksum", small_settings)

        parts = [headers for op, headers in sent if op == "UploadPart"]
        assert parts
        for headers in parts:
            assert checksum_headers(headers)

    def test_large_payload_takes_multipart_path(self, make_moto_client, small_settings, sent):
        """A payload over the threshold is sent as a multipart upload."""
        client = self.recording_client(make_moto_client, ChecksumMode.DISABLED, small_settings, sent)

        self.run_scenario(client, "large_binary_no_checksum", small_settings)

        operations = [op for op, _ in sent]
        assert "CreateMultipartUpload" in operations
        assert "UploadPart" in operations
        assert "CompleteMultipartUpload" in operations
        assert "PutObject" not in operations
