"""Tests for client factory module."""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from oss_uploader.models import UploadConfig
from oss_uploader.s3_client import build_http_client, build_s3_client


class TestBuildS3Client:
    """Tests for build_s3_client function."""

    @pytest.fixture
    def upload_config(self) -> UploadConfig:
        """Create a sample upload config for testing."""
        return UploadConfig(
            endpoint_url="https://oss-cn-hangzhou.aliyuncs.com",
            bucket_name="test-bucket",
            object_key="key",
            file_path="file.bin",
            access_key_id="test-access-key",
            access_key_secret="test-secret-key",
            region_name="oss-cn-hangzhou",
        )

    @patch("oss_uploader.s3_client.boto3.client")
    def test_correct_endpoint_and_credentials(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Verify endpoint, credentials, and region are passed to boto3."""
        build_s3_client(upload_config)

        mock_boto_client.assert_called_once()
        call_kwargs = mock_boto_client.call_args.kwargs

        assert call_kwargs["endpoint_url"] == "https://oss-cn-hangzhou.aliyuncs.com"
        assert call_kwargs["aws_access_key_id"] == "test-access-key"
        assert call_kwargs["aws_secret_access_key"] == "test-secret-key"
        assert call_kwargs["region_name"] == "oss-cn-hangzhou"

    @patch("oss_uploader.s3_client.boto3.client")
    def test_virtual_addressing_style_by_default(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """OSS requires virtual-hosted addressing, the default."""
        build_s3_client(upload_config)

        config = mock_boto_client.call_args.kwargs["config"]
        assert config.s3["addressing_style"] == "virtual"

    @patch("oss_uploader.s3_client.boto3.client")
    def test_path_addressing_style(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Verify path addressing style is configured correctly."""
        build_s3_client(replace(upload_config, addressing_style="path"))

        config = mock_boto_client.call_args.kwargs["config"]
        assert config.s3["addressing_style"] == "path"

    @patch("oss_uploader.s3_client.boto3.client")
    def test_signature_version_is_s3v4(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Verify signature version is set to s3v4 for presigned URLs."""
        build_s3_client(upload_config)

        config = mock_boto_client.call_args.kwargs["config"]
        assert config.signature_version == "s3v4"

    @patch("oss_uploader.s3_client.boto3.client")
    def test_botocore_retries_disabled(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Retries are handled by the uploader, not botocore."""
        build_s3_client(upload_config)

        config = mock_boto_client.call_args.kwargs["config"]
        assert config.retries == {"total_max_attempts": 1}

    @patch("oss_uploader.s3_client.boto3.client")
    def test_timeouts_follow_config(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Connect and read timeouts come from http_timeout."""
        build_s3_client(replace(upload_config, http_timeout=12.5))

        config = mock_boto_client.call_args.kwargs["config"]
        assert config.connect_timeout == 12.5
        assert config.read_timeout == 12.5

    @patch("oss_uploader.s3_client.boto3.client")
    def test_returns_s3_client(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Verify function returns the boto3 client."""
        mock_client = MagicMock()
        mock_boto_client.return_value = mock_client

        assert build_s3_client(upload_config) is mock_client

    @patch("oss_uploader.s3_client.boto3.client")
    def test_first_argument_is_s3(
        self, mock_boto_client: MagicMock, upload_config: UploadConfig
    ):
        """Verify first argument to boto3.client is 's3'."""
        build_s3_client(upload_config)

        assert mock_boto_client.call_args.args[0] == "s3"


class TestBuildHttpClient:
    """Tests for build_http_client function."""

    def test_uses_configured_timeout(self):
        """The httpx client should use http_timeout."""
        config = UploadConfig(
            endpoint_url="https://oss.example.com",
            bucket_name="bucket",
            object_key="key",
            file_path="file",
            access_key_id="id",
            access_key_secret="secret",
            http_timeout=30.0,
        )
        client = build_http_client(config)
        try:
            assert isinstance(client, httpx.Client)
            assert client.timeout == httpx.Timeout(30.0)
        finally:
            client.close()
