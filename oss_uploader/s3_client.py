"""Client factories for the object store.

Creates the boto3 S3 client used for control-plane calls (initiate,
complete, abort) and presigning, and the httpx client used to PUT file
bytes to presigned URLs.

The signature version is set to 's3v4' so Content-Length can be signed
into presigned URLs. botocore's own retries are disabled; retries are
handled by oss_uploader.retry so they can be logged and bounded in one
place.
"""

import boto3
import httpx
from botocore.client import Config

from oss_uploader.models import UploadConfig


def build_s3_client(config: UploadConfig):
    """Build a boto3 S3 client for the given upload configuration.

    Args:
        config: Upload configuration containing endpoint, credentials,
               region, and addressing style.

    Returns:
        A boto3 S3 client configured for the object store.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": config.addressing_style},
        retries={"total_max_attempts": 1},
        connect_timeout=config.http_timeout,
        read_timeout=config.http_timeout,
    )

    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.access_key_secret,
        region_name=config.region_name,
        config=boto_config,
    )


def build_http_client(config: UploadConfig) -> httpx.Client:
    """Build the httpx client used for presigned PUT requests."""
    return httpx.Client(timeout=config.http_timeout)
