"""OSS Uploader.

Uploads a local file to an S3-compatible object store such as Alibaba
Cloud OSS, switching to a multipart upload for files larger than the
configured part size.
"""

__version__ = "1.0.0"

from oss_uploader.cli import main

__all__ = ["main", "__version__"]
