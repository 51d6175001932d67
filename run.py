#!/usr/bin/env python3
"""
OSS Uploader

Run this script to upload a file to an S3-compatible object store,
using multipart upload for files larger than the part size.

Usage:
    export ACCESS_KEY=... ACCESS_SECRET=...
    python run.py --endpoint https://oss-cn-hangzhou.aliyuncs.com \\
        --bucket my-bucket --object backups/db.tar --file ./db.tar
    python run.py ... --part-size 256MiB --concurrency 4
    python run.py ... -q -j summary.json
"""

import sys
from oss_uploader.cli import main

if __name__ == "__main__":
    sys.exit(main())
