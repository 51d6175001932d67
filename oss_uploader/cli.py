"""Command-line interface for the OSS uploader.

Provides argument parsing and the main entry point for uploading a file
from the command line.
"""

import argparse
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from oss_uploader.backend import open_bucket
from oss_uploader.config import load_config
from oss_uploader.errors import (
    BackendError,
    ConfigurationError,
    InvariantViolation,
    LocalIOError,
)
from oss_uploader.models import ProgressEvent, UploadConfig, UploadResult
from oss_uploader.orchestrator import Uploader
from oss_uploader.reporters import ConsoleReporter, JsonReporter, ProgressReporter
from oss_uploader.retry import RetryPolicy
from oss_uploader.s3_client import build_http_client, build_s3_client

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_LOCAL_IO_ERROR = 3
EXIT_BACKEND_ERROR = 4
EXIT_INVARIANT_VIOLATION = 5


class CompositeReporter(ProgressReporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[ProgressReporter]):
        """Initialize with list of reporters.

        Args:
            reporters: List of reporters to delegate to
        """
        self._reporters = reporters

    def on_event(self, event: ProgressEvent) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_event(event)

    def on_upload_complete(self, result: UploadResult) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_upload_complete(result)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="oss-upload",
        description=(
            "Upload a file to an S3-compatible object store, using multipart "
            "upload for files larger than the part size. Credentials are read "
            "from the ACCESS_KEY and ACCESS_SECRET environment variables."
        ),
    )

    parser.add_argument(
        "--endpoint",
        help="Object store endpoint URL (https:// is assumed without a scheme)",
    )
    parser.add_argument("--bucket", help="Bucket name")
    parser.add_argument("--object", help="Destination object key")
    parser.add_argument("--file", help="Local file path")

    parser.add_argument(
        "--region",
        help=(
            "Signing region (default: taken from an oss-<region>.aliyuncs.com "
            "endpoint, otherwise us-east-1)"
        ),
    )

    parser.add_argument(
        "--addressing-style",
        choices=["virtual", "path", "auto"],
        help="Bucket addressing style (default: virtual)",
    )

    parser.add_argument(
        "--part-size",
        metavar="SIZE",
        help="Multipart threshold and part size, e.g. 1GiB or 500MB (default: 1GiB)",
    )

    parser.add_argument(
        "--part-count",
        type=int,
        metavar="N",
        help="Split multipart uploads into N equal parts instead of part-size slices",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        metavar="N",
        help="Number of parts uploaded in parallel (default: 1)",
    )

    parser.add_argument(
        "--max-attempts",
        type=int,
        metavar="N",
        help="Attempts per request for transient failures (default: 3)",
    )

    parser.add_argument(
        "--keep-abandoned",
        action="store_true",
        help="Do not abort a failed multipart upload on the object store",
    )

    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        help="JSON file with default settings (no credentials)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress output, show only the result",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write a JSON upload summary to file",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr through Rich."""
    handler = RichHandler(
        console=Console(stderr=True, legacy_windows=True),
        show_path=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def create_reporters(args: argparse.Namespace) -> list[ProgressReporter]:
    """Create reporters based on command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        List of configured reporters
    """
    reporters: list[ProgressReporter] = []

    # Always add console reporter
    reporters.append(ConsoleReporter(quiet=args.quiet))

    # Add JSON reporter if requested
    if args.json_output:
        reporters.append(JsonReporter(output_path=args.json_output))

    return reporters


def run_upload(config: UploadConfig, reporter: ProgressReporter) -> UploadResult:
    """Build the clients, open the bucket and upload the configured file."""
    s3_client = build_s3_client(config)
    http_client = build_http_client(config)
    retry_policy = RetryPolicy(
        max_attempts=config.max_attempts,
        delays=config.retry_delays,
    )

    try:
        bucket = open_bucket(s3_client, http_client, config.bucket_name, retry_policy)
        uploader = Uploader(bucket, config, reporter=reporter)
        return uploader.upload(config.file_path, config.object_key)
    finally:
        http_client.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 on success, 2 for configuration errors, 3 for local
        file errors, 4 for object store errors, 5 for internal errors
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    # Load configuration
    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    # Create reporters
    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    try:
        run_upload(config, reporter)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except LocalIOError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_LOCAL_IO_ERROR
    except BackendError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BACKEND_ERROR
    except InvariantViolation as e:
        print(f"internal error: {e}", file=sys.stderr)
        return EXIT_INVARIANT_VIOLATION

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
