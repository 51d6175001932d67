"""Tests for CLI entry point.

Tests the command-line interface and argument parsing.
"""

from unittest.mock import Mock, patch

import pytest

from oss_uploader.cli import (
    EXIT_BACKEND_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_INVARIANT_VIOLATION,
    EXIT_LOCAL_IO_ERROR,
    EXIT_OK,
    CompositeReporter,
    create_reporters,
    main,
    parse_args,
    run_upload,
)
from oss_uploader.errors import (
    BackendError,
    ConfigurationError,
    FileNotFound,
    InvariantViolation,
    LocalIOError,
)
from oss_uploader.models import UploadConfig
from oss_uploader.reporters import ConsoleReporter, JsonReporter

UPLOAD_ARGS = [
    "--endpoint", "https://oss-cn-hangzhou.aliyuncs.com",
    "--bucket", "test-bucket",
    "--object", "backups/db.tar",
    "--file", "/tmp/db.tar",
]


class TestParseArgs:
    """Tests for argument parsing."""

    def test_default_args(self):
        """Unset options are None so env and file values can apply."""
        args = parse_args([])

        assert args.endpoint is None
        assert args.bucket is None
        assert args.object is None
        assert args.file is None
        assert args.part_size is None
        assert args.concurrency is None
        assert args.config is None
        assert args.keep_abandoned is False
        assert args.quiet is False
        assert args.json_output is None
        assert args.verbose is False

    def test_upload_flags(self):
        """Should accept the four upload parameters."""
        args = parse_args(UPLOAD_ARGS)

        assert args.endpoint == "https://oss-cn-hangzhou.aliyuncs.com"
        assert args.bucket == "test-bucket"
        assert args.object == "backups/db.tar"
        assert args.file == "/tmp/db.tar"

    def test_tuning_flags(self):
        """Should accept part size, concurrency and retry options."""
        args = parse_args([
            "--part-size", "256MiB",
            "--part-count", "8",
            "--concurrency", "4",
            "--max-attempts", "5",
            "--keep-abandoned",
        ])

        assert args.part_size == "256MiB"
        assert args.part_count == 8
        assert args.concurrency == 4
        assert args.max_attempts == 5
        assert args.keep_abandoned is True

    def test_addressing_style_choices(self):
        """Unknown addressing styles are rejected by argparse."""
        assert parse_args(["--addressing-style", "path"]).addressing_style == "path"
        with pytest.raises(SystemExit):
            parse_args(["--addressing-style", "sideways"])

    def test_short_flags(self):
        """Should accept -c, -q, -j and -v."""
        args = parse_args(["-c", "settings.json", "-q", "-j", "out.json", "-v"])

        assert args.config == "settings.json"
        assert args.quiet is True
        assert args.json_output == "out.json"
        assert args.verbose is True


class TestCreateReporters:
    """Tests for reporter creation based on args."""

    def test_creates_console_reporter_by_default(self):
        """Should create only a ConsoleReporter by default."""
        reporters = create_reporters(parse_args([]))

        assert len(reporters) == 1
        assert isinstance(reporters[0], ConsoleReporter)

    def test_console_reporter_quiet_mode(self):
        """Should pass quiet flag to ConsoleReporter."""
        reporters = create_reporters(parse_args(["--quiet"]))

        assert reporters[0].quiet is True

    def test_json_reporter_has_output_path(self):
        """--json-output adds a JsonReporter writing to that path."""
        reporters = create_reporters(parse_args(["--json-output", "results.json"]))

        json_reporter = next(r for r in reporters if isinstance(r, JsonReporter))
        assert json_reporter.output_path == "results.json"


class TestCompositeReporter:
    """Tests for CompositeReporter."""

    def test_delegates_to_all(self):
        """Events and results reach every reporter."""
        first, second = Mock(), Mock()
        composite = CompositeReporter([first, second])
        event, result = Mock(), Mock()

        composite.on_event(event)
        composite.on_upload_complete(result)

        for reporter in (first, second):
            reporter.on_event.assert_called_once_with(event)
            reporter.on_upload_complete.assert_called_once_with(result)


class TestRunUpload:
    """Tests for run_upload wiring."""

    @pytest.fixture
    def config(self):
        return UploadConfig(
            endpoint_url="https://oss.example.com",
            bucket_name="test-bucket",
            object_key="key",
            file_path="/tmp/file.bin",
            access_key_id="id",
            access_key_secret="secret",
            max_attempts=4,
        )

    @patch("oss_uploader.cli.Uploader")
    @patch("oss_uploader.cli.open_bucket")
    @patch("oss_uploader.cli.build_http_client")
    @patch("oss_uploader.cli.build_s3_client")
    def test_wires_clients_and_policy(
        self, mock_s3, mock_http, mock_open_bucket, mock_uploader, config
    ):
        """The bucket gets the configured retry policy and the file is uploaded."""
        reporter = Mock()

        run_upload(config, reporter)

        args = mock_open_bucket.call_args.args
        assert args[:3] == (mock_s3.return_value, mock_http.return_value, "test-bucket")
        assert args[3].max_attempts == 4
        mock_uploader.assert_called_once_with(
            mock_open_bucket.return_value, config, reporter=reporter,
        )
        mock_uploader.return_value.upload.assert_called_once_with("/tmp/file.bin", "key")
        mock_http.return_value.close.assert_called_once()

    @patch("oss_uploader.cli.open_bucket")
    @patch("oss_uploader.cli.build_http_client")
    @patch("oss_uploader.cli.build_s3_client")
    def test_closes_http_client_on_error(self, mock_s3, mock_http, mock_open_bucket, config):
        """The httpx client is closed even when the upload fails."""
        mock_open_bucket.side_effect = BackendError("Bucket not found: test-bucket", 404)

        with pytest.raises(BackendError):
            run_upload(config, Mock())

        mock_http.return_value.close.assert_called_once()


@patch("oss_uploader.cli.configure_logging")
class TestMain:
    """Tests for main entry point."""

    @patch("oss_uploader.cli.run_upload")
    @patch("oss_uploader.cli.load_config")
    def test_returns_0_on_success(self, mock_load, mock_run, _logging):
        """Should return 0 when the upload succeeds."""
        assert main(UPLOAD_ARGS) == EXIT_OK
        mock_run.assert_called_once()
        assert mock_run.call_args.args[0] is mock_load.return_value

    @patch("oss_uploader.cli.run_upload")
    @patch("oss_uploader.cli.load_config")
    def test_config_error(self, mock_load, mock_run, _logging, capsys):
        """Should return 2 and not upload when config is invalid."""
        mock_load.side_effect = ConfigurationError("Missing required parameters: --bucket")

        assert main([]) == EXIT_CONFIG_ERROR
        mock_run.assert_not_called()
        assert "Configuration error: Missing required parameters" in capsys.readouterr().err

    @pytest.mark.parametrize("error,code", [
        (FileNotFound("file not exists [/tmp/db.tar]"), EXIT_LOCAL_IO_ERROR),
        (LocalIOError("Read failed"), EXIT_LOCAL_IO_ERROR),
        (BackendError("Upload of part 2 failed: HTTP 403"), EXIT_BACKEND_ERROR),
        (InvariantViolation("Part 1 recorded twice"), EXIT_INVARIANT_VIOLATION),
        (ConfigurationError("use a part size of at least 2 bytes"), EXIT_CONFIG_ERROR),
    ])
    @patch("oss_uploader.cli.run_upload")
    @patch("oss_uploader.cli.load_config")
    def test_error_exit_codes(self, mock_load, mock_run, _logging, error, code, capsys):
        """Each error kind maps to its exit code and a stderr message."""
        mock_run.side_effect = error

        assert main(UPLOAD_ARGS) == code
        assert str(error) in capsys.readouterr().err

    @patch("oss_uploader.cli.run_upload")
    def test_endpoint_without_scheme(self, mock_run, _logging, monkeypatch):
        """A bare OSS host reaches the upload as an https URL."""
        monkeypatch.setenv("ACCESS_KEY", "test-key")
        monkeypatch.setenv("ACCESS_SECRET", "test-secret")
        argv = ["--endpoint", "oss-cn-hangzhou.aliyuncs.com"] + UPLOAD_ARGS[2:] + ["-q"]

        assert main(argv) == EXIT_OK

        config = mock_run.call_args.args[0]
        assert config.endpoint_url == "https://oss-cn-hangzhou.aliyuncs.com"
        assert config.region_name == "oss-cn-hangzhou"

    @patch("oss_uploader.cli.run_upload")
    def test_unusable_endpoint_is_config_error(self, mock_run, _logging, monkeypatch, capsys):
        """A non-http endpoint exits 2 before any backend call."""
        monkeypatch.setenv("ACCESS_KEY", "test-key")
        monkeypatch.setenv("ACCESS_SECRET", "test-secret")
        argv = ["--endpoint", "ftp://files.example.com"] + UPLOAD_ARGS[2:]

        assert main(argv) == EXIT_CONFIG_ERROR
        mock_run.assert_not_called()
        assert "Configuration error: Invalid endpoint" in capsys.readouterr().err

    @patch("oss_uploader.cli.run_upload")
    @patch("oss_uploader.cli.load_config")
    def test_uses_composite_reporter(self, mock_load, mock_run, _logging):
        """Should use CompositeReporter when multiple reporters needed."""
        main(UPLOAD_ARGS + ["--json-output", "results.json"])

        assert isinstance(mock_run.call_args.args[1], CompositeReporter)

    @patch("oss_uploader.cli.run_upload")
    @patch("oss_uploader.cli.load_config")
    def test_single_reporter_used_directly(self, mock_load, mock_run, _logging):
        """A lone ConsoleReporter is passed without wrapping."""
        main(UPLOAD_ARGS)

        assert isinstance(mock_run.call_args.args[1], ConsoleReporter)

    @patch("oss_uploader.cli.run_upload")
    @patch("oss_uploader.cli.load_config")
    def test_verbose_enables_debug_logging(self, mock_load, mock_run, mock_logging):
        """-v turns on debug logging."""
        main(UPLOAD_ARGS + ["-v"])

        mock_logging.assert_called_once_with(True)
