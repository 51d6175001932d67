"""Configuration loading for the uploader.

Supports three configuration sources, highest priority first:
1. Command-line flags
2. Environment variables
3. An optional JSON settings file (--config), for non-secret settings

Credentials are read from the environment only. An endpoint given without
a scheme gets https://, and for Aliyun OSS endpoints the signing region
defaults to the one named in the host (oss-cn-hangzhou.aliyuncs.com signs
for oss-cn-hangzhou).

Environment Variable Format:
    ACCESS_KEY=xxx              (alias: OSS_ACCESS_KEY_ID)
    ACCESS_SECRET=xxx           (alias: OSS_ACCESS_KEY_SECRET)
    OSS_ENDPOINT=https://oss-cn-hangzhou.aliyuncs.com
    OSS_BUCKET=my-bucket
    OSS_REGION=oss-cn-hangzhou
    OSS_PART_SIZE=1GiB
    OSS_PART_COUNT=8
    OSS_CONCURRENCY=4

Settings File Format:
    {
      "endpoint_url": "https://oss-cn-hangzhou.aliyuncs.com",
      "bucket_name": "my-bucket",
      "region_name": "oss-cn-hangzhou",
      "addressing_style": "virtual",
      "part_size": "1GiB",
      "part_count": 8,
      "concurrency": 4,
      "max_attempts": 3,
      "abort_on_failure": true
    }
"""

import json
import os
import re
from argparse import Namespace
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from oss_uploader.errors import ConfigurationError
from oss_uploader.models import UploadConfig
from oss_uploader.planner import MAX_PART_COUNT

ACCESS_KEY_VARS = ("ACCESS_KEY", "OSS_ACCESS_KEY_ID")
ACCESS_SECRET_VARS = ("ACCESS_SECRET", "OSS_ACCESS_KEY_SECRET")

# Settings a JSON file may provide, mapped to their environment variable
SETTINGS_ENV_VARS = {
    "endpoint_url": "OSS_ENDPOINT",
    "bucket_name": "OSS_BUCKET",
    "region_name": "OSS_REGION",
    "addressing_style": "OSS_ADDRESSING_STYLE",
    "part_size": "OSS_PART_SIZE",
    "part_count": "OSS_PART_COUNT",
    "concurrency": "OSS_CONCURRENCY",
    "max_attempts": "OSS_MAX_ATTEMPTS",
    "abort_on_failure": None,
}

ADDRESSING_STYLES = ("virtual", "path", "auto")

# Host of an Aliyun OSS endpoint, optionally prefixed (bucket., s3.) and
# optionally the -internal variant; group 1 is the region
_OSS_HOST_PATTERN = re.compile(
    r"(?:^|\.)(oss-[a-z0-9-]+?)(?:-internal)?\.aliyuncs\.com$"
)

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1000, "kb": 1000, "kib": 1 << 10,
    "m": 1000 ** 2, "mb": 1000 ** 2, "mib": 1 << 20,
    "g": 1000 ** 3, "gb": 1000 ** 3, "gib": 1 << 30,
    "t": 1000 ** 4, "tb": 1000 ** 4, "tib": 1 << 40,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def parse_size(value: Any) -> int:
    """Parse a byte size such as 1073741824, "500MB" or "1GiB".

    Raises:
        ConfigurationError: If the value is not a recognisable size.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        return value

    match = _SIZE_PATTERN.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid size: {value!r}")

    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.lower())
    if multiplier is None:
        raise ConfigurationError(f"Unknown size unit '{unit}' in {value!r}")
    return int(float(number) * multiplier)


def normalize_endpoint(endpoint: str) -> str:
    """Return endpoint as an http(s) URL, adding https:// when no scheme is given.

    Raises:
        ConfigurationError: If the endpoint is not a usable http(s) URL.
    """
    endpoint = endpoint.strip()
    if "://" not in endpoint:
        endpoint = f"https://{endpoint}"

    try:
        parts = urlsplit(endpoint)
        host = parts.hostname
    except ValueError as e:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: {e}") from e

    if parts.scheme not in ("http", "https"):
        raise ConfigurationError(
            f"Invalid endpoint {endpoint!r}: scheme must be http or https"
        )
    if not host:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: no host name")
    return endpoint


def region_from_endpoint(endpoint: str) -> Optional[str]:
    """Return the OSS region named by an Aliyun endpoint host, if any."""
    host = urlsplit(endpoint).hostname or ""
    match = _OSS_HOST_PATTERN.search(host)
    if not match or match.group(1).startswith("oss-accelerate"):
        return None
    return match.group(1)


def load_settings_file(config_path: str) -> dict[str, Any]:
    """Load non-secret settings from a JSON file.

    Raises:
        ConfigurationError: If file doesn't exist, contains invalid JSON, is not
                    an object, or contains credentials or unknown keys.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a JSON object")

    unknown = sorted(set(data) - set(SETTINGS_ENV_VARS))
    if unknown:
        raise ConfigurationError(
            f"Unsupported settings in {config_path}: {', '.join(unknown)} "
            "(credentials must come from the environment)"
        )

    return data


def _first_env(environ: Mapping[str, str], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _pick(flag: Any, environ: Mapping[str, str], setting: str, settings: dict) -> Any:
    """Return the first value set among flag, environment and settings file."""
    if flag is not None:
        return flag
    env_var = SETTINGS_ENV_VARS.get(setting)
    if env_var and environ.get(env_var):
        return environ[env_var]
    return settings.get(setting)


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def load_config(
    args: Namespace,
    environ: Optional[Mapping[str, str]] = None,
) -> UploadConfig:
    """Build the upload configuration from flags, environment and settings file.

    Args:
        args: Parsed command-line arguments.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        A validated UploadConfig.

    Raises:
        ConfigurationError: If any required value is missing (all missing
                    values are listed at once) or a value is invalid.
    """
    if environ is None:
        environ = os.environ

    settings: dict[str, Any] = {}
    if getattr(args, "config", None):
        settings = load_settings_file(args.config)

    values = {
        "endpoint_url": _pick(args.endpoint, environ, "endpoint_url", settings),
        "bucket_name": _pick(args.bucket, environ, "bucket_name", settings),
        "object_key": args.object,
        "file_path": args.file,
        "access_key_id": _first_env(environ, ACCESS_KEY_VARS),
        "access_key_secret": _first_env(environ, ACCESS_SECRET_VARS),
    }

    labels = {
        "endpoint_url": "--endpoint",
        "bucket_name": "--bucket",
        "object_key": "--object",
        "file_path": "--file",
        "access_key_id": "ACCESS_KEY environment variable",
        "access_key_secret": "ACCESS_SECRET environment variable",
    }
    missing = [labels[name] for name, value in values.items() if not value]
    if missing:
        raise ConfigurationError(f"Missing required parameters: {', '.join(missing)}")

    values["endpoint_url"] = normalize_endpoint(values["endpoint_url"])

    optional: dict[str, Any] = {}

    region = _pick(getattr(args, "region", None), environ, "region_name", settings)
    if not region:
        region = region_from_endpoint(values["endpoint_url"])
    if region:
        optional["region_name"] = region

    style = _pick(getattr(args, "addressing_style", None), environ, "addressing_style", settings)
    if style:
        optional["addressing_style"] = style

    part_size = _pick(getattr(args, "part_size", None), environ, "part_size", settings)
    if part_size is not None:
        optional["part_size"] = parse_size(part_size)

    part_count = _pick(getattr(args, "part_count", None), environ, "part_count", settings)
    if part_count is not None:
        optional["part_count"] = _parse_int("part count", part_count)

    concurrency = _pick(getattr(args, "concurrency", None), environ, "concurrency", settings)
    if concurrency is not None:
        optional["concurrency"] = _parse_int("concurrency", concurrency)

    max_attempts = _pick(getattr(args, "max_attempts", None), environ, "max_attempts", settings)
    if max_attempts is not None:
        optional["max_attempts"] = _parse_int("max attempts", max_attempts)

    if getattr(args, "keep_abandoned", False):
        optional["abort_on_failure"] = False
    elif "abort_on_failure" in settings:
        abort_on_failure = settings["abort_on_failure"]
        if not isinstance(abort_on_failure, bool):
            raise ConfigurationError(
                f"abort_on_failure must be true or false, got {abort_on_failure!r}"
            )
        optional["abort_on_failure"] = abort_on_failure

    config = UploadConfig(**values, **optional)
    validate(config)
    return config


def validate(config: UploadConfig) -> None:
    """Check value ranges of a configuration.

    Raises:
        ConfigurationError: If any value is out of range.
    """
    if "://" not in config.endpoint_url:
        raise ConfigurationError(
            f"Endpoint must include http:// or https://, got {config.endpoint_url!r}"
        )
    normalize_endpoint(config.endpoint_url)
    if config.part_size <= 0:
        raise ConfigurationError(f"Part size must be positive, got {config.part_size}")
    if config.part_count is not None and not 0 < config.part_count <= MAX_PART_COUNT:
        raise ConfigurationError(
            f"Part count must be between 1 and {MAX_PART_COUNT}, got {config.part_count}"
        )
    if config.concurrency <= 0:
        raise ConfigurationError(f"Concurrency must be positive, got {config.concurrency}")
    if config.max_attempts <= 0:
        raise ConfigurationError(f"Max attempts must be positive, got {config.max_attempts}")
    if config.http_timeout <= 0:
        raise ConfigurationError(f"HTTP timeout must be positive, got {config.http_timeout}")
    if config.addressing_style not in ADDRESSING_STYLES:
        raise ConfigurationError(
            f"Addressing style must be one of {', '.join(ADDRESSING_STYLES)}, "
            f"got {config.addressing_style!r}"
        )
