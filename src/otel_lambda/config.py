"""Configuration loading from the Lambda execution environment."""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import httpx

RUNTIME_API_ENV = "AWS_LAMBDA_RUNTIME_API"
EXTENSION_NAME_ENV = "OPENTELEMETRY_EXTENSION_NAME"
SSM_PARAMETER_ENV = "OPENTELEMETRY_SSM_PARAMETER_NAME"
CONFIG_FILE_ENV = "OPENTELEMETRY_COLLECTOR_CONFIG_FILE"
COLLECTOR_BINARY_ENV = "OPENTELEMETRY_COLLECTOR_BINARY"
STARTUP_GRACE_ENV = "OPENTELEMETRY_COLLECTOR_STARTUP_GRACE"
STOP_TIMEOUT_ENV = "OPENTELEMETRY_COLLECTOR_STOP_TIMEOUT"

DEFAULT_CONFIG_PATH = Path("/opt/collector-config/config.yaml")
SSM_CONFIG_PATH = Path("/tmp/ssm_collector.yml")
DEFAULT_COLLECTOR_BINARY = Path("/opt/collector/otelcol")


class ConfigError(Exception):
    """Raised when the environment cannot produce a usable configuration."""


@dataclass
class ExtensionConfig:
    runtime_api: str
    # Lambda only accepts a registration whose name matches the executable's file name
    extension_name: str
    ssm_parameter_name: str | None = None
    config_file: Path | None = None
    collector_binary: Path = DEFAULT_COLLECTOR_BINARY
    startup_grace_seconds: float = 0.5
    stop_timeout_seconds: float = 5.0


def _get_str(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key, "").strip()
    return value or None


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = _get_str(environ, key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{key} must not be negative, got {raw!r}")
    return value


def load_config(
    environ: Mapping[str, str] | None = None,
    argv0: str | None = None,
) -> ExtensionConfig:
    """Build the extension configuration from environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)
        argv0: Path the extension was launched as (defaults to sys.argv[0])

    Returns:
        Validated ExtensionConfig

    Raises:
        ConfigError: If the runtime API address or extension name is missing or
            malformed, or a numeric setting does not parse
    """
    if environ is None:
        environ = os.environ
    if argv0 is None:
        argv0 = sys.argv[0]

    runtime_api = _get_str(environ, RUNTIME_API_ENV)
    if runtime_api is None:
        raise ConfigError(f"{RUNTIME_API_ENV} is not set; not running inside Lambda?")
    try:
        httpx.URL(f"http://{runtime_api}/")
    except httpx.InvalidURL as e:
        raise ConfigError(f"{RUNTIME_API_ENV} is not a valid host:port, got {runtime_api!r}: {e}") from None

    extension_name = _get_str(environ, EXTENSION_NAME_ENV) or Path(argv0).name
    if not extension_name:
        raise ConfigError("Cannot determine extension name from executable path")
    # HTTP headers carry the name, so it must be ASCII
    if not extension_name.isascii():
        raise ConfigError(f"Extension name must be ASCII, got {extension_name!r}")

    config_file = _get_str(environ, CONFIG_FILE_ENV)
    collector_binary = _get_str(environ, COLLECTOR_BINARY_ENV)

    return ExtensionConfig(
        runtime_api=runtime_api,
        extension_name=extension_name,
        ssm_parameter_name=_get_str(environ, SSM_PARAMETER_ENV),
        config_file=Path(config_file) if config_file else None,
        collector_binary=Path(collector_binary) if collector_binary else DEFAULT_COLLECTOR_BINARY,
        startup_grace_seconds=_get_float(environ, STARTUP_GRACE_ENV, 0.5),
        stop_timeout_seconds=_get_float(environ, STOP_TIMEOUT_ENV, 5.0),
    )
