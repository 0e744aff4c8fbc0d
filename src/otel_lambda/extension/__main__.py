"""CLI entry point for the Lambda extension.

Lambda launches every executable in /opt/extensions; the layer's wrapper
script runs this module as:
    python -m otel_lambda.extension

When launched through a wrapper, OPENTELEMETRY_EXTENSION_NAME must be set to
the wrapper's file name, since that is the name Lambda expects at registration.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from otel_lambda.config import ConfigError, load_config
from otel_lambda.extension.loop import run_extension
from otel_lambda.logging import setup_logging
from otel_lambda.version import VERSION

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.command()
@click.option(
    "--log-level",
    envvar="OPENTELEMETRY_EXTENSION_LOG_LEVEL",
    default="INFO",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging verbosity",
)
@click.option(
    "--log-dir",
    envvar="OPENTELEMETRY_EXTENSION_LOG_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also write logs to this directory",
)
def cli(log_level: str, log_dir: Path | None) -> None:
    """Run the OpenTelemetry collector as a Lambda extension."""
    logger = setup_logging("extension", log_dir=log_dir, level=getattr(logging, log_level.upper()))
    logger.info("Launching OpenTelemetry Lambda extension: version=%s", VERSION)

    try:
        config = load_config()
    except ConfigError as e:
        logger.critical("Configuration error: %s", e)
        sys.exit(1)

    sys.exit(asyncio.run(run_extension(config)))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
