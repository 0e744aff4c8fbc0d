"""Logging configuration for the Lambda extension.

Lambda captures everything the extension writes to stdout/stderr, so the
console handler is the primary sink. A file handler can be added for local
runs.
"""

import logging
import sys
from pathlib import Path


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for an extension component.

    Configures the `otel_lambda` parent logger so that module loggers
    obtained through get_logger() share its handlers.

    Args:
        name: Component name (used for the log filename)
        log_dir: Directory for log files (no file output when None)
        level: Logging level (defaults to INFO)
        console: Whether to log to stderr (defaults to True)

    Returns:
        Configured logger instance for the component
    """
    root = logging.getLogger("otel_lambda")
    root.setLevel(level)

    logger = logging.getLogger(f"otel_lambda.{name}")

    # Avoid adding duplicate handlers if already configured
    if root.handlers:
        for handler in root.handlers:
            handler.setLevel(level)
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for an extension component.

    Args:
        name: Logger name (will be prefixed with 'otel_lambda.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"otel_lambda.{name}")
