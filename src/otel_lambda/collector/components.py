"""Registry of collector component factories bundled with the layer."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from otel_lambda.logging import get_logger

logger = get_logger("components")

COMPONENT_SECTIONS = ("receivers", "processors", "exporters", "extensions")


class CollectorError(Exception):
    """Base class for collector lifecycle failures."""


class CollectorConfigError(CollectorError):
    """The configuration document cannot be used with the bundled components."""


@dataclass(frozen=True)
class Components:
    """Component types the bundled collector binary can instantiate."""

    receivers: frozenset[str]
    processors: frozenset[str]
    exporters: frozenset[str]
    extensions: frozenset[str]

    def factories(self, section: str) -> frozenset[str]:
        return getattr(self, section)

    def validate(self, document: Any) -> None:
        """Check that every configured component has a factory.

        Component ids take the form ``type`` or ``type/name``; only the type
        part is matched against the registry.

        Raises:
            CollectorConfigError: On a malformed document or unknown component type
        """
        if not isinstance(document, dict):
            raise CollectorConfigError("Collector config must be a mapping")

        unknown = []
        for section in COMPONENT_SECTIONS:
            entries = document.get(section)
            if not entries:
                continue
            if not isinstance(entries, dict):
                raise CollectorConfigError(f"Section '{section}' must be a mapping")

            available = self.factories(section)
            for component_id in entries:
                component_type = str(component_id).split("/", 1)[0]
                if component_type not in available:
                    unknown.append(f"{section}/{component_id}")

        if unknown:
            raise CollectorConfigError(f"Unknown component types: {', '.join(unknown)}")


def default_components() -> Components:
    """Return the components compiled into the Lambda collector distribution."""
    return Components(
        receivers=frozenset({"otlp", "telemetryapi"}),
        processors=frozenset({
            "attributes",
            "batch",
            "decouple",
            "filter",
            "memory_limiter",
            "probabilistic_sampler",
            "resource",
            "span",
        }),
        exporters=frozenset({"debug", "logging", "otlp", "otlphttp", "prometheusremotewrite"}),
        extensions=frozenset({"basicauth", "sigv4auth"}),
    )


def load_collector_config(config_path: Path) -> dict[str, Any]:
    """Load a collector configuration document from YAML.

    An empty file loads as an empty mapping.
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise CollectorConfigError(f"Cannot read collector config {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise CollectorConfigError(f"Invalid YAML in collector config {config_path}: {e}") from e

    if data is None:
        logger.warning("Collector config is empty: path=%s", config_path)
        return {}
    if not isinstance(data, dict):
        raise CollectorConfigError(f"Collector config {config_path} must be a mapping")
    return data
