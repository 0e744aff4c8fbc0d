"""Resolution of the collector configuration file path."""

from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from otel_lambda.config import DEFAULT_CONFIG_PATH, SSM_CONFIG_PATH, ExtensionConfig
from otel_lambda.logging import get_logger

logger = get_logger("resolver")


class ConfigResolver:
    """Decides which configuration document the collector is started with.

    A document stored in SSM Parameter Store wins; it is written verbatim to
    a fixed file under /tmp. Without it, the local override path is used,
    and failing that the path bundled with the layer.
    """

    def __init__(
        self,
        ssm_client: Any | None = None,
        parameter_name: str | None = None,
        local_path: Path | None = None,
        temp_path: Path = SSM_CONFIG_PATH,
        default_path: Path = DEFAULT_CONFIG_PATH,
    ) -> None:
        """Initialize the resolver.

        Args:
            ssm_client: boto3 SSM client; remote lookup is skipped when None
            parameter_name: Name of the SSM parameter holding the document
            local_path: Local configuration override
            temp_path: Where a fetched document is written
            default_path: Fallback when no override is configured
        """
        self._ssm_client = ssm_client
        self._parameter_name = parameter_name
        self._local_path = local_path
        self._temp_path = temp_path
        self._default_path = default_path

    @classmethod
    def from_config(cls, config: ExtensionConfig, ssm_client: Any | None = None) -> "ConfigResolver":
        return cls(
            ssm_client=ssm_client,
            parameter_name=config.ssm_parameter_name,
            local_path=config.config_file,
        )

    def resolve(self) -> Path:
        """Return the path of the configuration document to use.

        Never raises: a failed remote lookup degrades to the local path.
        """
        if self._parameter_name and self._ssm_client is not None:
            try:
                return self.fetch_parameter()
            except (BotoCoreError, ClientError, OSError, KeyError) as e:
                logger.error(
                    "Failed to load collector config from SSM: parameter=%s error=%s",
                    self._parameter_name,
                    e,
                )
        elif self._parameter_name:
            logger.warning(
                "SSM parameter %s configured but no SSM client available",
                self._parameter_name,
            )

        return self.local_path()

    def fetch_parameter(self) -> Path:
        """Fetch the parameter and write its value to the temp path."""
        response = self._ssm_client.get_parameter(
            Name=self._parameter_name,
            WithDecryption=True,
        )
        value = response["Parameter"]["Value"]

        self._temp_path.write_bytes(value.encode("utf-8"))
        logger.info(
            "Loaded collector config from SSM: parameter=%s path=%s",
            self._parameter_name,
            self._temp_path,
        )
        return self._temp_path

    def local_path(self) -> Path:
        if self._local_path is not None:
            logger.info("Using config file at path %s", self._local_path)
            return self._local_path
        logger.debug("Using default config file at path %s", self._default_path)
        return self._default_path
