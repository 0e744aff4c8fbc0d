"""Lifecycle management for the collector subprocess."""

import asyncio
import signal
from enum import Enum
from pathlib import Path

from otel_lambda.collector.components import (
    CollectorError,
    Components,
    load_collector_config,
)
from otel_lambda.config import ExtensionConfig
from otel_lambda.logging import get_logger

logger = get_logger("collector")


class CollectorStartError(CollectorError):
    """The collector could not be brought up."""


class CollectorStopError(CollectorError):
    """The collector did not shut down cleanly."""


class CollectorStateError(CollectorError):
    """A lifecycle method was called in the wrong state."""


class SupervisorState(str, Enum):
    NEW = "new"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class CollectorSupervisor:
    """Owns the single collector process for the lifetime of the extension.

    start() and stop() are called from the main task only, once each.
    The state only moves forward: a stopped supervisor cannot be restarted.
    """

    def __init__(
        self,
        binary: Path,
        components: Components,
        startup_grace_seconds: float = 0.5,
        stop_timeout_seconds: float = 5.0,
    ) -> None:
        """Initialize the supervisor.

        Args:
            binary: Path to the collector executable
            components: Component factories the binary provides
            startup_grace_seconds: How long the process must survive after
                spawning to count as started
            stop_timeout_seconds: How long to wait for a graceful flush
                before killing the process
        """
        self._binary = binary
        self._components = components
        self._startup_grace = startup_grace_seconds
        self._stop_timeout = stop_timeout_seconds
        self._process: asyncio.subprocess.Process | None = None
        self._state = SupervisorState.NEW

    @classmethod
    def from_config(cls, config: ExtensionConfig, components: Components) -> "CollectorSupervisor":
        return cls(
            binary=config.collector_binary,
            components=components,
            startup_grace_seconds=config.startup_grace_seconds,
            stop_timeout_seconds=config.stop_timeout_seconds,
        )

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self, config_path: Path) -> None:
        """Validate the configuration and launch the collector.

        Raises:
            CollectorStateError: If start was already called
            CollectorStartError: If the config is unusable, the binary cannot
                be spawned, or the process exits during the grace period
        """
        if self._state is not SupervisorState.NEW:
            raise CollectorStateError(f"Cannot start collector in state {self._state.value}")

        try:
            self._components.validate(load_collector_config(config_path))
        except CollectorError as e:
            raise CollectorStartError(str(e)) from e

        logger.info("Starting collector: binary=%s config=%s", self._binary, config_path)
        try:
            process = await asyncio.create_subprocess_exec(
                str(self._binary),
                "--config",
                str(config_path),
            )
        except OSError as e:
            raise CollectorStartError(f"Cannot launch collector {self._binary}: {e}") from e

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self._startup_grace)
        except asyncio.TimeoutError:
            self._process = process
            self._state = SupervisorState.RUNNING
            logger.info("Collector running: pid=%d", process.pid)
            return

        raise CollectorStartError(f"Collector exited during startup with code {returncode}")

    async def stop(self) -> None:
        """Shut the collector down, waiting for in-flight telemetry to flush.

        Raises:
            CollectorStateError: If the collector was never started
            CollectorStopError: If the collector had to be killed or exited non-zero
        """
        if self._state is SupervisorState.STOPPED:
            logger.debug("Collector already stopped")
            return
        if self._state is not SupervisorState.RUNNING or self._process is None:
            raise CollectorStateError(f"Cannot stop collector in state {self._state.value}")

        self._state = SupervisorState.STOPPING
        process = self._process
        try:
            if process.returncode is not None:
                logger.warning("Collector already exited: code=%d", process.returncode)
                returncode = process.returncode
            else:
                logger.info("Stopping collector: pid=%d", process.pid)
                process.terminate()
                try:
                    returncode = await asyncio.wait_for(process.wait(), timeout=self._stop_timeout)
                except asyncio.TimeoutError:
                    process.kill()
                    await process.wait()
                    raise CollectorStopError(
                        f"Collector did not exit within {self._stop_timeout}s and was killed"
                    ) from None
        finally:
            self._state = SupervisorState.STOPPED
            self._process = None

        # SIGTERM as the exit cause is a clean shutdown
        if returncode not in (0, -signal.SIGTERM):
            raise CollectorStopError(f"Collector exited with code {returncode}")
        logger.info("Collector stopped: code=%d", returncode)
