"""Extension main loop: startup sequencing and lifecycle event processing."""

import asyncio
from enum import Enum
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError

from otel_lambda.collector.components import CollectorError, default_components
from otel_lambda.collector.resolver import ConfigResolver
from otel_lambda.collector.supervisor import CollectorSupervisor
from otel_lambda.config import ExtensionConfig
from otel_lambda.extension.cancellation import CancellationToken, OperationCancelled
from otel_lambda.extension.client import ExtensionAPIError, ExtensionClient
from otel_lambda.extension.signals import SignalBridge
from otel_lambda.logging import get_logger

logger = get_logger("extension")


class ExitReason(str, Enum):
    SHUTDOWN = "shutdown"
    CANCELLED = "cancelled"
    POLL_FAILED = "poll_failed"


async def stop_collector(supervisor: CollectorSupervisor) -> None:
    """Stop the collector, logging rather than raising on failure.

    The host is tearing the environment down, so a failed flush cannot be retried.
    """
    try:
        await supervisor.stop()
    except CollectorError:
        logger.exception("Error stopping collector")


async def process_events(
    client: ExtensionClient,
    supervisor: CollectorSupervisor,
    cancel: CancellationToken,
) -> ExitReason:
    """Consume lifecycle events until shutdown, cancellation, or a poll failure.

    Only the SHUTDOWN path stops the collector; the caller must stop it on
    the other exit paths.

    Args:
        client: Registered Extensions API client
        supervisor: Supervisor of the running collector
        cancel: Shared cancellation token

    Returns:
        Why the loop exited
    """
    while True:
        if cancel.cancelled:
            logger.info("Cancellation requested: reason=%s", cancel.reason)
            return ExitReason.CANCELLED

        logger.debug("Waiting for event...")
        try:
            event = await client.next_event(cancel)
        except OperationCancelled:
            logger.info("Event poll cancelled: reason=%s", cancel.reason)
            return ExitReason.CANCELLED
        except ExtensionAPIError as e:
            logger.error("Error polling for events: %s", e)
            return ExitReason.POLL_FAILED

        if event.is_shutdown:
            logger.info("Received SHUTDOWN event: reason=%s", event.shutdown_reason)
            await stop_collector(supervisor)
            return ExitReason.SHUTDOWN

        if event.is_invoke:
            logger.debug("Received INVOKE event: request_id=%s", event.request_id)
        else:
            logger.info("Ignoring event of unknown type: type=%s", event.event_type)


def create_ssm_client(config: ExtensionConfig) -> Any | None:
    """Create an SSM client when a parameter name is configured."""
    if not config.ssm_parameter_name:
        return None
    try:
        return boto3.client("ssm")
    except BotoCoreError as e:
        logger.error("Cannot create SSM client: %s", e)
        return None


async def run_extension(
    config: ExtensionConfig,
    *,
    resolver: ConfigResolver | None = None,
    supervisor: CollectorSupervisor | None = None,
    client: ExtensionClient | None = None,
    cancel: CancellationToken | None = None,
    bridge: SignalBridge | None = None,
) -> int:
    """Run the extension from startup to exit.

    Resolves the collector config, starts the collector, registers with the
    host, then processes events. The collector is stopped on every exit path
    once it has started.

    Returns:
        Process exit code: 1 for startup failures, 0 otherwise
    """
    if cancel is None:
        cancel = CancellationToken()
    if resolver is None:
        resolver = ConfigResolver.from_config(config, create_ssm_client(config))
    if supervisor is None:
        supervisor = CollectorSupervisor.from_config(config, default_components())
    if client is None:
        client = ExtensionClient(config.runtime_api)
    if bridge is None:
        bridge = SignalBridge(cancel)

    bridge.install()
    try:
        config_path = await asyncio.to_thread(resolver.resolve)

        try:
            await supervisor.start(config_path)
        except CollectorError as e:
            logger.critical("Failed to start the extension: %s", e)
            return 1

        reason: ExitReason | None = None
        try:
            try:
                await client.register(config.extension_name, cancel)
            except OperationCancelled:
                logger.info("Registration cancelled: reason=%s", cancel.reason)
                return 0
            except ExtensionAPIError as e:
                logger.critical("Cannot register extension: %s", e)
                return 1

            reason = await process_events(client, supervisor, cancel)
            logger.info("Exiting: reason=%s", reason.value)
            return 0
        finally:
            # The SHUTDOWN handler has already stopped it
            if reason is not ExitReason.SHUTDOWN:
                await stop_collector(supervisor)
    finally:
        bridge.remove()
        await client.aclose()
