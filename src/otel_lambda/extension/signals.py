"""Translate process termination signals into cancellation."""

import asyncio
import signal
from collections.abc import Iterable

from otel_lambda.extension.cancellation import CancellationToken
from otel_lambda.logging import get_logger

logger = get_logger("extension")

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalBridge:
    """Cancels the shared token on the first termination signal.

    Handlers run as callbacks on the event loop, so the only state shared
    with the event loop task is the token itself.
    """

    def __init__(
        self,
        cancel: CancellationToken,
        signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
    ) -> None:
        self._cancel = cancel
        self._signals = tuple(signals)
        self._loop: asyncio.AbstractEventLoop | None = None

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if loop is None:
            loop = asyncio.get_running_loop()
        for sig in self._signals:
            loop.add_signal_handler(sig, self.handle, sig)
        self._loop = loop

    def remove(self) -> None:
        if self._loop is None:
            return
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._loop = None

    def handle(self, signum: int) -> None:
        """Handle a termination signal."""
        sig_name = signal.Signals(signum).name
        if self._cancel.cancel(f"signal {sig_name}"):
            logger.info("Received signal %s, shutting down", sig_name)
        else:
            logger.debug("Received signal %s, shutdown already in progress", sig_name)
