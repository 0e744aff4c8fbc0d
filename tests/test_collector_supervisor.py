"""Tests for the collector subprocess supervisor."""

import os
import stat
from pathlib import Path

import pytest

from otel_lambda.collector.components import default_components
from otel_lambda.collector.supervisor import (
    CollectorStartError,
    CollectorStateError,
    CollectorStopError,
    CollectorSupervisor,
    SupervisorState,
)

# Exits cleanly on SIGTERM, like the collector after flushing
GRACEFUL_COLLECTOR = """\
#!/bin/sh
trap 'exit 0' TERM
while true; do sleep 0.05; done
"""

STUBBORN_COLLECTOR = """\
#!/bin/sh
trap '' TERM
while true; do sleep 0.05; done
"""

CRASHING_COLLECTOR = """\
#!/bin/sh
exit 3
"""


def write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text("receivers:\n  otlp: {}\nexporters:\n  debug: {}\n")
    return path


def make_supervisor(binary: Path, stop_timeout: float = 2.0) -> CollectorSupervisor:
    return CollectorSupervisor(
        binary=binary,
        components=default_components(),
        startup_grace_seconds=0.2,
        stop_timeout_seconds=stop_timeout,
    )


class TestStart:
    """Tests for CollectorSupervisor.start."""

    @pytest.mark.asyncio
    async def test_starts_running_collector(self, tmp_path: Path, config_path: Path) -> None:
        """Should report RUNNING once the process survives the grace period."""
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", GRACEFUL_COLLECTOR))

        await supervisor.start(config_path)
        try:
            assert supervisor.state is SupervisorState.RUNNING
            assert supervisor.pid is not None
        finally:
            await supervisor.stop()

    @pytest.mark.asyncio
    async def test_passes_config_argument(self, tmp_path: Path, config_path: Path) -> None:
        """Should launch the binary with --config <path>."""
        args_file = tmp_path / "args.txt"
        script = GRACEFUL_COLLECTOR.replace(
            "trap", f'echo "$@" > {args_file}\ntrap', 1
        )
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", script))

        await supervisor.start(config_path)
        await supervisor.stop()

        assert args_file.read_text().strip() == f"--config {config_path}"

    @pytest.mark.asyncio
    async def test_early_exit_fails_start(self, tmp_path: Path, config_path: Path) -> None:
        """Should fail when the collector exits during the grace period."""
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", CRASHING_COLLECTOR))

        with pytest.raises(CollectorStartError, match="code 3"):
            await supervisor.start(config_path)

        assert supervisor.state is SupervisorState.NEW

    @pytest.mark.asyncio
    async def test_missing_binary_fails_start(self, tmp_path: Path, config_path: Path) -> None:
        """Should fail when the binary does not exist."""
        supervisor = make_supervisor(tmp_path / "absent")

        with pytest.raises(CollectorStartError, match="Cannot launch"):
            await supervisor.start(config_path)

    @pytest.mark.asyncio
    async def test_invalid_config_fails_before_launch(self, tmp_path: Path) -> None:
        """Should not spawn the collector for a config with unknown components."""
        marker = tmp_path / "launched"
        script = write_script(tmp_path / "otelcol", f"#!/bin/sh\ntouch {marker}\nsleep 5\n")
        bad_config = tmp_path / "bad.yaml"
        bad_config.write_text("receivers:\n  jaeger: {}\n")
        supervisor = make_supervisor(script)

        with pytest.raises(CollectorStartError, match="receivers/jaeger"):
            await supervisor.start(bad_config)

        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_second_start_rejected(self, tmp_path: Path, config_path: Path) -> None:
        """Should refuse to start a second collector instance."""
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", GRACEFUL_COLLECTOR))
        await supervisor.start(config_path)

        try:
            with pytest.raises(CollectorStateError):
                await supervisor.start(config_path)
        finally:
            await supervisor.stop()


class TestStop:
    """Tests for CollectorSupervisor.stop."""

    @pytest.mark.asyncio
    async def test_graceful_stop(self, tmp_path: Path, config_path: Path) -> None:
        """Should terminate the process and end in STOPPED."""
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", GRACEFUL_COLLECTOR))
        await supervisor.start(config_path)
        pid = supervisor.pid

        await supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert supervisor.pid is None
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    @pytest.mark.asyncio
    async def test_stop_timeout_kills(self, tmp_path: Path, config_path: Path) -> None:
        """Should kill a collector that ignores SIGTERM and report the failure."""
        supervisor = make_supervisor(
            write_script(tmp_path / "otelcol", STUBBORN_COLLECTOR),
            stop_timeout=0.3,
        )
        await supervisor.start(config_path)

        with pytest.raises(CollectorStopError, match="killed"):
            await supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED

    @pytest.mark.asyncio
    async def test_repeated_stop_is_noop(self, tmp_path: Path, config_path: Path) -> None:
        """Should ignore a second stop."""
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", GRACEFUL_COLLECTOR))
        await supervisor.start(config_path)

        await supervisor.stop()
        await supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_without_start_rejected(self, tmp_path: Path) -> None:
        """Should refuse to stop a collector that was never started."""
        supervisor = make_supervisor(tmp_path / "otelcol")

        with pytest.raises(CollectorStateError):
            await supervisor.stop()

    @pytest.mark.asyncio
    async def test_no_restart_after_stop(self, tmp_path: Path, config_path: Path) -> None:
        """Should never re-enter RUNNING once stopped."""
        supervisor = make_supervisor(write_script(tmp_path / "otelcol", GRACEFUL_COLLECTOR))
        await supervisor.start(config_path)
        await supervisor.stop()

        with pytest.raises(CollectorStateError):
            await supervisor.start(config_path)
