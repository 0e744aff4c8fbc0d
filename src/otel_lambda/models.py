"""Data models for the Lambda Extensions API."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Lifecycle event kinds the extension subscribes to."""

    INVOKE = "INVOKE"
    SHUTDOWN = "SHUTDOWN"


@dataclass
class RegistrationResult:
    """Outcome of registering with the Extensions API."""

    extension_id: str
    function_name: str = ""
    function_version: str = ""
    handler: str = ""


@dataclass
class LifecycleEvent:
    """A single event returned by the next-event long-poll."""

    event_type: str  # INVOKE, SHUTDOWN, or anything newer the host sends
    deadline_ms: int | None = None
    request_id: str | None = None
    invoked_function_arn: str | None = None
    shutdown_reason: str | None = None  # spindown, timeout, failure
    tracing: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_shutdown(self) -> bool:
        return self.event_type == EventType.SHUTDOWN.value

    @property
    def is_invoke(self) -> bool:
        return self.event_type == EventType.INVOKE.value

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> "LifecycleEvent":
        """Build an event from the decoded next-event response body."""
        return cls(
            event_type=str(payload.get("eventType", "")),
            deadline_ms=payload.get("deadlineMs"),
            request_id=payload.get("requestId"),
            invoked_function_arn=payload.get("invokedFunctionArn"),
            shutdown_reason=payload.get("shutdownReason"),
            tracing=payload.get("tracing") or {},
            raw=payload,
        )
