"""Asynchronous client for the Lambda Extensions API."""

from typing import Any

import httpx

from otel_lambda.extension.cancellation import CancellationToken
from otel_lambda.logging import get_logger
from otel_lambda.models import EventType, LifecycleEvent, RegistrationResult

logger = get_logger("extension")

API_VERSION = "2020-01-01"
EXTENSION_NAME_HEADER = "Lambda-Extension-Name"
EXTENSION_ID_HEADER = "Lambda-Extension-Identifier"

# Raised while building a request from a bad address or a non-ASCII header value
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError)


class ExtensionAPIError(Exception):
    """A call to the Extensions API failed."""


class RegistrationError(ExtensionAPIError):
    """The host refused or never answered the registration request."""


class ExtensionClient:
    """Registers the extension and long-polls for lifecycle events.

    The registration identifier returned by the host is kept on the client
    and sent with every subsequent call.
    """

    def __init__(self, runtime_api: str, http_client: httpx.AsyncClient | None = None) -> None:
        self.base_url = f"http://{runtime_api}/{API_VERSION}/extension"
        # event/next blocks until the host has something to say
        self._client = http_client or httpx.AsyncClient(timeout=None)
        self.extension_id: str | None = None

    async def _guarded(self, request: Any, cancel: CancellationToken | None) -> httpx.Response:
        if cancel is None:
            return await request
        return await cancel.guard(request)

    async def register(self, name: str, cancel: CancellationToken | None = None) -> RegistrationResult:
        """Register with the host under `name`.

        Raises:
            RegistrationError: If the host is unreachable or rejects the name
            OperationCancelled: If cancellation fired while waiting
        """
        request = self._client.post(
            f"{self.base_url}/register",
            headers={EXTENSION_NAME_HEADER: name},
            json={"events": [EventType.INVOKE.value, EventType.SHUTDOWN.value]},
        )
        try:
            response = await self._guarded(request, cancel)
        except REQUEST_ERRORS as e:
            raise RegistrationError(f"Registration request failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise RegistrationError(
                f"Registration rejected: status={response.status_code} body={response.text}"
            )

        extension_id = response.headers.get(EXTENSION_ID_HEADER)
        if not extension_id:
            raise RegistrationError(f"Registration response is missing {EXTENSION_ID_HEADER}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        self.extension_id = extension_id
        result = RegistrationResult(
            extension_id=extension_id,
            function_name=body.get("functionName", ""),
            function_version=body.get("functionVersion", ""),
            handler=body.get("handler", ""),
        )
        logger.info(
            "Registered extension: name=%s function=%s version=%s",
            name,
            result.function_name,
            result.function_version,
        )
        return result

    async def next_event(self, cancel: CancellationToken | None = None) -> LifecycleEvent:
        """Block until the host delivers the next lifecycle event.

        Raises:
            ExtensionAPIError: If not registered, or the call fails
            OperationCancelled: If cancellation fired while waiting
        """
        if self.extension_id is None:
            raise ExtensionAPIError("Extension is not registered")

        request = self._client.get(
            f"{self.base_url}/event/next",
            headers={EXTENSION_ID_HEADER: self.extension_id},
        )
        try:
            response = await self._guarded(request, cancel)
        except REQUEST_ERRORS as e:
            raise ExtensionAPIError(f"Next event request failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise ExtensionAPIError(
                f"Next event failed: status={response.status_code} body={response.text}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ExtensionAPIError(f"Next event response is not JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ExtensionAPIError("Next event response is not an object")

        return LifecycleEvent.from_response(payload)

    async def aclose(self) -> None:
        await self._client.aclose()
