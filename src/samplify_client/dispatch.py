"""Request dispatcher.

Builds one API request, attaches the bearer token, sends it through httpx,
reads the whole body and classifies the outcome. Knows nothing about
sessions; the token to use is passed in by the caller.
"""

import datetime
import enum
import json
import threading
import time
from typing import IO, Any

import httpx
import pydantic
import structlog

from .config import DEFAULT_TIMEOUT
from .errors import (
    APIError,
    ConfigurationError,
    RequestCancelledError,
    RequestTimeoutError,
    SerializationError,
    TransportError,
)
from .metrics import ClientMetrics
from .types import APIResponse, ErrorDetail, ErrorResponse

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "x-request-id"
JSON_MEDIA_TYPE = "application/json"


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, pydantic.BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, datetime.datetime | datetime.date):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def encode_body(body: Any) -> bytes:
    """Serialize a request body to JSON bytes.

    None encodes to an empty payload. Pydantic models are dumped by alias
    with unset optional fields omitted.

    Raises:
        SerializationError: If the body cannot be represented as JSON.
    """
    if body is None:
        return b""
    try:
        if isinstance(body, pydantic.BaseModel):
            return body.model_dump_json(by_alias=True, exclude_none=True).encode()
        return json.dumps(body, default=_to_jsonable, allow_nan=False).encode()
    except (TypeError, ValueError) as exc:
        msg = f"Cannot serialize request body: {exc}"
        raise SerializationError(msg) from exc


def _raise_if_cancelled(cancel: threading.Event | None, url: str) -> None:
    if cancel is not None and cancel.is_set():
        msg = f"Request to {url} was cancelled"
        raise RequestCancelledError(msg)


class Dispatcher:
    """Sends single API requests and classifies their responses.

    Thread-safe through thread-local storage of httpx.Client instances; all
    of them share the injected transport. Can be used as a context manager
    for automatic cleanup.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        metrics: ClientMetrics | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            timeout: Request timeout in seconds (default: 20.0).
            transport: httpx transport performing the exchanges. The httpx
                default is used when omitted.
            metrics: Metrics to record dispatches on.

        Raises:
            ConfigurationError: If timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ConfigurationError(msg)

        self._timeout = timeout
        self._transport = transport
        self.metrics = metrics or ClientMetrics()

        # Use thread-local storage for httpx.Client (thread safety)
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Get or create the thread-local httpx client.

        Returns:
            Thread-local httpx.Client instance.
        """
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._local.client

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        headers = {"Accept": JSON_MEDIA_TYPE}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def dispatch(
        self,
        method: str,
        base_url: str,
        path: str,
        access_token: str = "",
        body: Any = None,
        params: dict[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> APIResponse:
        """Send one JSON request.

        Args:
            method: HTTP method.
            base_url: Scheme, host and base path of the target service.
            path: Path appended to ``base_url``.
            access_token: Bearer token; no Authorization header when empty.
            body: JSON-serializable payload or pydantic model, or None.
            params: Optional query parameters.
            cancel: Event that aborts the exchange when set. It is checked
                before sending, as soon as the response headers arrive and
                between body chunks. httpx offers no way to interrupt a
                thread blocked waiting for headers, so until they arrive
                only the timeout bounds the wait; a response that arrives
                after ``cancel`` was set is discarded and never returned.

        Returns:
            The response snapshot for statuses below 400.

        Raises:
            SerializationError: If ``body`` cannot be serialized. The
                transport is never reached.
            APIError: If the API answers with status >= 400.
            TransportError: If the exchange fails at the network level.
            RequestCancelledError: If ``cancel`` is set or the request
                times out.
        """
        content = encode_body(body)
        headers = self._headers(access_token)
        headers["Content-Type"] = JSON_MEDIA_TYPE
        return self._send(
            method,
            f"{base_url}{path}",
            headers=headers,
            cancel=cancel,
            content=content,
            params=params,
        )

    def dispatch_form(
        self,
        method: str,
        base_url: str,
        path: str,
        access_token: str,
        file: IO[bytes] | bytes,
        filename: str,
        message: str,
        cancel: threading.Event | None = None,
    ) -> APIResponse:
        """Send a multipart form with a ``file`` part and a ``message`` field.

        Response handling is identical to :meth:`dispatch`. Content-Type is
        left to httpx, which sets the multipart boundary.
        """
        return self._send(
            method,
            f"{base_url}{path}",
            headers=self._headers(access_token),
            cancel=cancel,
            files={"file": (filename, file)},
            data={"message": message},
        )

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        cancel: threading.Event | None,
        **kwargs: Any,
    ) -> APIResponse:
        _raise_if_cancelled(cancel, url)

        start_time = time.time()
        status = "error"
        try:
            request = self.client.build_request(method, url, headers=headers, **kwargs)
            logger.debug("Making API request", method=method, url=url)
            response = self.client.send(request, stream=True)
            try:
                _raise_if_cancelled(cancel, url)
                body = self._read_body(response, cancel, url)
            finally:
                response.close()
            status = str(response.status_code)
        except RequestCancelledError:
            status = "cancelled"
            logger.info("API request cancelled", method=method, url=url)
            raise
        except httpx.TimeoutException as exc:
            status = "cancelled"
            logger.warning("API request timed out", method=method, url=url)
            msg = f"Request to {url} timed out"
            raise RequestTimeoutError(msg) from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            logger.exception("API request failed", method=method, url=url)
            msg = f"Request to {url} failed: {exc}"
            raise TransportError(msg) from exc
        finally:
            duration = time.time() - start_time
            self.metrics.observe_request(method, status, duration)

        api_response = APIResponse(
            body=body,
            request_id=response.headers.get(REQUEST_ID_HEADER, ""),
            status_code=response.status_code,
        )
        logger.debug(
            "API request completed",
            method=method,
            url=url,
            status_code=response.status_code,
            request_id=api_response.request_id,
            duration_seconds=round(duration, 3),
        )

        if response.status_code >= httpx.codes.BAD_REQUEST:
            raise APIError(self._error_response(response, url), api_response)
        return api_response

    @staticmethod
    def _read_body(
        response: httpx.Response,
        cancel: threading.Event | None,
        url: str,
    ) -> bytes:
        chunks = []
        for chunk in response.iter_bytes():
            _raise_if_cancelled(cancel, url)
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _error_response(response: httpx.Response, url: str) -> ErrorResponse:
        phrase = f"{response.status_code} {response.reason_phrase}".strip()
        request_id = response.headers.get(REQUEST_ID_HEADER, "")
        logger.warning(
            "API returned error status",
            url=url,
            status_code=response.status_code,
            request_id=request_id,
        )
        return ErrorResponse(
            timestamp=datetime.datetime.now(datetime.timezone.utc),
            request_id=request_id,
            http_code=response.status_code,
            http_phrase=phrase,
            path=url,
            errors=[ErrorDetail(path=url, message=phrase)],
        )
