"""Samplify API client.

Ties together the dispatcher, the token issuer and the session guard.
Every resource call is an :class:`~samplify_client.operations.Operation`
executed through :meth:`SamplifyClient.execute`, which renews tokens as
needed and retries once when the API rejects the access token.
"""

import threading
from typing import Any, TypeVar

import pydantic
import structlog
from prometheus_client import CollectorRegistry

from .auth import TokenIssuer
from .config import DEFAULT_TIMEOUT, ClientOptions, options_for_environment, uat_options
from .dispatch import Dispatcher
from .guard import SessionGuard
from .metrics import ClientMetrics
from .operations import Operation, Target, get_healthy_status
from .session import Credentials, Session
from .types import APIResponse

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class SamplifyClient:
    """Authenticated client for the Samplify sample API.

    The session starts empty; the first request performs the credential
    grant. Expired access tokens are refreshed transparently, and a 401 on
    a token believed valid triggers one re-authentication and one retry.

    Thread-safe: token renewal is serialized by the session guard and HTTP
    connections are thread-local. Can be used as a context manager for
    automatic cleanup.
    """

    def __init__(
        self,
        client_id: str,
        username: str,
        password: str,
        options: ClientOptions | None = None,
        registry: CollectorRegistry | None = None,
    ):
        """Initialize the client.

        Args:
            client_id: OAuth client id issued for the account.
            username: Account username.
            password: Account password.
            options: Endpoints, timeout and transport; UAT preset by default.
            registry: Prometheus registry for client metrics; a private one
                is created when omitted.
        """
        self.credentials = Credentials(
            client_id=client_id,
            username=username,
            password=password,
        )
        self.options = options or uat_options()
        self.metrics = ClientMetrics(registry)
        self._dispatcher = Dispatcher(
            timeout=self.options.timeout,
            transport=self.options.transport,
            metrics=self.metrics,
        )
        self._issuer = TokenIssuer(
            self._dispatcher,
            self.options.auth_url,
            self.credentials,
            self.metrics,
        )
        self._guard = SessionGuard(self._issuer)
        logger.debug(
            "Created Samplify client",
            api=self.options.api_base_url,
            client_id=client_id,
        )

    @classmethod
    def from_environment(
        cls,
        client_id: str,
        username: str,
        password: str,
        environment: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> "SamplifyClient":
        """Create a client for a named environment ("dev", "uat" or "prod").

        Raises:
            ConfigurationError: If the environment name is not recognized.
        """
        options = options_for_environment(environment, timeout)
        return cls(client_id, username, password, options=options, **kwargs)

    @property
    def session(self) -> Session:
        """The current session (empty until the first grant)."""
        return self._guard.session

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the thread-local HTTP client if open."""
        self._dispatcher.close()

    def _base_url(self, target: Target) -> str:
        return {
            Target.API: self.options.api_base_url,
            Target.AUTH: self.options.auth_url,
            Target.STATUS: self.options.status_url,
            Target.GATEWAY: self.options.gateway_url,
        }[target]

    def execute(
        self,
        operation: Operation,
        cancel: threading.Event | None = None,
    ) -> APIResponse:
        """Run an operation with a valid access token.

        Args:
            operation: The request description.
            cancel: Event that aborts the operation when set.

        Returns:
            The raw response snapshot.

        Raises:
            APIError: If the API answers with status >= 400 (after the one
                retry for 401).
            SessionExpiredError: If no valid session could be obtained.
            TransportError: If the API cannot be reached.
            RequestCancelledError: If cancelled or timed out.
        """
        base_url = operation.url or self._base_url(operation.target)
        upload = operation.upload
        # Read once so a retry after 401 resends the same bytes
        content = upload.file.read() if upload is not None else b""

        def send(access_token: str) -> APIResponse:
            if upload is not None:
                return self._dispatcher.dispatch_form(
                    operation.method,
                    base_url,
                    operation.path,
                    access_token,
                    content,
                    upload.filename,
                    upload.message,
                    cancel=cancel,
                )
            return self._dispatcher.dispatch(
                operation.method,
                base_url,
                operation.path,
                access_token=access_token,
                body=operation.body,
                params=operation.params or None,
                cancel=cancel,
            )

        return self._guard.call(send, cancel)

    def fetch(
        self,
        operation: Operation,
        model: type[ModelT],
        cancel: threading.Event | None = None,
    ) -> ModelT:
        """Run an operation and decode the response body into ``model``.

        Raises:
            SerializationError: If the body does not match ``model``.
            Anything :meth:`execute` raises.
        """
        return self.execute(operation, cancel).decode(model)

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        target: Target = Target.API,
        params: dict[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> APIResponse:
        """Send an arbitrary authenticated request to one of the services."""
        operation = Operation(
            method=method,
            path=path,
            target=target,
            body=body,
            params=params or {},
        )
        return self.execute(operation, cancel)

    def get_auth(self, cancel: threading.Event | None = None) -> Session:
        """Perform the credential grant now and return the new session."""
        return self._guard.force_acquire(cancel)

    def refresh_token(self, cancel: threading.Event | None = None) -> Session:
        """Perform the refresh grant now and return the new session.

        Raises:
            SessionExpiredError: If the refresh token has lapsed.
        """
        return self._guard.force_refresh(cancel)

    def logout(self, cancel: threading.Event | None = None) -> None:
        """Invalidate the session on the auth service and forget it locally."""
        self._issuer.logout(self._guard.session, cancel)
        self._guard.clear()

    def get_healthy_status(self, cancel: threading.Event | None = None) -> APIResponse:
        """Check the gateway health endpoint."""
        return self.execute(get_healthy_status(), cancel)


def send_request(
    base_url: str,
    method: str,
    path: str,
    access_token: str = "",
    body: Any = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> APIResponse:
    """Send a one-off request outside of any session.

    The caller supplies the access token; there is no renewal and no retry.

    Raises:
        APIError: If the API answers with status >= 400.
        TransportError: If the exchange fails at the network level.
    """
    with Dispatcher(timeout=timeout) as dispatcher:
        return dispatcher.dispatch(method, base_url, path, access_token, body)

