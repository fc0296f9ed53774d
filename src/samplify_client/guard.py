"""Session guard: keeps a valid access token in front of every request.

Before a request the guard renews an expired access token, preferring the
refresh grant and falling back to the credential grant. After a request
answered with 401 it performs one credential grant and retries once.

Renewals are single-flight: they run under a lock, and callers that waited
on the lock take the outcome of the renewal that just finished instead of
starting another one. A waiter only inherits a failure from a flight of
its own kind; a failed forced grant or reauthentication does not stop an
ensure-valid waiter from trying the refresh and credential grants itself.
"""

import enum
import threading
from collections.abc import Callable

import httpx
import structlog

from .auth import TokenIssuer
from .errors import APIError, RequestCancelledError, SamplifyError, SessionExpiredError
from .session import Session
from .types import APIResponse

logger = structlog.get_logger(__name__)

Send = Callable[[str], APIResponse]


class Flight(enum.Enum):
    """Kind of renewal attempt run under the guard's lock."""

    RENEW = "renew"
    REAUTH = "reauth"
    FORCED = "forced"


class SessionGuard:
    """Owns the client's session and serializes every change to it."""

    def __init__(self, issuer: TokenIssuer, session: Session | None = None):
        """Initialize the guard.

        Args:
            issuer: Performs the password and refresh grants.
            session: Initial session; an empty, expired one when omitted.
        """
        self._issuer = issuer
        self._lock = threading.Lock()
        self._session = session or Session()

        # Bumped after every renewal attempt, successful or not
        self._generation = 0
        self._last_flight: Flight | None = None
        self._last_error: SamplifyError | None = None

    @property
    def session(self) -> Session:
        return self._session

    def ensure_valid(self, cancel: threading.Event | None = None) -> Session:
        """Return a session whose access token has not expired.

        Raises:
            SessionExpiredError: If the credential grant was rejected.
            TransportError: If the auth service cannot be reached.
            RequestCancelledError: If cancelled or timed out.
        """
        generation = self._generation
        session = self._session
        if not session.access_token_expired():
            return session

        with self._lock:
            joined = self._join_flight(generation, Flight.RENEW)
            if joined is not None:
                return joined
            current = self._session
            if current is not session and not current.access_token_expired():
                return current
            return self._run_flight(
                Flight.RENEW,
                lambda: self._refresh_or_acquire(current, cancel),
            )

    def reauthenticate(
        self,
        stale: Session,
        cancel: threading.Event | None = None,
    ) -> Session:
        """Replace a session the API rejected, using the credential grant.

        The refresh grant is never used here: a 401 on an unexpired token
        means the server no longer honours this session.
        """
        generation = self._generation
        with self._lock:
            joined = self._join_flight(generation, Flight.REAUTH)
            if joined is not None:
                return joined
            current = self._session
            if (
                current.access_token != stale.access_token
                and not current.access_token_expired()
            ):
                return current
            return self._run_flight(Flight.REAUTH, lambda: self._acquire(cancel))

    def call(self, send: Send, cancel: threading.Event | None = None) -> APIResponse:
        """Run ``send`` with a valid access token, retrying once on 401.

        Args:
            send: Performs the request with the given access token.
            cancel: Event that aborts token renewal when set.

        Returns:
            The response of the first or the retried request.

        Raises:
            APIError: If the request fails with anything but 401, or the
                retry fails as well (including a second 401).
        """
        session = self.ensure_valid(cancel)
        try:
            return send(session.access_token)
        except APIError as exc:
            if exc.status_code != httpx.codes.UNAUTHORIZED:
                raise
            logger.info(
                "Request unauthorized, re-authenticating",
                path=exc.error.path,
                request_id=exc.request_id,
            )

        session = self.reauthenticate(session, cancel)
        return send(session.access_token)

    def force_acquire(self, cancel: threading.Event | None = None) -> Session:
        """Perform the credential grant regardless of the current session."""
        with self._lock:
            return self._run_flight(Flight.FORCED, lambda: self._issuer.acquire(cancel))

    def force_refresh(self, cancel: threading.Event | None = None) -> Session:
        """Perform the refresh grant regardless of the access token's state.

        Raises:
            SessionExpiredError: If the refresh token has lapsed.
        """
        with self._lock:
            current = self._session
            return self._run_flight(
                Flight.FORCED,
                lambda: self._issuer.refresh(current, cancel),
            )

    def clear(self) -> None:
        """Drop the session so the next request starts with a credential grant."""
        with self._lock:
            self._session = Session()
            self._generation += 1
            self._last_flight = None
            self._last_error = None

    def _join_flight(self, generation: int, kind: Flight) -> Session | None:
        # Lock held. Returns None when this caller has to renew on its own.
        if self._generation == generation:
            return None
        error = self._last_error
        if error is None:
            # A logout may have replaced the session while this caller waited
            if self._session.access_token_expired():
                return None
            return self._session
        if isinstance(error, RequestCancelledError):
            # Another caller's cancellation says nothing about this one
            return None
        if self._last_flight is not kind:
            return None
        raise error

    def _run_flight(self, kind: Flight, renew: Callable[[], Session]) -> Session:
        # Lock held.
        try:
            session = renew()
        except SamplifyError as exc:
            self._finish_flight(kind, exc)
            raise
        self._session = session
        self._finish_flight(kind, None)
        return session

    def _finish_flight(self, kind: Flight, error: SamplifyError | None) -> None:
        self._generation += 1
        self._last_flight = kind
        self._last_error = error

    def _refresh_or_acquire(
        self,
        current: Session,
        cancel: threading.Event | None,
    ) -> Session:
        if current.refresh_token_expired():
            if current.acquired:
                logger.info("Refresh token expired, performing credential grant")
            return self._acquire(cancel)

        try:
            return self._issuer.refresh(current, cancel)
        except RequestCancelledError:
            raise
        except SamplifyError as exc:
            logger.warning(
                "Refresh grant failed, falling back to credential grant",
                error=str(exc),
            )
        return self._acquire(cancel)

    def _acquire(self, cancel: threading.Event | None) -> Session:
        try:
            return self._issuer.acquire(cancel)
        except APIError as exc:
            msg = f"session expired: credential grant rejected ({exc.error.http_phrase})"
            raise SessionExpiredError(msg) from exc
