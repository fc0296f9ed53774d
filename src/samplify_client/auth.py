"""Token acquisition against the auth service.

:class:`TokenIssuer` performs the password grant, the refresh grant and
logout. It returns new :class:`~samplify_client.session.Session` values and
never stores them; installing a session is the session guard's job.
"""

import threading
import time

import structlog

from .dispatch import Dispatcher
from .errors import SamplifyError, SessionExpiredError
from .metrics import ClientMetrics
from .session import Credentials, Session

logger = structlog.get_logger(__name__)

PASSWORD_GRANT_PATH = "/token/password"
REFRESH_GRANT_PATH = "/token/refresh"
LOGOUT_PATH = "/logout"


class TokenIssuer:
    """Exchanges credentials or a refresh token for a new session."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        auth_url: str,
        credentials: Credentials,
        metrics: ClientMetrics | None = None,
    ):
        self._dispatcher = dispatcher
        self._auth_url = auth_url
        self._credentials = credentials
        self._metrics = metrics or dispatcher.metrics

    def acquire(self, cancel: threading.Event | None = None) -> Session:
        """Perform the password grant.

        Args:
            cancel: Event that aborts the exchange when set.

        Returns:
            A session stamped with the time the grant was issued.

        Raises:
            APIError: If the auth service rejects the credentials.
            TransportError: If the auth service cannot be reached.
            RequestCancelledError: If cancelled or timed out.
            SerializationError: If the token response cannot be decoded.
        """
        return self._grant(
            "password",
            PASSWORD_GRANT_PATH,
            self._credentials.to_payload(),
            cancel,
        )

    def refresh(
        self,
        session: Session,
        cancel: threading.Event | None = None,
    ) -> Session:
        """Perform the refresh grant.

        Args:
            session: Session whose refresh token is exchanged.
            cancel: Event that aborts the exchange when set.

        Raises:
            SessionExpiredError: If the refresh token has already lapsed;
                nothing is sent in that case.
            APIError, TransportError, RequestCancelledError,
            SerializationError: As for :meth:`acquire`.
        """
        if session.refresh_token_expired():
            msg = "session expired: refresh token has lapsed"
            raise SessionExpiredError(msg)

        payload = {
            "clientId": self._credentials.client_id,
            "refreshToken": session.refresh_token,
        }
        return self._grant("refresh", REFRESH_GRANT_PATH, payload, cancel)

    def logout(
        self,
        session: Session,
        cancel: threading.Event | None = None,
    ) -> None:
        """Invalidate the session's tokens on the auth service.

        Does nothing when the access token is already expired.
        """
        if session.access_token_expired():
            logger.debug("Access token already expired, skipping logout")
            return

        payload = {
            "clientId": self._credentials.client_id,
            "refreshToken": session.refresh_token,
            "accessToken": session.access_token,
        }
        try:
            self._dispatcher.dispatch(
                "POST",
                self._auth_url,
                LOGOUT_PATH,
                body=payload,
                cancel=cancel,
            )
        except SamplifyError:
            self._metrics.observe_grant("logout", success=False)
            raise
        self._metrics.observe_grant("logout", success=True)
        logger.info("Logged out", client_id=self._credentials.client_id)

    def _grant(
        self,
        grant: str,
        path: str,
        payload: dict[str, str],
        cancel: threading.Event | None,
    ) -> Session:
        issued_at = time.time()
        try:
            response = self._dispatcher.dispatch(
                "POST",
                self._auth_url,
                path,
                body=payload,
                cancel=cancel,
            )
            session = Session.from_token_response(response.body, issued_at)
        except SamplifyError as exc:
            self._metrics.observe_grant(grant, success=False)
            logger.warning("Token grant failed", grant=grant, error=str(exc))
            raise

        self._metrics.observe_grant(grant, success=True)
        logger.info(
            "Token grant succeeded",
            grant=grant,
            expires_in=session.expires_in,
            refresh_expires_in=session.refresh_expires_in,
        )
        return session
