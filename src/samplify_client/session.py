"""Credentials and session state.

A :class:`Session` is an immutable snapshot of the tokens returned by the
auth endpoint together with the moment they were acquired. Sessions are
replaced wholesale on every grant and never patched field by field.
"""

import time

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .errors import SerializationError


class Credentials(BaseModel):
    """Client id, username and password used for the credential grant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    client_id: str = Field(alias="clientId")
    username: str
    password: str = Field(repr=False)

    def to_payload(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class Session(BaseModel):
    """Access and refresh tokens with their lifetimes.

    Token lifetimes are durations in seconds counted from ``acquired_at``,
    an epoch timestamp. A session that was never acquired has
    ``acquired_at`` set to None and reports both tokens as expired.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    access_token: str = Field("", alias="accessToken", repr=False)
    expires_in: float = Field(0, alias="expiresIn", ge=0)
    refresh_token: str = Field("", alias="refreshToken", repr=False)
    refresh_expires_in: float = Field(0, alias="refreshExpiresIn", ge=0)
    acquired_at: float | None = Field(None, exclude=True)

    @classmethod
    def from_token_response(cls, body: bytes, acquired_at: float) -> "Session":
        """Build a session from a token endpoint response body.

        Args:
            body: Raw JSON returned by the password or refresh grant.
            acquired_at: Epoch timestamp to stamp on both tokens.

        Raises:
            SerializationError: If the body is not a token response.
        """
        try:
            session = cls.model_validate_json(body)
        except pydantic.ValidationError as exc:
            msg = "Token endpoint returned an unreadable body"
            raise SerializationError(msg) from exc
        return session.model_copy(update={"acquired_at": acquired_at})

    @property
    def acquired(self) -> bool:
        return self.acquired_at is not None

    def access_token_expired(self, now: float | None = None) -> bool:
        """Whether the access token has lapsed at ``now`` (default: current time)."""
        return self._expired(self.expires_in, now)

    def refresh_token_expired(self, now: float | None = None) -> bool:
        """Whether the refresh token has lapsed at ``now`` (default: current time)."""
        return self._expired(self.refresh_expires_in, now)

    def _expired(self, lifetime: float, now: float | None) -> bool:
        if self.acquired_at is None:
            return True
        if now is None:
            now = time.time()
        return now >= self.acquired_at + lifetime
