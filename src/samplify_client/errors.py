"""Exception hierarchy for the Samplify client.

Every error raised by the client derives from :class:`SamplifyError`.
Configuration and validation errors are raised before any network call.
"""

from typing import TYPE_CHECKING, TypeVar

import pydantic
import structlog

if TYPE_CHECKING:
    from .types import APIResponse, ErrorResponse

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class SamplifyError(Exception):
    """Base exception for all Samplify client errors."""


class ConfigurationError(SamplifyError):
    """Raised for an unknown environment name or an invalid config file."""


class ValidationError(SamplifyError):
    """Raised when caller-supplied arguments fail a precondition check."""


class SessionExpiredError(SamplifyError):
    """Raised when the session cannot be renewed.

    Either the refresh token has lapsed, or the credential grant used as a
    fallback was rejected.
    """


class TransportError(SamplifyError):
    """Raised when the HTTP exchange itself fails (connection, protocol, URL)."""


class RequestCancelledError(SamplifyError):
    """Raised when the caller cancels an in-flight operation."""


class RequestTimeoutError(RequestCancelledError):
    """Raised when the transport gives up on a request after its timeout."""


class SerializationError(SamplifyError):
    """Raised when a request body cannot be encoded or a response decoded."""


class APIError(SamplifyError):
    """Raised when the API answers with a status code of 400 or above.

    The raw response is kept on :attr:`response` so that callers can still
    decode a server-specific error payload.
    """

    def __init__(self, error: "ErrorResponse", response: "APIResponse"):
        self.error = error
        self.response = response
        super().__init__(f"{error.http_phrase} ({error.path})")

    @property
    def status_code(self) -> int:
        """HTTP status code of the failed exchange."""
        return self.error.http_code

    @property
    def request_id(self) -> str:
        """Value of the ``x-request-id`` header, empty if absent."""
        return self.error.request_id

    def decode(self, model: type[ModelT]) -> ModelT | None:
        """Best-effort decode of the error body into ``model``.

        Returns:
            The decoded model, or None if the body does not match it.
        """
        try:
            return model.model_validate_json(self.response.body)
        except pydantic.ValidationError:
            logger.debug(
                "Error body did not match model",
                model=model.__name__,
                status_code=self.status_code,
            )
            return None
