"""Wire types shared by the dispatcher, the session guard and the operations.

Pydantic models for the raw exchange snapshot, the error envelope built for
failed exchanges, and the small request-side value types (query options,
field schedules, state actions, events).
"""

import datetime
import enum
import json
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .errors import SerializationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class APIResponse(BaseModel):
    """Immutable snapshot of one HTTP exchange.

    The body is kept raw; callers decode it into whatever type they expect.
    """

    model_config = ConfigDict(frozen=True)

    body: bytes = b""
    request_id: str = ""
    status_code: int = 0

    def decode_json(self) -> Any:
        """Decode the raw body as JSON.

        Raises:
            SerializationError: If the body is not valid JSON.
        """
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError as exc:
            msg = f"Response body is not valid JSON (request_id={self.request_id})"
            raise SerializationError(msg) from exc

    def decode(self, model: type[ModelT]) -> ModelT:
        """Decode the raw body into a pydantic model.

        Raises:
            SerializationError: If the body does not match the model.
        """
        try:
            return model.model_validate_json(self.body or b"{}")
        except pydantic.ValidationError as exc:
            msg = f"Cannot decode response into {model.__name__}"
            raise SerializationError(msg) from exc


class ErrorDetail(BaseModel):
    """A single {path, message} entry of an error envelope."""

    path: str = ""
    message: str = ""


class ErrorResponse(BaseModel):
    """Error envelope constructed for every exchange with status >= 400."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime.datetime
    request_id: str = Field("", alias="requestId")
    http_code: int = Field(alias="httpCode")
    http_phrase: str = Field(alias="httpPhrase")
    path: str
    errors: list[ErrorDetail] = Field(default_factory=list)


class Action(str, enum.Enum):
    """State transitions accepted by line items and quota cells."""

    LAUNCH = "launch"
    PAUSE = "pause"
    CLOSE = "close"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class SortField(BaseModel):
    field: str
    direction: SortDirection = SortDirection.ASC


class QueryOptions(BaseModel):
    """Paging, sorting and filtering for list endpoints."""

    offset: int | None = Field(None, ge=0)
    limit: int | None = Field(None, gt=0)
    sort: list[SortField] = Field(default_factory=list)
    filters: dict[str, str] = Field(default_factory=dict)

    def to_params(self) -> dict[str, str]:
        """Render the options as query parameters."""
        params: dict[str, str] = {}
        if self.offset is not None:
            params["offset"] = str(self.offset)
        if self.limit is not None:
            params["limit"] = str(self.limit)
        if self.sort:
            params["sort"] = ",".join(
                f"{s.field}:{s.direction.value}" for s in self.sort
            )
        params.update(self.filters)
        return params


class FieldSchedule(BaseModel):
    """Start and end of a line item's time in field."""

    model_config = ConfigDict(populate_by_name=True)

    start: datetime.datetime | None = Field(None, alias="startAt")
    end: datetime.datetime | None = Field(None, alias="endAt")


class EventActions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    accept_url: str = Field("", alias="acceptURL")
    reject_url: str = Field("", alias="rejectURL")


class Event(BaseModel):
    """An account event; only the fields needed to act on it are modelled."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_id: int | str = Field(alias="eventId")
    event_type: str = Field("", alias="eventType")
    actions: EventActions | None = None
