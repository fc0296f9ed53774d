"""Argument precondition checks run before any request is built."""

import datetime
from typing import Any

from .errors import ValidationError
from .types import Action, FieldSchedule


def validate_not_empty(*values: str) -> None:
    """Raise ValidationError if any identifier is empty or blank."""
    for value in values:
        if not isinstance(value, str) or not value.strip():
            msg = "identifier must be a non-empty string"
            raise ValidationError(msg)


def validate_body(body: Any) -> None:
    if body is None:
        msg = "request body is required"
        raise ValidationError(msg)


def validate_action(action: Action | str, allowed: tuple[Action, ...]) -> Action:
    """Coerce ``action`` to an Action and check it is one of ``allowed``.

    Raises:
        ValidationError: If the action is unknown or not allowed here.
    """
    try:
        resolved = Action(action)
    except ValueError as exc:
        msg = f"unknown action {action!r}"
        raise ValidationError(msg) from exc
    if resolved not in allowed:
        names = ", ".join(a.value for a in allowed)
        msg = f"action {resolved.value!r} is not allowed here (expected one of {names})"
        raise ValidationError(msg)
    return resolved


def validate_schedule(
    days_in_field: int | None,
    schedule: FieldSchedule | None,
    now: datetime.datetime | None = None,
) -> None:
    """Check a line item's field schedule.

    A missing schedule is valid. A present one needs both ends, must start
    in the future and before it ends, and ``days_in_field`` (if given) has
    to be positive and fit within the scheduled span.

    Raises:
        ValidationError: If any of the rules above is broken.
    """
    if days_in_field is not None and days_in_field <= 0:
        msg = "daysInField must be positive"
        raise ValidationError(msg)
    if schedule is None:
        return
    if schedule.start is None or schedule.end is None:
        msg = "fieldSchedule needs both startAt and endAt"
        raise ValidationError(msg)

    start, end = _aware(schedule.start), _aware(schedule.end)
    now = _aware(now or datetime.datetime.now(datetime.timezone.utc))
    if start < now:
        msg = "fieldSchedule.startAt is in the past"
        raise ValidationError(msg)
    if end <= start:
        msg = "fieldSchedule.endAt must be after startAt"
        raise ValidationError(msg)

    span_days = (end - start) / datetime.timedelta(days=1)
    if days_in_field is not None and days_in_field > span_days:
        msg = f"daysInField ({days_in_field}) exceeds the scheduled span"
        raise ValidationError(msg)


def _aware(value: datetime.datetime) -> datetime.datetime:
    # Naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value
