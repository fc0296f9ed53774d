"""Request descriptions for the Samplify resources.

Each builder checks its arguments and returns an :class:`Operation`, a
frozen description of method, target service, path, body and query. The
client runs any operation through the same session guard and dispatcher;
cancellation is passed at execution time, so there is a single variant of
every call.
"""

import enum
from typing import IO, Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .errors import ValidationError
from .types import Action, Event, FieldSchedule, QueryOptions
from .validation import (
    validate_action,
    validate_body,
    validate_not_empty,
    validate_schedule,
)

LINE_ITEM_ACTIONS = (Action.LAUNCH, Action.PAUSE, Action.CLOSE)
QUOTA_CELL_ACTIONS = (Action.LAUNCH, Action.PAUSE)


class Target(str, enum.Enum):
    """Service an operation is sent to."""

    API = "api"
    AUTH = "auth"
    STATUS = "status"
    GATEWAY = "gateway"


class Upload(BaseModel):
    """A file sent as multipart form data alongside a message field."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    file: Any
    filename: str
    message: str = ""


class Operation(BaseModel):
    """One API call: where it goes and what it carries.

    ``url`` replaces the target's base URL when set (event actions carry
    absolute URLs). ``upload`` turns the call into a multipart request.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    method: str
    path: str = ""
    target: Target = Target.API
    url: str | None = None
    body: Any = None
    params: dict[str, str] = Field(default_factory=dict)
    upload: Upload | None = None


def _params(options: QueryOptions | None) -> dict[str, str]:
    return options.to_params() if options is not None else {}


def _field(body: Any, key: str) -> Any:
    if isinstance(body, BaseModel):
        body = body.model_dump(by_alias=True)
    if isinstance(body, dict):
        return body.get(key)
    return None


def _check_line_item_schedule(line_item: Any) -> None:
    raw_schedule = _field(line_item, "fieldSchedule")
    try:
        schedule = (
            FieldSchedule.model_validate(raw_schedule)
            if raw_schedule is not None
            else None
        )
    except pydantic.ValidationError as exc:
        msg = "fieldSchedule is malformed"
        raise ValidationError(msg) from exc
    validate_schedule(_field(line_item, "daysInField"), schedule)


# Projects


def create_project(project: Any) -> Operation:
    validate_body(project)
    return Operation(method="POST", path="/projects", body=project)


def update_project(project: Any) -> Operation:
    """Update a project; the project id is read from ``extProjectId``."""
    validate_body(project)
    ext_project_id = _field(project, "extProjectId")
    validate_not_empty(ext_project_id)
    return Operation(method="POST", path=f"/projects/{ext_project_id}", body=project)


def buy_project(ext_project_id: str, buy: list[Any]) -> Operation:
    validate_not_empty(ext_project_id)
    if not buy:
        msg = "at least one line item must be bought"
        raise ValidationError(msg)
    return Operation(method="POST", path=f"/projects/{ext_project_id}/buy", body=buy)


def close_project(ext_project_id: str) -> Operation:
    validate_not_empty(ext_project_id)
    return Operation(method="POST", path=f"/projects/{ext_project_id}/close")


def get_all_projects(options: QueryOptions | None = None) -> Operation:
    return Operation(method="GET", path="/projects", params=_params(options))


def get_project(ext_project_id: str) -> Operation:
    validate_not_empty(ext_project_id)
    return Operation(method="GET", path=f"/projects/{ext_project_id}")


def get_project_report(ext_project_id: str) -> Operation:
    """Report based on observed data from actual panelists."""
    validate_not_empty(ext_project_id)
    return Operation(method="GET", path=f"/projects/{ext_project_id}/report")


def get_detailed_project_report(ext_project_id: str) -> Operation:
    validate_not_empty(ext_project_id)
    return Operation(method="GET", path=f"/projects/{ext_project_id}/detailedReport")


def get_feasibility(
    ext_project_id: str,
    options: QueryOptions | None = None,
) -> Operation:
    """Feasibility of all line items of a project.

    The API may answer with status "PROCESSING"; poll again later until it
    reports "READY".
    """
    validate_not_empty(ext_project_id)
    return Operation(
        method="GET",
        path=f"/projects/{ext_project_id}/feasibility",
        params=_params(options),
    )


def get_invoice(ext_project_id: str, options: QueryOptions | None = None) -> Operation:
    validate_not_empty(ext_project_id)
    return Operation(
        method="GET",
        path=f"/projects/{ext_project_id}/invoices",
        params=_params(options),
    )


def get_invoices_summary(options: QueryOptions | None = None) -> Operation:
    return Operation(
        method="GET",
        path="/projects/invoices/summary",
        params=_params(options),
    )


def upload_reconcile(
    ext_project_id: str,
    file: IO[bytes],
    filename: str,
    message: str = "",
) -> Operation:
    """Upload a request correction file for a project."""
    validate_not_empty(ext_project_id, filename)
    return Operation(
        method="POST",
        path=f"/projects/{ext_project_id}/reconcile",
        upload=Upload(file=file, filename=filename, message=message),
    )


def get_project_permissions(ext_project_id: str) -> Operation:
    validate_not_empty(ext_project_id)
    return Operation(method="GET", path=f"/projects/{ext_project_id}/permissions")


def upsert_project_permissions(permissions: Any) -> Operation:
    validate_body(permissions)
    ext_project_id = _field(permissions, "extProjectId")
    validate_not_empty(ext_project_id)
    return Operation(
        method="POST",
        path=f"/projects/{ext_project_id}/permissions",
        body=permissions,
    )


# Line items


def add_line_item(ext_project_id: str, line_item: Any) -> Operation:
    validate_not_empty(ext_project_id)
    validate_body(line_item)
    _check_line_item_schedule(line_item)
    return Operation(
        method="POST",
        path=f"/projects/{ext_project_id}/lineItems",
        body=line_item,
    )


def update_line_item(
    ext_project_id: str,
    ext_line_item_id: str,
    line_item: Any,
) -> Operation:
    validate_not_empty(ext_project_id, ext_line_item_id)
    validate_body(line_item)
    _check_line_item_schedule(line_item)
    return Operation(
        method="POST",
        path=f"/projects/{ext_project_id}/lineItems/{ext_line_item_id}",
        body=line_item,
    )


def get_all_line_items(
    ext_project_id: str,
    options: QueryOptions | None = None,
) -> Operation:
    validate_not_empty(ext_project_id)
    return Operation(
        method="GET",
        path=f"/projects/{ext_project_id}/lineItems",
        params=_params(options),
    )


def get_line_item(ext_project_id: str, ext_line_item_id: str) -> Operation:
    validate_not_empty(ext_project_id, ext_line_item_id)
    return Operation(
        method="GET",
        path=f"/projects/{ext_project_id}/lineItems/{ext_line_item_id}",
    )


def update_line_item_state(
    ext_project_id: str,
    ext_line_item_id: str,
    action: Action | str,
) -> Operation:
    """Launch, pause or close a line item."""
    validate_not_empty(ext_project_id, ext_line_item_id)
    resolved = validate_action(action, LINE_ITEM_ACTIONS)
    return Operation(
        method="POST",
        path=f"/projects/{ext_project_id}/lineItems/{ext_line_item_id}/{resolved.value}",
    )


def launch_line_item(ext_project_id: str, ext_line_item_id: str) -> Operation:
    return update_line_item_state(ext_project_id, ext_line_item_id, Action.LAUNCH)


def pause_line_item(ext_project_id: str, ext_line_item_id: str) -> Operation:
    return update_line_item_state(ext_project_id, ext_line_item_id, Action.PAUSE)


def close_line_item(ext_project_id: str, ext_line_item_id: str) -> Operation:
    return update_line_item_state(ext_project_id, ext_line_item_id, Action.CLOSE)


def get_detailed_line_item_report(
    ext_project_id: str,
    ext_line_item_id: str,
) -> Operation:
    validate_not_empty(ext_project_id, ext_line_item_id)
    return Operation(
        method="GET",
        path=f"/projects/{ext_project_id}/lineItems/{ext_line_item_id}/detailedReport",
    )


# Quota cells


def set_quota_cell_status(
    ext_project_id: str,
    ext_line_item_id: str,
    quota_cell_id: str,
    action: Action | str,
) -> Operation:
    """Launch or pause a single quota cell of a line item."""
    validate_not_empty(ext_project_id, ext_line_item_id, quota_cell_id)
    resolved = validate_action(action, QUOTA_CELL_ACTIONS)
    return Operation(
        method="POST",
        path=(
            f"/projects/{ext_project_id}/lineItems/{ext_line_item_id}"
            f"/quotaCells/{quota_cell_id}/{resolved.value}"
        ),
    )


# Quota plan templates


def create_template(template: Any) -> Operation:
    validate_body(template)
    return Operation(method="POST", path="/templates/quotaPlan", body=template)


def update_template(template_id: int, template: Any) -> Operation:
    validate_body(template)
    return Operation(
        method="POST",
        path=f"/templates/quotaPlan/{template_id}",
        body=template,
    )


def get_template_list(
    country: str,
    language: str,
    options: QueryOptions | None = None,
) -> Operation:
    validate_not_empty(country, language)
    return Operation(
        method="GET",
        path=f"/templates/quotaPlan/{country}/{language}",
        params=_params(options),
    )


def delete_template(template_id: int) -> Operation:
    return Operation(method="DELETE", path=f"/templates/quotaPlan/{template_id}")


# Events


def get_events(options: QueryOptions | None = None) -> Operation:
    """All events of the company account, most recent first."""
    return Operation(method="GET", path="/events", params=_params(options))


def get_event(event_id: str) -> Operation:
    validate_not_empty(event_id)
    return Operation(method="GET", path=f"/events/{event_id}")


def _event_action(event: Event, url: str, name: str) -> Operation:
    if not url:
        msg = f"event {event.event_id} has no {name} action"
        raise ValidationError(msg)
    return Operation(method="POST", url=url)


def accept_event(event: Event) -> Operation:
    actions = event.actions
    return _event_action(event, actions.accept_url if actions else "", "accept")


def reject_event(event: Event) -> Operation:
    actions = event.actions
    return _event_action(event, actions.reject_url if actions else "", "reject")


# Reference data and users


def get_countries(options: QueryOptions | None = None) -> Operation:
    """Supported countries and the languages available in each."""
    return Operation(method="GET", path="/countries", params=_params(options))


def get_attributes(
    country_code: str,
    language_code: str,
    options: QueryOptions | None = None,
) -> Operation:
    validate_not_empty(country_code, language_code)
    return Operation(
        method="GET",
        path=f"/attributes/{country_code}/{language_code}",
        params=_params(options),
    )


def get_survey_topics(options: QueryOptions | None = None) -> Operation:
    return Operation(method="GET", path="/categories/surveyTopics", params=_params(options))


def get_sources(options: QueryOptions | None = None) -> Operation:
    return Operation(method="GET", path="/sources", params=_params(options))


def get_study_metadata() -> Operation:
    return Operation(method="GET", path="/studyMetadata")


def get_user_info() -> Operation:
    """The user the client is logged in as."""
    return Operation(method="GET", path="/users/info")


def get_company_users() -> Operation:
    return Operation(method="GET", path="/users")


def get_teams() -> Operation:
    return Operation(method="GET", path="/teams")


def get_roles(options: QueryOptions | None = None) -> Operation:
    return Operation(method="GET", path="/roles", params=_params(options))


# Status


def get_healthy_status() -> Operation:
    return Operation(method="GET", target=Target.GATEWAY)
