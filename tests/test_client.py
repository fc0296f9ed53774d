"""Tests for the SamplifyClient surface: auth calls, uploads, decoding."""

import io
from unittest.mock import patch

import httpx
import pydantic
import pytest
from prometheus_client import CollectorRegistry

from samplify_client import SamplifyClient, errors, operations, send_request
from samplify_client.types import Event

from conftest import token_body, valid_session

PASSWORD = "/auth/v1/token/password"
REFRESH = "/auth/v1/token/refresh"
LOGOUT = "/auth/v1/logout"


class Project(pydantic.BaseModel):
    ext_project_id: str = pydantic.Field(alias="extProjectId")
    title: str


# ---------------------------------------------------------------------------
# Explicit auth calls
# ---------------------------------------------------------------------------


def test_get_auth_installs_new_session(client, fake):
    fake.on_json("POST", PASSWORD, token_body("acc-1", "ref-1", expires_in=60))

    s = client.get_auth()

    assert s.access_token == "acc-1"
    assert s.expires_in == 60
    assert client.session is s
    assert not s.access_token_expired()


def test_get_auth_rejection_is_raw_api_error(client, fake):
    fake.on_json("POST", PASSWORD, {"message": "bad credentials"}, status=401)

    with pytest.raises(errors.APIError) as exc_info:
        client.get_auth()

    assert exc_info.value.status_code == 401
    assert not client.session.acquired


def test_refresh_token_exchanges_refresh_token(client, fake):
    client._guard._session = valid_session("acc-1", "ref-1")
    fake.on_json("POST", REFRESH, token_body("acc-2", "ref-2"))

    s = client.refresh_token()

    assert s.access_token == "acc-2"
    assert fake.body(fake.last("POST", REFRESH)) == {
        "clientId": "client-1",
        "refreshToken": "ref-1",
    }


def test_refresh_token_without_session_is_session_expired(client, fake):
    with pytest.raises(errors.SessionExpiredError):
        client.refresh_token()

    assert fake.requests == []


def test_logout_posts_tokens_and_clears_session(client, fake):
    client._guard._session = valid_session("acc-1", "ref-1")
    fake.on("POST", LOGOUT, httpx.Response(204))

    client.logout()

    assert fake.body(fake.last("POST", LOGOUT)) == {
        "clientId": "client-1",
        "refreshToken": "ref-1",
        "accessToken": "acc-1",
    }
    assert not client.session.acquired


def test_logout_with_expired_access_token_sends_nothing(client, fake):
    client.logout()

    assert fake.requests == []
    assert not client.session.acquired


def test_logout_failure_keeps_session(client, fake):
    live = valid_session("acc-1")
    client._guard._session = live
    fake.on_json("POST", LOGOUT, {"message": "boom"}, status=500)

    with pytest.raises(errors.APIError):
        client.logout()

    assert client.session is live


# ---------------------------------------------------------------------------
# Operations through the client
# ---------------------------------------------------------------------------


def test_fetch_decodes_into_model(client, fake):
    client._guard._session = valid_session()
    fake.on_json("GET", "/sample/v1/projects/p1", {"extProjectId": "p1", "title": "Survey"})

    project = client.fetch(operations.get_project("p1"), Project)

    assert project == Project(extProjectId="p1", title="Survey")


def test_fetch_mismatch_is_serialization_error(client, fake):
    client._guard._session = valid_session()
    fake.on_json("GET", "/sample/v1/projects/p1", {"unexpected": True})

    with pytest.raises(errors.SerializationError):
        client.fetch(operations.get_project("p1"), Project)


def test_query_options_reach_the_wire(client, fake):
    from samplify_client.types import QueryOptions

    client._guard._session = valid_session()
    fake.on_json("GET", "/sample/v1/projects", {"projects": []})

    client.execute(operations.get_all_projects(QueryOptions(limit=5, offset=10)))

    params = fake.last("GET", "/sample/v1/projects").url.params
    assert params["limit"] == "5"
    assert params["offset"] == "10"


def test_upload_is_sent_as_multipart_with_bearer(client, fake):
    client._guard._session = valid_session("acc-1")
    fake.on_json("POST", "/sample/v1/projects/p1/reconcile", {"status": "ok"})

    client.execute(
        operations.upload_reconcile("p1", io.BytesIO(b"id,status\n1,ok\n"), "fix.csv", "note")
    )

    request = fake.last("POST", "/sample/v1/projects/p1/reconcile")
    assert request.headers["Authorization"] == "Bearer acc-1"
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b"id,status\n1,ok\n" in request.content
    assert b"note" in request.content


def test_upload_retried_after_401_resends_same_bytes(client, fake):
    client._guard._session = valid_session("acc-1")
    fake.on_json("POST", PASSWORD, token_body("acc-2"))
    fake.on(
        "POST",
        "/sample/v1/projects/p1/reconcile",
        httpx.Response(401),
        httpx.Response(200, json={}),
    )

    client.execute(
        operations.upload_reconcile("p1", io.BytesIO(b"payload-bytes"), "fix.csv")
    )

    uploads = [r for r in fake.requests if r.url.path.endswith("/reconcile")]
    assert len(uploads) == 2
    assert all(b"payload-bytes" in r.content for r in uploads)
    assert uploads[1].headers["Authorization"] == "Bearer acc-2"


def test_event_accept_posts_to_absolute_url(client, fake):
    client._guard._session = valid_session("acc-1")
    fake.on_json("POST", "/sample/v1/events/11/accept", {})
    event = Event.model_validate(
        {
            "eventId": 11,
            "actions": {"acceptURL": "https://samplify.test/sample/v1/events/11/accept"},
        }
    )

    client.execute(operations.accept_event(event))

    request = fake.last("POST", "/sample/v1/events/11/accept")
    assert request.headers["Authorization"] == "Bearer acc-1"


def test_healthy_status_hits_gateway(client, fake):
    client._guard._session = valid_session()
    fake.on_json("GET", "/status/gateway", {"status": "UP"})

    response = client.get_healthy_status()

    assert response.decode_json() == {"status": "UP"}


def test_validation_failure_sends_nothing(client, fake):
    with pytest.raises(errors.ValidationError):
        client.execute(operations.get_project(""))

    assert fake.requests == []


# ---------------------------------------------------------------------------
# Construction, metrics and one-off requests
# ---------------------------------------------------------------------------


def test_default_options_are_uat():
    with SamplifyClient("c", "u", "p") as c:
        assert c.options.api_base_url == "https://api.uat.pe.dynata.com/sample/v1"
        assert c.options.timeout == 20.0


def test_from_environment_selects_preset():
    with SamplifyClient.from_environment("c", "u", "p", "prod", timeout=5) as c:
        assert c.options.auth_url == "https://api.researchnow.com/auth/v1"
        assert c.options.timeout == 5


def test_grant_metrics_recorded_on_supplied_registry(options, fake):
    registry = CollectorRegistry()
    fake.on_json("POST", PASSWORD, token_body("acc-1"))

    with SamplifyClient("c", "u", "p", options=options, registry=registry) as c:
        c.get_auth()

    assert registry.get_sample_value(
        "samplify_client_token_grants_total",
        {"grant": "password", "outcome": "success"},
    ) == 1
    assert registry.get_sample_value(
        "samplify_client_requests_total",
        {"method": "POST", "status": "200"},
    ) == 1


def test_send_request_uses_caller_token_without_renewal(fake, options):
    fake.on("GET", "/sample/v1/projects", httpx.Response(401))

    with patch(
        "samplify_client.client.Dispatcher",
        side_effect=lambda timeout: _mock_dispatcher(options, timeout),
    ):
        with pytest.raises(errors.APIError) as exc_info:
            send_request("https://samplify.test/sample/v1", "GET", "/projects", "tok")

    assert exc_info.value.status_code == 401
    assert fake.hits("GET", "/sample/v1/projects") == 1
    assert fake.hits("POST", PASSWORD) == 0
    assert fake.last("GET", "/sample/v1/projects").headers["Authorization"] == "Bearer tok"


def _mock_dispatcher(options, timeout):
    from samplify_client.dispatch import Dispatcher

    return Dispatcher(timeout=timeout, transport=options.transport)
