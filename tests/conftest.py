"""Shared fixtures: a scripted stand-in for the auth and API services."""

import json
import time

import httpx
import pytest

from samplify_client import ClientOptions, SamplifyClient, Session

API_URL = "https://samplify.test/sample/v1"
AUTH_URL = "https://samplify.test/auth/v1"
STATUS_URL = "https://samplify.test/status"
GATEWAY_URL = "https://samplify.test/status/gateway"


def token_body(
    access: str,
    refresh: str = "refresh-token",
    expires_in: int = 3600,
    refresh_expires_in: int = 86400,
) -> dict:
    return {
        "accessToken": access,
        "expiresIn": expires_in,
        "refreshToken": refresh,
        "refreshExpiresIn": refresh_expires_in,
    }


def valid_session(access: str = "live-token", refresh: str = "refresh-token") -> Session:
    return Session(
        access_token=access,
        expires_in=3600,
        refresh_token=refresh,
        refresh_expires_in=86400,
        acquired_at=time.time(),
    )


class FakeSamplify:
    """Routes requests by (method, path) to scripted responses.

    Each route holds a queue of responses; the last one repeats once the
    queue is drained. Every request is recorded.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[httpx.Response]] = {}

    def on(self, method: str, path: str, *responses: httpx.Response) -> None:
        self._routes[(method, path)] = list(responses)

    def on_json(self, method: str, path: str, *bodies: dict, status: int = 200) -> None:
        self.on(method, path, *(httpx.Response(status, json=b) for b in bodies))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"errors": [{"message": "no route"}]})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        # Responses are single-use; hand out a copy for repeated routes
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=response.content,
        )

    def hits(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests if r.method == method and r.url.path == path
        )

    def last(self, method: str, path: str) -> httpx.Request:
        matching = [
            r for r in self.requests if r.method == method and r.url.path == path
        ]
        return matching[-1]

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def fake() -> FakeSamplify:
    return FakeSamplify()


@pytest.fixture
def options(fake: FakeSamplify) -> ClientOptions:
    return ClientOptions(
        api_base_url=API_URL,
        auth_url=AUTH_URL,
        status_url=STATUS_URL,
        gateway_url=GATEWAY_URL,
        transport=httpx.MockTransport(fake.handler),
    )


@pytest.fixture
def client(options: ClientOptions):
    with SamplifyClient("client-1", "alice", "s3cret", options=options) as c:
        yield c
