"""Shared fixtures: a scripted fake Discourse forum behind httpx.MockTransport,
and a connector app wired to it."""

import re
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
from flask import Flask

from discourse_client import DiscourseClient
from discourse_client.backends.http import HttpFetcher
from discourse_connector import create_app
from discourse_connector.models.app_setting import AppSetting
from discourse_connector.models.host_user import HostUser
from discourse_connector.services import directory

BASE_URL = "https://discourse.example.com/"
API_KEY = "abcde-4fs8s7f51sq654g"
MEMBERS_PATH = re.compile(r"^/groups/[^/]+/members$")


class FakeDiscourse:
    """Answers requests from per-route response queues and records every request.

    Each route holds a queue; responses are served in order and the last one
    repeats. A response may be a JSON-able value, an ``httpx.Response``, or a
    callable taking the request. Group membership writes with nothing queued
    succeed; any other unqueued route answers 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Any) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue and request.method in ("PUT", "DELETE") and MEMBERS_PATH.match(request.url.path):
            return httpx.Response(200, json={"success": "OK"})
        if not queue:
            return httpx.Response(404, json={"errors": ["The requested URL or resource could not be found."]})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            response = response(request)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def writes(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method != "GET"]

    def fetcher(self, base_url: str = BASE_URL, api_key: str = API_KEY) -> HttpFetcher:
        return HttpFetcher(base_url, api_key, transport=httpx.MockTransport(self.handler))

    # -- canned forum content -------------------------------------------

    def add_users(self, *pages: list[dict[str, Any]]) -> None:
        """Serve the given user list pages followed by an empty page.

        Each entry gets a matching detail endpoint.
        """
        list_pages: list[Any] = []
        for page in pages:
            list_pages.append([{"id": u["id"], "username": u["username"]} for u in page])
            for user in page:
                self.add("GET", f"/admin/users/{user['id']}.json", user)
        list_pages.append([])
        self.add("GET", "/admin/users/list", *list_pages)

    def add_groups(self, *pages: list[dict[str, Any]]) -> None:
        """Serve the given group pages followed by an empty page."""
        self.add("GET", "/groups", *[{"groups": page} for page in pages], {"groups": []})


def user_record(
    user_id: int, username: str, name: str = "", group_ids: tuple[int, ...] = ()
) -> dict[str, Any]:
    return {
        "id": user_id,
        "username": username,
        "name": name,
        "groups": [{"id": gid, "name": f"group-{gid}"} for gid in group_ids],
    }


@pytest.fixture
def fake() -> FakeDiscourse:
    return FakeDiscourse()


@pytest.fixture
def make_client(fake: FakeDiscourse) -> Iterator[Callable[..., DiscourseClient]]:
    clients: list[DiscourseClient] = []

    def factory(**kwargs: Any) -> DiscourseClient:
        client = DiscourseClient(BASE_URL, API_KEY, fetcher=fake.fetcher(), **kwargs)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


# -- connector application ---------------------------------------------------

SSO_SECRET = "sso-shared-secret"


class Session:
    """Stands in for the host's notion of the signed-in user."""

    def __init__(self) -> None:
        self.user: HostUser | None = None

    def load(self) -> HostUser | None:
        return self.user


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def member() -> HostUser:
    return HostUser(
        id=7,
        username="nelly",
        name="Nelly Member",
        email="nelly@example.com",
        avatar_url="https://host.example.com/avatars/7.png",
    )


@pytest.fixture
def admin() -> HostUser:
    return HostUser(id=1, username="root", name="Root", email="root@example.com", is_superuser=True)


@pytest.fixture
def app(tmp_path, monkeypatch, fake: FakeDiscourse, session: Session) -> Iterator[Flask]:
    monkeypatch.delenv("DISCOURSE_CONNECTOR_DB", raising=False)
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "DATABASE_PATH": str(tmp_path / "connector.sqlite3"),
            "DISCOURSE_SSO_SECRET": SSO_SECRET,
        },
        fetcher_factory=fake.fetcher,
        user_loader=session.load,
    )

    yield app

    directory.tear_down(app)


@pytest.fixture
def configure(app: Flask) -> Callable[..., None]:
    """Store driver settings the way the settings screen does."""

    def store(url: str | None = BASE_URL, api_key: str | None = API_KEY) -> None:
        with app.app_context():
            if url is not None:
                AppSetting.set("discourse.url", url)
            if api_key is not None:
                AppSetting.set("discourse.api_key", api_key)

    return store
