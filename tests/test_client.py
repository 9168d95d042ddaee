"""Tests for :mod:`discourse_client.client`."""

import httpx
import pytest

from conftest import API_KEY, BASE_URL, user_record
from discourse_client import (
    DiscourseClient,
    DriverSettingsError,
    InvalidIdentityError,
    RemoteCallError,
)

# -- construction -----------------------------------------------------------


def test_from_settings_requires_settings() -> None:
    with pytest.raises(DriverSettingsError, match="has not been configured yet"):
        DiscourseClient.from_settings(None)


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        ({"discourse_apikey": API_KEY}, "Parameter discourse_url is missing."),
        ({"discourse_url": "  ", "discourse_apikey": API_KEY}, "Parameter discourse_url is missing."),
        ({"discourse_url": BASE_URL}, "Parameter discourse_apikey is missing."),
        ({"discourse_url": BASE_URL, "discourse_apikey": ""}, "Parameter discourse_apikey is missing."),
    ],
)
def test_from_settings_rejects_blank_parameters(settings: dict, message: str) -> None:
    with pytest.raises(DriverSettingsError) as excinfo:
        DiscourseClient.from_settings(settings)
    assert str(excinfo.value) == message


def test_from_settings_uses_fetcher_factory(fake) -> None:
    seen = {}

    def factory(base_url: str, api_key: str):
        seen["args"] = (base_url, api_key)
        return fake.fetcher(base_url, api_key)

    client = DiscourseClient.from_settings(
        {"discourse_url": "https://forum.example.com", "discourse_apikey": "key"},
        fetcher_factory=factory,
    )

    assert seen["args"] == ("https://forum.example.com", "key")
    assert client.base_url == "https://forum.example.com/"
    client.close()


def test_requests_carry_api_headers(fake, make_client) -> None:
    fake.add_groups([])
    client = make_client()

    client.get_sets()

    request = fake.requests[0]
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Api-Key"] == API_KEY
    assert request.headers["Api-Username"] == "system"
    assert request.headers["User-Agent"].startswith("discourse-connector/")


# -- users ------------------------------------------------------------------


def test_get_users_walks_pages_until_empty(fake, make_client) -> None:
    fake.add_users(
        [user_record(10, "Nelly", "Member 1"), user_record(11, "Mike", "Member 2")],
        [user_record(12, "Clarke", "Member 3")],
    )
    client = make_client()

    users = client.get_users()

    assert [u.id for u in users] == ["10", "11", "12"]
    assert [u.username for u in users] == ["Nelly", "Mike", "Clarke"]
    assert sorted(client.users) == ["10", "11", "12"]

    list_calls = fake.calls("GET", "/admin/users/list")
    assert [r.url.params["page"] for r in list_calls] == ["1", "2", "3"]
    detail_calls = [r for r in fake.requests if r.url.path.endswith(".json")]
    assert len(detail_calls) == 3


def test_get_users_is_cached(fake, make_client) -> None:
    fake.add_users([user_record(10, "Nelly")])
    client = make_client()

    client.get_users()
    count = len(fake.requests)
    client.get_users()

    assert len(fake.requests) == count


def test_get_users_skips_system_accounts(fake, make_client) -> None:
    fake.add_users([user_record(-1, "system"), user_record(0, "discobot"), user_record(10, "Nelly")])
    client = make_client()

    users = client.get_users()

    assert [u.id for u in users] == ["10"]
    assert not fake.calls("GET", "/admin/users/-1.json")
    assert not fake.calls("GET", "/admin/users/0.json")


def test_get_users_later_duplicates_win(fake, make_client) -> None:
    fake.add_users(
        [user_record(10, "Nelly"), user_record(11, "Mike")],
        [user_record(10, "Nelly2")],
    )
    client = make_client()

    users = client.get_users()

    assert [u.id for u in users] == ["10", "11"]
    assert client.users["10"].username == "Nelly2"


def test_get_users_failure_leaves_cache_unloaded(fake, make_client) -> None:
    fake.add("GET", "/admin/users/list", [{"id": 10, "username": "Nelly"}], httpx.Response(502))
    fake.add("GET", "/admin/users/10.json", user_record(10, "Nelly"))
    client = make_client()

    with pytest.raises(RemoteCallError):
        client.get_users()

    assert client.users == {}


def test_user_groups_are_hydrated(fake, make_client) -> None:
    fake.add_users([user_record(10, "Nelly", group_ids=(41, 50, 50))])
    client = make_client()

    user = client.get_users()[0]

    assert user.group_ids == ["41", "50"]


def test_get_user_uses_cache_after_full_load(fake, make_client) -> None:
    fake.add_users([user_record(10, "Nelly"), user_record(11, "Mike", "Member 2")])
    client = make_client()
    client.get_users()
    count = len(fake.requests)

    user = client.get_user("11")

    assert user.username == "Mike"
    assert user.name == "Member 2"
    assert len(fake.requests) == count


def test_get_user_fetches_and_caches(fake, make_client) -> None:
    fake.add("GET", "/admin/users/24.json", user_record(24, "Jocelyn", "Member 4"))
    client = make_client()

    user = client.get_user(24)

    assert user.id == "24"
    assert user.username == "Jocelyn"
    assert client.users["24"] is user
    assert client.get_user("24") is user
    assert len(fake.calls("GET", "/admin/users/24.json")) == 1


def test_get_user_not_found_raises_invalid_identity(fake, make_client) -> None:
    client = make_client()

    with pytest.raises(InvalidIdentityError, match="User ID 99 is not found."):
        client.get_user("99")


@pytest.mark.parametrize("status", [400, 403, 500, 503])
def test_get_user_other_failures_are_remote_call_errors(fake, make_client, status: int) -> None:
    fake.add("GET", "/admin/users/24.json", httpx.Response(status, json={"errors": ["nope"]}))
    client = make_client()

    with pytest.raises(RemoteCallError) as excinfo:
        client.get_user("24")

    assert not isinstance(excinfo.value, InvalidIdentityError)
    assert excinfo.value.status_code == status


def test_find_user_returns_none_for_missing_identity(fake, make_client) -> None:
    client = make_client()

    assert client.find_user("99") is None


def test_find_user_still_raises_on_outage(fake, make_client) -> None:
    fake.add("GET", "/admin/users/24.json", httpx.Response(503))
    client = make_client()

    with pytest.raises(RemoteCallError):
        client.find_user("24")


def test_full_load_keeps_previously_fetched_user(fake, make_client) -> None:
    fake.add_users([user_record(10, "Nelly"), user_record(11, "Mike")])
    client = make_client()
    early = client.get_user("11")

    users = client.get_users()

    assert len(users) == 2
    assert client.users["11"] is early


def test_get_user_by_external_id(fake, make_client) -> None:
    fake.add("GET", "/u/by-external/7.json", {"user": {"id": 24, "username": "Jocelyn"}})
    fake.add("GET", "/admin/users/24.json", user_record(24, "Jocelyn"))
    client = make_client()

    user = client.get_user_by_external_id(7)

    assert user is not None
    assert user.id == "24"


def test_get_user_by_external_id_missing(fake, make_client) -> None:
    client = make_client()

    assert client.get_user_by_external_id(7) is None


# -- groups -----------------------------------------------------------------


def test_get_sets_walks_pages_until_empty(fake, make_client) -> None:
    fake.add_groups(
        [{"id": 50, "name": "TEST GROUP"}, {"id": 51, "name": "Another Test Group"}],
        [{"id": 52, "name": "Yet another test group"}],
    )
    client = make_client()

    groups = client.get_sets()

    assert [(g.id, g.name) for g in groups] == [
        ("50", "TEST GROUP"),
        ("51", "Another Test Group"),
        ("52", "Yet another test group"),
    ]
    assert [r.url.params["page"] for r in fake.calls("GET", "/groups")] == ["0", "1", "2"]


def test_get_set_by_id(fake, make_client) -> None:
    fake.add_groups([{"id": 50, "name": "A"}, {"id": 51, "name": "B"}])
    client = make_client()

    group = client.get_set("50")

    assert group is not None
    assert group.name == "A"
    assert client.get_set("99") is None
    assert len(fake.calls("GET", "/groups")) == 2


def test_is_builtin_uses_configured_groups(make_client) -> None:
    client = make_client()
    assert client.is_builtin("1")
    assert client.is_builtin(14)
    assert not client.is_builtin("50")

    custom = make_client(builtin_groups={50: "custom"})
    assert custom.is_builtin("50")
    assert not custom.is_builtin("1")


def test_reset_forgets_caches(fake, make_client) -> None:
    fake.add_groups([{"id": 50, "name": "A"}])
    client = make_client()
    client.get_sets()

    client.reset()
    fake.routes.clear()
    fake.add_groups([{"id": 50, "name": "A"}])
    client.get_sets()

    assert client.groups["50"].name == "A"
    assert len(fake.calls("GET", "/groups")) == 4


# -- raw calls --------------------------------------------------------------


def test_call_substitutes_and_strips_placeholders(fake, make_client) -> None:
    fake.add("PUT", "/groups/50/members", {"success": "OK"})
    client = make_client()

    result = client.call("PUT", "/groups/{group_id}/members", {"group_id": 50, "usernames": "Mike"})

    assert result == {"success": "OK"}
    request = fake.requests[0]
    assert request.url.path == "/groups/50/members"
    assert request.url.params == httpx.QueryParams()
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.content == b"usernames=Mike"


def test_call_sends_remaining_get_arguments_as_query(fake, make_client) -> None:
    fake.add("GET", "/admin/users/10.json", user_record(10, "Nelly"))
    client = make_client()

    client.call("GET", "admin/users/{user_id}.json", {"user_id": 10, "show_emails": "true"})

    request = fake.requests[0]
    assert request.url.path == "/admin/users/10.json"
    assert dict(request.url.params) == {"show_emails": "true"}


def test_call_wraps_transport_failures(fake, make_client) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fake.add("GET", "/groups", refuse)
    client = make_client()

    with pytest.raises(RemoteCallError) as excinfo:
        client.call("GET", "/groups")

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_call_rejects_malformed_body(fake, make_client) -> None:
    fake.add("GET", "/groups", httpx.Response(200, content=b"<html>oops</html>"))
    client = make_client()

    with pytest.raises(RemoteCallError, match="malformed"):
        client.call("GET", "/groups")


def test_call_returns_none_for_empty_body(fake, make_client) -> None:
    fake.add("DELETE", "/groups/50/members", httpx.Response(200))
    client = make_client()

    assert client.call("DELETE", "/groups/{group_id}/members", {"group_id": 50}) is None
