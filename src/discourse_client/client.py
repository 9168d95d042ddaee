"""DiscourseClient - cached, paginated view of a Discourse forum's users and groups."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from discourse_client.backends.base import Fetcher
from discourse_client.exceptions import DriverSettingsError, InvalidIdentityError, RemoteCallError
from discourse_client.models import DiscourseGroup, DiscourseUser

logger = logging.getLogger("discourse_client.client")

# Groups whose membership Discourse manages itself. Members may be added to
# them, but removals are never sent.
BUILTIN_GROUPS: dict[str, str] = {
    "1": "admins",
    "2": "moderators",
    "3": "staff",
    "10": "trust_level_0",
    "11": "trust_level_1",
    "12": "trust_level_2",
    "13": "trust_level_3",
    "14": "trust_level_4",
}

FetcherFactory = Callable[[str, str], Fetcher]


class DiscourseClient:
    """Directory client for a single Discourse forum.

    Users and groups are loaded lazily and cached for the lifetime of the
    handle. Entities reference each other by ID; the client owns the objects.

    Usage:
        client = DiscourseClient("https://forum.example.com", "api-key")

        for user in client.get_users():
            print(user.username, [s.name for s in user.get_sets()])

        group = client.get_set("42")
        if group is not None:
            group.add_member(client.get_user("17"))

    The client is not thread-safe. Hosts sharing one handle across threads
    must hold ``client.lock`` around each compound operation.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        fetcher: Fetcher | None = None,
        builtin_groups: Mapping[str | int, str] | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise DriverSettingsError("Parameter discourse_url is missing.")
        if not api_key or not api_key.strip():
            raise DriverSettingsError("Parameter discourse_apikey is missing.")

        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key

        if fetcher is None:
            from discourse_client.backends.http import HttpFetcher

            fetcher = HttpFetcher(self.base_url, api_key)
        self.fetcher = fetcher

        groups = BUILTIN_GROUPS if builtin_groups is None else builtin_groups
        self.builtin_groups: dict[str, str] = {str(k): v for k, v in groups.items()}

        self.users: dict[str, DiscourseUser] = {}
        self.groups: dict[str, DiscourseGroup] = {}
        self._users_loaded = False
        self._groups_loaded = False

        self.lock = threading.RLock()

    @classmethod
    def from_settings(
        cls,
        settings: Mapping[str, Any] | None,
        fetcher_factory: FetcherFactory | None = None,
    ) -> DiscourseClient:
        """Build a client from a host settings mapping.

        Expects ``discourse_url`` and ``discourse_apikey`` keys. Raises
        DriverSettingsError when the mapping is absent or either value is blank.
        """
        if settings is None or not isinstance(settings, Mapping):
            raise DriverSettingsError("The Driver has not been configured yet.")

        base_url = settings.get("discourse_url")
        if base_url is None or str(base_url).strip() == "":
            raise DriverSettingsError("Parameter discourse_url is missing.")

        api_key = settings.get("discourse_apikey")
        if api_key is None or str(api_key).strip() == "":
            raise DriverSettingsError("Parameter discourse_apikey is missing.")

        fetcher = fetcher_factory(str(base_url), str(api_key)) if fetcher_factory else None
        return cls(str(base_url), str(api_key), fetcher=fetcher)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def reset(self) -> None:
        """Forget every cached user and group."""
        self.users = {}
        self.groups = {}
        self._users_loaded = False
        self._groups_loaded = False

    def close(self) -> None:
        """Reset the caches and release the transport."""
        self.reset()
        self.fetcher.close()

    def __enter__(self) -> DiscourseClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------

    def get_users(self) -> list[DiscourseUser]:
        """Return every forum user, loading the full list on first use."""
        if not self._users_loaded:
            self._seed_users()
        return list(self.users.values())

    def get_user(self, user_id: str | int) -> DiscourseUser:
        """Return a single user, fetching it if it is not cached.

        Raises InvalidIdentityError when the forum reports the ID as unknown.
        """
        user_id = str(user_id)
        user = self.users.get(user_id)
        if user is not None:
            return user

        try:
            attributes = self.call("GET", "/admin/users/{user_id}.json", {"user_id": user_id})
        except RemoteCallError as e:
            if e.status_code == 404:
                logger.error(f"Discourse user {user_id} not found: {e}")
                raise InvalidIdentityError(f"User ID {user_id} is not found.") from e
            raise

        user = DiscourseUser.from_api(self, attributes)
        self.users[user.id] = user
        return user

    def find_user(self, user_id: str | int) -> DiscourseUser | None:
        """Like get_user, but return None when the account no longer exists."""
        try:
            return self.get_user(user_id)
        except InvalidIdentityError:
            return None

    def get_user_by_external_id(self, external_id: str | int) -> DiscourseUser | None:
        """Resolve an SSO external ID to a forum user, or None if none is linked."""
        try:
            payload = self.call(
                "GET", "/u/by-external/{external_id}.json", {"external_id": str(external_id)}
            )
        except RemoteCallError as e:
            if e.status_code == 404:
                return None
            raise

        user_id = (payload or {}).get("user", {}).get("id")
        if user_id is None:
            return None
        return self.find_user(user_id)

    def _seed_users(self) -> None:
        fetched: dict[str, dict[str, Any]] = {}
        page = 1

        while True:
            entries = self.call("GET", "/admin/users/list", {"page": page})
            if not entries:
                break

            for entry in entries:
                # ids below 1 belong to system accounts
                if int(entry["id"]) < 1:
                    continue

                # the list endpoint omits group membership
                detail = self.call(
                    "GET", "/admin/users/{user_id}.json", {"user_id": int(entry["id"])}
                )
                fetched[str(detail["id"])] = detail

            page += 1

        for user_id, attributes in fetched.items():
            user = self.users.get(user_id)
            if user is None:
                self.users[user_id] = DiscourseUser.from_api(self, attributes)
            else:
                user.hydrate(attributes)

        self._users_loaded = True
        logger.debug(f"Loaded {len(fetched)} Discourse users over {page} pages")

    # -------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------

    def get_sets(self) -> list[DiscourseGroup]:
        """Return every forum group, loading the full list on first use."""
        if not self._groups_loaded:
            self._seed_groups()
        return list(self.groups.values())

    def get_set(self, group_id: str | int) -> DiscourseGroup | None:
        """Look up a group by ID. Returns None if the forum has no such group."""
        if not self._groups_loaded:
            self._seed_groups()
        return self.groups.get(str(group_id))

    def is_builtin(self, group_id: str | int) -> bool:
        """Check whether a group's membership is managed by Discourse itself."""
        return str(group_id) in self.builtin_groups

    def _seed_groups(self) -> None:
        fetched: dict[str, DiscourseGroup] = {}
        # group pages are zero-based
        page = 0

        while True:
            payload = self.call("GET", "/groups", {"page": page})
            entries = payload.get("groups") if isinstance(payload, dict) else None
            if not entries:
                break

            for entry in entries:
                group = DiscourseGroup.from_api(self, entry)
                fetched[group.id] = group

            page += 1

        self.groups.update(fetched)
        self._groups_loaded = True
        logger.debug(f"Loaded {len(fetched)} Discourse groups over {page + 1} pages")

    # -------------------------------------------------------------------
    # Raw API access
    # -------------------------------------------------------------------

    def call(self, method: str, endpoint: str, arguments: Mapping[str, Any] | None = None) -> Any:
        """Send a request to the forum API and return the decoded JSON body.

        ``{name}`` segments in ``endpoint`` are filled from ``arguments`` and the
        matching keys are removed. What remains is sent as the query string for
        GET and as a form body otherwise.
        """
        method = method.upper()
        arguments = dict(arguments or {})
        uri = endpoint.lstrip("/")

        for name in list(arguments):
            placeholder = f"{{{name}}}"
            if placeholder not in uri:
                continue
            uri = uri.replace(placeholder, str(arguments.pop(name)))

        try:
            if method == "GET":
                response = self.fetcher.request(method, uri, params=arguments)
            else:
                response = self.fetcher.request(method, uri, data=arguments)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach Discourse at {self.base_url}: {e}")
            raise RemoteCallError(f"{method} /{uri} failed: {e}") from e

        logger.debug(
            f"[http {response.status_code}, {response.reason_phrase}] {method} -> /{uri}"
        )

        if not response.is_success:
            raise RemoteCallError(
                f"{method} /{uri} returned HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(f"{method} /{uri} returned a malformed body: {e}") from e
