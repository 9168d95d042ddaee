"""Forum users and groups, hydrated from Discourse API records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from discourse_client.exceptions import MutationError, RemoteCallError

if TYPE_CHECKING:
    from discourse_client.client import DiscourseClient

logger = logging.getLogger("discourse_client.models")


@dataclass(eq=False)
class DiscourseUser:
    id: str
    username: str
    name: str
    group_ids: list[str] = field(default_factory=list)
    client: DiscourseClient | None = field(default=None, repr=False)
    # IDs from group_ids that resolved to a known group; None until first read
    _set_ids: list[str] | None = field(default=None, init=False, repr=False)

    @staticmethod
    def from_api(client: DiscourseClient, attributes: dict[str, Any]) -> DiscourseUser:
        user = DiscourseUser(id="", username="", name="", client=client)
        return user.hydrate(attributes)

    def hydrate(self, attributes: dict[str, Any]) -> DiscourseUser:
        """Refresh identity fields and group IDs from an admin user record."""
        self.id = str(attributes["id"])
        self.username = attributes["username"]
        self.name = attributes.get("name") or ""

        group_ids: list[str] = []
        for group in attributes.get("groups") or []:
            group_id = str(group["id"])
            if group_id not in group_ids:
                group_ids.append(group_id)
        self.group_ids = group_ids
        self._set_ids = None
        return self

    def _require_client(self) -> DiscourseClient:
        if self.client is None:
            raise RuntimeError(f"User {self.username} is not bound to a DiscourseClient")
        return self.client

    def set_name(self, name: str) -> bool:
        """Rename the forum account. Returns True once Discourse accepts the change."""
        client = self._require_client()
        try:
            client.call(
                "PUT",
                "/u/{username}/preferences/username",
                {"username": self.username, "new_username": name},
            )
        except RemoteCallError as e:
            logger.error(f"Discourse rename of {self.username} failed: {e}")
            raise MutationError(
                f"Unable to change user name from {self.username} to {name}."
            ) from e

        self.username = name
        return True

    def get_sets(self) -> list[DiscourseGroup]:
        """Return the groups this user belongs to, resolving them on first use."""
        client = self._require_client()
        if self._set_ids is None:
            set_ids = []
            for group_id in self.group_ids:
                # the group may have been deleted remotely
                if client.get_set(group_id) is None:
                    continue
                set_ids.append(group_id)
            self._set_ids = set_ids
        return [client.groups[group_id] for group_id in self._set_ids if group_id in client.groups]

    def in_set(self, group: DiscourseGroup) -> bool:
        """Check membership by group ID."""
        return group.id in self.group_ids

    def add_set(self, group: DiscourseGroup) -> None:
        """Add this user to a group. Does nothing if already a member."""
        if self.in_set(group):
            return

        client = self._require_client()
        try:
            client.call(
                "PUT",
                "/groups/{group_id}/members",
                {"group_id": group.id, "usernames": self.username},
            )
        except RemoteCallError as e:
            raise MutationError(
                f"Unable to add set {group.name} to the user {self.username}."
            ) from e

        self._attach(group)
        group._attach(self)

    def remove_set(self, group: DiscourseGroup) -> None:
        """Remove this user from a group. Builtin groups are left untouched."""
        client = self._require_client()
        if not self.in_set(group) or client.is_builtin(group.id):
            return

        try:
            client.call(
                "DELETE",
                "/groups/{group_id}/members",
                {"group_id": group.id, "usernames": self.username},
            )
        except RemoteCallError as e:
            logger.error(f"Discourse removal of {self.username} from {group.name} failed: {e}")
            raise MutationError(
                f"Unable to remove set {group.name} from the user {self.username}."
            ) from e

        self._detach(group)
        group._detach(self)

    def _attach(self, group: DiscourseGroup) -> None:
        if group.id not in self.group_ids:
            self.group_ids.append(group.id)
        if self._set_ids is not None and group.id not in self._set_ids:
            self._set_ids.append(group.id)

    def _detach(self, group: DiscourseGroup) -> None:
        if group.id in self.group_ids:
            self.group_ids.remove(group.id)
        if self._set_ids is not None and group.id in self._set_ids:
            self._set_ids.remove(group.id)


@dataclass(eq=False)
class DiscourseGroup:
    id: str
    name: str
    client: DiscourseClient | None = field(default=None, repr=False)
    # user IDs; None until the member list is first read
    _member_ids: list[str] | None = field(default=None, init=False, repr=False)

    @staticmethod
    def from_api(client: DiscourseClient, attributes: dict[str, Any]) -> DiscourseGroup:
        return DiscourseGroup(id=str(attributes["id"]), name=attributes["name"], client=client)

    def _require_client(self) -> DiscourseClient:
        if self.client is None:
            raise RuntimeError(f"Group {self.name} is not bound to a DiscourseClient")
        return self.client

    def get_members(self) -> list[DiscourseUser]:
        """Return every member of this group.

        The first call loads all forum users and scans their groups.
        """
        client = self._require_client()
        if self._member_ids is None:
            self._member_ids = [
                user.id
                for user in client.get_users()
                if any(group.id == self.id for group in user.get_sets())
            ]
        return [client.users[user_id] for user_id in self._member_ids if user_id in client.users]

    def has_member(self, user: DiscourseUser) -> bool:
        return any(member.id == user.id for member in self.get_members())

    def add_member(self, user: DiscourseUser) -> None:
        """Add a user to this group. Does nothing if the user is already a member."""
        if self.has_member(user):
            return

        client = self._require_client()
        try:
            client.call(
                "PUT",
                "/groups/{group_id}/members",
                {"group_id": self.id, "usernames": user.username},
            )
        except RemoteCallError as e:
            raise MutationError(
                f"Unable to add user {user.username} as a member of set {self.name}."
            ) from e

        self._attach(user)
        user._attach(self)

    def remove_member(self, user: DiscourseUser) -> None:
        """Remove a user from this group. Builtin groups are left untouched."""
        client = self._require_client()
        if client.is_builtin(self.id) or not self.has_member(user):
            return

        try:
            client.call(
                "DELETE",
                "/groups/{group_id}/members",
                {"group_id": self.id, "usernames": user.username},
            )
        except RemoteCallError as e:
            logger.error(f"Discourse removal of {user.username} from {self.name} failed: {e}")
            raise MutationError(
                f"Unable to remove user {user.username} from set {self.name}."
            ) from e

        self._detach(user)
        user._detach(self)

    def _attach(self, user: DiscourseUser) -> None:
        # an unloaded member list picks the change up when it is first read
        if self._member_ids is not None and user.id not in self._member_ids:
            self._member_ids.append(user.id)

    def _detach(self, user: DiscourseUser) -> None:
        if self._member_ids is not None and user.id in self._member_ids:
            self._member_ids.remove(user.id)
