"""Reconcile Discourse group membership with host set grants."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from discourse_client import DiscourseClient, DiscourseUser, MutationError
from discourse_connector.models.audit_log import audit_log
from discourse_connector.models.connector_user import ConnectorUser
from discourse_connector.models.set_mapping import SetMapping

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    user_id: str
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    renamed_to: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.renamed_to)


def sync_user(
    client: DiscourseClient,
    user: DiscourseUser,
    allowed_set_ids: Iterable[str],
    expected_username: str | None = None,
) -> SyncResult:
    """Bring one forum user's groups in line with the sets they are allowed.

    Allowed sets missing remotely are added, held sets that are not allowed are
    removed (builtin groups are never removed). A failed change is recorded in
    the result and the remaining changes still run.
    """
    result = SyncResult(user_id=user.id)
    allowed = {str(set_id) for set_id in allowed_set_ids}

    if expected_username and expected_username != user.username:
        try:
            user.set_name(expected_username)
            result.renamed_to = expected_username
        except MutationError as e:
            result.errors.append(str(e))

    held = {group.id for group in user.get_sets()}

    for set_id in sorted(allowed - held):
        group = client.get_set(set_id)
        if group is None:
            logger.warning(f"Allowed set {set_id} does not exist on Discourse")
            continue
        try:
            user.add_set(group)
            result.added.append(group.id)
        except MutationError as e:
            result.errors.append(str(e))

    for group in user.get_sets():
        if group.id in allowed or client.is_builtin(group.id):
            continue
        try:
            user.remove_set(group)
            result.removed.append(group.id)
        except MutationError as e:
            result.errors.append(str(e))

    return result


def sync_all(client: DiscourseClient) -> list[SyncResult]:
    """Reconcile every linked host user (Flask app context required)."""
    results = []

    with client.lock:
        for link in ConnectorUser.get_all():
            user = client.find_user(link.connector_id)
            if user is None:
                logger.warning(
                    f"Discourse user {link.connector_id} linked to host user {link.user_id} "
                    "no longer exists; skipping"
                )
                continue

            result = sync_user(client, user, SetMapping.allowed_sets(link.user_id))

            if user.username != link.connector_name:
                logger.info(f"Discourse user {user.id} is now {user.username} (was {link.connector_name})")
                link.rename(user.username)

            for set_id in result.added:
                audit_log("set_added", user.username, f"Added to set {set_id}", actor="sync")
            for set_id in result.removed:
                audit_log("set_removed", user.username, f"Removed from set {set_id}", actor="sync")
            for error in result.errors:
                logger.error(f"Sync of {user.username}: {error}")

            results.append(result)

    return results
