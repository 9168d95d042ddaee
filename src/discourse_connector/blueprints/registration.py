"""Registration blueprint.

Accounts are created on the forum by the SSO handshake, so registration only
links an already existing forum account and sends the user to the forum.
"""

import logging

from flask import Blueprint, g, jsonify, redirect
from werkzeug.wrappers import Response

from discourse_client import DriverError, DriverSettingsError
from discourse_connector.blueprints.auth import login_required
from discourse_connector.models.audit_log import audit_log
from discourse_connector.models.connector_user import ConnectorUser
from discourse_connector.services.directory import get_client

logger = logging.getLogger(__name__)

bp = Blueprint("registration", __name__, url_prefix="/connector/registration")


@bp.route("/discourse")
@login_required
def handle_registration() -> Response | tuple[Response, int]:
    """Link the host user's forum account if one exists, then go to the forum."""
    try:
        client = get_client()
    except DriverSettingsError as e:
        return jsonify({"error": str(e)}), 503

    try:
        with client.lock:
            remote = client.get_user_by_external_id(g.user.id)
    except DriverError as e:
        logger.warning(f"Could not look up Discourse account for host user {g.user.id}: {e}")
        remote = None

    if remote is not None:
        existing = ConnectorUser.get(g.user.id)
        owner = ConnectorUser.get_by_connector_id(remote.id)
        if owner is not None and owner.user_id != g.user.id:
            logger.warning(
                f"Discourse account {remote.id} is already linked to host user {owner.user_id}; "
                f"not linking it to {g.user.id}"
            )
        elif existing is None or existing.connector_id != remote.id:
            link = ConnectorUser.update_or_create(
                user_id=g.user.id,
                connector_id=remote.id,
                unique_id=g.user.email,
                connector_name=remote.username,
            )
            audit_log(
                "registration",
                link.connector_name,
                f"User {g.user.username} ({link.user_id}) has been registered with ID "
                f"{link.connector_id} and UID {link.unique_id}",
            )

    return redirect(client.base_url)
