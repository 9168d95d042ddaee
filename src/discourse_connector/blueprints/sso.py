"""Discourse SSO blueprint.

Discourse redirects the browser here with a signed ``sso`` payload; the reply
redirects back to the forum with the host user's identity and the names of
the groups they are allowed to hold.
"""

import logging

from flask import Blueprint, abort, current_app, g, jsonify, redirect, request
from werkzeug.wrappers import Response

from discourse_client import DriverError, DriverSettingsError
from discourse_connector.blueprints.auth import login_required
from discourse_connector.models.set_mapping import SetMapping
from discourse_connector.services import sso_service
from discourse_connector.services.directory import get_client

logger = logging.getLogger(__name__)

bp = Blueprint("sso", __name__, url_prefix="/connector/discourse")


@bp.route("/sso")
@login_required
def login() -> Response | tuple[Response, int]:
    """Answer a Discourse SSO request for the signed-in host user."""
    user = g.user
    if not user.email:
        return jsonify({"error": "You must enter an email address to use Discourse."}), 400

    secret = current_app.config.get("DISCOURSE_SSO_SECRET", "")
    payload = request.args.get("sso")
    if not sso_service.validate_payload(secret, payload, request.args.get("sig")):
        logger.warning(f"Rejected Discourse SSO request with a bad signature for user {user.id}")
        abort(403)
    assert payload is not None

    try:
        nonce = sso_service.get_nonce(payload)
    except sso_service.PayloadError as e:
        return jsonify({"error": str(e)}), 400

    try:
        client = get_client()
        with client.lock:
            groups = sso_service.sso_group_names(client, SetMapping.allowed_sets(user.id))
    except DriverSettingsError as e:
        logger.error(f"Discourse SSO unavailable: {e}")
        return jsonify({"error": str(e)}), 503
    except DriverError as e:
        logger.error(f"Discourse SSO could not load groups: {e}")
        return jsonify({"error": "Unable to reach Discourse."}), 502

    try:
        return_url = sso_service.get_return_sso_url(payload)
    except sso_service.PayloadError:
        return_url = None
    if return_url is not None and not return_url.startswith(client.base_url):
        logger.warning(
            f"Discourse SSO request for user {user.id} came from {return_url}, "
            f"not the configured forum {client.base_url}"
        )

    query = sso_service.build_sign_in_string(
        secret,
        nonce,
        user.id,
        user.email,
        sso_service.build_extra_parameters(user, groups),
    )

    return redirect(f"{client.base_url}session/sso_login?{query}")
