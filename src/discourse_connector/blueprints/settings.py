"""Connector administration blueprint (JSON): driver settings, set grants, audit log."""

from urllib.parse import urlparse

from flask import Blueprint, jsonify, request
from werkzeug.wrappers import Response

from discourse_connector.blueprints.auth import superuser_required
from discourse_connector.config import DRIVER_SETTINGS, resolve_entry, serialize_value
from discourse_connector.models.app_setting import AppSetting
from discourse_connector.models.audit_log import audit_log, recent_entries
from discourse_connector.models.set_mapping import PUBLIC, USER, SetMapping
from discourse_connector.services.directory import tear_down

bp = Blueprint("settings", __name__, url_prefix="/connector/settings")


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@bp.route("/discourse", methods=["GET"])
@superuser_required
def show() -> Response:
    """Show the stored driver settings, with secrets masked."""
    settings = {}
    for name, key in DRIVER_SETTINGS.items():
        entry = resolve_entry(key)
        value = AppSetting.get(key)
        if value and entry is not None and entry.secret:
            value = "********"
        settings[name] = value
    return jsonify(settings)


@bp.route("/discourse", methods=["POST"])
@superuser_required
def store() -> Response | tuple[Response, int]:
    """Validate and store the forum URL and API key."""
    data = request.get_json(silent=True) or request.form
    discourse_url = (data.get("discourse_url") or "").strip()
    discourse_apikey = (data.get("discourse_apikey") or "").strip()

    errors = {}
    if not discourse_url:
        errors["discourse_url"] = "The discourse url field is required."
    elif not _is_url(discourse_url):
        errors["discourse_url"] = "The discourse url format is invalid."
    if not discourse_apikey:
        errors["discourse_apikey"] = "The discourse apikey field is required."
    if errors:
        return jsonify({"errors": errors}), 400

    for name, value in (("discourse_url", discourse_url), ("discourse_apikey", discourse_apikey)):
        key = DRIVER_SETTINGS[name]
        entry = resolve_entry(key)
        assert entry is not None
        AppSetting.set(key, serialize_value(entry, value), entry.description)

    # the next request builds a client with the new settings
    tear_down()
    audit_log("settings_updated", "discourse", f"Discourse URL set to {discourse_url}")

    return jsonify({"status": "ok", "message": "Discourse settings has successfully been updated."})


def _read_grant() -> tuple[tuple[str, int, str] | None, dict[str, str]]:
    """Parse a set grant from the request body into (entity_type, entity_id, set_id)."""
    data = request.get_json(silent=True) or request.form
    entity_type = str(data.get("entity_type") or "").strip()
    set_id = str(data.get("set_id") or "").strip()

    errors = {}
    if entity_type not in (PUBLIC, USER):
        errors["entity_type"] = "The entity type must be public or user."
    if not set_id:
        errors["set_id"] = "The set id field is required."

    entity_id = 0
    if entity_type == USER:
        try:
            entity_id = int(data.get("entity_id"))
        except (TypeError, ValueError):
            errors["entity_id"] = "The entity id must be a host user ID."

    if errors:
        return None, errors
    return (entity_type, entity_id, set_id), {}


@bp.route("/sets", methods=["GET"])
@superuser_required
def list_grants() -> Response:
    """List which Discourse groups are granted to whom."""
    return jsonify({"grants": SetMapping.get_all()})


@bp.route("/sets", methods=["POST"])
@superuser_required
def add_grant() -> Response | tuple[Response, int]:
    """Grant a Discourse group to every host user or to one of them."""
    grant, errors = _read_grant()
    if grant is None:
        return jsonify({"errors": errors}), 400

    entity_type, entity_id, set_id = grant
    if entity_type == PUBLIC:
        added = SetMapping.grant_public(set_id)
    else:
        added = SetMapping.grant_user(entity_id, set_id)

    if not added:
        return jsonify({"status": "unchanged"})
    audit_log("set_granted", f"{entity_type}/{entity_id}", f"Granted set {set_id}")
    return jsonify({"status": "ok"}), 201


@bp.route("/sets/remove", methods=["POST"])
@superuser_required
def remove_grant() -> Response | tuple[Response, int]:
    """Withdraw a set grant. Forum memberships follow on the next sync."""
    grant, errors = _read_grant()
    if grant is None:
        return jsonify({"errors": errors}), 400

    entity_type, entity_id, set_id = grant
    if not SetMapping.revoke(entity_type, entity_id, set_id):
        return jsonify({"error": "No such grant."}), 404
    audit_log("set_revoked", f"{entity_type}/{entity_id}", f"Revoked set {set_id}")
    return jsonify({"status": "ok"})


@bp.route("/audit")
@superuser_required
def audit() -> Response:
    """Recent audit entries, newest first."""
    limit = min(max(request.args.get("limit", 50, type=int), 1), 500)
    return jsonify({"entries": recent_entries(limit)})
