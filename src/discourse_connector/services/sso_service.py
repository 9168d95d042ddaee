"""Discourse SSO (DiscourseConnect) payload signing and verification.

Discourse sends ``sso`` (a base64-encoded query string holding ``nonce`` and
``return_sso_url``) and ``sig`` (hex HMAC-SHA256 of ``sso`` keyed with the
shared secret). The reply uses the same scheme.
"""

import base64
import binascii
import hashlib
import hmac
from collections.abc import Iterable
from typing import Any
from urllib.parse import parse_qs, unquote, urlencode

from discourse_client import DiscourseClient
from discourse_connector.models.host_user import HostUser


class PayloadError(ValueError):
    """Raised when an inbound SSO payload cannot be decoded or lacks a field."""


def sign_payload(secret: str, payload: str) -> str:
    """Return the hex HMAC-SHA256 signature of a base64 payload."""
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def validate_payload(secret: str, payload: str | None, signature: str | None) -> bool:
    """Check an inbound payload against its signature."""
    if not secret or not payload or not signature:
        return False
    return hmac.compare_digest(sign_payload(secret, unquote(payload)), signature)


def _decode(payload: str) -> dict[str, list[str]]:
    try:
        raw = base64.b64decode(unquote(payload)).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise PayloadError(f"Payload is not valid base64: {e}") from e
    return parse_qs(raw)


def get_nonce(payload: str) -> str:
    """Extract the nonce from an inbound payload."""
    query = _decode(payload)
    if "nonce" not in query:
        raise PayloadError("Nonce not found in payload")
    return query["nonce"][0]


def get_return_sso_url(payload: str) -> str:
    """Extract the return URL from an inbound payload."""
    query = _decode(payload)
    if "return_sso_url" not in query:
        raise PayloadError("Return SSO URL not found in payload")
    return query["return_sso_url"][0]


def sso_group_names(client: DiscourseClient, allowed_set_ids: Iterable[str]) -> str:
    """Comma-join the names of the forum groups a host user is allowed to hold.

    Allowed IDs with no matching forum group are ignored.
    """
    names = []
    for set_id in allowed_set_ids:
        group = client.get_set(set_id)
        if group is not None:
            names.append(group.name)
    return ",".join(names)


def build_extra_parameters(user: HostUser, groups: str) -> dict[str, str]:
    """Profile fields Discourse applies on login."""
    return {
        "avatar_url": user.avatar_url,
        # the avatar is cached remotely
        "avatar_force_update": "false",
        "name": user.name,
        "require_activation": "false",
        "username": user.username,
        "groups": groups,
    }


def build_sign_in_string(
    secret: str,
    nonce: str,
    external_id: int | str,
    email: str,
    extra_parameters: dict[str, Any] | None = None,
) -> str:
    """Build the signed ``sso=...&sig=...`` query string for the login redirect."""
    parameters: dict[str, Any] = {"nonce": nonce, "external_id": external_id, "email": email}
    for key, value in (extra_parameters or {}).items():
        parameters.setdefault(key, value)

    payload = base64.b64encode(urlencode(parameters).encode()).decode()
    return urlencode({"sso": payload, "sig": sign_payload(secret, payload)})
