"""Signed host session tokens.

Hosts that do not supply their own user loader identify the signed-in user
with a ``dc_session`` cookie carrying a signed HostUser payload.
"""

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from discourse_connector.models.host_user import HostUser

TOKEN_VERSION = 1
SESSION_SALT = "discourse-connector-session"
SESSION_COOKIE = "dc_session"


def get_serializer() -> URLSafeTimedSerializer:
    """Get a URLSafeTimedSerializer using the app's SECRET_KEY."""
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"])


def create_session_token(user: HostUser) -> str:
    """Create a signed session token for a host user."""
    payload = {
        "v": TOKEN_VERSION,
        "id": user.id,
        "u": user.username,
        "n": user.name,
        "e": user.email,
        "a": user.avatar_url,
        "su": user.is_superuser,
    }
    s = get_serializer()
    return s.dumps(payload, salt=SESSION_SALT)


def verify_session_token(token: str, max_age: int = 86400) -> HostUser | None:
    """Verify a session token. Returns the HostUser if valid, None otherwise."""
    s = get_serializer()

    try:
        payload = s.loads(token, salt=SESSION_SALT, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None

    if payload.get("v") != TOKEN_VERSION or payload.get("id") is None:
        return None

    return HostUser(
        id=int(payload["id"]),
        username=payload.get("u", ""),
        name=payload.get("n", ""),
        email=payload.get("e", ""),
        avatar_url=payload.get("a", ""),
        is_superuser=bool(payload.get("su", False)),
    )


def load_user_from_cookie() -> HostUser | None:
    """Default user loader: read the signed session cookie."""
    from flask import request

    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    return verify_session_token(token)
