"""Host session helpers shared by the connector blueprints."""

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import Blueprint, current_app, g, jsonify

from discourse_connector.services import token_service

bp = Blueprint("auth", __name__)

USER_LOADER_KEY = "discourse_user_loader"


@bp.before_app_request
def load_user() -> None:
    """Load the current host user on every request."""
    loader = current_app.extensions.get(USER_LOADER_KEY, token_service.load_user_from_cookie)
    g.user = loader()


def login_required(f: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: require a signed-in host user."""

    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if g.get("user") is None:
            return jsonify({"error": "Authentication required"}), 401
        return f(*args, **kwargs)

    return decorated


def superuser_required(f: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: require a host superuser."""

    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if g.get("user") is None:
            return jsonify({"error": "Authentication required"}), 401
        if not g.user.is_superuser:
            return jsonify({"error": "Superuser access required"}), 403
        return f(*args, **kwargs)

    return decorated
