"""Discourse Connector - group sync and SSO bridge between a host app and Discourse."""

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import apsw
from flask import Flask

from discourse_client.backends.base import Fetcher
from discourse_connector.config import KEY_MAP, REGISTRY, config_defaults, parse_value
from discourse_connector.models.host_user import HostUser

__all__ = ["create_app"]


def create_app(
    test_config: dict[str, Any] | None = None,
    fetcher_factory: Callable[[str, str], Fetcher] | None = None,
    user_loader: Callable[[], HostUser | None] | None = None,
) -> Flask:
    """Application factory for the Discourse Connector.

    ``fetcher_factory`` chooses the transport the Discourse client is built
    with; ``user_loader`` returns the signed-in host user for the current
    request (default: the signed ``dc_session`` cookie).
    """
    # Resolve database path
    db_path = os.environ.get("DISCOURSE_CONNECTOR_DB")
    if not db_path:
        # Fallback: project root detection for local development
        if "DISCOURSE_CONNECTOR_ROOT" in os.environ:
            project_root = Path(os.environ["DISCOURSE_CONNECTOR_ROOT"])
        else:
            source_root = Path(__file__).parent.parent.parent
            if (source_root / "src" / "discourse_connector" / "__init__.py").exists():
                project_root = source_root
            else:
                project_root = Path.cwd()
        db_path = str(project_root / "instance" / "discourse_connector.sqlite3")

    app = Flask(__name__, instance_path=str(Path(db_path).parent), instance_relative_config=True)

    # Minimal defaults before DB config is loaded
    app.config.from_mapping(config_defaults())
    app.config.from_mapping(
        SECRET_KEY="dev",
        DATABASE_PATH=db_path,
    )

    if test_config is not None:
        app.config.from_mapping(test_config)
    else:
        _load_config_from_db(app)

    from discourse_connector.db import close_db, init_db

    app.teardown_appcontext(close_db)

    from discourse_connector.blueprints import auth, registration, settings, sso
    from discourse_connector.services import directory

    directory.init_app(app, fetcher_factory)
    if user_loader is not None:
        app.extensions[auth.USER_LOADER_KEY] = user_loader

    app.register_blueprint(auth.bp)
    app.register_blueprint(sso.bp)
    app.register_blueprint(registration.bp)
    app.register_blueprint(settings.bp)

    # Startup checks
    with app.app_context():
        init_db()
        _check_discourse_configured(app)

    return app


def _load_config_from_db(app: Flask) -> None:
    """Load configuration from the database into Flask app.config."""
    db_path = app.config["DATABASE_PATH"]

    try:
        conn = apsw.Connection(db_path, flags=apsw.SQLITE_OPEN_READONLY)
    except apsw.CantOpenError:
        # Database doesn't exist yet (init_db runs below)
        return

    try:
        rows = conn.execute("SELECT key, value FROM app_setting").fetchall()
    except apsw.SQLError:
        # Table doesn't exist yet
        conn.close()
        return

    db_values = {str(r[0]): str(r[1]) for r in rows}
    conn.close()

    if "secret_key" in db_values:
        app.config["SECRET_KEY"] = db_values["secret_key"]

    # Apply registry entries
    for entry in REGISTRY:
        flask_key = KEY_MAP.get(entry.key)
        if not flask_key:
            continue

        raw = db_values.get(entry.key)
        if raw is not None:
            value = parse_value(entry, raw)
        else:
            value = entry.default

        app.config[flask_key] = value

    # Apply ProxyFix if any proxy values are non-zero
    x_for = app.config.get("PROXY_X_FORWARDED_FOR", 0)
    x_proto = app.config.get("PROXY_X_FORWARDED_PROTO", 0)
    x_host = app.config.get("PROXY_X_FORWARDED_HOST", 0)
    x_prefix = app.config.get("PROXY_X_FORWARDED_PREFIX", 0)
    if any((x_for, x_proto, x_host, x_prefix)):
        from werkzeug.middleware.proxy_fix import ProxyFix

        app.wsgi_app = ProxyFix(  # type: ignore[method-assign]
            app.wsgi_app, x_for=x_for, x_proto=x_proto, x_host=x_host, x_prefix=x_prefix
        )


def _check_discourse_configured(app: Flask) -> None:
    """Log a warning when the driver or SSO secret has not been configured."""
    from discourse_connector.models.app_setting import AppSetting

    settings = AppSetting.get_driver_settings()
    if settings is None or not all(settings.values()):
        app.logger.warning("Discourse driver is not configured yet (discourse.url / discourse.api_key)")
    if not app.config.get("DISCOURSE_SSO_SECRET"):
        app.logger.warning("discourse.sso_secret is empty; SSO requests will be rejected")
