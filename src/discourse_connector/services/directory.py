"""Per-application DiscourseClient handle.

The handle is built once from the stored driver settings and kept in
``app.extensions``; ``tear_down`` discards it so the next request picks up new
settings with empty caches.
"""

import logging
import threading
from collections.abc import Callable

from flask import Flask, current_app

from discourse_client import DiscourseClient
from discourse_client.backends.base import Fetcher
from discourse_client.backends.http import HttpFetcher
from discourse_connector.models.app_setting import AppSetting

logger = logging.getLogger(__name__)

CLIENT_KEY = "discourse_client"
FETCHER_FACTORY_KEY = "discourse_fetcher_factory"

_lock = threading.Lock()


def http_fetcher_factory(app: Flask) -> Callable[[str, str], Fetcher]:
    """Return the production fetcher factory, configured from app.config."""

    def factory(base_url: str, api_key: str) -> Fetcher:
        return HttpFetcher(
            base_url,
            api_key,
            api_username=app.config.get("DISCOURSE_API_USERNAME", "system"),
            timeout=float(app.config.get("DISCOURSE_TIMEOUT", 10)),
        )

    return factory


def init_app(app: Flask, fetcher_factory: Callable[[str, str], Fetcher] | None = None) -> None:
    """Register the fetcher factory the client handle will be built with."""
    app.extensions[FETCHER_FACTORY_KEY] = fetcher_factory or http_fetcher_factory(app)
    app.extensions[CLIENT_KEY] = None


def get_client() -> DiscourseClient:
    """Return the application's DiscourseClient, building it on first use.

    Raises DriverSettingsError when the forum URL or API key is not stored.
    """
    app = current_app._get_current_object()  # type: ignore[attr-defined]
    client = app.extensions.get(CLIENT_KEY)
    if client is not None:
        return client

    with _lock:
        client = app.extensions.get(CLIENT_KEY)
        if client is None:
            client = DiscourseClient.from_settings(
                AppSetting.get_driver_settings(),
                fetcher_factory=app.extensions[FETCHER_FACTORY_KEY],
            )
            app.extensions[CLIENT_KEY] = client
            logger.info(f"Discourse client ready for {client.base_url}")
    return client


def tear_down(app: Flask | None = None) -> None:
    """Discard the application's DiscourseClient and close its transport.

    The transport is closed only once no caller holds ``client.lock``.
    """
    app = app or current_app._get_current_object()  # type: ignore[attr-defined]
    with _lock:
        client = app.extensions.get(CLIENT_KEY)
        app.extensions[CLIENT_KEY] = None
    if client is not None:
        with client.lock:
            client.close()
