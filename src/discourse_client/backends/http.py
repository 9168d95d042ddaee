"""httpx transport for DiscourseClient (remote forum admin API)."""

import logging
from typing import Any

import httpx

from discourse_client import __version__

logger = logging.getLogger("discourse_client.http")


class HttpFetcher:
    """Transport that talks to a Discourse forum over HTTPS with an admin API key."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_username: str = "system",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.api_username = api_username
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Accept": "application/json",
                "Api-Username": api_username,
                "Api-Key": api_key,
                "User-Agent": f"discourse-connector/{__version__}",
            },
            timeout=timeout,
            transport=transport,
        )

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        return self._client.request(method, path.lstrip("/"), params=params, data=data)

    def close(self) -> None:
        logger.debug(f"Closing Discourse connection to {self.base_url}")
        self._client.close()
