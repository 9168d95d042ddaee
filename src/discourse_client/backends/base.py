"""Transport protocol used by DiscourseClient."""

from typing import Any, Protocol

import httpx


class Fetcher(Protocol):
    """Protocol that all transports must implement."""

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request relative to the forum base URL and return the raw response."""
        ...

    def close(self) -> None:
        """Release any pooled connections."""
        ...
