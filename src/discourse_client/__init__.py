"""Discourse Client Library - directory sync client for the Discourse admin API."""

__version__ = "1.0.0"

from discourse_client.client import BUILTIN_GROUPS, DiscourseClient  # noqa: E402
from discourse_client.exceptions import (  # noqa: E402
    DriverError,
    DriverSettingsError,
    InvalidIdentityError,
    MutationError,
    RemoteCallError,
)
from discourse_client.models import DiscourseGroup, DiscourseUser  # noqa: E402

__all__ = [
    "BUILTIN_GROUPS",
    "DiscourseClient",
    "DiscourseGroup",
    "DiscourseUser",
    "DriverError",
    "DriverSettingsError",
    "InvalidIdentityError",
    "MutationError",
    "RemoteCallError",
    "__version__",
]
