"""The host application's view of the signed-in user."""

from dataclasses import dataclass


@dataclass
class HostUser:
    id: int
    username: str
    name: str
    email: str
    avatar_url: str = ""
    is_superuser: bool = False
