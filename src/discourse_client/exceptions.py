"""Exception hierarchy for the Discourse driver."""


class DriverError(Exception):
    """Base class for every error raised by the Discourse driver."""


class DriverSettingsError(DriverError):
    """Raised when the driver is missing required connection settings."""


class InvalidIdentityError(DriverError):
    """Raised when a remote account no longer exists on the forum."""


class RemoteCallError(DriverError):
    """Raised when a call to the forum API fails.

    ``status_code`` holds the HTTP status of the failed response, or None when
    no usable response was received (connection failure, undecodable body).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MutationError(DriverError):
    """Raised when a rename or membership change is rejected remotely."""
