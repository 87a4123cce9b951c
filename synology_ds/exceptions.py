"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from typing import Optional


class SynologyDsError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(SynologyDsError):
    """Raised for malformed hosts, empty credentials or invalid settings."""


class AuthenticationError(SynologyDsError):
    """Raised when login fails and cannot be recovered automatically."""


class AuthenticationCancelled(AuthenticationError):
    """Raised when the user aborts an interactive login (e.g. empty one-time code)."""


class UnauthorizedError(SynologyDsError):
    """Raised when an authenticated call is attempted without a session token."""

    def __init__(self, message: str = "Not authorized. Log in before making API requests."):
        super().__init__(message)


class CredentialProviderError(SynologyDsError):
    """Raised when the external credential provider cannot supply an item."""


class InvalidResponseError(SynologyDsError):
    """Raised when the remote service returns a body that cannot be understood."""


class TransportError(SynologyDsError):
    """Raised for timeouts and connection failures talking to the service."""


class RemoteError(SynologyDsError):
    """
    A non-success response from the Download Station API.

    The numeric ``code`` is the only signal used to pick a recovery action.
    """

    def __init__(self, code: int, message: str, context: Optional[str] = None):
        self.code = code
        self.message = message
        self.context = context
        prefix = f"{context} " if context else ""
        super().__init__(f"{prefix}{message} ({code})")


class SessionExpiredError(RemoteError):
    """The session token was rejected; a silent re-login is expected."""


class DestinationRequiredError(RemoteError):
    """The create-task call needs a destination folder that was not supplied."""


class OneTimeCodeRequiredError(RemoteError):
    """The login call needs a (new) two-step verification code."""
