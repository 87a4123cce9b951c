"""
Numeric error codes returned by the Download Station Web API and the rules that
turn them into typed exceptions.
"""

from typing import Optional

from synology_ds.exceptions import (
    DestinationRequiredError,
    OneTimeCodeRequiredError,
    RemoteError,
    SessionExpiredError,
)

SESSION_EXPIRED_CODES = frozenset({106, 107, 119})
DESTINATION_REQUIRED_CODE = 120
ONE_TIME_CODE_CODES = frozenset({403, 404})

COMMON_MESSAGES = {
    100: "Unknown error.",
    101: "Invalid parameter.",
    102: "The requested API does not exist.",
    103: "The requested method does not exist.",
    104: "The requested version does not support this functionality.",
    105: "The logged in session does not have permission.",
    106: "Session timeout.",
    107: "Session interrupted by duplicate login.",
    119: "Session ID not found.",
    120: "A download destination is required.",
}

AUTH_MESSAGES = {
    400: "No such account or incorrect password.",
    401: "Account disabled.",
    402: "Permission denied.",
    403: "Two-step verification code required.",
    404: "Failed to authenticate two-step verification code.",
    406: "Two-step verification must be enabled for this account.",
    407: "Blocked IP source.",
    408: "Expired password cannot be changed.",
    409: "Expired password.",
    410: "Password must be changed.",
}

TASK_MESSAGES = {
    400: "File upload failed.",
    401: "Max number of tasks reached.",
    402: "Destination denied.",
    403: "Destination does not exist.",
    404: "Invalid task ID.",
    405: "Invalid task action.",
    406: "No default destination.",
    407: "Set destination failed.",
    408: "File does not exist.",
}


def describe_code(code: int, *, login: bool = False) -> str:
    """Returns a short human-readable message for an API error code."""
    table = AUTH_MESSAGES if login else TASK_MESSAGES
    if code in table:
        return table[code]
    return COMMON_MESSAGES.get(code, "Unexpected error.")


def classify_error(
    code: int,
    *,
    context: Optional[str] = None,
    login: bool = False,
    create: bool = False,
) -> RemoteError:
    """
    Builds the exception matching a remote error code.

    Args:
        code: The numeric code from the API (or the HTTP status).
        context: A short description of the failed operation.
        login: True when the code came from the authentication endpoint.
        create: True when the code came from a create-task call.
    """
    message = describe_code(code, login=login)
    if login:
        if code in ONE_TIME_CODE_CODES:
            return OneTimeCodeRequiredError(code, message, context)
        return RemoteError(code, message, context)
    if code in SESSION_EXPIRED_CODES:
        return SessionExpiredError(code, message, context)
    if create and code == DESTINATION_REQUIRED_CODE:
        return DestinationRequiredError(code, message, context)
    return RemoteError(code, message, context)
