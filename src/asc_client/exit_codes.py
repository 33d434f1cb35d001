"""Process exit codes used by the ``asc`` command.

Scripts can branch on the failure class without parsing stderr::

    $ asc builds get 123
    $ echo $?
    4   # EXIT_NOT_FOUND
"""

from .exceptions import (
    APIError,
    AuthenticationError,
    DecodeError,
    TransportError,
    ValidationError,
    is_conflict,
    is_forbidden,
    is_not_found,
    is_unauthorized,
)

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, configuration or request input."""

EXIT_AUTH_FAILURE = 3
"""Missing credentials, or the API answered UNAUTHORIZED / FORBIDDEN."""

EXIT_NOT_FOUND = 4
"""The requested resource does not exist."""

EXIT_CONFLICT = 5
"""The request conflicts with the current state of the resource."""

EXIT_CONNECTION_ERROR = 6
"""Network failure, timeout or cancellation."""

EXIT_DECODE_ERROR = 7
"""The response body could not be decoded."""


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the exit code the CLI terminates with."""
    if isinstance(error, ValidationError):
        return EXIT_INVALID_USAGE
    if isinstance(error, AuthenticationError):
        return EXIT_AUTH_FAILURE
    if isinstance(error, TransportError):
        return EXIT_CONNECTION_ERROR
    if isinstance(error, DecodeError):
        return EXIT_DECODE_ERROR
    if isinstance(error, APIError):
        if is_unauthorized(error) or is_forbidden(error) or error.status_code in (401, 403):
            return EXIT_AUTH_FAILURE
        if is_not_found(error) or error.status_code == 404:
            return EXIT_NOT_FOUND
        if is_conflict(error) or error.status_code == 409:
            return EXIT_CONFLICT
    return EXIT_GENERIC_FAILURE
