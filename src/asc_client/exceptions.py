"""
Exception classes and error classification for asc-client.

Every error raised by the client derives from AppStoreConnectError. Non-2xx
responses are turned into APIError subclasses by parse_error(), which picks the
subclass from the structured JSON:API error code first and the HTTP status
second.
"""

import json
from typing import Any, Dict, List, Optional

MAX_ERROR_BODY_LENGTH = 200


class AppStoreConnectError(Exception):
    """Base exception class for App Store Connect API errors."""

    pass


class ValidationError(AppStoreConnectError):
    """Raised when request validation fails before any network call."""

    pass


class ConfigError(ValidationError):
    """Raised when configuration values cannot be parsed."""

    pass


class AuthenticationError(AppStoreConnectError):
    """Raised when key material cannot be loaded or a token cannot be signed."""

    pass


class TransportError(AppStoreConnectError):
    """Raised on network failures."""

    pass


class CancelledError(TransportError):
    """Raised when the caller's deadline elapsed or was cancelled."""

    pass


class DecodeError(AppStoreConnectError):
    """Raised when a response body is not the expected JSON shape."""

    pass


class RepeatedPaginationURLError(AppStoreConnectError):
    """Raised when the server hands back a next link that was already followed."""

    pass


class PollingError(AppStoreConnectError):
    """Raised when a polled resource reaches a terminal failure state."""

    def __init__(self, message: str, state: str = ""):
        super().__init__(message)
        self.state = state


class APIError(AppStoreConnectError):
    """
    A parsed App Store Connect error response.

    Attributes:
        code: Structured error code of the first error (e.g. NOT_FOUND)
        title: Title of the first error
        detail: Detail of the first error
        status_code: HTTP status that produced the error (0 if unknown)
        errors: Every entry of the ``errors`` array
        associated_errors: ``meta.associatedErrors`` of the first error,
            keyed by resource path
    """

    def __init__(
        self,
        code: str = "",
        title: str = "",
        detail: str = "",
        status_code: int = 0,
        errors: Optional[List[Dict[str, Any]]] = None,
        associated_errors: Optional[Dict[str, List[Dict[str, str]]]] = None,
        message: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        self.code = code or ""
        self.title = title or ""
        self.detail = detail or ""
        self.status_code = status_code
        self.errors = errors or []
        self.associated_errors = associated_errors or {}
        self.retry_after = retry_after
        super().__init__(message or self._format_message())

    def _format_message(self) -> str:
        title = sanitize_terminal(self.title).strip()
        detail = sanitize_terminal(self.detail).strip()
        code = sanitize_terminal(self.code).strip()

        if title and detail:
            base = f"{title}: {detail}"
        else:
            base = title or detail or code or "API error"

        associated = _format_associated_errors(self.associated_errors)
        if not associated:
            return base
        return f"{base}\n\n{associated}"

    def has_code(self, code: str) -> bool:
        """Check whether any error entry carries ``code`` (case-insensitive)."""
        codes = [self.code] + [
            str(entry.get("code") or "") for entry in self.errors if isinstance(entry, dict)
        ]
        return any(c.strip().upper() == code.upper() for c in codes)


class BadRequestError(APIError):
    """Raised for BAD_REQUEST errors."""

    pass


class UnauthorizedError(APIError):
    """Raised for UNAUTHORIZED errors."""

    pass


class ForbiddenError(APIError):
    """Raised for FORBIDDEN errors."""

    pass


class NotFoundError(APIError):
    """Raised when requested resource is not found."""

    pass


class ConflictError(APIError):
    """Raised for CONFLICT errors."""

    pass


class RateLimitError(APIError):
    """Raised when rate limits are exceeded (HTTP 429)."""

    pass


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


_CODE_CLASSES = {
    "BAD_REQUEST": BadRequestError,
    "UNAUTHORIZED": UnauthorizedError,
    "FORBIDDEN": ForbiddenError,
    "NOT_FOUND": NotFoundError,
    "CONFLICT": ConflictError,
}


def sanitize_terminal(text: str) -> str:
    """Strip ASCII control characters so error text cannot inject escapes."""
    if not text:
        return ""
    return "".join(ch for ch in text if ord(ch) >= 0x20 and ord(ch) != 0x7F)


def sanitize_error_body(body: bytes) -> str:
    """Truncate a raw error body and drop control characters except whitespace."""
    text = body[:MAX_ERROR_BODY_LENGTH].decode("utf-8", errors="replace")
    return "".join(ch for ch in text if ord(ch) >= 0x20 or ch in "\n\r\t")


def _format_associated_errors(values: Dict[str, List[Dict[str, str]]]) -> str:
    sections = []
    for key in sorted(values):
        resource = sanitize_terminal(key).strip() or "(unknown resource)"
        lines = [f"Associated errors for {resource}:"]
        for entry in values[key] or []:
            detail = sanitize_terminal(entry.get("detail", "")).strip()
            code = sanitize_terminal(entry.get("code", "")).strip()
            if detail:
                lines.append(f"  - {detail}")
            elif code:
                lines.append(f"  - {code}")
        if len(lines) > 1:
            sections.append("\n".join(lines))
    return "\n\n".join(sections)


def _error_class(code: str, status_code: int) -> type:
    cls = _CODE_CLASSES.get(code.strip().upper())
    if cls is not None:
        return cls
    if status_code == 429:
        return RateLimitError
    if status_code >= 500:
        return ServerError
    return APIError


def _parse_associated(entry: Dict[str, Any]) -> Dict[str, List[Dict[str, str]]]:
    meta = entry.get("meta")
    if not isinstance(meta, dict):
        return {}
    raw = meta.get("associatedErrors")
    if not isinstance(raw, dict):
        return {}
    associated = {}
    for resource, items in raw.items():
        if not isinstance(items, list):
            continue
        associated[resource] = [
            {"code": str(item.get("code", "")), "detail": str(item.get("detail", ""))}
            for item in items
            if isinstance(item, dict)
        ]
    return associated


def parse_error(
    body: bytes, status_code: int = 0, retry_after: Optional[float] = None
) -> APIError:
    """
    Convert an error response body into a classified APIError.

    Args:
        body: Raw response body
        status_code: HTTP status code of the response (0 if unknown)
        retry_after: Seconds from a Retry-After header, if any

    Returns:
        An APIError subclass. When the body is not a JSON:API error document
        the error carries the raw status and a sanitised excerpt of the body.
    """
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None

    errors = payload.get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]
        code = str(first.get("code") or "")
        cls = _error_class(code, status_code)
        return cls(
            code=code,
            title=str(first.get("title") or ""),
            detail=str(first.get("detail") or ""),
            status_code=status_code,
            errors=[e for e in errors if isinstance(e, dict)],
            associated_errors=_parse_associated(first),
            retry_after=retry_after,
        )

    cls = _error_class("", status_code)
    excerpt = sanitize_error_body(body or b"")
    message = f"unknown error (status {status_code})"
    if excerpt:
        message = f"{message}: {excerpt}"
    return cls(status_code=status_code, message=message, retry_after=retry_after)


def _has_code(err: Optional[BaseException], code: str) -> bool:
    return isinstance(err, APIError) and err.has_code(code)


def is_not_found(err: Optional[BaseException]) -> bool:
    """Check if the error carries the NOT_FOUND code."""
    return _has_code(err, "NOT_FOUND")


def is_unauthorized(err: Optional[BaseException]) -> bool:
    """Check if the error carries the UNAUTHORIZED code."""
    return _has_code(err, "UNAUTHORIZED")


def is_forbidden(err: Optional[BaseException]) -> bool:
    """Check if the error carries the FORBIDDEN code."""
    return _has_code(err, "FORBIDDEN")


def is_conflict(err: Optional[BaseException]) -> bool:
    """Check if the error carries the CONFLICT code."""
    return _has_code(err, "CONFLICT")


def is_retryable(err: Optional[BaseException]) -> bool:
    """Check if the error came from a 429 or 503 response."""
    return isinstance(err, APIError) and err.status_code in (429, 503)
