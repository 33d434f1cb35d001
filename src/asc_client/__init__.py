"""
asc-client

Python client for the Apple App Store Connect API: bearer-token auth, a
single request dispatcher, query builders with cursor pagination, JSON:API
envelope decoding and classified errors.
"""

from .auth import Credential, TokenManager
from .client import AppStoreConnectAPI
from .config import Settings, load_settings
from .deadline import Deadline
from .envelope import (
    Platform,
    Resource,
    ResourceReference,
    ResourceType,
    Response,
    SingleResponse,
    build_request_body,
    decode_collection,
    decode_single,
)
from .exceptions import (
    APIError,
    AppStoreConnectError,
    AuthenticationError,
    BadRequestError,
    CancelledError,
    ConfigError,
    ConflictError,
    DecodeError,
    ForbiddenError,
    NotFoundError,
    PollingError,
    RateLimitError,
    RepeatedPaginationURLError,
    ServerError,
    TransportError,
    UnauthorizedError,
    ValidationError,
    is_conflict,
    is_forbidden,
    is_not_found,
    is_retryable,
    is_unauthorized,
    parse_error,
)
from .pagination import iter_pages, paginate_all
from .polling import poll_until
from .retry import RetryOptions, with_retry
from . import query

__version__ = "0.1.0"

__all__ = [
    "AppStoreConnectAPI",
    "Credential",
    "TokenManager",
    "Settings",
    "load_settings",
    "Deadline",
    "Platform",
    "Resource",
    "ResourceReference",
    "ResourceType",
    "Response",
    "SingleResponse",
    "build_request_body",
    "decode_collection",
    "decode_single",
    "APIError",
    "AppStoreConnectError",
    "AuthenticationError",
    "BadRequestError",
    "CancelledError",
    "ConfigError",
    "ConflictError",
    "DecodeError",
    "ForbiddenError",
    "NotFoundError",
    "PollingError",
    "RateLimitError",
    "RepeatedPaginationURLError",
    "ServerError",
    "TransportError",
    "UnauthorizedError",
    "ValidationError",
    "is_conflict",
    "is_forbidden",
    "is_not_found",
    "is_retryable",
    "is_unauthorized",
    "parse_error",
    "iter_pages",
    "paginate_all",
    "poll_until",
    "RetryOptions",
    "with_retry",
    "query",
]
