from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    BAD_REQUEST = "bad_request"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNPROCESSABLE = "unprocessable"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    CANCELLED = "cancelled"
    RESPONSE_VALIDATION = "response_validation"
    UNKNOWN = "unknown"

    # Stable machine code surfaced to clients on `error` events.
    API_KEY_INVALID = "API_KEY_INVALID"
