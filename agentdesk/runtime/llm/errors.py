from __future__ import annotations

from typing import Any

import httpx

from ..error_codes import ErrorCode

LLMErrorCode = ErrorCode

INVALID_API_KEY_MESSAGE = "Your API key is invalid. Please check it in Settings."

# Substrings the model service puts in a rejected-key 400 body.
_BAD_KEY_HINTS = ("api key not valid", "api_key_invalid", "invalid api key", "please pass a valid api key")

_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.AUTH,
    403: ErrorCode.PERMISSION,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.UNPROCESSABLE,
    429: ErrorCode.RATE_LIMIT,
}

_RETRYABLE = frozenset({ErrorCode.TIMEOUT, ErrorCode.RATE_LIMIT, ErrorCode.SERVER_ERROR, ErrorCode.NETWORK_ERROR})


class CredentialResolutionError(RuntimeError):
    def __init__(self, message: str, *, credential_ref: str | None = None) -> None:
        super().__init__(message)
        self.credential_ref = credential_ref


class ProviderAdapterError(RuntimeError):
    """The model service answered, but not in a shape we can decode."""


def code_for_status(status_code: int | None) -> ErrorCode:
    if status_code is None:
        return ErrorCode.UNKNOWN
    if 500 <= status_code <= 599:
        return ErrorCode.SERVER_ERROR
    return _STATUS_CODES.get(status_code, ErrorCode.UNKNOWN)


class LLMRequestError(RuntimeError):
    """A model call that failed before a usable response came back."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        profile_id: str | None = None,
        model: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.profile_id = profile_id
        self.model = model
        self.status_code = status_code
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.code in _RETRYABLE

    @classmethod
    def from_http_error(cls, exc: httpx.HTTPError, *, profile_id: str, model: str | None, operation: str) -> "LLMRequestError":
        """
        Fold an httpx failure into one error type.

        For status errors the (trimmed) response body is appended to the message; the service's
        explanation of what went wrong usually lives there, and key checks read it back.
        """

        status: int | None = None
        message = str(exc) or type(exc).__name__
        if isinstance(exc, httpx.TimeoutException):
            code = ErrorCode.TIMEOUT
        elif isinstance(exc, httpx.NetworkError):
            code = ErrorCode.NETWORK_ERROR
        elif isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            code = code_for_status(status)
            try:
                body = exc.response.text.strip()
            except httpx.ResponseNotRead:
                body = ""
            if body:
                message += "\n\nProvider response (truncated):\n" + body[:2000]
        else:
            code = ErrorCode.UNKNOWN
        return cls(message, code=code, profile_id=profile_id, model=model, status_code=status, details={"operation": operation})


def is_invalid_api_key_error(exc: BaseException) -> bool:
    lower = str(exc).lower()
    return any(hint in lower for hint in _BAD_KEY_HINTS)


def error_event_payload(exc: BaseException) -> dict[str, Any]:
    """`error` event body for a failed model call."""

    if is_invalid_api_key_error(exc):
        return {"message": INVALID_API_KEY_MESSAGE, "code": ErrorCode.API_KEY_INVALID.value}
    return {"message": str(exc).strip() or "Unknown error"}
