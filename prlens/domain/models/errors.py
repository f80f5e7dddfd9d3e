"""Error taxonomy shared by every layer.

Four closed error kinds, each carrying an enumerated ``reason``:

    auth      AuthError      invalid_token, expired_token,
                             insufficient_permissions, network_error
    api       APIError       rate_limit, not_found, forbidden,
                             network_error, server_error
    llm       LLMError       api_failure, quota_exceeded, invalid_response,
                             timeout, configuration_error
    template  TemplateError  invalid_markdown, missing_file, parsing_error,
                             validation_error

Every error exposes a stable ``code`` ("{TYPE}_{REASON}", upper-cased) and an
ISO-8601 ``timestamp``. Errors are read-only once constructed; the retry
engines and the reporter only inspect them.
"""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, Union


# === Reasons ===

class AuthReason(str, Enum):
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    NETWORK_ERROR = "network_error"


class APIReason(str, Enum):
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"


class LLMReason(str, Enum):
    API_FAILURE = "api_failure"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_RESPONSE = "invalid_response"
    TIMEOUT = "timeout"
    CONFIGURATION_ERROR = "configuration_error"


class TemplateReason(str, Enum):
    INVALID_MARKDOWN = "invalid_markdown"
    MISSING_FILE = "missing_file"
    PARSING_ERROR = "parsing_error"
    VALIDATION_ERROR = "validation_error"


# === Errors ===

class AppError(Exception):
    """Base class for every classified failure.

    Subclasses set ``type`` and ``reason_enum``; ``reason`` is always a member
    of ``reason_enum``.
    """

    type: str = "app"
    reason_enum: Type[Enum] = Enum

    def __init__(self, reason: Union[str, Enum], message: str, *, timestamp: Optional[str] = None):
        super().__init__(message)
        self._set("reason", self.reason_enum(reason))
        self._set("message", message)
        self._set("timestamp", timestamp or datetime.now(timezone.utc).isoformat())
        self._set("code", f"{self.type.upper()}_{self.reason.value.upper()}")
        self._frozen = True

    def _set(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        # Interpreter-managed attributes (__traceback__, __notes__, ...) stay writable.
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"{type(self).__name__} is read-only; cannot set '{name}'")
        object.__setattr__(self, name, value)

    def to_dict(self) -> Dict[str, Any]:
        """Serialises the error for logs and issue reports."""
        data: Dict[str, Any] = {
            "type": self.type,
            "reason": self.reason.value,
            "code": self.code,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        data.update(self._extra_fields())
        return data

    def _extra_fields(self) -> Dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class AuthError(AppError):
    """Authentication failure against the remote service."""

    type = "auth"
    reason_enum = AuthReason


class APIError(AppError):
    """REST API failure, optionally carrying the HTTP status and a server
    supplied ``retry_after`` (seconds)."""

    type = "api"
    reason_enum = APIReason

    def __init__(
        self,
        reason: Union[str, APIReason],
        message: str,
        *,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
        timestamp: Optional[str] = None,
    ):
        self._set("status", status)
        self._set("retry_after", retry_after)
        super().__init__(reason, message, timestamp=timestamp)

    def _extra_fields(self) -> Dict[str, Any]:
        return {"status": self.status, "retry_after": self.retry_after}


class LLMError(AppError):
    """AI service failure."""

    type = "llm"
    reason_enum = LLMReason


class TemplateError(AppError):
    """Review template failure, with optional parser ``details``."""

    type = "template"
    reason_enum = TemplateReason

    def __init__(
        self,
        reason: Union[str, TemplateReason],
        message: str,
        *,
        details: Optional[str] = None,
        timestamp: Optional[str] = None,
    ):
        self._set("details", details)
        super().__init__(reason, message, timestamp=timestamp)

    def _extra_fields(self) -> Dict[str, Any]:
        return {"details": self.details}


ERROR_TYPES: Dict[str, Type[AppError]] = {
    AuthError.type: AuthError,
    APIError.type: APIError,
    LLMError.type: LLMError,
    TemplateError.type: TemplateError,
}


def create_error(error_type: str, reason: Union[str, Enum], message: str, **extra: Any) -> AppError:
    """Builds a typed error.

    Args:
        error_type: One of 'auth', 'api', 'llm', 'template'.
        reason: A reason valid for that type (string or enum member).
        message: Human readable description.
        **extra: Type-specific fields (``status``/``retry_after`` for api,
            ``details`` for template).

    Raises:
        ValueError: If the type or the reason is not part of the taxonomy.
    """
    try:
        error_cls = ERROR_TYPES[error_type]
    except KeyError:
        raise ValueError(f"Unknown error type: {error_type!r}") from None
    return error_cls(reason, message, **extra)


def is_app_error(obj: Any) -> bool:
    return isinstance(obj, AppError)


# === Classification ===

_RETRYABLE_API_REASONS = frozenset({APIReason.NETWORK_ERROR, APIReason.RATE_LIMIT, APIReason.SERVER_ERROR})
_RETRYABLE_LLM_REASONS = frozenset({LLMReason.API_FAILURE, LLMReason.TIMEOUT})


def is_retryable(error: BaseException) -> bool:
    """Default retry predicate of the generic engine.

    Retryable iff an api error with reason network_error, rate_limit or
    server_error, or an llm error with reason api_failure or timeout.
    """
    if isinstance(error, APIError):
        return error.reason in _RETRYABLE_API_REASONS
    if isinstance(error, LLMError):
        return error.reason in _RETRYABLE_LLM_REASONS
    return False


def _header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _parse_seconds(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def classify_http_status(
    status: int,
    headers: Optional[Mapping[str, str]] = None,
    message: Optional[str] = None,
) -> AppError:
    """Maps a non-success REST response to the taxonomy."""
    if status == 401:
        return AuthError(AuthReason.INVALID_TOKEN, "Authentication failed")

    if status in (403, 429):
        retry_after = _parse_seconds(_header(headers, "Retry-After"))
        if retry_after is None and _header(headers, "X-RateLimit-Remaining") == "0":
            reset_at = _parse_seconds(_header(headers, "X-RateLimit-Reset"))
            if reset_at is not None:
                retry_after = max(0.0, reset_at - time.time())
        if retry_after is not None or status == 429:
            return APIError(APIReason.RATE_LIMIT, "Rate limit exceeded", status=status, retry_after=retry_after)
        return AuthError(AuthReason.INSUFFICIENT_PERMISSIONS, "Insufficient permissions")

    if status == 404:
        return APIError(APIReason.NOT_FOUND, "Resource not found", status=status)

    if status >= 500:
        return APIError(APIReason.SERVER_ERROR, "GitHub server error", status=status)

    return APIError(APIReason.SERVER_ERROR, message or "Unknown API error", status=status)


def classify_exception(exc: BaseException) -> AppError:
    """Classifies an arbitrary exception leaving the remote access layer.

    AppErrors pass through unchanged; anything unclassifiable becomes
    ``api.server_error``.
    """
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return APIError(APIReason.NETWORK_ERROR, "Request timed out")
    if isinstance(exc, (ConnectionError, OSError)):
        return APIError(APIReason.NETWORK_ERROR, f"Network error occurred: {exc}")
    return APIError(APIReason.SERVER_ERROR, str(exc) or "Unknown API error")
