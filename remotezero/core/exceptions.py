from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from remotezero.core.types import NOT_FOUND_CODE


@dataclass
class ErrorDetail:
    message: str
    code: str

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"ErrorDetail(message={self.message!r}, code={self.code!r})"


class RemoteZeroError(Exception):
    """Base exception for all remotezero errors."""

    status_code: int = 500
    default_detail: Union[str, Dict, List] = "A server error occurred."
    default_code: str = "error"

    def __init__(
        self,
        detail: Optional[Union[str, Dict, List]] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        detail = detail if detail is not None else self.default_detail
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.detail = self._normalize_detail(detail, self.code)
        super().__init__(str(self.detail))

    def _normalize_detail(
        self, detail: Union[str, Dict, List], code: Optional[str]
    ) -> Union[ErrorDetail, Dict, List]:
        """Convert details to ErrorDetail objects recursively."""
        if isinstance(detail, str):
            return ErrorDetail(detail, code or self.default_code)
        elif isinstance(detail, dict):
            return {
                key: self._normalize_detail(value, code)
                for key, value in detail.items()
            }
        elif isinstance(detail, list):
            return [self._normalize_detail(item, code) for item in detail]
        return detail


class RemoteInvocationError(RemoteZeroError):
    """Error returned by the remote end of an invocation. Carries the remote
    classification code verbatim."""

    default_detail = "Remote invocation failed."
    default_code = "REMOTE_ERROR"


class NotFound(RemoteInvocationError):
    """Error raised when the remote record does not exist. Corresponds to HTTP 404."""

    status_code = 404
    default_detail = "Not found."
    default_code = NOT_FOUND_CODE


class ValidationError(RemoteInvocationError):
    """Error raised for invalid input. Corresponds to HTTP 422."""

    status_code = 422
    default_detail = "Invalid input."
    default_code = "VALIDATION_ERROR"


class PermissionDenied(RemoteInvocationError):
    """Error raised for permission issues. Corresponds to HTTP 401."""

    status_code = 401
    default_detail = "Authorization required."
    default_code = "AUTHORIZATION_REQUIRED"


class ConfigError(Exception):
    """Error raised for configuration issues."""
    pass


class UnsupportedRelationError(ConfigError):
    """Error raised when a relation kind has no accessor builder."""
    pass


_ERROR_MAP = {
    "ValidationError": ValidationError,
    "NotFound": NotFound,
    "PermissionDenied": PermissionDenied,
}

_CODE_MAP = {
    NOT_FOUND_CODE: NotFound,
    "VALIDATION_ERROR": ValidationError,
    "AUTHORIZATION_REQUIRED": PermissionDenied,
}


def error_from_payload(payload: Mapping[str, Any]) -> RemoteInvocationError:
    """
    Build the matching exception for a remote error object.

    Accepts both flat errors (``{"message", "code", "statusCode", "name"}``)
    and JSON-RPC errors whose remote details live under ``data``.
    """
    data = payload.get("data") or {}
    merged = {**payload, **data} if isinstance(data, dict) else dict(payload)

    code = merged.get("code")
    if not isinstance(code, str):
        code = None
    exc_cls = _CODE_MAP.get(code) or _ERROR_MAP.get(merged.get("name", ""))
    if exc_cls is None:
        exc_cls = RemoteInvocationError

    status_code = merged.get("statusCode") or merged.get("status")
    detail = merged.get("details") or merged.get("message") or None
    return exc_cls(detail, code=code, status_code=status_code)
