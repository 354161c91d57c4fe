"""
ERROR_RESPONSES.PY - Error envelope and exception -> HTTP status mapping

Response Format:
    {
        "status": "error",
        "error": "game:42 not found",
        "errors": [{"code": "NOT_FOUND", "message": "game:42 not found"}],
        "request_id": "req-...",
        "timestamp": "2026-01-28T13:00:00-05:00"
    }
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from core.errors import DataStoreError, EngineError, NotFound
from core.time_et import now_et


@dataclass
class ErrorDetail:
    """Single error detail."""
    code: str
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"code": self.code, "message": self.message}
        if self.field is not None:
            result["field"] = self.field
        return result


class ErrorCode:
    NOT_FOUND = "NOT_FOUND"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    DATA_STORE_UNAVAILABLE = "DATA_STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def make_error(
    code: str,
    message: str,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the error envelope.

    Example:
        >>> make_error(ErrorCode.NOT_FOUND, "pick:7 not found", field="pick_id")
    """
    response: Dict[str, Any] = {
        "status": "error",
        "error": message,
        "errors": [ErrorDetail(code=code, message=message, field=field).to_dict()],
    }
    if request_id is not None:
        response["request_id"] = request_id
    response["timestamp"] = now_et().isoformat()
    return response


def status_for_exception(exc: Exception) -> Tuple[int, str]:
    """(HTTP status, ErrorCode) for an engine exception kind."""
    if isinstance(exc, NotFound):
        return 404, ErrorCode.NOT_FOUND
    if isinstance(exc, EngineError):
        return 400, ErrorCode.INVALID_PARAMETER
    if isinstance(exc, DataStoreError):
        return 503, ErrorCode.DATA_STORE_UNAVAILABLE
    return 500, ErrorCode.INTERNAL_ERROR


__all__ = [
    'ErrorDetail',
    'ErrorCode',
    'make_error',
    'status_for_exception',
]
