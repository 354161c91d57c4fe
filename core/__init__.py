"""
Core module - Error taxonomy, boundary tables, time, logging and transport
"""

from .errors import (
    EngineError,
    NotFound,
    DataStoreError,
    OperationStatus,
    OperationResult,
)

from .time_et import (
    now_et,
    today_et,
    slate_bounds_utc,
)

__all__ = [
    "EngineError",
    "NotFound",
    "DataStoreError",
    "OperationStatus",
    "OperationResult",
    "now_et",
    "today_et",
    "slate_bounds_utc",
]
