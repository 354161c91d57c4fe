"""
ERRORS.PY - Error taxonomy and lifecycle operation results

Three kinds of failure exist in the engine:

1. Missing data       -> recovered with documented defaults, never raised
2. Invalid state      -> OperationResult(status=NOT_READY), never raised
3. External store     -> DataStoreError (retryable), distinct from EngineError

Duplicate writes (re-capture, re-grade, re-evaluate) return
OperationResult(status=ALREADY_FINALIZED) and perform no write.

Usage:
    from core.errors import OperationResult, OperationStatus, DataStoreError

    try:
        lookup.prefetch(teams)
    except DataStoreError as e:
        if e.retryable:
            ...
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EngineError(Exception):
    """Engine logic error (bad input, unsupported pick type). Not retryable."""


class NotFound(EngineError):
    """Referenced game/pick/prediction does not exist."""

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")
        self.entity = entity


class DataStoreError(Exception):
    """
    External graph data store failure (transport, HTTP status, query error).

    Deliberately not an EngineError subclass so batch jobs can catch it on
    its own and retry.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class OperationStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_FINALIZED = "already_finalized"
    NOT_READY = "not_ready"
    NOT_FOUND = "not_found"


@dataclass
class OperationResult:
    """Outcome of a lifecycle mutation (capture, grade, record, evaluate)."""
    status: OperationStatus
    entity: str
    reason: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def applied(self) -> bool:
        return self.status == OperationStatus.APPLIED

    @classmethod
    def done(cls, entity: str, **payload: Any) -> "OperationResult":
        return cls(OperationStatus.APPLIED, entity, payload=payload)

    @classmethod
    def already(cls, entity: str, **payload: Any) -> "OperationResult":
        return cls(OperationStatus.ALREADY_FINALIZED, entity, "already finalized", payload)

    @classmethod
    def not_ready(cls, entity: str, reason: str) -> "OperationResult":
        return cls(OperationStatus.NOT_READY, entity, reason)

    @classmethod
    def missing(cls, entity: str) -> "OperationResult":
        return cls(OperationStatus.NOT_FOUND, entity, f"{entity} not found")

    def to_dict(self) -> Dict[str, Any]:
        result = {"status": self.status.value, "entity": self.entity}
        if self.reason:
            result["reason"] = self.reason
        if self.payload:
            result.update(self.payload)
        return result


__all__ = [
    "EngineError",
    "NotFound",
    "DataStoreError",
    "OperationStatus",
    "OperationResult",
]
