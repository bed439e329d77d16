"""Resumable operation state model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..utils.dates import parse_timestamp


@dataclass
class OperationState:
    """Durable progress record for one deletion run.

    Attributes:
        operation_id: Operation this state belongs to
        target_folder: Resolved target folder path
        processed: Outcome dicts for every attempted item
        remaining: Identifiers not yet attempted, in execution order
        saved_at: When the state was last persisted
        error: Unexpected error that ended the run, if any
    """

    operation_id: str
    target_folder: Optional[str] = None
    processed: list[dict[str, Any]] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)
    saved_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "target_folder": self.target_folder,
            "saved_at": self.saved_at.isoformat() if self.saved_at else None,
            "error": self.error,
            "processed": self.processed,
            "remaining": self.remaining,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OperationState":
        return cls(
            operation_id=data["operation_id"],
            target_folder=data.get("target_folder"),
            processed=list(data.get("processed") or []),
            remaining=[str(key) for key in data.get("remaining") or []],
            saved_at=parse_timestamp(data.get("saved_at")),
            error=data.get("error"),
        )
