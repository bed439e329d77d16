"""Cache snapshot model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable snapshot of a cached resource collection.

    Refreshing a cache replaces the whole snapshot; nothing mutates it in place.

    Attributes:
        resource_type: Cache type (e.g. "folders")
        tenant_id: Business unit the data belongs to
        data: Cached items as plain dictionaries
        cached_at: When the data was fetched (UTC)
        metadata: Extra metadata stored alongside the data
    """

    resource_type: str
    tenant_id: str
    data: tuple[Any, ...]
    cached_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def item_count(self) -> int:
        return len(self.data)

    def age_seconds(self, now: datetime) -> float:
        return (now - self.cached_at).total_seconds()


@dataclass(frozen=True)
class CacheInfo:
    """Description of a persisted cache file."""

    exists: bool
    file_path: str
    cached_at: Optional[datetime] = None
    age_string: Optional[str] = None
    item_count: int = 0
    file_size: int = 0
    resource_type: str = ""
    tenant_id: str = ""
