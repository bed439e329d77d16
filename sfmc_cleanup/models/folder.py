"""Folder model.

A node of the remote folder forest. The full path is never stored on the
node; it is derived by walking parent links (see ``FolderResolver.build_path``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..gateway.records import RawFolder


@dataclass(frozen=True)
class Folder:
    """Resource node in the folder hierarchy.

    Attributes:
        id: Numeric folder (category) ID
        name: Display name, not unique across the tree
        parent_id: Parent folder ID, None or 0 for roots
        content_type: Folder content type (e.g. "dataextension")
        is_protected: Matches a protected folder rule
        description: Folder description
        created_at: Creation timestamp as returned by the platform
        modified_at: Last modification timestamp as returned by the platform
    """

    id: int
    name: str
    parent_id: Optional[int]
    content_type: str = ""
    is_protected: bool = False
    description: str = ""
    created_at: Optional[str] = None
    modified_at: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None or self.parent_id == 0

    @classmethod
    def from_raw(cls, raw: RawFolder, is_protected: bool = False) -> "Folder":
        """Map a raw gateway folder into the normalized model."""
        return cls(
            id=raw.id,
            name=raw.name,
            parent_id=raw.parent_id,
            content_type=raw.content_type,
            is_protected=is_protected,
            description=raw.description,
            created_at=raw.created_date,
            modified_at=raw.modified_date,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert folder to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "content_type": self.content_type,
            "is_protected": self.is_protected,
            "description": self.description,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Folder":
        """Create folder from a cached dictionary."""
        return cls(
            id=int(data["id"]),
            name=data["name"],
            parent_id=data.get("parent_id"),
            content_type=data.get("content_type", ""),
            is_protected=data.get("is_protected", False),
            description=data.get("description", ""),
            created_at=data.get("created_at"),
            modified_at=data.get("modified_at"),
        )
