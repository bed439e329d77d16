"""Folder resolution over a cached folder tree.

The whole folder forest of a tenant is fetched once and cached (see
``FolderTreeCache``); every lookup below runs against that snapshot without
further network calls.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Optional

from ..errors import ResolutionError
from ..gateway.base import RemoteGateway
from ..models.cache_snapshot import CacheSnapshot
from ..models.folder import Folder
from ..safety.checker import SafetyChecker
from .cache import FolderTreeCache

if TYPE_CHECKING:
    from .data_extensions import DataExtensionService

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
MAX_SUGGESTIONS = 10


class FolderResolver:
    """Resolves folder paths and names to folders of one tenant.

    Attributes:
        gateway: Remote gateway bound to the tenant
        tree_cache: Two-tier folder tree cache
        tenant_id: Business unit the resolver is bound to
        safety_checker: Computes the protection flag of each folder
        content_type: Folder content type to load
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        tree_cache: FolderTreeCache,
        tenant_id: Optional[str] = None,
        safety_checker: Optional[SafetyChecker] = None,
        content_type: str = "dataextension",
    ) -> None:
        self.gateway = gateway
        self.tree_cache = tree_cache
        self.tenant_id = str(tenant_id if tenant_id is not None else gateway.tenant_id)
        self.safety_checker = safety_checker
        self.content_type = content_type
        self._snapshot: Optional[CacheSnapshot] = None
        self._folders: list[Folder] = []
        self._by_id: dict[int, Folder] = {}
        self._children: dict[int, list[Folder]] = {}

    def load_tree(self, force_refresh: bool = False) -> list[Folder]:
        """Return the full folder forest of the tenant.

        Args:
            force_refresh: Bypass both cache tiers

        Returns:
            All folders in platform order
        """
        snapshot = self.tree_cache.get(self.tenant_id, self._fetch, force_refresh=force_refresh)
        if snapshot is not self._snapshot:
            self._index(snapshot)
        return list(self._folders)

    def invalidate(self) -> None:
        """Drop cached folders so the next lookup refetches them."""
        self.tree_cache.invalidate(self.tenant_id)
        self._snapshot = None
        self._folders = []
        self._by_id = {}
        self._children = {}

    def resolve(self, query: str) -> Folder:
        """Resolve a path (``A/B/C``) or a bare folder name.

        Raises:
            ResolutionError: If nothing matches, with similar folder names attached
        """
        if PATH_SEPARATOR in query:
            folder = self.resolve_by_path(query)
        else:
            folder = self.resolve_by_name(query)

        if folder is None:
            raise ResolutionError(query, self.suggest_similar(query))
        return folder

    def resolve_by_path(self, path: str) -> Optional[Folder]:
        """Walk a ``/``-separated path segment by segment.

        Names compare case-insensitively. The first segment must be a root
        folder, except that a first segment matching no root may match a
        folder anywhere, so a leading root name can be omitted.
        """
        segments = [segment.strip() for segment in path.split(PATH_SEPARATOR) if segment.strip()]
        if not segments:
            return None

        folders = self.load_tree()
        current: Optional[Folder] = None

        for index, segment in enumerate(segments):
            wanted = segment.lower()
            if current is None:
                candidates = [f for f in folders if f.name.lower() == wanted and f.is_root]
                if not candidates and index == 0:
                    candidates = [f for f in folders if f.name.lower() == wanted]
            else:
                candidates = [f for f in self._children.get(current.id, []) if f.name.lower() == wanted]

            if not candidates:
                logger.debug(f"Path segment '{segment}' of '{path}' not found")
                return None
            current = candidates[0]

        return current

    def resolve_by_name(self, name: str) -> Optional[Folder]:
        """First folder anywhere in the tree with this name (case-insensitive).

        Folder names are not unique, so prefer ``resolve_by_path`` when the
        operator can supply one.
        """
        wanted = name.strip().lower()
        for folder in self.load_tree():
            if folder.name.lower() == wanted:
                return folder
        return None

    def get_by_id(self, folder_id: int) -> Optional[Folder]:
        self.load_tree()
        return self._by_id.get(int(folder_id))

    def children(self, folder_id: int) -> list[Folder]:
        self.load_tree()
        return list(self._children.get(int(folder_id), []))

    def build_path(self, folder_id: int) -> str:
        """Derive the full path of a folder by walking parent links."""
        self.load_tree()
        names = []
        seen = set()
        folder = self._by_id.get(int(folder_id))

        while folder is not None and folder.id not in seen:
            seen.add(folder.id)
            names.append(folder.name)
            if folder.is_root:
                break
            folder = self._by_id.get(folder.parent_id)

        return PATH_SEPARATOR.join(reversed(names))

    def subtree(self, root_id: int, recursive: bool = True) -> list[Folder]:
        """Descendants of a folder, level by level (root excluded).

        Args:
            root_id: Folder whose descendants to return
            recursive: False returns direct children only
        """
        self.load_tree()
        result: list[Folder] = []
        seen = {int(root_id)}
        queue = deque([int(root_id)])

        while queue:
            parent_id = queue.popleft()
            for child in self._children.get(parent_id, []):
                if child.id in seen:
                    continue
                seen.add(child.id)
                result.append(child)
                if recursive:
                    queue.append(child.id)

        return result

    def deletion_order(self, root_id: int) -> list[Folder]:
        """Root and all descendants, deepest first.

        A parent is always placed after every one of its descendants.
        """
        self.load_tree()
        root = self._by_id.get(int(root_id))
        if root is None:
            return []

        nodes = [root] + self.subtree(root.id, recursive=True)
        depths = {node.id: self._depth_below(node, root.id) for node in nodes}
        return sorted(nodes, key=lambda node: depths[node.id], reverse=True)

    def suggest_similar(self, query: str, limit: int = MAX_SUGGESTIONS) -> list[dict[str, str]]:
        """Folders whose name contains the last segment of the query."""
        segments = [segment.strip() for segment in query.split(PATH_SEPARATOR) if segment.strip()]
        if not segments:
            return []
        needle = segments[-1].lower()

        suggestions = []
        for folder in self.load_tree():
            if needle in folder.name.lower():
                suggestions.append({"name": folder.name, "path": self.build_path(folder.id)})
                if len(suggestions) >= limit:
                    break
        return suggestions

    def folder_tree(self, root_id: Optional[int] = None) -> list[dict[str, Any]]:
        """Nested dictionaries for display, starting at a folder or at all roots."""
        folders = self.load_tree()
        if root_id is None:
            roots = [f for f in folders if f.is_root]
        else:
            root = self._by_id.get(int(root_id))
            roots = [root] if root else []

        def node(folder: Folder, seen: frozenset) -> dict[str, Any]:
            return {
                "id": folder.id,
                "name": folder.name,
                "is_protected": folder.is_protected,
                "children": [
                    node(child, seen | {child.id})
                    for child in self._children.get(folder.id, [])
                    if child.id not in seen
                ],
            }

        return [node(root, frozenset({root.id})) for root in roots]

    def folder_contents(self, folder_id: int, data_extension_service: "DataExtensionService") -> dict[str, Any]:
        """Direct subfolders and data extensions of a folder."""
        subfolders = self.children(folder_id)
        data_extensions = data_extension_service.list_in_folder(folder_id)
        return {
            "is_empty": not subfolders and not data_extensions,
            "subfolders": subfolders,
            "data_extensions": data_extensions,
        }

    def _fetch(self) -> list[dict[str, Any]]:
        raw_folders = self.gateway.list_folders(self.content_type)
        logger.info(f"Fetched {len(raw_folders)} folders for tenant {self.tenant_id}")
        return [Folder.from_raw(raw, is_protected=self._is_protected(raw.name)).to_dict() for raw in raw_folders]

    def _is_protected(self, name: str) -> bool:
        return self.safety_checker.is_folder_protected(name) if self.safety_checker else False

    def _index(self, snapshot: CacheSnapshot) -> None:
        folders = []
        for item in snapshot.data:
            folder = Folder.from_dict(item)
            if self.safety_checker is not None:
                protected = self._is_protected(folder.name)
                if protected != folder.is_protected:
                    folder = replace(folder, is_protected=protected)
            folders.append(folder)

        children: dict[int, list[Folder]] = {}
        for folder in folders:
            if not folder.is_root:
                children.setdefault(folder.parent_id, []).append(folder)

        self._snapshot = snapshot
        self._folders = folders
        self._by_id = {folder.id: folder for folder in folders}
        self._children = children

    def _depth_below(self, folder: Folder, root_id: int) -> int:
        depth = 0
        seen = set()
        current = folder
        while current.id != root_id and current.id not in seen:
            seen.add(current.id)
            parent = self._by_id.get(current.parent_id) if not current.is_root else None
            if parent is None:
                break
            current = parent
            depth += 1
        return depth
