"""Two-tier cache for remote resource snapshots.

The disk tier stores one YAML file per (resource type, tenant) under the cache
directory:

    ~/.sfmc-cleanup/cache/
        folders_100012345.yaml
        folders_100067890.yaml

The memory tier lives in ``FolderTreeCache`` and is owned by whoever creates
it, so separate tenants and processes never share cached state.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from ..models.cache_snapshot import CacheInfo, CacheSnapshot
from ..utils.dates import format_age, parse_timestamp, utcnow
from .singleflight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
FOLDER_CACHE_TYPE = "folders"


class CacheStorage:
    """Disk tier of the cache.

    Snapshots are written to a temporary file and renamed into place, so a
    reader sees either the previous snapshot or the new one, never a partial
    write. Unreadable files are treated as cache misses.

    Attributes:
        cache_dir: Directory holding cache files
    """

    def __init__(self, cache_dir: Optional[str] = None) -> None:
        """Initialize cache storage.

        Args:
            cache_dir: Cache directory (default: ~/.sfmc-cleanup/cache)
        """
        if cache_dir is None:
            cache_dir = str(Path.home() / ".sfmc-cleanup" / "cache")

        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, resource_type: str, tenant_id: str) -> Path:
        return self.cache_dir / f"{resource_type}_{tenant_id}.yaml"

    def read(
        self,
        resource_type: str,
        tenant_id: str,
        max_age_seconds: Optional[float] = None,
    ) -> Optional[CacheSnapshot]:
        """Read a snapshot from disk.

        Args:
            resource_type: Cache type (e.g. "folders")
            tenant_id: Business unit ID
            max_age_seconds: Treat older snapshots as missing

        Returns:
            CacheSnapshot, or None on miss, expiry or unreadable file
        """
        cache_file = self.path_for(resource_type, tenant_id)
        if not cache_file.exists():
            return None

        snapshot = self._load(cache_file)
        if snapshot is None:
            return None

        if max_age_seconds is not None:
            age = snapshot.age_seconds(utcnow())
            if age >= max_age_seconds:
                logger.debug(f"Cache for {resource_type}/{tenant_id} expired ({format_age(age)})")
                return None

        return snapshot

    def write(
        self,
        resource_type: str,
        tenant_id: str,
        data: list[Any],
        meta: Optional[dict[str, Any]] = None,
    ) -> CacheSnapshot:
        """Persist a snapshot, replacing any previous one.

        Args:
            resource_type: Cache type (e.g. "folders")
            tenant_id: Business unit ID
            data: Items as plain dictionaries
            meta: Extra metadata stored with the snapshot

        Returns:
            The snapshot that was written
        """
        snapshot = CacheSnapshot(
            resource_type=resource_type,
            tenant_id=str(tenant_id),
            data=tuple(data),
            cached_at=utcnow(),
            metadata=dict(meta or {}),
        )

        document = {
            "metadata": {
                "resource_type": snapshot.resource_type,
                "tenant_id": snapshot.tenant_id,
                "cached_at": snapshot.cached_at.isoformat(),
                "item_count": snapshot.item_count,
                **snapshot.metadata,
            },
            "data": list(snapshot.data),
        }

        cache_file = self.path_for(resource_type, tenant_id)
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{cache_file.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.dump(document, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_name, cache_file)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Cached {snapshot.item_count} {resource_type} for tenant {tenant_id}")
        return snapshot

    def clear(self, resource_type: str, tenant_id: str) -> bool:
        """Delete a snapshot. Returns True if a file was removed."""
        cache_file = self.path_for(resource_type, tenant_id)
        if cache_file.exists():
            cache_file.unlink()
            logger.debug(f"Cleared cache {cache_file.name}")
            return True
        return False

    def clear_all(self, tenant_id: Optional[str] = None) -> int:
        """Delete all snapshots, optionally only those of one tenant.

        Returns:
            Number of files removed
        """
        removed = 0
        for cache_file in self.cache_dir.glob("*.yaml"):
            if tenant_id is not None and not cache_file.stem.endswith(f"_{tenant_id}"):
                continue
            cache_file.unlink()
            removed += 1
        return removed

    def info(self, resource_type: str, tenant_id: str) -> CacheInfo:
        """Describe a snapshot without returning its data."""
        cache_file = self.path_for(resource_type, tenant_id)
        if not cache_file.exists():
            return CacheInfo(
                exists=False,
                file_path=str(cache_file),
                resource_type=resource_type,
                tenant_id=str(tenant_id),
            )
        return self._describe(cache_file)

    def list_all(self) -> list[CacheInfo]:
        """Describe every readable snapshot in the cache directory."""
        infos = []
        for cache_file in sorted(self.cache_dir.glob("*.yaml")):
            info = self._describe(cache_file)
            if info.exists:
                infos.append(info)
        return infos

    def _describe(self, cache_file: Path) -> CacheInfo:
        snapshot = self._load(cache_file)
        if snapshot is None:
            return CacheInfo(exists=False, file_path=str(cache_file))

        return CacheInfo(
            exists=True,
            file_path=str(cache_file),
            cached_at=snapshot.cached_at,
            age_string=format_age(snapshot.age_seconds(utcnow())),
            item_count=snapshot.item_count,
            file_size=cache_file.stat().st_size,
            resource_type=snapshot.resource_type,
            tenant_id=snapshot.tenant_id,
        )

    def _load(self, cache_file: Path) -> Optional[CacheSnapshot]:
        try:
            with open(cache_file, "r") as f:
                document = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable cache file {cache_file.name}: {e}")
            return None

        if not isinstance(document, dict) or not isinstance(document.get("metadata"), dict):
            logger.warning(f"Ignoring cache file without metadata: {cache_file.name}")
            return None

        metadata = dict(document["metadata"])
        cached_at = parse_timestamp(metadata.pop("cached_at", None))
        if cached_at is None:
            logger.warning(f"Ignoring cache file without timestamp: {cache_file.name}")
            return None

        resource_type = str(metadata.pop("resource_type", ""))
        tenant_id = str(metadata.pop("tenant_id", ""))
        metadata.pop("item_count", None)

        return CacheSnapshot(
            resource_type=resource_type,
            tenant_id=tenant_id,
            data=tuple(document.get("data") or []),
            cached_at=cached_at,
            metadata=metadata,
        )


class FolderTreeCache:
    """Memory tier in front of ``CacheStorage`` with fetch coalescing.

    Lookup order: memory, then disk (if younger than the TTL), then the fetch
    function. Concurrent fetches for the same tenant share one remote call.

    Attributes:
        storage: Disk tier
        ttl_seconds: Maximum age of a disk snapshot
        resource_type: Cache type key
    """

    def __init__(
        self,
        storage: CacheStorage,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        resource_type: str = FOLDER_CACHE_TYPE,
    ) -> None:
        self.storage = storage
        self.ttl_seconds = ttl_seconds
        self.resource_type = resource_type
        self._memory: dict[str, CacheSnapshot] = {}
        self._memory_lock = threading.Lock()
        self._flight: SingleFlight[CacheSnapshot] = SingleFlight()

    def get(
        self,
        tenant_id: str,
        fetch: Callable[[], list[dict[str, Any]]],
        force_refresh: bool = False,
    ) -> CacheSnapshot:
        """Return the cached snapshot for a tenant, fetching if needed.

        Args:
            tenant_id: Business unit ID
            fetch: Produces fresh data as plain dictionaries
            force_refresh: Skip both tiers and fetch

        Returns:
            The current snapshot
        """
        tenant_id = str(tenant_id)

        if not force_refresh:
            with self._memory_lock:
                cached = self._memory.get(tenant_id)
            if cached is not None:
                logger.debug(f"Using in-memory {self.resource_type} cache for tenant {tenant_id}")
                return cached

            cached = self.storage.read(self.resource_type, tenant_id, max_age_seconds=self.ttl_seconds)
            if cached is not None:
                logger.info(
                    f"Using cached {self.resource_type} for tenant {tenant_id} "
                    f"({cached.item_count} items, {format_age(cached.age_seconds(utcnow()))})"
                )
                self._remember(tenant_id, cached)
                return cached

        return self._flight.do((self.resource_type, tenant_id), lambda: self._refresh(tenant_id, fetch))

    def invalidate(self, tenant_id: str) -> None:
        """Drop both tiers for a tenant."""
        tenant_id = str(tenant_id)
        with self._memory_lock:
            self._memory.pop(tenant_id, None)
        self.storage.clear(self.resource_type, tenant_id)
        logger.debug(f"Invalidated {self.resource_type} cache for tenant {tenant_id}")

    def cached_at(self, tenant_id: str) -> Optional[datetime]:
        with self._memory_lock:
            cached = self._memory.get(str(tenant_id))
        return cached.cached_at if cached else None

    def _refresh(self, tenant_id: str, fetch: Callable[[], list[dict[str, Any]]]) -> CacheSnapshot:
        logger.info(f"Fetching {self.resource_type} for tenant {tenant_id}")
        data = fetch()
        snapshot = self.storage.write(self.resource_type, tenant_id, data)
        self._remember(tenant_id, snapshot)
        return snapshot

    def _remember(self, tenant_id: str, snapshot: CacheSnapshot) -> None:
        with self._memory_lock:
            self._memory[tenant_id] = snapshot
