"""Dependency lookups for data extensions.

Lookups are read-only and run on a bounded thread pool so the remote rate
limits are respected.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..errors import OperationCancelled
from ..gateway.base import RemoteGateway
from ..models.data_extension import DependencyRef

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class DependencyReport:
    """Dependencies found for one data extension.

    A failed lookup is reported through ``error`` and counts as having
    dependencies: an unknown reference graph is never treated as empty.
    """

    customer_key: str
    all: list[DependencyRef] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_dependencies(self) -> bool:
        return bool(self.all) or self.error is not None

    @property
    def total_count(self) -> int:
        return len(self.all)

    def by_type(self) -> dict[str, list[DependencyRef]]:
        grouped: dict[str, list[DependencyRef]] = {}
        for dep in self.all:
            grouped.setdefault(dep.type, []).append(dep)
        return grouped


class DependencyChecker:
    """Finds platform objects referencing data extensions.

    Attributes:
        gateway: Remote gateway used for dependent lookups
        max_workers: Concurrency ceiling for parallel lookups
    """

    def __init__(self, gateway: RemoteGateway, max_workers: int = DEFAULT_CONCURRENCY) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.gateway = gateway
        self.max_workers = max_workers

    def check(self, customer_key: str) -> DependencyReport:
        """Look up dependencies of one data extension.

        Duplicate references (same type and ID) are collapsed.
        """
        try:
            raw_dependencies = self.gateway.list_dependents(customer_key)
        except Exception as e:
            logger.warning(f"Dependency lookup failed for {customer_key}: {e}")
            return DependencyReport(customer_key=customer_key, error=str(e))

        seen = set()
        unique = []
        for raw in raw_dependencies:
            dep = DependencyRef.from_raw(raw)
            if dep.dedup_key in seen:
                continue
            seen.add(dep.dedup_key)
            unique.append(dep)

        return DependencyReport(customer_key=customer_key, all=unique)

    def batch_check(
        self,
        customer_keys: list[str],
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> dict[str, DependencyReport]:
        """Check dependencies for many data extensions in parallel.

        ``should_stop`` is polled after every completed lookup. Once it returns
        True, or anything raises while results are being collected, lookups
        that have not started are cancelled and only the in-flight ones are
        left to finish.

        Args:
            customer_keys: Keys to check
            on_progress: Called as (current, total, customer_key) after each lookup
            should_stop: Returns True when the caller wants the batch abandoned

        Returns:
            Reports keyed by customer key, in input order

        Raises:
            OperationCancelled: If ``should_stop`` returned True before every lookup finished
        """
        total = len(customer_keys)
        reports: dict[str, DependencyReport] = {}

        if total == 0:
            return reports

        logger.debug(f"Checking dependencies for {total} data extension(s) with {self.max_workers} worker(s)")

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, total))
        try:
            futures = {executor.submit(self.check, key): key for key in customer_keys}
            for current, future in enumerate(as_completed(futures), start=1):
                key = futures[future]
                reports[key] = future.result()
                if on_progress:
                    on_progress(current, total, key)
                if should_stop and current < total and should_stop():
                    raise OperationCancelled(f"Dependency check stopped after {current}/{total} lookup(s)")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return {key: reports[key] for key in customer_keys}
