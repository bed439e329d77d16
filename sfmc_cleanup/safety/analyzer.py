"""Dependency analysis report.

Classifies every reference into a data extension as safe to delete, requiring
review, or unknown, and derives a per-data-extension verdict from them.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional

from ..models.data_extension import DataExtension, DependencyRef
from ..utils.dates import parse_timestamp, utcnow
from .dependency import DependencyChecker, DependencyReport, ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_STALE_DAYS = 365

# Automation status IDs reported by the platform for paused, stopped and
# inactive automations.
INACTIVE_AUTOMATION_STATUS_IDS = {4, 5, 8}
INACTIVE_STATUS_TEXT = ("paused", "stopped", "inactive")


class Classification(Enum):
    """Deletion safety of a single reference."""

    SAFE_TO_DELETE = "safe_to_delete"
    REQUIRES_REVIEW = "requires_review"
    UNKNOWN = "unknown"


class Verdict(Enum):
    """Deletion safety of a data extension."""

    DELETABLE = "deletable"
    REQUIRES_REVIEW = "requires_review"
    BLOCKED = "blocked"


@dataclass
class ClassifiedDependency:
    """A reference with its classification and the reason for it."""

    dependency: DependencyRef
    classification: Classification
    reason: str
    data_extensions: list[str] = field(default_factory=list)

    def to_row(self) -> dict[str, str]:
        return {
            "type": self.dependency.type,
            "name": self.dependency.name,
            "identifier": self.dependency.identifier or "",
            "status": self.dependency.status or "",
            "last_run_time": self.dependency.last_run_time or "",
            "classification": self.classification.value,
            "reason": self.reason,
            "data_extensions": ";".join(self.data_extensions),
        }


@dataclass
class DataExtensionAnalysis:
    """Verdict for one data extension."""

    customer_key: str
    name: str
    verdict: Verdict
    reason: str
    dependencies: list[ClassifiedDependency] = field(default_factory=list)


@dataclass
class AnalysisReport:
    """Result of a dependency analysis run."""

    stale_days: int
    generated_at: datetime
    data_extensions: list[DataExtensionAnalysis] = field(default_factory=list)
    dependencies: list[ClassifiedDependency] = field(default_factory=list)

    def count_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for item in self.dependencies:
            counts[item.dependency.type] = counts.get(item.dependency.type, 0) + 1
        return dict(sorted(counts.items()))

    def count_by_classification(self) -> dict[str, int]:
        counts = {c.value: 0 for c in Classification}
        for item in self.dependencies:
            counts[item.classification.value] += 1
        return counts

    def count_by_verdict(self) -> dict[str, int]:
        counts = {v.value: 0 for v in Verdict}
        for item in self.data_extensions:
            counts[item.verdict.value] += 1
        return counts

    def export_csv(self, path: Path) -> Path:
        """Write the deduplicated dependency list to a CSV file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        columns = [
            "type",
            "name",
            "identifier",
            "status",
            "last_run_time",
            "classification",
            "reason",
            "data_extensions",
        ]
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            for item in self.dependencies:
                writer.writerow(item.to_row())
        logger.info(f"Exported {len(self.dependencies)} dependencies to {path}")
        return path


class DependencyAnalyzer:
    """Classifies dependencies by staleness and activity.

    A reference is safe to delete only when it is stale or orphaned. Any active
    reference makes its data extension require review.
    """

    def __init__(self, checker: DependencyChecker, stale_days: int = DEFAULT_STALE_DAYS) -> None:
        if stale_days < 0:
            raise ValueError("stale_days must be >= 0")
        self.checker = checker
        self.stale_days = stale_days

    def analyze(
        self,
        data_extensions: list[DataExtension],
        on_progress: Optional[ProgressCallback] = None,
        now: Optional[datetime] = None,
    ) -> AnalysisReport:
        """Analyze dependencies of the given data extensions.

        Args:
            data_extensions: Data extensions to analyze
            on_progress: Progress callback forwarded to the dependency checker
            now: Reference time for staleness, defaults to the current time

        Returns:
            AnalysisReport with per-reference and per-data-extension results
        """
        now = now or utcnow()
        threshold = now - timedelta(days=self.stale_days)
        report = AnalysisReport(stale_days=self.stale_days, generated_at=now)

        lookups = self.checker.batch_check([de.customer_key for de in data_extensions], on_progress=on_progress)
        unique: dict[str, ClassifiedDependency] = {}

        for de in data_extensions:
            lookup = lookups.get(de.customer_key) or DependencyReport(customer_key=de.customer_key)
            de.dependencies = list(lookup.all)
            de.has_dependencies = lookup.has_dependencies

            classified = []
            for dep in lookup.all:
                item = unique.get(dep.dedup_key)
                if item is None:
                    classification, reason = self.classify(dep, threshold)
                    item = ClassifiedDependency(dependency=dep, classification=classification, reason=reason)
                    unique[dep.dedup_key] = item
                if de.customer_key not in item.data_extensions:
                    item.data_extensions.append(de.customer_key)
                classified.append(item)

            verdict, reason = self._verdict(de, lookup, classified)
            report.data_extensions.append(
                DataExtensionAnalysis(
                    customer_key=de.customer_key,
                    name=de.name,
                    verdict=verdict,
                    reason=reason,
                    dependencies=classified,
                )
            )

        report.dependencies = list(unique.values())
        logger.debug(f"Analyzed {len(data_extensions)} data extension(s), {len(report.dependencies)} dependencies")
        return report

    def classify(self, dep: DependencyRef, threshold: datetime) -> tuple[Classification, str]:
        """Classify one reference relative to the stale threshold."""
        dep_type = dep.type.lower()

        if dep_type == "automation":
            return self._classify_automation(dep, threshold)

        if "filter" in dep_type:
            if not dep.identifier:
                return Classification.UNKNOWN, "No metadata available for filter"
            if not dep.referenced_by:
                return Classification.SAFE_TO_DELETE, "Standalone filter not used in any automation"
            for automation in dep.referenced_by:
                classification, _ = self._classify_automation(automation, threshold)
                if classification != Classification.SAFE_TO_DELETE:
                    return Classification.REQUIRES_REVIEW, f"Filter used in active automation '{automation.name}'"
            return Classification.SAFE_TO_DELETE, "Filter only used in stale or inactive automations"

        last_activity = parse_timestamp(dep.last_run_time) or parse_timestamp(dep.modified_date)
        if last_activity is None:
            return Classification.REQUIRES_REVIEW, "No activity metadata available"
        if last_activity < threshold:
            return Classification.SAFE_TO_DELETE, f"No activity in {self.stale_days} days"
        return Classification.REQUIRES_REVIEW, f"Active within {self.stale_days} days"

    def _classify_automation(self, dep: DependencyRef, threshold: datetime) -> tuple[Classification, str]:
        if not dep.last_run_time:
            return Classification.SAFE_TO_DELETE, "Automation never run"

        last_run = parse_timestamp(dep.last_run_time)
        if last_run is not None and last_run < threshold:
            return Classification.SAFE_TO_DELETE, f"Automation not run in {self.stale_days} days"

        if self._is_inactive(dep):
            return Classification.REQUIRES_REVIEW, f"Automation is {dep.status or 'inactive'} but ran recently"

        return Classification.REQUIRES_REVIEW, "Automation is active"

    @staticmethod
    def _is_inactive(dep: DependencyRef) -> bool:
        if dep.status_id in INACTIVE_AUTOMATION_STATUS_IDS:
            return True
        status = (dep.status or "").lower()
        return any(text in status for text in INACTIVE_STATUS_TEXT)

    @staticmethod
    def _verdict(
        de: DataExtension,
        lookup: DependencyReport,
        classified: list[ClassifiedDependency],
    ) -> tuple[Verdict, str]:
        if de.is_protected:
            return Verdict.BLOCKED, "Protected data extension"
        if lookup.error:
            return Verdict.REQUIRES_REVIEW, f"Dependency lookup failed: {lookup.error}"
        if de.is_sendable:
            return Verdict.REQUIRES_REVIEW, "Sendable data extension used as a send target"
        if not classified:
            return Verdict.DELETABLE, "No dependencies"
        if all(item.classification == Classification.SAFE_TO_DELETE for item in classified):
            return Verdict.DELETABLE, "All dependencies are stale or orphaned"

        active = sum(1 for item in classified if item.classification != Classification.SAFE_TO_DELETE)
        return Verdict.REQUIRES_REVIEW, f"{active} active or unknown dependenc{'y' if active == 1 else 'ies'}"
