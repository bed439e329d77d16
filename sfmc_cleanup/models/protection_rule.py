"""Protection rule model.

Name-based rules that keep platform-owned and system resources out of any
deletion run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RuleType(Enum):
    """How a rule compares its values against a resource."""

    PREFIX = "prefix"
    CONTAINS = "contains"
    EXACT = "exact"


@dataclass
class ProtectionRule:
    """Protection rule entity.

    Pattern keys:
        values: Strings compared case-insensitively (required)
        fields: Resource keys to compare, default ["name"]
        resource_types: Restrict the rule to "folder" and/or "data_extension"

    Attributes:
        rule_id: Unique rule identifier
        rule_type: Comparison type
        enabled: Disabled rules are ignored
        priority: Evaluation order (1 = highest)
        patterns: Rule-specific configuration
        description: Human-readable reason shown when the rule matches
    """

    rule_id: str
    rule_type: RuleType
    enabled: bool = True
    priority: int = 100
    patterns: dict = field(default_factory=dict)
    description: Optional[str] = None

    def validate(self) -> bool:
        """Validate rule configuration.

        Raises:
            ValueError: If the rule has no values or an unknown resource type
        """
        values = self.patterns.get("values")
        if not values:
            raise ValueError(f"{self.rule_type.value} rule requires at least one value")

        for resource_type in self.patterns.get("resource_types", []):
            if resource_type not in ("folder", "data_extension"):
                raise ValueError(f"Unknown resource type in rule {self.rule_id}: {resource_type}")

        if self.priority < 1:
            raise ValueError("Priority must be >= 1")

        return True

    def matched_value(self, resource: dict) -> Optional[str]:
        """Return the first rule value matching the resource, or None.

        Args:
            resource: Resource metadata with "resource_type", "name" and
                optionally "customer_key"
        """
        resource_types = self.patterns.get("resource_types")
        if resource_types and resource.get("resource_type") not in resource_types:
            return None

        for key in self.patterns.get("fields", ["name"]):
            candidate = resource.get(key)
            if not candidate:
                continue
            candidate = str(candidate).lower()

            for value in self.patterns.get("values", []):
                needle = str(value).lower()
                if self.rule_type == RuleType.PREFIX and candidate.startswith(needle):
                    return value
                if self.rule_type == RuleType.CONTAINS and needle in candidate:
                    return value
                if self.rule_type == RuleType.EXACT and candidate == needle:
                    return value

        return None
