"""Safety checks and protection rule evaluation.

Evaluates resources against protection rules to prevent accidental deletion.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..models.protection_rule import ProtectionRule, RuleType

DEFAULT_PROTECTED_FOLDER_PATTERNS = [
    "System",
    "CASL",
    "Shared Data Extensions",
    "SYS_",
    "Platform",
    "Salesforce",
    "Einstein",
    "Synchronized",
    "Contact Builder",
    "MobileConnect",
    "MobilePush",
    "GroupConnect",
    "CloudPages",
]

DEFAULT_PROTECTED_DE_PREFIXES = [
    "SYS_",
    "CASL_",
    "CAD_",
    "IDP_",
    "US_OptOut",
    "US_Bounce",
    "US_Complaints",
    "_Subscribers",
    "_Bounce",
    "_Click",
    "_Complaint",
    "_Job",
    "_Journey",
    "_Open",
    "_Sent",
    "_Unsubscribe",
    "_MobileAddress",
    "_MobileSubscription",
    "_PushAddress",
    "_SMSMessageTracking",
    "ent.",
    "_EnterpriseAttribute",
    "ContactMaster",
]


def build_default_rules(
    folder_patterns: Optional[Iterable[str]] = None,
    data_extension_prefixes: Optional[Iterable[str]] = None,
) -> list[ProtectionRule]:
    """Build the standard folder and data extension protection rules.

    Args:
        folder_patterns: Substrings that protect a folder by name
        data_extension_prefixes: Prefixes that protect a data extension by name or key

    Returns:
        Rules ready for SafetyChecker
    """
    folder_values = list(folder_patterns) if folder_patterns is not None else DEFAULT_PROTECTED_FOLDER_PATTERNS
    prefix_values = (
        list(data_extension_prefixes) if data_extension_prefixes is not None else DEFAULT_PROTECTED_DE_PREFIXES
    )

    rules = []
    if folder_values:
        rules.append(
            ProtectionRule(
                rule_id="protected_folders",
                rule_type=RuleType.CONTAINS,
                priority=1,
                patterns={"values": folder_values, "resource_types": ["folder"]},
            )
        )
    if prefix_values:
        rules.append(
            ProtectionRule(
                rule_id="protected_de_prefixes",
                rule_type=RuleType.PREFIX,
                priority=2,
                patterns={
                    "values": prefix_values,
                    "fields": ["customer_key", "name"],
                    "resource_types": ["data_extension"],
                },
            )
        )
    return rules


class SafetyChecker:
    """Safety checker for resource protection evaluation.

    Attributes:
        rules: List of protection rules sorted by priority
    """

    def __init__(self, rules: list[ProtectionRule]) -> None:
        """Initialize safety checker.

        Args:
            rules: List of protection rules (sorted by priority, 1=highest)
        """
        self.rules = sorted(rules, key=lambda r: r.priority)

    def is_protected(self, resource: dict) -> tuple[bool, Optional[str]]:
        """Check if resource is protected by any rule.

        Returns on the first matching rule (highest priority wins).

        Args:
            resource: Resource metadata with "resource_type" and "name"

        Returns:
            Tuple of (is_protected, reason)
        """
        for rule in self.rules:
            if not rule.enabled:
                continue

            value = rule.matched_value(resource)
            if value is not None:
                return True, self._get_protection_reason(rule, value)

        return False, None

    def is_folder_protected(self, name: str) -> bool:
        protected, _ = self.is_protected({"resource_type": "folder", "name": name})
        return protected

    def is_data_extension_protected(self, customer_key: str, name: Optional[str] = None) -> bool:
        protected, _ = self.is_protected({"resource_type": "data_extension", "customer_key": customer_key, "name": name})
        return protected

    def _get_protection_reason(self, rule: ProtectionRule, value: str) -> str:
        if rule.description:
            return f"{rule.description} (rule: {rule.rule_id})"

        if rule.rule_type == RuleType.PREFIX:
            return f"Name starts with protected prefix '{value}' (rule: {rule.rule_id})"
        elif rule.rule_type == RuleType.CONTAINS:
            return f"Name matches protected pattern '{value}' (rule: {rule.rule_id})"
        elif rule.rule_type == RuleType.EXACT:
            return f"Name is protected: '{value}' (rule: {rule.rule_id})"

        return f"Protected by rule {rule.rule_id}"
