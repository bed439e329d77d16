"""Tests for ProtectionRule model.

Test coverage for name-based protection rules.
"""

from __future__ import annotations

import pytest

from sfmc_cleanup.models.protection_rule import ProtectionRule, RuleType


class TestProtectionRule:
    """Test suite for ProtectionRule model."""

    def test_create_prefix_rule(self) -> None:
        """Test creating prefix protection rule."""
        rule = ProtectionRule(
            rule_id="rule_001",
            rule_type=RuleType.PREFIX,
            priority=1,
            patterns={"values": ["SYS_", "CASL_"], "fields": ["customer_key", "name"]},
            description="System data extensions",
        )

        assert rule.rule_id == "rule_001"
        assert rule.rule_type == RuleType.PREFIX
        assert rule.enabled is True
        assert rule.priority == 1
        assert rule.validate() is True

    def test_validate_requires_values(self) -> None:
        """Test rule without values fails validation."""
        rule = ProtectionRule(rule_id="rule_002", rule_type=RuleType.CONTAINS, patterns={})

        with pytest.raises(ValueError, match="at least one value"):
            rule.validate()

    def test_validate_rejects_unknown_resource_type(self) -> None:
        """Test rule restricted to an unknown resource type fails validation."""
        rule = ProtectionRule(
            rule_id="rule_003",
            rule_type=RuleType.EXACT,
            patterns={"values": ["Main"], "resource_types": ["query"]},
        )

        with pytest.raises(ValueError, match="Unknown resource type"):
            rule.validate()

    def test_validate_rejects_priority_below_one(self) -> None:
        """Test priority must be >= 1."""
        rule = ProtectionRule(rule_id="rule_004", rule_type=RuleType.EXACT, priority=0, patterns={"values": ["x"]})

        with pytest.raises(ValueError, match="Priority"):
            rule.validate()

    def test_prefix_matches_case_insensitively(self) -> None:
        """Test prefix comparison ignores case."""
        rule = ProtectionRule(rule_id="r", rule_type=RuleType.PREFIX, patterns={"values": ["SYS_"]})

        assert rule.matched_value({"name": "sys_settings"}) == "SYS_"
        assert rule.matched_value({"name": "Settings_SYS_"}) is None

    def test_contains_matches_anywhere_in_name(self) -> None:
        """Test contains rule matches substrings."""
        rule = ProtectionRule(rule_id="r", rule_type=RuleType.CONTAINS, patterns={"values": ["System"]})

        assert rule.matched_value({"name": "My system folder"}) == "System"
        assert rule.matched_value({"name": "Archive"}) is None

    def test_exact_requires_full_name(self) -> None:
        """Test exact rule only matches the complete name."""
        rule = ProtectionRule(rule_id="r", rule_type=RuleType.EXACT, patterns={"values": ["ContactMaster"]})

        assert rule.matched_value({"name": "contactmaster"}) == "ContactMaster"
        assert rule.matched_value({"name": "ContactMaster_Copy"}) is None

    def test_fields_select_compared_keys(self) -> None:
        """Test rule compares every configured field."""
        rule = ProtectionRule(
            rule_id="r",
            rule_type=RuleType.PREFIX,
            patterns={"values": ["CASL_"], "fields": ["customer_key", "name"]},
        )

        assert rule.matched_value({"customer_key": "CASL_Consent", "name": "Consent"}) == "CASL_"
        assert rule.matched_value({"customer_key": "abc-123", "name": "CASL_Consent"}) == "CASL_"
        assert rule.matched_value({"customer_key": "abc-123", "name": "Consent"}) is None

    def test_resource_types_restrict_rule(self) -> None:
        """Test rule ignores resources of other types."""
        rule = ProtectionRule(
            rule_id="r",
            rule_type=RuleType.CONTAINS,
            patterns={"values": ["System"], "resource_types": ["folder"]},
        )

        assert rule.matched_value({"resource_type": "folder", "name": "System Data"}) == "System"
        assert rule.matched_value({"resource_type": "data_extension", "name": "System Data"}) is None

    def test_missing_field_is_ignored(self) -> None:
        """Test absent or empty fields never match."""
        rule = ProtectionRule(
            rule_id="r",
            rule_type=RuleType.PREFIX,
            patterns={"values": ["SYS_"], "fields": ["customer_key"]},
        )

        assert rule.matched_value({"name": "SYS_Settings"}) is None
        assert rule.matched_value({"customer_key": None}) is None
