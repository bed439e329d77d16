"""Tests for pattern vetting and PII detection."""

from __future__ import annotations

import re
from unittest.mock import patch

import pytest

from sfmc_cleanup.errors import PatternValidationError
from sfmc_cleanup.safety.patterns import (
    MAX_PATTERN_LENGTH,
    compile_user_pattern,
    find_unsafe_construct,
    is_pii_field,
)


class TestCompileUserPattern:
    """Test suite for operator-supplied pattern validation."""

    @pytest.mark.parametrize(
        "pattern,reason",
        [
            ("(a+)+", "nested quantifier"),
            ("(a*)*b", "nested quantifier"),
            ("(\\w+\\s?)+$", "nested quantifier"),
            ("(x{2,})+", "nested quantifier"),
            ("(?=a)+", "quantified lookaround"),
            ("^.*.*$", "adjacent wildcard repetition"),
            ("(a|b)+(a|b)+", "adjacent quantified groups"),
        ],
    )
    def test_rejects_catastrophic_shapes(self, pattern: str, reason: str) -> None:
        with pytest.raises(PatternValidationError) as exc_info:
            compile_user_pattern(pattern)

        assert exc_info.value.reason == reason
        assert exc_info.value.pattern == pattern

    def test_rejected_pattern_is_never_compiled(self) -> None:
        """Test the unsafe pattern does not reach the regex engine."""
        with patch("sfmc_cleanup.safety.patterns.re.compile") as mock_compile:
            with pytest.raises(PatternValidationError):
                compile_user_pattern("(a+)+")

        mock_compile.assert_not_called()

    @pytest.mark.parametrize("pattern", ["", "   "])
    def test_rejects_empty(self, pattern: str) -> None:
        with pytest.raises(PatternValidationError, match="empty"):
            compile_user_pattern(pattern)

    def test_rejects_overlong(self) -> None:
        with pytest.raises(PatternValidationError, match="longer than"):
            compile_user_pattern("a" * (MAX_PATTERN_LENGTH + 1))

    def test_rejects_malformed(self) -> None:
        with pytest.raises(PatternValidationError, match="does not compile"):
            compile_user_pattern("Campaign_[")

    @pytest.mark.parametrize("pattern", ["^Campaign_", "temp|test", "(jan|feb)_2023", "[a-z]+_\\d{4}", "a{3}"])
    def test_accepts_safe_patterns(self, pattern: str) -> None:
        assert find_unsafe_construct(pattern) is None
        compiled = compile_user_pattern(pattern)
        assert compiled.flags & re.IGNORECASE

    def test_escaped_parentheses_are_literals(self) -> None:
        assert find_unsafe_construct(r"\(a+\)+") is None


class TestIsPiiField:
    """Test suite for PII field detection."""

    @pytest.mark.parametrize("name", ["EmailAddress", "First_Name", "MobilePhone", "DateOfBirth", "Postal_Code"])
    def test_detects_pii(self, name: str) -> None:
        assert is_pii_field(name) is True

    @pytest.mark.parametrize("name", ["OrderTotal", "CampaignKey", "Status"])
    def test_ignores_other_fields(self, name: str) -> None:
        assert is_pii_field(name) is False
