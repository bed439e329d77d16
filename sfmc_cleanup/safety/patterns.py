"""Pattern vetting for name matching.

Two kinds of patterns run against resource names:

- A fixed, pre-vetted list used for PII field detection.
- Operator-supplied include/exclude filters. These are untrusted input and are
  checked for length and catastrophic-backtracking shapes before compilation.
"""

from __future__ import annotations

import re
from typing import Optional

from ..errors import PatternValidationError

MAX_PATTERN_LENGTH = 200

PII_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"email",
        r"e-mail",
        r"firstname",
        r"first_name",
        r"lastname",
        r"last_name",
        r"phone",
        r"mobile",
        r"cell",
        r"address",
        r"street",
        r"city",
        r"postal",
        r"zip",
        r"ssn",
        r"social.*security",
        r"date.*birth",
        r"dob",
        r"birthdate",
        r"credit.*card",
        r"card.*number",
        r"passport",
        r"driver.*license",
        r"salary",
        r"income",
        r"sin",  # Canadian Social Insurance Number
        r"nin",  # UK National Insurance Number
        r"_pii$",
        r"^pii_",
        r"personal",
    )
)

_LOOKAROUND_PREFIXES = ("(?=", "(?!", "(?<=", "(?<!")
_ADJACENT_WILDCARDS = re.compile(r"\.[*+][?+]?\.[*+]")


def is_pii_field(field_name: str) -> bool:
    """Check whether a field name looks like personal data."""
    return any(pattern.search(field_name) for pattern in PII_PATTERNS)


def _quantifier_end(pattern: str, index: int) -> tuple[int, bool]:
    """Find the end of a quantifier starting at ``index``.

    Returns:
        Tuple of (end index, repeats) where ``repeats`` is True for quantifiers
        that allow more than one repetition. ``end == index`` means no quantifier.
    """
    if index >= len(pattern):
        return index, False

    ch = pattern[index]
    if ch in "*+":
        end, repeats = index + 1, True
    elif ch == "?":
        end, repeats = index + 1, False
    elif ch == "{":
        match = re.match(r"\{(\d*)(,?)(\d*)\}", pattern[index:])
        if not match or (not match.group(1) and not match.group(3)):
            return index, False
        end = index + match.end()
        upper = match.group(3)
        if match.group(2):
            repeats = not upper or int(upper) > 1
        else:
            repeats = int(match.group(1)) > 1
    else:
        return index, False

    # Lazy or possessive suffix
    if end < len(pattern) and pattern[end] in "?+":
        end += 1
    return end, repeats


def _skip_class(pattern: str, index: int) -> int:
    """Return the index just past a ``[...]`` character class."""
    i = index + 1
    if i < len(pattern) and pattern[i] == "^":
        i += 1
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern) and pattern[i] != "]":
        if pattern[i] == "\\":
            i += 1
        i += 1
    return i + 1


def find_unsafe_construct(pattern: str) -> Optional[str]:
    """Describe the first catastrophic-backtracking shape in a pattern.

    Detects nested quantifiers (``(a+)+``), quantified lookaround
    (``(?=a)+``), adjacent wildcard repetition (``.*.*``) and adjacent
    quantified groups (``(a|b)+(a|b)+``).

    Returns:
        Reason string, or None if no unsafe shape was found
    """
    if _ADJACENT_WILDCARDS.search(pattern):
        return "adjacent wildcard repetition"

    # Each open group tracks whether it is a lookaround and whether anything
    # inside it repeats.
    stack: list[dict] = []
    last_repeated_group_end = -1
    i = 0
    n = len(pattern)

    while i < n:
        ch = pattern[i]

        if ch == "\\":
            end, repeats = _quantifier_end(pattern, i + 2)
            if repeats and stack:
                stack[-1]["repeats"] = True
            i = end
            continue

        if ch == "[":
            end, repeats = _quantifier_end(pattern, _skip_class(pattern, i))
            if repeats and stack:
                stack[-1]["repeats"] = True
            i = end
            continue

        if ch == "(":
            stack.append({"start": i, "lookaround": pattern.startswith(_LOOKAROUND_PREFIXES, i), "repeats": False})
            i += 1
            continue

        if ch == ")":
            if not stack:
                return None  # unbalanced, left to the compiler to report
            group = stack.pop()
            end, repeats = _quantifier_end(pattern, i + 1)

            if repeats:
                if group["lookaround"]:
                    return "quantified lookaround"
                if group["repeats"]:
                    return "nested quantifier"
                if last_repeated_group_end == group["start"]:
                    return "adjacent quantified groups"
                last_repeated_group_end = end

            if stack and (repeats or group["repeats"]):
                stack[-1]["repeats"] = True
            i = end
            continue

        end, repeats = _quantifier_end(pattern, i + 1)
        if repeats and stack:
            stack[-1]["repeats"] = True
        i = end

    return None


def compile_user_pattern(pattern: str) -> re.Pattern[str]:
    """Validate and compile an operator-supplied filter pattern.

    Args:
        pattern: Regular expression from the command line

    Returns:
        Case-insensitive compiled pattern

    Raises:
        PatternValidationError: If the pattern is empty, too long, has an unsafe
            shape, or does not compile
    """
    if not pattern or not pattern.strip():
        raise PatternValidationError(pattern, "pattern is empty")

    if len(pattern) > MAX_PATTERN_LENGTH:
        raise PatternValidationError(pattern, f"longer than {MAX_PATTERN_LENGTH} characters")

    reason = find_unsafe_construct(pattern)
    if reason:
        raise PatternValidationError(pattern, reason)

    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise PatternValidationError(pattern, f"does not compile ({e})") from e
