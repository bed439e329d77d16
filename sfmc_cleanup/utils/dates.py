"""Timestamp helpers for platform date strings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

# Legacy SOAP endpoints still emit US-style timestamps
_FALLBACK_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d",
)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a platform timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC. Unparseable values yield None.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
            for fmt in _FALLBACK_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            if parsed is None:
                return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_age(seconds: float) -> str:
    """Render an age as ``"2h 5m ago"`` or ``"12m ago"``."""
    minutes = int(seconds // 60)
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m ago"
    return f"{minutes}m ago"
