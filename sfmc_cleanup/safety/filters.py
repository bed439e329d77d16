"""Candidate filters applied before any detail fetch."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from ..models.data_extension import DataExtension
from ..utils.dates import parse_timestamp, utcnow
from .patterns import compile_user_pattern


def filter_by_date(
    data_extensions: list[DataExtension],
    older_than_days: Optional[int] = None,
    created_before: Optional[datetime] = None,
    created_after: Optional[datetime] = None,
    modified_before: Optional[datetime] = None,
    modified_after: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> list[DataExtension]:
    """Filter data extensions by creation and modification dates.

    Bounded filters exclude items whose relevant date is unknown.
    ``older_than_days`` keeps items without a modification date.
    """
    now = now or utcnow()
    threshold = now - timedelta(days=older_than_days) if older_than_days else None
    created_before = parse_timestamp(created_before)
    created_after = parse_timestamp(created_after)
    modified_before = parse_timestamp(modified_before)
    modified_after = parse_timestamp(modified_after)

    kept = []
    for de in data_extensions:
        created = parse_timestamp(de.created_date)
        modified = parse_timestamp(de.modified_date)

        if created_before and (not created or created > created_before):
            continue
        if created_after and (not created or created < created_after):
            continue
        if modified_before and (not modified or modified > modified_before):
            continue
        if modified_after and (not modified or modified < modified_after):
            continue
        if threshold and modified and modified > threshold:
            continue

        kept.append(de)

    return kept


def filter_by_pattern(
    data_extensions: list[DataExtension],
    include: Optional[str] = None,
    exclude: Optional[str] = None,
) -> list[DataExtension]:
    """Filter data extensions by name or customer key.

    Both patterns are validated before either is applied.

    Raises:
        PatternValidationError: If a pattern is unsafe or malformed
    """
    include_re = compile_user_pattern(include) if include else None
    exclude_re = compile_user_pattern(exclude) if exclude else None

    kept = []
    for de in data_extensions:
        if exclude_re and (exclude_re.search(de.name) or exclude_re.search(de.customer_key)):
            continue
        if include_re and not (include_re.search(de.name) or include_re.search(de.customer_key)):
            continue
        kept.append(de)

    return kept
