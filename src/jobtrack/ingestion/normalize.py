"""Normalization helpers.

Centralizes defensive parsing of values coming from form submissions.
"""

from __future__ import annotations

import math
from typing import Any

from jobtrack._constants import MS_TIMESTAMP_THRESHOLD


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def is_meaningful(value: Any) -> bool:
    """Return True if a submitted value should be carried into a record."""

    if value is None:
        return False
    if value == "":
        return False
    if value == "--":
        return False
    if value == {}:
        return False
    return bool(value != [])


def prune_record(data: Any) -> Any:
    """Recursively drop non-meaningful values from an extracted record."""

    if isinstance(data, dict):
        pruned: dict[str, Any] = {}
        for key, value in data.items():
            cleaned = prune_record(value)
            if is_meaningful(cleaned):
                pruned[key] = cleaned
        return pruned

    if isinstance(data, list):
        items: list[Any] = []
        for item in data:
            cleaned = prune_record(item)
            if is_meaningful(cleaned):
                items.append(cleaned)
        return items

    return data


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize device epoch timestamps to seconds.

    - Empty/missing/unparseable -> None
    - Milliseconds (> 10,000,000,000, i.e. 13 digits) -> seconds

    Range checking is left to the caller.
    """

    ts = safe_float(value)
    if ts is None:
        return None
    if ts > MS_TIMESTAMP_THRESHOLD:
        ts /= 1000.0
    return ts
