"""Helpers for safe debug logging.

Submissions carry device coordinates and the timezone lookup carries an
API key.  This module provides a small utility to redact those fields
before emitting DEBUG logs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "key",
        "apikey",
        "api_key",
        "authorization",
        "cookie",
        # Device location
        "lat",
        "lng",
        "lon",
        "latitude",
        "longitude",
    }
)

# GPS telemetry strings embed coordinates in free text.
_GPS_COORD_RE = re.compile(r"(Lat|Lon):[-+]?\d+(?:\.\d+)?")


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        value = _GPS_COORD_RE.sub(r"\1:<redacted>", value)
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)
