from __future__ import annotations

import math
from datetime import UTC, datetime

import pytest

from jobtrack.ingestion.normalize import (
    normalize_timestamp_seconds,
    prune_record,
    safe_float,
    safe_str,
)
from jobtrack.models._base import parse_platform_timestamp


def test_safe_float_rejects_placeholders_and_non_finite() -> None:
    assert safe_float("41.9") == pytest.approx(41.9)
    assert safe_float("") is None
    assert safe_float("--") is None
    assert safe_float("abc") is None
    assert safe_float(math.nan) is None
    assert safe_float("inf") is None


def test_safe_str_strips_and_drops_blank() -> None:
    assert safe_str("  ECS-1 ") == "ECS-1"
    assert safe_str("   ") is None
    assert safe_str(5716092) == "5716092"


def test_timestamp_seconds_and_milliseconds_normalize_alike() -> None:
    assert normalize_timestamp_seconds(1_700_000_000) == 1_700_000_000
    assert normalize_timestamp_seconds("1700000000000") == 1_700_000_000
    assert normalize_timestamp_seconds("--") is None


def test_platform_timestamp_accepts_epoch_and_iso() -> None:
    expected = datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)

    assert parse_platform_timestamp(1_700_000_000_000) == expected
    assert parse_platform_timestamp("2023-11-14T22:13:20Z") == expected
    assert parse_platform_timestamp(None) is None
    with pytest.raises(ValueError):
        parse_platform_timestamp("yesterday")


def test_prune_record_drops_empty_values() -> None:
    record = {"job_id": "ECS-1", "notes": "", "status": "--", "rows": [{}, {"part": "DPF"}], "extra": {}}

    assert prune_record(record) == {"job_id": "ECS-1", "rows": [{"part": "DPF"}]}
