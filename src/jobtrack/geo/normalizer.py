"""GPS telemetry parsing and event-time normalization.

Device GPS strings look like::

    Lat:41.908566,Lon:-87.677826,Acc:6.550611,Alt:190.5,Time:1756312898.246060

``Time`` is a Unix timestamp in seconds or milliseconds and is already an
instant.  Wall-clock answers (``Handoff Date`` / ``Handoff Time``) are in the
device's local zone and need a timezone lookup by position before they can
be stored as UTC.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import UTC, datetime

import aiohttp

from jobtrack._constants import MAX_TELEMETRY_YEAR, MIN_TELEMETRY_YEAR, MS_TIMESTAMP_THRESHOLD
from jobtrack._redact import redact_for_log
from jobtrack.exceptions import CorruptTimestampError, GeocoderError, GpsParseError
from jobtrack.geo.geocoder import Geocoder
from jobtrack.ingestion.normalize import safe_float
from jobtrack.models.gps import GpsFix, NormalizedTime, TimeSource, TimezoneInfo

_logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$")


def _tokens(raw: str) -> dict[str, str]:
    """Split ``Key:value`` pairs.  Keys are case-insensitive; the first wins."""
    tokens: dict[str, str] = {}
    for part in raw.split(","):
        key, sep, value = part.partition(":")
        if not sep:
            continue
        tokens.setdefault(key.strip().lower(), value.strip())
    return tokens


def gps_time_to_datetime(value: float) -> datetime:
    """Convert a GPS ``Time`` value to an aware UTC datetime.

    Values above 10,000,000,000 are milliseconds.  Raises ``ValueError``
    when the resolved year is outside the accepted telemetry window.
    """
    seconds = value / 1000 if value > MS_TIMESTAMP_THRESHOLD else value
    try:
        resolved = datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"GPS time {value!r} is not representable") from exc
    if not MIN_TELEMETRY_YEAR <= resolved.year <= MAX_TELEMETRY_YEAR:
        raise ValueError(f"GPS time {value!r} resolves to year {resolved.year}")
    return resolved


def has_device_time(raw: str) -> bool:
    return "time" in _tokens(raw or "")


def parse_fix(raw: str, *, now: datetime | None = None) -> GpsFix:
    """Parse a device GPS string.

    Missing ``Acc`` defaults to 0 and missing ``Time`` to *now* (the
    current time when not given).  Unknown keys are ignored.

    Raises
    ------
    GpsParseError
        ``Lat`` or ``Lon`` is missing or not a valid coordinate.
    CorruptTimestampError
        ``Time`` is present but outside the accepted years.  The error's
        ``fix`` carries the coordinates without a timestamp.
    """
    tokens = _tokens(raw or "")
    latitude = safe_float(tokens.get("lat"))
    longitude = safe_float(tokens.get("lon"))
    if latitude is None or longitude is None:
        raise GpsParseError(f"GPS string has no usable Lat/Lon: {redact_for_log(raw)!r}")

    try:
        fix = GpsFix(
            latitude=latitude,
            longitude=longitude,
            accuracy=tokens.get("acc"),
            timestamp=None,
            raw=raw,
        )
    except ValueError as exc:
        raise GpsParseError(f"GPS coordinates out of range: {exc}") from exc

    raw_time = tokens.get("time")
    if raw_time is None:
        return fix.model_copy(update={"timestamp": now or datetime.now(UTC)})

    time_value = safe_float(raw_time)
    if time_value is None:
        raise CorruptTimestampError(f"GPS time {raw_time!r} is not a number", raw_value=raw_time, fix=fix)
    try:
        timestamp = gps_time_to_datetime(time_value)
    except ValueError as exc:
        raise CorruptTimestampError(str(exc), raw_value=raw_time, fix=fix) from exc
    return fix.model_copy(update={"timestamp": timestamp})


def parse_wall_clock(date_str: str, time_str: str) -> datetime:
    """Parse ``MM/DD/YYYY`` plus ``hh:mm AM/PM`` (or 24h ``HH:MM``) into a naive datetime."""
    try:
        month, day, year = (int(part) for part in date_str.strip().split("/"))
    except ValueError as exc:
        raise ValueError(f"not a MM/DD/YYYY date: {date_str!r}") from exc

    match = _TIME_RE.match(time_str or "")
    if match is None:
        raise ValueError(f"not a wall-clock time: {time_str!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    meridiem = (match.group(4) or "").lower()
    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"not a 12-hour time: {time_str!r}")
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    return datetime(year, month, day, hour, minute, second)


def local_to_utc(local: datetime, tz: TimezoneInfo) -> datetime:
    """Convert a naive local wall-clock time to UTC using *tz*'s total offset."""
    return (local.replace(tzinfo=None) - tz.total_offset).replace(tzinfo=UTC)


class GeoTimeNormalizer:
    """Turn submission telemetry into a single UTC event time."""

    def __init__(self, geocoder: Geocoder | None = None, *, timeout: float = 5.0) -> None:
        self._geocoder = geocoder
        self._timeout = timeout

    async def resolve_timezone(self, fix: GpsFix) -> TimezoneInfo | None:
        """Look up the timezone at *fix*, or ``None`` when unavailable.

        One attempt bounded by the configured timeout; failures are never
        retried.
        """
        if self._geocoder is None:
            return None
        try:
            async with asyncio.timeout(self._timeout):
                return await self._geocoder.lookup(fix.latitude, fix.longitude)
        except TimeoutError:
            _logger.warning("Timezone lookup timed out after %.1fs", self._timeout)
        except (GeocoderError, aiohttp.ClientError) as exc:
            _logger.warning("Timezone lookup unavailable: %s", exc)
        except Exception as exc:  # noqa: BLE001
            # Any geocoder failure degrades to naive-as-UTC.
            _logger.warning("Timezone lookup failed unexpectedly: %r", exc)
        return None

    async def normalize(
        self,
        gps_raw: str | None,
        local_date: str | None = None,
        local_time: str | None = None,
        *,
        received_at: datetime,
    ) -> NormalizedTime:
        """Pick the best event time available.

        1. The GPS ``Time`` value, when present and valid.
        2. The local wall clock converted with the timezone at the fix.
        3. The local wall clock taken as UTC, marked ``timezone_known=False``.
        4. *received_at*.
        """
        fix: GpsFix | None = None
        if gps_raw:
            try:
                fix = parse_fix(gps_raw, now=received_at)
            except CorruptTimestampError as exc:
                _logger.warning("Ignoring corrupt GPS time: %s", exc)
                fix = exc.fix if isinstance(exc.fix, GpsFix) else None
            except GpsParseError as exc:
                _logger.warning("Ignoring unparseable GPS telemetry: %s", exc)
            else:
                if has_device_time(gps_raw) and fix.timestamp is not None:
                    return NormalizedTime(instant=fix.timestamp, source=TimeSource.GPS, fix=fix)
                fix = fix.model_copy(update={"timestamp": None})

        local: datetime | None = None
        if local_date and local_time:
            try:
                local = parse_wall_clock(local_date, local_time)
            except ValueError as exc:
                _logger.warning("Ignoring unparseable local time %r %r: %s", local_date, local_time, exc)

        if local is not None:
            tz = await self.resolve_timezone(fix) if fix is not None else None
            if tz is not None:
                return NormalizedTime(
                    instant=local_to_utc(local, tz),
                    source=TimeSource.LOCAL,
                    zone_id=tz.zone_id,
                    fix=fix,
                )
            _logger.info("Timezone unknown; taking local time %s as UTC", local.isoformat())
            return NormalizedTime(
                instant=local.replace(tzinfo=UTC),
                source=TimeSource.LOCAL,
                timezone_known=False,
                fix=fix,
            )

        return NormalizedTime(instant=received_at, source=TimeSource.RECEIVED, fix=fix)

