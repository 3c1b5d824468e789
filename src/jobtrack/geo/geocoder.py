"""Position-based timezone lookup."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from jobtrack._constants import USER_AGENT
from jobtrack.config import JobTrackConfig
from jobtrack.exceptions import GeocoderError
from jobtrack.models.gps import TimezoneInfo

_logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    """Structural geocoder interface used by the normalizer.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`TimeZoneDbGeocoder`) concrete.
    """

    async def lookup(self, latitude: float, longitude: float) -> TimezoneInfo:
        ...


class TimeZoneDbGeocoder:
    """TimeZoneDB ``get-time-zone`` client.

    ``gmtOffset`` already includes DST, so ``dst_offset_seconds`` is always 0.
    """

    def __init__(self, config: JobTrackConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    async def lookup(self, latitude: float, longitude: float) -> TimezoneInfo:
        params = {
            "key": self._config.geocoder_api_key,
            "format": "json",
            "by": "position",
            "lat": f"{latitude}",
            "lng": f"{longitude}",
        }
        headers = {"accept": "application/json", "user-agent": USER_AGENT}
        timeout = aiohttp.ClientTimeout(total=self._config.geocoder_timeout)

        _logger.debug("GET %s by position", self._config.geocoder_url)

        try:
            async with self._http.get(
                self._config.geocoder_url, params=params, headers=headers, timeout=timeout
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise GeocoderError(
                        f"HTTP {resp.status} from timezone lookup: {text[:200]}",
                        status_code=resp.status,
                    )
        except GeocoderError:
            raise
        except aiohttp.ClientError as exc:
            raise GeocoderError(f"Timezone lookup failed: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise GeocoderError(f"Undecodable body from timezone lookup: {exc}") from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise GeocoderError(f"Invalid JSON from timezone lookup: {text[:200]}") from exc

        if not isinstance(body, dict):
            raise GeocoderError("Timezone lookup returned a non-object body")
        if body.get("status") != "OK":
            raise GeocoderError(f"Timezone lookup error: {body.get('message') or 'unknown error'}")

        zone = body.get("zoneName") or body.get("abbreviation") or "UTC"
        try:
            offset = int(body.get("gmtOffset") or 0)
        except (TypeError, ValueError) as exc:
            raise GeocoderError(f"Timezone lookup returned a bad gmtOffset: {body.get('gmtOffset')!r}") from exc

        return TimezoneInfo(zone_id=zone, zone_name=zone, utc_offset_seconds=offset, dst_offset_seconds=0)
