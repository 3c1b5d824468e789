"""GPS telemetry and timezone normalization."""

from jobtrack.geo.geocoder import Geocoder, TimeZoneDbGeocoder
from jobtrack.geo.normalizer import GeoTimeNormalizer, local_to_utc, parse_fix, parse_wall_clock

__all__ = [
    "GeoTimeNormalizer",
    "Geocoder",
    "TimeZoneDbGeocoder",
    "local_to_utc",
    "parse_fix",
    "parse_wall_clock",
]
