"""Internal constants shared across the library."""

#: Each form type keeps a rolling window of superseded form ids.
MAX_FORM_HISTORY = 20

# ------------------------------------------------------------------
# GPS telemetry
# ------------------------------------------------------------------

#: ``Time`` values above this are milliseconds (13 digits), below are seconds.
MS_TIMESTAMP_THRESHOLD = 10_000_000_000

#: Resolved GPS years outside this window are corrupt telemetry.
MIN_TELEMETRY_YEAR = 2020
MAX_TELEMETRY_YEAR = 2100

# ------------------------------------------------------------------
# Timezone lookup
# ------------------------------------------------------------------

GEOCODER_URL = "https://api.timezonedb.com/v2.1/get-time-zone"
GEOCODER_TIMEOUT_S = 5.0
USER_AGENT = "jobtrack/1.0"

# ------------------------------------------------------------------
# Field encoding
# ------------------------------------------------------------------

#: Placeholder sent for an empty job-level value on dispatch.
EMPTY_VALUE_PLACEHOLDER = "N/A"

#: Prefix used for repeated line-item rows in outbound dispatches.
LINE_ITEM_KEY_PREFIX = "part_"

#: Job ids issued by the portal start with this prefix.
JOB_ID_PREFIX = "ECS-"
