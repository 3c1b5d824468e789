"""jobtrack - Inbound submission reconciliation for field-service job tracking."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jobtrack")
except PackageNotFoundError:
    __version__ = "0+local"

from jobtrack.config import JobTrackConfig
from jobtrack.exceptions import (
    CorruptTimestampError,
    FieldScopeViolationError,
    GeocoderError,
    GpsParseError,
    JobNotFoundError,
    JobTrackConfigError,
    JobTrackError,
    MalformedPayloadError,
    OutOfOrderTransitionError,
    SubmissionFetchError,
    UnknownFormVersionError,
)
from jobtrack.models import (
    FieldMapEntry,
    FieldScope,
    FormType,
    FormVersion,
    GpsFix,
    Job,
    JobState,
    NormalizedTime,
    NotificationRecord,
    Submission,
    SubmissionNotification,
    SubmissionResponse,
    TimezoneInfo,
)
from jobtrack.fieldmap import FieldMapResolver, SemanticField
from jobtrack.geo import GeoTimeNormalizer, TimeZoneDbGeocoder
from jobtrack.ingestion.idempotency import AdmitResult, IdempotencyGuard
from jobtrack.ingestion.ingester import IngestionOutcome, IngestionResult, NotificationIngester
from jobtrack.ingestion.metrics import IngestionMetrics
from jobtrack.registry import FormVersionRegistry
from jobtrack.state import InMemoryJobStore, JobStateMachine

__all__ = [
    "__version__",
    "AdmitResult",
    "CorruptTimestampError",
    "FieldMapEntry",
    "FieldMapResolver",
    "FieldScope",
    "FieldScopeViolationError",
    "FormType",
    "FormVersion",
    "FormVersionRegistry",
    "GeoTimeNormalizer",
    "GeocoderError",
    "GpsFix",
    "GpsParseError",
    "IdempotencyGuard",
    "InMemoryJobStore",
    "IngestionMetrics",
    "IngestionOutcome",
    "IngestionResult",
    "Job",
    "JobNotFoundError",
    "JobState",
    "JobStateMachine",
    "JobTrackConfig",
    "JobTrackConfigError",
    "JobTrackError",
    "MalformedPayloadError",
    "NormalizedTime",
    "NotificationIngester",
    "NotificationRecord",
    "OutOfOrderTransitionError",
    "SemanticField",
    "Submission",
    "SubmissionFetchError",
    "SubmissionNotification",
    "SubmissionResponse",
    "TimeZoneDbGeocoder",
    "TimezoneInfo",
    "UnknownFormVersionError",
]
