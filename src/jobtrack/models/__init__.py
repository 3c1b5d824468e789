"""Data models for the reconciliation pipeline."""

from jobtrack.models._base import PlatformBaseModel, PlatformTimestamp, ensure_utc, parse_platform_timestamp
from jobtrack.models.forms import FieldMap, FieldMapEntry, FieldScope, FormType, FormVersion
from jobtrack.models.gps import GpsFix, NormalizedTime, TimeSource, TimezoneInfo
from jobtrack.models.job import Job, JobState
from jobtrack.models.notification import (
    NotificationRecord,
    Submission,
    SubmissionNotification,
    SubmissionResponse,
)

__all__ = [
    "FieldMap",
    "FieldMapEntry",
    "FieldScope",
    "FormType",
    "FormVersion",
    "GpsFix",
    "Job",
    "JobState",
    "NormalizedTime",
    "NotificationRecord",
    "PlatformBaseModel",
    "PlatformTimestamp",
    "Submission",
    "SubmissionNotification",
    "SubmissionResponse",
    "TimeSource",
    "TimezoneInfo",
    "ensure_utc",
    "parse_platform_timestamp",
]
