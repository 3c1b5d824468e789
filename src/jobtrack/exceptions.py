"""Custom exception hierarchy for jobtrack."""

from __future__ import annotations


class JobTrackError(Exception):
    """Base exception for all jobtrack errors."""


class JobTrackConfigError(JobTrackError):
    """Invalid or missing configuration."""


class MalformedPayloadError(JobTrackError):
    """Inbound notification body could not be parsed.

    The notification is discarded and logged; receipt is still
    acknowledged to the sender.
    """


class UnknownFormVersionError(JobTrackError):
    """Form identifier is neither current nor historical for any form type."""

    def __init__(self, message: str, *, form_id: str = "") -> None:
        self.form_id = form_id
        super().__init__(message)


class FieldScopeViolationError(JobTrackError):
    """A value resolved to an identifier outside its expected catalogue.

    Writing a job-level value to a line-item identifier makes the external
    system materialize a new repeated row (a "ghost" line item) that then
    fails its own required-field validation.  This error is fatal to the
    request: nothing is transmitted or accepted.
    """

    def __init__(
        self,
        message: str,
        *,
        field_id: str = "",
        expected_scope: str = "",
        actual_scope: str = "",
    ) -> None:
        self.field_id = field_id
        self.expected_scope = expected_scope
        self.actual_scope = actual_scope
        super().__init__(message)


class JobNotFoundError(JobTrackError):
    """No job exists for the given job id."""

    def __init__(self, message: str, *, job_id: str = "") -> None:
        self.job_id = job_id
        super().__init__(message)


class OutOfOrderTransitionError(JobTrackError):
    """Candidate state is not downstream of the job's current state."""

    def __init__(
        self,
        message: str,
        *,
        job_id: str = "",
        current_state: str = "",
        candidate_state: str = "",
    ) -> None:
        self.job_id = job_id
        self.current_state = current_state
        self.candidate_state = candidate_state
        super().__init__(message)


class GpsParseError(JobTrackError):
    """GPS telemetry string is missing latitude or longitude."""


class CorruptTimestampError(GpsParseError):
    """GPS ``Time`` value resolves to a year outside the accepted window.

    ``fix`` carries the coordinates-only reading so the caller can keep
    using the rest of the telemetry.
    """

    def __init__(self, message: str, *, raw_value: str = "", fix: object | None = None) -> None:
        self.raw_value = raw_value
        self.fix = fix
        super().__init__(message)


class GeocoderError(JobTrackError):
    """Timezone lookup failed (network, non-200, invalid JSON, API error)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class SubmissionFetchError(JobTrackError):
    """Full submission data could not be fetched from the field platform."""

    def __init__(self, message: str, *, submission_id: str = "") -> None:
        self.submission_id = submission_id
        super().__init__(message)
