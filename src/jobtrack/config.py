"""Pipeline configuration for jobtrack."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from jobtrack._constants import GEOCODER_TIMEOUT_S, GEOCODER_URL, JOB_ID_PREFIX, MAX_FORM_HISTORY
from jobtrack.exceptions import JobTrackConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class JobTrackConfig:
    """Ingestion pipeline configuration.

    Parameters
    ----------
    geocoder_url : str
        Position-based timezone lookup endpoint.
    geocoder_api_key : str
        API key for the timezone lookup.  ``"demo"`` works against the
        free tier at a low rate limit.
    geocoder_timeout : float
        Upper bound in seconds for one timezone lookup.  A lookup that
        exceeds it degrades to naive-as-UTC; it is never retried.
    form_versions_path : Path or None
        JSON file holding the persisted form-version registry.  When
        ``None`` the built-in defaults are used.
    field_maps_dir : Path or None
        Directory with one ``<form_id>.json`` field map per form version.
    max_form_history : int
        Number of superseded form ids remembered per form type.
    job_id_prefix : str
        Prefix of portal-issued job ids, used when a submission carries
        the job id under an unexpected label.
    trace_payloads : bool
        Emit redacted submission payloads at DEBUG level.
    """

    geocoder_url: str = GEOCODER_URL
    geocoder_api_key: str = "demo"
    geocoder_timeout: float = GEOCODER_TIMEOUT_S
    form_versions_path: Path | None = None
    field_maps_dir: Path | None = None
    max_form_history: int = MAX_FORM_HISTORY
    job_id_prefix: str = JOB_ID_PREFIX
    trace_payloads: bool = False

    def __post_init__(self) -> None:
        if self.geocoder_timeout <= 0:
            raise JobTrackConfigError(f"geocoder_timeout must be positive, got {self.geocoder_timeout}")
        if self.max_form_history < 1:
            raise JobTrackConfigError(f"max_form_history must be at least 1, got {self.max_form_history}")

    @classmethod
    def from_env(cls, **overrides: Any) -> JobTrackConfig:
        """Create configuration from environment variables.

        Reads optional ``JOBTRACK_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        JobTrackConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "JOBTRACK_GEOCODER_URL": "geocoder_url",
            "JOBTRACK_GEOCODER_API_KEY": "geocoder_api_key",
            "JOBTRACK_JOB_ID_PREFIX": "job_id_prefix",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("JOBTRACK_GEOCODER_TIMEOUT")
        if timeout_env is not None and "geocoder_timeout" not in overrides:
            try:
                config_kwargs["geocoder_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise JobTrackConfigError(f"JOBTRACK_GEOCODER_TIMEOUT is not a number: {timeout_env!r}") from exc

        history_env = env.get("JOBTRACK_MAX_FORM_HISTORY")
        if history_env is not None and "max_form_history" not in overrides:
            try:
                config_kwargs["max_form_history"] = int(history_env)
            except ValueError as exc:
                raise JobTrackConfigError(f"JOBTRACK_MAX_FORM_HISTORY is not an integer: {history_env!r}") from exc

        # Paths are optional; an empty value means "use defaults".
        for env_key, field_name in (
            ("JOBTRACK_FORM_VERSIONS_PATH", "form_versions_path"),
            ("JOBTRACK_FIELD_MAPS_DIR", "field_maps_dir"),
        ):
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = Path(val)

        if "trace_payloads" not in overrides:
            config_kwargs["trace_payloads"] = _env_bool(env.get("JOBTRACK_TRACE_PAYLOADS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
