from __future__ import annotations

from pathlib import Path

import pytest

from jobtrack.config import JobTrackConfig
from jobtrack.exceptions import JobTrackConfigError


def test_defaults() -> None:
    config = JobTrackConfig()

    assert config.geocoder_api_key == "demo"
    assert config.max_form_history == 20
    assert config.job_id_prefix == "ECS-"
    assert config.trace_payloads is False


def test_from_env_reads_jobtrack_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOBTRACK_GEOCODER_API_KEY", "k-1")
    monkeypatch.setenv("JOBTRACK_GEOCODER_TIMEOUT", "2.5")
    monkeypatch.setenv("JOBTRACK_MAX_FORM_HISTORY", "5")
    monkeypatch.setenv("JOBTRACK_FIELD_MAPS_DIR", "/srv/field-maps")
    monkeypatch.setenv("JOBTRACK_TRACE_PAYLOADS", "yes")

    config = JobTrackConfig.from_env()

    assert config.geocoder_api_key == "k-1"
    assert config.geocoder_timeout == 2.5
    assert config.max_form_history == 5
    assert config.field_maps_dir == Path("/srv/field-maps")
    assert config.trace_payloads is True


def test_overrides_beat_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOBTRACK_GEOCODER_TIMEOUT", "2.5")

    config = JobTrackConfig.from_env(geocoder_timeout=1.0)

    assert config.geocoder_timeout == 1.0


def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOBTRACK_GEOCODER_TIMEOUT", "soon")
    with pytest.raises(JobTrackConfigError):
        JobTrackConfig.from_env()

    with pytest.raises(JobTrackConfigError):
        JobTrackConfig(max_form_history=0)
