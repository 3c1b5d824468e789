"""Field map loading.

Field maps are exported per form version as ``<form_id>.json`` and treated
as read-only reference data.  Loaded maps are cached until explicitly
cleared (e.g. after a remap pulled a fresh export).
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from jobtrack.exceptions import JobTrackConfigError
from jobtrack.models.forms import FieldMap

_logger = logging.getLogger(__name__)


class FieldMapLoader:
    """Load and cache field map documents from a directory."""

    def __init__(self, directory: Path | None) -> None:
        self._directory = Path(directory) if directory is not None else None
        self._cache: dict[str, FieldMap] = {}
        self._missing: set[str] = set()
        self._lock = threading.Lock()

    def path_for(self, form_id: str) -> Path | None:
        if self._directory is None:
            return None
        return self._directory / f"{form_id}.json"

    def load(self, form_id: str) -> FieldMap | None:
        """Return the field map for *form_id*, or ``None`` if none is exported.

        A file that exists but cannot be parsed is a configuration error.
        """
        form_id = str(form_id).strip()
        with self._lock:
            cached = self._cache.get(form_id)
            if cached is not None or form_id in self._missing:
                return cached

            path = self.path_for(form_id)
            if path is None or not path.is_file():
                _logger.debug("No field map exported for form %s", form_id)
                self._missing.add(form_id)
                return None

            try:
                field_map = FieldMap.model_validate(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError, ValidationError) as exc:
                raise JobTrackConfigError(f"Invalid field map {path}: {exc}") from exc
            if field_map.form_id != form_id:
                raise JobTrackConfigError(
                    f"Field map {path} declares form_id {field_map.form_id}, expected {form_id}"
                )

            _logger.debug("Loaded field map for form %s (%d fields)", form_id, field_map.total_fields)
            self._cache[form_id] = field_map
            return field_map

    def loaded_form_ids(self) -> list[str]:
        with self._lock:
            return list(self._cache)

    def clear_cache(self, form_id: str | None = None) -> None:
        with self._lock:
            if form_id is None:
                self._cache.clear()
                self._missing.clear()
            else:
                self._cache.pop(form_id, None)
                self._missing.discard(form_id)
