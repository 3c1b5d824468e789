"""Form version registry.

Maps form ids (current or superseded) to logical form types.  The field
platform issues a new form id every time a form is republished, while
submissions made on devices that still hold an older version keep arriving
under the old id; the registry remembers a bounded window of those ids.

Readers never lock: they see one immutable snapshot.  Remaps are
administrative, serialized by a lock, and publish a new snapshot in a
single reference assignment.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from jobtrack._constants import MAX_FORM_HISTORY
from jobtrack.exceptions import JobTrackConfigError
from jobtrack.models.forms import FormType, FormVersion

_logger = logging.getLogger(__name__)

DEFAULT_FORM_VERSIONS: Mapping[FormType, FormVersion] = MappingProxyType(
    {
        FormType.EMISSIONS: FormVersion(form_type=FormType.EMISSIONS, current="5716092", history=("5695685",)),
        FormType.PICKUP: FormVersion(form_type=FormType.PICKUP, current="5657148", history=("5640587",)),
        FormType.DELIVERY: FormVersion(form_type=FormType.DELIVERY, current="5714828", history=("5657146",)),
    }
)


@dataclass(frozen=True, slots=True)
class FormResolution:
    """Result of resolving a form id."""

    form_type: FormType
    form_id: str
    is_current: bool


class FormVersionRegistry:
    """Resolve form ids to form types across current and historical versions."""

    def __init__(
        self,
        versions: Mapping[FormType, FormVersion] | None = None,
        *,
        max_history: int = MAX_FORM_HISTORY,
    ) -> None:
        if max_history < 1:
            raise JobTrackConfigError(f"max_history must be at least 1, got {max_history}")
        self._max_history = max_history
        self._write_lock = threading.Lock()
        source = DEFAULT_FORM_VERSIONS if versions is None else versions
        self._snapshot: Mapping[FormType, FormVersion] = MappingProxyType(
            {
                form_type: FormVersion(
                    form_type=form_type,
                    current=version.current,
                    history=version.history[:max_history],
                )
                for form_type, version in source.items()
            }
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, max_history: int = MAX_FORM_HISTORY) -> FormVersionRegistry:
        """Build a registry from ``{form_type: {"current": ..., "history": [...]}}``."""
        versions: dict[FormType, FormVersion] = {}
        for key, value in data.items():
            try:
                form_type = FormType(str(key).strip().lower())
            except ValueError as exc:
                raise JobTrackConfigError(f"Unknown form type in registry config: {key!r}") from exc
            if not isinstance(value, Mapping):
                raise JobTrackConfigError(f"Registry entry for {key!r} must be an object")
            try:
                versions[form_type] = FormVersion(
                    form_type=form_type,
                    current=value.get("current", ""),
                    history=value.get("history") or (),
                )
            except ValidationError as exc:
                raise JobTrackConfigError(f"Invalid registry entry for {key!r}: {exc}") from exc
        return cls(versions, max_history=max_history)

    @classmethod
    def from_file(cls, path: Path, *, max_history: int = MAX_FORM_HISTORY) -> FormVersionRegistry:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise JobTrackConfigError(f"Cannot load form registry from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise JobTrackConfigError(f"Form registry {path} must contain a JSON object")
        return cls.from_dict(data, max_history=max_history)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {
            form_type.value: {"current": version.current, "history": list(version.history)}
            for form_type, version in self._snapshot.items()
        }

    def save(self, path: Path) -> None:
        """Write the registry in its persisted shape."""
        target = Path(path)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
        tmp.replace(target)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def max_history(self) -> int:
        return self._max_history

    def version(self, form_type: FormType) -> FormVersion:
        try:
            return self._snapshot[form_type]
        except KeyError as exc:
            raise JobTrackConfigError(f"No form registered for type {form_type}") from exc

    def current_id(self, form_type: FormType) -> str:
        return self.version(form_type).current

    def all_ids(self, form_type: FormType) -> tuple[str, ...]:
        return self.version(form_type).all_ids()

    def known_ids(self) -> frozenset[str]:
        return frozenset(form_id for version in self._snapshot.values() for form_id in version.all_ids())

    def resolve_version(self, form_id: str) -> FormResolution | None:
        """Resolve *form_id* against every type's current id and history."""
        form_id = str(form_id).strip()
        if not form_id:
            return None
        snapshot = self._snapshot
        for form_type, version in snapshot.items():
            if version.current == form_id:
                return FormResolution(form_type=form_type, form_id=form_id, is_current=True)
        for form_type, version in snapshot.items():
            if form_id in version.history:
                return FormResolution(form_type=form_type, form_id=form_id, is_current=False)
        return None

    def resolve(self, form_id: str) -> FormType | None:
        """Return the form type for *form_id*, or ``None`` when unknown."""
        resolution = self.resolve_version(form_id)
        return resolution.form_type if resolution is not None else None

    # ------------------------------------------------------------------
    # Administrative remap
    # ------------------------------------------------------------------

    def remap(self, form_type: FormType, new_id: str) -> FormVersion:
        """Make *new_id* the current id of *form_type*.

        The old current id moves to the front of the history, which is
        truncated to ``max_history`` entries (oldest dropped).
        """
        new_id = str(new_id).strip()
        if not new_id:
            raise ValueError("new form id must be non-empty")
        with self._write_lock:
            snapshot = dict(self._snapshot)
            owner = next(
                (ft for ft, version in snapshot.items() if ft != form_type and new_id in version.all_ids()),
                None,
            )
            if owner is not None:
                raise JobTrackConfigError(f"Form id {new_id} already belongs to form type {owner}")

            previous = snapshot.get(form_type)
            if previous is None:
                updated = FormVersion(form_type=form_type, current=new_id)
            else:
                updated = previous.remapped(new_id, max_history=self._max_history)
            snapshot[form_type] = updated
            self._snapshot = MappingProxyType(snapshot)

        _logger.info(
            "Remapped %s form: current=%s history=%d entries",
            form_type.value,
            updated.current,
            len(updated.history),
        )
        return updated
