"""Form version registry."""

from jobtrack.registry.forms import DEFAULT_FORM_VERSIONS, FormResolution, FormVersionRegistry

__all__ = [
    "DEFAULT_FORM_VERSIONS",
    "FormResolution",
    "FormVersionRegistry",
]
