"""Field map resolution."""

from jobtrack.fieldmap.candidates import CANDIDATES, FORM_FIELDS, FieldCandidates, SemanticField
from jobtrack.fieldmap.catalogue import FieldCatalogue, assert_scope, classify_field
from jobtrack.fieldmap.loader import FieldMapLoader
from jobtrack.fieldmap.resolver import FieldMapResolver, SemanticRecord, match_candidates

__all__ = [
    "CANDIDATES",
    "FORM_FIELDS",
    "FieldCandidates",
    "FieldCatalogue",
    "FieldMapLoader",
    "FieldMapResolver",
    "SemanticField",
    "SemanticRecord",
    "assert_scope",
    "classify_field",
    "match_candidates",
]
