"""Dialog components for OPG Annotator."""

from .clinical_tags import ClinicalTagsDialog

__all__ = [
    "ClinicalTagsDialog",
]
