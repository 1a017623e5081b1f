"""Vulnerability assessment report generation: spreadsheet rows in, .docx report out."""

from .builder import ReportConfig, build_report
from .errors import ItemError, ReportError, ResourceError, ValidationError
from .evidence import EvidenceCollection, EvidenceImage
from .fields import FieldSelection, classify, create_field_selections
from .serializer import DocumentStyle, serialize

__all__ = [
    "ReportConfig",
    "build_report",
    "ReportError",
    "ValidationError",
    "ResourceError",
    "ItemError",
    "EvidenceCollection",
    "EvidenceImage",
    "FieldSelection",
    "classify",
    "create_field_selections",
    "DocumentStyle",
    "serialize",
]
