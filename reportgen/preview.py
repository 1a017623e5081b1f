"""
Preview of the first few vulnerabilities as they will appear in the report.

Uses the same classifier, normalizer, associator and colour rules as generation, with
long values shortened for display.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .colors import resolve_severity_color, resolve_status_color
from .evidence import EvidenceImage, images_for
from .fields import FieldSelection, classify, included_fields
from .normalizer import display_value, is_blank, normalize

PREVIEW_ROWS = 3


def _preview_row(index: int, row: Mapping[str, Any], fields: Sequence[FieldSelection], roles, images) -> Dict[str, Any]:
    entries = []
    name = None
    for entry in normalize(row, fields, roles, preview=True):
        item = {
            "label": entry.label,
            "value": entry.value,
            "role": entry.role,
            "truncated": entry.truncated,
        }
        if entry.role == "name":
            name = entry.value
        elif entry.role == "severity":
            item["color"] = resolve_severity_color(entry.value)
        elif entry.role == "status":
            item["color"] = resolve_status_color(entry.value)
        entries.append(item)

    raw_name = row.get(roles.name.name) if roles.name is not None else None
    evidence = [] if is_blank(raw_name) else images_for(display_value(raw_name), images)
    return {
        "index": index,
        "title": f"{index}. {name}" if name is not None else None,
        "fields": entries,
        "evidence_count": len(evidence),
    }


def build_preview(
    vulnerabilities: Sequence[Mapping[str, Any]],
    fields: Sequence[FieldSelection],
    images: Sequence[EvidenceImage],
    limit: int = PREVIEW_ROWS,
    observations: Optional[Sequence[Mapping[str, Any]]] = None,
    scope: Optional[Sequence[Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    selected = included_fields(fields)
    roles = classify(selected)
    rows: List[Dict[str, Any]] = [
        _preview_row(index, row, selected, roles, images)
        for index, row in enumerate(vulnerabilities[:limit], 1)
    ]
    return {
        "counts": {
            "vulnerabilities": len(vulnerabilities),
            "included_fields": len(selected),
            "images": len(images),
            "observations": len(observations or []),
            "scope": len(scope or []),
        },
        "rows": rows,
        "remaining": max(len(vulnerabilities) - limit, 0),
    }
