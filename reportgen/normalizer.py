from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

import pandas as pd

from .fields import FieldRoles, FieldSelection

MISSING_VALUE = "N/A"
PREVIEW_LIMIT = 200
TRUNCATION_MARKER = "..."


@dataclass(frozen=True)
class NormalizedField:
    label: str
    value: str
    role: Optional[str] = None
    truncated: bool = False


def is_blank(value: Any) -> bool:
    """True for missing cells: None, NaN/NaT and empty or whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def display_value(value: Any) -> str:
    return MISSING_VALUE if is_blank(value) else str(value)


def preview_value(text: str, limit: int = PREVIEW_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def normalize(
    row: Mapping[str, Any],
    fields: Sequence[FieldSelection],
    roles: Optional[FieldRoles] = None,
    preview: bool = False,
) -> List[NormalizedField]:
    """
    Turn one sheet row into (label, value, role) entries, one per field, in field order.

    Only the preview may shorten long values; report generation always passes preview=False.
    """
    roles = roles or FieldRoles()
    result = []
    for field in fields:
        value = display_value(row.get(field.name))
        truncated = False
        if preview and len(value) > PREVIEW_LIMIT:
            value = preview_value(value)
            truncated = True
        result.append(NormalizedField(
            label=field.name,
            value=value,
            role=roles.role_of(field),
            truncated=truncated,
        ))
    return result
