"""
Field selection and classification.

A FieldSelection is created for every header column of the uploaded sheet. The list
order is the order fields render in; ids and names never change after import.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class FieldSelection:
    id: str
    name: str
    include: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "include": self.include}


@dataclass(frozen=True)
class FieldRoles:
    name: Optional[FieldSelection] = None
    severity: Optional[FieldSelection] = None
    status: Optional[FieldSelection] = None

    def role_of(self, field: FieldSelection) -> Optional[str]:
        if self.name is not None and field.id == self.name.id:
            return "name"
        if self.severity is not None and field.id == self.severity.id:
            return "severity"
        if self.status is not None and field.id == self.status.id:
            return "status"
        return None


def is_name_field(field_name: str) -> bool:
    lowered = field_name.lower()
    return "vulnerability" in lowered and "name" in lowered


def is_severity_field(field_name: str) -> bool:
    return "severity" in field_name.lower()


def is_status_field(field_name: str) -> bool:
    return "status" in field_name.lower()


def classify(fields: Sequence[FieldSelection]) -> FieldRoles:
    """
    Pick the vulnerability-name, severity and status fields.

    The first matching field in current order wins each role. Roles are matched
    independently, so one column may hold more than one role.
    """
    return FieldRoles(
        name=next((f for f in fields if is_name_field(f.name)), None),
        severity=next((f for f in fields if is_severity_field(f.name)), None),
        status=next((f for f in fields if is_status_field(f.name)), None),
    )


def create_field_selections(headers: Iterable[Any]) -> List[FieldSelection]:
    return [
        FieldSelection(id=f"field-{index}", name=str(header), include=True)
        for index, header in enumerate(headers)
    ]


def included_fields(fields: Sequence[FieldSelection]) -> List[FieldSelection]:
    return [f for f in fields if f.include]


def _index_of(fields: Sequence[FieldSelection], field_id: str) -> int:
    for index, field in enumerate(fields):
        if field.id == field_id:
            return index
    return -1


def reorder_fields(fields: Sequence[FieldSelection], source_index: int, destination_index: int) -> List[FieldSelection]:
    """Apply a drag-and-drop result: take the field at source_index and drop it at destination_index."""
    result = list(fields)
    if not (0 <= source_index < len(result)) or not (0 <= destination_index < len(result)):
        return result
    moved = result.pop(source_index)
    result.insert(destination_index, moved)
    return result


def move_field(fields: Sequence[FieldSelection], field_id: str, direction: str) -> List[FieldSelection]:
    result = list(fields)
    index = _index_of(result, field_id)
    if index == -1:
        return result
    if direction == "up" and index > 0:
        result[index - 1], result[index] = result[index], result[index - 1]
    elif direction == "down" and index < len(result) - 1:
        result[index], result[index + 1] = result[index + 1], result[index]
    return result


def toggle_field(fields: Sequence[FieldSelection], field_id: str) -> List[FieldSelection]:
    return [replace(f, include=not f.include) if f.id == field_id else f for f in fields]


def remove_field(fields: Sequence[FieldSelection], field_id: str) -> List[FieldSelection]:
    return [f for f in fields if f.id != field_id]


def fields_from_payload(payload: Iterable[Dict[str, Any]]) -> List[FieldSelection]:
    """Rebuild the working field list sent back by the browser, keeping its order."""
    fields = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict) or "name" not in item:
            raise ValueError(f"Field entry {index} must be an object with a 'name'")
        fields.append(FieldSelection(
            id=str(item.get("id") or f"field-{index}"),
            name=str(item["name"]),
            include=bool(item.get("include", True)),
        ))
    return fields
