"""Snapshot encoding for case-workspace.

to_snapshot() writes the versionless JSON-compatible object that storages
persist and normalize() reads back:

    {"clients": [...], "cases": [...], "documents": [...],
     "research": [...], "timeEntries": [...], "activity": [...]}

Keys are camelCase. Optional fields are omitted when unset, except the
nullable references listed in _ALWAYS_WRITTEN which are written as null.
"""

import re
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

from case_workspace.core.models import WorkspaceState

_ALWAYS_WRITTEN = frozenset(
    {
        "clientId",
        "clientName",
        "programTag",
        "jurisdiction",
        "intake",
        "restorativeProfile",
        "mockTrialProfile",
    }
)


def camel_case(name: str) -> str:
    """Convert a snake_case field name to camelCase."""
    return re.sub(r"_([a-z])", lambda match: match.group(1).upper(), name)


def encode(value: Any) -> Any:
    """Encode a record, enum or collection into JSON-compatible values."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        encoded: dict[str, Any] = {}
        for item in fields(value):
            key = camel_case(item.name)
            field_value = getattr(value, item.name)
            if field_value is None and key not in _ALWAYS_WRITTEN:
                continue
            encoded[key] = encode(field_value)
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    return value


def to_snapshot(state: WorkspaceState) -> dict[str, Any]:
    """Serialize the whole workspace into its persisted snapshot shape."""
    return {
        "clients": encode(state.clients),
        "cases": encode(state.cases),
        "documents": encode(state.documents),
        "research": encode(state.research),
        "timeEntries": encode(state.time_entries),
        "activity": encode(state.activity),
    }
