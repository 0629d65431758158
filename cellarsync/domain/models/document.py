"""Conversion of domain dataclasses into JSON-ready camelCase documents."""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


def camel_case(name: str) -> str:
    """Convert ``snake_case`` to ``camelCase`` (``moved_last_12_months`` -> ``movedLast12Months``)."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_document(value: Any) -> Any:
    """Recursively convert dataclasses, enums and dates to plain JSON values.

    Dataclass fields marked with ``metadata={"document": False}`` are left out.
    """
    if is_dataclass(value) and not isinstance(value, type):
        return {
            camel_case(f.name): to_document(getattr(value, f.name))
            for f in fields(value)
            if f.metadata.get("document", True)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_document(v) for v in value]
    if isinstance(value, dict):
        return {k: to_document(v) for k, v in value.items()}
    return value
