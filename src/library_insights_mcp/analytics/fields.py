"""Attribute access that works for records, ORM rows and raw mappings."""

from collections.abc import Mapping
from typing import Any


def read_field(record: Any, *names: str, default: Any = None) -> Any:
    """Return the first of ``names`` present on ``record``.

    Mappings are looked up by key, everything else by attribute, so the
    same report code runs against ``LoanRecord`` objects and JSON dicts
    using camelCase keys.
    """
    for name in names:
        if isinstance(record, Mapping):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return default


def read_id(record: Any, *names: str) -> str | None:
    """Read an identifier field as a string (``None`` when absent or blank)."""
    value = read_field(record, *names)
    if value is None:
        return None
    text = str(value).strip()
    return text or None
