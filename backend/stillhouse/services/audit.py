"""
Stillhouse Ledger - Edit Auditing

Field-by-field diff of a container edit and the ledger entry type it
maps to. Pure functions; the engine decides whether to write.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, NamedTuple

from stillhouse.models.container import Container
from stillhouse.models.operations import TRACKED_FIELDS
from stillhouse.models.transaction import TransactionType


class FieldChange(NamedTuple):
    field: str
    old: Any
    new: Any


def format_value(value: Any) -> str:
    """Render a field value for change notes."""
    if value is None:
        return "none"
    if isinstance(value, Decimal):
        return f"{value.normalize():f}"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def diff_tracked_fields(old: Container, requested: dict[str, Any]) -> list[FieldChange]:
    """Tracked fields present in requested whose value actually differs."""
    changes = []
    for field in TRACKED_FIELDS:
        if field not in requested:
            continue
        before = getattr(old, field)
        after = requested[field]
        if before != after:
            changes.append(FieldChange(field, before, after))
    return changes


def build_change_notes(changes: list[FieldChange]) -> str:
    """e.g. "proof: 90 -> 95, name: B1 -> B2" """
    return ", ".join(
        f"{c.field}: {format_value(c.old)} -> {format_value(c.new)}" for c in changes
    )


def edit_transaction_type(was_empty: bool, is_empty: bool) -> TransactionType:
    """
    Ledger entry type for an edit, from the container's emptiness
    before and after.

        empty  -> filled   REFILL_CONTAINER
        filled -> empty    EDIT_EMPTY_FROM_FILLED
        filled -> filled   EDIT_FILL_DATA_CORRECTION
        empty  -> empty    EDIT_EMPTY_DATA_CORRECTION
    """
    if was_empty and not is_empty:
        return TransactionType.REFILL_CONTAINER
    if not was_empty and is_empty:
        return TransactionType.EDIT_EMPTY_FROM_FILLED
    if is_empty:
        return TransactionType.EDIT_EMPTY_DATA_CORRECTION
    return TransactionType.EDIT_FILL_DATA_CORRECTION
