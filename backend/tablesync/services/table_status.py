# Overview: Read-time normalization of a single table record into what a client should render.

"""
Table Status Normalizer

================================================================================
PURPOSE: Decide, from one denormalized table record, whether the table is
occupied and whether its order pointer can be trusted.
================================================================================

WHY THIS EXISTS:
- Table rows arrive from the realtime feed and from cached offline snapshots,
  each carrying an embedded copy of the current order that may be stale
- Older clients wrote 'open'/'closed' into the table status column
- A table that was legitimately freed must never come back as occupied
  because a cached snapshot still had the old order attached

RULES:
1. A table whose own status is 'available' is always rendered free
2. No order pointer -> free
3. Embedded order closed or cancelled -> free
4. Embedded order with an explicit empty item list that is not known to be
   open -> free (an open order with no lines yet is still a seated table)
5. Otherwise -> occupied, pointer and embedded order kept as-is

Pure function: no I/O, never raises, same input -> same output.
================================================================================
"""

from __future__ import annotations

from typing import Any, Mapping

from .consistency_schemas import (
    NormalizedTable,
    ORDER_CANCELLED,
    ORDER_CLOSED,
    ORDER_OPEN,
    TABLE_AVAILABLE,
    TABLE_OCCUPIED,
)

_LEGACY_TABLE_STATUS = {
    "open": TABLE_OCCUPIED,
    "closed": TABLE_AVAILABLE,
}
_NULL_REFERENCE_TEXT = {"null", "undefined"}


def normalize_table_status(status: Any) -> str:
    raw = str(status or "").strip().lower()
    if raw in _LEGACY_TABLE_STATUS:
        return _LEGACY_TABLE_STATUS[raw]
    if raw in (TABLE_OCCUPIED, TABLE_AVAILABLE):
        return raw
    return TABLE_AVAILABLE


def normalize_order_reference(value: Any) -> str | None:
    """Order id as text, or None for empty and serialized-null placeholders."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in _NULL_REFERENCE_TEXT:
        return None
    return text


def normalize_order_status(status: Any) -> str | None:
    if status is None:
        return None
    text = str(status).strip().lower()
    return text or None


def is_table_occupied(status: Any) -> bool:
    return normalize_table_status(status) == TABLE_OCCUPIED


def is_table_available(status: Any) -> bool:
    return normalize_table_status(status) == TABLE_AVAILABLE


def _field(record: Any, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key)
    return None


def normalize_table(table: Any) -> NormalizedTable:
    """
    Compute the display status of one table record.

    Args:
        table: Record-shaped mapping with status, current_order_id and an
            optional embedded `orders` mapping. Missing fields are tolerated.

    Returns:
        NormalizedTable. `current_order_id` is never set when `status` is
        'available'.
    """
    raw_status = normalize_table_status(_field(table, "status"))
    current_order_id = normalize_order_reference(_field(table, "current_order_id"))
    embedded = _field(table, "orders")
    order_status = normalize_order_status(_field(embedded, "status"))

    items = _field(embedded, "order_items")
    has_explicit_empty_items = isinstance(items, (list, tuple)) and len(items) == 0
    is_closed_order = order_status in (ORDER_CLOSED, ORDER_CANCELLED)
    has_current_order = current_order_id is not None

    should_clear_order = (
        raw_status == TABLE_AVAILABLE
        or not has_current_order
        or is_closed_order
        or (has_explicit_empty_items and order_status != ORDER_OPEN)
    )

    if should_clear_order:
        return NormalizedTable(status=TABLE_AVAILABLE, current_order_id=None, orders=None)
    return NormalizedTable(status=TABLE_OCCUPIED, current_order_id=current_order_id, orders=embedded)


def normalize_table_record(table: Any) -> Any:
    """Copy of the record with status, current_order_id and orders normalized."""
    if not isinstance(table, Mapping):
        return table
    normalized = normalize_table(table)
    return {**table, **normalized.to_dict()}
