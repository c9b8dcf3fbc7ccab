# Overview: Pure table/order consistency detector; finds invariant violations and proposes fixes.

"""
Table/Order Consistency Detector

================================================================================
PURPOSE: Find every disagreement between table pointers and open orders in one
snapshot and propose the field updates that restore agreement
================================================================================

INVARIANT:
- A table pointing at order X requires X to be open
- Every open order on table T requires T to point at it
- At most one open order per table

SCANS (all read the same snapshot):
    A. per table:  stored status vs. pointer, pointer vs. open orders
    B. per order:  open order vs. its table's pointer
    C. per table:  more than one open order -> keep canonical, cancel the rest

Canonical order for a contested table (total order, so concurrent passes
always agree on the winner):
    1. the order the table already points at
    2. earliest opened_at (updated_at when opened_at is unusable)
    3. smallest id

FIX ORDERING:
Each table gets at most one pointer-setting fix: B adopts only on tables with
a single open order and C sets the pointer of contested tables. Fixes are
returned in emission order (A, B, C) with exact duplicates removed;
a duplicate keeps the position of its last emission. Callers apply them in
that order and a later fix on the same table supersedes an earlier one
(e.g. A clears a stale pointer, then B or C sets the right one).

Pure function: no I/O, never raises on record shape. Records without an id
are skipped.
================================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from tablesync.time_utils import parse_timestamp, to_utc_z, utcnow
from .consistency_schemas import (
    DetectionResult,
    Finding,
    FixOperation,
    FixTarget,
    FIX_UPDATE_ORDER,
    FIX_UPDATE_TABLE,
    ORDER_CANCELLED,
    OrderRecord,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    TABLE_AVAILABLE,
    TABLE_OCCUPIED,
    TableRecord,
)

# Unusable timestamps sort after every real one
_SENTINEL_MAX_TS = datetime.max


def desired_table_status(table: TableRecord) -> str:
    return TABLE_OCCUPIED if table.current_order_id else TABLE_AVAILABLE


def opened_sort_key(order: OrderRecord) -> tuple:
    ts = parse_timestamp(order.opened_at) or parse_timestamp(order.updated_at)
    return (ts or _SENTINEL_MAX_TS, order.id or "")


def pick_canonical_open_order(
    table: TableRecord | None,
    candidates: Iterable[OrderRecord],
) -> OrderRecord | None:
    """
    Choose the one open order that keeps a contested table.

    The table's own pointer wins when it names one of the candidates;
    otherwise the earliest-opened candidate wins, ties broken by id.
    """
    ordered = sorted((o for o in candidates if o.id), key=opened_sort_key)
    if not ordered:
        return None

    pointer = table.current_order_id if table else None
    if pointer:
        for order in ordered:
            if order.id == pointer:
                return order
    return ordered[0]


class _FixCollector:
    """
    Keeps one copy of each fix, positioned at its latest emission.

    A repeated fix moves to the end so it still supersedes anything emitted
    for the same row in between.
    """

    def __init__(self):
        self._by_key: dict[tuple, FixOperation] = {}

    def add(self, operation: FixOperation) -> None:
        key = operation.identity()
        self._by_key.pop(key, None)
        self._by_key[key] = operation

    @property
    def fixes(self) -> list[FixOperation]:
        return list(self._by_key.values())


def _table_fix(table_id: str, business_id: str | None, **payload) -> FixOperation:
    return FixOperation(
        type=FIX_UPDATE_TABLE,
        target=FixTarget(business_id=business_id, table_id=table_id),
        payload=payload,
    )


def _cancel_order_fix(order: OrderRecord, closed_at: str) -> FixOperation:
    return FixOperation(
        type=FIX_UPDATE_ORDER,
        target=FixTarget(business_id=order.business_id, order_id=order.id),
        payload={"status": ORDER_CANCELLED, "closed_at": closed_at, "table_id": None},
    )


def _is_contested(orders: list[OrderRecord]) -> bool:
    return len({o.id for o in orders}) > 1


def _pointer_problem(table: TableRecord, open_order_by_id: dict[str, OrderRecord]) -> str | None:
    """
    Finding code for a pointer that cannot be trusted, or None.

    The open-orders list is authoritative when it knows the order: the order
    must not sit on a different table. When it does not know the order, the
    embedded join alone can still vouch for it.
    """
    if not table.current_order_id:
        return None
    listed = open_order_by_id.get(table.current_order_id)
    if listed is not None:
        if listed.table_id and listed.table_id != table.id:
            return "table_points_to_foreign_order"
        return None
    joined_is_open = table.orders is not None and table.orders.is_open
    if joined_is_open:
        return None
    return "table_points_to_closed_or_missing_order"


def detect_table_order_inconsistencies(
    tables: Iterable[Any] | None = None,
    open_orders: Iterable[Any] | None = None,
    *,
    now: datetime | None = None,
) -> DetectionResult:
    """
    Run the three consistency scans over one snapshot.

    Args:
        tables: Table records (mappings or TableRecord), optionally with the
            current order embedded under `orders`.
        open_orders: Order records the caller believes are open. Each one is
            re-checked for status 'open'.
        now: Timestamp written as closed_at on cancelled orders. Defaults to
            the current UTC time; fixed once per pass.

    Returns:
        DetectionResult with findings (diagnostics) and fixes (ordered,
        deduplicated update operations).
    """
    closed_at = to_utc_z(now or utcnow())

    table_records = [TableRecord.coerce(t) for t in (tables or []) if t is not None]
    order_records = [OrderRecord.coerce(o) for o in (open_orders or []) if o is not None]

    table_by_id: dict[str, TableRecord] = {}
    for table in table_records:
        if table.id:
            table_by_id[table.id] = table

    open_order_by_id: dict[str, OrderRecord] = {}
    open_orders_by_table_id: dict[str, list[OrderRecord]] = {}
    for order in order_records:
        if not order.id or not order.is_open:
            continue
        open_order_by_id[order.id] = order
        if order.table_id:
            open_orders_by_table_id.setdefault(order.table_id, []).append(order)

    result = DetectionResult()
    collector = _FixCollector()

    # Scan A: each table against its own pointer
    for table in table_records:
        if not table.id:
            continue

        table_status = table.status or TABLE_AVAILABLE
        should_status = desired_table_status(table)
        if table_status != should_status:
            result.findings.append(Finding(
                severity=SEVERITY_LOW,
                code="table_status_mismatch",
                table_id=table.id,
                table_status=table_status,
                desired_status=should_status,
            ))
            collector.add(_table_fix(table.id, table.business_id, status=should_status))

        problem = _pointer_problem(table, open_order_by_id)
        if problem:
            result.findings.append(Finding(
                severity=SEVERITY_HIGH,
                code=problem,
                table_id=table.id,
                current_order_id=table.current_order_id,
            ))
            collector.add(_table_fix(
                table.id,
                table.business_id,
                current_order_id=None,
                status=TABLE_AVAILABLE,
            ))

    # Scan B: each open order against the table it claims
    for order in order_records:
        if not order.id or not order.table_id or not order.is_open:
            continue

        table = table_by_id.get(order.table_id)
        if table is None:
            result.findings.append(Finding(
                severity=SEVERITY_MEDIUM,
                code="open_order_points_to_missing_table",
                order_id=order.id,
                table_id=order.table_id,
            ))
            collector.add(_cancel_order_fix(order, closed_at))
            continue

        if _is_contested(open_orders_by_table_id[table.id]):
            # Scan C owns the pointer of a contested table
            continue

        if not table.current_order_id or _pointer_problem(table, open_order_by_id):
            result.findings.append(Finding(
                severity=SEVERITY_HIGH,
                code="open_order_without_table_pointer",
                order_id=order.id,
                table_id=table.id,
            ))
            collector.add(_table_fix(
                table.id,
                table.business_id,
                current_order_id=order.id,
                status=TABLE_OCCUPIED,
            ))

    # Scan C: tables contested by several open orders
    for table_id, contenders in open_orders_by_table_id.items():
        if not _is_contested(contenders):
            continue
        table = table_by_id.get(table_id)
        if table is None:
            # Scan B already cancels every order on a missing table
            continue

        canonical = pick_canonical_open_order(table, contenders)
        if canonical is None:
            continue

        result.findings.append(Finding(
            severity=SEVERITY_HIGH,
            code="order_table_pointer_conflict",
            table_id=table_id,
            canonical_order_id=canonical.id,
            open_order_ids=[o.id for o in contenders if o.id],
        ))
        collector.add(_table_fix(
            table_id,
            table.business_id or canonical.business_id,
            current_order_id=canonical.id,
            status=TABLE_OCCUPIED,
        ))
        for order in contenders:
            if order.id and order.id != canonical.id:
                collector.add(_cancel_order_fix(order, closed_at))

    result.fixes = collector.fixes
    return result
