"""
Table Service - open/close tables and read them the way clients render them

WHY: Opening a table creates an order and points the table at it; closing
does the reverse. These are the two writes that race when two staff devices
act on the same table, which is what the consistency reconciler repairs
after the fact.
"""

from __future__ import annotations

from ..extensions import db
from ..models import DiningTable, Order
from tablesync.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .consistency_schemas import (
    ORDER_CANCELLED,
    ORDER_CLOSED,
    ORDER_OPEN,
    TABLE_AVAILABLE,
    TABLE_OCCUPIED,
)
from .table_status import normalize_order_reference, normalize_table_record


class TableError(Exception):
    """Raised for table operation errors."""
    def __init__(self, message: str, details: dict | None = None, *, not_found: bool = False):
        super().__init__(message)
        self.details = details or {}
        self.not_found = not_found


def _load_table_for_update(business_id: str, table_id: str) -> DiningTable:
    table = lock_for_update(
        db.session.query(DiningTable).filter_by(id=table_id, business_id=business_id)
    ).first()
    if not table:
        raise TableError("Table not found", {"table_id": table_id}, not_found=True)
    return table


def create_table(business_id: str, name: str) -> DiningTable:
    """Create a free table."""
    name = (name or "").strip()
    if not name:
        raise TableError("name required")

    existing = db.session.query(DiningTable).filter_by(business_id=business_id, name=name).first()
    if existing:
        raise TableError("Table name already in use", {"name": name})

    table = DiningTable(business_id=business_id, name=name, status=TABLE_AVAILABLE)
    db.session.add(table)
    db.session.commit()
    return table


def open_table(business_id: str, table_id: str) -> Order:
    """
    Seat a table: create an open order and point the table at it.

    Idempotent while the table already points at an open order; that order
    is returned instead of creating a second one.
    """
    def _op():
        table = _load_table_for_update(business_id, table_id)

        current_id = normalize_order_reference(table.current_order_id)
        if current_id:
            current = db.session.query(Order).filter_by(id=current_id, business_id=business_id).first()
            if current and current.status == ORDER_OPEN:
                return current

        now = utcnow()
        order = Order(
            business_id=business_id,
            table_id=table.id,
            status=ORDER_OPEN,
            opened_at=now,
        )
        db.session.add(order)
        db.session.flush()

        table.current_order_id = order.id
        table.status = TABLE_OCCUPIED
        table.opened_at = now
        table.closed_at = None

        db.session.commit()
        return order

    return run_with_retry(_op)


def close_table(business_id: str, table_id: str, *, cancel: bool = False) -> DiningTable:
    """
    Free a table and close (or cancel) the order it points at.

    A table that is already free is returned unchanged.
    """
    def _op():
        table = _load_table_for_update(business_id, table_id)

        current_id = normalize_order_reference(table.current_order_id)
        if not current_id and table.status == TABLE_AVAILABLE:
            return table

        now = utcnow()
        if current_id:
            order = lock_for_update(
                db.session.query(Order).filter_by(id=current_id, business_id=business_id)
            ).first()
            if order and order.status == ORDER_OPEN:
                order.status = ORDER_CANCELLED if cancel else ORDER_CLOSED
                order.closed_at = now

        table.current_order_id = None
        table.status = TABLE_AVAILABLE
        table.closed_at = now

        db.session.commit()
        return table

    return run_with_retry(_op)


def get_table(business_id: str, table_id: str) -> dict:
    """Table as a client should render it (current order embedded, normalized)."""
    table = db.session.query(DiningTable).filter_by(id=table_id, business_id=business_id).first()
    if not table:
        raise TableError("Table not found", {"table_id": table_id}, not_found=True)
    return normalize_table_record(table.to_dict(include_order=True))


def list_tables(business_id: str) -> list[dict]:
    tables = (
        db.session.query(DiningTable)
        .filter_by(business_id=business_id)
        .order_by(DiningTable.name)
        .all()
    )
    return [normalize_table_record(t.to_dict(include_order=True)) for t in tables]
