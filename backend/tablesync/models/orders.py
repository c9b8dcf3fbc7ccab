from __future__ import annotations

import uuid

from ..extensions import db
from tablesync.time_utils import to_utc_z

class Order(db.Model):
    """
    Tab opened against a table.

    STATUS: open -> closed | cancelled. Only open orders take part in the
    table/order invariant; closed and cancelled are terminal.

    table_id is a plain column, not a foreign key: an open order that points
    at a deleted table must still be loadable so it can be cancelled.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_business_status", "business_id", "status"),
        db.Index("ix_orders_table_status", "table_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_id = db.Column(db.String(36), db.ForeignKey("businesses.id"), nullable=False, index=True)
    table_id = db.Column(db.String(36), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="open")  # open, closed, cancelled
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=True, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("Business", backref=db.backref("orders", lazy=True))
    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} table_id={self.table_id} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "table_id": self.table_id,
            "status": self.status,
            "total_cents": self.total_cents,
            "opened_at": to_utc_z(self.opened_at) if self.opened_at else None,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["order_items"] = [item.to_dict() for item in self.items]
        return data

class OrderItem(db.Model):
    """Individual line on an order (amounts in cents)."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
