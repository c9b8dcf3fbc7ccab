from __future__ import annotations

import uuid

from ..extensions import db
from tablesync.time_utils import to_utc_z

class DiningTable(db.Model):
    """
    Physical table that is either free or occupied by one order.

    DENORMALIZED: current_order_id mirrors Order.table_id in the other
    direction. Neither side is a database foreign key; both are written
    independently by different actors and may disagree. The consistency
    reconciler restores agreement between them.

    LEGACY: status may still hold 'open'/'closed' on rows written by older
    clients. Read paths normalize it (see services/table_status.py).
    """
    __tablename__ = "dining_tables"
    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_dining_tables_business_name"),
        db.Index("ix_dining_tables_business_status", "business_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_id = db.Column(db.String(36), db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="available")  # available, occupied
    current_order_id = db.Column(db.String(36), nullable=True, index=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("Business", backref=db.backref("tables", lazy=True))
    current_order = db.relationship(
        "Order",
        primaryjoin="foreign(DiningTable.current_order_id) == Order.id",
        viewonly=True,
        uselist=False,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<DiningTable id={self.id} name={self.name!r} status={self.status}>"

    def to_dict(self, include_order: bool = False) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "status": self.status,
            "current_order_id": self.current_order_id,
            "opened_at": to_utc_z(self.opened_at) if self.opened_at else None,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_order:
            # Embedded join, same shape the realtime feed delivers
            order = self.current_order
            data["orders"] = order.to_dict(include_items=True) if order else None
        return data
