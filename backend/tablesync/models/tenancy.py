from __future__ import annotations

import uuid

from ..extensions import db
from tablesync.time_utils import to_utc_z

class Business(db.Model):
    """
    Multi-tenant root: every restaurant is a Business.

    WHY: Tables, orders and conflict log rows are all scoped by business_id.
    Reconciliation runs one business at a time and never crosses tenants.
    """
    __tablename__ = "businesses"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
