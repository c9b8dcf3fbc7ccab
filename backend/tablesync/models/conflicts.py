from __future__ import annotations

from ..extensions import db
from tablesync.time_utils import to_utc_z

class ConsistencyConflict(db.Model):
    """
    Append-only log of table/order consistency problems.

    Written by the reconciler when a fix cannot be applied (target changed
    since the snapshot, row gone) and when high-severity findings are
    detected. Operators review it from the API; old rows are pruned by the
    cleanup-conflicts CLI command.
    """
    __tablename__ = "consistency_conflicts"
    __table_args__ = (
        db.Index("ix_consistency_conflicts_business_occurred", "business_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.String(36), nullable=True, index=True)

    mutation_type = db.Column(db.String(64), nullable=False, index=True)  # table.consistency.detected, table.consistency.fix_failed
    mutation_id = db.Column(db.String(128), nullable=True)
    reason = db.Column(db.Text, nullable=False)
    details = db.Column(db.JSON, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "mutation_type": self.mutation_type,
            "mutation_id": self.mutation_id,
            "reason": self.reason,
            "details": self.details,
            "occurred_at": to_utc_z(self.occurred_at),
        }
