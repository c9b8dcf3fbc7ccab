# Overview: Service-layer reconciliation of tables and orders; loads snapshots, applies fixes, logs conflicts.

"""
Table/Order Consistency Service

WHY: The detector is pure. This module is the caller the detector expects:
it reads a point-in-time snapshot of one business, applies the proposed
fixes back to the database and records whatever could not be repaired.

GUARDED WRITES:
Every fix is applied as a single UPDATE scoped by id + business_id and, when
the snapshot knows it, the row's version_id. A row that another device wrote
after the snapshot is left alone and reported as stale_record; the next pass
sees the new state and decides again.

USAGE:
    from tablesync.services.consistency_service import reconcile_table_order_consistency

    result = reconcile_table_order_consistency(business_id, source="dashboard")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ConsistencyConflict, DiningTable, Order
from tablesync.time_utils import parse_iso_datetime, utcnow
from .consistency_detect import detect_table_order_inconsistencies
from .consistency_schemas import (
    FixOperation,
    FIX_UPDATE_ORDER,
    FIX_UPDATE_TABLE,
    ORDER_OPEN,
    normalize_text,
)

MUTATION_DETECTED = "table.consistency.detected"
MUTATION_FIX_FAILED = "table.consistency.fix_failed"

# Fields a fix may write, per target type
_WRITABLE_FIELDS = {
    FIX_UPDATE_TABLE: {"status", "current_order_id"},
    FIX_UPDATE_ORDER: {"status", "closed_at", "table_id"},
}

# How many high findings are copied into one conflict row
_MAX_LOGGED_FINDINGS = 10


@dataclass
class ConsistencySnapshot:
    tables: list[dict] = field(default_factory=list)
    open_orders: list[dict] = field(default_factory=list)
    # ("table" | "order", id) -> version_id at read time
    versions: dict[tuple[str, str], int] = field(default_factory=dict)


@dataclass
class FixResult:
    ok: bool
    reason: str


@dataclass
class ReconcileResult:
    ok: bool
    reason: str
    findings: list[dict] = field(default_factory=list)
    attempted_fixes: int = 0
    applied_fixes: int = 0
    failed_fixes: int = 0
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "reason": self.reason,
            "findings": self.findings,
            "attempted_fixes": self.attempted_fixes,
            "applied_fixes": self.applied_fixes,
            "failed_fixes": self.failed_fixes,
            "dry_run": self.dry_run,
        }


def _version_key(fix: FixOperation) -> tuple[str, str | None]:
    if fix.type == FIX_UPDATE_TABLE:
        return ("table", fix.target.table_id)
    return ("order", fix.target.order_id)


def load_consistency_snapshot(business_id: str) -> ConsistencySnapshot:
    """
    Read every table of the business (current order embedded, with items)
    and every open order of the business.
    """
    tables = (
        db.session.query(DiningTable)
        .filter(DiningTable.business_id == business_id)
        .order_by(DiningTable.name)
        .all()
    )
    open_orders = (
        db.session.query(Order)
        .filter(
            Order.business_id == business_id,
            func.lower(Order.status) == ORDER_OPEN,
        )
        .order_by(Order.opened_at, Order.id)
        .all()
    )

    snapshot = ConsistencySnapshot()
    for table in tables:
        snapshot.tables.append(table.to_dict(include_order=True))
        snapshot.versions[("table", table.id)] = table.version_id
    for order in open_orders:
        snapshot.open_orders.append(order.to_dict())
        snapshot.versions[("order", order.id)] = order.version_id
    return snapshot


def _payload_values(fix: FixOperation) -> dict | None:
    allowed = _WRITABLE_FIELDS[fix.type]
    values = {}
    for key, value in fix.payload.items():
        if key not in allowed:
            return None
        if key == "closed_at" and isinstance(value, str):
            value = parse_iso_datetime(value)
        values[key] = value
    return values


def apply_fix_operation(fix: FixOperation | None, *, expected_version: int | None = None) -> FixResult:
    """
    Apply one fix as a guarded partial update and commit it.

    Args:
        fix: Operation produced by the detector
        expected_version: version_id the row must still have; None skips the guard

    Returns:
        FixResult. Expected failures (missing target, stale row) are reported,
        not raised.
    """
    if fix is None:
        return FixResult(False, "missing_operation")

    if fix.type == FIX_UPDATE_TABLE:
        model, record_id = DiningTable, normalize_text(fix.target.table_id)
    elif fix.type == FIX_UPDATE_ORDER:
        model, record_id = Order, normalize_text(fix.target.order_id)
    else:
        return FixResult(False, "unsupported_operation")

    business_id = normalize_text(fix.target.business_id)
    if not record_id or not business_id:
        return FixResult(False, "missing_target")

    values = _payload_values(fix)
    if values is None:
        return FixResult(False, "unsupported_field")

    query = db.session.query(model).filter(model.id == record_id, model.business_id == business_id)
    if expected_version is not None:
        query = query.filter(model.version_id == expected_version)

    values["version_id"] = model.version_id + 1
    values["updated_at"] = utcnow()
    updated = query.update(values, synchronize_session=False)
    if updated == 0:
        db.session.rollback()
        return FixResult(False, "stale_record")

    db.session.commit()
    return FixResult(True, "applied")


def append_conflict(
    *,
    business_id: str | None,
    mutation_type: str,
    reason: str,
    mutation_id: str | None = None,
    details: dict | None = None,
) -> ConsistencyConflict | None:
    """
    Record a consistency problem in the conflict log.

    A failure to write the log entry is logged and swallowed: losing a
    diagnostic row must not abort the reconciliation pass.
    """
    try:
        conflict = ConsistencyConflict(
            business_id=business_id,
            mutation_type=mutation_type,
            mutation_id=mutation_id,
            reason=reason,
            details=details,
        )
        db.session.add(conflict)
        db.session.commit()
        return conflict
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "[table-consistency] could not write conflict log entry: %s", exc
        )
        return None


def reconcile_table_order_consistency(
    business_id: str | None,
    *,
    dry_run: bool = False,
    max_fixes: int | None = None,
    source: str = "manual",
) -> ReconcileResult:
    """
    Detect and repair table/order divergence for one business.

    Args:
        business_id: Tenant to reconcile
        dry_run: Detect only; write nothing (conflict log included)
        max_fixes: Upper bound on fixes applied this pass (default RECONCILE_MAX_FIXES)
        source: Free-form caller tag (dashboard, cli, api) kept in the conflict log

    Returns:
        ReconcileResult with findings as dicts and fix counters
    """
    normalized_business_id = normalize_text(business_id)
    if not normalized_business_id:
        return ReconcileResult(ok=False, reason="missing_business_id", dry_run=dry_run)

    if max_fixes is None:
        max_fixes = current_app.config.get("RECONCILE_MAX_FIXES", 25)
    max_fixes = max(0, int(max_fixes))

    snapshot = load_consistency_snapshot(normalized_business_id)
    detection = detect_table_order_inconsistencies(snapshot.tables, snapshot.open_orders)
    findings = [f.to_dict() for f in detection.findings]
    if not findings:
        return ReconcileResult(ok=True, reason="clean", dry_run=dry_run)

    mutation_id = f"table-consistency:{normalized_business_id}:{int(time.time() * 1000)}"
    limited_fixes = detection.fixes[:max_fixes]
    applied = 0
    failed = 0

    if not dry_run:
        versions = dict(snapshot.versions)
        for fix in limited_fixes:
            key = _version_key(fix)
            result = apply_fix_operation(fix, expected_version=versions.get(key))
            if result.ok:
                applied += 1
                # Our own write moved the version; later fixes on the same row build on it
                if key in versions:
                    versions[key] += 1
                continue
            failed += 1
            append_conflict(
                business_id=normalized_business_id,
                mutation_type=MUTATION_FIX_FAILED,
                mutation_id=mutation_id,
                reason=f"Could not apply consistency fix: {result.reason}",
                details=fix.to_dict(),
            )

        high_findings = detection.high_severity_findings()
        if high_findings:
            append_conflict(
                business_id=normalized_business_id,
                mutation_type=MUTATION_DETECTED,
                mutation_id=mutation_id,
                reason=(
                    f"Detected {len(high_findings)} high-severity table/order "
                    f"inconsistencies ({source})."
                ),
                details={
                    "source": source,
                    "findings": [f.to_dict() for f in high_findings[:_MAX_LOGGED_FINDINGS]],
                    "total_findings": len(findings),
                    "attempted_fixes": len(limited_fixes),
                    "applied_fixes": applied,
                },
            )

    current_app.logger.warning(
        "[table-consistency] inconsistencies detected business=%s source=%s "
        "findings=%s attempted=%s applied=%s failed=%s dry_run=%s",
        normalized_business_id, source, len(findings), len(limited_fixes),
        applied, failed, dry_run,
    )

    return ReconcileResult(
        ok=True,
        reason="reconciled",
        findings=findings,
        attempted_fixes=len(limited_fixes),
        applied_fixes=applied,
        failed_fixes=failed,
        dry_run=dry_run,
    )


def list_conflicts(business_id: str, *, limit: int = 50) -> list[ConsistencyConflict]:
    return (
        db.session.query(ConsistencyConflict)
        .filter(ConsistencyConflict.business_id == business_id)
        .order_by(ConsistencyConflict.occurred_at.desc(), ConsistencyConflict.id.desc())
        .limit(limit)
        .all()
    )


def cleanup_conflicts(*, retention_days: int = 90) -> int:
    """Delete conflict log rows older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(ConsistencyConflict).filter(
        ConsistencyConflict.occurred_at < cutoff
    ).delete()
    db.session.commit()
    return deleted
