# Overview: Typed records shared by the status normalizer and the consistency detector.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

TABLE_AVAILABLE = "available"
TABLE_OCCUPIED = "occupied"

ORDER_OPEN = "open"
ORDER_CLOSED = "closed"
ORDER_CANCELLED = "cancelled"

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"

FIX_UPDATE_TABLE = "update_table"
FIX_UPDATE_ORDER = "update_order"


def normalize_text(value: Any) -> str | None:
    """Trimmed string form of value, or None when that is empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def normalize_status(value: Any) -> str:
    """Lowercased, trimmed status; empty string when absent."""
    if value is None:
        return ""
    return str(value).strip().lower()


def _get(record: Any, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


@dataclass(frozen=True)
class OrderRecord:
    """Snapshot of an order as read from the store."""
    id: str | None
    business_id: str | None = None
    table_id: str | None = None
    status: str = ""
    opened_at: Any = None
    updated_at: Any = None
    order_items: list | None = None

    @classmethod
    def coerce(cls, record: Any) -> "OrderRecord":
        if isinstance(record, cls):
            return record
        items = _get(record, "order_items")
        return cls(
            id=normalize_text(_get(record, "id")),
            business_id=normalize_text(_get(record, "business_id")),
            table_id=normalize_text(_get(record, "table_id")),
            status=normalize_status(_get(record, "status")),
            opened_at=_get(record, "opened_at"),
            updated_at=_get(record, "updated_at"),
            order_items=list(items) if isinstance(items, (list, tuple)) else None,
        )

    @property
    def is_open(self) -> bool:
        return self.status == ORDER_OPEN


@dataclass(frozen=True)
class TableRecord:
    """
    Snapshot of a table as read from the store.

    `orders` is the embedded join of the current order when the read
    included it; it can be stale or missing entirely.
    """
    id: str | None
    business_id: str | None = None
    status: str = ""
    current_order_id: str | None = None
    orders: OrderRecord | None = None

    @classmethod
    def coerce(cls, record: Any) -> "TableRecord":
        if isinstance(record, cls):
            return record
        embedded = _get(record, "orders")
        return cls(
            id=normalize_text(_get(record, "id")),
            business_id=normalize_text(_get(record, "business_id")),
            status=normalize_status(_get(record, "status")),
            current_order_id=normalize_text(_get(record, "current_order_id")),
            orders=OrderRecord.coerce(embedded) if embedded else None,
        )


@dataclass(frozen=True)
class NormalizedTable:
    """What a client should render for a single table."""
    status: str
    current_order_id: str | None
    orders: Any = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "current_order_id": self.current_order_id,
            "orders": self.orders,
        }


@dataclass
class Finding:
    """Diagnostic entry for one invariant violation. Not consumed by fix application."""
    severity: str
    code: str
    table_id: str | None = None
    order_id: str | None = None
    current_order_id: str | None = None
    table_status: str | None = None
    desired_status: str | None = None
    canonical_order_id: str | None = None
    open_order_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {"severity": self.severity, "code": self.code}
        for key in (
            "table_id",
            "order_id",
            "current_order_id",
            "table_status",
            "desired_status",
            "canonical_order_id",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.open_order_ids:
            data["open_order_ids"] = list(self.open_order_ids)
        return data


@dataclass(frozen=True)
class FixTarget:
    business_id: str | None
    table_id: str | None = None
    order_id: str | None = None

    def to_dict(self) -> dict:
        data = {"business_id": self.business_id}
        if self.table_id is not None:
            data["table_id"] = self.table_id
        if self.order_id is not None:
            data["order_id"] = self.order_id
        return data


@dataclass(frozen=True)
class FixOperation:
    """A partial-field update against one table or order."""
    type: str
    target: FixTarget
    payload: dict

    def identity(self) -> tuple:
        """Structural key used to collapse duplicate operations."""
        return (
            self.type,
            (self.target.business_id, self.target.table_id, self.target.order_id),
            tuple(sorted(self.payload.items())),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "target": self.target.to_dict(),
            "payload": dict(self.payload),
        }


@dataclass
class DetectionResult:
    findings: list[Finding] = field(default_factory=list)
    fixes: list[FixOperation] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.findings and not self.fixes

    def high_severity_findings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == SEVERITY_HIGH]

    def to_dict(self) -> dict:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "fixes": [f.to_dict() for f in self.fixes],
        }
