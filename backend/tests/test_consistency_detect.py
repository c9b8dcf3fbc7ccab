# Overview: Pytest coverage for the table/order consistency detector.

"""
Consistency Detector Tests

Scenarios mirror what happens on the floor:
- two devices seat the same table at nearly the same moment
- a table is left pointing at a closed or deleted order
- an order is opened but the table row never learned about it
- an order outlives its table

Plus the convergence property: applying the fixes once and detecting again
finds nothing, for any snapshot read consistently from one store.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from tablesync.services.consistency_detect import (
    detect_table_order_inconsistencies,
    pick_canonical_open_order,
)
from tablesync.services.consistency_schemas import OrderRecord, TableRecord

NOW = datetime(2026, 10, 18, 12, 0, 0)


def _codes(result):
    return [f.code for f in result.findings]


def _fix_dicts(result):
    return [f.to_dict() for f in result.fixes]


class TestSpecScenarios:

    def test_multiple_open_orders_keep_table_pointer(self):
        """Pointer precedence beats recency."""
        now = NOW.isoformat() + "Z"
        earlier = (NOW - timedelta(minutes=1)).isoformat() + "Z"

        result = detect_table_order_inconsistencies(
            tables=[{
                "id": "table-1",
                "business_id": "biz-1",
                "current_order_id": "order-b",
                "status": "occupied",
                "orders": {"id": "order-b", "status": "open"},
            }],
            open_orders=[
                {"id": "order-a", "business_id": "biz-1", "table_id": "table-1", "status": "open", "opened_at": earlier},
                {"id": "order-b", "business_id": "biz-1", "table_id": "table-1", "status": "open", "opened_at": now},
            ],
            now=NOW,
        )

        assert "order_table_pointer_conflict" in _codes(result)
        conflict = next(f for f in result.findings if f.code == "order_table_pointer_conflict")
        assert conflict.severity == "high"
        assert conflict.canonical_order_id == "order-b"
        assert sorted(conflict.open_order_ids) == ["order-a", "order-b"]

        fixes = _fix_dicts(result)
        assert {
            "type": "update_order",
            "target": {"business_id": "biz-1", "order_id": "order-a"},
            "payload": {"status": "cancelled", "closed_at": "2026-10-18T12:00:00Z", "table_id": None},
        } in fixes
        assert {
            "type": "update_table",
            "target": {"business_id": "biz-1", "table_id": "table-1"},
            "payload": {"current_order_id": "order-b", "status": "occupied"},
        } in fixes
        assert not any(f["target"].get("order_id") == "order-b" for f in fixes)

    def test_pointer_to_closed_order_is_cleared(self):
        result = detect_table_order_inconsistencies(
            tables=[{
                "id": "table-2",
                "business_id": "biz-1",
                "current_order_id": "order-z",
                "status": "occupied",
                "orders": {"id": "order-z", "status": "closed"},
            }],
            open_orders=[],
        )

        assert _codes(result) == ["table_points_to_closed_or_missing_order"]
        assert result.findings[0].severity == "high"
        assert _fix_dicts(result) == [{
            "type": "update_table",
            "target": {"business_id": "biz-1", "table_id": "table-2"},
            "payload": {"current_order_id": None, "status": "available"},
        }]

    def test_orphaned_open_order_is_adopted(self):
        result = detect_table_order_inconsistencies(
            tables=[{"id": "table-3", "business_id": "biz-1", "current_order_id": None, "status": "available"}],
            open_orders=[{"id": "order-c", "business_id": "biz-1", "table_id": "table-3", "status": "open"}],
        )

        assert _codes(result) == ["open_order_without_table_pointer"]
        assert _fix_dicts(result) == [{
            "type": "update_table",
            "target": {"business_id": "biz-1", "table_id": "table-3"},
            "payload": {"current_order_id": "order-c", "status": "occupied"},
        }]


class TestScanA:

    def test_status_mismatch_is_low_severity(self):
        result = detect_table_order_inconsistencies(
            tables=[{"id": "t", "business_id": "b", "status": "occupied", "current_order_id": ""}],
            open_orders=[],
        )
        assert len(result.findings) == 1
        finding = result.findings[0]
        assert (finding.code, finding.severity) == ("table_status_mismatch", "low")
        assert finding.table_status == "occupied"
        assert finding.desired_status == "available"
        assert _fix_dicts(result) == [{
            "type": "update_table",
            "target": {"business_id": "b", "table_id": "t"},
            "payload": {"status": "available"},
        }]

    def test_legacy_status_is_rewritten(self):
        result = detect_table_order_inconsistencies(
            tables=[{
                "id": "t", "business_id": "b", "status": "OPEN", "current_order_id": "o",
                "orders": {"id": "o", "status": "open"},
            }],
            open_orders=[{"id": "o", "business_id": "b", "table_id": "t", "status": "open"}],
        )
        assert _codes(result) == ["table_status_mismatch"]
        assert result.fixes[0].payload == {"status": "occupied"}

    def test_embedded_open_order_alone_vouches_for_pointer(self):
        result = detect_table_order_inconsistencies(
            tables=[{
                "id": "t", "business_id": "b", "status": "occupied", "current_order_id": "o",
                "orders": {"id": "o", "status": "open"},
            }],
            open_orders=[],
        )
        assert result.is_clean

    def test_open_orders_list_alone_vouches_for_pointer(self):
        result = detect_table_order_inconsistencies(
            tables=[{
                "id": "t", "business_id": "b", "status": "occupied", "current_order_id": "o",
                "orders": {"id": "o", "status": "closed"},
            }],
            open_orders=[{"id": "o", "business_id": "b", "table_id": "t", "status": "open"}],
        )
        assert result.is_clean

    def test_pointer_to_order_seated_elsewhere_is_cleared(self):
        result = detect_table_order_inconsistencies(
            tables=[
                {"id": "t1", "business_id": "b", "status": "occupied", "current_order_id": "o"},
                {"id": "t2", "business_id": "b", "status": "occupied", "current_order_id": "o"},
            ],
            open_orders=[{"id": "o", "business_id": "b", "table_id": "t2", "status": "open"}],
        )
        assert _codes(result) == ["table_points_to_foreign_order"]
        assert result.findings[0].table_id == "t1"
        assert _fix_dicts(result) == [{
            "type": "update_table",
            "target": {"business_id": "b", "table_id": "t1"},
            "payload": {"current_order_id": None, "status": "available"},
        }]


class TestScanB:

    def test_open_order_on_missing_table_is_cancelled(self):
        result = detect_table_order_inconsistencies(
            tables=[],
            open_orders=[{"id": "o", "business_id": "b", "table_id": "gone", "status": "open"}],
            now=NOW,
        )
        assert _codes(result) == ["open_order_points_to_missing_table"]
        assert result.findings[0].severity == "medium"
        assert _fix_dicts(result) == [{
            "type": "update_order",
            "target": {"business_id": "b", "order_id": "o"},
            "payload": {"status": "cancelled", "closed_at": "2026-10-18T12:00:00Z", "table_id": None},
        }]

    def test_stale_pointer_is_cleared_then_replaced(self):
        """Fixes are ordered so the adoption supersedes the clear."""
        result = detect_table_order_inconsistencies(
            tables=[{
                "id": "t", "business_id": "b", "status": "occupied", "current_order_id": "old",
                "orders": {"id": "old", "status": "closed"},
            }],
            open_orders=[{"id": "new", "business_id": "b", "table_id": "t", "status": "open"}],
        )
        assert _codes(result) == ["table_points_to_closed_or_missing_order", "open_order_without_table_pointer"]
        assert [f.payload for f in result.fixes] == [
            {"current_order_id": None, "status": "available"},
            {"current_order_id": "new", "status": "occupied"},
        ]

    def test_non_open_orders_are_ignored(self):
        result = detect_table_order_inconsistencies(
            tables=[],
            open_orders=[
                {"id": "o1", "business_id": "b", "table_id": "gone", "status": "closed"},
                {"id": "o2", "business_id": "b", "table_id": "gone", "status": "cancelled"},
                {"id": "o3", "business_id": "b", "table_id": None, "status": "open"},
            ],
        )
        assert result.is_clean


class TestScanC:

    def test_earliest_opened_wins_without_pointer(self):
        result = detect_table_order_inconsistencies(
            tables=[{"id": "t", "business_id": "b", "status": "available", "current_order_id": None}],
            open_orders=[
                {"id": "late", "business_id": "b", "table_id": "t", "status": "open", "opened_at": "2026-10-18T12:05:00Z"},
                {"id": "early", "business_id": "b", "table_id": "t", "status": "open", "opened_at": "2026-10-18T12:01:00Z"},
            ],
            now=NOW,
        )
        conflict = next(f for f in result.findings if f.code == "order_table_pointer_conflict")
        assert conflict.canonical_order_id == "early"

        # The canonical pointer is the last write to the table
        table_fixes = [f for f in result.fixes if f.type == "update_table"]
        assert table_fixes[-1].payload == {"current_order_id": "early", "status": "occupied"}
        cancelled = [f.target.order_id for f in result.fixes if f.type == "update_order"]
        assert cancelled == ["late"]

    def test_contested_table_gets_a_single_pointer_fix(self):
        """Scan B leaves contested tables alone so a truncated pass cannot seat the wrong order."""
        result = detect_table_order_inconsistencies(
            tables=[{"id": "t", "business_id": "b", "status": "available", "current_order_id": None}],
            open_orders=[
                {"id": "early", "business_id": "b", "table_id": "t", "status": "open", "opened_at": "2026-10-18T10:00:00Z"},
                {"id": "late", "business_id": "b", "table_id": "t", "status": "open", "opened_at": "2026-10-18T11:00:00Z"},
            ],
            now=NOW,
        )
        assert _codes(result) == ["order_table_pointer_conflict"]
        pointer_fixes = [f for f in result.fixes if "current_order_id" in f.payload]
        assert [f.payload["current_order_id"] for f in pointer_fixes] == ["early"]
        assert result.fixes[0] is pointer_fixes[0]

    def test_group_on_missing_table_is_left_to_scan_b(self):
        result = detect_table_order_inconsistencies(
            tables=[],
            open_orders=[
                {"id": "o1", "business_id": "b", "table_id": "gone", "status": "open"},
                {"id": "o2", "business_id": "b", "table_id": "gone", "status": "open"},
            ],
        )
        assert _codes(result) == ["open_order_points_to_missing_table"] * 2
        assert all(f.type == "update_order" for f in result.fixes)
        assert len(result.fixes) == 2


class TestPickCanonical:

    def _orders(self, *specs):
        return [OrderRecord(id=i, table_id="t", status="open", opened_at=o, updated_at=u) for i, o, u in specs]

    def test_pointer_wins_over_recency(self):
        table = TableRecord(id="t", current_order_id="b")
        orders = self._orders(("a", "2026-01-01T00:00:00Z", None), ("b", "2026-06-01T00:00:00Z", None))
        assert pick_canonical_open_order(table, orders).id == "b"

    def test_pointer_outside_candidates_is_ignored(self):
        table = TableRecord(id="t", current_order_id="zzz")
        orders = self._orders(("b", "2026-06-01T00:00:00Z", None), ("a", "2026-01-01T00:00:00Z", None))
        assert pick_canonical_open_order(table, orders).id == "a"

    def test_updated_at_is_used_when_opened_at_is_unusable(self):
        orders = self._orders(
            ("a", "not-a-date", "2026-06-01T00:00:00Z"),
            ("b", None, "2026-01-01T00:00:00Z"),
        )
        assert pick_canonical_open_order(None, orders).id == "b"

    def test_unparseable_timestamps_sort_last(self):
        orders = self._orders(("a", "garbage", None), ("b", "2026-06-01T00:00:00Z", None))
        assert pick_canonical_open_order(None, orders).id == "b"

    def test_ties_break_on_smallest_id(self):
        orders = self._orders(
            ("order-2", "2026-01-01T00:00:00Z", None),
            ("order-1", "2026-01-01T00:00:00+00:00", None),
        )
        assert pick_canonical_open_order(None, orders).id == "order-1"

    def test_timezone_offsets_are_compared_in_utc(self):
        orders = self._orders(
            ("a", "2026-01-01T10:00:00+00:00", None),
            ("b", "2026-01-01T11:00:00+02:00", None),  # 09:00 UTC
        )
        assert pick_canonical_open_order(None, orders).id == "b"

    def test_datetime_objects_are_accepted(self):
        orders = self._orders(("a", datetime(2026, 1, 2), None), ("b", datetime(2026, 1, 1), None))
        assert pick_canonical_open_order(None, orders).id == "b"

    def test_out_of_range_timestamps_sort_last(self):
        orders = self._orders(
            ("a", "0001-01-01T00:00:00+01:00", None),
            ("b", "2026-06-01T00:00:00Z", None),
            ("c", datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1))), None),
        )
        assert pick_canonical_open_order(None, orders).id == "b"

    def test_short_fractional_seconds_are_parsed(self):
        orders = self._orders(
            ("b", "2026-01-01T10:00:00.2+00:00", None),
            ("a", "2026-01-01T10:00:00.12345+00:00", None),
        )
        assert pick_canonical_open_order(None, orders).id == "a"

    def test_no_candidates(self):
        assert pick_canonical_open_order(None, []) is None


class TestInputShapes:

    def test_empty_input(self):
        result = detect_table_order_inconsistencies(tables=[], open_orders=[])
        assert result.to_dict() == {"findings": [], "fixes": []}
        assert detect_table_order_inconsistencies().is_clean

    def test_records_without_id_are_skipped(self):
        result = detect_table_order_inconsistencies(
            tables=[{"status": "occupied", "current_order_id": "o"}, {"id": "  ", "status": "weird"}],
            open_orders=[{"table_id": "t", "status": "open"}, {"id": "", "table_id": "t", "status": "open"}],
        )
        assert result.is_clean

    def test_none_records_and_garbage_fields_do_not_raise(self):
        result = detect_table_order_inconsistencies(
            tables=[None, {"id": "t", "status": None, "current_order_id": None, "orders": "garbage"}],
            open_orders=[None, {"id": "o", "status": "OPEN ", "table_id": "t", "opened_at": 123}],
        )
        assert _codes(result) == ["open_order_without_table_pointer"]

    def test_out_of_range_timestamp_does_not_raise(self):
        result = detect_table_order_inconsistencies(
            tables=[{"id": "t", "business_id": "b", "status": "available", "current_order_id": None}],
            open_orders=[
                {"id": "o1", "business_id": "b", "table_id": "t", "status": "open", "opened_at": "0001-01-01T00:00:00+01:00"},
                {"id": "o2", "business_id": "b", "table_id": "t", "status": "open", "opened_at": "2026-10-18T10:00:00Z"},
            ],
            now=NOW,
        )
        conflict = next(f for f in result.findings if f.code == "order_table_pointer_conflict")
        assert conflict.canonical_order_id == "o2"

    def test_typed_records_are_accepted(self):
        result = detect_table_order_inconsistencies(
            tables=[TableRecord(id="t", business_id="b", status="available")],
            open_orders=[OrderRecord(id="o", business_id="b", table_id="t", status="open")],
        )
        assert _codes(result) == ["open_order_without_table_pointer"]

    def test_duplicate_fixes_collapse(self):
        """Two findings asking for the same write produce one fix."""
        result = detect_table_order_inconsistencies(
            tables=[{"id": "t", "business_id": "b", "status": "available", "current_order_id": None}],
            open_orders=[
                {"id": "o", "business_id": "b", "table_id": "t", "status": "open"},
                {"id": "o", "business_id": "b", "table_id": "t", "status": "open"},
            ],
        )
        adoptions = [f for f in result.fixes if f.payload.get("current_order_id") == "o"]
        assert len(adoptions) == 1

    def test_detection_does_not_mutate_input(self):
        tables = [{"id": "t", "business_id": "b", "status": "occupied", "current_order_id": "x"}]
        orders = [{"id": "o", "business_id": "b", "table_id": "t", "status": "open"}]
        snapshot = (repr(tables), repr(orders))
        detect_table_order_inconsistencies(tables, orders)
        assert (repr(tables), repr(orders)) == snapshot


# ---------------------------------------------------------------------------
# Convergence: detect -> apply -> detect again finds nothing
# ---------------------------------------------------------------------------

def _read_snapshot(store_tables, store_orders):
    """Read tables (current order embedded) and open orders the way the service does."""
    tables = []
    for row in store_tables.values():
        record = dict(row)
        embedded = store_orders.get(row.get("current_order_id") or "")
        record["orders"] = dict(embedded) if embedded else None
        tables.append(record)
    open_orders = [dict(o) for o in store_orders.values() if o["status"] == "open"]
    return tables, open_orders


def _apply(store_tables, store_orders, fixes):
    for fix in fixes:
        if fix.type == "update_table":
            row = store_tables.get(fix.target.table_id)
        else:
            row = store_orders.get(fix.target.order_id)
        if row is not None:
            row.update(fix.payload)


def _random_store(rng):
    table_ids = [f"table-{n}" for n in range(rng.randint(0, 5))]
    order_ids = [f"order-{n}" for n in range(rng.randint(0, 8))]

    pointers = [None, "", "order-ghost"] + order_ids
    table_refs = [None, "table-ghost"] + table_ids + table_ids
    table_statuses = ["available", "occupied", "open", "closed", "", None, "reserved"]
    order_statuses = ["open", "open", "open", "closed", "cancelled"]

    tables = {
        tid: {
            "id": tid,
            "business_id": "biz-1",
            "status": rng.choice(table_statuses),
            "current_order_id": rng.choice(pointers),
        }
        for tid in table_ids
    }
    orders = {
        oid: {
            "id": oid,
            "business_id": "biz-1",
            "table_id": rng.choice(table_refs),
            "status": rng.choice(order_statuses),
            "opened_at": rng.choice([None, "garbage", f"2026-10-18T12:{rng.randint(0, 5):02d}:00Z"]),
            "updated_at": rng.choice([None, "2026-10-18T11:00:00Z"]),
        }
        for oid in order_ids
    }
    return tables, orders


@pytest.mark.parametrize("seed", range(200))
def test_one_pass_of_fixes_converges(seed):
    rng = random.Random(seed)
    store_tables, store_orders = _random_store(rng)

    first = detect_table_order_inconsistencies(*_read_snapshot(store_tables, store_orders), now=NOW)
    _apply(store_tables, store_orders, first.fixes)
    second = detect_table_order_inconsistencies(*_read_snapshot(store_tables, store_orders), now=NOW)

    assert second.fixes == [], (seed, [f.to_dict() for f in first.fixes], [f.to_dict() for f in second.fixes])


@pytest.mark.parametrize("seed", range(50))
def test_repaired_store_holds_the_invariant(seed):
    rng = random.Random(seed)
    store_tables, store_orders = _random_store(rng)

    first = detect_table_order_inconsistencies(*_read_snapshot(store_tables, store_orders), now=NOW)
    _apply(store_tables, store_orders, first.fixes)

    open_by_table = {}
    for order in store_orders.values():
        if order["status"] == "open" and order["table_id"]:
            open_by_table.setdefault(order["table_id"], []).append(order["id"])

    for table_id, order_ids in open_by_table.items():
        assert table_id in store_tables
        assert len(order_ids) == 1
    for table in store_tables.values():
        if table["current_order_id"]:
            assert table["status"] == "occupied"
