# Overview: Pytest coverage for the consistency and bootstrap CLI commands.

import json

from conftest import make_table
from tablesync.models import Business, DiningTable


def test_create_business_seeds_tables(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["businesses", "create", "--name", "Casa Pepe", "--code", "PEPE", "--tables", "3"])

    assert result.exit_code == 0, result.output
    business = db_session.query(Business).filter_by(code="PEPE").one()
    assert db_session.query(DiningTable).filter_by(business_id=business.id).count() == 3

    listing = runner.invoke(args=["businesses", "list"])
    assert "Casa Pepe" in listing.output


def test_reconcile_dry_run_reports_findings(app, db_session, business):
    make_table(db_session, business.id, "table-1", status="occupied", current_order_id="ghost")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["consistency", "reconcile", "--business-id", business.id, "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "table_points_to_closed_or_missing_order" in result.output
    assert "(dry run)" in result.output
    assert db_session.get(DiningTable, "table-1").current_order_id == "ghost"


def test_reconcile_json_output(app, db_session, business):
    make_table(db_session, business.id, "table-1", status="closed")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["consistency", "reconcile", "--business-id", business.id, "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["applied_fixes"] == 1


def test_cleanup_conflicts(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["consistency", "cleanup-conflicts", "--retention-days", "30"])
    assert result.exit_code == 0
    assert "Deleted 0 conflict log rows" in result.output
