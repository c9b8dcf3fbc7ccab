# Overview: Flask CLI command groups for bootstrap, reconciliation, and maintenance.

# backend/tablesync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to tablesync (PowerShell: $env:FLASK_APP="tablesync").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business management (MULTI-TENANT):
# - python -m flask businesses list
# - python -m flask businesses create --name "Casa Pepe" --code "PEPE" --tables 12
#   Create a business and optionally seed numbered tables.
#
# Consistency:
# - python -m flask consistency reconcile --business-id <id> [--dry-run] [--max-fixes 25]
#   Detect (and unless --dry-run, repair) table/order divergence.
# - python -m flask consistency cleanup-conflicts --retention-days 90
#   Delete conflict log rows older than the retention window.

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Business, DiningTable
from .services import consistency_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db_cli(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("Database reset complete.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management commands."""


@businesses_group.command('list')
@with_appcontext
def list_businesses_cli():
    """List all businesses."""
    businesses = db.session.query(Business).order_by(Business.name).all()
    if not businesses:
        click.echo("No businesses found.")
        return
    for business in businesses:
        status = "active" if business.is_active else "inactive"
        click.echo(f"{business.id}  {business.code or '-':<8}  {business.name}  ({status})")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--code', default=None, help='Short unique code')
@click.option('--tables', 'table_count', type=int, default=0, show_default=True, help='Seed N numbered tables')
@with_appcontext
def create_business_cli(name, code, table_count):
    """Create a business and optionally seed its tables."""
    if code and db.session.query(Business).filter_by(code=code).first():
        raise click.ClickException(f"Business code already in use: {code}")

    business = Business(name=name, code=code)
    db.session.add(business)
    db.session.flush()

    for number in range(1, table_count + 1):
        db.session.add(DiningTable(business_id=business.id, name=f"Table {number}"))

    db.session.commit()
    click.echo(f"Created business {business.id} ({name}) with {table_count} tables.")


@click.group('consistency')
def consistency_group():
    """Table/order consistency commands."""


@consistency_group.command('reconcile')
@click.option('--business-id', required=True, help='Business to reconcile')
@click.option('--dry-run', is_flag=True, help='Detect only; write nothing')
@click.option('--max-fixes', type=int, default=None, help='Fix limit (default RECONCILE_MAX_FIXES)')
@click.option('--source', default='cli', show_default=True)
@click.option('--json', 'as_json', is_flag=True, help='Print the full result as JSON')
@with_appcontext
def reconcile_cli(business_id, dry_run, max_fixes, source, as_json):
    """
    Detect and repair table/order divergence for one business.
    """
    result = consistency_service.reconcile_table_order_consistency(
        business_id,
        dry_run=dry_run,
        max_fixes=max_fixes,
        source=source,
    )
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.ok:
        raise click.ClickException(f"Reconciliation not run: {result.reason}")

    click.echo(f"Result: {result.reason}")
    for finding in result.findings:
        click.echo(f"  [{finding['severity']}] {finding['code']}  table={finding.get('table_id', '-')}  order={finding.get('order_id', finding.get('current_order_id', '-'))}")
    click.echo(
        f"Fixes attempted: {result.attempted_fixes}, applied: {result.applied_fixes}, "
        f"failed: {result.failed_fixes}{' (dry run)' if dry_run else ''}"
    )


@consistency_group.command('cleanup-conflicts')
@click.option('--retention-days', type=int, default=None, help='Default CONFLICT_RETENTION_DAYS')
@with_appcontext
def cleanup_conflicts_cli(retention_days):
    """
    Cleanup old conflict log rows.

    Default retention: CONFLICT_RETENTION_DAYS (90 days).
    """
    if retention_days is None:
        retention_days = current_app.config.get("CONFLICT_RETENTION_DAYS", 90)
    deleted = consistency_service.cleanup_conflicts(retention_days=retention_days)
    click.echo(f"Deleted {deleted} conflict log rows older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)  # Multi-tenant business management
    app.cli.add_command(consistency_group)
