"""tables, orders and consistency conflict log

Revision ID: 20261018_tables_orders
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the TableSync schema:
- businesses: tenant root
- dining_tables: physical tables with a denormalized current_order_id pointer
- orders / order_items: tabs opened against tables
- consistency_conflicts: append-only log written by the reconciler

dining_tables.current_order_id and orders.table_id are deliberately NOT
foreign keys: each side is written independently and a dangling pointer
must be storable so the reconciler can find and clear it.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_tables_orders'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # businesses: tenant root
    # ============================================================================
    op.create_table(
        'businesses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_businesses_code', 'businesses', ['code'], unique=True)
    op.create_index('ix_businesses_is_active', 'businesses', ['is_active'])

    # ============================================================================
    # dining_tables
    # ============================================================================
    op.create_table(
        'dining_tables',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('current_order_id', sa.String(length=36), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'name', name='uq_dining_tables_business_name'),
    )
    op.create_index('ix_dining_tables_business_id', 'dining_tables', ['business_id'])
    op.create_index('ix_dining_tables_current_order_id', 'dining_tables', ['current_order_id'])
    op.create_index('ix_dining_tables_business_status', 'dining_tables', ['business_id', 'status'])

    # ============================================================================
    # orders / order_items
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('table_id', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_business_id', 'orders', ['business_id'])
    op.create_index('ix_orders_business_status', 'orders', ['business_id', 'status'])
    op.create_index('ix_orders_table_status', 'orders', ['table_id', 'status'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    # ============================================================================
    # consistency_conflicts: append-only reconciler log
    # ============================================================================
    op.create_table(
        'consistency_conflicts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=True),
        sa.Column('mutation_type', sa.String(length=64), nullable=False),
        sa.Column('mutation_id', sa.String(length=128), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_consistency_conflicts_business_id', 'consistency_conflicts', ['business_id'])
    op.create_index('ix_consistency_conflicts_mutation_type', 'consistency_conflicts', ['mutation_type'])
    op.create_index('ix_consistency_conflicts_occurred_at', 'consistency_conflicts', ['occurred_at'])
    op.create_index('ix_consistency_conflicts_business_occurred', 'consistency_conflicts',
                    ['business_id', 'occurred_at'])


def downgrade():
    op.drop_table('consistency_conflicts')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('dining_tables')
    op.drop_table('businesses')
