"""create stock ledger tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-17 09:12:44.318205
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '3f1c9a2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    'movement_type': ('initial', 'sale', 'adjustment', 'purchase'),
    'movement_reason': ('expiry', 'damage', 'theft', 'correction', 'other'),
    'posting_kind': ('revenue', 'expense'),
    'pending_posting_status': ('pending', 'posted'),
}


def enum_column(name):
    # Types are created once up front; posting_kind is shared by three tables
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def audit_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.Column('created_by', sa.String(length=100)),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'products',
        *audit_columns(),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('parent_name', sa.String(length=255)),
        sa.Column('is_variation', sa.Boolean()),
        sa.Column('stock_quantity', sa.Integer()),
        sa.Column('supplier_price', sa.Numeric(12, 2)),
    )
    op.create_index('ix_products_id', 'products', ['id'])
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)

    op.create_table(
        'stock_movements',
        *audit_columns(),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('movement_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('movement_type', enum_column('movement_type'), nullable=False),
        sa.Column('reason', enum_column('movement_reason')),
        sa.Column('reference_id', sa.String(length=100)),
        sa.Column('batch_number', sa.String(length=50)),
        sa.Column('expiry_date', sa.Date()),
        sa.Column('notes', sa.Text()),
        sa.CheckConstraint('quantity <> 0', name='ck_stock_movements_quantity_nonzero'),
    )
    op.create_index('ix_stock_movements_id', 'stock_movements', ['id'])
    op.create_index('ix_stock_movements_sku', 'stock_movements', ['sku'])
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'])
    op.create_index('ix_stock_movements_reference_id', 'stock_movements', ['reference_id'])

    op.create_table(
        'stock_reconciliations',
        *audit_columns(),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('reconciliation_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('expected_quantity', sa.Integer(), nullable=False),
        sa.Column('actual_quantity', sa.Integer(), nullable=False),
        sa.Column('discrepancy', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text()),
    )
    op.create_index('ix_stock_reconciliations_id', 'stock_reconciliations', ['id'])
    op.create_index('ix_stock_reconciliations_sku', 'stock_reconciliations', ['sku'])

    op.create_table(
        'financial_categories',
        *audit_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('kind', enum_column('posting_kind'), nullable=False),
        sa.UniqueConstraint('name', 'kind', name='uq_financial_categories_name_kind'),
    )
    op.create_index('ix_financial_categories_id', 'financial_categories', ['id'])

    op.create_table(
        'financial_postings',
        *audit_columns(),
        sa.Column('kind', enum_column('posting_kind'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('financial_categories.id')),
        sa.Column('reference', sa.String(length=100)),
        sa.Column('description', sa.Text()),
    )
    op.create_index('ix_financial_postings_id', 'financial_postings', ['id'])
    op.create_index('ix_financial_postings_reference', 'financial_postings', ['reference'])

    op.create_table(
        'pending_postings',
        *audit_columns(),
        sa.Column('movement_id', sa.Integer(), sa.ForeignKey('stock_movements.id', ondelete='SET NULL')),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('kind', enum_column('posting_kind'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', enum_column('pending_posting_status'), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text()),
        sa.Column('posting_id', sa.Integer(), sa.ForeignKey('financial_postings.id')),
    )
    op.create_index('ix_pending_postings_id', 'pending_postings', ['id'])
    op.create_index('ix_pending_postings_movement_id', 'pending_postings', ['movement_id'])

    op.bulk_insert(
        sa.table('financial_categories', sa.column('name', sa.String), sa.column('kind', enum_column('posting_kind'))),
        [
            {'name': 'Manual Sale', 'kind': 'revenue'},
            {'name': 'Expired Products', 'kind': 'expense'},
        ],
    )
    print("✓ [3f1c9a2b7d40] Created stock ledger tables")


def downgrade() -> None:
    for table in ('pending_postings', 'financial_postings', 'financial_categories',
                  'stock_reconciliations', 'stock_movements', 'products'):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
