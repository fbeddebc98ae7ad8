"""initial stock reconciliation schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UTC_NOW = sa.text("timezone('utc', now())")


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('sku', sa.String(), nullable=True, unique=True),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
    )

    op.create_table(
        'product_variants',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('sku', sa.String(), nullable=True, unique=True),
        sa.Column('price_adjustment', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock_alert', sa.Integer(), nullable=False, server_default='5'),
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    op.create_table(
        'platform_listings',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column(
            'product_variant_id',
            sa.String(length=36),
            sa.ForeignKey('product_variants.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('platform', sa.String(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=True),
        sa.Column('external_variant_id', sa.String(), nullable=True),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('stock_synced', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=True, server_default='active'),
        sa.Column('last_sync_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint('product_variant_id', 'platform', name='uq_platform_listings_variant_platform'),
    )
    op.create_index('ix_platform_listings_product_variant_id', 'platform_listings', ['product_variant_id'])
    op.create_index('ix_platform_listings_external_variant_id', 'platform_listings', ['external_variant_id'])
    op.create_index('ix_platform_listings_status', 'platform_listings', ['status'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'product_variant_id',
            sa.String(length=36),
            sa.ForeignKey('product_variants.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reference', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_stock_movements_product_variant_id', 'stock_movements', ['product_variant_id'])
    op.create_index('ix_stock_movements_kind', 'stock_movements', ['kind'])
    op.create_index('ix_stock_movements_created_at', 'stock_movements', ['created_at'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=True),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    for column in ('action', 'entity_type', 'entity_id', 'platform', 'created_at'):
        op.create_index(f'ix_activity_log_{column}', 'activity_log', [column])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('stock_movements')
    op.drop_table('platform_listings')
    op.drop_table('product_variants')
    op.drop_table('products')
