"""Initial schema for identity resolution and supplier corrections

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 12:00:00.000000

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

MATCH_METHODS = ('manual', 'exact_gtin', 'fuzzy_name', 'barcode_scan', 'supplier_mapped')
CORRECTION_STATUSES = ('draft', 'pending', 'approved', 'rejected')


def upgrade() -> None:
    # Create enums
    match_method_enum = postgresql.ENUM(*MATCH_METHODS, name='match_method', create_type=True)
    match_method_enum.create(op.get_bind(), checkfirst=True)
    correction_status_enum = postgresql.ENUM(*CORRECTION_STATUSES, name='correction_status', create_type=True)
    correction_status_enum.create(op.get_bind(), checkfirst=True)

    # Create suppliers table
    op.create_table(
        'suppliers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_suppliers_name', 'suppliers', ['name'])

    # Create products table (canonical products)
    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('gtin', sa.String(length=14), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quality_summary', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_products_name', 'products', ['name'], postgresql_ops={'name': 'varchar_pattern_ops'})
    op.create_index('ix_products_gtin', 'products', ['gtin'], unique=True)

    # Create supplier_product_mappings table (curated SKU links)
    op.create_table(
        'supplier_product_mappings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_sku', sa.String(length=255), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('supplier_id', 'supplier_sku', name='unique_mapping_supplier_sku'),
    )
    op.create_index('ix_supplier_product_mappings_supplier_id', 'supplier_product_mappings', ['supplier_id'])
    op.create_index('ix_supplier_product_mappings_product_id', 'supplier_product_mappings', ['product_id'])

    # Create supplier_items table
    op.create_table(
        'supplier_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('supplier_sku', sa.String(length=255), nullable=False),
        sa.Column('supplier_name', sa.String(length=500), nullable=False),
        sa.Column('supplier_description', sa.Text(), nullable=True),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('min_order_qty', sa.Integer(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='EUR'),
        sa.Column('raw_gtin', sa.String(length=32), nullable=True),
        sa.Column('scanned_code', sa.String(length=32), nullable=True),
        sa.Column('match_method', postgresql.ENUM(*MATCH_METHODS, name='match_method', create_type=False), nullable=False, server_default='manual'),
        sa.Column('match_confidence', sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column('match_candidates', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('matched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('matched_by', sa.String(length=255), nullable=True),
        sa.Column('needs_review', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('ignored_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ignored_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('supplier_id', 'supplier_sku', name='unique_supplier_sku'),
        sa.CheckConstraint('unit_price IS NULL OR unit_price >= 0', name='check_unit_price_non_negative'),
        sa.CheckConstraint('min_order_qty IS NULL OR min_order_qty > 0', name='check_min_order_qty_positive'),
        sa.CheckConstraint(
            'match_confidence IS NULL OR (match_confidence >= 0 AND match_confidence <= 1)',
            name='check_match_confidence'
        ),
    )
    op.create_index('ix_supplier_items_supplier_id', 'supplier_items', ['supplier_id'])
    op.create_index('ix_supplier_items_product_id', 'supplier_items', ['product_id'])
    op.create_index('ix_supplier_items_match_method', 'supplier_items', ['match_method'])
    op.create_index('ix_supplier_items_needs_review', 'supplier_items', ['needs_review'])
    op.create_index('ix_supplier_items_is_active', 'supplier_items', ['is_active'])
    # Review queue scan: active items needing review, lowest confidence first
    op.create_index(
        'idx_supplier_items_review_queue',
        'supplier_items',
        ['match_confidence', 'matched_at'],
        postgresql_where=sa.text('is_active AND needs_review'),
    )

    # Create supplier_corrections table
    op.create_table(
        'supplier_corrections',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('supplier_item_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('original_data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('proposed_data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('data_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', postgresql.ENUM(*CORRECTION_STATUSES, name='correction_status', create_type=False), nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.String(length=255), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['supplier_item_id'], ['supplier_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_supplier_corrections_supplier_item_id', 'supplier_corrections', ['supplier_item_id'])
    op.create_index('ix_supplier_corrections_supplier_id', 'supplier_corrections', ['supplier_id'])
    op.create_index('ix_supplier_corrections_status', 'supplier_corrections', ['status'])
    op.create_index('ix_supplier_corrections_supplier_status', 'supplier_corrections', ['supplier_id', 'status'])
    # At most one open (draft or pending) correction per supplier item
    op.create_index(
        'uq_open_correction_per_item',
        'supplier_corrections',
        ['supplier_item_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('draft', 'pending')"),
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('supplier_corrections')
    op.drop_table('supplier_items')
    op.drop_table('supplier_product_mappings')
    op.drop_table('products')
    op.drop_table('suppliers')

    # Drop enums
    postgresql.ENUM(*CORRECTION_STATUSES, name='correction_status').drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(*MATCH_METHODS, name='match_method').drop(op.get_bind(), checkfirst=True)
