"""initial stock ledger schema

Revision ID: sl001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete stock ledger schema from scratch:
- categories / products: catalog, products keyed by barcode
- stock_batches: one row per receipt (lot), quantity_remaining only decreases
- stock_movements: append-only RECEIPT / SALE / CORRECTION log
- sales / sale_lines: committed checkouts with price snapshots
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # categories
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('emoji', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_categories_name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # products: keyed by barcode, no stock column (stock is derived)
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('emoji', sa.String(length=16), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('barcode'),
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_name', 'products', ['name'])

    # ============================================================================
    # sales (before stock_movements, which reference it)
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('total_cents >= 0', name='ck_sales_total_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])

    # ============================================================================
    # stock_batches
    # ============================================================================
    op.create_table(
        'stock_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_barcode', sa.String(length=64), nullable=False),
        sa.Column('quantity_received', sa.Integer(), nullable=False),
        sa.Column('quantity_remaining', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('quantity_remaining >= 0', name='ck_stock_batches_remaining_nonneg'),
        sa.CheckConstraint('quantity_received > 0', name='ck_stock_batches_received_pos'),
        sa.CheckConstraint('quantity_remaining <= quantity_received',
                           name='ck_stock_batches_remaining_le_received'),
        sa.ForeignKeyConstraint(['product_barcode'], ['products.barcode'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_barcode', 'sequence', name='uq_stock_batches_product_sequence'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_batches_product_barcode', 'stock_batches', ['product_barcode'])
    op.create_index('ix_stock_batches_product_live', 'stock_batches',
                    ['product_barcode', 'quantity_remaining'])

    # ============================================================================
    # stock_movements: append-only
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_barcode', sa.String(length=64), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity_delta <> 0', name='ck_stock_movements_nonzero'),
        sa.ForeignKeyConstraint(['product_barcode'], ['products.barcode'], ),
        sa.ForeignKeyConstraint(['batch_id'], ['stock_batches.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_barcode', 'id'])
    op.create_index('ix_stock_movements_batch_id', 'stock_movements', ['batch_id'])
    op.create_index('ix_stock_movements_kind', 'stock_movements', ['kind'])
    op.create_index('ix_stock_movements_sale_id', 'stock_movements', ['sale_id'])

    # ============================================================================
    # sale_lines: price snapshot per line
    # ============================================================================
    op.create_table(
        'sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_barcode', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_sale_lines_quantity_pos'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_barcode'], ['products.barcode'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'line_number', name='uq_sale_lines_sale_line'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])
    op.create_index('ix_sale_lines_product_barcode', 'sale_lines', ['product_barcode'])


def downgrade():
    op.drop_table('sale_lines')
    op.drop_table('stock_movements')
    op.drop_table('stock_batches')
    op.drop_index('ix_sales_created_at', table_name='sales')
    op.drop_table('sales')
    op.drop_table('products')
    op.drop_table('categories')
