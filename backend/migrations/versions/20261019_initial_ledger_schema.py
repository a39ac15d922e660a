"""Initial ledger schema: suppliers, bills, products, sales, payment logs, traces

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. Suppliers and supplier bills (bill-level deal / base paid amounts)
2. Products (one row per barcode per bill)
3. Sales, sale lines and customer profiles
4. Counters (invoice numbers, supplier codes)
5. Supplier adjustments, supplier and customer payment logs
6. Delete traces
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. SUPPLIERS & BILLS
    # ==========================================================================
    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_code', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_suppliers')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('suppliers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_suppliers_supplier_code'), ['supplier_code'], unique=True)

    op.create_table('supplier_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_number', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('deal_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('base_paid_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('deal_amount_cents >= 0', name=op.f('ck_supplier_bills_deal_amount_non_negative')),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], name=op.f('fk_supplier_bills_supplier_id_suppliers')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_supplier_bills')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('supplier_bills', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_supplier_bills_bill_number'), ['bill_number'], unique=True)
        batch_op.create_index(batch_op.f('ix_supplier_bills_supplier_id'), ['supplier_id'], unique=False)

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=True),
        sa.Column('retail_price_cents', sa.Integer(), nullable=True),
        sa.Column('total_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('quantity >= 0', name=op.f('ck_products_quantity_non_negative')),
        sa.ForeignKeyConstraint(['bill_id'], ['supplier_bills.id'], name=op.f('fk_products_bill_id_supplier_bills')),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], name=op.f('fk_products_supplier_id_suppliers')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_products')),
        sa.UniqueConstraint('bill_id', 'barcode', name='uq_products_bill_barcode'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_barcode'), ['barcode'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_bill_id'), ['bill_id'], unique=False)
        batch_op.create_index('ix_products_supplier_bill', ['supplier_id', 'bill_id'], unique=False)

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_count', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('vat_percent', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('vat_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='percent'),
        sa.Column('discount_value', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('base_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_number', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('staff_id', sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sales')),
        sa.UniqueConstraint('sale_count', name=op.f('uq_sales_sale_count')),
        sa.UniqueConstraint('invoice_number', name=op.f('uq_sales_invoice_number')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_payment_method'), ['payment_method'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_customer_number'), ['customer_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_sales_customer_method', ['customer_number', 'payment_method'], unique=False)

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('retail_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name=op.f('fk_sale_lines_product_id_products')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name=op.f('fk_sale_lines_sale_id_sales')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sale_lines')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_lines_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_lines_product_id'), ['product_id'], unique=False)

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_number', sa.String(length=32), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('last_sale_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['last_sale_id'], ['sales.id'], name=op.f('fk_customers_last_sale_id_sales')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_customers')),
        sa.UniqueConstraint('customer_number', name=op.f('uq_customers_customer_number')),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 4. COUNTERS
    # ==========================================================================
    op.create_table('counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_counters')),
        sa.UniqueConstraint('key', name=op.f('uq_counters_key')),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 5. SUPPLIER ADJUSTMENTS & PAYMENT LOGS
    # ==========================================================================
    op.create_table('supplier_adjustments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('bill_number', sa.String(length=64), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('applied_reduction_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_by', sa.String(length=128), nullable=True),
        sa.Column('edit_reason', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name=op.f('fk_supplier_adjustments_product_id_products'), ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], name=op.f('fk_supplier_adjustments_supplier_id_suppliers')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_supplier_adjustments')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('supplier_adjustments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_supplier_adjustments_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_supplier_adjustments_bill_number'), ['bill_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_supplier_adjustments_type'), ['type'], unique=False)
        batch_op.create_index(batch_op.f('ix_supplier_adjustments_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_supplier_adjustments_bill_barcode', ['bill_number', 'barcode'], unique=False)

    op.create_table('supplier_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('bill_number', sa.String(length=64), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('remaining_snapshot_cents', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['bill_id'], ['supplier_bills.id'], name=op.f('fk_supplier_transactions_bill_id_supplier_bills')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_supplier_transactions')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('supplier_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_supplier_transactions_bill_id'), ['bill_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_supplier_transactions_bill_number'), ['bill_number'], unique=False)
        batch_op.create_index('ix_supplier_txns_bill_paid', ['bill_number', 'paid_at'], unique=False)

    op.create_table('customer_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('remaining_snapshot_cents', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name=op.f('fk_customer_transactions_customer_id_customers')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_customer_transactions')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customer_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customer_transactions_customer_number'), ['customer_number'], unique=False)
        batch_op.create_index('ix_customer_txns_number_ts', ['customer_number', 'timestamp'], unique=False)

    op.create_table('customer_payment_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_ids', sa.JSON(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name=op.f('fk_customer_payment_allocations_sale_id_sales')),
        sa.ForeignKeyConstraint(['transaction_id'], ['customer_transactions.id'], name=op.f('fk_customer_payment_allocations_transaction_id_customer_transactions')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_customer_payment_allocations')),
        sa.UniqueConstraint('transaction_id', 'sale_id', name='uq_customer_alloc_txn_sale'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customer_payment_allocations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customer_payment_allocations_transaction_id'), ['transaction_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_customer_payment_allocations_sale_id'), ['sale_id'], unique=False)

    # ==========================================================================
    # 6. DELETE TRACES
    # ==========================================================================
    op.create_table('delete_traces',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('table_name', sa.String(length=64), nullable=False),
        sa.Column('deleted_id', sa.Integer(), nullable=True),
        sa.Column('trace_type', sa.String(length=32), nullable=False, server_default='delete'),
        sa.Column('deleted_data', sa.JSON(), nullable=False),
        sa.Column('deleted_by', sa.String(length=128), nullable=False, server_default='Unknown'),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_delete_traces')),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('delete_traces', schema=None) as batch_op:
        batch_op.create_index('ix_delete_traces_table_deleted', ['table_name', 'deleted_at'], unique=False)


def downgrade():
    op.drop_table('delete_traces')
    op.drop_table('customer_payment_allocations')
    op.drop_table('customer_transactions')
    op.drop_table('supplier_transactions')
    op.drop_table('supplier_adjustments')
    op.drop_table('counters')
    op.drop_table('customers')
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('products')
    op.drop_table('supplier_bills')
    op.drop_table('suppliers')
