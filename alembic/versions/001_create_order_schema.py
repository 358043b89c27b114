"""Create order schema

Revision ID: 001_order_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers
revision = '001_order_schema'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def _timestamps(with_updated: bool = True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)]
    if with_updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade():
    """Create catalog, order and checkout tables"""

    # ====================
    # USERS
    # ====================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('avatar', sa.Text, nullable=True),
        sa.Column('auth_provider', sa.String(50), nullable=False, server_default='local', comment='local, google'),
        sa.Column('google_id', sa.String(255), nullable=True),
        sa.Column('email_verified', sa.Boolean, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'user_addresses',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(50), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('address_line1', sa.String(255), nullable=False),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=False),
        sa.Column('zip_code', sa.String(20), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('is_default', sa.Boolean, nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_user_addresses_user_id', 'user_addresses', ['user_id'])

    # ====================
    # CATALOG
    # ====================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(280), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=True),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(280), nullable=False),
        sa.Column('sku', sa.String(50), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('image', sa.String(500), nullable=True),
        sa.Column('category_id', sa.Integer, sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, comment='Selling price to customer'),
        sa.Column('compare_price', sa.Numeric(12, 2), nullable=True,
                  comment='Strike-through price shown next to the selling price'),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('track_quantity', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('allow_backorder', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_featured', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean, nullable=True),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_product_price_non_negative'),
    )
    op.create_index('ix_products_slug', 'products', ['slug'], unique=True)
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)
    op.create_index('ix_product_category_active', 'products', ['category_id', 'is_active'])

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(50), nullable=True),
        sa.Column('attributes', JSONType, nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('compare_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])
    op.create_index('ix_product_variants_sku', 'product_variants', ['sku'], unique=True)

    # ====================
    # ORDERS
    # ====================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_number', sa.String(40), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, confirmed, processing, shipped, delivered, cancelled, refunded'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, paid, failed, refunded, cancelled'),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, comment='Sum of item totals before tax'),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, comment='subtotal + tax + shipping - discount'),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('transaction_id', sa.String(100), nullable=True, unique=True, comment='Gateway payment ID (pay_xxx)'),
        sa.Column('shipping_method', sa.String(100), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('shipping_address', JSONType, nullable=False),
        sa.Column('billing_address', JSONType, nullable=True),
        sa.Column('customer_notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_order_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_order_payment_status', 'orders', ['payment_status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('variant_id', sa.Integer, sa.ForeignKey('product_variants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('variant_name', sa.String(255), nullable=True),
        sa.Column('sku', sa.String(50), nullable=True),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('compare_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        *_timestamps(with_updated=False),
        sa.CheckConstraint('quantity >= 1', name='ck_order_item_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=True),
        sa.Column('to_status', sa.String(20), nullable=False),
        sa.Column('changed_by', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # ====================
    # CHECKOUT SESSIONS
    # ====================
    op.create_table(
        'checkout_sessions',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('session_id', sa.String(100), nullable=False, comment='Gateway payment link ID (plink_xxx)'),
        sa.Column('url', sa.String(500), nullable=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('cart', JSONType, nullable=False),
        sa.Column('shipping_address', JSONType, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False, comment='Total quoted when the session was created'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, completed, failed, expired'),
        sa.Column('payment_id', sa.String(100), nullable=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('attempts', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text, nullable=True),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_checkout_sessions_session_id', 'checkout_sessions', ['session_id'], unique=True)
    op.create_index('ix_checkout_sessions_status', 'checkout_sessions', ['status'])


def downgrade():
    """Drop all order service tables"""
    op.drop_table('checkout_sessions')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('user_addresses')
    op.drop_table('users')
