"""Initial storefront schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', sa.String(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now())


def upgrade() -> None:
    # ### Users ###
    op.create_table(
        'users',
        _id(),
        sa.Column('clerk_id', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('email', sa.String(255), index=True, nullable=False),
        sa.Column('first_name', sa.String(255)),
        sa.Column('last_name', sa.String(255)),
        sa.Column('image_url', sa.String(1024)),
        sa.Column('role', sa.String(20), server_default='CLIENT', index=True),
        _created_at(),
        _updated_at(),
    )

    # ### Suppliers (shipping origins) ###
    op.create_table(
        'suppliers',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), server_default='LOCAL_STOCK'),
        sa.Column('incoterm', sa.String(10), server_default='DDU'),
        sa.Column('address', postgresql.JSONB(), server_default='{}'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), index=True),
        sa.Column('default_currency', sa.String(3), server_default='CAD'),
        _created_at(),
        _updated_at(),
    )

    # ### Catalog ###
    op.create_table(
        'products',
        _id(),
        sa.Column('slug', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('status', sa.String(20), server_default='DRAFT', index=True),
        sa.Column('is_featured', sa.Boolean(), server_default=sa.false()),
        sa.Column('sort_order', sa.Integer(), server_default='0'),
        sa.Column('origin_country', sa.String(2)),
        sa.Column('hs_code', sa.String(20)),
        sa.Column('export_explanation', sa.Text()),
        sa.Column('weight', sa.Numeric(precision=10, scale=3)),
        sa.Column('dimensions', postgresql.JSONB()),
        sa.Column('shipping_origin_id', sa.String(36), sa.ForeignKey('suppliers.id', ondelete='SET NULL'), index=True),
        _created_at(),
        _updated_at(),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'product_translations',
        _id(),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('language', sa.String(2), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('short_description', sa.String(500)),
        sa.Column('meta_title', sa.String(255)),
        sa.Column('meta_description', sa.String(500)),
        sa.UniqueConstraint('product_id', 'language', name='uq_product_translation_language'),
    )

    op.create_table(
        'product_variants',
        _id(),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sku', sa.String(100), unique=True, index=True, nullable=False),
        sa.Column('weight', sa.Numeric(precision=10, scale=3)),
        sa.Column('dimensions', postgresql.JSONB()),
        _created_at(),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'product_pricing',
        _id(),
        sa.Column('variant_id', sa.String(36), sa.ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('price_type', sa.String(20), server_default='base'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('valid_from', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'product_inventory',
        _id(),
        sa.Column('variant_id', sa.String(36), sa.ForeignKey('product_variants.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('stock', sa.Integer(), server_default='0'),
        sa.Column('reserved_stock', sa.Integer(), server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), server_default='5'),
        sa.Column('track_inventory', sa.Boolean(), server_default=sa.true()),
        sa.Column('allow_backorder', sa.Boolean(), server_default=sa.false()),
    )

    op.create_table(
        'product_media',
        _id(),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('variant_id', sa.String(36), sa.ForeignKey('product_variants.id', ondelete='SET NULL')),
        sa.Column('url', sa.String(1024), nullable=False),
        sa.Column('alt', sa.String(255)),
        sa.Column('is_primary', sa.Boolean(), server_default=sa.false()),
        sa.Column('sort_order', sa.Integer(), server_default='0'),
    )

    op.create_table(
        'categories',
        _id(),
        sa.Column('slug', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('categories.id', ondelete='SET NULL')),
        sa.Column('sort_order', sa.Integer(), server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        'category_translations',
        _id(),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('language', sa.String(2), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.UniqueConstraint('category_id', 'language', name='uq_category_translation_language'),
    )

    op.create_table(
        'product_categories',
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id', ondelete='CASCADE'), primary_key=True),
    )

    # ### Carts ###
    op.create_table(
        'carts',
        _id(),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), index=True),
        sa.Column('anonymous_id', sa.String(64), index=True),
        sa.Column('status', sa.String(20), server_default='ACTIVE', index=True),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        'cart_items',
        _id(),
        sa.Column('cart_id', sa.String(36), sa.ForeignKey('carts.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('variant_id', sa.String(36), sa.ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        sa.UniqueConstraint('cart_id', 'variant_id', name='uq_cart_item_variant'),
    )

    # ### Orders ###
    op.create_table(
        'orders',
        _id(),
        sa.Column('order_number', sa.String(50), unique=True, index=True, nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), index=True),
        sa.Column('order_email', sa.String(255), index=True),
        sa.Column('status', sa.String(30), server_default='PENDING', index=True),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('subtotal_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('shipping_amount', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('shipping_address', postgresql.JSONB(), server_default='{}'),
        sa.Column('billing_address', postgresql.JSONB(), server_default='{}'),
        sa.Column('language', sa.String(2), server_default='FR'),
        sa.Column('utm_source', sa.String(255), index=True),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        'order_items',
        _id(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('variant_id', sa.String(36), sa.ForeignKey('product_variants.id', ondelete='SET NULL')),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='SET NULL')),
        sa.Column('product_snapshot', postgresql.JSONB(), server_default='{}'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
    )

    op.create_table(
        'payments',
        _id(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('method', sa.String(20), server_default='STRIPE'),
        sa.Column('external_id', sa.String(255), unique=True, index=True),
        sa.Column('status', sa.String(20), server_default='PENDING'),
        sa.Column('transaction_data', postgresql.JSONB()),
        sa.Column('failure_reason', sa.Text()),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        'shipments',
        _id(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('carrier', sa.String(100)),
        sa.Column('carrier_service', sa.String(100)),
        sa.Column('tracking_code', sa.String(255), index=True),
        sa.Column('tracking_url', sa.String(1024)),
        sa.Column('label_url', sa.String(1024)),
        sa.Column('status', sa.String(20), server_default='PENDING'),
        sa.Column('shippo_rate_id', sa.String(255)),
        sa.Column('shippo_transaction_id', sa.String(255)),
        sa.Column('shipped_at', sa.DateTime(timezone=True)),
        sa.Column('delivered_at', sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        'order_status_history',
        _id(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('comment', sa.Text()),
        sa.Column('created_by', sa.String(255)),
        _created_at(),
    )

    # ### Analytics and webhooks ###
    op.create_table(
        'analytics_events',
        _id(),
        sa.Column('event_type', sa.String(100), index=True, nullable=False),
        sa.Column('event_name', sa.String(255)),
        sa.Column('path', sa.String(2048)),
        sa.Column('anonymous_id', sa.String(64), index=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('metadata', postgresql.JSONB()),
        sa.Column('utm_source', sa.String(255), index=True),
        sa.Column('utm_medium', sa.String(255)),
        sa.Column('utm_campaign', sa.String(255)),
        _created_at(),
    )
    op.create_index('idx_analytics_events_created_at', 'analytics_events', ['created_at'])

    op.create_table(
        'webhook_events',
        _id(),
        sa.Column('source', sa.String(50), nullable=False),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('payload_hash', sa.String(64)),
        sa.Column('processed', sa.Boolean(), server_default=sa.false()),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        sa.Column('retry_count', sa.Integer(), server_default='0'),
        sa.Column('max_retries', sa.Integer(), server_default='3'),
        sa.Column('last_error', sa.Text()),
        _created_at(),
        sa.UniqueConstraint('source', 'event_id', name='uq_webhook_source_event'),
    )


def downgrade() -> None:
    op.drop_table('webhook_events')
    op.drop_index('idx_analytics_events_created_at', table_name='analytics_events')
    op.drop_table('analytics_events')
    op.drop_table('order_status_history')
    op.drop_table('shipments')
    op.drop_table('payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('product_categories')
    op.drop_table('category_translations')
    op.drop_table('categories')
    op.drop_table('product_media')
    op.drop_table('product_inventory')
    op.drop_table('product_pricing')
    op.drop_table('product_variants')
    op.drop_table('product_translations')
    op.drop_table('products')
    op.drop_table('suppliers')
    op.drop_table('users')
