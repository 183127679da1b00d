"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _fk(name: str, target: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target), **kwargs)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True))


def _deleted_at() -> sa.Column:
    return sa.Column("deleted_at", sa.DateTime(timezone=True))


def _address_columns(state_length: int) -> list[sa.Column]:
    return [
        sa.Column("street", sa.String(200), nullable=False),
        sa.Column("number", sa.String(20), nullable=False),
        sa.Column("neighborhood", sa.String(100), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(state_length), nullable=False),
        sa.Column("zip_code", sa.String(12), nullable=False),
        sa.Column("complement", sa.String(200)),
        sa.Column("reference", sa.String(200)),
    ]


def upgrade() -> None:
    # Merchants
    op.create_table(
        "merchants",
        _id(),
        sa.Column("auth_user_id", sa.String(64), unique=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), server_default="admin", nullable=False),
        _created_at(),
        _updated_at(),
        _deleted_at(),
    )

    # Stores
    op.create_table(
        "stores",
        _id(),
        _fk("merchant_id", "merchants.id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(120), unique=True, nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(40), server_default="outros", nullable=False),
        sa.Column("custom_category", sa.String(100)),
        sa.Column("avatar_url", sa.Text()),
        sa.Column("banner_url", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("delivery_time", sa.String(50)),
        sa.Column("accepts_payment_credit_card", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("accepts_payment_debit_card", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("accepts_payment_pix", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("accepts_payment_cash", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("fulfillment_delivery_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("fulfillment_pickup_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("fulfillment_pickup_instructions", sa.Text()),
        sa.Column("min_order_value", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("delivery_fee", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("free_delivery_above", sa.Numeric(10, 2)),
        sa.Column("primary_color", sa.String(7)),
        sa.Column("secondary_color", sa.String(7)),
        sa.Column("accent_color", sa.String(7)),
        sa.Column("text_color", sa.String(7)),
        _created_at(),
        _updated_at(),
        _deleted_at(),
    )
    op.create_index("idx_stores_merchant", "stores", ["merchant_id"])

    op.create_table(
        "store_members",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        _fk("merchant_id", "merchants.id", nullable=False),
        sa.Column("role", sa.String(20), server_default="manager", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("store_id", "merchant_id", name="uq_store_member"),
    )

    op.create_table(
        "store_addresses",
        _id(),
        _fk("store_id", "stores.id", unique=True, nullable=False),
        *_address_columns(2),
    )

    op.create_table(
        "store_working_hours",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("open_time", sa.String(5)),
        sa.Column("close_time", sa.String(5)),
        sa.Column("is_closed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.UniqueConstraint("store_id", "day_of_week", name="uq_store_day"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_day_of_week"),
    )

    op.create_table(
        "store_delivery_options",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("fee", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("estimated_minutes", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _deleted_at(),
    )

    # Catalog
    op.create_table(
        "products",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("cost_price", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("family", sa.String(30), server_default="finished_product", nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("custom_category", sa.String(100)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("image_url", sa.Text()),
        sa.Column("preparation_time", sa.Integer()),
        sa.Column("nutritional_info", postgresql.JSONB()),
        sa.Column("created_by", sa.String(64)),
        _created_at(),
        _updated_at(),
        _deleted_at(),
    )
    op.create_index("idx_products_store", "products", ["store_id"])
    op.create_index("idx_products_store_category", "products", ["store_id", "category"])

    op.create_table(
        "product_customizations",
        _id(),
        _fk("product_id", "products.id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("customization_type", sa.String(20), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("selection_type", sa.String(20), server_default="boolean", nullable=False),
        sa.Column("selection_group", sa.String(100)),
        _created_at(),
        _deleted_at(),
    )
    op.create_index("idx_customizations_product", "product_customizations", ["product_id"])

    op.create_table(
        "extra_lists",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        _created_at(),
        _deleted_at(),
    )

    op.create_table(
        "product_extra_lists",
        _fk("product_id", "products.id", primary_key=True),
        _fk("extra_list_id", "extra_lists.id", primary_key=True),
    )

    op.create_table(
        "product_history",
        _id(),
        _fk("product_id", "products.id", nullable=False),
        sa.Column("change_type", sa.String(20), nullable=False),
        sa.Column("previous_data", postgresql.JSONB()),
        sa.Column("new_data", postgresql.JSONB()),
        sa.Column("changed_fields", postgresql.JSONB()),
        sa.Column("changed_by", sa.String(64)),
        _created_at(),
    )
    op.create_index("idx_product_history_product", "product_history", ["product_id"])

    op.create_table(
        "product_category_price_limits",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("min_price", sa.Numeric(10, 2)),
        sa.Column("max_price", sa.Numeric(10, 2)),
        sa.UniqueConstraint("store_id", "category", name="uq_store_category_limit"),
    )

    # Customers
    op.create_table(
        "customers",
        _id(),
        sa.Column("auth_user_id", sa.String(64), unique=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(15), nullable=False),
        _created_at(),
        _updated_at(),
        _deleted_at(),
    )
    op.create_index(
        "uq_customers_phone_alive",
        "customers",
        ["phone"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "customer_addresses",
        _id(),
        _fk("customer_id", "customers.id", nullable=False),
        sa.Column("label", sa.String(50)),
        sa.Column("address_type", sa.String(10), server_default="other", nullable=False),
        *_address_columns(50),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
        _updated_at(),
        _deleted_at(),
    )
    op.create_index("idx_customer_addresses_customer", "customer_addresses", ["customer_id"])
    op.create_index(
        "uq_customer_addresses_default",
        "customer_addresses",
        ["customer_id"],
        unique=True,
        postgresql_where=sa.text("is_default AND deleted_at IS NULL"),
    )

    op.create_table(
        "store_customers",
        _id(),
        _fk("customer_id", "customers.id", nullable=False),
        _fk("store_id", "stores.id", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("customer_id", "store_id", name="uq_store_customer"),
    )

    # Orders
    op.create_table(
        "orders",
        _id(),
        _fk("store_id", "stores.id", nullable=False),
        _fk("customer_id", "customers.id", nullable=False),
        _fk("delivery_option_id", "store_delivery_options.id"),
        sa.Column("fulfillment_method", sa.String(20), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("status", sa.String(30), server_default="pending", nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("delivery_fee", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("pickup_slot", sa.DateTime(timezone=True)),
        sa.Column("estimated_delivery_time", sa.DateTime(timezone=True)),
        sa.Column("observations", sa.Text()),
        sa.Column("cancellation_reason", sa.String(255)),
        sa.Column("rating", sa.SmallInteger()),
        sa.Column("feedback", sa.Text()),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("payment_proof_url", sa.Text()),
        _created_at(),
        _updated_at(),
        _deleted_at(),
        sa.CheckConstraint("rating IS NULL OR rating BETWEEN 1 AND 5", name="ck_order_rating"),
    )
    op.create_index("idx_orders_store_created", "orders", ["store_id", "created_at"])
    op.create_index("idx_orders_customer", "orders", ["customer_id"])
    op.create_index("idx_orders_status", "orders", ["status"])

    op.create_table(
        "order_items",
        _id(),
        _fk("order_id", "orders.id", nullable=False),
        _fk("product_id", "products.id", nullable=False),
        sa.Column("product_name", sa.String(200), nullable=False),
        sa.Column("product_family", sa.String(30), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("unit_cost_price", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("observations", sa.Text()),
        _created_at(),
    )
    op.create_index("idx_order_items_order", "order_items", ["order_id"])
    op.create_index("idx_order_items_product", "order_items", ["product_id"])

    op.create_table(
        "order_item_customizations",
        _id(),
        _fk("order_item_id", "order_items.id", nullable=False),
        _fk("customization_id", "product_customizations.id", nullable=False),
        sa.Column("customization_name", sa.String(100), nullable=False),
        sa.Column("customization_type", sa.String(20), nullable=False),
        sa.Column("selection_type", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
    )
    op.create_index("idx_order_item_customizations_item", "order_item_customizations", ["order_item_id"])

    op.create_table(
        "order_delivery_addresses",
        _id(),
        _fk("order_id", "orders.id", unique=True, nullable=False),
        *_address_columns(2),
    )

    op.create_table(
        "order_status_history",
        _id(),
        _fk("order_id", "orders.id", nullable=False),
        sa.Column("from_status", sa.String(30)),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("changed_by", sa.String(64)),
        sa.Column("notes", sa.Text()),
        _created_at(),
    )
    op.create_index("idx_order_status_history_order", "order_status_history", ["order_id"])


def downgrade() -> None:
    op.drop_table("order_status_history")
    op.drop_table("order_delivery_addresses")
    op.drop_table("order_item_customizations")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("store_customers")
    op.drop_table("customer_addresses")
    op.drop_table("customers")
    op.drop_table("product_category_price_limits")
    op.drop_table("product_history")
    op.drop_table("product_extra_lists")
    op.drop_table("extra_lists")
    op.drop_table("product_customizations")
    op.drop_table("products")
    op.drop_table("store_delivery_options")
    op.drop_table("store_working_hours")
    op.drop_table("store_addresses")
    op.drop_table("store_members")
    op.drop_table("stores")
    op.drop_table("merchants")
