"""Product catalog models: products, customizations, extra lists and history."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Table, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from storeflow.database import Base, SoftDeleteMixin, utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")


product_extra_lists = Table(
    "product_extra_lists",
    Base.metadata,
    Column("product_id", UUID(as_uuid=True), ForeignKey("products.id"), primary_key=True),
    Column("extra_list_id", UUID(as_uuid=True), ForeignKey("extra_lists.id"), primary_key=True),
)


class Product(SoftDeleteMixin, Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    cost_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    family: Mapped[str] = mapped_column(String(30), default="finished_product")
    category: Mapped[str] = mapped_column(String(100))
    custom_category: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    image_url: Mapped[str | None] = mapped_column(Text)
    preparation_time: Mapped[int | None] = mapped_column(Integer)
    nutritional_info: Mapped[dict | None] = mapped_column(JSONType)
    created_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow
    )

    store = relationship("Store", back_populates="products")
    customizations = relationship("ProductCustomization", back_populates="product")
    extra_lists = relationship("ExtraList", secondary=product_extra_lists)
    history = relationship("ProductHistory", back_populates="product")


class ProductCustomization(SoftDeleteMixin, Base):
    __tablename__ = "product_customizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("products.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(100))
    customization_type: Mapped[str] = mapped_column(String(20))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    selection_type: Mapped[str] = mapped_column(String(20), default="boolean")
    selection_group: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    product = relationship("Product", back_populates="customizations")


class ExtraList(SoftDeleteMixin, Base):
    """A named, store-scoped group of add-ons applicable to many products."""

    __tablename__ = "extra_lists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id")
    )
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class ProductHistory(Base):
    """Append-only audit log; one row per product mutation."""

    __tablename__ = "product_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("products.id"), index=True
    )
    change_type: Mapped[str] = mapped_column(String(20))
    previous_data: Mapped[dict | None] = mapped_column(JSONType)
    new_data: Mapped[dict | None] = mapped_column(JSONType)
    changed_fields: Mapped[list | None] = mapped_column(JSONType)
    changed_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    product = relationship("Product", back_populates="history")


class ProductCategoryPriceLimit(Base):
    __tablename__ = "product_category_price_limits"
    __table_args__ = (
        UniqueConstraint("store_id", "category", name="uq_store_category_limit"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id")
    )
    category: Mapped[str] = mapped_column(String(100))
    min_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    max_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
