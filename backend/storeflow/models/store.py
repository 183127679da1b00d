"""Store, its address, weekly hours and delivery options."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, SmallInteger, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from storeflow.database import Base, SoftDeleteMixin, utcnow


class Store(SoftDeleteMixin, Base):
    __tablename__ = "stores"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    merchant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("merchants.id")
    )
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(40), default="outros")
    custom_category: Mapped[str | None] = mapped_column(String(100))
    avatar_url: Mapped[str | None] = mapped_column(Text)
    banner_url: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    delivery_time: Mapped[str | None] = mapped_column(String(50))

    accepts_payment_credit_card: Mapped[bool] = mapped_column(Boolean, default=True)
    accepts_payment_debit_card: Mapped[bool] = mapped_column(Boolean, default=True)
    accepts_payment_pix: Mapped[bool] = mapped_column(Boolean, default=True)
    accepts_payment_cash: Mapped[bool] = mapped_column(Boolean, default=True)

    fulfillment_delivery_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    fulfillment_pickup_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    fulfillment_pickup_instructions: Mapped[str | None] = mapped_column(Text)

    min_order_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    free_delivery_above: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    primary_color: Mapped[str | None] = mapped_column(String(7))
    secondary_color: Mapped[str | None] = mapped_column(String(7))
    accent_color: Mapped[str | None] = mapped_column(String(7))
    text_color: Mapped[str | None] = mapped_column(String(7))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow
    )

    merchant = relationship("Merchant", back_populates="stores")
    members = relationship("StoreMember", back_populates="store")
    address = relationship(
        "StoreAddress", back_populates="store", uselist=False, cascade="all, delete-orphan"
    )
    working_hours = relationship(
        "WorkingHours",
        back_populates="store",
        cascade="all, delete-orphan",
        order_by="WorkingHours.day_of_week",
    )
    delivery_options = relationship("StoreDeliveryOption", back_populates="store")
    products = relationship("Product", back_populates="store")

    def accepts_payment(self, method: str) -> bool:
        flags = {
            "credit_card": self.accepts_payment_credit_card,
            "debit_card": self.accepts_payment_debit_card,
            "pix": self.accepts_payment_pix,
            "cash": self.accepts_payment_cash,
        }
        return bool(flags.get(method, False))

    def fulfillment_enabled(self, method: str) -> bool:
        if method == "delivery":
            return bool(self.fulfillment_delivery_enabled)
        if method == "pickup":
            return bool(self.fulfillment_pickup_enabled)
        return False


class StoreAddress(Base):
    __tablename__ = "store_addresses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id"), unique=True
    )
    street: Mapped[str] = mapped_column(String(200))
    number: Mapped[str] = mapped_column(String(20))
    neighborhood: Mapped[str] = mapped_column(String(100))
    city: Mapped[str] = mapped_column(String(100))
    state: Mapped[str] = mapped_column(String(2))
    zip_code: Mapped[str] = mapped_column(String(12))
    complement: Mapped[str | None] = mapped_column(String(200))
    reference: Mapped[str | None] = mapped_column(String(200))

    store = relationship("Store", back_populates="address")


class WorkingHours(Base):
    """One row per weekday; ``day_of_week`` 0 is Sunday."""

    __tablename__ = "store_working_hours"
    __table_args__ = (
        UniqueConstraint("store_id", "day_of_week", name="uq_store_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id")
    )
    day_of_week: Mapped[int] = mapped_column(SmallInteger)
    open_time: Mapped[str | None] = mapped_column(String(5))  # HH:MM
    close_time: Mapped[str | None] = mapped_column(String(5))  # HH:MM
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False)

    store = relationship("Store", back_populates="working_hours")


class StoreDeliveryOption(SoftDeleteMixin, Base):
    __tablename__ = "store_delivery_options"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id")
    )
    name: Mapped[str] = mapped_column(String(100))
    fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    estimated_minutes: Mapped[int | None] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    store = relationship("Store", back_populates="delivery_options")
