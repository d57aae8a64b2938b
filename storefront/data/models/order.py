# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, ForeignKey, String, DateTime, Numeric
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.enums import FulfillmentStatus, OrderStatus, PaymentMethod, PaymentStatus


def _now():
    return datetime.now(timezone.utc)


class OrderAddressModel(Base):
    """Copy of a customer address taken at checkout."""

    __tablename__ = "order_addresses"

    id = Column(Integer, primary_key=True)
    source_address_id = Column(Integer, nullable=True)

    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    line1 = Column(String, nullable=False)
    line2 = Column(String, nullable=True)
    city = Column(String, nullable=False)
    country = Column(String, nullable=False)
    postal_code = Column(String, nullable=False)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_no = Column(String, nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="SET NULL"), nullable=True)

    currency = Column(String(3), nullable=False)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String, nullable=False, default=PaymentStatus.UNPAID.value)
    fulfillment_status = Column(String, nullable=False, default=FulfillmentStatus.UNFULFILLED.value)
    payment_method = Column(String, nullable=False, default=PaymentMethod.CARD.value)

    subtotal = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    billing_address_id = Column(Integer, ForeignKey("order_addresses.id"), nullable=False)
    shipping_address_id = Column(Integer, ForeignKey("order_addresses.id"), nullable=False)

    # optimistic locking for status writes
    version = Column(Integer, nullable=False, default=1)
    # set once stock has been decremented for this order
    stock_reserved = Column(Boolean, nullable=False, default=False)

    placed_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
    billing_address = relationship("OrderAddressModel", foreign_keys=[billing_address_id])
    shipping_address = relationship("OrderAddressModel", foreign_keys=[shipping_address_id])
    payments = relationship("PaymentModel", back_populates="order", order_by="PaymentModel.id")


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # plain column, the variant may be deleted later
    variant_id = Column(Integer, nullable=False)

    name_snapshot = Column(String, nullable=False)
    sku_snapshot = Column(String, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("OrderModel", back_populates="items")
