# storefront/data/models/payment.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    provider = Column(String, nullable=False)
    provider_ref = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String, nullable=False)
    status = Column(String, nullable=False)

    captured_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    order = relationship("OrderModel", back_populates="payments")

    # replaying a gateway transaction must never create a second row
    __table_args__ = (UniqueConstraint("provider", "provider_ref", name="u_payment_provider_ref"),)
