# storefront/data/models/catalog.py
from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    variants = relationship("VariantModel", back_populates="product")


class VariantModel(Base):
    __tablename__ = "variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    sku = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # NULL = stock not tracked
    stock_on_hand = Column(Integer, nullable=True)

    product = relationship("ProductModel", back_populates="variants")
    prices = relationship("VariantPriceModel", back_populates="variant", cascade="all, delete-orphan")

    @property
    def is_available(self) -> bool:
        return bool(self.is_active and self.product is not None and self.product.is_active)

    def price_for(self, currency: str):
        for price in self.prices:
            if price.currency == currency:
                return price.amount
        return None


class VariantPriceModel(Base):
    __tablename__ = "variant_prices"

    id = Column(Integer, primary_key=True)
    variant_id = Column(Integer, ForeignKey("variants.id", ondelete="CASCADE"), nullable=False)
    currency = Column(String(3), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    variant = relationship("VariantModel", back_populates="prices")

    __table_args__ = (UniqueConstraint("variant_id", "currency", name="u_variant_currency"),)
