"""
Models for the local catalog: products and their sellable variants.

A ProductVariant is the unit whose on-hand quantity is reconciled against the
marketplace. Its stock_quantity is only changed together with a StockMovement row.
"""

import uuid

from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, text, TIMESTAMP
from sqlalchemy.orm import relationship

from ..database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("timezone('utc', now())"),
        nullable=False
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("timezone('utc', now())"),
        onupdate=text("timezone('utc', now())"),
        nullable=False
    )

    name = Column(String, nullable=False)
    description = Column(String)
    sku = Column(String, unique=True)
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    cost_price = Column(Numeric(12, 2), default=0)
    is_active = Column(Boolean, default=True)

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("timezone('utc', now())"),
        nullable=False
    )

    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sku = Column(String, unique=True, nullable=True)
    price_adjustment = Column(Numeric(12, 2), default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)  # Not constrained to >= 0
    min_stock_alert = Column(Integer, nullable=False, default=5)

    product = relationship("Product", back_populates="variants")
    platform_listings = relationship("PlatformListing", back_populates="product_variant")
    stock_movements = relationship("StockMovement", back_populates="product_variant")

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, sku='{self.sku}', stock={self.stock_quantity})>"
