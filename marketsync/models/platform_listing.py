# platform_listing.py
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, UniqueConstraint, text, TIMESTAMP
from sqlalchemy.orm import relationship

from ..database import Base
from .product import _new_id

from marketsync.core.enums import ListingStatus


class PlatformListing(Base):
    """
    Binds one product variant to one remote listing coordinate.

    external_variant_id is NULL until the variation has been resolved, or when
    the remote item has no variations at all.
    """
    __tablename__ = "platform_listings"
    __table_args__ = (
        UniqueConstraint("product_variant_id", "platform", name="uq_platform_listings_variant_platform"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("timezone('utc', now())"),
        nullable=False
    )

    product_variant_id = Column(
        String(36), ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    platform = Column(String, nullable=False)
    external_id = Column(String)
    external_variant_id = Column(String, nullable=True, index=True)
    url = Column(String)
    price = Column(Numeric(12, 2))
    stock_synced = Column(Integer, nullable=True)
    status = Column(String, default=ListingStatus.ACTIVE.value, index=True)
    last_sync_at = Column(TIMESTAMP(timezone=True), nullable=True)

    product_variant = relationship("ProductVariant", back_populates="platform_listings")

    def __repr__(self):
        return (f"<PlatformListing(id={self.id}, platform='{self.platform}', external_id='{self.external_id}', "
                f"variation='{self.external_variant_id}', stock_synced={self.stock_synced})>")
