# marketsync/models/stock_movement.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from marketsync.database import Base


class StockMovement(Base):
    """
    Append-only ledger of on-hand quantity changes.

    Rows are inserted in the same transaction as the quantity write they
    describe and are never updated or deleted. For any variant,
    initial quantity + sum(quantity) equals product_variants.stock_quantity.
    """
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)  # Tie-breaker for equal created_at
    product_variant_id = Column(
        String(36), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(String(32), nullable=False, index=True)  # received, sold, adjusted, sync-reconciled
    quantity = Column(Integer, nullable=False)  # Signed delta
    reference = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    product_variant = relationship("ProductVariant", back_populates="stock_movements")

    def __repr__(self):
        return (f"<StockMovement(id={self.id}, variant={self.product_variant_id}, "
                f"kind='{self.kind}', delta={self.quantity})>")
