# marketsync/models/activity_log.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB
from marketsync.database import Base

class ActivityLog(Base):
    """
    Records significant activities for auditing and monitoring:
    - Marketplace sync runs (direction, synced/total, errors)
    - Manual stock adjustments
    - Listing links created or re-pointed
    - Marketplace items imported as products
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False, index=True)  # 'sync', 'adjust', 'link', 'import'
    entity_type = Column(String(50), nullable=False, index=True)  # 'platform', 'product_variant', 'listing', 'product'
    entity_id = Column(String(100), nullable=False, index=True)
    platform = Column(String(50), nullable=True, index=True)

    details = Column(JSONB, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity_type} {self.entity_id}>"
