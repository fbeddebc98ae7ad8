# marketsync/models/app_setting.py
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB
from marketsync.database import Base


class AppSetting(Base):
    """
    Key/value state that must outlive a process, e.g. the Mercado Libre
    OAuth token pair under 'ml_tokens'.
    """
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSONB, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<AppSetting {self.key}>"
