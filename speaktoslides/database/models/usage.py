"""Usage accounting rows: one per generated deck."""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from speaktoslides.core.database import Base


class UsageRecord(Base):
    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<UsageRecord(id={self.id}, user_id='{self.user_id}', ip_address='{self.ip_address}')>"
