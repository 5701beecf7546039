from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from storefront.models.database import Base


class NotificationQueueItem(Base):
    __tablename__ = "notification_queue"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(32), nullable=False)  # order_status | new_product
    payload = Column(JSON, nullable=False)
    status = Column(String(16), nullable=False, default="pending", index=True)  # pending | processing | completed | failed
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
