# dues/models/outbox.py
import uuid
from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.sql import func
from dues.database import Base

APPLICATION_MATCHED = "application_matched"


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(String, primary_key=True, default=lambda: f"evt_{uuid.uuid4()}")

    kind = Column(String, nullable=False, default=APPLICATION_MATCHED)
    application_id = Column(String, nullable=False, index=True)
    match_id = Column(String, nullable=True)

    attempts = Column(Integer, nullable=False, default=0)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    outcome = Column(String, nullable=True)  # sent | skipped

    created_at = Column(DateTime(timezone=True), server_default=func.now())
