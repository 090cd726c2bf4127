# dues/models/activity_log.py
import uuid
import enum
from sqlalchemy import Column, String, DateTime, JSON, Enum
from sqlalchemy.sql import func
from dues.database import Base


class ActivityLogType(str, enum.Enum):
    DEPOSIT_RECEIVE = "DEPOSIT_RECEIVE"
    SUBMISSION_RECEIVE = "SUBMISSION_RECEIVE"
    PAYMENT_MATCH_AUTO = "PAYMENT_MATCH_AUTO"
    PAYMENT_MATCH_MANUAL = "PAYMENT_MATCH_MANUAL"
    PAYMENT_MATCH_FAILED = "PAYMENT_MATCH_FAILED"
    PAYMENT_UNMATCH = "PAYMENT_UNMATCH"
    INVITE_EMAIL_SENT = "INVITE_EMAIL_SENT"
    INVITE_EMAIL_FAILED = "INVITE_EMAIL_FAILED"
    SUBMISSION_DELETE = "SUBMISSION_DELETE"
    DEPOSIT_DELETE = "DEPOSIT_DELETE"


# actor recorded for engine-initiated entries
SYSTEM_ACTOR = "system"


def new_log_id() -> str:
    return f"log_{uuid.uuid4()}"


class ActivityLog(Base):
    """Operator-facing audit trail. Rows are only ever inserted."""

    __tablename__ = "activity_logs"

    id = Column(String, primary_key=True, default=new_log_id)

    type = Column(Enum(ActivityLogType, name="activity_log_type"), nullable=False, index=True)
    actor = Column(String, nullable=False, default=SYSTEM_ACTOR)  # operator username or "system"
    details = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
