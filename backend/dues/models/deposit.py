# dues/models/deposit.py
import uuid
import enum
from sqlalchemy import Column, String, DateTime, BigInteger, Enum
from sqlalchemy.sql import func
from dues.database import Base


class DepositStatus(str, enum.Enum):
    PENDING = "pending"
    MATCHED = "matched"
    EXPIRED = "expired"


def new_deposit_id() -> str:
    return f"dep_{uuid.uuid4()}"


class Deposit(Base):
    __tablename__ = "deposits"

    id = Column(String, primary_key=True, default=new_deposit_id)

    depositor_name = Column(String, nullable=False)  # as printed in the notification
    amount = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    raw_notification = Column(String, nullable=False)

    status = Column(
        Enum(DepositStatus, name="deposit_status"),
        default=DepositStatus.PENDING,
        nullable=False,
        index=True,
    )
    matched_submission_id = Column(String, nullable=True)
    matched_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)
