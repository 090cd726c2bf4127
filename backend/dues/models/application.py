# dues/models/application.py
import uuid
import enum
from sqlalchemy import Column, String, DateTime, JSON, Enum
from sqlalchemy.sql import func
from dues.database import Base


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    MATCHED = "matched"
    INVITED = "invited"
    JOINED = "joined"


def new_application_id() -> str:
    return f"app_{uuid.uuid4()}"


class Application(Base):
    __tablename__ = "applications"

    id = Column(String, primary_key=True, default=new_application_id)

    name = Column(String, nullable=False)
    student_id = Column(String, nullable=False, index=True)
    email = Column(String, nullable=True)
    department = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    status = Column(
        Enum(ApplicationStatus, name="application_status"),
        default=ApplicationStatus.PENDING,
        nullable=False,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=False)

    matched_deposit_id = Column(String, nullable=True)
    matched_at = Column(DateTime(timezone=True), nullable=True)
    invited_at = Column(DateTime(timezone=True), nullable=True)
    joined_at = Column(DateTime(timezone=True), nullable=True)

    # extra form fields, kept verbatim
    extra_fields = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)
