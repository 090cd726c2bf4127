from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Optional
from dues.models.application import ApplicationStatus


class ApplicationRead(BaseModel):
    id: str
    name: str
    student_id: str
    email: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None

    status: ApplicationStatus
    submitted_at: datetime

    matched_deposit_id: Optional[str] = None
    matched_at: Optional[datetime] = None
    invited_at: Optional[datetime] = None
    joined_at: Optional[datetime] = None

    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="extra_fields")

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True
