from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from dues.models.deposit import DepositStatus


class DepositRead(BaseModel):
    id: str
    depositor_name: str
    amount: int
    timestamp: datetime
    status: DepositStatus
    raw_notification: str

    matched_submission_id: Optional[str] = None
    matched_at: Optional[datetime] = None

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True
