from pydantic import BaseModel
from datetime import datetime
from typing import Any, Optional
from dues.models.activity_log import ActivityLogType


class ActivityLogRead(BaseModel):
    id: str
    type: ActivityLogType
    actor: str
    details: dict[str, Any] = {}
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True
