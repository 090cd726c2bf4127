from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class OperatorCreate(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=8)


class OperatorLogin(BaseModel):
    username: str
    password: str


class OperatorRead(BaseModel):
    id: str
    username: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
