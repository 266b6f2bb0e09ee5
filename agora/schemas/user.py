from pydantic import BaseModel
from uuid import UUID
from typing import Optional
from datetime import datetime


class UserSummary(BaseModel):
    """User public fields attached to membership listings"""
    id: UUID
    username: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
