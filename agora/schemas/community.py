from pydantic import BaseModel, Field, validator
from uuid import UUID
from typing import Optional
from datetime import datetime


class CommunityCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    logo_url: Optional[str] = Field(None, max_length=500)
    require_approval: bool = False
    allow_public_voting: bool = False
    max_members: Optional[int] = Field(None, ge=1)
    voting_threshold: Optional[int] = Field(None, ge=1, le=100)

    @validator('name')
    def validate_name(cls, v):
        if not v.replace('-', '').replace('_', '').isalnum():
            raise ValueError('Community name can only contain letters, numbers, hyphens, and underscores')
        return v.lower()


class CommunityOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool
    require_approval: bool
    allow_public_voting: bool
    max_members: Optional[int] = None
    voting_threshold: Optional[int] = None
    created_by: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommunitySummary(BaseModel):
    """Community public fields attached to membership listings"""
    id: UUID
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
