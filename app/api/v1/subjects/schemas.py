from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255, description="Same name in several departments = shared subject")
    department: str = Field(..., min_length=1, max_length=100, description="Department name")
    year: int = Field(..., ge=1, le=4)
    semester: Optional[int] = Field(None, ge=1, le=8)


class SubjectResponse(BaseModel):
    id: UUID
    code: str
    name: str
    department: str
    year: int
    semester: Optional[int] = None
    is_shared: bool
    created_at: datetime

    class Config:
        from_attributes = True
