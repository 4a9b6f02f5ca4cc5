from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)


class DepartmentResponse(BaseModel):
    id: UUID
    code: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True
