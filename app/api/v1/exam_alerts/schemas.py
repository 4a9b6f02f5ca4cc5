from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import ExamType


class ExamAlertCreate(BaseModel):
    """Open an exam window for one year/semester. Coordinators schedule inside it."""

    exam_start_date: date
    exam_end_date: date = Field(..., description="Inclusive; may equal exam_start_date")
    year: int = Field(..., ge=1, le=4)
    semester: Optional[int] = Field(None, ge=1, le=8)
    exam_type: Optional[ExamType] = None
    ref_id: Optional[str] = Field(None, max_length=100)
    alert_date: Optional[date] = Field(None, description="Defaults to today")
    holidays: List[date] = Field(default_factory=list)
    created_by: Optional[str] = Field(None, max_length=255)


class ExamAlertUpdate(BaseModel):
    exam_start_date: Optional[date] = None
    exam_end_date: Optional[date] = None
    year: Optional[int] = Field(None, ge=1, le=4)
    semester: Optional[int] = Field(None, ge=1, le=8)
    exam_type: Optional[ExamType] = None
    ref_id: Optional[str] = Field(None, max_length=100)
    alert_date: Optional[date] = None
    holidays: Optional[List[date]] = None


class ExamAlertResponse(BaseModel):
    id: UUID
    title: str
    exam_start_date: date
    exam_end_date: date
    year: int
    semester: Optional[int] = None
    exam_type: Optional[str] = None
    ref_id: Optional[str] = None
    alert_date: date
    holidays: List[date]
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AvailableDatesResponse(BaseModel):
    alert_id: UUID
    dates: List[date]
