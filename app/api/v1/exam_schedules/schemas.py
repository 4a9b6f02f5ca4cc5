from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.enums import ExamType


class ExamScheduleCreate(BaseModel):
    subject_id: str = Field(
        ...,
        description="Subject id, or staff-subject-<staff id> for a subject held on a staff profile",
    )
    exam_date: date = Field(..., description="ISO date, e.g. 2025-08-04")
    assigned_by: str = Field(..., min_length=1, max_length=255)
    exam_type: ExamType

    @field_validator("subject_id", "assigned_by")
    @classmethod
    def strip_value(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ExamScheduleResponse(BaseModel):
    id: UUID
    subject_id: UUID
    exam_date: date
    department_id: UUID
    assigned_by: str
    priority_department: Optional[UUID] = None
    exam_type: str
    created_at: datetime

    class Config:
        from_attributes = True


class ScheduledExamItem(BaseModel):
    """Committed schedule joined with its subject and department, for timetable display."""

    id: UUID
    subject_id: UUID
    subject_name: str
    subject_code: str
    department: str
    exam_date: date
    exam_type: str
    year: Optional[int] = None
    semester: Optional[int] = None
    assigned_by: str
    priority_department: Optional[UUID] = None


class ExamScheduleUpdate(BaseModel):
    exam_date: Optional[date] = None
    exam_type: Optional[ExamType] = None
    swap_conflicts: bool = Field(
        True,
        description="Give a clashing exam in the same department the date being vacated",
    )


class ExamScheduleUpdateResponse(BaseModel):
    """Rows of the rescheduled subject, the requested one first, plus any exams that swapped dates."""

    schedules: List[ExamScheduleResponse]
    swapped: List[ExamScheduleResponse] = []
