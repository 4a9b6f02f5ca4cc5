from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.models import ExamSchedule, SubjectDetail

from . import engine
from .engine import Notifier
from .schemas import (
    ExamScheduleCreate,
    ExamScheduleResponse,
    ExamScheduleUpdate,
    ExamScheduleUpdateResponse,
    ScheduledExamItem,
)
from .store import SqlAlchemyScheduleStore


def _to_response(s: ExamSchedule) -> ExamScheduleResponse:
    return ExamScheduleResponse(
        id=s.id,
        subject_id=s.subject_id,
        exam_date=s.exam_date,
        department_id=s.department_id,
        assigned_by=s.assigned_by,
        priority_department=s.priority_department,
        exam_type=s.exam_type,
        created_at=s.created_at,
    )


def _to_item(s: ExamSchedule) -> ScheduledExamItem:
    subject = s.subject
    return ScheduledExamItem(
        id=s.id,
        subject_id=s.subject_id,
        subject_name=subject.name if subject else "Unknown Subject",
        subject_code=subject.subcode if subject else "Unknown",
        department=s.department.name if s.department else "Unknown",
        exam_date=s.exam_date,
        exam_type=s.exam_type,
        year=subject.year if subject else None,
        semester=subject.sem if subject else None,
        assigned_by=s.assigned_by,
        priority_department=s.priority_department,
    )


async def schedule_exam(
    db: AsyncSession,
    payload: ExamScheduleCreate,
    notifier: Optional[Notifier] = None,
) -> List[ExamScheduleResponse]:
    store = SqlAlchemyScheduleStore(db, isolation_level=settings.schedule_isolation_level or None)
    records = await engine.schedule_exam(
        store,
        engine.parse_subject_ref(payload.subject_id),
        payload.exam_date,
        payload.assigned_by,
        payload.exam_type,
        notifier=notifier,
    )
    return [_to_response(r) for r in records]


async def update_exam_schedule(
    db: AsyncSession,
    schedule_id: UUID,
    payload: ExamScheduleUpdate,
    notifier: Optional[Notifier] = None,
) -> ExamScheduleUpdateResponse:
    store = SqlAlchemyScheduleStore(db, isolation_level=settings.schedule_isolation_level or None)
    result = await engine.reschedule_exam(
        store,
        schedule_id,
        exam_date=payload.exam_date,
        exam_type=payload.exam_type,
        swap_conflicts=payload.swap_conflicts,
        notifier=notifier,
    )
    return ExamScheduleUpdateResponse(
        schedules=[_to_response(r) for r in result.records],
        swapped=[_to_response(r) for r in result.swapped],
    )


async def list_scheduled_exams(
    db: AsyncSession,
    year: Optional[int] = None,
) -> List[ScheduledExamItem]:
    stmt = select(ExamSchedule).join(SubjectDetail, ExamSchedule.subject_id == SubjectDetail.id)
    if year is not None:
        stmt = stmt.where(SubjectDetail.year == year)
    stmt = stmt.order_by(ExamSchedule.exam_date, SubjectDetail.name)
    result = await db.execute(stmt)
    return [_to_item(s) for s in result.scalars().all()]


async def delete_exam_schedule(
    db: AsyncSession,
    schedule_id: UUID,
) -> bool:
    obj = await db.get(ExamSchedule, schedule_id)
    if not obj:
        return False
    await db.delete(obj)
    await db.commit()
    return True
