from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SchedulingError, ServiceError
from app.core.notifications import NotificationDispatcher, get_notifier
from app.db.session import get_db

from .schemas import (
    ExamScheduleCreate,
    ExamScheduleResponse,
    ExamScheduleUpdate,
    ExamScheduleUpdateResponse,
    ScheduledExamItem,
)
from . import service

router = APIRouter(prefix="/api/v1/exam-schedules", tags=["exam-schedules"])


@router.post(
    "",
    response_model=List[ExamScheduleResponse],
    status_code=status.HTTP_201_CREATED,
)
async def schedule_exam(
    payload: ExamScheduleCreate,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Schedule a subject on a date. Shared subjects are booked for every department teaching them."""
    try:
        return await service.schedule_exam(db, payload, notifier=notifier)
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ScheduledExamItem])
async def list_scheduled_exams(
    year: Optional[int] = Query(None, ge=1, le=4),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_scheduled_exams(db, year=year)


@router.patch("/{schedule_id}", response_model=ExamScheduleUpdateResponse)
async def update_exam_schedule(
    schedule_id: UUID,
    payload: ExamScheduleUpdate,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Move an exam to a new date. Every department sharing the subject moves with it."""
    try:
        return await service.update_exam_schedule(db, schedule_id, payload, notifier=notifier)
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam_schedule(
    schedule_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await service.delete_exam_schedule(db, schedule_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam schedule not found")
