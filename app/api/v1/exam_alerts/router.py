from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import AvailableDatesResponse, ExamAlertCreate, ExamAlertResponse, ExamAlertUpdate
from . import service

router = APIRouter(prefix="/api/v1/exam-alerts", tags=["exam-alerts"])


@router.post(
    "",
    response_model=ExamAlertResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_exam_alert(
    payload: ExamAlertCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.create_exam_alert(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ExamAlertResponse])
async def list_exam_alerts(
    year: Optional[int] = Query(None, ge=1, le=4),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_exam_alerts(db, year=year)


@router.get("/{alert_id}", response_model=ExamAlertResponse)
async def get_exam_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    obj = await service.get_exam_alert(db, alert_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam alert not found")
    return obj


@router.put("/{alert_id}", response_model=ExamAlertResponse)
async def update_exam_alert(
    alert_id: UUID,
    payload: ExamAlertUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        obj = await service.update_exam_alert(db, alert_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam alert not found")
    return obj


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await service.delete_exam_alert(db, alert_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam alert not found")


@router.get("/{alert_id}/available-dates", response_model=AvailableDatesResponse)
async def get_available_dates(
    alert_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    obj = await service.get_available_dates(db, alert_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam alert not found")
    return obj
