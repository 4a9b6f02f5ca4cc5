from datetime import date, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import ExamAlert

from .schemas import AvailableDatesResponse, ExamAlertCreate, ExamAlertResponse, ExamAlertUpdate


def _to_response(a: ExamAlert) -> ExamAlertResponse:
    return ExamAlertResponse(
        id=a.id,
        title=f"Exam Settings - {a.exam_start_date.isoformat()} to {a.exam_end_date.isoformat()}",
        exam_start_date=a.exam_start_date,
        exam_end_date=a.exam_end_date,
        year=a.year,
        semester=a.semester,
        exam_type=a.exam_type,
        ref_id=a.ref_id,
        alert_date=a.alert_date,
        holidays=[date.fromisoformat(h) for h in (a.holidays or [])],
        created_by=a.created_by,
        created_at=a.created_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ServiceError("exam_end_date must not be before exam_start_date", status.HTTP_400_BAD_REQUEST)


def available_dates(start_date: date, end_date: date, holidays: Iterable[date] = ()) -> List[date]:
    """Weekdays from start_date to end_date inclusive, minus holidays."""
    blocked = set(holidays)
    days = []
    current = start_date
    while current <= end_date:
        if current.weekday() < 5 and current not in blocked:
            days.append(current)
        current += timedelta(days=1)
    return days


async def create_exam_alert(
    db: AsyncSession,
    payload: ExamAlertCreate,
) -> ExamAlertResponse:
    _validate_dates(payload.exam_start_date, payload.exam_end_date)
    alert = ExamAlert(
        exam_start_date=payload.exam_start_date,
        exam_end_date=payload.exam_end_date,
        year=payload.year,
        semester=payload.semester,
        exam_type=payload.exam_type.value if payload.exam_type else None,
        ref_id=payload.ref_id.strip() if payload.ref_id else None,
        alert_date=payload.alert_date or date.today(),
        holidays=sorted({h.isoformat() for h in payload.holidays}),
        created_by=payload.created_by,
    )
    db.add(alert)
    await db.commit()
    await db.refresh(alert)
    return _to_response(alert)


async def list_exam_alerts(
    db: AsyncSession,
    year: Optional[int] = None,
) -> List[ExamAlertResponse]:
    stmt = select(ExamAlert)
    if year is not None:
        stmt = stmt.where(ExamAlert.year == year)
    stmt = stmt.order_by(ExamAlert.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(a) for a in result.scalars().all()]


async def get_exam_alert(
    db: AsyncSession,
    alert_id: UUID,
) -> Optional[ExamAlertResponse]:
    alert = await db.get(ExamAlert, alert_id)
    return _to_response(alert) if alert else None


async def update_exam_alert(
    db: AsyncSession,
    alert_id: UUID,
    payload: ExamAlertUpdate,
) -> Optional[ExamAlertResponse]:
    alert = await db.get(ExamAlert, alert_id)
    if not alert:
        return None
    start_date = payload.exam_start_date or alert.exam_start_date
    end_date = payload.exam_end_date or alert.exam_end_date
    _validate_dates(start_date, end_date)
    alert.exam_start_date = start_date
    alert.exam_end_date = end_date
    if payload.year is not None:
        alert.year = payload.year
    if payload.semester is not None:
        alert.semester = payload.semester
    if payload.exam_type is not None:
        alert.exam_type = payload.exam_type.value
    if payload.ref_id is not None:
        alert.ref_id = payload.ref_id.strip()
    if payload.alert_date is not None:
        alert.alert_date = payload.alert_date
    if payload.holidays is not None:
        alert.holidays = sorted({h.isoformat() for h in payload.holidays})
    await db.commit()
    await db.refresh(alert)
    return _to_response(alert)


async def delete_exam_alert(
    db: AsyncSession,
    alert_id: UUID,
) -> bool:
    alert = await db.get(ExamAlert, alert_id)
    if not alert:
        return False
    await db.delete(alert)
    await db.commit()
    return True


async def get_available_dates(
    db: AsyncSession,
    alert_id: UUID,
) -> Optional[AvailableDatesResponse]:
    alert = await db.get(ExamAlert, alert_id)
    if not alert:
        return None
    holidays = [date.fromisoformat(h) for h in (alert.holidays or [])]
    return AvailableDatesResponse(
        alert_id=alert.id,
        dates=available_dates(alert.exam_start_date, alert.exam_end_date, holidays),
    )
