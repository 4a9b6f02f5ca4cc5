from typing import List, Optional

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import Department, SubjectDetail

from .schemas import SubjectCreate, SubjectResponse


def _to_response(s: SubjectDetail) -> SubjectResponse:
    return SubjectResponse(
        id=s.id,
        code=s.subcode,
        name=s.name,
        department=s.department,
        year=s.year,
        semester=s.sem,
        is_shared=s.is_shared,
        created_at=s.created_at,
    )


async def create_subject(
    db: AsyncSession,
    payload: SubjectCreate,
) -> SubjectResponse:
    department = payload.department.strip()
    dept = await db.execute(select(Department.id).where(Department.name == department))
    if dept.scalar_one_or_none() is None:
        raise ServiceError("Invalid department", status.HTTP_400_BAD_REQUEST)
    code = payload.code.strip().upper()
    try:
        subj = SubjectDetail(
            subcode=code,
            name=payload.name.strip(),
            department=department,
            year=payload.year,
            sem=payload.semester,
            is_shared=False,
        )
        db.add(subj)
        await db.commit()
        await db.refresh(subj)
        return _to_response(subj)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            f"Subject code '{code}' already exists in department {department}",
            status.HTTP_409_CONFLICT,
        )


async def list_subjects(
    db: AsyncSession,
    department: Optional[str] = None,
    year: Optional[int] = None,
) -> List[SubjectResponse]:
    stmt = select(SubjectDetail)
    if department is not None:
        stmt = stmt.where(SubjectDetail.department == department.strip())
    if year is not None:
        stmt = stmt.where(SubjectDetail.year == year)
    stmt = stmt.order_by(SubjectDetail.department, SubjectDetail.subcode)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]
