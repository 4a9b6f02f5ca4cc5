from typing import List

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import Department

from .schemas import DepartmentCreate, DepartmentResponse


def _to_response(d: Department) -> DepartmentResponse:
    return DepartmentResponse(id=d.id, code=d.code, name=d.name, created_at=d.created_at)


async def create_department(
    db: AsyncSession,
    payload: DepartmentCreate,
) -> DepartmentResponse:
    code = payload.code.strip().upper()[:20]
    # Subjects and staff refer to departments by trimmed name
    name = payload.name.strip()
    try:
        dept = Department(code=code, name=name)
        db.add(dept)
        await db.commit()
        await db.refresh(dept)
        return _to_response(dept)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Department code or name already exists", status.HTTP_409_CONFLICT)


async def list_departments(db: AsyncSession) -> List[DepartmentResponse]:
    result = await db.execute(select(Department).order_by(Department.name))
    return [_to_response(d) for d in result.scalars().all()]
