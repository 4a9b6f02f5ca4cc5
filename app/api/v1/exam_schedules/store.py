"""
Catalog and schedule queries used by the scheduling engine.

ScheduleStore is the seam between the engine and persistence. Every method may
suspend; every failure of the underlying store surfaces as PersistenceError
(or AlreadyScheduled / DepartmentDoubleBooked when a uniqueness constraint
caught a concurrent writer).
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncIterator, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import make_transient

from app.core.exceptions import AlreadyScheduled, DepartmentDoubleBooked, PersistenceError, ServiceError
from app.core.models import Department, ExamSchedule, StaffDetail, SubjectDetail

logger = logging.getLogger(__name__)

SERIALIZATION_FAILURE_SQLSTATE = "40001"


@dataclass
class ScheduleMove:
    record: ExamSchedule
    exam_date: date
    exam_type: str


class ScheduleStore(ABC):
    @abstractmethod
    def transaction(self) -> "AsyncIterator[ScheduleStore]":
        """Async context manager: commit on success, discard everything on error."""

    @abstractmethod
    async def get_subject(self, subject_id: UUID) -> Optional[SubjectDetail]: ...

    @abstractmethod
    async def get_staff(self, staff_id: UUID) -> Optional[StaffDetail]: ...

    @abstractmethod
    async def find_subjects_by_name(self, name: str) -> List[SubjectDetail]: ...

    @abstractmethod
    async def find_subject_by_code(self, code: str) -> Optional[SubjectDetail]: ...

    @abstractmethod
    async def find_department_by_name(self, name: str) -> Optional[Department]: ...

    @abstractmethod
    async def find_departments_by_names(self, names: Iterable[str]) -> List[Department]: ...

    @abstractmethod
    async def find_schedules_by_date(self, exam_date: date) -> List[ExamSchedule]: ...

    @abstractmethod
    async def find_schedules_by_subject_name(self, name: str) -> List[ExamSchedule]: ...

    @abstractmethod
    async def get_schedule(self, schedule_id: UUID) -> Optional[ExamSchedule]: ...

    @abstractmethod
    async def find_schedule(self, subject_id: UUID, department_id: UUID) -> Optional[ExamSchedule]: ...

    @abstractmethod
    async def insert_subject(self, subject: SubjectDetail) -> SubjectDetail: ...

    @abstractmethod
    async def insert_schedules(self, records: List[ExamSchedule]) -> List[ExamSchedule]: ...

    @abstractmethod
    async def move_schedules(self, moves: List[ScheduleMove]) -> List[ExamSchedule]:
        """Apply every move at once. Dates may be exchanged between rows of one department."""


def is_serialization_failure(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == SERIALIZATION_FAILURE_SQLSTATE:
        return True
    return "could not serialize access" in str(orig or exc)


def integrity_error_to_service_error(exc: IntegrityError) -> ServiceError:
    """Map a uniqueness violation on exam_schedules to the scheduling error it stands for."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    if "uq_exam_schedule_subject_department" in text or (
        "exam_schedules.subject_id" in text and "exam_schedules.department_id" in text
    ):
        return AlreadyScheduled()
    if "uq_exam_schedule_department_date" in text or "exam_schedules.exam_date" in text:
        return DepartmentDoubleBooked()
    return PersistenceError(f"Failed to create exam schedule: {text}")


class SqlAlchemyScheduleStore(ScheduleStore):
    """ScheduleStore over an AsyncSession. The session must not be shared with other in-flight work."""

    def __init__(self, db: AsyncSession, isolation_level: Optional[str] = None) -> None:
        self.db = db
        self.isolation_level = isolation_level

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlAlchemyScheduleStore"]:
        if self.isolation_level:
            if self.db.in_transaction():
                logger.debug("Session already in a transaction; isolation level %s not applied", self.isolation_level)
            else:
                await self.db.connection(execution_options={"isolation_level": self.isolation_level})
        try:
            yield self
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise integrity_error_to_service_error(e) from e
        except DBAPIError as e:
            await self.db.rollback()
            if is_serialization_failure(e):
                raise PersistenceError("Concurrent scheduling conflict, please retry", retryable=True) from e
            raise PersistenceError(f"Schedule store unavailable: {e.orig or e}") from e
        except Exception:
            await self.db.rollback()
            raise

    async def get_subject(self, subject_id: UUID) -> Optional[SubjectDetail]:
        return await self.db.get(SubjectDetail, subject_id)

    async def get_staff(self, staff_id: UUID) -> Optional[StaffDetail]:
        return await self.db.get(StaffDetail, staff_id)

    async def find_subjects_by_name(self, name: str) -> List[SubjectDetail]:
        result = await self.db.execute(
            select(SubjectDetail).where(SubjectDetail.name == name).order_by(SubjectDetail.department)
        )
        return list(result.scalars().all())

    async def find_subject_by_code(self, code: str) -> Optional[SubjectDetail]:
        result = await self.db.execute(select(SubjectDetail).where(SubjectDetail.subcode == code).limit(1))
        return result.scalars().first()

    async def find_department_by_name(self, name: str) -> Optional[Department]:
        result = await self.db.execute(select(Department).where(Department.name == name))
        return result.scalar_one_or_none()

    async def find_departments_by_names(self, names: Iterable[str]) -> List[Department]:
        names = list(names)
        if not names:
            return []
        result = await self.db.execute(select(Department).where(Department.name.in_(names)))
        return list(result.scalars().all())

    async def find_schedules_by_date(self, exam_date: date) -> List[ExamSchedule]:
        result = await self.db.execute(select(ExamSchedule).where(ExamSchedule.exam_date == exam_date))
        return list(result.scalars().all())

    async def find_schedules_by_subject_name(self, name: str) -> List[ExamSchedule]:
        # Originating rows (no priority department) first
        result = await self.db.execute(
            select(ExamSchedule)
            .join(SubjectDetail, ExamSchedule.subject_id == SubjectDetail.id)
            .where(SubjectDetail.name == name)
            .order_by(ExamSchedule.priority_department.is_not(None))
        )
        return list(result.scalars().all())

    async def find_schedule(self, subject_id: UUID, department_id: UUID) -> Optional[ExamSchedule]:
        result = await self.db.execute(
            select(ExamSchedule).where(
                ExamSchedule.subject_id == subject_id,
                ExamSchedule.department_id == department_id,
            )
        )
        return result.scalar_one_or_none()

    async def insert_subject(self, subject: SubjectDetail) -> SubjectDetail:
        self.db.add(subject)
        await self.db.flush()
        return subject

    async def insert_schedules(self, records: List[ExamSchedule]) -> List[ExamSchedule]:
        self.db.add_all(records)
        await self.db.flush()
        return records

    async def get_schedule(self, schedule_id: UUID) -> Optional[ExamSchedule]:
        return await self.db.get(ExamSchedule, schedule_id)

    async def move_schedules(self, moves: List[ScheduleMove]) -> List[ExamSchedule]:
        # (department_id, exam_date) is checked per row, so a swap cannot be two UPDATEs.
        # Remove the moved rows first and write them back with their new values.
        for move in moves:
            await self.db.delete(move.record)
        await self.db.flush()
        for move in moves:
            make_transient(move.record)
            move.record.exam_date = move.exam_date
            move.record.exam_type = move.exam_type
            self.db.add(move.record)
        await self.db.flush()
        return [move.record for move in moves]
