import asyncio
import os
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncGenerator, Dict, Iterable, List, Optional
from uuid import UUID

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["SCHEDULE_ISOLATION_LEVEL"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.exam_schedules.store import ScheduleMove, ScheduleStore
from app.core.exceptions import AlreadyScheduled, DepartmentDoubleBooked
from app.core.models import Department, ExamSchedule, StaffDetail, SubjectDetail
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class InMemoryScheduleStore(ScheduleStore):
    """ScheduleStore over dicts. One lock serializes transactions; a failed transaction restores its snapshot."""

    def __init__(self) -> None:
        self.departments: Dict[UUID, Department] = {}
        self.subjects: Dict[UUID, SubjectDetail] = {}
        self.staff: Dict[UUID, StaffDetail] = {}
        self.schedules: Dict[UUID, ExamSchedule] = {}
        self.insert_failures: List[Exception] = []
        self.commits = 0
        self._lock = asyncio.Lock()

    # Seeding helpers

    def add_department(self, name: str, code: Optional[str] = None) -> Department:
        dept = Department(id=uuid.uuid4(), name=name, code=code or name.upper(), created_at=datetime.utcnow())
        self.departments[dept.id] = dept
        return dept

    def add_subject(self, name: str, code: str, department: str, year: int = 1) -> SubjectDetail:
        subj = SubjectDetail(
            id=uuid.uuid4(),
            name=name,
            subcode=code,
            department=department,
            year=year,
            is_shared=False,
            created_at=datetime.utcnow(),
        )
        self.subjects[subj.id] = subj
        return subj

    def add_staff(
        self,
        name: str,
        department: str,
        subject_name: Optional[str] = None,
        subject_code: Optional[str] = None,
    ) -> StaffDetail:
        staff = StaffDetail(
            id=uuid.uuid4(),
            name=name,
            email=f"{name.lower()}@example.edu",
            department=department,
            role="teacher",
            subject_name=subject_name,
            subject_code=subject_code,
        )
        self.staff[staff.id] = staff
        return staff

    def add_schedule(self, subject: SubjectDetail, department: Department, exam_date: date) -> ExamSchedule:
        record = ExamSchedule(
            id=uuid.uuid4(),
            subject_id=subject.id,
            subject=subject,
            exam_date=exam_date,
            department_id=department.id,
            department=department,
            assigned_by="seed",
            priority_department=None,
            exam_type="IA1",
            created_at=datetime.utcnow(),
        )
        self.schedules[record.id] = record
        return record

    # ScheduleStore

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            snapshot = (dict(self.subjects), dict(self.schedules))
            try:
                yield self
            except Exception:
                self.subjects, self.schedules = snapshot
                raise
            self.commits += 1

    async def get_subject(self, subject_id: UUID) -> Optional[SubjectDetail]:
        await asyncio.sleep(0)
        return self.subjects.get(subject_id)

    async def get_staff(self, staff_id: UUID) -> Optional[StaffDetail]:
        await asyncio.sleep(0)
        return self.staff.get(staff_id)

    async def find_subjects_by_name(self, name: str) -> List[SubjectDetail]:
        await asyncio.sleep(0)
        return [s for s in self.subjects.values() if s.name == name]

    async def find_subject_by_code(self, code: str) -> Optional[SubjectDetail]:
        await asyncio.sleep(0)
        return next((s for s in self.subjects.values() if s.subcode == code), None)

    async def find_department_by_name(self, name: str) -> Optional[Department]:
        await asyncio.sleep(0)
        return next((d for d in self.departments.values() if d.name == name), None)

    async def find_departments_by_names(self, names: Iterable[str]) -> List[Department]:
        await asyncio.sleep(0)
        wanted = set(names)
        return [d for d in self.departments.values() if d.name in wanted]

    async def find_schedules_by_date(self, exam_date: date) -> List[ExamSchedule]:
        await asyncio.sleep(0)
        return [s for s in self.schedules.values() if s.exam_date == exam_date]

    async def find_schedules_by_subject_name(self, name: str) -> List[ExamSchedule]:
        await asyncio.sleep(0)
        return [s for s in self.schedules.values() if self.subjects[s.subject_id].name == name]

    async def get_schedule(self, schedule_id: UUID) -> Optional[ExamSchedule]:
        await asyncio.sleep(0)
        return self.schedules.get(schedule_id)

    async def find_schedule(self, subject_id: UUID, department_id: UUID) -> Optional[ExamSchedule]:
        await asyncio.sleep(0)
        return next(
            (s for s in self.schedules.values() if s.subject_id == subject_id and s.department_id == department_id),
            None,
        )

    async def insert_subject(self, subject: SubjectDetail) -> SubjectDetail:
        await asyncio.sleep(0)
        subject.id = subject.id or uuid.uuid4()
        subject.created_at = datetime.utcnow()
        self.subjects[subject.id] = subject
        return subject

    async def insert_schedules(self, records: List[ExamSchedule]) -> List[ExamSchedule]:
        for record in records:
            await asyncio.sleep(0)
            if self.insert_failures:
                raise self.insert_failures.pop(0)
            for existing in self.schedules.values():
                if existing.department_id != record.department_id:
                    continue
                if existing.subject_id == record.subject_id:
                    raise AlreadyScheduled()
                if existing.exam_date == record.exam_date:
                    raise DepartmentDoubleBooked()
            record.id = uuid.uuid4()
            record.created_at = datetime.utcnow()
            self.schedules[record.id] = record
        return records

    async def move_schedules(self, moves: List[ScheduleMove]) -> List[ExamSchedule]:
        await asyncio.sleep(0)
        if self.insert_failures:
            raise self.insert_failures.pop(0)
        new_dates = {move.record.id: move.exam_date for move in moves}
        taken = set()
        for record in self.schedules.values():
            key = (record.department_id, new_dates.get(record.id, record.exam_date))
            if key in taken:
                raise DepartmentDoubleBooked()
            taken.add(key)
        for move in moves:
            move.record.exam_date = move.exam_date
            move.record.exam_type = move.exam_type
        return [move.record for move in moves]


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices = []

    def publish(self, notice) -> bool:
        self.notices.append(notice)
        return True


@pytest.fixture()
def memory_store() -> InMemoryScheduleStore:
    return InMemoryScheduleStore()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory SQLite database per test, wired into the FastAPI get_db dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
