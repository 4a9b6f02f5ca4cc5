"""
Exam scheduling engine.

A request names a subject and a date. The engine resolves the requesting
department, rejects the request if it would double-book a department or break
date synchronization of a shared subject, then writes one schedule row for
every department that teaches a subject of the same name.

Rescheduling moves the whole group of a shared subject together, exchanging
dates with a department's other exam when the new date is already taken.

All reads and writes of one request run inside a single store transaction, so
a rejected or failed request leaves nothing behind.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union
from uuid import UUID

from app.core.config import settings
from app.core.enums import ExamType
from app.core.exceptions import (
    AlreadyScheduled,
    DepartmentDoubleBooked,
    DepartmentNotFound,
    InvalidScheduleRequest,
    PersistenceError,
    ScheduleNotFound,
    SharedSubjectDateMismatch,
    SubjectNotFound,
)
from app.core.models import Department, ExamSchedule, SubjectDetail
from app.core.notifications import SharedSubjectNotice

from .store import ScheduleMove, ScheduleStore

logger = logging.getLogger(__name__)

STAFF_SUBJECT_PREFIX = "staff-subject-"

T = TypeVar("T")


@dataclass(frozen=True)
class CatalogSubject:
    subject_id: UUID


@dataclass(frozen=True)
class StaffEmbeddedSubject:
    """Legacy reference: the subject lives on a staff profile, not (yet) in the catalog."""

    staff_id: UUID


SubjectRef = Union[CatalogSubject, StaffEmbeddedSubject]


class Notifier(Protocol):
    def publish(self, notice: SharedSubjectNotice) -> bool: ...


def parse_subject_ref(value: str) -> SubjectRef:
    """`staff-subject-<staff id>` selects the legacy path; anything else must be a subject id."""
    raw = value.strip()
    try:
        if raw.startswith(STAFF_SUBJECT_PREFIX):
            return StaffEmbeddedSubject(UUID(raw[len(STAFF_SUBJECT_PREFIX):]))
        return CatalogSubject(UUID(raw))
    except ValueError:
        raise SubjectNotFound(f"Subject not found with ID: {value}")


@dataclass
class _ResolvedRequest:
    subject: SubjectDetail
    department: Department


@dataclass
class _PlannedRecord:
    record: ExamSchedule
    department: Department

    @property
    def department_name(self) -> str:
        return self.department.name.strip()


async def _materialize_staff_subject(store: ScheduleStore, staff_id: UUID) -> Tuple[SubjectDetail, str]:
    staff = await store.get_staff(staff_id)
    if staff is None:
        raise SubjectNotFound(f"Staff member not found with ID: {staff_id}")
    if not staff.subject_name or not staff.subject_code:
        raise SubjectNotFound(f"Staff member {staff.name} has no assigned subject")

    subject = await store.find_subject_by_code(staff.subject_code)
    if subject is None:
        subject = await store.insert_subject(
            SubjectDetail(
                name=staff.subject_name,
                subcode=staff.subject_code,
                department=staff.department,
                year=1,
                is_shared=True,
                shared_subject_code=staff.subject_code,
            )
        )
        logger.info("Created shared subject %s (%s) for staff %s", staff.subject_name, staff.subject_code, staff_id)
    return subject, staff.department


async def _resolve(store: ScheduleStore, ref: SubjectRef) -> _ResolvedRequest:
    if isinstance(ref, StaffEmbeddedSubject):
        subject, department_name = await _materialize_staff_subject(store, ref.staff_id)
    else:
        subject = await store.get_subject(ref.subject_id)
        if subject is None:
            raise SubjectNotFound(f"Subject not found with ID: {ref.subject_id}")
        department_name = subject.department

    department_name = department_name.strip()
    department = await store.find_department_by_name(department_name)
    if department is None:
        raise DepartmentNotFound(department_name)
    return _ResolvedRequest(subject=subject, department=department)


def _ensure_department_free(department_name: str, exam_date: date, same_day: Sequence[ExamSchedule]) -> None:
    for existing in same_day:
        holder = existing.department.name.strip() if existing.department is not None else None
        if holder == department_name:
            raise DepartmentDoubleBooked(department_name, exam_date)


async def _ensure_date_matches_group(store: ScheduleStore, subject_name: str, exam_date: date) -> None:
    existing = await store.find_schedules_by_subject_name(subject_name)
    if not existing:
        return
    dates = {s.exam_date for s in existing}
    if len(dates) > 1:
        logger.warning(
            "Shared subject %s has schedules on %d different dates (%s); using the first returned",
            subject_name,
            len(dates),
            ", ".join(sorted(d.isoformat() for d in dates)),
        )
    holder = existing[0]
    if holder.exam_date != exam_date:
        department = holder.department.name if holder.department is not None else "Unknown Department"
        raise SharedSubjectDateMismatch(subject_name, holder.exam_date, department)


async def _plan_fan_out(
    store: ScheduleStore,
    request: _ResolvedRequest,
    exam_date: date,
    assigned_by: str,
    exam_type: ExamType,
) -> List[_PlannedRecord]:
    origin = request.department
    planned = [
        _PlannedRecord(
            record=ExamSchedule(
                subject_id=request.subject.id,
                subject=request.subject,
                exam_date=exam_date,
                department_id=origin.id,
                department=origin,
                assigned_by=assigned_by,
                priority_department=None,
                exam_type=exam_type.value,
            ),
            department=origin,
        )
    ]

    origin_name = origin.name.strip()
    others = [
        s for s in await store.find_subjects_by_name(request.subject.name) if s.department.strip() != origin_name
    ]
    if not others:
        return planned

    departments = {
        d.name.strip(): d for d in await store.find_departments_by_names({s.department.strip() for s in others})
    }
    seen = {origin.id}
    for subject in others:
        department = departments.get(subject.department.strip())
        if department is None:
            logger.warning(
                "Skipping shared subject %s: department %r not found",
                subject.id,
                subject.department,
            )
            continue
        if department.id in seen:
            continue
        seen.add(department.id)
        planned.append(
            _PlannedRecord(
                record=ExamSchedule(
                    subject_id=subject.id,
                    subject=subject,
                    exam_date=exam_date,
                    department_id=department.id,
                    department=department,
                    assigned_by=assigned_by,
                    priority_department=origin.id,
                    exam_type=exam_type.value,
                ),
                department=department,
            )
        )
    return planned


async def _schedule_once(
    store: ScheduleStore,
    subject_ref: SubjectRef,
    exam_date: date,
    assigned_by: str,
    exam_type: ExamType,
) -> List[_PlannedRecord]:
    request = await _resolve(store, subject_ref)
    origin_name = request.department.name.strip()

    # The department already booked this subject itself, or was synchronized onto this very date.
    # A synchronized row on another date falls through to the shared-subject check below.
    existing = await store.find_schedule(request.subject.id, request.department.id)
    if existing is not None and (existing.priority_department is None or existing.exam_date == exam_date):
        raise AlreadyScheduled(existing.exam_date)

    same_day = await store.find_schedules_by_date(exam_date)
    _ensure_department_free(origin_name, exam_date, same_day)

    await _ensure_date_matches_group(store, request.subject.name, exam_date)

    planned = await _plan_fan_out(store, request, exam_date, assigned_by, exam_type)
    # A department already holding this shared exam is a repeat, not a clash with itself.
    for item in planned:
        found = await store.find_schedule(item.record.subject_id, item.record.department_id)
        if found is not None:
            raise AlreadyScheduled(found.exam_date)

    for item in planned[1:]:
        _ensure_department_free(item.department_name, exam_date, same_day)

    await store.insert_schedules([item.record for item in planned])
    return planned


def _notify(notifier: Optional[Notifier], notices: List[SharedSubjectNotice]) -> None:
    if notifier is None:
        return
    for notice in notices:
        try:
            notifier.publish(notice)
        except Exception:
            logger.exception("Could not hand off notice for %s department", notice.department)


def _coerce_exam_type(value: Union[ExamType, str]) -> ExamType:
    try:
        return ExamType(value)
    except ValueError:
        raise InvalidScheduleRequest(
            f"Invalid exam type: {value}. Expected one of {', '.join(t.value for t in ExamType)}",
            details={"exam_type": str(value)},
        )


async def _run_in_transaction(
    store: ScheduleStore,
    operation: Callable[[], Awaitable[T]],
    max_attempts: Optional[int],
) -> T:
    """Run operation in one store transaction, retrying serialization conflicts."""
    attempts = max_attempts or settings.schedule_max_attempts
    attempt = 0
    while True:
        attempt += 1
        try:
            async with store.transaction():
                return await operation()
        except PersistenceError as e:
            if not e.retryable or attempt >= attempts:
                raise
            logger.warning("Scheduling conflict on attempt %d/%d, retrying", attempt, attempts)


async def schedule_exam(
    store: ScheduleStore,
    subject_ref: SubjectRef,
    exam_date: date,
    assigned_by: str,
    exam_type: Union[ExamType, str],
    notifier: Optional[Notifier] = None,
    max_attempts: Optional[int] = None,
) -> List[ExamSchedule]:
    """
    Validate and commit one scheduling request.

    Returns the committed rows, originating department first. Raises a
    SchedulingError subclass on rejection; nothing is written in that case.
    Serialization conflicts are retried up to max_attempts times.
    """
    exam_type = _coerce_exam_type(exam_type)
    planned = await _run_in_transaction(
        store,
        lambda: _schedule_once(store, subject_ref, exam_date, assigned_by, exam_type),
        max_attempts,
    )

    origin = planned[0]
    logger.info(
        "Scheduled %s on %s for %s (%d department(s), type %s)",
        origin.record.subject.name,
        exam_date.isoformat(),
        origin.department_name,
        len(planned),
        exam_type.value,
    )
    _notify(
        notifier,
        [
            SharedSubjectNotice(
                subject_name=item.record.subject.name,
                exam_date=exam_date,
                origin_department=origin.department_name,
                department=item.department_name,
                assigned_by=assigned_by,
            )
            for item in planned[1:]
        ],
    )
    return [item.record for item in planned]


@dataclass
class RescheduleResult:
    """records: every row of the subject group, the requested one first. swapped: exams moved out of the way."""

    records: List[ExamSchedule]
    swapped: List[ExamSchedule] = field(default_factory=list)
    previous_date: Optional[date] = None


async def _ensure_swappable(store: ScheduleStore, conflict: ExamSchedule, department: str, exam_date: date) -> None:
    # Moving one row of a shared group would break its date synchronization.
    siblings = await store.find_schedules_by_subject_name(conflict.subject.name)
    if any(s.id != conflict.id for s in siblings):
        logger.info(
            "Not swapping %s in %s department: it is shared with other departments",
            conflict.subject.name,
            department,
        )
        raise DepartmentDoubleBooked(department, exam_date)


async def _reschedule_once(
    store: ScheduleStore,
    schedule_id: UUID,
    exam_date: Optional[date],
    exam_type: Optional[ExamType],
    swap_conflicts: bool,
) -> RescheduleResult:
    record = await store.get_schedule(schedule_id)
    if record is None:
        raise ScheduleNotFound(schedule_id)

    target = exam_date or record.exam_date
    group = [record] + [
        s for s in await store.find_schedules_by_subject_name(record.subject.name) if s.id != record.id
    ]
    group_ids = {s.id for s in group}

    moves = [
        ScheduleMove(
            record=member,
            exam_date=target,
            exam_type=exam_type.value if exam_type else member.exam_type,
        )
        for member in group
        if member.exam_date != target or (exam_type is not None and member.exam_type != exam_type.value)
    ]
    result = RescheduleResult(records=group, previous_date=record.exam_date)

    leaving = [member for member in group if member.exam_date != target]
    if leaving:
        occupied = {
            s.department_id: s for s in await store.find_schedules_by_date(target) if s.id not in group_ids
        }
        for member in leaving:
            conflict = occupied.pop(member.department_id, None)
            if conflict is None:
                continue
            department = member.department.name.strip()
            if not swap_conflicts:
                raise DepartmentDoubleBooked(department, target)
            await _ensure_swappable(store, conflict, department, target)
            moves.append(ScheduleMove(record=conflict, exam_date=member.exam_date, exam_type=conflict.exam_type))
            result.swapped.append(conflict)

    if moves:
        await store.move_schedules(moves)
    return result


async def reschedule_exam(
    store: ScheduleStore,
    schedule_id: UUID,
    exam_date: Optional[date] = None,
    exam_type: Optional[Union[ExamType, str]] = None,
    swap_conflicts: bool = True,
    notifier: Optional[Notifier] = None,
    max_attempts: Optional[int] = None,
) -> RescheduleResult:
    """
    Move a committed exam, and every department's row of the same subject, to a new date.

    A department that already has another exam on the new date gets that exam
    moved to the date being vacated, unless swap_conflicts is False or the other
    exam is itself shared; both of those raise DepartmentDoubleBooked.
    """
    if exam_date is None and exam_type is None:
        raise InvalidScheduleRequest("Nothing to update: provide exam_date or exam_type")
    exam_type = _coerce_exam_type(exam_type) if exam_type is not None else None

    result = await _run_in_transaction(
        store,
        lambda: _reschedule_once(store, schedule_id, exam_date, exam_type, swap_conflicts),
        max_attempts,
    )

    origin = result.records[0]
    moved = exam_date is not None and exam_date != result.previous_date
    logger.info(
        "Updated %s for %s: %s -> %s (%d department(s), %d swapped)",
        origin.subject.name,
        origin.department.name.strip(),
        result.previous_date.isoformat(),
        origin.exam_date.isoformat(),
        len(result.records),
        len(result.swapped),
    )
    if moved:
        _notify(
            notifier,
            [
                SharedSubjectNotice(
                    subject_name=member.subject.name,
                    exam_date=member.exam_date,
                    origin_department=origin.department.name.strip(),
                    department=member.department.name.strip(),
                    assigned_by=origin.assigned_by,
                )
                for member in result.records[1:]
            ],
        )
    return result
