from datetime import date
from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SchedulingError(ServiceError):
    """A scheduling request was rejected. Message is meant to be shown to the user as-is."""

    code = "SCHEDULING_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_409_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code)
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class SubjectNotFound(SchedulingError):
    code = "SUBJECT_NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class DepartmentNotFound(SchedulingError):
    code = "DEPARTMENT_NOT_FOUND"

    def __init__(self, department: str) -> None:
        super().__init__(
            f"Department not found: {department}",
            status.HTTP_404_NOT_FOUND,
            details={"department": department},
        )
        self.department = department


class DepartmentDoubleBooked(SchedulingError):
    code = "DEPARTMENT_DOUBLE_BOOKED"

    def __init__(self, department: Optional[str] = None, exam_date: Optional[date] = None) -> None:
        if department and exam_date:
            message = (
                f"{department} department already has an exam scheduled on {exam_date.isoformat()}. "
                "Cannot schedule multiple exams for the same department on the same day."
            )
        else:
            message = "Department already has an exam scheduled on this date."
        super().__init__(
            message,
            details={
                "department": department,
                "exam_date": exam_date.isoformat() if exam_date else None,
            },
        )
        self.department = department
        self.exam_date = exam_date


class SharedSubjectDateMismatch(SchedulingError):
    code = "SHARED_SUBJECT_DATE_MISMATCH"

    def __init__(self, subject_name: str, exam_date: date, department: str) -> None:
        super().__init__(
            f'Subject "{subject_name}" must be scheduled on {exam_date.isoformat()} '
            f"as it is already scheduled by {department} department. "
            f'All departments teaching "{subject_name}" must have the exam on the same date.',
            details={
                "subject_name": subject_name,
                "exam_date": exam_date.isoformat(),
                "department": department,
            },
        )
        self.subject_name = subject_name
        self.exam_date = exam_date
        self.department = department


class AlreadyScheduled(SchedulingError):
    code = "ALREADY_SCHEDULED"

    def __init__(self, exam_date: Optional[date] = None) -> None:
        if exam_date:
            message = (
                f"This subject is already scheduled for this department on {exam_date.isoformat()}. "
                "Each subject can only be scheduled once per department."
            )
        else:
            message = (
                "This subject is already scheduled for this department. "
                "Each subject can only be scheduled once per department."
            )
        super().__init__(message, details={"exam_date": exam_date.isoformat() if exam_date else None})
        self.exam_date = exam_date


class PersistenceError(SchedulingError):
    """The store rejected a read or write. retryable marks serialization conflicts."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.retryable = retryable


class ScheduleNotFound(SchedulingError):
    code = "SCHEDULE_NOT_FOUND"

    def __init__(self, schedule_id: Any) -> None:
        super().__init__(
            f"Exam schedule not found with ID: {schedule_id}",
            status.HTTP_404_NOT_FOUND,
            details={"schedule_id": str(schedule_id)},
        )


class InvalidScheduleRequest(SchedulingError):
    code = "INVALID_SCHEDULE_REQUEST"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details=details)
