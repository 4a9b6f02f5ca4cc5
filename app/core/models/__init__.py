from app.core.models.department import Department
from app.core.models.exam_alert import ExamAlert
from app.core.models.exam_schedule import ExamSchedule
from app.core.models.staff_detail import StaffDetail
from app.core.models.subject_detail import SubjectDetail

__all__ = [
    "Department",
    "ExamAlert",
    "ExamSchedule",
    "StaffDetail",
    "SubjectDetail",
]
