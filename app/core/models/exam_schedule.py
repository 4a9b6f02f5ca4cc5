"""Committed exam dates. One row per (subject, department) and per (department, date)."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class ExamSchedule(Base):
    __tablename__ = "exam_schedules"
    __table_args__ = (
        UniqueConstraint("subject_id", "department_id", name="uq_exam_schedule_subject_department"),
        UniqueConstraint("department_id", "exam_date", name="uq_exam_schedule_department_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subject_detail.id", ondelete="CASCADE"), nullable=False)
    exam_date = Column(Date, nullable=False, index=True)
    department_id = Column(Uuid(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(255), nullable=False)
    # Originating department for synchronized shared-subject rows; null on the originating row
    priority_department = Column(
        Uuid(as_uuid=True),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    exam_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    subject = relationship("SubjectDetail", lazy="selectin")
    department = relationship("Department", foreign_keys=[department_id], lazy="selectin")
