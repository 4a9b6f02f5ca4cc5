"""Admin-defined exam windows (exam_settings). Coordinators pick dates inside an active window."""

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String, Uuid

from app.db.session import Base


class ExamAlert(Base):
    __tablename__ = "exam_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_start_date = Column(Date, nullable=False)
    exam_end_date = Column(Date, nullable=False)
    year = Column(Integer, nullable=False)
    semester = Column(Integer, nullable=True)
    exam_type = Column(String(20), nullable=True)
    ref_id = Column("refid", String(100), nullable=True)
    alert_date = Column(Date, nullable=False, default=date.today)
    holidays = Column(JSON, nullable=False, default=list)  # ISO date strings
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
