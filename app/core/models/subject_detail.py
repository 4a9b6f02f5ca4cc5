"""Catalog subjects. Rows sharing a name across departments form a shared subject."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint, Uuid

from app.db.session import Base


class SubjectDetail(Base):
    __tablename__ = "subject_detail"
    __table_args__ = (
        UniqueConstraint("department", "subcode", name="uq_subject_detail_department_subcode"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subcode = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)  # Join key for shared subjects
    department = Column(String(100), nullable=False)  # departments.name, may carry stray whitespace
    year = Column(Integer, nullable=False, default=1)
    sem = Column(Integer, nullable=True)
    is_shared = Column(Boolean, nullable=False, default=False)
    shared_subject_code = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
