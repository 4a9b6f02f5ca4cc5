import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from app.db.session import Base


class StaffDetail(Base):
    """Staff profile. subject_name/subject_code hold a single ad-hoc subject not yet in the catalog."""

    __tablename__ = "staff_details"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    department = Column(String(100), nullable=False)
    role = Column(String(50), nullable=False, default="teacher")
    subject_name = Column(String(255), nullable=True)
    subject_code = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
