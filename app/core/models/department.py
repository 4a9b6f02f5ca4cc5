import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from app.db.session import Base


class Department(Base):
    """Department master data. Subjects and staff reference it by name, schedules by id."""

    __tablename__ = "departments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    code = Column(String(20), nullable=False, unique=True)  # Uppercased
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
