"""
Field worker model (read-only for the alert engine).
"""

import enum
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey

from wardwatch.core.database import Base


class WorkerStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Worker(Base):
    __tablename__ = "workers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    employee_code = Column(String(50), unique=True)
    full_name = Column(String(255), nullable=False)
    mobile = Column(String(20))
    worker_type = Column(String(20))
    status = Column(String(20), nullable=False, default=WorkerStatus.ACTIVE.value, index=True)
    ward_id = Column(Integer, ForeignKey("wards.id"))
    eo_id = Column(Integer, ForeignKey("admin_management.id"))
    supervisor_id = Column(Integer, ForeignKey("admin_management.id"), index=True)

    def __repr__(self):
        return f"<Worker(id={self.id}, name='{self.full_name}', status='{self.status}')>"
