"""
Daily worker attendance (one row per worker per check-in date).
"""

import enum
import uuid

from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey

from wardwatch.core.database import Base


class GeoStatus(str, enum.Enum):
    """Geo-fence outcome recorded at check-in."""
    INSIDE_WARD = "INSIDE_WARD"
    OUTSIDE_WARD = "OUTSIDE_WARD"
    UNKNOWN = "UNKNOWN"


class WorkerAttendance(Base):
    __tablename__ = "worker_attendance"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    supervisor_id = Column(Integer, ForeignKey("admin_management.id"))
    ward_id = Column(Integer, ForeignKey("wards.id"))
    eo_id = Column(Integer, ForeignKey("admin_management.id"))
    attendance_date = Column(Date, nullable=False, index=True)
    checkin_time = Column(DateTime(timezone=True))
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))
    photo_url = Column(String(500))
    geo_status = Column(String(20))
