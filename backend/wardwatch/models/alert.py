"""
Alert models.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from wardwatch.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class AlertType(str, enum.Enum):
    """Alert types raised by the periodic checks."""
    WORKER_NOT_PRESENT_BY_9AM = "worker_not_present_by_9am"
    SUPERVISOR_INACTIVE = "supervisor_inactive"
    GEO_VIOLATIONS_THRESHOLD = "geo_violations_threshold"
    THREE_CONSECUTIVE_ABSENCES = "three_consecutive_absences"


class AlertSeverity(str, enum.Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class EntityType(str, enum.Enum):
    WORKER = "worker"
    SUPERVISOR = "supervisor"


class Alert(Base):
    """
    A persisted alert.

    alert_date is the local calendar day the alert was raised on; together
    with the alert key it is unique, so one entity gets at most one alert of
    a given type per day.
    """
    __tablename__ = "alerts"
    __table_args__ = (
        UniqueConstraint(
            "alert_type", "entity_type", "entity_id", "alert_date",
            name="uq_alerts_daily_key",
        ),
        Index("ix_alerts_eo_id_created_at", "eo_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    alert_type = Column(String(50), nullable=False, index=True)
    severity = Column(String(20), nullable=False, default=AlertSeverity.WARNING.value)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String(100))
    eo_id = Column(Integer, ForeignKey("admin_management.id"))
    ward_id = Column(Integer, ForeignKey("wards.id"))
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    alert_metadata = Column("metadata", JSON)

    sms_sent = Column(Boolean, default=False, nullable=False)
    sms_sent_at = Column(DateTime(timezone=True))

    acknowledged = Column(Boolean, default=False, nullable=False)
    acknowledged_at = Column(DateTime(timezone=True))
    acknowledged_by = Column(Integer, ForeignKey("admin_management.id"))

    alert_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    # Relationships
    ward = relationship("Ward", lazy="joined")

    def __repr__(self):
        return f"<Alert(id={self.id}, type='{self.alert_type}', entity={self.entity_type}:{self.entity_id})>"
