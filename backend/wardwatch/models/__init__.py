"""
Database models for the WardWatch alert service.

Only the alerts table is owned by this service. Workers, attendance, staff
and wards are maintained by the main municipal backend and mapped here so
the rule checks can query them.

All models inherit from the common Base class defined in wardwatch.core.database.
"""

from .ward import Ward
from .staff import StaffMember, StaffRole, StaffStatus
from .worker import Worker, WorkerStatus
from .attendance import WorkerAttendance, GeoStatus
from .alert import Alert, AlertType, AlertSeverity, EntityType

__all__ = [
    "Ward",

    # Staff models
    "StaffMember",
    "StaffRole",
    "StaffStatus",

    # Worker models
    "Worker",
    "WorkerStatus",
    "WorkerAttendance",
    "GeoStatus",

    # Alert models
    "Alert",
    "AlertType",
    "AlertSeverity",
    "EntityType",
]
