"""
Administrative staff (EOs, supervisors, clerks, ...).

Managed by the main municipal backend; the alert engine only reads it.
"""

import enum

from sqlalchemy import Column, Integer, String, Enum, ForeignKey

from wardwatch.core.database import Base


class StaffRole(enum.Enum):
    """Staff roles as stored in admin_management.role."""
    CLERK = "CLERK"
    INSPECTOR = "INSPECTOR"
    OFFICER = "OFFICER"
    COLLECTOR = "COLLECTOR"
    EO = "EO"
    SUPERVISOR = "SUPERVISOR"
    FIELD_WORKER = "FIELD_WORKER"
    CONTRACTOR = "CONTRACTOR"
    ADMIN = "ADMIN"


class StaffStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class StaffMember(Base):
    """
    Staff member record.

    Attributes:
        id: Primary key
        full_name: Display name
        role: Staff role
        status: active/inactive
        eo_id: Owning executive officer
        ward_id: Assigned ward
    """

    __tablename__ = "admin_management"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    role = Column(Enum(StaffRole, values_callable=lambda e: [m.value for m in e]), nullable=False)
    status = Column(
        Enum(StaffStatus, values_callable=lambda e: [m.value for m in e]),
        default=StaffStatus.ACTIVE,
        nullable=False,
    )
    eo_id = Column(Integer, ForeignKey("admin_management.id"))
    ward_id = Column(Integer, ForeignKey("wards.id"))

    def __repr__(self):
        return f"<StaffMember(id={self.id}, name='{self.full_name}', role='{self.role.value}')>"
