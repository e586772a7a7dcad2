"""
Rule checks evaluated on every alert cycle.

Each check reads the attendance/worker tables and returns the alerts it
would raise. Nothing is written here; deduplication and storage happen in
the alert engine.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session

from wardwatch.models.alert import AlertSeverity, AlertType, EntityType
from wardwatch.models.attendance import GeoStatus, WorkerAttendance
from wardwatch.models.staff import StaffMember, StaffRole, StaffStatus
from wardwatch.models.worker import Worker, WorkerStatus

GEO_WINDOW_DAYS = 7
ABSENCE_WINDOW_DAYS = 3


@dataclass(frozen=True)
class RuleContext:
    """Clock and thresholds shared by all checks of one cycle."""
    now: datetime
    tz: ZoneInfo
    cutoff_hour: int = 9
    geo_threshold: int = 3

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def now_utc(self) -> datetime:
        return self.now.astimezone(timezone.utc)

    @property
    def day_bounds_utc(self) -> Tuple[datetime, datetime]:
        start = datetime.combine(self.today, time.min, tzinfo=self.tz)
        end = datetime.combine(self.today + timedelta(days=1), time.min, tzinfo=self.tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    @property
    def past_cutoff(self) -> bool:
        return self.now.hour >= self.cutoff_hour


@dataclass
class AlertCandidate:
    alert_type: AlertType
    severity: AlertSeverity
    entity_type: EntityType
    entity_id: str
    title: str
    message: str
    eo_id: Optional[int] = None
    ward_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _active_workers(db: Session) -> List[Worker]:
    return (
        db.query(Worker)
        .filter(Worker.status == WorkerStatus.ACTIVE.value)
        .order_by(Worker.full_name.asc())
        .all()
    )


def check_workers_not_present(db: Session, ctx: RuleContext) -> List[AlertCandidate]:
    """Active workers without an attendance row today, once the cutoff hour has passed."""
    if not ctx.past_cutoff:
        return []

    workers = _active_workers(db)
    if not workers:
        return []

    present = {
        worker_id
        for (worker_id,) in db.query(WorkerAttendance.worker_id)
        .filter(WorkerAttendance.attendance_date == ctx.today)
        .distinct()
    }
    today = ctx.today.isoformat()

    return [
        AlertCandidate(
            alert_type=AlertType.WORKER_NOT_PRESENT_BY_9AM,
            severity=AlertSeverity.WARNING,
            entity_type=EntityType.WORKER,
            entity_id=str(worker.id),
            eo_id=worker.eo_id,
            ward_id=worker.ward_id,
            title="Worker not marked present by 9 AM",
            message=f"{worker.full_name} has not been marked present today by 9 AM.",
            metadata={
                "worker_id": str(worker.id),
                "worker_name": worker.full_name,
                "mobile": worker.mobile,
                "date": today,
            },
        )
        for worker in workers
        if worker.id not in present
    ]


def check_supervisors_inactive(db: Session, ctx: RuleContext) -> List[AlertCandidate]:
    """Active supervisors with workers to mark who have marked nobody today."""
    if not ctx.past_cutoff:
        return []

    supervisors = (
        db.query(StaffMember)
        .filter(
            StaffMember.role == StaffRole.SUPERVISOR,
            StaffMember.status == StaffStatus.ACTIVE,
        )
        .order_by(StaffMember.id.asc())
        .all()
    )
    if not supervisors:
        return []

    marked = {
        supervisor_id
        for (supervisor_id,) in db.query(WorkerAttendance.supervisor_id)
        .filter(
            WorkerAttendance.attendance_date == ctx.today,
            WorkerAttendance.supervisor_id.isnot(None),
        )
        .distinct()
    }
    worker_counts = dict(
        db.query(Worker.supervisor_id, func.count(Worker.id))
        .filter(
            Worker.status == WorkerStatus.ACTIVE.value,
            Worker.supervisor_id.isnot(None),
        )
        .group_by(Worker.supervisor_id)
        .all()
    )
    today = ctx.today.isoformat()

    candidates = []
    for supervisor in supervisors:
        if supervisor.id in marked:
            continue
        workers_count = worker_counts.get(supervisor.id, 0)
        if workers_count == 0:
            continue
        candidates.append(
            AlertCandidate(
                alert_type=AlertType.SUPERVISOR_INACTIVE,
                severity=AlertSeverity.WARNING,
                entity_type=EntityType.SUPERVISOR,
                entity_id=str(supervisor.id),
                eo_id=supervisor.eo_id,
                ward_id=supervisor.ward_id,
                title="Supervisor inactive today",
                message=(
                    f"Supervisor {supervisor.full_name} has not marked any worker attendance "
                    f"today by 9 AM ({workers_count} worker(s) under supervision)."
                ),
                metadata={
                    "supervisor_id": supervisor.id,
                    "supervisor_name": supervisor.full_name,
                    "workers_count": workers_count,
                    "date": today,
                },
            )
        )
    return candidates


def check_geo_violations(db: Session, ctx: RuleContext) -> List[AlertCandidate]:
    """Workers with more OUTSIDE_WARD check-ins than the threshold over the last 7 days."""
    end = ctx.today
    start = end - timedelta(days=GEO_WINDOW_DAYS - 1)

    violations = func.count(WorkerAttendance.id)
    rows = (
        db.query(WorkerAttendance.worker_id, violations.label("cnt"))
        .filter(
            WorkerAttendance.attendance_date >= start,
            WorkerAttendance.attendance_date <= end,
            WorkerAttendance.geo_status == GeoStatus.OUTSIDE_WARD.value,
        )
        .group_by(WorkerAttendance.worker_id)
        .having(violations > ctx.geo_threshold)
        .order_by(WorkerAttendance.worker_id.asc())
        .all()
    )
    if not rows:
        return []

    workers = {
        worker.id: worker
        for worker in db.query(Worker).filter(Worker.id.in_([row.worker_id for row in rows]))
    }

    candidates = []
    for row in rows:
        worker = workers.get(row.worker_id)
        count = int(row.cnt)
        name = worker.full_name if worker else str(row.worker_id)
        candidates.append(
            AlertCandidate(
                alert_type=AlertType.GEO_VIOLATIONS_THRESHOLD,
                severity=AlertSeverity.CRITICAL,
                entity_type=EntityType.WORKER,
                entity_id=str(row.worker_id),
                eo_id=worker.eo_id if worker else None,
                ward_id=worker.ward_id if worker else None,
                title="Geo violations above threshold",
                message=(
                    f"{name} has {count} geo violations in the last 7 days "
                    f"(threshold: {ctx.geo_threshold})."
                ),
                metadata={
                    "worker_id": str(row.worker_id),
                    "count": count,
                    "threshold": ctx.geo_threshold,
                    "start": start.isoformat(),
                    "end": end.isoformat(),
                },
            )
        )
    return candidates


def check_three_consecutive_absences(db: Session, ctx: RuleContext) -> List[AlertCandidate]:
    """Active workers with no attendance on any of today and the two days before."""
    dates = [ctx.today - timedelta(days=offset) for offset in range(ABSENCE_WINDOW_DAYS - 1, -1, -1)]

    workers = _active_workers(db)
    if not workers:
        return []

    present = {
        worker_id
        for (worker_id,) in db.query(WorkerAttendance.worker_id)
        .filter(WorkerAttendance.attendance_date.in_(dates))
        .distinct()
    }
    absent_dates = [d.isoformat() for d in dates]

    return [
        AlertCandidate(
            alert_type=AlertType.THREE_CONSECUTIVE_ABSENCES,
            severity=AlertSeverity.CRITICAL,
            entity_type=EntityType.WORKER,
            entity_id=str(worker.id),
            eo_id=worker.eo_id,
            ward_id=worker.ward_id,
            title="3 consecutive days absent",
            message=(
                f"{worker.full_name} has no attendance recorded for the last 3 consecutive days "
                f"({absent_dates[0]} to {absent_dates[-1]})."
            ),
            metadata={
                "worker_id": str(worker.id),
                "worker_name": worker.full_name,
                "absent_dates": absent_dates,
            },
        )
        for worker in workers
        if worker.id not in present
    ]


RuleCheck = Callable[[Session, RuleContext], List[AlertCandidate]]

# Result key -> check. Keys are the counters reported by a cycle.
RULE_CHECKS: Dict[str, RuleCheck] = {
    "worker_not_present": check_workers_not_present,
    "supervisor_inactive": check_supervisors_inactive,
    "geo_violations": check_geo_violations,
    "three_consecutive_absences": check_three_consecutive_absences,
}
