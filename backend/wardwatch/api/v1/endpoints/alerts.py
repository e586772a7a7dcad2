"""
Alert management endpoints.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query as OrmQuery, Session

from wardwatch.core.auth import Caller, require_admin, require_alert_viewer
from wardwatch.core.database import get_db
from wardwatch.core.error_handling import sanitize_error
from wardwatch.core.rate_limit import RATE_LIMITS, limiter
from wardwatch.models.alert import Alert
from wardwatch.services.scheduler import SchedulerService

logger = structlog.get_logger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 100


class WardSummary(BaseModel):
    id: int
    ward_number: Optional[str] = None
    ward_name: Optional[str] = None


class AlertResponse(BaseModel):
    """Alert response model."""
    id: str
    alert_type: str
    severity: str
    entity_type: str
    entity_id: Optional[str] = None
    eo_id: Optional[int] = None
    ward_id: Optional[int] = None
    ward: Optional[WardSummary] = None
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = None
    sms_sent: bool
    sms_sent_at: Optional[datetime] = None
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[int] = None
    created_at: datetime


class AlertListResponse(BaseModel):
    alerts: List[AlertResponse]
    total: int
    limit: int
    offset: int


class AlertStatsResponse(BaseModel):
    total: int
    unacknowledged: int
    by_alert_type: Dict[str, int]
    by_severity: Dict[str, int]


class AcknowledgeResponse(BaseModel):
    id: str
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[int] = None


class CycleResultResponse(BaseModel):
    worker_not_present: int
    supervisor_inactive: int
    geo_violations: int
    three_consecutive_absences: int
    errors: List[str]


class TriggerCheckResponse(BaseModel):
    results: CycleResultResponse
    last_run_at: Optional[datetime] = None


class SchedulerStatusResponse(BaseModel):
    running: bool
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    timezone: str
    interval_minutes: int


def get_scheduler_service(request: Request) -> SchedulerService:
    """The scheduler built at startup (see wardwatch.main.lifespan)."""
    scheduler = getattr(request.app.state, "alert_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Alert engine is not initialised",
        )
    return scheduler


@router.get("/", response_model=AlertListResponse)
async def list_alerts(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    acknowledged: Optional[bool] = None,
    alert_type: Optional[str] = None,
    severity: Optional[str] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_alert_viewer),
) -> Any:
    """List stored alerts, newest first. EOs only see their own alerts."""
    limit = min(limit, MAX_PAGE_SIZE)
    logger.info(
        "Listing alerts",
        caller_id=caller.id,
        role=caller.role.value,
        limit=limit,
        offset=offset,
    )

    query = _scoped_query(db, caller)
    if acknowledged is not None:
        query = query.filter(Alert.acknowledged == acknowledged)
    if alert_type:
        query = query.filter(Alert.alert_type == alert_type)
    if severity:
        query = query.filter(Alert.severity == severity)

    try:
        total = query.order_by(None).count()
        rows = (
            query.order_by(Alert.created_at.desc(), Alert.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        raise sanitize_error(e, "List alerts")

    logger.info("Retrieved alerts", count=len(rows), total=total)
    return {
        "alerts": [_serialize_alert(alert) for alert in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/stats", response_model=AlertStatsResponse)
async def get_alert_stats(
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_alert_viewer),
) -> Any:
    """Alert counts for the dashboard."""
    try:
        total = _scoped_query(db, caller).count()
        unacknowledged = _scoped_query(db, caller).filter(Alert.acknowledged == False).count()
        by_alert_type = _count_by(db, caller, Alert.alert_type)
        by_severity = _count_by(db, caller, Alert.severity)
    except SQLAlchemyError as e:
        raise sanitize_error(e, "Alert stats")

    return {
        "total": total,
        "unacknowledged": unacknowledged,
        "by_alert_type": by_alert_type,
        "by_severity": by_severity,
    }


@router.get("/scheduler", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    scheduler: SchedulerService = Depends(get_scheduler_service),
    caller: Caller = Depends(require_admin),
) -> Any:
    """Whether the periodic checks are scheduled and when they last ran."""
    return scheduler.status()


@router.post("/trigger-check", response_model=TriggerCheckResponse)
@limiter.limit(RATE_LIMITS["trigger_check"])
async def trigger_alert_check(
    request: Request,
    scheduler: SchedulerService = Depends(get_scheduler_service),
    caller: Caller = Depends(require_admin),
) -> Any:
    """Run all alert checks now. Check failures are reported in results.errors."""
    logger.info("Manual alert check requested", caller_id=caller.id)

    # Checks do blocking DB I/O; keep them off the event loop
    loop = asyncio.get_running_loop()
    results = await loop.run_in_executor(None, scheduler.run_now)

    return {
        "results": results.as_dict(),
        "last_run_at": scheduler.get_last_run_at(),
    }


@router.patch("/{alert_id}/acknowledge", response_model=AcknowledgeResponse)
async def acknowledge_alert(
    alert_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_alert_viewer),
) -> Any:
    """Acknowledge an alert. EOs may only acknowledge alerts routed to them."""
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found"
        )

    if caller.is_eo and alert.eo_id != caller.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only acknowledge alerts under your EO"
        )

    if not alert.acknowledged:
        alert.acknowledged = True
        alert.acknowledged_at = datetime.now(timezone.utc)
        alert.acknowledged_by = caller.id
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise sanitize_error(e, "Acknowledge alert")
        db.refresh(alert)
        logger.info("Alert acknowledged", alert_id=alert.id, caller_id=caller.id)

    return {
        "id": alert.id,
        "acknowledged": alert.acknowledged,
        "acknowledged_at": alert.acknowledged_at,
        "acknowledged_by": alert.acknowledged_by,
    }


def _scoped_query(db: Session, caller: Caller) -> OrmQuery:
    query = db.query(Alert)
    if caller.is_eo:
        query = query.filter(Alert.eo_id == caller.id)
    return query


def _count_by(db: Session, caller: Caller, column) -> Dict[str, int]:
    query = db.query(column, func.count(Alert.id))
    if caller.is_eo:
        query = query.filter(Alert.eo_id == caller.id)
    return {key: count for key, count in query.group_by(column).all()}


def _serialize_alert(alert: Alert) -> dict:
    ward = None
    if alert.ward is not None:
        ward = {
            "id": alert.ward.id,
            "ward_number": alert.ward.ward_number,
            "ward_name": alert.ward.ward_name,
        }
    return {
        "id": alert.id,
        "alert_type": alert.alert_type,
        "severity": alert.severity,
        "entity_type": alert.entity_type,
        "entity_id": alert.entity_id,
        "eo_id": alert.eo_id,
        "ward_id": alert.ward_id,
        "ward": ward,
        "title": alert.title,
        "message": alert.message,
        "metadata": alert.alert_metadata,
        "sms_sent": alert.sms_sent,
        "sms_sent_at": alert.sms_sent_at,
        "acknowledged": alert.acknowledged,
        "acknowledged_at": alert.acknowledged_at,
        "acknowledged_by": alert.acknowledged_by,
        "created_at": alert.created_at,
    }
