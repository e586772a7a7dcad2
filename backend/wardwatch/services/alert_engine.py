"""
Alert engine: runs the rule checks, deduplicates and stores alerts.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from wardwatch.core.config import settings
from wardwatch.models.alert import Alert
from wardwatch.services.alert_rules import (
    RULE_CHECKS,
    AlertCandidate,
    RuleCheck,
    RuleContext,
)
from wardwatch.services.notification_service import AlertNotifier, NullNotifier

logger = structlog.get_logger(__name__)


@dataclass
class CycleResult:
    """Alerts created per check during one cycle, plus any failures."""
    worker_not_present: int = 0
    supervisor_inactive: int = 0
    geo_violations: int = 0
    three_consecutive_absences: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


class AlertEngine:
    """
    Evaluates every rule check and persists the resulting alerts.

    Each check runs on its own thread with its own session. Inside a check,
    candidates are handled one at a time: dedup lookup, insert, notify.
    A failing check or candidate is recorded in the cycle errors and never
    stops the others.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: Optional[AlertNotifier] = None,
        *,
        tz: Optional[ZoneInfo] = None,
        cutoff_hour: Optional[int] = None,
        geo_threshold: Optional[int] = None,
        max_workers: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        checks: Optional[Dict[str, RuleCheck]] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or NullNotifier()
        self.tz = tz or settings.alert_timezone
        self.cutoff_hour = settings.ALERT_CHECK_AFTER_HOUR if cutoff_hour is None else cutoff_hour
        self.geo_threshold = (
            settings.ALERT_GEO_VIOLATIONS_THRESHOLD if geo_threshold is None else geo_threshold
        )
        self.max_workers = max(1, max_workers or settings.ALERT_CHECK_WORKERS)
        self.checks = checks or RULE_CHECKS
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._last_run_at: Optional[datetime] = None

    @property
    def last_run_at(self) -> Optional[datetime]:
        return self._last_run_at

    def now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def build_context(self, now: Optional[datetime] = None) -> RuleContext:
        return RuleContext(
            now=now or self.now(),
            tz=self.tz,
            cutoff_hour=self.cutoff_hour,
            geo_threshold=self.geo_threshold,
        )

    def run_cycle(self) -> CycleResult:
        """Run all checks concurrently. Never raises."""
        started = self.now()
        self._last_run_at = started
        ctx = self.build_context(started)
        result = CycleResult()

        logger.info("Alert cycle started", started_at=started.isoformat())

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="alert-check") as executor:
            futures = {
                name: executor.submit(self.run_check, name, check, ctx)
                for name, check in self.checks.items()
            }
            for name, future in futures.items():
                try:
                    created, errors = future.result()
                except Exception as e:
                    logger.error("Alert check crashed", check=name, error=str(e), exc_info=True)
                    created, errors = 0, [f"{name}: {e}"]
                setattr(result, name, created)
                result.errors.extend(errors)

        logger.info("Alert cycle finished", **result.as_dict())
        return result

    def run_check(self, name: str, check: RuleCheck, ctx: RuleContext) -> Tuple[int, List[str]]:
        """Evaluate one check and store its alerts. Returns (created, errors)."""
        db: Session = self.session_factory()
        created = 0
        errors: List[str] = []
        try:
            try:
                candidates = check(db, ctx)
            except Exception as e:
                db.rollback()
                logger.error("Alert check failed", check=name, error=str(e))
                return 0, [f"{name}: {e}"]

            for candidate in candidates:
                try:
                    alert = self.persist(db, candidate, ctx)
                except Exception as e:
                    db.rollback()
                    logger.error(
                        "Failed to store alert",
                        check=name,
                        alert_type=candidate.alert_type.value,
                        entity_id=candidate.entity_id,
                        error=str(e),
                    )
                    errors.append(f"{name}: {candidate.entity_id}: {e}")
                    continue

                if alert is None:
                    continue
                created += 1
                self.notify(db, alert)

            logger.info("Alert check done", check=name, candidates=len(candidates), created=created)
            return created, errors
        finally:
            db.close()

    def has_alert_today(
        self,
        db: Session,
        alert_type: str,
        entity_type: str,
        entity_id,
        ctx: Optional[RuleContext] = None,
    ) -> bool:
        """Whether this alert key was already raised during the current local day."""
        ctx = ctx or self.build_context()
        day_start, day_end = ctx.day_bounds_utc
        existing = (
            db.query(Alert.id)
            .filter(
                Alert.alert_type == str(getattr(alert_type, "value", alert_type)),
                Alert.entity_type == str(getattr(entity_type, "value", entity_type)),
                Alert.entity_id == str(entity_id),
                Alert.created_at >= day_start,
                Alert.created_at < day_end,
            )
            .first()
        )
        return existing is not None

    def persist(self, db: Session, candidate: AlertCandidate, ctx: RuleContext) -> Optional[Alert]:
        """Store the candidate unless it was already raised today. Returns the new alert or None."""
        if self.has_alert_today(db, candidate.alert_type, candidate.entity_type, candidate.entity_id, ctx):
            return None

        alert = Alert(
            alert_type=candidate.alert_type.value,
            severity=candidate.severity.value,
            entity_type=candidate.entity_type.value,
            entity_id=str(candidate.entity_id),
            eo_id=candidate.eo_id,
            ward_id=candidate.ward_id,
            title=candidate.title,
            message=candidate.message,
            alert_metadata=candidate.metadata,
            sms_sent=False,
            acknowledged=False,
            alert_date=ctx.today,
            created_at=ctx.now_utc,
        )
        db.add(alert)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            # A concurrent cycle stored the same daily key first.
            if self.has_alert_today(db, candidate.alert_type, candidate.entity_type, candidate.entity_id, ctx):
                logger.info(
                    "Alert already raised today",
                    alert_type=candidate.alert_type.value,
                    entity_id=candidate.entity_id,
                )
                return None
            raise

        logger.warning(
            "Alert raised",
            alert_id=alert.id,
            alert_type=alert.alert_type,
            severity=alert.severity,
            entity_type=alert.entity_type,
            entity_id=alert.entity_id,
        )
        return alert

    def notify(self, db: Session, alert: Alert) -> bool:
        """Best-effort delivery; only a confirmed send marks the alert."""
        try:
            sent = self.notifier.send(alert)
        except Exception as e:
            logger.warning("Alert notification failed", alert_id=alert.id, error=str(e))
            return False

        if sent is not True:
            return False

        alert.sms_sent = True
        alert.sms_sent_at = self.now().astimezone(timezone.utc)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to mark alert as sent", alert_id=alert.id, error=str(e))
            return False
        return True
