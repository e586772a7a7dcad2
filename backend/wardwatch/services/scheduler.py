"""
Scheduler service for the periodic alert checks.
"""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from wardwatch.core.config import settings
from wardwatch.services.alert_engine import AlertEngine, CycleResult

logger = structlog.get_logger(__name__)


class SchedulerService:
    JOB_ID = "alert_checks"

    def __init__(
        self,
        engine: AlertEngine,
        interval_minutes: Optional[int] = None,
        tz: Optional[ZoneInfo] = None,
    ):
        self.engine = engine
        self.interval_minutes = interval_minutes or settings.ALERT_SCHEDULE_MINUTES
        self.tz = tz or engine.tz
        self.scheduler: Optional[BackgroundScheduler] = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    def _trigger(self) -> CronTrigger:
        # Fires on wall-clock boundaries (:00, :30, ...) in the alert timezone
        minute = "0" if self.interval_minutes == 60 else f"*/{self.interval_minutes}"
        return CronTrigger(minute=minute, timezone=self.tz)

    def start(self):
        """Start the scheduler."""
        if self._is_running:
            logger.info("Alert scheduler already running")
            return

        logger.info(
            "Starting alert scheduler",
            interval_minutes=self.interval_minutes,
            timezone=str(self.tz),
        )

        self.scheduler = BackgroundScheduler(timezone=self.tz)
        self.scheduler.add_job(
            self.run_scheduled_cycle,
            trigger=self._trigger(),
            id=self.JOB_ID,
            name="Run alert checks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self._is_running = True

    def stop(self):
        """Stop the scheduler. A cycle already in progress is left to finish."""
        if self._is_running:
            logger.info("Stopping alert scheduler")
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            self._is_running = False

    def run_scheduled_cycle(self):
        logger.info("Running scheduled job: alert_checks")
        self.engine.run_cycle()

    def run_now(self) -> CycleResult:
        """Manual trigger, same semantics as a scheduled run."""
        logger.info("Running alert checks on demand")
        return self.engine.run_cycle()

    def get_last_run_at(self) -> Optional[datetime]:
        return self.engine.last_run_at

    def status(self) -> dict:
        next_run_at = None
        if self._is_running and self.scheduler is not None:
            job = self.scheduler.get_job(self.JOB_ID)
            next_run_at = job.next_run_time if job else None
        return {
            "running": self._is_running,
            "last_run_at": self.engine.last_run_at,
            "next_run_at": next_run_at,
            "timezone": str(self.tz),
            "interval_minutes": self.interval_minutes,
        }
