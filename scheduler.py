import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from services import audit_budget_scopes


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.interval_minutes = settings.audit_interval_minutes
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_audit(self, source: str = "manual") -> int:
        logger.info(f"budget_audit: source={source}")
        with session_scope() as session:
            anomalies = audit_budget_scopes(session)
        logger.info(f"budget_audit: source={source} anomalies={len(anomalies)}")
        return len(anomalies)

    def start(self) -> None:
        self._run_audit("startup")

        trigger = IntervalTrigger(minutes=self.interval_minutes)
        self.scheduler.add_job(
            self._run_audit,
            trigger,
            args=["interval"],
            id="budget_integrity_audit",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with budget audit every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
