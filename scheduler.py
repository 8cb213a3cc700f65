import logging
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from gateways import PersistenceGateway
from services import LateStatusService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, gateway_factory: Callable[[], PersistenceGateway]) -> None:
        settings = get_settings()
        self.settings = settings
        self.gateway_factory = gateway_factory
        self.scheduler = AsyncIOScheduler(timezone=settings.timezone)

    async def _run_job(self, source: str = "manual") -> int:
        logger.info(f"scheduler_run: source={source}")
        service = LateStatusService(self.gateway_factory())
        count = await service.mark_overdue()
        logger.info(f"scheduler_run: source={source} occurrences_marked_late={count}")
        return count

    async def start(self) -> None:
        if not self.settings.mark_late:
            logger.info("Scheduler disabled (BUDGET_MARK_LATE=0)")
            return
        await self._run_job("startup")

        trigger = CronTrigger(hour=0, minute=5)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_00:05"],
            id="late_status_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:05 late-status run")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
