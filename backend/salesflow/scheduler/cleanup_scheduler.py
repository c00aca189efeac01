"""Cleanup Scheduler - Periodic housekeeping jobs

Handles:
- Purging collapsed-task markers whose expiry has passed
"""
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..services.task_count_service import TaskCountService
from ..domain.errors import StoreError
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id

logger = get_logger(__name__)


class CleanupScheduler:
    """APScheduler wrapper running the housekeeping jobs inside the app's event loop"""

    def __init__(self, count_service: Optional[TaskCountService] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._count_service = count_service
        self._is_running = False

    @property
    def count_service(self) -> TaskCountService:
        if self._count_service is None:
            self._count_service = TaskCountService()
        return self._count_service

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.purge_collapsed_tasks,
            trigger=IntervalTrigger(seconds=settings.cleanup_interval_seconds),
            id="purge_collapsed_tasks",
            name="Purge expired collapsed tasks",
            replace_existing=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Cleanup scheduler started (every {settings.cleanup_interval_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Cleanup scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def purge_collapsed_tasks(self) -> int:
        """Delete expired collapsed markers; store errors are logged and retried next run"""
        set_correlation_id(generate_correlation_id())
        try:
            purged = self.count_service.purge_expired()
        except StoreError as e:
            logger.error(f"Collapsed task purge failed: {e.message}")
            return 0
        if purged:
            logger.info(f"Purged {purged} expired collapsed tasks", extra={"action": "purge_collapsed"})
        return purged


# Global scheduler instance
_scheduler: Optional[CleanupScheduler] = None


def get_scheduler() -> CleanupScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = CleanupScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler"""
    get_scheduler().start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
