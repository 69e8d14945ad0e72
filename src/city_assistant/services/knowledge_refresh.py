"""APScheduler job that reloads the knowledge snapshot on a cron schedule."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from city_assistant.config import KnowledgeConfig
from city_assistant.knowledge.index import KnowledgeIndex
from city_assistant.log import get_logger
from city_assistant.services.base import Service

logger = get_logger(__name__)

JOB_ID = "knowledge_refresh"


def cron_trigger(cron_expr: str) -> CronTrigger:
    """Build a trigger from a five-field cron expression (missing fields are '*')."""
    parts = cron_expr.split()
    return CronTrigger(
        minute=parts[0] if len(parts) > 0 else "*",
        hour=parts[1] if len(parts) > 1 else "*",
        day=parts[2] if len(parts) > 2 else "*",
        month=parts[3] if len(parts) > 3 else "*",
        day_of_week=parts[4] if len(parts) > 4 else "*",
    )


class KnowledgeRefreshService(Service):
    """Periodically swaps in a freshly scraped snapshot.

    A failed refresh is logged and the collection already loaded keeps serving.
    """

    def __init__(self, config: KnowledgeConfig, index: KnowledgeIndex, timezone: str = "UTC"):
        self._config = config
        self._index = index
        self._scheduler = AsyncIOScheduler(timezone=timezone)
        self.last_error: str | None = None

    @property
    def service_name(self) -> str:
        return "knowledge_refresh"

    @property
    def enabled(self) -> bool:
        return bool(self._config.refresh_cron)

    async def start(self) -> None:
        if not self.enabled:
            logger.info("knowledge_refresh_disabled")
            return
        self._scheduler.add_job(
            self.refresh,
            cron_trigger(self._config.refresh_cron),
            id=JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("knowledge_refresh_scheduled", cron=self._config.refresh_cron)

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("knowledge_refresh_stopped")

    async def health_check(self) -> bool:
        if not self.enabled:
            return True
        return self._scheduler.running and self.last_error is None

    async def refresh(self) -> bool:
        """Reload the snapshot now. Returns True on success."""
        try:
            stats = await self._index.reload_from(
                self._config.snapshot_path,
                self._config.max_content_length,
                self._config.summary_length,
            )
        except Exception as e:
            self.last_error = str(e)
            logger.error("knowledge_refresh_failed", path=self._config.snapshot_path, error=str(e))
            return False
        self.last_error = None
        logger.info("knowledge_refreshed", documents=stats.total_pages, generated_at=stats.generated_at)
        return True
