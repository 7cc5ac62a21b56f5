"""
Background task: scrape every mosque once a day, store the snapshot, persist next_run in DB.
"""
from typing import Any, Dict, Optional, Tuple

from kent_jamaah.core.task import (
    BaseTask,
    TaskType,
    parse_clock,
    update_after_run,
)
from kent_jamaah.mosques.cache import DailyResultCache
from kent_jamaah.mosques.results import DailySnapshot

TASK_NAME = "daily_jamaah_refresh"
DEFAULT_UPDATE_TIME = "03:00"


class DailyRefreshTask(BaseTask):
    """Refresh today's snapshot through the cache, then update next_run."""

    def __init__(self, cache: DailyResultCache, schedule_config: Optional[Dict[str, Any]] = None):
        schedule_type, task_schedule = self._schedule_from_config(schedule_config or {})
        super().__init__(TASK_NAME, schedule_type, task_schedule)
        self.cache = cache

    def _schedule_from_config(self, config: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        daily = config.get("daily_update") or {}
        if daily.get("enabled", True):
            hour, minute = parse_clock(daily.get("time", DEFAULT_UPDATE_TIME), default=(3, 0))
            return TaskType.DAILY, {"time": f"{hour:02d}:{minute:02d}"}
        return TaskType.INTERVAL_SECONDS, {"interval_seconds": 86400}

    def run(self, **kwargs: Any) -> Optional[DailySnapshot]:
        target_date = kwargs.get("target_date")
        if self.cache.is_refreshing(target_date):
            self.logger.info("A scrape is already running for the date; joining it")
        try:
            snapshot = self.cache.refresh(target_date)
        except Exception as e:
            self.logger.exception(f"Daily refresh failed: {e}")
            update_after_run(self.task_name, error=str(e))
            return None
        self.logger.info(
            f"Daily refresh saved {len(snapshot.results)} mosque(s) for {snapshot.date_key}"
        )
        update_after_run(self.task_name)
        return snapshot
