"""
Schedule types, next-run arithmetic and the BaseTask contract.
Next/last run times live in the task_schedules table (naive UTC) so a restart
resumes the schedule instead of running everything again.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from kent_jamaah.core.db import session_scope
from kent_jamaah.core.models import TaskSchedule, utc_now_naive

logger = logging.getLogger(__name__)


class TaskType:
    """Schedule kind for tasks."""
    DAILY = "daily"
    INTERVAL_SECONDS = "interval_seconds"


def parse_clock(time_str: Any, default: Tuple[int, int] = (0, 0)) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute); falls back to default on bad input."""
    try:
        parts = str(time_str).strip().split(":")
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) > 1 else 0
    except (ValueError, IndexError):
        return default
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return default
    return hour, minute


def compute_next_run(
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    last_run: Optional[datetime],
) -> datetime:
    """Next run after last_run (default now). Daily times are UTC wall clock."""
    last_run = last_run or utc_now_naive()
    schedule_config = schedule_config or {}

    if schedule_type == TaskType.DAILY:
        hour, minute = parse_clock(schedule_config.get("time", "00:00"))
        next_run = last_run.replace(hour=hour, minute=minute, second=0, microsecond=0)
        return next_run if next_run > last_run else next_run + timedelta(days=1)

    if schedule_type == TaskType.INTERVAL_SECONDS:
        return last_run + timedelta(seconds=int(schedule_config.get("interval_seconds", 86400)))

    logger.warning(f"Unknown schedule type {schedule_type!r}, running again in a day")
    return last_run + timedelta(days=1)


def _schedule_row(session: Session, task_name: str) -> Optional[TaskSchedule]:
    return session.execute(
        select(TaskSchedule).where(TaskSchedule.task_name == task_name)
    ).scalars().first()


def get_next_run_from_db(task_name: str) -> Optional[datetime]:
    """next_run_at for the task; None (run now) when there is no row or it was never run."""
    with session_scope() as session:
        row = _schedule_row(session, task_name)
        return row.next_run_at if row else None


def upsert_task_schedule(
    task_name: str,
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    next_run_at: Optional[datetime] = None,
) -> None:
    """Create the schedule row, or update its type/config.

    A new row gets next_run_at=None unless given, so a fresh database runs the
    task at startup. An existing row keeps its next_run_at unless one is given.
    """
    with session_scope() as session:
        row = _schedule_row(session, task_name)
        if row is None:
            session.add(TaskSchedule(
                task_name=task_name,
                schedule_type=schedule_type,
                schedule_config=schedule_config,
                next_run_at=next_run_at,
            ))
            return
        if row.schedule_type != schedule_type or row.schedule_config != schedule_config:
            logger.info(f"Schedule for {task_name} changed to {schedule_type} {schedule_config}")
            row.schedule_type = schedule_type
            row.schedule_config = schedule_config
            # Old next_run_at was computed from the previous schedule
            row.next_run_at = compute_next_run(schedule_type, schedule_config, None)
        if next_run_at is not None:
            row.next_run_at = next_run_at


def update_after_run(task_name: str, error: Optional[str] = None) -> None:
    """Record a finished run (error=None on success) and compute the next one."""
    with session_scope() as session:
        row = _schedule_row(session, task_name)
        if row is None:
            logger.warning(f"No schedule row for {task_name}; run not recorded")
            return
        now = utc_now_naive()
        row.last_run_at = now
        row.last_error = error
        row.next_run_at = compute_next_run(row.schedule_type, row.schedule_config, now)


class BaseTask(ABC):
    """
    A unit of background work with its own schedule. Subclasses implement run()
    and call update_after_run(self.task_name) when done, passing the error text
    on failure.
    """

    def __init__(self, task_name: str, schedule_type: str, schedule_config: Optional[Dict[str, Any]] = None):
        self.task_name = task_name
        self.schedule_type = schedule_type
        self.schedule_config = schedule_config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def ensure_scheduled(self, next_run_at: Optional[datetime] = None) -> None:
        """Make sure the schedule row exists so the next run survives restarts."""
        upsert_task_schedule(self.task_name, self.schedule_type, self.schedule_config, next_run_at=next_run_at)

    @abstractmethod
    def run(self, **kwargs: Any) -> Any:
        pass
