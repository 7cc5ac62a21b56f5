"""
Core DB models: task schedules.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Column, DateTime, JSON, String, Text, select

from kent_jamaah.core.db import Base, session_scope


def utc_now_naive() -> datetime:
    """UTC now for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskSchedule(Base):
    """Next and last run of one background task."""
    __tablename__ = "task_schedules"

    task_name = Column(String(255), primary_key=True)
    schedule_type = Column(String(64), nullable=False)  # TaskType value
    schedule_config = Column(JSON, nullable=True)  # {"time": "03:00"} or {"interval_seconds": 86400}
    next_run_at = Column(DateTime(timezone=False), nullable=True)  # None: run at next startup
    last_run_at = Column(DateTime(timezone=False), nullable=True)
    last_error = Column(Text, nullable=True)  # None after a successful run
    created_at = Column(DateTime(timezone=False), default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


def get_all_task_schedules() -> List[Dict[str, Any]]:
    """Every schedule row as a plain dict, ordered by task name."""
    with session_scope() as session:
        rows = session.execute(select(TaskSchedule).order_by(TaskSchedule.task_name)).scalars().all()
        return [
            {
                "task_name": row.task_name,
                "schedule_type": row.schedule_type,
                "schedule_config": row.schedule_config,
                "next_run_at": row.next_run_at,
                "last_run_at": row.last_run_at,
                "last_error": row.last_error,
            }
            for row in rows
        ]
