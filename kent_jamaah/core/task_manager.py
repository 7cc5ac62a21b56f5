"""
Single place for scheduling: in-memory timers and DB-backed registered tasks.
"""
import logging
from datetime import datetime, timezone
from threading import Timer
from typing import Any, Dict, List

from kent_jamaah.core.models import utc_now_naive
from kent_jamaah.core.task import BaseTask, get_next_run_from_db


class TaskManager:
    def __init__(self):
        self.timers: Dict[str, Timer] = {}
        self.logger = logging.getLogger("TaskManager")
        self._registered_tasks: Dict[str, BaseTask] = {}
        self._stopped = False

    def schedule_timer(self, name: str, callback, delay: int) -> None:
        """Run callback once after delay seconds, replacing any pending timer with the same name."""
        if self._stopped:
            return
        self.logger.info(f"Scheduling task {name} with delay {delay} seconds")
        if name in self.timers:
            self.logger.info(f"Cancelling existing timer {name}")
            self.timers[name].cancel()

        scheduled_time = datetime.now(timezone.utc).timestamp() + delay
        timer = Timer(delay, self._run_timer, args=(name, callback))
        timer.daemon = True
        timer.scheduled_time = scheduled_time

        self.timers[name] = timer
        timer.start()
        self.logger.info(f"Timer started for {name}, scheduled for {datetime.fromtimestamp(scheduled_time)}")

    def _run_timer(self, name: str, callback) -> None:
        try:
            callback()
        except Exception as e:
            self.logger.exception(f"Error running task {name}: {e}")

    def register_task(self, task: BaseTask) -> None:
        """Register a task; its run() does the work and updates next_run in DB."""
        task.ensure_scheduled()
        self._registered_tasks[task.task_name] = task
        self.logger.debug(f"Registered task: {task.task_name}")

    def schedule_registered_task(self, task_name: str) -> None:
        """
        Schedule a registered task: run at next_run from DB (or immediately if null or past due).
        After running, the task updates next_run in DB; we reschedule again for the new next_run.
        """
        if task_name not in self._registered_tasks:
            self.logger.warning(f"No task registered with name: {task_name}")
            return
        next_run = get_next_run_from_db(task_name)
        now = utc_now_naive()
        if next_run is None:
            delay = 0
        else:
            delay = max(0, int((next_run - now).total_seconds()))
        self.schedule_timer(task_name, lambda: self._run_registered_and_reschedule(task_name), delay)

    def _run_registered_and_reschedule(self, task_name: str) -> None:
        """Run the registered task then reschedule for next_run from DB."""
        self.run_task_now(task_name)
        self.schedule_registered_task(task_name)

    def run_task_now(self, task_name: str, **kwargs: Any) -> Any:
        """Run a registered task once immediately (e.g. manual refresh)."""
        task = self._registered_tasks.get(task_name)
        if not task:
            self.logger.warning(f"No task registered with name: {task_name}")
            return None
        try:
            return task.run(**kwargs)
        except Exception as e:
            self.logger.exception(f"Run task now {task_name} failed: {e}")
            return None

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return list of active timer names and their next run time (for API)."""
        result = []
        for name, timer in self.timers.items():
            if timer.is_alive() and getattr(timer, "scheduled_time", None) is not None:
                next_run = datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)
                result.append({"name": name, "next_run_at": next_run})
        return result

    def stop(self) -> None:
        """Stop all scheduled timers."""
        self._stopped = True
        for timer in self.timers.values():
            timer.cancel()
