"""Tests for scheduling helpers and the daily refresh task."""

import threading
import time
from datetime import date, datetime

import pytest

from kent_jamaah.core.models import get_all_task_schedules
from kent_jamaah.core.task import TaskType, compute_next_run, get_next_run_from_db, parse_clock
from kent_jamaah.core.task_manager import TaskManager
from kent_jamaah.mosques.cache import DailyResultCache, MemorySnapshotStore
from kent_jamaah.mosques.results import DailySnapshot, utc_now
from kent_jamaah.mosques.task import TASK_NAME, DailyRefreshTask


class TestParseClock:
    @pytest.mark.parametrize(
        "value, expected",
        [("03:00", (3, 0)), ("7:5", (7, 5)), ("23", (23, 0)), ("25:00", (0, 0)), ("noon", (0, 0))],
    )
    def test_values(self, value, expected):
        assert parse_clock(value) == expected

    def test_custom_default(self):
        assert parse_clock("bad", default=(3, 0)) == (3, 0)


class TestComputeNextRun:
    def test_daily_later_today(self):
        last = datetime(2025, 3, 14, 1, 0)
        assert compute_next_run(TaskType.DAILY, {"time": "03:00"}, last) == datetime(2025, 3, 14, 3, 0)

    def test_daily_rolls_to_tomorrow(self):
        last = datetime(2025, 3, 14, 3, 0)
        assert compute_next_run(TaskType.DAILY, {"time": "03:00"}, last) == datetime(2025, 3, 15, 3, 0)

    def test_interval(self):
        last = datetime(2025, 3, 14, 3, 0)
        assert compute_next_run(TaskType.INTERVAL_SECONDS, {"interval_seconds": 60}, last) == datetime(2025, 3, 14, 3, 1)


def _runner(target_date):
    return DailySnapshot(date=target_date, results=(), updated_at=utc_now())


class TestDailyRefreshTask:
    def test_schedule_from_config(self):
        cache = DailyResultCache(MemorySnapshotStore(), _runner)
        task = DailyRefreshTask(cache, {"daily_update": {"enabled": True, "time": "4:30"}})
        assert task.schedule_type == TaskType.DAILY
        assert task.schedule_config == {"time": "04:30"}

    def test_default_schedule(self):
        task = DailyRefreshTask(DailyResultCache(MemorySnapshotStore(), _runner))
        assert task.schedule_config == {"time": "03:00"}

    def test_disabled_falls_back_to_interval(self):
        task = DailyRefreshTask(DailyResultCache(MemorySnapshotStore(), _runner), {"daily_update": {"enabled": False}})
        assert task.schedule_type == TaskType.INTERVAL_SECONDS

    def test_new_database_runs_immediately(self, database):
        task = DailyRefreshTask(DailyResultCache(MemorySnapshotStore(), _runner))
        TaskManager().register_task(task)
        assert get_next_run_from_db(TASK_NAME) is None

    def test_run_refreshes_and_records(self, database):
        cache = DailyResultCache(MemorySnapshotStore(), _runner)
        task = DailyRefreshTask(cache)
        manager = TaskManager()
        manager.register_task(task)

        snapshot = manager.run_task_now(TASK_NAME, target_date=date(2025, 3, 14))
        assert snapshot.date == date(2025, 3, 14)
        assert cache.latest() is snapshot

        row = get_all_task_schedules()[0]
        assert row["last_run_at"] is not None
        assert row["last_error"] is None
        assert row["next_run_at"] > row["last_run_at"]

    def test_failed_run_records_error(self, database):
        def broken(target_date):
            raise RuntimeError("no browser")

        task = DailyRefreshTask(DailyResultCache(MemorySnapshotStore(), broken))
        manager = TaskManager()
        manager.register_task(task)

        assert manager.run_task_now(TASK_NAME) is None
        row = get_all_task_schedules()[0]
        assert row["last_error"] == "no browser"

    def test_run_joins_scrape_already_running(self, database, caplog):
        release = threading.Event()
        calls = []

        def slow(target_date):
            calls.append(target_date)
            release.wait(timeout=5)
            return _runner(target_date)

        cache = DailyResultCache(MemorySnapshotStore(), slow)
        task = DailyRefreshTask(cache)
        TaskManager().register_task(task)
        day = date(2025, 3, 14)

        reader = threading.Thread(target=cache.get, args=(day,))
        reader.start()
        while not cache.is_refreshing(day):
            time.sleep(0.01)

        results = []
        runner_thread = threading.Thread(target=lambda: results.append(task.run(target_date=day)))
        with caplog.at_level("INFO"):
            runner_thread.start()
            time.sleep(0.2)
            release.set()
            runner_thread.join(timeout=5)
        reader.join(timeout=5)

        assert calls == [day]
        assert results[0].date == day
        assert "already running" in caplog.text
