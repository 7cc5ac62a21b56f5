"""Tests for the daily result cache and its stores."""

import threading
import time
from datetime import date, datetime, timezone

import pytest

from kent_jamaah.mosques.cache import (
    DailyResultCache,
    DatabaseSnapshotStore,
    MemorySnapshotStore,
    create_store,
)
from kent_jamaah.mosques.results import DailySnapshot, ExtractionResult, MosqueResult

DAY = date(2025, 3, 14)


class CountingRunner:
    """Fake orchestrator run: builds a one-mosque snapshot, counts invocations."""

    def __init__(self, descriptor, delay=0.0, error=None):
        self.descriptor = descriptor
        self.delay = delay
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, target_date):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        extraction = ExtractionResult.build({"Fajr": "05:30"}, ["13:15"], "high")
        return DailySnapshot(
            date=target_date,
            results=(MosqueResult.from_extraction(self.descriptor, extraction),),
            updated_at=datetime.now(timezone.utc),
        )


@pytest.fixture
def runner(html_descriptor):
    return CountingRunner(html_descriptor)


class TestGet:
    def test_miss_then_hit(self, runner):
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        first = cache.get(DAY)
        second = cache.get(DAY)

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.snapshot.results == first.snapshot.results
        assert runner.calls == 1

    def test_other_date_is_a_miss(self, runner):
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        cache.get(DAY)
        lookup = cache.get(date(2025, 3, 15))
        assert lookup.from_cache is False
        assert runner.calls == 2

    def test_defaults_to_today(self, runner):
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        assert cache.get().snapshot.date == date.today()

    def test_back_dated_request_does_not_evict_today(self, runner):
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        cache.get(date.today())
        cache.get(date(2020, 1, 1))
        lookup = cache.get(date.today())

        assert lookup.from_cache is True
        assert runner.calls == 2
        assert cache.latest().date == date.today()

    def test_stored_never_scrapes(self, runner):
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        assert cache.stored(DAY) is None
        cache.get(DAY)
        assert cache.stored(DAY).date == DAY
        assert runner.calls == 1


class TestRefresh:
    def test_refresh_replaces_snapshot(self, runner):
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        first = cache.get(DAY).snapshot
        refreshed = cache.refresh(DAY)

        assert runner.calls == 2
        assert refreshed is not first
        assert cache.get(DAY).snapshot is refreshed
        assert cache.latest() is refreshed

    def test_failure_propagates_and_keeps_old_snapshot(self, html_descriptor):
        store = MemorySnapshotStore()
        good = CountingRunner(html_descriptor)
        cache = DailyResultCache(store, good)
        previous = cache.get(DAY).snapshot

        cache.runner = CountingRunner(html_descriptor, error=RuntimeError("browser died"))
        with pytest.raises(RuntimeError, match="browser died"):
            cache.refresh(DAY)
        assert cache.get(DAY).snapshot is previous
        assert not cache.is_refreshing(DAY)


class TestSingleFlight:
    def test_concurrent_misses_scrape_once(self, html_descriptor):
        runner = CountingRunner(html_descriptor, delay=0.2)
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        lookups = []

        def worker():
            lookups.append(cache.get(DAY))

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert runner.calls == 1
        assert len(lookups) == 5
        assert len({id(lookup.snapshot) for lookup in lookups}) == 1

    def test_followers_receive_leader_error(self, html_descriptor):
        runner = CountingRunner(html_descriptor, delay=0.2, error=RuntimeError("down"))
        cache = DailyResultCache(MemorySnapshotStore(), runner)
        errors = []

        def worker():
            try:
                cache.get(DAY)
            except RuntimeError as e:
                errors.append(str(e))

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert runner.calls == 1
        assert errors == ["down", "down", "down"]


class TestStores:
    def test_memory_store_rolls_forward(self, runner):
        store = MemorySnapshotStore()
        store.put(runner(DAY))
        store.put(runner(date(2025, 3, 15)))
        assert store.get(DAY) is None
        assert store.latest().date == date(2025, 3, 15)

    def test_back_dated_snapshot_keeps_current(self, runner):
        store = MemorySnapshotStore()
        today = runner(DAY)
        store.put(today)
        store.put(runner(date(2020, 1, 1)))
        assert store.get(DAY) is today
        assert store.get(date(2020, 1, 1)).date == date(2020, 1, 1)
        assert store.latest() is today

    def test_other_dates_are_bounded(self, runner):
        store = MemorySnapshotStore(max_other_dates=2)
        store.put(runner(DAY))
        for day in (1, 2, 3):
            store.put(runner(date(2025, 1, day)))
        assert store.get(date(2025, 1, 1)) is None
        assert store.get(date(2025, 1, 3)) is not None
        assert store.latest().date == DAY

    def test_create_store(self):
        assert isinstance(create_store("memory"), MemorySnapshotStore)
        assert isinstance(create_store("MEMORY"), MemorySnapshotStore)
        assert isinstance(create_store(None), DatabaseSnapshotStore)
        assert isinstance(create_store("database"), DatabaseSnapshotStore)

    def test_database_store_round_trip(self, database, runner):
        cache = DailyResultCache(DatabaseSnapshotStore(), runner)
        cache.get(DAY)
        lookup = cache.get(DAY)
        assert lookup.from_cache is True
        assert lookup.snapshot.results[0].jamaah["Fajr"] == "05:30"
        assert runner.calls == 1

    def test_database_store_concurrent_misses_scrape_once(self, database, html_descriptor):
        runner = CountingRunner(html_descriptor, delay=0.2)
        cache = DailyResultCache(DatabaseSnapshotStore(), runner)
        lookups = []

        def worker():
            lookups.append(cache.get(DAY))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert runner.calls == 1
        assert len(lookups) == 4
        assert cache.get(DAY).from_cache is True
