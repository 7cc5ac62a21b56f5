"""
Daily result cache. Serves the stored snapshot for a date, or runs one scrape
for it. Concurrent misses for the same date share a single scrape.

Process-wide lifecycle: created by the app at startup, refreshed by the daily
task and on cache misses; the API only reads through get(), stored() and latest().
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from . import service
from .results import DailySnapshot, SnapshotLookup

logger = logging.getLogger(__name__)

BACKEND_DATABASE = "database"
BACKEND_MEMORY = "memory"

# Back-dated snapshots the memory store keeps beside the current one
MAX_OTHER_DATES = 7


class SnapshotStore(ABC):
    @abstractmethod
    def get(self, snapshot_date: date) -> Optional[DailySnapshot]:
        pass

    @abstractmethod
    def put(self, snapshot: DailySnapshot) -> None:
        pass

    @abstractmethod
    def latest(self) -> Optional[DailySnapshot]:
        pass


class DatabaseSnapshotStore(SnapshotStore):
    """Durable store: one row per date."""

    def get(self, snapshot_date: date) -> Optional[DailySnapshot]:
        return service.get_snapshot(snapshot_date)

    def put(self, snapshot: DailySnapshot) -> None:
        service.save_snapshot(snapshot)

    def latest(self) -> Optional[DailySnapshot]:
        return service.get_latest_snapshot()


class MemorySnapshotStore(SnapshotStore):
    """One rolling "current" snapshot plus a few snapshots for other dates.

    Only a snapshot at least as new as the current one rolls the current slot
    forward, so a back-dated request never evicts today's data.
    """

    def __init__(self, max_other_dates: int = MAX_OTHER_DATES):
        self.max_other_dates = max_other_dates
        self._current: Optional[DailySnapshot] = None
        self._others: "OrderedDict[date, DailySnapshot]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, snapshot_date: date) -> Optional[DailySnapshot]:
        with self._lock:
            current = self._current
            if current is not None and current.date == snapshot_date:
                return current
            snapshot = self._others.get(snapshot_date)
            if snapshot is not None:
                self._others.move_to_end(snapshot_date)
            return snapshot

    def put(self, snapshot: DailySnapshot) -> None:
        with self._lock:
            current = self._current
            if current is None or snapshot.date >= current.date:
                self._current = snapshot
                self._others.pop(snapshot.date, None)
                return
            self._others[snapshot.date] = snapshot
            self._others.move_to_end(snapshot.date)
            while len(self._others) > self.max_other_dates:
                evicted, _ = self._others.popitem(last=False)
                logger.debug(f"Dropped in-memory snapshot for {evicted.isoformat()}")

    def latest(self) -> Optional[DailySnapshot]:
        return self._current


def create_store(backend: Optional[str]) -> SnapshotStore:
    if (backend or BACKEND_DATABASE).lower() == BACKEND_MEMORY:
        return MemorySnapshotStore()
    return DatabaseSnapshotStore()


class _Flight:
    """One scrape in progress; followers wait on the event."""

    def __init__(self):
        self.event = threading.Event()
        self.snapshot: Optional[DailySnapshot] = None
        self.error: Optional[BaseException] = None


class DailyResultCache:
    def __init__(self, store: SnapshotStore, runner: Callable[[date], DailySnapshot]):
        """
        Args:
            store: where snapshots live
            runner: scrapes every mosque for a date (ScrapeOrchestrator.run)
        """
        self.store = store
        self.runner = runner
        self._lock = threading.Lock()
        self._flights: Dict[date, _Flight] = {}

    def get(self, snapshot_date: Optional[date] = None) -> SnapshotLookup:
        """Stored snapshot for the date (from_cache=True), else scrape it once."""
        snapshot_date = snapshot_date or date.today()
        cached = self.store.get(snapshot_date)
        if cached is not None:
            return SnapshotLookup(snapshot=cached, from_cache=True)
        snapshot, from_cache = self._single_flight(snapshot_date, force=False)
        return SnapshotLookup(snapshot=snapshot, from_cache=from_cache)

    def refresh(self, snapshot_date: Optional[date] = None) -> DailySnapshot:
        """Scrape again and replace the stored snapshot. Joins a scrape already running for the date."""
        snapshot, _ = self._single_flight(snapshot_date or date.today(), force=True)
        return snapshot

    def latest(self) -> Optional[DailySnapshot]:
        return self.store.latest()

    def stored(self, snapshot_date: Optional[date] = None) -> Optional[DailySnapshot]:
        """Stored snapshot for the date without scraping on a miss."""
        return self.store.get(snapshot_date or date.today())

    def is_refreshing(self, snapshot_date: Optional[date] = None) -> bool:
        with self._lock:
            return (snapshot_date or date.today()) in self._flights

    def _single_flight(self, snapshot_date: date, force: bool) -> Tuple[DailySnapshot, bool]:
        with self._lock:
            flight = self._flights.get(snapshot_date)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._flights[snapshot_date] = flight

        if not leader:
            logger.info(f"Waiting for scrape already running for {snapshot_date.isoformat()}")
            flight.event.wait()
            if flight.error is not None:
                raise flight.error
            return flight.snapshot, False

        try:
            if not force:
                # Another leader may have finished between our miss and taking the lock
                existing = self.store.get(snapshot_date)
                if existing is not None:
                    flight.snapshot = existing
                    return existing, True
            logger.info(f"Refreshing snapshot for {snapshot_date.isoformat()}")
            snapshot = self.runner(snapshot_date)
            self.store.put(snapshot)
            flight.snapshot = snapshot
            return snapshot, False
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._lock:
                self._flights.pop(snapshot_date, None)
            flight.event.set()
