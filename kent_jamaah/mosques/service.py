"""
Service layer: save and load daily snapshots from DB.
"""
from datetime import date, timezone
from typing import Optional

from sqlalchemy import select, delete

from kent_jamaah.core.db import session_scope
from kent_jamaah.mosques.models import DailySnapshotRecord
from kent_jamaah.mosques.results import DailySnapshot, MosqueResult


def save_snapshot(snapshot: DailySnapshot) -> None:
    """Replace the snapshot stored for this date (delete previous, insert one row)."""
    updated_at = snapshot.updated_at.astimezone(timezone.utc).replace(tzinfo=None)
    with session_scope() as session:
        session.execute(
            delete(DailySnapshotRecord).where(DailySnapshotRecord.snapshot_date == snapshot.date)
        )
        session.add(
            DailySnapshotRecord(
                snapshot_date=snapshot.date,
                updated_at=updated_at,
                data=snapshot.results_as_dicts(),
            )
        )


def get_snapshot(snapshot_date: date) -> Optional[DailySnapshot]:
    """Return the stored snapshot for a date, or None."""
    with session_scope() as session:
        record = session.execute(
            select(DailySnapshotRecord).where(DailySnapshotRecord.snapshot_date == snapshot_date)
        ).scalars().first()
    return _to_snapshot(record)


def get_latest_snapshot() -> Optional[DailySnapshot]:
    """Return the most recently updated snapshot, whatever its date."""
    with session_scope() as session:
        record = session.execute(
            select(DailySnapshotRecord)
            .order_by(DailySnapshotRecord.updated_at.desc())
            .limit(1)
        ).scalars().first()
    return _to_snapshot(record)


def _to_snapshot(record: Optional[DailySnapshotRecord]) -> Optional[DailySnapshot]:
    if record is None:
        return None
    return DailySnapshot(
        date=record.snapshot_date,
        results=tuple(MosqueResult.from_dict(item) for item in record.data or []),
        updated_at=record.updated_at.replace(tzinfo=timezone.utc),
    )
