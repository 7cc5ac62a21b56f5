"""
SQLAlchemy model for daily snapshots: one row per calendar date.
"""
from sqlalchemy import Column, Date, DateTime, Integer, JSON

from kent_jamaah.core.db import Base


class DailySnapshotRecord(Base):
    """One scrape of all mosques for a date. data is the JSON list of MosqueResult dicts."""
    __tablename__ = "daily_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_date = Column(Date, nullable=False, unique=True, index=True)
    updated_at = Column(DateTime(timezone=False), nullable=False, index=True)
    data = Column(JSON, nullable=False)  # [{id, name, url, address, jamaah, jummah, scrapedAt, confidence}, ...]
