"""
Result types shared by extractors, the orchestrator and the cache.
Field names in to_dict() are the public JSON schema.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .normalizer import MAX_JUMMAH_TIMES, PRAYER_NAMES, unique_times
from .registry import MosqueDescriptor


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Confidence:
    """How far an extraction can be trusted."""
    HIGH = "high"  # read from a known structure
    LOW = "low"  # positional or textual guess
    NONE = "none"  # nothing extracted


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one extractor call: data, or the empty default plus the reason."""
    jamaah: Dict[str, Optional[str]] = field(default_factory=dict)
    jummah: List[str] = field(default_factory=list)
    confidence: str = Confidence.NONE
    error: Optional[str] = None

    @classmethod
    def build(cls, jamaah: Dict[str, Optional[str]], jummah: List[str], confidence: str) -> "ExtractionResult":
        """Keep canonical prayer names only; dedupe and cap jummah."""
        cleaned = {name: jamaah.get(name) for name in PRAYER_NAMES}
        times = unique_times(jummah, MAX_JUMMAH_TIMES)
        if not any(cleaned.values()) and not times:
            confidence = Confidence.NONE
        return cls(jamaah=cleaned, jummah=times, confidence=confidence)

    @classmethod
    def empty(cls, error: Optional[str] = None) -> "ExtractionResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def found_count(self) -> int:
        return sum(1 for value in self.jamaah.values() if value)


@dataclass(frozen=True)
class MosqueResult:
    id: str
    name: str
    url: str
    address: str
    jamaah: Dict[str, Optional[str]]
    jummah: List[str]
    scraped_at: datetime
    confidence: str = Confidence.NONE

    @classmethod
    def from_extraction(cls, descriptor: MosqueDescriptor, extraction: ExtractionResult,
                        scraped_at: Optional[datetime] = None) -> "MosqueResult":
        return cls(
            id=descriptor.id,
            name=descriptor.name,
            url=descriptor.url,
            address=descriptor.address,
            jamaah=dict(extraction.jamaah),
            jummah=list(extraction.jummah),
            scraped_at=scraped_at or utc_now(),
            confidence=extraction.confidence,
        )

    @classmethod
    def empty(cls, descriptor: MosqueDescriptor) -> "MosqueResult":
        return cls.from_extraction(descriptor, ExtractionResult.empty())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "address": self.address,
            "jamaah": dict(self.jamaah),
            "jummah": list(self.jummah),
            "scrapedAt": self.scraped_at.isoformat(),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MosqueResult":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            url=data.get("url", ""),
            address=data.get("address", ""),
            jamaah=dict(data.get("jamaah") or {}),
            jummah=list(data.get("jummah") or []),
            scraped_at=datetime.fromisoformat(data["scrapedAt"]),
            confidence=data.get("confidence", Confidence.NONE),
        )


@dataclass(frozen=True)
class DailySnapshot:
    """All results for one calendar day, in registry order. Never mutated once stored."""
    date: date
    results: Tuple[MosqueResult, ...]
    updated_at: datetime

    @property
    def date_key(self) -> str:
        return self.date.isoformat()

    def results_as_dicts(self) -> List[Dict[str, Any]]:
        return [result.to_dict() for result in self.results]


@dataclass(frozen=True)
class SnapshotLookup:
    snapshot: DailySnapshot
    from_cache: bool
