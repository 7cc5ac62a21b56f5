"""
Read API for jamaah times. Mounted at /api by kent_jamaah.api.server.
Results go through the DailyResultCache; responses use the camelCase wire names.
"""
import re
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .results import DailySnapshot

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class MosqueResultResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    url: str
    address: str = ""
    jamaah: Dict[str, Optional[str]] = Field(default_factory=dict)
    jummah: List[str] = Field(default_factory=list)
    scraped_at: str = Field(alias="scrapedAt")
    confidence: str


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str
    from_cache: bool = Field(alias="fromCache")
    data: List[MosqueResultResponse]


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    date: Optional[str] = None
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class MosqueDescriptorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    url: str
    address: str = ""
    source_kind: str = Field(alias="sourceKind")
    source_params: Dict[str, Any] = Field(default_factory=dict, alias="sourceParams")


def parse_date_param(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD query value; None or blank means today. Raises ValueError."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not DATE_PATTERN.match(value):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    return date.fromisoformat(value)


def _bad_date(e: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(e)})


def _snapshot_response(snapshot: DailySnapshot, from_cache: bool) -> SnapshotResponse:
    return SnapshotResponse(
        date=snapshot.date_key,
        from_cache=from_cache,
        data=[MosqueResultResponse.model_validate(item) for item in snapshot.results_as_dicts()],
    )


def get_router(jamaah_app) -> APIRouter:
    """Return the API router bound to the running JamaahApp (uses .cache and .registry)."""
    router = APIRouter(tags=["Jamaah"])

    @router.get("/kent-mosques", response_model=SnapshotResponse)
    def get_kent_mosques(date_param: Optional[str] = Query(None, alias="date")):
        """Jamaah times for every registered mosque on a date (default today)."""
        try:
            target_date = parse_date_param(date_param)
        except ValueError as e:
            return _bad_date(e)
        lookup = jamaah_app.cache.get(target_date)
        return _snapshot_response(lookup.snapshot, lookup.from_cache)

    @router.get("/status", response_model=StatusResponse)
    def get_status() -> StatusResponse:
        """Liveness plus the date and update time of today's snapshot, else the newest stored one."""
        snapshot = jamaah_app.cache.stored(date.today()) or jamaah_app.cache.latest()
        if snapshot is None:
            return StatusResponse()
        return StatusResponse(date=snapshot.date_key, updated_at=snapshot.updated_at.isoformat())

    @router.get("/mosques", response_model=List[MosqueDescriptorResponse])
    def list_mosques() -> List[MosqueDescriptorResponse]:
        """Registered mosques and how each one is scraped."""
        return [MosqueDescriptorResponse.model_validate(d.to_dict()) for d in jamaah_app.registry]

    @router.post("/refresh", response_model=SnapshotResponse)
    def refresh(date_param: Optional[str] = Query(None, alias="date")):
        """Scrape again now and replace the stored snapshot for the date."""
        try:
            target_date = parse_date_param(date_param)
        except ValueError as e:
            return _bad_date(e)
        snapshot = jamaah_app.cache.refresh(target_date)
        return _snapshot_response(snapshot, from_cache=False)

    return router
