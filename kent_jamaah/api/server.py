"""
FastAPI server for the jamaah API. run_api_server(app) blocks in uvicorn.
Endpoints: GET / (usage notice), GET /api/tasks, and the jamaah routes from
kent_jamaah.mosques.api (get_router(jamaah_app)) mounted under /api.
Docs: http://<host>:<port>/docs
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from kent_jamaah.mosques.api import get_router

logger = logging.getLogger(__name__)

USAGE_HTML = """<!doctype html>
<html>
<head><title>Kent Jamaah Times</title></head>
<body>
<h1>Kent Jamaah Times API</h1>
<p>Congregational prayer times for Kent mosques, refreshed daily.</p>
<ul>
<li><a href="/api/kent-mosques">/api/kent-mosques</a>?date=YYYY-MM-DD : times for every mosque</li>
<li><a href="/api/status">/api/status</a> : date and time of the latest update</li>
<li><a href="/api/mosques">/api/mosques</a> : registered mosques</li>
</ul>
</body>
</html>
"""


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(jamaah_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given JamaahApp instance."""
    app = FastAPI(title="Kent Jamaah API", description="Daily jamaah times for Kent mosques")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Request {request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/", response_class=HTMLResponse)
    def index() -> str:
        return USAGE_HTML

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List scheduled tasks: DB schedules and active in-memory timers."""
        from kent_jamaah.core.models import get_all_task_schedules

        db_schedules = get_all_task_schedules()
        for row in db_schedules:
            row["next_run_at"] = _serialize_datetime(row.get("next_run_at"))
            row["last_run_at"] = _serialize_datetime(row.get("last_run_at"))

        active_timers = jamaah_app.task_manager.get_active_timers()
        active_list = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in active_timers
        ]

        return {"db_schedules": db_schedules, "active_timers": active_list}

    app.include_router(get_router(jamaah_app), prefix="/api")
    return app


def run_api_server(jamaah_app: Any) -> None:
    """
    Serve the API until interrupted.
    Reads api.host (default 0.0.0.0) and api.port (default 3000); PORT env var wins.
    """
    import uvicorn

    api_config = jamaah_app.config.get("api") or {}
    host = api_config.get("host", "0.0.0.0")
    port = int(os.environ.get("PORT") or api_config.get("port", 3000))
    fastapi_app = create_app(jamaah_app)
    logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
    uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
