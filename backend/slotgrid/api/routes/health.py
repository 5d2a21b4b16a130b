from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from slotgrid.api.deps import get_db, get_grid_window
from slotgrid.services.time_geometry import GridWindow

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready(
    db: Session = Depends(get_db),
    window: GridWindow = Depends(get_grid_window),
) -> JSONResponse:
    db_ok = True
    db_error: str | None = None
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    payload = {
        "status": "ok" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {"ok": db_ok, "error": db_error},
        "grid": {
            "start_hour": window.start_hour,
            "end_hour": window.end_hour,
            "px_per_minute": window.px_per_minute,
            "snap_minutes": window.snap_minutes,
        },
    }
    return JSONResponse(status_code=200 if db_ok else 503, content=payload)
