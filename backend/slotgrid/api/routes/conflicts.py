import datetime as dt

from fastapi import APIRouter, Query

from slotgrid.schemas.conflict import ConflictReport
from slotgrid.schemas.session import Session
from slotgrid.services.conflict_service import ConflictService

router = APIRouter()

@router.post("/detect", response_model=ConflictReport)
def detect_conflicts(
    sessions: list[Session],
    week_anchor: dt.date | None = Query(default=None, alias="weekAnchor"),
):
    service = ConflictService(sessions, week_anchor=week_anchor)
    report = service.detect_conflicts()

    # Generate resolutions for each conflict
    for conflict in report.conflicts:
        resolutions = service.generate_resolutions(conflict)
        report.suggested_resolutions.extend(resolutions)

    return report
