import datetime as dt
import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from slotgrid.api.deps import get_db, get_grid_window
from slotgrid.core.config import get_settings
from slotgrid.schemas.session import (
    DayLayoutOut,
    MoveBody,
    MoveRequest,
    PlacementValidationOut,
    PlacementValidationRequest,
)
from slotgrid.schemas.session import Session as SessionOut
from slotgrid.services import session_store
from slotgrid.services.conflict_service import find_conflicts
from slotgrid.services.overlap_resolver import build_day_layout
from slotgrid.services.session_indexer import sessions_for_cell
from slotgrid.services.time_geometry import GridWindow

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[SessionOut])
def list_sessions(
    class_ref: str | None = Query(default=None, alias="classRef"),
    room_ref: str | None = Query(default=None, alias="roomRef"),
    teacher_ref: str | None = Query(default=None, alias="teacherRef"),
    date_from: dt.date | None = Query(default=None, alias="dateFrom"),
    date_to: dt.date | None = Query(default=None, alias="dateTo"),
    db: Session = Depends(get_db),
) -> list[SessionOut]:
    return session_store.list_sessions(
        db,
        class_ref=class_ref,
        room_ref=room_ref,
        teacher_ref=teacher_ref,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/cell", response_model=list[SessionOut])
def sessions_in_cell(
    day: str,
    time: str,
    class_ref: str | None = Query(default=None, alias="classRef"),
    db: Session = Depends(get_db),
) -> list[SessionOut]:
    settings = get_settings()
    sessions = session_store.list_sessions(db, class_ref=class_ref)
    return sessions_for_cell(sessions, day, time, settings.cell_tolerance_minutes)


@router.get("/layout", response_model=DayLayoutOut)
def day_layout(
    date: dt.date,
    class_ref: str | None = Query(default=None, alias="classRef"),
    db: Session = Depends(get_db),
    window: GridWindow = Depends(get_grid_window),
) -> DayLayoutOut:
    settings = get_settings()
    sessions = session_store.list_sessions(db, class_ref=class_ref, date_from=date, date_to=date)
    # Recurring rows repeat weekly, so the requested date anchors them.
    return build_day_layout(sessions, date, window, settings.lane_strategy, week_anchor=date)


@router.post("/validate-placement", response_model=PlacementValidationOut)
def validate_placement(
    payload: PlacementValidationRequest,
    db: Session = Depends(get_db),
) -> PlacementValidationOut:
    proposed = payload.proposed
    existing = session_store.list_sessions(db, date_from=proposed.date, date_to=proposed.date)
    # The proposal's own date anchors recurring sessions unless the caller pins a week.
    conflicts = find_conflicts(
        proposed,
        existing,
        exclude_id=payload.excludeId,
        week_anchor=payload.weekAnchor or proposed.date,
    )
    return PlacementValidationOut(valid=not conflicts, conflicts=conflicts)


@router.get("/{session_id}", response_model=SessionOut)
def get_session(session_id: int, db: Session = Depends(get_db)) -> SessionOut:
    return session_store.to_schema(session_store.get_session_row(db, session_id))


@router.post("/{session_id}/move", response_model=SessionOut)
def move_session(session_id: int, payload: MoveBody, db: Session = Depends(get_db)) -> SessionOut:
    request = MoveRequest(sessionId=session_id, **payload.model_dump())
    return session_store.commit_move(db, request)


@router.post("/{session_id}/duplicate", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def duplicate_session(session_id: int, db: Session = Depends(get_db)) -> SessionOut:
    return session_store.duplicate_session(db, session_id)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: int, db: Session = Depends(get_db)) -> Response:
    session_store.delete_session(db, session_id)
    logger.info("Session %s deleted", session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
