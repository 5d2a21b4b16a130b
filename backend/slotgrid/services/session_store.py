"""SQLAlchemy-backed fetch, commit, delete and duplicate collaborators.

``commit_move`` re-validates the move against every room, teacher and class
booking before persisting it, so a client whose snapshot is stale still cannot
create a double booking.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Callable

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from slotgrid.core.exceptions import CommitFailure, ResourceNotFoundError
from slotgrid.models.scheduled_session import ScheduledSession
from slotgrid.schemas.session import DAY_NAMES, MoveRequest, PlacementScope, ProposedPlacement
from slotgrid.schemas.session import Session as SessionOut
from slotgrid.services.conflict_service import find_conflicts

logger = logging.getLogger(__name__)


def to_schema(row: ScheduledSession) -> SessionOut:
    return SessionOut(
        id=row.id,
        courseCode=row.course_code,
        courseName=row.course_name,
        sessionType=row.session_type.value,
        date=row.specific_date,
        dayOfWeek=row.day_of_week,
        timeSlotRef=row.time_slot_ref,
        startTime=row.start_time,
        endTime=row.end_time,
        roomRef=row.room_ref,
        teacherRef=row.teacher_ref,
        classRef=row.class_ref,
        isRoomModified=row.is_room_modified,
        isTeacherModified=row.is_teacher_modified,
        isTimeModified=row.is_time_modified,
    )


def get_session_row(db: Session, session_id: int) -> ScheduledSession:
    row = db.get(ScheduledSession, session_id)
    if row is None:
        raise ResourceNotFoundError("Session", session_id)
    return row


def list_sessions(
    db: Session,
    *,
    class_ref: str | None = None,
    room_ref: str | None = None,
    teacher_ref: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
) -> list[SessionOut]:
    query = select(ScheduledSession)
    if class_ref is not None:
        query = query.where(ScheduledSession.class_ref == class_ref)
    if room_ref is not None:
        query = query.where(ScheduledSession.room_ref == room_ref)
    if teacher_ref is not None:
        query = query.where(ScheduledSession.teacher_ref == teacher_ref)
    # Recurring sessions have no date and belong to every week in the range.
    if date_from is not None:
        query = query.where(or_(ScheduledSession.specific_date.is_(None), ScheduledSession.specific_date >= date_from))
    if date_to is not None:
        query = query.where(or_(ScheduledSession.specific_date.is_(None), ScheduledSession.specific_date <= date_to))
    query = query.order_by(ScheduledSession.specific_date, ScheduledSession.start_time, ScheduledSession.id)
    return [to_schema(row) for row in db.scalars(query).all()]


def _competing_sessions(db: Session, row: ScheduledSession, target_date: dt.date) -> list[SessionOut]:
    scope_filters = [
        column == value
        for column, value in (
            (ScheduledSession.room_ref, row.room_ref),
            (ScheduledSession.teacher_ref, row.teacher_ref),
            (ScheduledSession.class_ref, row.class_ref),
        )
        if value is not None
    ]
    # Stored day names vary in spelling; find_conflicts resolves recurring rows.
    on_date = or_(
        ScheduledSession.specific_date == target_date,
        ScheduledSession.specific_date.is_(None),
    )
    query = select(ScheduledSession).where(on_date, ScheduledSession.id != row.id)
    if scope_filters:
        query = query.where(or_(*scope_filters))
    return [to_schema(item) for item in db.scalars(query).all()]


def commit_move(db: Session, request: MoveRequest) -> SessionOut:
    row = get_session_row(db, request.sessionId)
    proposed = ProposedPlacement(
        date=request.date,
        startTime=request.startTime,
        endTime=request.endTime,
        scope=PlacementScope(classRef=row.class_ref, roomRef=row.room_ref, teacherRef=row.teacher_ref),
    )
    conflicts = find_conflicts(
        proposed,
        _competing_sessions(db, row, request.date),
        exclude_id=row.id,
        week_anchor=request.date,
    )
    if conflicts:
        logger.info("Move of session %s refused: %d conflict(s)", row.id, len(conflicts))
        raise CommitFailure(
            f"Slot conflicts with {len(conflicts)} existing session(s)",
            conflicts=[conflict.model_dump() for conflict in conflicts],
            session_id=row.id,
        )

    row.specific_date = request.date
    if row.day_of_week is not None:
        row.day_of_week = DAY_NAMES[request.date.weekday()]
    row.start_time = request.startTime
    row.end_time = request.endTime
    row.is_time_modified = True
    db.commit()
    db.refresh(row)
    logger.info("Session %s persisted at %s %s-%s", row.id, row.specific_date, row.start_time, row.end_time)
    return to_schema(row)


def delete_session(db: Session, session_id: int) -> None:
    row = get_session_row(db, session_id)
    db.delete(row)
    db.commit()


def duplicate_session(db: Session, session_id: int) -> SessionOut:
    source = get_session_row(db, session_id)
    copy = ScheduledSession(
        course_code=source.course_code,
        course_name=source.course_name,
        session_type=source.session_type,
        specific_date=source.specific_date,
        day_of_week=source.day_of_week,
        time_slot_ref=source.time_slot_ref,
        start_time=source.start_time,
        end_time=source.end_time,
        room_ref=source.room_ref,
        teacher_ref=source.teacher_ref,
        class_ref=source.class_ref,
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return to_schema(copy)


class StoreCollaborators:
    """Awaitable adapters so a drag controller can commit straight into the store.

    Each call runs in a worker thread with its own database session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _run(self, operation, *args):
        db = self._session_factory()
        try:
            return operation(db, *args)
        finally:
            db.close()

    async def commit_move(self, request: MoveRequest) -> SessionOut:
        return await asyncio.to_thread(self._run, commit_move, request)

    async def delete_session(self, session_id: int) -> None:
        await asyncio.to_thread(self._run, delete_session, session_id)

    async def duplicate_session(self, session: SessionOut) -> SessionOut:
        return await asyncio.to_thread(self._run, duplicate_session, session.id)
