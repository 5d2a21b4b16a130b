from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from slotgrid.core.exceptions import (
    AmbiguousPlacement,
    AppError,
    CommitFailure,
    ConfigurationError,
    MoveInProgressError,
    ResourceNotFoundError,
)
from slotgrid.schemas.session import (
    DayLayoutOut,
    DropTarget,
    MoveOutcome,
    MoveRequest,
    PlacementScope,
    ProposedPlacement,
    Session,
    normalize_day,
)
from slotgrid.services.conflict_service import find_conflicts
from slotgrid.services.overlap_resolver import LaneStrategy, build_day_layout
from slotgrid.services.session_indexer import date_for_day, week_start
from slotgrid.services.time_geometry import (
    GridWindow,
    duration_minutes,
    minutes_to_time,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

CommitMove = Callable[[MoveRequest], Awaitable[Session]]
DeleteSession = Callable[[int], Awaitable[None]]
DuplicateSession = Callable[[Session], Awaitable[Session]]

SLOT_OCCUPIED_MESSAGE = "Slot occupied"
MINUTES_PER_DAY = 24 * 60


class GestureState(str, Enum):
    idle = "idle"
    dragging = "dragging"
    committing = "committing"


@dataclass(frozen=True)
class DragGesture:
    session_id: int
    state: GestureState = GestureState.dragging


class SessionSnapshot:
    """Immutable, ordered working set of sessions. Mutations return a new snapshot."""

    __slots__ = ("_sessions", "_index")

    def __init__(self, sessions: Iterable[Session] = ()):
        self._sessions = tuple(sessions)
        self._index = {}
        for position, session in enumerate(self._sessions):
            if session.id in self._index:
                raise ValueError(f"Duplicate session id {session.id} in snapshot")
            self._index[session.id] = position

    def __iter__(self) -> Iterator[Session]:
        return iter(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionSnapshot):
            return NotImplemented
        return self._sessions == other._sessions

    def __hash__(self) -> int:
        return hash(self._sessions)

    def get(self, session_id: int) -> Session:
        position = self._index.get(session_id)
        if position is None:
            raise ResourceNotFoundError("Session", session_id)
        return self._sessions[position]

    def with_session(self, updated: Session) -> "SessionSnapshot":
        position = self._index.get(updated.id)
        if position is None:
            raise ResourceNotFoundError("Session", updated.id)
        sessions = list(self._sessions)
        sessions[position] = updated
        return SessionSnapshot(sessions)

    def with_added(self, session: Session) -> "SessionSnapshot":
        return SessionSnapshot((*self._sessions, session))

    def without_session(self, session_id: int) -> "SessionSnapshot":
        self.get(session_id)
        return SessionSnapshot(s for s in self._sessions if s.id != session_id)


class DragPlacementController:
    """Drives a drag-and-drop move of one session on a weekly grid.

    Gesture state travels in :class:`DragGesture` values. The controller also
    records which sessions are being dragged and which commits are still
    awaited, so a gesture that was cancelled or dropped cannot be dropped
    again. The snapshot is replaced only with what the commit collaborator
    returns.
    """

    def __init__(
        self,
        snapshot: SessionSnapshot | Iterable[Session],
        displayed_date: dt.date,
        commit_move: CommitMove,
        *,
        window: GridWindow | None = None,
        scope_keys: tuple[str, ...] = (),
        lane_strategy: LaneStrategy = "greedy",
        delete_session: DeleteSession | None = None,
        duplicate_session: DuplicateSession | None = None,
    ):
        self.snapshot = snapshot if isinstance(snapshot, SessionSnapshot) else SessionSnapshot(snapshot)
        self.displayed_date = displayed_date
        self.window = window or GridWindow()
        self.scope_keys = scope_keys
        self.lane_strategy = lane_strategy
        self._commit_move = commit_move
        self._delete_session = delete_session
        self._duplicate_session = duplicate_session
        self._dragging: set[int] = set()
        self._pending: set[int] = set()

    @property
    def week_monday(self) -> dt.date:
        return week_start(self.displayed_date)

    def state_of(self, session_id: int) -> GestureState:
        if session_id in self._pending:
            return GestureState.committing
        if session_id in self._dragging:
            return GestureState.dragging
        return GestureState.idle

    def pick_up(self, session_id: int) -> DragGesture:
        if session_id in self._pending:
            raise MoveInProgressError(session_id)
        self.snapshot.get(session_id)
        self._dragging.add(session_id)
        logger.debug("Picked up session %s", session_id)
        return DragGesture(session_id)

    def cancel(self, gesture: DragGesture) -> DragGesture:
        self._dragging.discard(gesture.session_id)
        logger.debug("Drag of session %s cancelled", gesture.session_id)
        return DragGesture(gesture.session_id, GestureState.idle)

    def hover(self, gesture: DragGesture, day: str, pointer_y: float, container_top: float = 0.0) -> DropTarget:
        time = self.window.snap(pointer_y, container_top)
        return self._target(gesture, day, time, pointer_y - container_top)

    def hover_time(self, gesture: DragGesture, day: str, time: str) -> DropTarget:
        return self._target(gesture, day, time, None)

    async def drop(
        self,
        gesture: DragGesture,
        day: str,
        pointer_y: float,
        container_top: float = 0.0,
    ) -> MoveOutcome:
        time = self.window.snap(pointer_y, container_top)
        return await self.drop_at_time(gesture, day, time)

    async def drop_at_time(self, gesture: DragGesture, day: str, time: str) -> MoveOutcome:
        session = self.snapshot.get(gesture.session_id)
        if session.id in self._pending:
            raise MoveInProgressError(session.id)
        try:
            target = self._target(gesture, day, time, None)
        except AmbiguousPlacement:
            self._dragging.discard(session.id)
            logger.info("Session %s dropped outside the grid (%r); move discarded", session.id, day)
            return MoveOutcome(status="rejected", session=session, message="Not a valid drop zone")
        # The gesture ends here whatever the outcome.
        self._dragging.discard(session.id)
        if not target.isValid:
            logger.info(
                "Rejected move of session %s to %s %s: %d conflict(s)",
                session.id,
                target.date.isoformat(),
                target.time,
                len(target.conflicts),
            )
            return MoveOutcome(
                status="rejected",
                session=session,
                message=SLOT_OCCUPIED_MESSAGE,
                conflicts=target.conflicts,
            )

        request = MoveRequest(
            sessionId=session.id,
            date=target.date,
            startTime=target.time,
            endTime=target.endTime,
        )
        updated = await self._commit(request)
        self.snapshot = self.snapshot.with_session(updated)
        logger.info(
            "Session %s moved to %s %s-%s",
            updated.id,
            updated.date.isoformat() if updated.date else updated.dayOfWeek,
            updated.startTime,
            updated.endTime,
        )
        return MoveOutcome(status="committed", session=updated, message="Session moved")

    async def delete(self, session_id: int) -> None:
        if self._delete_session is None:
            raise ConfigurationError("No delete collaborator configured")
        self.snapshot.get(session_id)
        await self._delete_session(session_id)
        self.snapshot = self.snapshot.without_session(session_id)

    async def duplicate(self, session_id: int) -> Session:
        if self._duplicate_session is None:
            raise ConfigurationError("No duplicate collaborator configured")
        created = await self._duplicate_session(self.snapshot.get(session_id))
        self.snapshot = self.snapshot.with_added(created)
        return created

    def layout(self, date: dt.date) -> DayLayoutOut:
        return build_day_layout(list(self.snapshot), date, self.window, self.lane_strategy, week_anchor=date)

    def _target(self, gesture: DragGesture, day: str, time: str, pixel_offset: float | None) -> DropTarget:
        if gesture.state is not GestureState.dragging or gesture.session_id not in self._dragging:
            raise AppError(f"Session {gesture.session_id} is not being dragged", status_code=409)
        session = self.snapshot.get(gesture.session_id)
        day_name = normalize_day(day)
        if day_name is None:
            raise AmbiguousPlacement(session.id, reason=f"unknown day {day!r}")
        new_date = date_for_day(self.week_monday, day_name)

        start = time_to_minutes(time)
        end = start + duration_minutes(session)
        start_time, end_time = minutes_to_time(start), minutes_to_time(end)
        if end >= MINUTES_PER_DAY:
            return DropTarget(
                day=day_name,
                date=new_date,
                time=start_time,
                endTime=end_time,
                pixelOffset=pixel_offset,
                isValid=False,
            )

        proposed = ProposedPlacement(
            date=new_date,
            startTime=start_time,
            endTime=end_time,
            scope=PlacementScope.from_session(session, self.scope_keys),
        )
        conflicts = find_conflicts(proposed, self.snapshot, exclude_id=session.id, week_anchor=self.displayed_date)
        return DropTarget(
            day=day_name,
            date=new_date,
            time=start_time,
            endTime=end_time,
            pixelOffset=pixel_offset,
            isValid=not conflicts,
            conflicts=conflicts,
        )

    async def _commit(self, request: MoveRequest) -> Session:
        session_id = request.sessionId
        self._pending.add(session_id)
        try:
            updated = await self._commit_move(request)
        except CommitFailure as exc:
            logger.warning("Commit of session %s refused: %s", session_id, exc.message)
            raise
        except Exception as exc:
            logger.warning("Commit of session %s failed", session_id, exc_info=True)
            raise CommitFailure(str(exc) or "Move could not be saved", session_id=session_id) from exc
        finally:
            self._pending.discard(session_id)
        if updated.id != session_id:
            logger.error(
                "Commit of session %s returned session %s; local snapshot is stale until refetched",
                session_id,
                updated.id,
            )
            raise CommitFailure(
                f"Commit returned session {updated.id} instead of {session_id}",
                session_id=session_id,
            )
        return updated
