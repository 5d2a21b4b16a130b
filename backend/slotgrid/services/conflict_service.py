import datetime as dt
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from slotgrid.core.exceptions import AppError
from slotgrid.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from slotgrid.schemas.session import ProposedPlacement, Session
from slotgrid.services.session_indexer import resolve_date
from slotgrid.services.time_geometry import intervals_overlap, session_bounds, time_to_minutes

logger = logging.getLogger(__name__)

SCOPE_CONFLICT_TYPES = {
    "roomRef": "room_conflict",
    "teacherRef": "teacher_conflict",
    "classRef": "class_conflict",
}


def _occupied_interval(session: Session, week_anchor: Optional[dt.date]):
    """Return ``(date, start, end)`` for a session, or None when it cannot be placed."""
    try:
        occurs_on = resolve_date(session, week_anchor)
        start, end = session_bounds(session)
    except AppError as exc:
        logger.debug("Ignoring session %s during placement check: %s", session.id, exc.message)
        return None
    return occurs_on, start, end


def find_conflicts(
    proposed: ProposedPlacement,
    existing: Iterable[Session],
    exclude_id: Optional[int] = None,
    week_anchor: Optional[dt.date] = None,
) -> List[ConflictDetail]:
    """List the sessions that would collide with ``proposed``.

    Only sessions on the proposed date that share at least one of the proposal's
    scope keys are candidates. Recurring sessions take part only when a week
    anchor is given.
    """
    new_start = time_to_minutes(proposed.startTime)
    new_end = time_to_minutes(proposed.endTime)
    conflicts: List[ConflictDetail] = []

    for other in existing:
        if exclude_id is not None and other.id == exclude_id:
            continue
        if not proposed.scope.matches(other):
            continue
        occupied = _occupied_interval(other, week_anchor)
        if occupied is None:
            continue
        occurs_on, start, end = occupied
        if occurs_on != proposed.date:
            continue
        if not intervals_overlap(new_start, new_end, start, end):
            continue

        shared = proposed.scope.shared_keys(other)
        conflict_type = SCOPE_CONFLICT_TYPES[shared[0]] if shared else "slot_occupied"
        conflicts.append(ConflictDetail(
            id=f"{conflict_type}-{other.id}",
            conflict_type=conflict_type,
            description=(
                f"{other.courseCode} ({other.sessionType}) already occupies "
                f"{other.startTime}-{other.endTime} on {occurs_on.isoformat()}"
            ),
            affected_sessions=[other.id] if exclude_id is None else [exclude_id, other.id],
        ))
    return conflicts


def is_valid_placement(
    proposed: ProposedPlacement,
    existing: Iterable[Session],
    exclude_id: Optional[int] = None,
    week_anchor: Optional[dt.date] = None,
) -> bool:
    return not find_conflicts(proposed, existing, exclude_id, week_anchor)


class ConflictService:
    def __init__(self, sessions: Sequence[Session], week_anchor: Optional[dt.date] = None):
        self.sessions = list(sessions)
        self.week_anchor = week_anchor

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []

        # Bucket by date, then check pairwise within each date.
        sessions_by_date: Dict[dt.date, list] = defaultdict(list)
        for session in self.sessions:
            occupied = _occupied_interval(session, self.week_anchor)
            if occupied is not None:
                occurs_on, start, end = occupied
                sessions_by_date[occurs_on].append((session, start, end))

        for occurs_on, day_sessions in sessions_by_date.items():
            n = len(day_sessions)
            for i in range(n):
                s1, start1, end1 = day_sessions[i]
                for j in range(i + 1, n):
                    s2, start2, end2 = day_sessions[j]
                    if not intervals_overlap(start1, end1, start2, end2):
                        continue
                    if s1.roomRef and s1.roomRef == s2.roomRef:
                        conflicts.append(ConflictDetail(
                            id=f"room-{s1.id}-{s2.id}",
                            conflict_type="room_conflict",
                            description=f"Room overlap in {s1.roomRef} on {occurs_on.isoformat()}: {s1.courseCode} and {s2.courseCode}",
                            affected_sessions=[s1.id, s2.id],
                        ))
                    if s1.teacherRef and s1.teacherRef == s2.teacherRef:
                        conflicts.append(ConflictDetail(
                            id=f"teacher-{s1.id}-{s2.id}",
                            conflict_type="teacher_conflict",
                            description=f"Teacher overlap for {s1.teacherRef} on {occurs_on.isoformat()}: {s1.courseCode} and {s2.courseCode}",
                            affected_sessions=[s1.id, s2.id],
                        ))
                    if s1.classRef and s1.classRef == s2.classRef:
                        conflicts.append(ConflictDetail(
                            id=f"class-{s1.id}-{s2.id}",
                            conflict_type="class_conflict",
                            description=f"Class overlap for {s1.classRef} on {occurs_on.isoformat()}: {s1.courseCode} and {s2.courseCode}",
                            affected_sessions=[s1.id, s2.id],
                        ))

        return ConflictReport(conflicts=conflicts, suggested_resolutions=[])

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        target = conflict.affected_sessions[-1]
        if conflict.conflict_type == "room_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_room",
                description="Find a free room for this slot",
                target_session_id=target,
            ))
        if conflict.conflict_type == "teacher_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_teacher",
                description="Assign another available teacher",
                target_session_id=target,
            ))
        resolutions.append(ResolutionAction(
            action_type="move_slot",
            description="Move to a different time slot",
            target_session_id=target,
        ))
        return resolutions
