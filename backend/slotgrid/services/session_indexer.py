from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from typing import Iterable

from slotgrid.core.exceptions import AmbiguousPlacement, AppError, InvalidTimeFormat
from slotgrid.schemas.session import (
    DAY_NAMES,
    ConcretePlacement,
    Session,
    normalize_day,
)
from slotgrid.services.time_geometry import time_to_minutes

logger = logging.getLogger(__name__)


def day_key_of(session: Session) -> str:
    # date.weekday() works on the calendar date itself, no timestamp involved.
    placement = session.placement
    if isinstance(placement, ConcretePlacement):
        return DAY_NAMES[placement.date.weekday()]
    return placement.day_of_week


def _require_day(day: str) -> str:
    normalized = normalize_day(day)
    if normalized is None:
        raise AmbiguousPlacement(None, reason=f"unknown day {day!r}")
    return normalized


def sessions_for_cell(
    sessions: Iterable[Session],
    day: str,
    time_slot: str,
    tolerance_minutes: int = 10,
) -> list[Session]:
    target_day = _require_day(day)
    slot_minutes = time_to_minutes(time_slot)
    matches: list[Session] = []
    for session in sessions:
        try:
            session_day = day_key_of(session)
            start = time_to_minutes(session.startTime)
        except AmbiguousPlacement:
            logger.warning("Session %s has no date or day of week; excluded from grid", session.id)
            continue
        except InvalidTimeFormat:
            logger.warning("Session %s has malformed start time %r; excluded from grid", session.id, session.startTime)
            continue
        if session_day == target_day and abs(start - slot_minutes) <= tolerance_minutes:
            matches.append(session)
    return matches


def sessions_for_date(
    sessions: Iterable[Session],
    date: dt.date,
    week_anchor: dt.date | None = None,
) -> list[Session]:
    """Sessions falling on ``date``. Recurring ones count only when a week anchor is given."""
    matches: list[Session] = []
    for session in sessions:
        if session.date is not None:
            if session.date == date:
                matches.append(session)
            continue
        if week_anchor is None or session.dayOfWeek is None:
            continue
        if resolve_date(session, week_anchor) == date:
            matches.append(session)
    return matches


def week_start(anchor: dt.date) -> dt.date:
    """Monday of the week containing ``anchor``; Sunday closes the previous Monday's week."""
    return anchor - dt.timedelta(days=anchor.weekday())


def date_for_day(week_monday: dt.date, day: str) -> dt.date:
    name = _require_day(day)
    # Sunday-first index, as grid columns are labelled.
    day_index = (DAY_NAMES.index(name) + 1) % 7
    diff = 6 if day_index == 0 else day_index - 1
    return week_monday + dt.timedelta(days=diff)


def resolve_date(session: Session, week_anchor: dt.date | None = None) -> dt.date:
    placement = session.placement
    if isinstance(placement, ConcretePlacement):
        return placement.date
    if week_anchor is None:
        raise AmbiguousPlacement(session.id, reason="recurring session needs a week anchor")
    return date_for_day(week_start(week_anchor), placement.day_of_week)


def group_by_date(
    sessions: Iterable[Session],
    week_anchor: dt.date | None = None,
) -> tuple[dict[dt.date, list[Session]], list[Session]]:
    """Bucket sessions per concrete date; unresolvable ones are returned separately."""
    buckets: dict[dt.date, list[Session]] = defaultdict(list)
    excluded: list[Session] = []
    for session in sessions:
        try:
            buckets[resolve_date(session, week_anchor)].append(session)
        except AppError as exc:
            logger.warning("Excluding session %s from day grouping: %s", session.id, exc.message)
            excluded.append(session)
    return dict(buckets), excluded


def sort_by_start(sessions: Iterable[Session]) -> list[Session]:
    def start_key(session: Session) -> int:
        try:
            return time_to_minutes(session.startTime)
        except InvalidTimeFormat:
            return 24 * 60

    return sorted(sessions, key=start_key)
