from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Literal, Sequence

from slotgrid.core.exceptions import AmbiguousPlacement, AppError
from slotgrid.schemas.session import CardRect, DayLayoutOut, OverlapLayout, Session
from slotgrid.services.session_indexer import resolve_date, sessions_for_date
from slotgrid.services.time_geometry import GridWindow, intervals_overlap, session_bounds

logger = logging.getLogger(__name__)

LaneStrategy = Literal["greedy", "input_order"]


@dataclass(frozen=True)
class _Interval:
    position: int
    session_id: int
    date: dt.date
    start: int
    end: int


def _split_layoutable(
    sessions: Sequence[Session],
    week_anchor: dt.date | None = None,
) -> tuple[list[_Interval], list[int]]:
    intervals: list[_Interval] = []
    unlaid: list[int] = []
    for position, session in enumerate(sessions):
        try:
            date = resolve_date(session, week_anchor)
        except AmbiguousPlacement:
            logger.warning("Session %s has no concrete date; rendered without lane layout", session.id)
            unlaid.append(session.id)
            continue
        try:
            start, end = session_bounds(session)
        except AppError as exc:
            logger.warning("Session %s skipped from lane layout: %s", session.id, exc.message)
            unlaid.append(session.id)
            continue
        intervals.append(_Interval(position, session.id, date, start, end))
    return intervals, unlaid


def _neighbors(intervals: list[_Interval]) -> dict[int, list[_Interval]]:
    by_date: dict[dt.date, list[_Interval]] = defaultdict(list)
    for item in intervals:
        by_date[item.date].append(item)

    neighbors: dict[int, list[_Interval]] = {item.session_id: [] for item in intervals}
    for day_items in by_date.values():
        n = len(day_items)
        for i in range(n):
            first = day_items[i]
            for j in range(i + 1, n):
                second = day_items[j]
                if intervals_overlap(first.start, first.end, second.start, second.end):
                    neighbors[first.session_id].append(second)
                    neighbors[second.session_id].append(first)
    return neighbors


def overlapping_ids(
    sessions: Sequence[Session],
    week_anchor: dt.date | None = None,
) -> dict[int, set[int]]:
    """Map each layoutable session id to the ids it overlaps on the same date."""
    intervals, _ = _split_layoutable(sessions, week_anchor)
    return {
        session_id: {other.session_id for other in others}
        for session_id, others in _neighbors(intervals).items()
    }


def _input_order_lanes(
    intervals: list[_Interval],
    neighbors: dict[int, list[_Interval]],
) -> dict[int, tuple[int, int]]:
    lanes: dict[int, tuple[int, int]] = {}
    for item in intervals:
        others = neighbors[item.session_id]
        lane_index = sum(1 for other in others if other.position < item.position)
        lanes[item.session_id] = (lane_index, len(others) + 1)
    return lanes


def _greedy_lanes(intervals: list[_Interval]) -> dict[int, tuple[int, int]]:
    by_date: dict[dt.date, list[_Interval]] = defaultdict(list)
    for item in intervals:
        by_date[item.date].append(item)

    lanes: dict[int, tuple[int, int]] = {}
    for day_items in by_date.values():
        ordered = sorted(day_items, key=lambda item: (item.start, item.end, item.session_id))
        active: list[tuple[int, int]] = []  # (end, lane)
        cluster: list[tuple[int, int]] = []  # (session_id, lane)

        def close_cluster() -> None:
            if not cluster:
                return
            lane_count = max(lane for _, lane in cluster) + 1
            for session_id, lane in cluster:
                lanes[session_id] = (lane, lane_count)
            cluster.clear()

        for item in ordered:
            active = [(end, lane) for end, lane in active if end > item.start]
            if not active:
                close_cluster()
            used = {lane for _, lane in active}
            lane = 0
            while lane in used:
                lane += 1
            active.append((item.end, lane))
            cluster.append((item.session_id, lane))
        close_cluster()
    return lanes


def layout_day(
    sessions: Sequence[Session],
    strategy: LaneStrategy = "greedy",
    week_anchor: dt.date | None = None,
) -> dict[int, OverlapLayout]:
    """Assign side-by-side lanes to overlapping sessions.

    ``greedy`` colours the interval graph in start-time order and gives every
    session of a connected overlap cluster the cluster's lane count, so the
    result does not depend on input order. ``input_order`` reproduces the grid's
    historical rule: ``laneCount`` is the number of overlapping neighbours plus
    one and ``laneIndex`` counts the neighbours that come earlier in the input.

    Recurring sessions are placed on their weekday in the week of
    ``week_anchor``. Without an anchor they, like sessions with an unusable
    interval, are returned full width with ``laidOut=False``.
    """
    intervals, unlaid = _split_layoutable(sessions, week_anchor)
    neighbors = _neighbors(intervals)
    if strategy == "input_order":
        lanes = _input_order_lanes(intervals, neighbors)
    elif strategy == "greedy":
        lanes = _greedy_lanes(intervals)
    else:
        raise ValueError(f"Unknown lane strategy: {strategy}")

    layouts: dict[int, OverlapLayout] = {}
    for item in intervals:
        lane_index, lane_count = lanes[item.session_id]
        layouts[item.session_id] = OverlapLayout(
            sessionId=item.session_id,
            laneIndex=lane_index,
            laneCount=lane_count,
            hasVisualConflict=bool(neighbors[item.session_id]),
        )
    for session_id in unlaid:
        layouts[session_id] = OverlapLayout(sessionId=session_id, laneIndex=0, laneCount=1, laidOut=False)
    return layouts


def build_day_layout(
    sessions: Sequence[Session],
    date: dt.date,
    window: GridWindow,
    strategy: LaneStrategy = "greedy",
    week_anchor: dt.date | None = None,
) -> DayLayoutOut:
    """Lanes and pixel rectangles for every session on ``date``.

    Recurring sessions take part when ``week_anchor`` resolves them to ``date``.
    Sessions that start outside the window or cannot be measured are listed in
    ``hiddenIds`` instead of receiving a rectangle.
    """
    day_sessions = sessions_for_date(sessions, date, week_anchor)
    layouts = layout_day(day_sessions, strategy, week_anchor)
    rects: list[CardRect] = []
    hidden: list[int] = []
    for session in day_sessions:
        try:
            if not window.is_visible(session):
                hidden.append(session.id)
                continue
            rects.append(window.card_rect(session, layouts[session.id]))
        except AppError as exc:
            logger.warning("Session %s not rendered: %s", session.id, exc.message)
            hidden.append(session.id)
    return DayLayoutOut(
        date=date,
        sessions=day_sessions,
        layouts=[layouts[session.id] for session in day_sessions],
        rects=rects,
        hiddenIds=hidden,
    )
