import itertools

import pytest

from slotgrid.services.overlap_resolver import build_day_layout, layout_day, overlapping_ids
from slotgrid.services.time_geometry import GridWindow

from conftest import MONDAY, TUESDAY, make_session


@pytest.mark.parametrize("strategy", ["greedy", "input_order"])
def test_two_overlapping_sessions_share_width(strategy):
    a = make_session(1, "08:00", "10:00")
    b = make_session(2, "09:00", "11:00")
    layouts = layout_day([a, b], strategy=strategy)
    assert (layouts[1].laneIndex, layouts[1].laneCount) == (0, 2)
    assert (layouts[2].laneIndex, layouts[2].laneCount) == (1, 2)
    assert layouts[1].hasVisualConflict and layouts[2].hasVisualConflict
    assert layouts[2].width_percent == 50
    assert layouts[2].left_percent == 50


def test_non_overlapping_sessions_are_full_width():
    sessions = [
        make_session(1, "08:00", "10:00"),
        make_session(2, "10:00", "12:00"),
        make_session(3, "09:00", "10:00", date=TUESDAY),
    ]
    layouts = layout_day(sessions)
    for layout in layouts.values():
        assert (layout.laneIndex, layout.laneCount) == (0, 1)
        assert not layout.hasVisualConflict


def test_identical_intervals_overlap():
    sessions = [make_session(1, "08:00", "10:00"), make_session(2, "08:00", "10:00")]
    assert overlapping_ids(sessions) == {1: {2}, 2: {1}}
    layouts = layout_day(sessions)
    assert {layouts[1].laneIndex, layouts[2].laneIndex} == {0, 1}


def test_overlap_is_symmetric():
    sessions = [
        make_session(1, "08:00", "12:00"),
        make_session(2, "08:30", "09:00"),
        make_session(3, "09:30", "10:30"),
        make_session(4, "10:00", "13:00"),
        make_session(5, "13:00", "14:00"),
    ]
    neighbors = overlapping_ids(sessions)
    for session_id, others in neighbors.items():
        for other in others:
            assert session_id in neighbors[other]
    assert neighbors[5] == set()


def test_input_order_uses_neighbour_count_formula():
    # 1 overlaps 2, 3 and 4; 2, 3 and 4 overlap only 1 (a star).
    sessions = [
        make_session(1, "08:00", "12:00"),
        make_session(2, "08:00", "09:00"),
        make_session(3, "09:00", "10:00"),
        make_session(4, "10:00", "11:00"),
    ]
    layouts = layout_day(sessions, strategy="input_order")
    neighbors = overlapping_ids(sessions)
    for position, session in enumerate(sessions):
        earlier = {s.id for s in sessions[:position]}
        assert layouts[session.id].laneCount == len(neighbors[session.id]) + 1
        assert layouts[session.id].laneIndex == len(neighbors[session.id] & earlier)
    assert layouts[1].laneCount == 4
    assert layouts[3].laneCount == 2


def test_input_order_depends_on_order():
    a = make_session(1, "08:00", "10:00")
    b = make_session(2, "09:00", "11:00")
    reversed_layouts = layout_day([b, a], strategy="input_order")
    assert reversed_layouts[2].laneIndex == 0
    assert reversed_layouts[1].laneIndex == 1


def test_greedy_is_order_independent():
    sessions = [
        make_session(1, "08:00", "12:00"),
        make_session(2, "08:00", "09:00"),
        make_session(3, "09:00", "10:00"),
        make_session(4, "09:30", "11:00"),
        make_session(5, "14:00", "15:00"),
    ]
    expected = layout_day(sessions)
    for permutation in itertools.permutations(sessions):
        assert layout_day(list(permutation)) == expected


def test_greedy_reuses_freed_lanes():
    sessions = [
        make_session(1, "08:00", "12:00"),
        make_session(2, "08:00", "09:00"),
        make_session(3, "09:00", "10:00"),
        make_session(4, "10:00", "11:00"),
    ]
    layouts = layout_day(sessions)
    # Shorter sessions sort first on equal start, so 2 takes lane 0.
    assert layouts[1].laneIndex == 1
    assert [layouts[i].laneIndex for i in (2, 3, 4)] == [0, 0, 0]
    assert all(layout.laneCount == 2 for layout in layouts.values())


def test_greedy_lanes_never_collide():
    sessions = [
        make_session(1, "08:00", "09:30"),
        make_session(2, "08:15", "10:00"),
        make_session(3, "08:30", "08:45"),
        make_session(4, "09:00", "11:00"),
        make_session(5, "09:45", "10:15"),
    ]
    layouts = layout_day(sessions)
    neighbors = overlapping_ids(sessions)
    for session_id, others in neighbors.items():
        for other in others:
            assert layouts[session_id].laneIndex != layouts[other].laneIndex
        assert layouts[session_id].laneIndex < layouts[session_id].laneCount


def test_sessions_on_different_dates_never_overlap():
    sessions = [make_session(1, "08:00", "10:00"), make_session(2, "08:00", "10:00", date=TUESDAY)]
    assert overlapping_ids(sessions) == {1: set(), 2: set()}


def test_unlaid_sessions_render_full_width():
    sessions = [
        make_session(1, "08:00", "10:00"),
        make_session(2, "08:00", "10:00", date=None, dayOfWeek="Monday"),
        make_session(3, "10:00", "09:00"),
    ]
    layouts = layout_day(sessions)
    assert layouts[1].laidOut
    for session_id in (2, 3):
        assert not layouts[session_id].laidOut
        assert (layouts[session_id].laneIndex, layouts[session_id].laneCount) == (0, 1)
    assert layouts[1].laneCount == 1


def test_build_day_layout_rects_and_hidden():
    sessions = [
        make_session(1, "08:00", "10:00"),
        make_session(2, "09:00", "09:10"),
        make_session(3, "07:00", "08:30"),
        make_session(4, "12:00", "11:00"),
        make_session(5, "09:00", "10:00", date=TUESDAY),
    ]
    day = build_day_layout(sessions, MONDAY, GridWindow(start_hour=8, end_hour=19))
    assert [s.id for s in day.sessions] == [1, 2, 3, 4]
    rects = {rect.sessionId: rect for rect in day.rects}
    assert set(rects) == {1, 2}
    assert rects[1].top == 0 and rects[1].height == 120
    assert rects[2].top == 60 and rects[2].height == 30
    assert rects[2].widthPercent == 50
    assert sorted(day.hiddenIds) == [3, 4]


def test_recurring_sessions_share_lanes_once_anchored():
    sessions = [
        make_session(1, "08:00", "10:00"),
        make_session(2, "09:00", "10:00", date=None, dayOfWeek="lundi"),
    ]
    assert not layout_day(sessions)[2].laidOut

    anchored = layout_day(sessions, week_anchor=MONDAY)
    assert anchored[2].laidOut
    assert (anchored[1].laneCount, anchored[2].laneIndex) == (2, 1)
    assert overlapping_ids(sessions, week_anchor=MONDAY) == {1: {2}, 2: {1}}


def test_build_day_layout_includes_anchored_recurring_sessions():
    sessions = [
        make_session(1, "08:00", "10:00"),
        make_session(2, "09:00", "10:00", date=None, dayOfWeek="Monday"),
        make_session(3, "09:00", "10:00", date=None, dayOfWeek="Tuesday"),
    ]
    window = GridWindow(start_hour=8, end_hour=19)
    assert [s.id for s in build_day_layout(sessions, MONDAY, window).sessions] == [1]

    day = build_day_layout(sessions, MONDAY, window, week_anchor=MONDAY)
    assert [s.id for s in day.sessions] == [1, 2]
    assert {rect.sessionId: rect.widthPercent for rect in day.rects} == {1: 50, 2: 50}
