import datetime as dt

import pytest
from pydantic import ValidationError

from slotgrid.core.exceptions import AmbiguousPlacement
from slotgrid.schemas.session import ConcretePlacement, RecurringPlacement, Session
from slotgrid.services.session_indexer import (
    date_for_day,
    day_key_of,
    group_by_date,
    resolve_date,
    sessions_for_cell,
    sessions_for_date,
    sort_by_start,
    week_start,
)

from conftest import MONDAY, TUESDAY, make_session


def recurring(session_id, day, start, end, **overrides):
    return make_session(session_id, start, end, date=None, dayOfWeek=day, timeSlotRef=7, **overrides)


def test_day_key_from_concrete_date():
    assert day_key_of(make_session(1, "08:00", "09:00", date=MONDAY)) == "Monday"
    assert day_key_of(make_session(2, "08:00", "09:00", date=dt.date(2025, 3, 16))) == "Sunday"


def test_day_key_falls_back_to_day_of_week():
    assert day_key_of(recurring(1, "mercredi", "08:00", "09:00")) == "Wednesday"
    assert day_key_of(recurring(2, "FRIDAY", "08:00", "09:00")) == "Friday"


def test_day_key_without_placement_is_ambiguous():
    session = make_session(9, "08:00", "09:00", date=None)
    with pytest.raises(AmbiguousPlacement) as exc_info:
        day_key_of(session)
    assert exc_info.value.details["session_id"] == 9


def test_placement_variant():
    assert make_session(1, "08:00", "09:00").placement == ConcretePlacement(MONDAY)
    assert recurring(2, "Tue", "08:00", "09:00").placement == RecurringPlacement("Tuesday", 7)


def test_contradictory_date_and_day_rejected():
    with pytest.raises(ValidationError):
        make_session(1, "08:00", "09:00", date=MONDAY, dayOfWeek="Tuesday")


def test_sessions_for_cell_matches_day_and_tolerance():
    sessions = [
        make_session(1, "08:00", "10:00"),
        make_session(2, "08:10", "09:00"),
        make_session(3, "08:11", "09:00"),
        make_session(4, "08:00", "10:00", date=TUESDAY),
        recurring(5, "lundi", "07:55", "09:00"),
    ]
    found = sessions_for_cell(sessions, "Monday", "08:00", tolerance_minutes=10)
    assert [s.id for s in found] == [1, 2, 5]


def test_sessions_for_cell_exact_matching_with_zero_tolerance():
    sessions = [make_session(1, "08:00", "10:00"), make_session(2, "08:05", "09:00")]
    assert [s.id for s in sessions_for_cell(sessions, "lundi", "08:00", tolerance_minutes=0)] == [1]


def test_sessions_for_cell_skips_unplaceable_and_malformed():
    sessions = [
        make_session(1, "08:00", "10:00", date=None),
        make_session(2, "8h00", "10:00"),
        make_session(3, "08:00", "10:00"),
    ]
    assert [s.id for s in sessions_for_cell(sessions, "Monday", "08:00")] == [3]


def test_sessions_for_cell_rejects_unknown_day():
    with pytest.raises(AmbiguousPlacement):
        sessions_for_cell([], "Funday", "08:00")


def test_sessions_for_date_is_exact():
    sessions = [make_session(1, "08:00", "09:00"), make_session(2, "08:00", "09:00", date=TUESDAY)]
    assert [s.id for s in sessions_for_date(sessions, TUESDAY)] == [2]


@pytest.mark.parametrize(
    "anchor",
    [dt.date(2025, 3, 10), dt.date(2025, 3, 12), dt.date(2025, 3, 15), dt.date(2025, 3, 16)],
)
def test_week_start_is_monday_including_sunday(anchor):
    assert week_start(anchor) == MONDAY


def test_date_for_day_handles_sunday_last():
    assert date_for_day(MONDAY, "lundi") == MONDAY
    assert date_for_day(MONDAY, "Tuesday") == TUESDAY
    assert date_for_day(MONDAY, "dimanche") == dt.date(2025, 3, 16)


def test_resolve_date_requires_anchor_for_recurring():
    session = recurring(1, "Thursday", "08:00", "09:00")
    with pytest.raises(AmbiguousPlacement):
        resolve_date(session)
    assert resolve_date(session, week_anchor=dt.date(2025, 3, 16)) == dt.date(2025, 3, 13)


def test_group_by_date_excludes_unresolvable():
    sessions = [
        make_session(1, "08:00", "09:00"),
        make_session(2, "10:00", "11:00"),
        recurring(3, "Tuesday", "08:00", "09:00"),
        make_session(4, "08:00", "09:00", date=None),
    ]
    buckets, excluded = group_by_date(sessions)
    assert [s.id for s in buckets[MONDAY]] == [1, 2]
    assert {s.id for s in excluded} == {3, 4}

    buckets, excluded = group_by_date(sessions, week_anchor=MONDAY)
    assert [s.id for s in buckets[TUESDAY]] == [3]
    assert [s.id for s in excluded] == [4]


def test_sort_by_start_is_stable():
    sessions = [
        make_session(1, "10:00", "11:00"),
        make_session(2, "08:00", "09:00"),
        make_session(3, "08:00", "08:30"),
    ]
    assert [s.id for s in sort_by_start(sessions)] == [2, 3, 1]


def test_session_parses_iso_date_payload():
    session = Session.model_validate(
        {"id": 4, "courseCode": "MAT2", "startTime": "10:00", "endTime": "12:00", "date": "2025-03-14"}
    )
    assert day_key_of(session) == "Friday"
