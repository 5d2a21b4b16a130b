from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from slotgrid.core.exceptions import AmbiguousPlacement
from slotgrid.schemas.conflict import ConflictDetail

SessionType = Literal["CM", "TD", "TP", "TPE", "EXAM", "CONF"]

# Indexed by date.weekday(), Monday first.
DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

DAY_ALIASES = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
    "lundi": "Monday",
    "mardi": "Tuesday",
    "mercredi": "Wednesday",
    "jeudi": "Thursday",
    "vendredi": "Friday",
    "samedi": "Saturday",
    "dimanche": "Sunday",
}
DAY_ALIASES.update({name.lower(): name for name in DAY_NAMES})

# Backends sometimes send HH:MM:SS; the seconds are ignored.
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")


def normalize_day(value: str | None) -> str | None:
    if value is None:
        return None
    return DAY_ALIASES.get(value.strip().lower())


def _validate_time(value: str) -> str:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return value[:5]


@dataclass(frozen=True)
class ConcretePlacement:
    date: dt.date


@dataclass(frozen=True)
class RecurringPlacement:
    day_of_week: str
    time_slot_ref: int | None = None


Placement = ConcretePlacement | RecurringPlacement


class Session(BaseModel):
    """One schedulable occurrence of a course, as delivered by the fetch collaborator.

    Times are kept as raw strings so that a malformed record can still be loaded;
    the geometry module rejects it later and the grid skips it.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    courseCode: str = Field(min_length=1, max_length=50)
    courseName: str = Field(default="", max_length=200)
    sessionType: SessionType = "CM"
    date: dt.date | None = None
    dayOfWeek: str | None = None
    timeSlotRef: int | None = None
    startTime: str
    endTime: str
    roomRef: str | None = None
    teacherRef: str | None = None
    classRef: str | None = None
    isRoomModified: bool = False
    isTeacherModified: bool = False
    isTimeModified: bool = False

    @field_validator("dayOfWeek")
    @classmethod
    def validate_day_of_week(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        day = normalize_day(value)
        if day is None:
            raise ValueError(f"Invalid day value: {value}")
        return day

    @model_validator(mode="after")
    def validate_placement(self) -> "Session":
        if self.date is not None and self.dayOfWeek is not None:
            if DAY_NAMES[self.date.weekday()] != self.dayOfWeek:
                raise ValueError(
                    f"date {self.date.isoformat()} falls on {DAY_NAMES[self.date.weekday()]}, "
                    f"not {self.dayOfWeek}"
                )
        return self

    @property
    def placement(self) -> Placement:
        if self.date is not None:
            return ConcretePlacement(self.date)
        if self.dayOfWeek is not None:
            return RecurringPlacement(self.dayOfWeek, self.timeSlotRef)
        raise AmbiguousPlacement(self.id)


class PlacementScope(BaseModel):
    """Resource keys a placement competes for. Empty means every session on the date."""

    model_config = ConfigDict(frozen=True)

    classRef: str | None = None
    roomRef: str | None = None
    teacherRef: str | None = None

    def keys(self) -> dict[str, str]:
        return {
            name: value
            for name, value in (
                ("classRef", self.classRef),
                ("roomRef", self.roomRef),
                ("teacherRef", self.teacherRef),
            )
            if value is not None
        }

    def shared_keys(self, session: Session) -> list[str]:
        return [name for name, value in self.keys().items() if getattr(session, name) == value]

    def matches(self, session: Session) -> bool:
        if not self.keys():
            return True
        return bool(self.shared_keys(session))

    @classmethod
    def from_session(cls, session: Session, keys: tuple[str, ...]) -> "PlacementScope":
        return cls(**{name: getattr(session, name) for name in keys})


class ProposedPlacement(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    startTime: str
    endTime: str
    scope: PlacementScope = Field(default_factory=PlacementScope)

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _validate_time(value)

    @model_validator(mode="after")
    def validate_interval(self) -> "ProposedPlacement":
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


class PlacementValidationRequest(BaseModel):
    proposed: ProposedPlacement
    excludeId: int | None = None
    weekAnchor: dt.date | None = None


class PlacementValidationOut(BaseModel):
    valid: bool
    conflicts: list[ConflictDetail] = Field(default_factory=list)


class MoveBody(BaseModel):
    """New date and times for a session, as sent to the move endpoint."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    startTime: str
    endTime: str

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _validate_time(value)

    @model_validator(mode="after")
    def validate_interval(self) -> "MoveBody":
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


class MoveRequest(MoveBody):
    """Payload handed to the commit-move collaborator."""

    sessionId: int


class OverlapLayout(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessionId: int
    laneIndex: int = Field(ge=0)
    laneCount: int = Field(ge=1)
    hasVisualConflict: bool = False
    laidOut: bool = True

    @property
    def width_percent(self) -> float:
        return 100 / self.laneCount

    @property
    def left_percent(self) -> float:
        return self.laneIndex * (100 / self.laneCount)


class CardRect(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessionId: int
    top: float
    height: float
    leftPercent: float
    widthPercent: float


class DayLayoutOut(BaseModel):
    date: dt.date
    sessions: list[Session]
    layouts: list[OverlapLayout]
    rects: list[CardRect]
    hiddenIds: list[int] = Field(default_factory=list)


class DropTarget(BaseModel):
    """Live drop preview for an active drag gesture."""

    model_config = ConfigDict(frozen=True)

    day: str
    date: dt.date
    time: str
    endTime: str
    pixelOffset: float | None = None
    isValid: bool
    conflicts: list[ConflictDetail] = Field(default_factory=list)


class MoveOutcome(BaseModel):
    status: Literal["committed", "rejected"]
    session: Session
    message: str
    conflicts: list[ConflictDetail] = Field(default_factory=list)
