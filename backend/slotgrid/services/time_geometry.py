"""Conversions between wall-clock times and vertical grid coordinates.

The grid is a bounded day window (``start_hour`` to ``end_hour``) rendered at
``px_per_minute``. Pointer geometry is turned into domain time only through
:func:`snap_to_grid`.
"""
from __future__ import annotations

from dataclasses import dataclass

from slotgrid.core.exceptions import ConfigurationError, InvalidInterval, InvalidTimeFormat
from slotgrid.schemas.session import TIME_PATTERN, CardRect, OverlapLayout, Session

DEFAULT_MIN_CARD_PIXELS = 30.0
DEFAULT_SNAP_MINUTES = 10


def time_to_minutes(value: str) -> int:
    if not isinstance(value, str):
        raise InvalidTimeFormat(value)
    match = TIME_PATTERN.match(value)
    if match is None:
        raise InvalidTimeFormat(value)
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


def session_bounds(session: Session) -> tuple[int, int]:
    """Return ``(start, end)`` in minutes, validating the interval."""
    start = time_to_minutes(session.startTime)
    end = time_to_minutes(session.endTime)
    if end <= start:
        raise InvalidInterval(session.startTime, session.endTime, session.id)
    return start, end


def duration_minutes(session: Session) -> int:
    start, end = session_bounds(session)
    return end - start


def top_offset_pixels(session: Session, window_start_hour: int, px_per_minute: float) -> float:
    return (time_to_minutes(session.startTime) - window_start_hour * 60) * px_per_minute


def height_pixels(
    session: Session,
    px_per_minute: float,
    min_pixels: float = DEFAULT_MIN_CARD_PIXELS,
) -> float:
    return max(duration_minutes(session) * px_per_minute, min_pixels)


def snap_to_grid(
    pixel_y: float,
    container_top: float,
    window_start_hour: int,
    px_per_minute: float,
    snap_minutes: int = DEFAULT_SNAP_MINUTES,
    window_end_hour: int = 19,
) -> str:
    relative_minutes = max(0.0, (pixel_y - container_top) / px_per_minute)
    # Round half up so 125 -> 130 with 10 minute snaps.
    snapped = int(relative_minutes / snap_minutes + 0.5) * snap_minutes
    last_slot = (window_end_hour - window_start_hour) * 60 - snap_minutes
    snapped = min(snapped, max(0, last_slot))
    return minutes_to_time(window_start_hour * 60 + snapped)


def shift_interval(session: Session, new_start: str) -> tuple[str, str]:
    """Move a session to ``new_start`` keeping its duration."""
    start = time_to_minutes(new_start)
    return minutes_to_time(start), minutes_to_time(start + duration_minutes(session))


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and end_a > start_b


@dataclass(frozen=True)
class GridWindow:
    start_hour: int = 8
    end_hour: int = 19
    px_per_minute: float = 1.0
    min_card_pixels: float = DEFAULT_MIN_CARD_PIXELS
    snap_minutes: int = DEFAULT_SNAP_MINUTES

    def __post_init__(self) -> None:
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ConfigurationError(f"Invalid grid window {self.start_hour}-{self.end_hour}")
        if self.px_per_minute <= 0 or self.snap_minutes <= 0:
            raise ConfigurationError("Grid scale and snap interval must be positive")

    @classmethod
    def from_settings(cls, settings) -> "GridWindow":
        return cls(
            start_hour=settings.grid_start_hour,
            end_hour=settings.grid_end_hour,
            px_per_minute=settings.pixels_per_minute,
            min_card_pixels=settings.min_card_pixels,
            snap_minutes=settings.snap_minutes,
        )

    @property
    def total_minutes(self) -> int:
        return (self.end_hour - self.start_hour) * 60

    @property
    def total_pixels(self) -> float:
        return self.total_minutes * self.px_per_minute

    def top(self, session: Session) -> float:
        return top_offset_pixels(session, self.start_hour, self.px_per_minute)

    def height(self, session: Session) -> float:
        return height_pixels(session, self.px_per_minute, self.min_card_pixels)

    def is_visible(self, session: Session) -> bool:
        top = self.top(session)
        return 0 <= top < self.total_pixels

    def snap(self, pixel_y: float, container_top: float = 0.0) -> str:
        return snap_to_grid(
            pixel_y,
            container_top,
            self.start_hour,
            self.px_per_minute,
            self.snap_minutes,
            self.end_hour,
        )

    def card_rect(self, session: Session, layout: OverlapLayout) -> CardRect:
        return CardRect(
            sessionId=session.id,
            top=self.top(session),
            height=self.height(session),
            leftPercent=layout.left_percent,
            widthPercent=layout.width_percent,
        )

    def row_labels(self, step_minutes: int = 30) -> list[str]:
        return [
            minutes_to_time(self.start_hour * 60 + offset)
            for offset in range(0, self.total_minutes, step_minutes)
        ]
