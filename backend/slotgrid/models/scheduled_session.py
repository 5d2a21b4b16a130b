from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from slotgrid.db.base import Base


class SessionType(str, Enum):
    CM = "CM"
    TD = "TD"
    TP = "TP"
    TPE = "TPE"
    EXAM = "EXAM"
    CONF = "CONF"


class ScheduledSession(Base):
    __tablename__ = "scheduled_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_code: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    course_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    session_type: Mapped[SessionType] = mapped_column(
        SAEnum(SessionType, name="session_type"), nullable=False, default=SessionType.CM
    )
    specific_date: Mapped[date | None] = mapped_column(Date, index=True, nullable=True)
    day_of_week: Mapped[str | None] = mapped_column(String(20), nullable=True)
    time_slot_ref: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[str] = mapped_column(String(8), nullable=False)
    end_time: Mapped[str] = mapped_column(String(8), nullable=False)
    room_ref: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    teacher_ref: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    class_ref: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    is_room_modified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_teacher_modified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_time_modified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
