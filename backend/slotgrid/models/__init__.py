from slotgrid.models.scheduled_session import ScheduledSession, SessionType  # noqa: F401
