from collections.abc import Generator

from sqlalchemy.orm import Session

from slotgrid.core.config import get_settings
from slotgrid.db.session import SessionLocal
from slotgrid.services.time_geometry import GridWindow


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_grid_window() -> GridWindow:
    return GridWindow.from_settings(get_settings())
