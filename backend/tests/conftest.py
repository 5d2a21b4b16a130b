import os

os.environ.setdefault("SLOTGRID_DATABASE_URL", "sqlite+pysqlite://")

import datetime as dt

import pytest
from fastapi.testclient import TestClient #gives you a fake http client that can call your FastAPI routes without running a real server.
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotgrid.api.deps import get_db
from slotgrid.db.base import Base
from slotgrid.main import app
from slotgrid.models.scheduled_session import ScheduledSession, SessionType
from slotgrid.schemas.session import Session

# Week of Monday 2025-03-10.
MONDAY = dt.date(2025, 3, 10)
TUESDAY = dt.date(2025, 3, 11)


def make_session(session_id, start, end, date=MONDAY, **overrides):
    fields = {
        "id": session_id,
        "courseCode": f"C{session_id}",
        "courseName": f"Course {session_id}",
        "sessionType": "CM",
        "date": date,
        "startTime": start,
        "endTime": end,
        "classRef": "L1-INFO",
    }
    fields.update(overrides)
    return Session(**fields)


@pytest.fixture()
def session_factory():
    engine = create_engine( #create isolated DB
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def seed_rows(session_factory):
    def seed(*rows):
        db = session_factory()
        try:
            created = []
            for fields in rows:
                values = {
                    "course_code": "INF101",
                    "course_name": "Algorithms",
                    "session_type": SessionType.CM,
                    "class_ref": "L1-INFO",
                }
                values.update(fields)
                row = ScheduledSession(**values)
                db.add(row)
                created.append(row)
            db.commit()
            return [row.id for row in created]
        finally:
            db.close()

    return seed


@pytest.fixture()
def client(session_factory): #fake http client
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
