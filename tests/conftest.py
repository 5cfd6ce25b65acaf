# tests/conftest.py
"""
Shared fixtures. Every test runs against a fresh in-memory SQLite database;
the settings are pointed at it before anything from crowdwatch is imported.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEFAULT_TENANT_EMAIL"] = ""
os.environ["SEED_SAMPLE_AREAS"] = "false"
os.environ["LOG_TO_FILE"] = "false"

import pytest
from datetime import datetime
from fastapi.testclient import TestClient

from crowdwatch.database import SessionLocal, create_tables, drop_tables
from crowdwatch.dependencies import get_broadcaster, get_inflow_window, get_scan_processor
from crowdwatch.main import app
from crowdwatch.models.area import Area
from crowdwatch.services.broadcaster import Broadcaster
from crowdwatch.services.rapid_inflow import RapidInflowWindow
from crowdwatch.services.scan_processor import ScanProcessor

OWNER = "owner@example.com"
OTHER = "someone-else@example.com"


@pytest.fixture
def tables():
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def db(tables):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_area(db):
    def _make(name="Main Hall", capacity=5, threshold=3, owner=OWNER, event_id=None, current_count=0):
        now = datetime.utcnow()
        area = Area(name=name, owner_email=owner, event_id=event_id, capacity=capacity,
                    threshold=threshold, current_count=current_count, created_at=now, updated_at=now)
        db.add(area)
        db.commit()
        db.refresh(area)
        return area
    return _make


@pytest.fixture
def broadcaster():
    return Broadcaster(queue_size=100)


@pytest.fixture
def inflow_window():
    return RapidInflowWindow(count=10, seconds=30)


@pytest.fixture
def client(tables, broadcaster, inflow_window):
    """API client with its own broadcaster and rapid-inflow windows, so no state leaks between tests."""
    processor = ScanProcessor(broadcaster, inflow_window)
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_inflow_window] = lambda: inflow_window
    app.dependency_overrides[get_scan_processor] = lambda: processor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(email=OWNER):
    return {"X-User-Email": email}
