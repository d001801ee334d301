# tests/conftest.py
"""Shared fixtures: in-memory Firestore, a controllable clock and started views."""

import os

os.environ["USE_MOCK_DB"] = "true"

import pytest
from fastapi.testclient import TestClient

from app.config import firebase
from app.config.mock_firestore import MockFirestore
from app.services import device_view as device_view_module
from app.services import report_view as report_view_module
from app.services import store as store_module
from app.services import submission_service as submission_module
from app.services.device_view import LiveDeviceView
from app.services.report_view import LiveReportView
from app.services.store import ReportStore
from app.services.submission_service import SubmissionService

T0 = 1_700_000_000_000
COOLDOWN_MS = 5000


class FakeClock:
    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def put_report(db, report_id, device_id, status="active", timestamp=T0, report_type="Fire", **extra):
    data = {
        "type": report_type,
        "description": f"{report_type} near the plaza",
        "location": {"lat": 14.6, "lng": 121.0},
        "timestamp": timestamp,
        "device_id": device_id,
        "status": status,
    }
    data.update(extra)
    db.collection("reports").document(report_id).set(data)


def put_device(db, device_id, last_report_time=T0, is_blocked=False, **extra):
    data = {
        "last_report_time": last_report_time,
        "total_reports": 1,
        "cooldown_until": last_report_time + COOLDOWN_MS if last_report_time is not None else None,
        "is_blocked": is_blocked,
    }
    data.update(extra)
    db.collection("devices").document(device_id).set(data)


def read(db, collection, doc_id):
    return db.collection(collection).document(doc_id).get().to_dict()


@pytest.fixture
def db():
    return MockFirestore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(db):
    return ReportStore(db)


@pytest.fixture
def submission(store, clock):
    return SubmissionService(store=store, clock=clock, cooldown_ms=COOLDOWN_MS)


@pytest.fixture
def reports_view(store, clock):
    view = LiveReportView(store=store, clock=clock)
    view.start()
    yield view
    view.stop()


@pytest.fixture
def devices_view(store, clock):
    view = LiveDeviceView(store=store, clock=clock)
    view.start()
    yield view
    view.stop()


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(firebase, "db", db)
    monkeypatch.setattr(store_module, "_report_store", ReportStore(db))
    monkeypatch.setattr(submission_module, "_submission_service", None)
    monkeypatch.setattr(report_view_module, "_report_view", None)
    monkeypatch.setattr(device_view_module, "_device_view", None)

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client
