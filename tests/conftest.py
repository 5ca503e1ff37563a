import os
import pathlib
import sys
from datetime import datetime, timedelta, timezone

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
os.environ.setdefault("RENTCYCLE_ENV", "test")

import pytest

from rentcycle.config import TestConfig
from rentcycle.exceptions import EmailDispatchError
from rentcycle.models.store import Store
from rentcycle.services.engine import Engine
from rentcycle.utils.constants import RentStatus

# Fixed "current instant" for every job run in the suite.
NOW = datetime(2025, 6, 15, 10, 0, tzinfo=timezone.utc)


class RecordingMailer:
    """Stands in for EmailService; keeps every message, can be told to fail."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_email(self, recipients, subject, html, text=None):
        if self.fail:
            raise EmailDispatchError("SMTP down")
        self.sent.append({"recipients": list(recipients), "subject": subject,
                          "html": html, "text": text})
        return f"<msg-{len(self.sent)}@test>"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    """A fresh file-backed store per test."""
    return Store(tmp_path / "data.pkl")


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def settings(tmp_path):
    cfg = {k: getattr(TestConfig, k) for k in dir(TestConfig) if k.isupper()}
    cfg["DATA_PATH"] = str(tmp_path / "data.pkl")
    return cfg


@pytest.fixture
def engine(store, mailer, settings):
    return Engine(settings, store=store, mailer=mailer)


@pytest.fixture
def owner(store):
    return store.create_user("Owner One", email="owner@example.com", locale="en")


@pytest.fixture
def org(store, owner):
    return store.create_organization("Acme Rentals", owner)


@pytest.fixture
def vehicle(store, org):
    return store.create_vehicle({"org_id": org, "make": "Toyota", "model": "Corolla", "year": 2022})


@pytest.fixture
def customer(store):
    return store.create_customer({"first_name": "Sara", "last_name": "Amrani",
                                  "phone": "+212600000000", "email": "sara@example.com"})


@pytest.fixture
def make_rent(store, org, vehicle, customer):
    """Factory for rents; defaults to an active rent that started yesterday."""

    def _make(**overrides):
        data = {
            "org_id": org,
            "vehicle_id": vehicle,
            "customer_id": customer,
            "status": RentStatus.ACTIVE,
            "start_date": NOW - timedelta(days=1),
            "created_at": NOW - timedelta(days=2),
        }
        data.update(overrides)
        return store.create_rent(data)

    return _make


def notifications_of(store, ntype=None):
    return [n for n in store.notifications.values() if ntype is None or n["type"] == ntype]
