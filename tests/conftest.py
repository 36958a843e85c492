import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from tastetracker.app import create_app
from tastetracker.config import Settings
from tastetracker.db import DocumentStore
from tastetracker.service import PassportService


class FakeLegacySource:
    """In-memory stand-in for the Shopify metafield client."""

    def __init__(self, passports=None, error=None):
        self.passports = passports or {}
        self.error = error
        self.calls = []

    def fetch_legacy_passport(self, customer_id):
        self.calls.append(str(customer_id))
        if self.error is not None:
            raise self.error
        return dict(self.passports.get(str(customer_id), {}))


class TickingClock:
    """Returns a strictly increasing ISO timestamp on every call."""

    def __init__(self, start=datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self._counter = itertools.count()
        self._start = start

    def __call__(self):
        moment = self._start + timedelta(seconds=next(self._counter))
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'passports.db'}"


@pytest.fixture
def store(database_url, clock):
    store = DocumentStore(database_url, clock=clock)
    store.connect()
    yield store
    store.close()


@pytest.fixture
def legacy():
    return FakeLegacySource()


@pytest.fixture
def service(store, legacy, clock):
    return PassportService(store, legacy, clock=clock)


@pytest.fixture
def settings(database_url):
    return Settings(
        shop_domain="alfie-test.myshopify.com",
        admin_token="shpat_test",
        database_url=database_url,
    )


@pytest.fixture
def client(settings, legacy, clock):
    app = create_app(settings, legacy=legacy, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
