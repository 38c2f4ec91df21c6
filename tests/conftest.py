"""
Shared fixtures for the ledger tests.

Every test gets its own SQLite file database (tmp_path), a controllable
clock and a hook that records the notifications it receives.
"""
import os
from datetime import datetime, timedelta

import pytest

# Must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("BREVO_API_KEY", None)

from config import LedgerSettings  # noqa: E402
from database import create_db_engine, create_session_factory  # noqa: E402
from services.credit_engine import CreditEngine  # noqa: E402
from services.expiration_sweeper import ExpirationSweeper  # noqa: E402
from services.ledger_store import LedgerStore  # noqa: E402
from services.notification_service import NotificationDispatcher, NotificationHook  # noqa: E402
from services.reporting_service import ReportingService  # noqa: E402
from utils.metrics import MetricsCollector  # noqa: E402

START = datetime(2026, 1, 15, 12, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingHook(NotificationHook):
    """Notification hook that remembers every call."""

    def __init__(self):
        self.calls = []

    def on_issued(self, credit_id):
        self.calls.append(("issued", credit_id))

    def on_expiring(self, credit_id, days_until):
        self.calls.append(("expiring", credit_id, days_until))

    def on_redeemed(self, credit_id, transaction_id):
        self.calls.append(("redeemed", credit_id, transaction_id))

    def on_expired(self, credit_id, transaction_id):
        self.calls.append(("expired", credit_id, transaction_id))

    def of_kind(self, kind):
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def db_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    store = LedgerStore(session_factory)
    store.create_schema()
    return store


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def hook():
    return RecordingHook()


@pytest.fixture
def settings():
    return LedgerSettings()


@pytest.fixture
def metrics():
    return MetricsCollector(slow_threshold_ms=10_000)


@pytest.fixture
def dispatcher(hook):
    return NotificationDispatcher(hook)


@pytest.fixture
def credit_engine(store, settings, dispatcher, metrics, clock):
    return CreditEngine(store, settings=settings, dispatcher=dispatcher, metrics=metrics, clock=clock)


@pytest.fixture
def sweeper(credit_engine):
    return ExpirationSweeper(credit_engine)


@pytest.fixture
def reporting(store):
    return ReportingService(store)
