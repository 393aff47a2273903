"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.database import Database
from alerts.engine import AlertEngine
from alerts.rules_manager import RulesManager
from alerts.events import EventLog
from monitor.monitor import MetricMonitor


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def rules(temp_db, clock):
    return RulesManager(temp_db, clock=clock)


@pytest.fixture
def events(temp_db):
    return EventLog(temp_db)


@pytest.fixture
def engine(temp_db, rules, events, clock):
    return AlertEngine(rules, events, temp_db, clock=clock)


@pytest.fixture
def monitor(temp_db, engine, clock):
    return MetricMonitor(temp_db, engine, clock=clock)


@pytest.fixture
def cpu_rule(rules):
    """The canonical 'cpu > 90, 60s cooldown' rule for user u1."""
    return rules.create_rule("u1", {
        "metric_name": "cpu",
        "comparator": "GT",
        "threshold": 90,
        "message": "CPU high",
        "cooldown_seconds": 60,
    })
