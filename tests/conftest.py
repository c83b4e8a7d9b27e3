"""Shared pytest fixtures for wager ledger tests."""
import os
import sys
from datetime import date
from pathlib import Path
from typing import Generator

import pytest

# Settings are read at import time, so the environment must be set first
os.environ["ENVIRONMENT"] = "test"
os.environ["API_KEY"] = "test-api-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wager_ledger.core.database import (  # noqa: E402
    create_engine_for,
    create_session_factory,
    init_db,
    session_scope,
)
from wager_ledger.models import User  # noqa: E402
from wager_ledger.services.container import WagerServices, build_services  # noqa: E402

API_KEY = "test-api-key"

# User ids used across the suites
ALICE = 1   # adult, Texas, funded
BOB = 2     # adult, Ontario, funded
CAROL = 3   # adult, Ohio, no balance row
MINOR = 4   # 17 this calendar year
MONTANA = 5  # adult, excluded state
FRANCE = 6  # adult, unsupported country


def make_user(session_factory, user_id: int, username: str, birth_year: int, state=None, country=None) -> None:
    with session_scope(session_factory) as db:
        db.add(User(
            id=user_id,
            username=username,
            email=f"{username}@example.com",
            date_of_birth=date(birth_year, 6, 15),
            state=state,
            country=country,
        ))


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Fresh file-backed SQLite database per test, shared across threads."""
    engine = create_engine_for(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture(scope="function")
def services(session_factory) -> WagerServices:
    return build_services(session_factory, currency="SC")


@pytest.fixture(scope="function")
def users(services: WagerServices) -> dict:
    """Seed the standard users and fund Alice and Bob."""
    this_year = date.today().year
    factory = services.session_factory

    make_user(factory, ALICE, "alice", this_year - 30, state="TX", country="US")
    make_user(factory, BOB, "bob", this_year - 45, state="ON", country="CA")
    make_user(factory, CAROL, "carol", this_year - 22, state="OH")
    make_user(factory, MINOR, "minnie", this_year - 17, state="TX", country="US")
    make_user(factory, MONTANA, "monty", this_year - 40, state="MT", country="US")
    make_user(factory, FRANCE, "francois", this_year - 35, state=None, country="FR")

    services.ledger.adjust(ALICE, "1000.00", "Initial grant")
    services.ledger.adjust(BOB, "500.00", "Initial grant")

    return {
        "alice": ALICE,
        "bob": BOB,
        "carol": CAROL,
        "minor": MINOR,
        "montana": MONTANA,
        "france": FRANCE,
    }


@pytest.fixture(scope="function")
def events(services: WagerServices) -> list:
    """Load a small catalog of future events."""
    records = [
        {
            "event_id": "nfl_001",
            "sport": "nfl",
            "home_team": "Kansas City Chiefs",
            "away_team": "Buffalo Bills",
            "start_offset_hours": 48,
            "spread": -3.5,
            "over_under": 47.5,
            "moneyline_home": -170,
            "moneyline_away": 145,
        },
        {
            "event_id": "nba_001",
            "sport": "nba",
            "home_team": "Boston Celtics",
            "away_team": "Denver Nuggets",
            "start_offset_hours": 24,
            "spread": -5.5,
            "over_under": 224.5,
            "moneyline_home": -220,
            "moneyline_away": 180,
        },
        {
            "event_id": "nfl_002",
            "sport": "nfl",
            "home_team": "Philadelphia Eagles",
            "away_team": "Dallas Cowboys",
            "start_offset_hours": 6,
            "spread": 2.5,
            "over_under": 44.0,
            "moneyline_home": 120,
            "moneyline_away": -140,
        },
    ]
    services.catalog.load_catalog(records)
    return records


@pytest.fixture(scope="function")
def test_client(services: WagerServices) -> Generator:
    """Test client wired to the per-test services."""
    from fastapi.testclient import TestClient
    from wager_ledger.main import app

    app.state.services = services
    with TestClient(app) as client:
        yield client
    app.state.services = None


@pytest.fixture
def api_headers() -> dict:
    return {"X-API-Key": API_KEY}


@pytest.fixture
def alice_headers() -> dict:
    return {"X-API-Key": API_KEY, "X-User-Id": str(ALICE)}
