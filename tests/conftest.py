"""
Pytest fixtures for wager house tests.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from models import Outcome
from core.session_manager import SessionManager
from services.oracle_service import FixedOutcomeOracle
from services.transfer_service import RecordingTransferExecutor
from services.notification_service import NotificationSink

HOUSE = "house"
T0 = 1_700_000_000
DURATION_MINUTES = 5
WINDOW_END = T0 + DURATION_MINUTES * 60


class RecordingSink(NotificationSink):
    """Keeps every notification as (event, args)"""

    def __init__(self):
        self.events = []

    def on_session_opened(self, *args):
        self.events.append(("opened", args))

    def on_bet_placed(self, *args):
        self.events.append(("bet", args))

    def on_session_resolved(self, *args):
        self.events.append(("resolved", args))

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def oracle() -> FixedOutcomeOracle:
    return FixedOutcomeOracle(Outcome.A)


@pytest.fixture
def executor() -> RecordingTransferExecutor:
    return RecordingTransferExecutor()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def manager(oracle, executor, sink) -> SessionManager:
    return SessionManager(
        house_id=HOUSE,
        oracle=oracle,
        executor=executor,
        notifier=sink
    )


@pytest.fixture
def open_session(manager, db):
    """An open session: min stake 10, 5 minutes, 10% fee, opened at T0."""
    return manager.open_session(db, HOUSE, 10, DURATION_MINUTES, 10, T0)
