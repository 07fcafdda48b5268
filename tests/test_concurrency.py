"""
Threaded tests against a file-backed SQLite database.

Each worker gets its own Session (and connection), the way FastAPI hands
one to every request running in its threadpool.

Tests:
- concurrent resolves: exactly one succeeds, every recipient paid once
- bets racing a resolve: no bet is recorded after the session closes
"""

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import Bet, SessionStatus
from core.exceptions import NoActiveSession, BettingClosed
from tests.conftest import HOUSE, T0, DURATION_MINUTES, WINDOW_END

WORKERS = 8


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'wager_house.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def run_concurrently(tasks):
    """Start every task at the same moment; returns (results, errors)"""
    barrier = threading.Barrier(len(tasks))
    results, errors = [], []
    guard = threading.Lock()

    def worker(task):
        barrier.wait()
        try:
            value = task()
        except Exception as e:
            with guard:
                errors.append(e)
        else:
            with guard:
                results.append(value)

    threads = [threading.Thread(target=worker, args=(task,)) for task in tasks]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not any(thread.is_alive() for thread in threads)
    return results, errors


def open_with_bets(manager, factory, bets):
    with factory() as db:
        session = manager.open_session(db, HOUSE, 10, DURATION_MINUTES, 10, T0)
        for bettor, amount, outcome in bets:
            manager.place_bet(db, session.id, bettor, amount, outcome, T0)
        return session.id


class TestConcurrentResolve:

    def test_only_one_resolve_succeeds(self, manager, file_session_factory, executor, oracle):
        session_id = open_with_bets(manager, file_session_factory, [
            ("alice", 100, "A"),
            ("carol", 200, "B"),
            ("bob", 300, "A"),
        ])

        def resolve():
            with file_session_factory() as db:
                return manager.resolve(db, HOUSE, WINDOW_END + 1).session_id

        results, errors = run_concurrently([resolve] * WORKERS)

        assert results == [session_id]
        assert len(errors) == WORKERS - 1
        assert all(isinstance(e, NoActiveSession) for e in errors)
        assert oracle.calls == [session_id]
        assert sorted(executor.payments) == sorted([("alice", 135), ("bob", 405), (HOUSE, 60)])

    def test_no_bet_recorded_after_close(self, manager, file_session_factory, executor):
        session_id = open_with_bets(manager, file_session_factory, [])

        def bet(i):
            def place():
                with file_session_factory() as db:
                    outcome = "A" if i % 2 else "B"
                    return ("bet", manager.place_bet(db, session_id, f"bettor{i}", 10, outcome, WINDOW_END).id)
            return place

        def resolve():
            with file_session_factory() as db:
                return ("resolved", manager.resolve(db, HOUSE, WINDOW_END + 1).aggregates.count)

        results, errors = run_concurrently([bet(i) for i in range(WORKERS)] + [resolve])

        resolved = [value for kind, value in results if kind == "resolved"]
        placed = [value for kind, value in results if kind == "bet"]
        assert len(resolved) == 1
        assert all(isinstance(e, BettingClosed) for e in errors)
        assert len(placed) + len(errors) == WORKERS

        # every accepted bet was counted in the snapshot the payout used
        assert resolved[0] == len(placed)
        with file_session_factory() as db:
            assert db.query(Bet).filter(Bet.session_id == session_id).count() == len(placed)
            assert manager.get_session(db, session_id).status == SessionStatus.CLOSED
            assert manager.ledger.audit(db, session_id)

        assert sum(amount for _, amount in executor.payments) == 10 * len(placed)
