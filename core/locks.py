"""
Concurrency control

Three layers keep a session single-writer:

1. `writer_lock`: a process-wide re-entrant lock around open / place / resolve.
   SQLite ignores row locks, so this is what serializes writers in a single
   process.
2. `with_session_lock`: SELECT ... FOR UPDATE on the session row, which
   serializes bets and resolves across processes on PostgreSQL.
3. The partial unique index `uq_wager_sessions_one_open` (see models) allows
   at most one OPEN row. FOR UPDATE cannot lock a row that does not exist
   yet, so two processes opening at once are told apart by the index: the
   second insert fails and is reported as SessionAlreadyOpen.

Readers take neither lock. They read the committed session row, which is
updated in the same transaction as every bet insert.
"""
import threading
from contextlib import contextmanager

from sqlalchemy.orm import Session, Query

from models import WagerSession, SessionStatus

_writer_lock = threading.RLock()


@contextmanager
def writer_lock():
    """
    Serialize a mutating operation against every other one in this process

    Example:
        with writer_lock():
            session = with_open_session_lock(db).first()
            ...
    """
    with _writer_lock:
        yield


def with_session_lock(session_id: int, db: Session) -> Query:
    """
    Lock one session row (row-level lock)

    Use when:
    - admitting a bet (window check and aggregate update must not interleave
      with a resolve)
    - resolving (prevents two resolves racing on the same session)

    Returns:
        Query object, call .first() to get the row

    Notes:
        - nowait=False waits for the lock instead of failing
        - must run inside a transaction (commit or rollback releases it)
    """
    return db.query(WagerSession).filter(
        WagerSession.id == session_id
    ).with_for_update(nowait=False)


def with_open_session_lock(db: Session) -> Query:
    """
    Lock the currently open session, if any

    There is at most one open session, so .first() is enough.
    """
    return db.query(WagerSession).filter(
        WagerSession.status == SessionStatus.OPEN
    ).order_by(WagerSession.id.desc()).with_for_update(nowait=False)
