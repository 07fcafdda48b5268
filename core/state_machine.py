"""
Session state machine

All status changes of a WagerSession go through here, so the legal moves are
written down in exactly one place:

    (new) --open--> OPEN --resolve--> CLOSED

CLOSED is terminal. A closed session is never reopened; the next round gets
a new id.
"""
import logging

from sqlalchemy.orm import Session

from models import WagerSession, SessionStatus, EventLog
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class SessionStateMachine:
    """Legal transitions for WagerSession.status"""

    TRANSITIONS = {
        SessionStatus.OPEN: {SessionStatus.CLOSED},
        SessionStatus.CLOSED: set(),
    }

    @classmethod
    def can_transition(cls, current: SessionStatus, target: SessionStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, session: WagerSession, target: SessionStatus, db: Session, now: int = None) -> WagerSession:
        """
        Move a (locked) session to `target` and log the change

        Args:
            session: the session row, already fetched under lock
            target: the new status
            db: SQLAlchemy Session
            now: unix seconds stamped on the EventLog (wall clock when omitted)

        Raises:
            InvalidStateTransition: the move is not allowed

        Side effects:
            adds a SESSION_STATE_CHANGED EventLog (flushed, not committed)
        """
        current = session.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Session {session.id}: cannot transition from {current.value} to {target.value}"
            )

        session.status = target
        event = EventLog(
            session_id=session.id,
            event_type="SESSION_STATE_CHANGED",
            data={"from": current.value, "to": target.value}
        )
        if now is not None:
            event.created_at = now
        db.add(event)
        db.flush()

        logger.info(f"Session {session.id} transitioned {current.value} -> {target.value}")
        return session
