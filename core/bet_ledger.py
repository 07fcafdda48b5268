"""
Bet Ledger: per-session wagers and their aggregates

Responsibilities:
1. Admit a bet (window, stake, outcome and house checks)
2. Append the immutable Bet and update the session aggregates in the same
   transaction
3. Serve aggregate snapshots and the ordered bet list

Invariant, after every place():
    count == count_a + count_b == number of bets
    amount_a + amount_b == sum of bet amounts
"""
from dataclasses import dataclass
from typing import List
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import WagerSession, Bet, Outcome, EventLog
from core.locks import writer_lock, with_session_lock
from core.exceptions import (
    SessionNotFound,
    BettingClosed,
    BelowMinimumStake,
    InvalidOutcome,
    HouseCannotBet
)
from services.notification_service import notify
from database import transactional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Aggregates:
    """Read-only snapshot of a session's ledger counters"""
    count: int = 0
    count_a: int = 0
    count_b: int = 0
    amount_a: int = 0
    amount_b: int = 0

    @classmethod
    def of(cls, session: WagerSession) -> "Aggregates":
        return cls(
            count=session.count,
            count_a=session.count_a,
            count_b=session.count_b,
            amount_a=session.amount_a,
            amount_b=session.amount_b
        )

    @property
    def total_amount(self) -> int:
        return self.amount_a + self.amount_b

    def amount_for(self, outcome: Outcome) -> int:
        return self.amount_a if Outcome(outcome) == Outcome.A else self.amount_b


def parse_outcome(value) -> Outcome:
    """
    Raises:
        InvalidOutcome: value is not A or B
    """
    try:
        return Outcome(value)
    except ValueError:
        raise InvalidOutcome(f"Outcome must be A or B, got {value!r}")


class BetLedger:
    """Append-only bet store, one per SessionManager"""

    def __init__(self, manager):
        self.manager = manager

    def place(self, db: Session, session_id: int, bettor: str, amount: int, outcome, now: int) -> Bet:
        """
        Place a bet (participant operation)

        Preconditions:
        1. The session accepts bets at `now` (open, window not elapsed)
        2. The bettor is not the house
        3. Outcome is A or B
        4. amount >= session.minimum_stake

        Args:
            db: SQLAlchemy Session
            session_id: target session
            bettor: caller identity
            amount: stake in the smallest unit
            outcome: "A" / "B" or Outcome
            now: unix seconds

        Returns:
            The recorded Bet

        Raises:
            SessionNotFound, BettingClosed, HouseCannotBet, InvalidOutcome,
            BelowMinimumStake
        """
        with writer_lock():
            bet = self._append(db, session_id, bettor, amount, outcome, now)

        notify(self.manager.notifier, "on_bet_placed", session_id, bet.bettor, bet.amount, bet.outcome)
        return bet

    @transactional
    def _append(self, db: Session, session_id: int, bettor: str, amount: int, outcome, now: int) -> Bet:
        # 1. Lock the session row
        session = with_session_lock(session_id, db).first()
        if not session:
            raise SessionNotFound(session_id)

        # 2. Admission checks, nothing written before all of them pass
        if not self.manager.accepts_bets(session, now):
            raise BettingClosed(
                f"Session {session_id} is not accepting bets "
                f"(status={session.status.value}, closes_at={session.window_closes_at}, now={now})"
            )

        if self.manager.is_house(bettor):
            raise HouseCannotBet("The house cannot bet in its own session")

        outcome = parse_outcome(outcome)

        if amount < session.minimum_stake:
            raise BelowMinimumStake(
                f"Stake {amount} is below the minimum of {session.minimum_stake}"
            )

        # 3. Append the bet and update aggregates together
        bet = Bet(
            session_id=session.id,
            bettor=bettor,
            amount=amount,
            outcome=outcome,
            placed_at=now
        )
        db.add(bet)

        session.count += 1
        if outcome == Outcome.A:
            session.count_a += 1
            session.amount_a += amount
        else:
            session.count_b += 1
            session.amount_b += amount

        # 4. Audit trail
        db.add(EventLog(
            session_id=session.id,
            event_type="BET_PLACED",
            data={"bettor": bettor, "amount": amount, "outcome": outcome.value},
            created_at=now
        ))
        db.flush()

        logger.info(f"Bet {bet.id}: {bettor} staked {amount} on {outcome.value} in session {session_id}")
        return bet

    def get_aggregates(self, db: Session, session_id: int) -> Aggregates:
        """
        Snapshot of the ledger counters

        Raises:
            SessionNotFound: session does not exist
        """
        session = db.query(WagerSession).filter(WagerSession.id == session_id).first()
        if not session:
            raise SessionNotFound(session_id)
        return Aggregates.of(session)

    def get_bets(self, db: Session, session_id: int) -> List[Bet]:
        """Bets of a session in insertion order"""
        return db.query(Bet).filter(Bet.session_id == session_id).order_by(Bet.id).all()

    def audit(self, db: Session, session_id: int) -> bool:
        """
        Recompute the aggregates from the bets and compare

        Returns:
            True when the stored counters match the recorded bets
        """
        aggregates = self.get_aggregates(db, session_id)

        rows = (
            db.query(Bet.outcome, func.count(Bet.id), func.coalesce(func.sum(Bet.amount), 0))
            .filter(Bet.session_id == session_id)
            .group_by(Bet.outcome)
            .all()
        )
        counts = {Outcome.A: (0, 0), Outcome.B: (0, 0)}
        for outcome, count, total in rows:
            counts[Outcome(outcome)] = (count, total)

        expected = Aggregates(
            count=counts[Outcome.A][0] + counts[Outcome.B][0],
            count_a=counts[Outcome.A][0],
            count_b=counts[Outcome.B][0],
            amount_a=counts[Outcome.A][1],
            amount_b=counts[Outcome.B][1]
        )
        consistent = (
            aggregates == expected
            and aggregates.count == aggregates.count_a + aggregates.count_b
        )
        if not consistent:
            logger.error(f"Ledger mismatch for session {session_id}: stored={aggregates}, recorded={expected}")
        return consistent
