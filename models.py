"""
SQLAlchemy models

- WagerSession: one wagering round plus its ledger aggregates
- Bet: an immutable wager, ordered by id
- Transfer: one payout per recipient, PENDING until the executor has been called
- EventLog: append-only audit trail
"""
import enum
import time

from sqlalchemy import Column, Integer, BigInteger, String, Enum, ForeignKey, JSON, Text, Index, text
from sqlalchemy.orm import relationship

from database import Base


def _now() -> int:
    return int(time.time())


class Outcome(str, enum.Enum):
    A = "A"
    B = "B"


class SessionStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TransferStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class WagerSession(Base):
    __tablename__ = "wager_sessions"
    __table_args__ = (
        # at most one OPEN session, across processes too
        Index(
            "uq_wager_sessions_one_open",
            "status",
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'")
        ),
        # ids are never reused, even if rows are removed by hand
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    minimum_stake = Column(BigInteger, nullable=False)
    house_fee_percent = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    opened_at = Column(BigInteger, nullable=False)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.OPEN)

    # Ledger aggregates, only BetLedger.place writes these
    count = Column(Integer, nullable=False, default=0)
    count_a = Column(Integer, nullable=False, default=0)
    count_b = Column(Integer, nullable=False, default=0)
    amount_a = Column(BigInteger, nullable=False, default=0)
    amount_b = Column(BigInteger, nullable=False, default=0)

    winning_outcome = Column(Enum(Outcome), nullable=True)
    resolved_at = Column(BigInteger, nullable=True)

    bets = relationship("Bet", back_populates="session", order_by="Bet.id")
    transfers = relationship("Transfer", back_populates="session", order_by="Transfer.id")

    @property
    def window_closes_at(self) -> int:
        return self.opened_at + self.duration_minutes * 60

    @property
    def total_pool(self) -> int:
        return self.amount_a + self.amount_b


class Bet(Base):
    __tablename__ = "bets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("wager_sessions.id"), nullable=False, index=True)
    bettor = Column(String(128), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    outcome = Column(Enum(Outcome), nullable=False)
    placed_at = Column(BigInteger, nullable=False)

    session = relationship("WagerSession", back_populates="bets")


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("wager_sessions.id"), nullable=False, index=True)
    recipient = Column(String(128), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    status = Column(Enum(TransferStatus), nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False, default=_now)

    session = relationship("WagerSession", back_populates="transfers")


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("wager_sessions.id"), nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(BigInteger, nullable=False, default=_now)
