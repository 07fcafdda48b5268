"""
Session Manager: the full lifecycle of a wagering session

Responsibilities:
1. Open a session (house only, one open session at a time)
2. Answer the window questions: accepting bets / resolvable
3. Resolve: ask the oracle, compute the payout, close, then pay everyone

One instance is built at process start and shared; it owns the BetLedger
and the external collaborators (oracle, transfer executor, notifier).

Window rule: bets are admitted while now <= opened_at + duration, resolution
is allowed once now > opened_at + duration. At the boundary admission wins.

Resolution commits the CLOSED status and the PENDING transfers before the
executor is called, so a session that has paid anyone can never be
resolved again.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import WagerSession, SessionStatus, Outcome, Transfer, TransferStatus, EventLog
from core.bet_ledger import BetLedger, Aggregates
from core.state_machine import SessionStateMachine
from core.locks import writer_lock, with_open_session_lock
from core.exceptions import (
    PermissionDenied,
    InvalidParameters,
    SessionAlreadyOpen,
    NoActiveSession,
    SessionStillOpen,
    SessionNotFound,
    TransferFailure
)
from services.payout_service import compute_distribution, Distribution, RoundingPolicy
from services.oracle_service import OutcomeOracle
from services.transfer_service import TransferExecutor, LoggingTransferExecutor, execute_transfer
from services.notification_service import NotificationSink, LoggingNotificationSink, notify
from database import transactional

logger = logging.getLogger(__name__)

MAX_FEE_PERCENT = 15


@dataclass
class Resolution:
    """What happened when a session was resolved"""
    session_id: int
    outcome: Outcome
    aggregates: Aggregates
    distribution: Distribution
    failed_transfers: List[TransferFailure] = field(default_factory=list)

    @property
    def fully_paid(self) -> bool:
        return not self.failed_transfers


class SessionManager:
    """Session lifecycle manager"""

    def __init__(
        self,
        house_id: str,
        oracle: OutcomeOracle,
        executor: Optional[TransferExecutor] = None,
        notifier: Optional[NotificationSink] = None,
        rounding: RoundingPolicy = RoundingPolicy.TWO_STAGE
    ):
        self.house_id = house_id
        self.oracle = oracle
        self.executor = executor or LoggingTransferExecutor()
        self.notifier = notifier or LoggingNotificationSink()
        self.rounding = RoundingPolicy(rounding)
        self.ledger = BetLedger(self)

    # ============ Window rules ============

    def is_house(self, caller: str) -> bool:
        return caller == self.house_id

    @staticmethod
    def accepts_bets(session: WagerSession, now: int) -> bool:
        return session.status == SessionStatus.OPEN and now <= session.window_closes_at

    @staticmethod
    def resolvable(session: WagerSession, now: int) -> bool:
        return session.status == SessionStatus.OPEN and now > session.window_closes_at

    def get_current_session(self, db: Session) -> Optional[WagerSession]:
        """The open session, or None"""
        return db.query(WagerSession).filter(
            WagerSession.status == SessionStatus.OPEN
        ).order_by(WagerSession.id.desc()).first()

    def get_session(self, db: Session, session_id: int) -> WagerSession:
        """
        Raises:
            SessionNotFound: session does not exist
        """
        session = db.query(WagerSession).filter(WagerSession.id == session_id).first()
        if not session:
            raise SessionNotFound(session_id)
        return session

    def is_accepting_bets(self, db: Session, now: int) -> bool:
        session = self.get_current_session(db)
        return session is not None and self.accepts_bets(session, now)

    def is_resolvable(self, db: Session, now: int) -> bool:
        session = self.get_current_session(db)
        return session is not None and self.resolvable(session, now)

    # ============ Open ============

    def open_session(
        self,
        db: Session,
        caller: str,
        minimum_stake: int,
        duration_minutes: int,
        fee_percent: int,
        now: int
    ) -> WagerSession:
        """
        Open a new session (house endpoint)

        Preconditions, checked in this order:
        1. Caller is the house
        2. No session is open (regardless of the parameters)
        3. minimum_stake > 0, duration_minutes > 0, 0 < fee_percent < 15

        Returns:
            The new session, status OPEN with zeroed aggregates

        Raises:
            PermissionDenied, SessionAlreadyOpen, InvalidParameters
        """
        with writer_lock():
            session = self._open(db, caller, minimum_stake, duration_minutes, fee_percent, now)

        notify(
            self.notifier, "on_session_opened",
            session.id, session.minimum_stake, session.duration_minutes, session.opened_at
        )
        return session

    @transactional
    def _open(self, db: Session, caller, minimum_stake, duration_minutes, fee_percent, now) -> WagerSession:
        # 1. Only the house opens sessions
        if not self.is_house(caller):
            raise PermissionDenied(caller)

        # 2. One open session at a time
        current = with_open_session_lock(db).first()
        if current:
            raise SessionAlreadyOpen(current.id)

        # 3. Parameters
        if minimum_stake <= 0:
            raise InvalidParameters(f"minimum_stake must be > 0, got {minimum_stake}")
        if duration_minutes <= 0:
            raise InvalidParameters(f"duration_minutes must be > 0, got {duration_minutes}")
        if not 0 < fee_percent < MAX_FEE_PERCENT:
            raise InvalidParameters(
                f"fee_percent must be between 0 and {MAX_FEE_PERCENT} (exclusive), got {fee_percent}"
            )

        # 4. Create the session; the one-open-session index rejects a
        #    concurrent open from another process
        session = WagerSession(
            minimum_stake=minimum_stake,
            house_fee_percent=fee_percent,
            duration_minutes=duration_minutes,
            opened_at=now,
            status=SessionStatus.OPEN,
            count=0,
            count_a=0,
            count_b=0,
            amount_a=0,
            amount_b=0
        )
        db.add(session)
        try:
            db.flush()  # assigns session.id
        except IntegrityError:
            raise SessionAlreadyOpen(None)

        db.add(EventLog(
            session_id=session.id,
            event_type="SESSION_OPENED",
            data={
                "minimum_stake": minimum_stake,
                "duration_minutes": duration_minutes,
                "fee_percent": fee_percent,
                "opened_at": now
            },
            created_at=now
        ))

        logger.info(
            f"Opened session {session.id}: min stake {minimum_stake}, "
            f"{duration_minutes} min, fee {fee_percent}%"
        )
        return session

    # ============ Place ============

    def place_bet(self, db: Session, session_id: int, bettor: str, amount: int, outcome, now: int):
        """Shortcut to BetLedger.place"""
        return self.ledger.place(db, session_id, bettor, amount, outcome, now)

    # ============ Resolve ============

    def resolve(self, db: Session, caller: str, now: int) -> Resolution:
        """
        Resolve the open session (house endpoint)

        Preconditions:
        1. Caller is the house
        2. A session is open
        3. Its admission window has elapsed (now > opened_at + duration)

        Flow:
        1. Ask the oracle for the outcome (once)
        2. Compute the distribution (once)
        3. Commit CLOSED plus one PENDING transfer per instruction
        4. Pay every recipient, committing each PAID / FAILED status on its
           own; a failed transfer never stops the remaining ones
        5. Notify

        Raises:
            PermissionDenied, NoActiveSession, SessionStillOpen
        """
        with writer_lock():
            resolution, pending = self._close(db, caller, now)

            for transfer_id, instruction in pending:
                failure = self._pay(instruction.recipient, instruction.amount)
                if failure:
                    logger.warning(f"Session {resolution.session_id}: {failure}")
                    resolution.failed_transfers.append(failure)
                try:
                    self._record_transfer(db, transfer_id, failure, now)
                except SQLAlchemyError as e:
                    # The session is already closed, so the row stays PENDING
                    # for reconciliation instead of being paid again.
                    logger.error(
                        f"Session {resolution.session_id}: could not record transfer {transfer_id} "
                        f"to {instruction.recipient}: {e}",
                        exc_info=True
                    )

        logger.info(
            f"Resolved session {resolution.session_id}: outcome {resolution.outcome.value}, "
            f"pool {resolution.distribution.total_pool}, house {resolution.distribution.house_amount}, "
            f"{len(resolution.failed_transfers)} failed transfer(s)"
        )

        notify(
            self.notifier, "on_session_resolved",
            resolution.session_id,
            resolution.aggregates.count,
            resolution.aggregates.count_a,
            resolution.aggregates.count_b,
            resolution.outcome
        )
        return resolution

    @transactional
    def _close(self, db: Session, caller: str, now: int):
        # 1. Checks, nothing written before all of them pass
        if not self.is_house(caller):
            raise PermissionDenied(caller)

        session = with_open_session_lock(db).first()
        if not session:
            raise NoActiveSession("There is no open session to resolve")

        if not self.resolvable(session, now):
            raise SessionStillOpen(
                f"Session {session.id} accepts bets until {session.window_closes_at}, now={now}"
            )

        # 2. Outcome, asked exactly once
        outcome = Outcome(self.oracle.determine_outcome(session.id))

        # 3. Distribution, computed exactly once
        aggregates = Aggregates.of(session)
        if not self.ledger.audit(db, session.id):
            logger.error(f"Resolving session {session.id} with inconsistent ledger aggregates")
        distribution = compute_distribution(
            session,
            aggregates,
            self.ledger.get_bets(db, session.id),
            outcome,
            aggregates.total_amount,
            self.house_id,
            self.rounding
        )

        # 4. Close and queue the transfers in the same commit
        session.winning_outcome = outcome
        session.resolved_at = now
        SessionStateMachine.transition(session, SessionStatus.CLOSED, db, now)

        transfers = []
        for instruction in distribution.instructions:
            transfer = Transfer(
                session_id=session.id,
                recipient=instruction.recipient,
                amount=instruction.amount,
                status=TransferStatus.PENDING,
                created_at=now
            )
            db.add(transfer)
            transfers.append((transfer, instruction))

        db.add(EventLog(
            session_id=session.id,
            event_type="SESSION_RESOLVED",
            data={
                "outcome": outcome.value,
                "total_pool": distribution.total_pool,
                "fee": distribution.fee,
                "house_amount": distribution.house_amount
            },
            created_at=now
        ))
        db.flush()  # assigns transfer ids

        resolution = Resolution(
            session_id=session.id,
            outcome=outcome,
            aggregates=aggregates,
            distribution=distribution
        )
        return resolution, [(transfer.id, instruction) for transfer, instruction in transfers]

    def _pay(self, recipient: str, amount: int) -> Optional[TransferFailure]:
        """Call the executor once; returns the failure instead of raising"""
        try:
            execute_transfer(self.executor, recipient, amount)
        except TransferFailure as e:
            return e
        return None

    @transactional
    def _record_transfer(self, db: Session, transfer_id: int, failure: Optional[TransferFailure], now: int) -> Transfer:
        transfer = db.query(Transfer).filter(Transfer.id == transfer_id).one()

        if failure is None:
            transfer.status = TransferStatus.PAID
            return transfer

        transfer.status = TransferStatus.FAILED
        transfer.error = failure.reason
        db.add(EventLog(
            session_id=transfer.session_id,
            event_type="TRANSFER_FAILED",
            data={"recipient": transfer.recipient, "amount": transfer.amount, "reason": failure.reason},
            created_at=now
        ))
        return transfer

    def get_transfers(self, db: Session, session_id: int) -> List[Transfer]:
        self.get_session(db, session_id)
        return db.query(Transfer).filter(Transfer.session_id == session_id).order_by(Transfer.id).all()
