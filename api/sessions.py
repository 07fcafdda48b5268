"""
Session API Endpoints

Responsibilities:
1. House: open / resolve sessions
2. Participants: place bets
3. Anyone: read sessions, aggregates, bets, transfers

All business rules live in SessionManager / BetLedger. Handlers only map
exceptions to HTTP status codes.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    SessionOpen,
    SessionResponse,
    SessionStatusResponse,
    AggregatesResponse,
    BetSubmit,
    BetResponse,
    TransferResponse,
    ResolutionResponse
)
from core.session_manager import SessionManager
from core.exceptions import (
    PermissionDenied,
    HouseCannotBet,
    InvalidParameters,
    SessionAlreadyOpen,
    NoActiveSession,
    SessionStillOpen,
    SessionNotFound,
    BettingClosed,
    BelowMinimumStake,
    InvalidOutcome
)
from api.deps import get_session_manager, get_clock, get_caller

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)


@router.post("", response_model=SessionResponse)
def open_session(
    data: SessionOpen,
    caller: str = Depends(get_caller),
    now: int = Depends(get_clock),
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    """
    Open a new session (house endpoint)

    Preconditions:
    - caller is the house
    - no session is currently OPEN
    - minimum_stake > 0, duration_minutes > 0, 0 < fee_percent < 15
    """
    try:
        return manager.open_session(
            db,
            caller,
            data.minimum_stake,
            data.duration_minutes,
            data.fee_percent,
            now
        )

    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SessionAlreadyOpen as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidParameters as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to open session: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/current", response_model=SessionResponse)
def get_current_session(
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    session = manager.get_current_session(db)
    if not session:
        raise HTTPException(status_code=404, detail="No active session")
    return session


@router.post("/resolve", response_model=ResolutionResponse)
def resolve_session(
    caller: str = Depends(get_caller),
    now: int = Depends(get_clock),
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    """
    Resolve the current session (house endpoint)

    Preconditions:
    - caller is the house
    - a session is OPEN and its betting window has elapsed

    Effects:
    - the session becomes CLOSED and cannot be resolved again
    - winners and the house are paid; a failed transfer is recorded and
      does not stop the others
    """
    try:
        resolution = manager.resolve(db, caller, now)
        distribution = resolution.distribution
        failed = {failure.recipient: failure.reason for failure in resolution.failed_transfers}

        return ResolutionResponse(
            session_id=resolution.session_id,
            outcome=resolution.outcome,
            total_pool=distribution.total_pool,
            fee=distribution.fee,
            prize_pool=distribution.prize_pool,
            winning_amount=distribution.winning_amount,
            house_amount=distribution.house_amount,
            transfers=[
                TransferResponse(
                    recipient=instruction.recipient,
                    amount=instruction.amount,
                    status="FAILED" if instruction.recipient in failed else "PAID",
                    error=failed.get(instruction.recipient)
                )
                for instruction in distribution.instructions
            ],
            fully_paid=resolution.fully_paid
        )

    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NoActiveSession as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionStillOpen as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to resolve session: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: int,
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    try:
        return manager.get_session(db, session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")


@router.get("/{session_id}/status", response_model=SessionStatusResponse)
def get_session_status(
    session_id: int,
    now: int = Depends(get_clock),
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    try:
        session = manager.get_session(db, session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")

    return SessionStatusResponse(
        session_id=session.id,
        status=session.status,
        accepting_bets=manager.accepts_bets(session, now),
        resolvable=manager.resolvable(session, now),
        now=now
    )


@router.post("/{session_id}/bets", response_model=BetResponse)
def place_bet(
    session_id: int,
    bet_data: BetSubmit,
    caller: str = Depends(get_caller),
    now: int = Depends(get_clock),
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    """
    Place a bet (participant endpoint)

    Preconditions:
    - the betting window is still running (now <= opened_at + duration)
    - amount >= minimum_stake
    - outcome is A or B
    - caller is not the house
    """
    try:
        bet = manager.place_bet(db, session_id, caller, bet_data.amount, bet_data.outcome, now)
        logger.info(f"Bet {bet.id} accepted for session {session_id}")
        return bet

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except HouseCannotBet as e:
        raise HTTPException(status_code=403, detail=str(e))
    except BettingClosed as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (BelowMinimumStake, InvalidOutcome) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to place bet: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{session_id}/bets", response_model=List[BetResponse])
def list_bets(
    session_id: int,
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    try:
        manager.get_session(db, session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    return manager.ledger.get_bets(db, session_id)


@router.get("/{session_id}/aggregates", response_model=AggregatesResponse)
def get_aggregates(
    session_id: int,
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    try:
        return manager.ledger.get_aggregates(db, session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")


@router.get("/{session_id}/transfers", response_model=List[TransferResponse])
def list_transfers(
    session_id: int,
    manager: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db)
):
    try:
        return manager.get_transfers(db, session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
