"""
Bettor API Endpoints

Responsibilities:
1. A bettor's wagers and payouts across sessions
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import BettorHistoryResponse
from services.history_service import get_bettor_history, get_bettor_total_payout

router = APIRouter(prefix="/api/bettors", tags=["bettors"])
logger = logging.getLogger(__name__)


@router.get("/{bettor}/history", response_model=BettorHistoryResponse)
def get_history(bettor: str, db: Session = Depends(get_db)):
    """
    Return a bettor's history

    Returns:
        - total_payout: sum of every successful payout
        - sessions: every session the bettor staked in, newest first, with bets and payout
    """
    try:
        return BettorHistoryResponse(
            bettor=bettor,
            total_payout=get_bettor_total_payout(bettor, db),
            sessions=get_bettor_history(bettor, db)
        )

    except Exception as e:
        logger.error(f"Failed to get bettor history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
