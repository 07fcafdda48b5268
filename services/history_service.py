"""
Bettor history service.

Builds a per-bettor list of wagers, newest session first, with the payout
each resolved session produced for that bettor.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import Bet, Transfer, WagerSession, SessionStatus, TransferStatus


def get_bettor_history(bettor: str, db: Session) -> List[Dict[str, Any]]:
    """
    Return one entry per session the bettor staked in.

    Stakes of several bets in the same session are listed individually; the
    payout is per session because the house pays each recipient once.
    """
    rows = (
        db.query(Bet, WagerSession)
        .join(WagerSession, Bet.session_id == WagerSession.id)
        .filter(Bet.bettor == bettor)
        .order_by(WagerSession.id.desc(), Bet.id)
        .all()
    )

    history: List[Dict[str, Any]] = []
    by_session: Dict[int, Dict[str, Any]] = {}

    for bet, session in rows:
        entry = by_session.get(session.id)
        if entry is None:
            entry = {
                "session_id": session.id,
                "status": session.status,
                "winning_outcome": session.winning_outcome,
                "bets": [],
                "payout": None,
                "payout_status": None,
            }
            by_session[session.id] = entry
            history.append(entry)

        entry["bets"].append({"amount": bet.amount, "outcome": bet.outcome, "placed_at": bet.placed_at})

    if not by_session:
        return history

    transfers = (
        db.query(Transfer)
        .filter(Transfer.recipient == bettor, Transfer.session_id.in_(list(by_session)))
        .all()
    )
    for transfer in transfers:
        entry = by_session[transfer.session_id]
        entry["payout"] = transfer.amount
        entry["payout_status"] = transfer.status

    for entry in history:
        if entry["status"] == SessionStatus.CLOSED and entry["payout"] is None:
            # Lost, or a share truncated to zero
            entry["payout"] = 0

    return history


def get_bettor_total_payout(bettor: str, db: Session) -> int:
    """Sum of every successful payout to the bettor"""
    transfers = db.query(Transfer).filter(
        Transfer.recipient == bettor,
        Transfer.status == TransferStatus.PAID
    ).all()
    return sum(transfer.amount for transfer in transfers)
