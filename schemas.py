"""
Pydantic request / response schemas for the API layer
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import Outcome, SessionStatus, TransferStatus


class SessionOpen(BaseModel):
    minimum_stake: int
    duration_minutes: int
    fee_percent: int


class AggregatesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    count_a: int
    count_b: int
    amount_a: int
    amount_b: int


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    minimum_stake: int
    house_fee_percent: int
    duration_minutes: int
    opened_at: int
    window_closes_at: int
    status: SessionStatus
    count: int
    count_a: int
    count_b: int
    amount_a: int
    amount_b: int
    winning_outcome: Optional[Outcome] = None
    resolved_at: Optional[int] = None


class SessionStatusResponse(BaseModel):
    session_id: int
    status: SessionStatus
    accepting_bets: bool
    resolvable: bool
    now: int


class BetSubmit(BaseModel):
    amount: int = Field(..., gt=0)
    outcome: str


class BetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    bettor: str
    amount: int
    outcome: Outcome
    placed_at: int


class TransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recipient: str
    amount: int
    status: TransferStatus
    error: Optional[str] = None


class ResolutionResponse(BaseModel):
    session_id: int
    outcome: Outcome
    total_pool: int
    fee: int
    prize_pool: int
    winning_amount: int
    house_amount: int
    transfers: List[TransferResponse]
    fully_paid: bool


class HistoryBet(BaseModel):
    amount: int
    outcome: Outcome
    placed_at: int


class HistoryEntry(BaseModel):
    session_id: int
    status: SessionStatus
    winning_outcome: Optional[Outcome] = None
    bets: List[HistoryBet]
    payout: Optional[int] = None
    payout_status: Optional[TransferStatus] = None


class BettorHistoryResponse(BaseModel):
    bettor: str
    total_payout: int
    sessions: List[HistoryEntry]
