"""
Payout service: splitting a resolved session's pool

Pure computation. It turns a resolved outcome and the ledger of a session
into an ordered list of transfer instructions and moves no money itself
(SessionManager hands the instructions to a TransferExecutor).

Rounding is lossy on purpose. The historical formula first truncates each
winner's stake to an integer percent of the winning side, then truncates
that percent of the prize pool:

    percent = floor(amount * 100 / winning_amount)
    share   = floor(percent * prize_pool / 100)

Whatever truncation leaves behind goes to the house together with the fee.
RoundingPolicy.PROPORTIONAL (floor(amount * prize_pool / winning_amount))
exists for operators who decide to change this, and must be selected
explicitly.
"""
import enum
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from models import Outcome


class RoundingPolicy(str, enum.Enum):
    TWO_STAGE = "two_stage"
    PROPORTIONAL = "proportional"


@dataclass(frozen=True)
class TransferInstruction:
    recipient: str
    amount: int


@dataclass
class Distribution:
    """Result of one payout computation"""
    total_pool: int
    fee: int
    prize_pool: int
    winning_amount: int
    house_amount: int
    instructions: List[TransferInstruction] = field(default_factory=list)

    @property
    def has_winners(self) -> bool:
        return self.winning_amount > 0

    @property
    def winner_total(self) -> int:
        return self.total_pool - self.house_amount


def calculate_fee(total_pool: int, fee_percent: int) -> int:
    """House fee, truncated toward zero"""
    return total_pool * fee_percent // 100


def calculate_share(
    amount: int,
    winning_amount: int,
    prize_pool: int,
    rounding: RoundingPolicy = RoundingPolicy.TWO_STAGE
) -> int:
    """
    One winning bet's share of the prize pool

    Example (prize_pool=540, winning_amount=400):
        calculate_share(100, 400, 540) -> 135   # 25% of 540
        calculate_share(300, 400, 540) -> 405   # 75% of 540
        calculate_share(1, 400, 540)   -> 0     # 0.25% truncates to 0%
    """
    if rounding == RoundingPolicy.PROPORTIONAL:
        return amount * prize_pool // winning_amount
    percent = amount * 100 // winning_amount
    return percent * prize_pool // 100


def compute_distribution(
    session,
    aggregates,
    bets: Iterable,
    winning_outcome: Outcome,
    total_pool: int,
    house_id: str,
    rounding: Optional[RoundingPolicy] = None
) -> Distribution:
    """
    Compute who gets paid what for a resolved session

    Flow:
    1. fee = floor(total_pool * fee_percent / 100), prize_pool = total_pool - fee
    2. winning_amount = total staked on the winning side
    3. no winners (winning_amount == 0): the whole pool, fee included,
       goes to the house
    4. otherwise visit every bet once in recorded order; each winning bet
       gets its share, shares of the same bettor are merged into one
       instruction (first-appearance order)
    5. the house gets total_pool minus everything paid to winners

    Args:
        session: object with `house_fee_percent`
        aggregates: ledger counters, provides `amount_for(outcome)`
        bets: the session's bets in insertion order
        winning_outcome: outcome picked by the oracle
        total_pool: everything collected for the session
        house_id: recipient of fee and remainder
        rounding: defaults to the two-stage policy

    Returns:
        Distribution; instructions never contain zero amounts and the house
        instruction, when present, is last
    """
    rounding = RoundingPolicy(rounding or RoundingPolicy.TWO_STAGE)

    # 1. Fee and prize pool
    fee = calculate_fee(total_pool, session.house_fee_percent)
    prize_pool = total_pool - fee

    # 2. Winning side total
    winning_amount = aggregates.amount_for(winning_outcome)

    # 3. No-winner fallback: everything to the house
    if winning_amount == 0:
        instructions = [TransferInstruction(house_id, total_pool)] if total_pool > 0 else []
        return Distribution(
            total_pool=total_pool,
            fee=fee,
            prize_pool=prize_pool,
            winning_amount=0,
            house_amount=total_pool,
            instructions=instructions
        )

    # 4. Per-bet shares, merged per recipient
    shares = {}
    for bet in bets:
        if bet.outcome != winning_outcome:
            continue
        share = calculate_share(bet.amount, winning_amount, prize_pool, rounding)
        shares[bet.bettor] = shares.get(bet.bettor, 0) + share

    instructions = [
        TransferInstruction(recipient, amount)
        for recipient, amount in shares.items()
        if amount > 0
    ]

    # 5. House takes fee plus truncation remainder
    house_amount = total_pool - sum(shares.values())
    if house_amount > 0:
        instructions.append(TransferInstruction(house_id, house_amount))

    return Distribution(
        total_pool=total_pool,
        fee=fee,
        prize_pool=prize_pool,
        winning_amount=winning_amount,
        house_amount=house_amount,
        instructions=instructions
    )
