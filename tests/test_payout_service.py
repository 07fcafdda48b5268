"""
Tests for the payout computation.

Tests:
- fee and prize pool
- two-stage truncation vs single-step proportional split
- no-winner fallback
- per-recipient merging and ordering
"""

from types import SimpleNamespace

import pytest

from models import Outcome
from core.bet_ledger import Aggregates
from services.payout_service import (
    compute_distribution,
    calculate_fee,
    calculate_share,
    RoundingPolicy,
    TransferInstruction,
)

HOUSE = "house"


def _bet(bettor, amount, outcome):
    return SimpleNamespace(bettor=bettor, amount=amount, outcome=outcome)


def _aggregates(bets):
    a = [b for b in bets if b.outcome == Outcome.A]
    b = [b for b in bets if b.outcome == Outcome.B]
    return Aggregates(
        count=len(bets),
        count_a=len(a),
        count_b=len(b),
        amount_a=sum(x.amount for x in a),
        amount_b=sum(x.amount for x in b),
    )


def _distribute(bets, outcome, fee_percent=10, rounding=None):
    aggregates = _aggregates(bets)
    return compute_distribution(
        SimpleNamespace(house_fee_percent=fee_percent),
        aggregates,
        bets,
        outcome,
        aggregates.total_amount,
        HOUSE,
        rounding,
    )


class TestShares:

    def test_fee_truncates(self):
        assert calculate_fee(600, 10) == 60
        assert calculate_fee(99, 14) == 13
        assert calculate_fee(5, 1) == 0

    def test_two_stage_share(self):
        assert calculate_share(100, 400, 540) == 135
        assert calculate_share(300, 400, 540) == 405

    def test_two_stage_loses_sub_percent_stakes(self):
        assert calculate_share(1, 400, 540) == 0
        assert calculate_share(1, 400, 540, RoundingPolicy.PROPORTIONAL) == 1

    def test_two_stage_is_more_lossy_than_proportional(self):
        # 3/9 = 33% -> floor(33 * 9 / 100) = 2, single step gives 3
        assert calculate_share(3, 9, 9) == 2
        assert calculate_share(3, 9, 9, RoundingPolicy.PROPORTIONAL) == 3


class TestComputeDistribution:

    def test_reference_example(self):
        """fee 10%, pool 600, winners 100 and 300 on A."""
        bets = [
            _bet("alice", 100, Outcome.A),
            _bet("carol", 200, Outcome.B),
            _bet("bob", 300, Outcome.A),
        ]

        distribution = _distribute(bets, Outcome.A)

        assert distribution.fee == 60
        assert distribution.prize_pool == 540
        assert distribution.winning_amount == 400
        assert distribution.house_amount == 60
        assert distribution.instructions == [
            TransferInstruction("alice", 135),
            TransferInstruction("bob", 405),
            TransferInstruction(HOUSE, 60),
        ]

    def test_truncation_remainder_goes_to_house(self):
        bets = [
            _bet("alice", 3, Outcome.A),
            _bet("bob", 3, Outcome.A),
            _bet("carol", 3, Outcome.A),
            _bet("dave", 1, Outcome.B),
        ]

        distribution = _distribute(bets, Outcome.A)

        assert distribution.fee == 1
        assert distribution.prize_pool == 9
        assert [i.amount for i in distribution.instructions] == [2, 2, 2, 4]
        assert distribution.house_amount == 4

    def test_proportional_policy_must_be_selected(self):
        bets = [
            _bet("alice", 3, Outcome.A),
            _bet("bob", 3, Outcome.A),
            _bet("carol", 3, Outcome.A),
            _bet("dave", 1, Outcome.B),
        ]

        distribution = _distribute(bets, Outcome.A, rounding=RoundingPolicy.PROPORTIONAL)

        assert [i.amount for i in distribution.instructions] == [3, 3, 3, 1]
        assert distribution.house_amount == 1

    def test_no_winner_sends_whole_pool_to_house(self):
        bets = [_bet("alice", 100, Outcome.B), _bet("bob", 50, Outcome.B)]

        distribution = _distribute(bets, Outcome.A)

        assert not distribution.has_winners
        assert distribution.fee == 15
        assert distribution.house_amount == 150
        assert distribution.instructions == [TransferInstruction(HOUSE, 150)]

    def test_no_bets_produces_no_transfers(self):
        distribution = _distribute([], Outcome.B)

        assert distribution.total_pool == 0
        assert distribution.instructions == []

    def test_same_bettor_paid_once(self):
        bets = [
            _bet("alice", 100, Outcome.A),
            _bet("bob", 200, Outcome.A),
            _bet("carol", 200, Outcome.B),
            _bet("alice", 100, Outcome.A),
        ]

        distribution = _distribute(bets, Outcome.A)

        assert distribution.instructions == [
            TransferInstruction("alice", 270),
            TransferInstruction("bob", 270),
            TransferInstruction(HOUSE, 60),
        ]

    def test_funds_are_conserved(self):
        bets = [
            _bet("a", 17, Outcome.A),
            _bet("b", 29, Outcome.B),
            _bet("c", 31, Outcome.A),
            _bet("d", 43, Outcome.A),
            _bet("e", 11, Outcome.B),
        ]

        for outcome in (Outcome.A, Outcome.B):
            for rounding in RoundingPolicy:
                distribution = _distribute(bets, outcome, fee_percent=7, rounding=rounding)
                paid = sum(i.amount for i in distribution.instructions)
                assert paid == distribution.total_pool == 131
                assert distribution.winner_total + distribution.house_amount == 131

    @pytest.mark.parametrize("rounding", ["two_stage", "proportional"])
    def test_rounding_accepts_setting_strings(self, rounding):
        bets = [_bet("alice", 100, Outcome.A)]

        distribution = _distribute(bets, Outcome.A, rounding=rounding)

        assert distribution.instructions == [
            TransferInstruction("alice", 90),
            TransferInstruction(HOUSE, 10),
        ]
