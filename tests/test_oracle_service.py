"""
Tests for outcome oracles.
"""

import hashlib

import pytest

from models import Outcome
from services.oracle_service import (
    TimestampHashOracle,
    SystemRandomOracle,
    FixedOutcomeOracle,
    build_oracle,
)


class TestTimestampHashOracle:

    def test_same_inputs_same_outcome(self):
        oracle = TimestampHashOracle(clock=lambda: 1_700_000_000)

        assert oracle.determine_outcome(7) == oracle.determine_outcome(7)

    def test_outcome_is_predictable_from_public_inputs(self):
        oracle = TimestampHashOracle(clock=lambda: 1_700_000_123)

        digest = hashlib.sha256(b"1700000123:3").digest()
        expected = Outcome.A if digest[-1] % 2 == 0 else Outcome.B

        assert oracle.determine_outcome(3) == expected

    def test_both_outcomes_occur(self):
        outcomes = {
            TimestampHashOracle(clock=lambda t=t: t).determine_outcome(1)
            for t in range(64)
        }

        assert outcomes == {Outcome.A, Outcome.B}


class TestOtherOracles:

    def test_fixed_oracle_records_calls(self):
        oracle = FixedOutcomeOracle("B")

        assert oracle.determine_outcome(4) == Outcome.B
        assert oracle.calls == [4]

    def test_system_random_returns_an_outcome(self):
        assert SystemRandomOracle().determine_outcome(1) in (Outcome.A, Outcome.B)


class TestBuildOracle:

    @pytest.mark.parametrize("name, cls", [
        ("timestamp_hash", TimestampHashOracle),
        ("system_random", SystemRandomOracle),
        ("A", FixedOutcomeOracle),
    ])
    def test_known_names(self, name, cls):
        assert isinstance(build_oracle(name), cls)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            build_oracle("coin_toss")
