"""
Outcome oracles: who decides the winning side of a session

SessionManager only talks to the OutcomeOracle interface, so a verifiable
randomness source can be plugged in without touching the core.

- TimestampHashOracle: SHA-256 of the current timestamp and session id.
  Anyone who knows the resolve time can predict it. Not for adversarial use.
- SystemRandomOracle: OS CSPRNG through `secrets`
- FixedOutcomeOracle: deterministic, for tests and replays
"""
import abc
import hashlib
import logging
import secrets
import time
from typing import Callable, Optional

from models import Outcome

logger = logging.getLogger(__name__)


class OutcomeOracle(abc.ABC):
    """Supplies the winning outcome when a session is resolved"""

    name = "abstract"

    @abc.abstractmethod
    def determine_outcome(self, session_id: int) -> Outcome:
        raise NotImplementedError


class TimestampHashOracle(OutcomeOracle):
    """Publicly predictable pseudo-random outcome, kept for compatibility"""

    name = "timestamp_hash"

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: int(time.time()))

    def determine_outcome(self, session_id: int) -> Outcome:
        seed = f"{self._clock()}:{session_id}".encode()
        digest = hashlib.sha256(seed).digest()
        return Outcome.A if digest[-1] % 2 == 0 else Outcome.B


class SystemRandomOracle(OutcomeOracle):
    name = "system_random"

    def determine_outcome(self, session_id: int) -> Outcome:
        return Outcome.A if secrets.randbelow(2) == 0 else Outcome.B


class FixedOutcomeOracle(OutcomeOracle):
    """Always returns the configured outcome and remembers who asked"""

    name = "fixed"

    def __init__(self, outcome: Outcome):
        self.outcome = Outcome(outcome)
        self.calls = []

    def determine_outcome(self, session_id: int) -> Outcome:
        self.calls.append(session_id)
        return self.outcome


def build_oracle(name: str) -> OutcomeOracle:
    """
    Build the oracle selected in settings

    Raises:
        ValueError: unknown oracle name
    """
    if name == TimestampHashOracle.name:
        logger.warning("Using timestamp_hash outcome oracle: outcomes are publicly predictable")
        return TimestampHashOracle()
    if name == SystemRandomOracle.name:
        return SystemRandomOracle()
    if name in ("A", "B"):
        return FixedOutcomeOracle(Outcome(name))
    raise ValueError(f"Unknown outcome oracle: {name}")
