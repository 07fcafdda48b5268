"""
Shared FastAPI dependencies

- get_session_manager: the single SessionManager of this process
- get_clock: current time in unix seconds (overridden in tests)
- get_caller: caller identity from the X-Caller-Id header
"""
from functools import lru_cache
import time

from fastapi import Header

from database import get_settings
from core.session_manager import SessionManager
from services.oracle_service import build_oracle
from services.payout_service import RoundingPolicy


@lru_cache()
def get_session_manager() -> SessionManager:
    settings = get_settings()
    return SessionManager(
        house_id=settings.house_id,
        oracle=build_oracle(settings.outcome_oracle),
        rounding=RoundingPolicy(settings.payout_rounding)
    )


def get_clock() -> int:
    return int(time.time())


def get_caller(x_caller_id: str = Header(...)) -> str:
    return x_caller_id
