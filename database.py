from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./wager_house.db"
    house_id: str = "house"
    payout_rounding: str = "two_stage"
    outcome_oracle: str = "timestamp_hash"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite needs check_same_thread=False, FastAPI hands connections across its threadpool
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: yields a database Session

    The session is closed once the request finishes
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    if 'db' in kwargs and isinstance(kwargs['db'], Session):
        return kwargs['db']
    # Managers are instances, so the session may follow `self`
    for arg in args[:2]:
        if isinstance(arg, Session):
            return arg
    return None


def transactional(func):
    """
    Transaction decorator: every DB write of a business operation commits
    together or not at all.

    Usage:
        @transactional
        def place(self, db: Session, ...):
            db.add(bet)
            # no manual commit, the decorator handles it

    On any exception:
        - the session is rolled back
        - the exception is re-raised for the caller to map

    Notes:
        - `db: Session` must be the first argument (after `self` for methods)
          or passed as the `db` keyword
        - do not commit inside the wrapped function
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
