from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exam_portal.config import DATABASE_URL, DB_LOCK_TIMEOUT_SECONDS
from exam_portal.infrastructure.db.base import Base  # noqa: F401


def engine_kwargs(url: str, lock_timeout_seconds: float = DB_LOCK_TIMEOUT_SECONDS) -> dict:
    """
    Connection options per backend. Lock waits are bounded everywhere so a
    blocked attempt fails with a store error instead of hanging.
    """
    if url.startswith("sqlite"):
        kwargs = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": lock_timeout_seconds,
            }
        }
        # In-memory databases live and die with a single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs

    kwargs = {"pool_pre_ping": True}
    if url.startswith("postgresql") or url.startswith("postgres"):
        kwargs["connect_args"] = {
            "options": f"-c lock_timeout={int(lock_timeout_seconds * 1000)}",
        }
    return kwargs


def build_engine(url: str = DATABASE_URL):
    return create_engine(url, **engine_kwargs(url))


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
