from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from mailcraft.config import settings


def _engine_kwargs() -> dict:
    if settings.DATABASE_URL.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_POOL_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
    }


engine = create_engine(settings.DATABASE_URL, future=True, **_engine_kwargs())
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


ATOMIC_KEY = "atomic"


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    # Import models so every table is registered on Base.metadata.
    from mailcraft.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Run repository writes inside the block as one transaction, rolled back on error."""
    if session.info.get(ATOMIC_KEY):
        yield session
        return
    session.info[ATOMIC_KEY] = True
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.info.pop(ATOMIC_KEY, None)
