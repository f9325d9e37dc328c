"""Connection to the promo code store.

The bridge only reads from it (promo lookups) and pings it for liveness; the
schema is owned by `alembic/payment`.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from qpaybridge.common.config import settings


# Recycle pooled connections before MySQL/managed Postgres drop idle ones.
engine = create_engine(settings.database_dsn, pool_pre_ping=True, pool_recycle=1800)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def ping_database(session_factory) -> None:
    """Liveness probe: raises when the store does not answer `SELECT 1`."""

    with session_factory() as db:
        db.execute(text("SELECT 1"))
