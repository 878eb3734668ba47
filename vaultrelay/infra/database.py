# vaultrelay/infra/database.py

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from vaultrelay.core.config import DATABASE_URL
from vaultrelay.models.base import Base

logger = logging.getLogger(__name__)

# =========================
# ENGINE CONFIGURATION
# =========================

def build_engine(url: str = DATABASE_URL, echo: bool = False):
    """
    SQLite gets a thread-shareable connection; anything else gets the
    pooled setup used for Postgres.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo
        )
    return create_engine(
        url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,         # Maintain 5 connections in the pool
        max_overflow=10,     # Allow 10 extra connections if needed
        pool_recycle=3600,   # Recycle connections every hour
        echo=echo            # Set True to see SQL statements (debugging)
    )


def build_session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine
    )


# =========================
# DATABASE FUNCTIONS
# =========================

@contextmanager
def db_session(session_factory):
    """
    Context manager for standalone DB operations.
    Usage:
        with db_session(factory) as db:
            entry = db.query(RelayEntry).first()
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine):
    """Create all tables based on registered models."""
    # Import models here to register them with Base
    from vaultrelay.models.relay_entry import RelayEntry  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Relay tables ready on %s", engine.url.render_as_string(hide_password=True))


def check_connection(engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False
