# callwave/db/session.py
"""
Database session management.
Provides database connections for FastAPI and context managers.
"""
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from contextlib import contextmanager

from callwave.core.config import DATABASE_URL

log = logging.getLogger("callwave.database")


def build_engine(url: str, echo: bool = False):
    """
    Create an engine for ``url``.

    SQLite (local runs and tests) gets a single shared connection when it is
    in-memory; everything else uses a pre-pinged connection pool.
    """
    if url.startswith("sqlite"):
        in_memory = url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
            echo=echo
        )

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo
    )


# ────────────────────────────────────────────
# SQLAlchemy Engine
# ────────────────────────────────────────────
engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ────────────────────────────────────────────
# FastAPI Dependency
# ────────────────────────────────────────────
def get_db() -> Session:
    """
    FastAPI dependency for database sessions.

    Usage:
        @app.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ────────────────────────────────────────────
# Context Manager
# ────────────────────────────────────────────
@contextmanager
def get_db_session(session_factory=None):
    """
    Context manager for database sessions.

    Background work (the batch poller) passes its own ``session_factory``;
    everything else uses the process-wide ``SessionLocal``.

    Usage:
        with get_db_session() as db:
            batch = db.query(BatchCall).first()
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ────────────────────────────────────────────
# Database Utilities
# ────────────────────────────────────────────
def test_db_connection() -> bool:
    """Test database connection"""
    try:
        with get_db_session() as db:
            db.execute(text("SELECT 1"))
        log.info("✅ Database connection successful")
        return True
    except Exception as e:
        log.error(f"❌ Database connection failed: {e}")
        return False

# Not a test function; keeps pytest from collecting it when imported into test modules
test_db_connection.__test__ = False


def init_db(bind=None):
    """
    Initialize database tables.
    This will create all tables defined in models.
    """
    from callwave.db.base import Base
    try:
        Base.metadata.create_all(bind=bind or engine)
        log.info("✅ Database tables initialized")
    except Exception as e:
        log.error(f"❌ Failed to initialize database: {e}")
        raise
