"""
Database engine, session management, and base model.

Every application model inherits from Base. Every request gets a
session from get_db(). The ORASS policy database is external and has
its own engine (see certify_link.models.orass_policy).
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from certify_link.config import get_settings

settings = get_settings()

# --- Engine ---
# pool_pre_ping=True tests connections before using them, which
# handles a restarted database or a stale pooled connection.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# --- Session Factory ---
# autocommit=False: the API layer decides when a unit of work is
# committed or rolled back.
# autoflush=False: SQL is only sent on explicit flush or commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


# --- Base Model Class ---
class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally guarantees the session is closed even when the
    endpoint raises, so connections are always returned to the pool.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
