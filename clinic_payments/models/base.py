"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets its own
session from get_db(); the API layer decides when it commits.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from clinic_payments.config import get_settings

settings = get_settings()

# --- Engine ---
# pool_pre_ping=True checks a pooled connection before handing it
# out, so a restarted database does not surface as a failed webhook.
# SQLite (local development) needs check_same_thread disabled because
# FastAPI runs sync endpoints in a worker thread pool.
connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# --- Session Factory ---
# autocommit=False: a purchase status update and its ledger credit
# are committed together or not at all.
# autoflush=False: SQL is only sent on an explicit flush or commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The session is always closed when the request finishes,
    even if the handler raised.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
