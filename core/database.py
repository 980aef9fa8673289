"""
core/database.py -- Engine factory and small persistence helpers.

One SQLAlchemy Engine is created at startup (api/main.py lifespan) and
injected into every store. Stores own their own table definitions and call
create_all on their own MetaData, so a store can be constructed alone in a
unit test against "sqlite:///:memory:".

Swapping SQLite for PostgreSQL is a connection string change.
"""

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("bookorbit.database")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Build the shared Engine. SQLite connections may cross threads (FastAPI thread pool)."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def ping(engine: Engine) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("Database ping failed: %s", e)
        return False


def new_object_id() -> str:
    """24 lowercase hex chars -- the same shape clients already expect for ids."""
    return secrets.token_hex(12)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
