# strategy_engine/db.py
"""
Database Connection Management

Version: 1.0.0
Features:
- Singleton pattern with thread-safe double-checked locking
- Connection pooling with auto-reconnect (MySQL/PyMySQL by default)
- Transaction context manager used for grouped writes
- Query execution helpers
"""

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from sqlalchemy.exc import OperationalError
from urllib.parse import quote_plus
import logging
import threading
from typing import Tuple, Optional, Dict, Any, List
from contextlib import contextmanager

from .config import config

logger = logging.getLogger(__name__)

# ==================== SINGLETON ENGINE ====================

_engine = None
_engine_lock = threading.Lock()


def get_db_engine() -> Engine:
    """
    Get SQLAlchemy database engine (singleton pattern)

    Thread-safe implementation using double-checked locking.
    Reuses the same engine across all calls to prevent
    connection pool exhaustion.

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = _create_engine()

    return _engine


def _build_url(db_config: Dict[str, Any]) -> str:
    if db_config.get("url"):
        return db_config["url"]

    user = db_config["user"]
    password = quote_plus(str(db_config["password"]))
    host = db_config["host"]
    port = db_config["port"]
    database = db_config["database"]

    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{database}"


def _create_engine() -> Engine:
    """Create new database engine with configured settings"""
    if not config.is_db_configured():
        logger.error("Missing required database configuration")
        raise ValueError("Missing required database configuration. Set DATABASE_URL or DB_HOST/DB_USER/DB_PASSWORD.")

    url = _build_url(config.get_db_config())

    if url.startswith("sqlite"):
        logger.info("🔌 Creating database engine: sqlite")
        return create_engine(url, echo=False)

    pool_size = config.get_app_setting("DB_POOL_SIZE", 5)
    pool_recycle = config.get_app_setting("DB_POOL_RECYCLE", 3600)

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,  # Auto-reconnect on stale connections
        echo=False
    )

    logger.info(f"✅ Database engine created (pool_size={pool_size}, recycle={pool_recycle}s)")

    return engine


# ==================== CONNECTION MANAGEMENT ====================

def check_db_connection(engine: Optional[Engine] = None) -> Tuple[bool, Optional[str]]:
    """
    Check if database connection is healthy

    Returns:
        Tuple of (is_connected: bool, error_message: str or None)
    """
    try:
        engine = engine or get_db_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except OperationalError as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False, "Cannot connect to database."


def reset_db_engine():
    """
    Reset the database engine (force new connection)
    """
    global _engine

    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            logger.info("🔄 Database engine disposed")
            _engine = None


# ==================== CONTEXT MANAGERS ====================

@contextmanager
def get_connection(engine: Optional[Engine] = None):
    """
    Context manager for read connections

    Usage:
        with get_connection() as conn:
            result = conn.execute(select(entities))
    """
    engine = engine or get_db_engine()
    conn = engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def get_transaction(engine: Optional[Engine] = None):
    """
    Context manager for database transactions

    Usage:
        with get_transaction() as conn:
            conn.execute(insert(...))
            conn.execute(update(...))
            # Auto-commit on success, auto-rollback on exception
    """
    engine = engine or get_db_engine()
    conn = engine.connect()
    trans = conn.begin()
    try:
        yield conn
        trans.commit()
    except Exception:
        trans.rollback()
        raise
    finally:
        conn.close()


# ==================== QUERY HELPERS ====================

def execute_query(query, params: Dict = None, engine: Optional[Engine] = None) -> List[Dict]:
    """
    Execute SELECT query and return results as list of dicts

    Args:
        query: SQL string or SQLAlchemy selectable
        params: Query parameters (only for SQL strings)

    Returns:
        List of dictionaries
    """
    if isinstance(query, str):
        query = text(query)

    with get_connection(engine) as conn:
        result = conn.execute(query, params or {})
        return [dict(row._mapping) for row in result]


def execute_query_df(query, params: Dict = None, engine: Optional[Engine] = None) -> pd.DataFrame:
    """
    Execute SELECT query and return results as DataFrame
    """
    return pd.DataFrame(execute_query(query, params, engine))


# ==================== EXPORTS ====================

__all__ = [
    'get_db_engine',
    'check_db_connection',
    'reset_db_engine',
    'get_connection',
    'get_transaction',
    'execute_query',
    'execute_query_df',
]
