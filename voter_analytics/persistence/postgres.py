"""
PostgreSQL + PostGIS store implementation.
"""
from __future__ import annotations

import threading
from typing import Any, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from ..config import DBConfig, get_config
from ..exceptions import ConfigurationError, QueryExecutionError
from ..logger import get_logger
from ..utils.timing import timed_query
from .repository import VoterStore

logger = get_logger(__name__)


class PostgresVoterStore(VoterStore):
    """
    Read-only PostgreSQL store backed by a thread-safe connection pool.

    Handles:
    - Lazy pool creation
    - Read-only autocommit sessions
    - Mapping driver errors to QueryExecutionError
    """

    def __init__(self, config: Optional[DBConfig] = None):
        """
        Initialize store.

        Args:
            config: Database configuration (default from environment)
        """
        self.config = config or get_config().db
        self._pool: Optional[ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()

    def _get_pool(self) -> ThreadedConnectionPool:
        """Get or create the connection pool."""
        if not self.config.is_configured:
            raise ConfigurationError(
                "Database is not configured (DB_HOST, DB_NAME and DB_USER are required)",
                config_key="DB_HOST",
            )
        with self._pool_lock:
            if self._pool is None or self._pool.closed:
                try:
                    self._pool = ThreadedConnectionPool(
                        self.config.pool_min,
                        self.config.pool_max,
                        host=self.config.host,
                        port=self.config.port,
                        dbname=self.config.name,
                        user=self.config.user,
                        password=self.config.password,
                        sslmode=self.config.ssl_mode,
                    )
                except psycopg2.Error as e:
                    logger.error(f"Failed to connect to PostgreSQL: {e}")
                    raise QueryExecutionError(
                        "Failed to connect to PostgreSQL", driver_error=str(e)
                    ) from e
            return self._pool

    def fetch_all(self, statement: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        pool = self._get_pool()
        try:
            conn = pool.getconn()
        except psycopg2.Error as e:
            logger.error(f"Failed to acquire connection: {e}")
            raise QueryExecutionError(
                "Failed to acquire database connection", driver_error=str(e)
            ) from e

        broken = False
        try:
            if not conn.autocommit:
                conn.set_session(readonly=True, autocommit=True)
            with timed_query("fetch_all", logger) as timing:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(statement, tuple(params))
                    rows = [dict(row) for row in cur.fetchall()]
                timing.row_count = len(rows)
            return rows
        except psycopg2.Error as e:
            broken = bool(conn.closed)
            logger.error(
                f"Query failed: {e} | statement={statement!r} | parameter_count={len(params)}"
            )
            raise QueryExecutionError(
                "Voter query failed",
                statement=statement,
                parameter_count=len(params),
                driver_error=str(e),
            ) from e
        finally:
            pool.putconn(conn, close=broken)

    def close(self) -> None:
        """Close every pooled connection."""
        with self._pool_lock:
            if self._pool is not None and not self._pool.closed:
                self._pool.closeall()
            self._pool = None
