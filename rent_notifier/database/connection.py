"""PostgreSQL connection pool shared by the ledger and the settings store.

Features:
- Connection pooling with automatic validation
- Retry decorator for transient failures

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from importlib import resources
from typing import Any, TypeVar

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from rent_notifier.config import NotifierConfig, get_settings
from rent_notifier.core.exceptions import InvalidTransitionError, LedgerError
from rent_notifier.core.logger import get_logger

logger = get_logger(__name__)

# Type variable for generic return types
T = TypeVar("T")


# =============================================================================
# Retry Decorator
# =============================================================================
def with_db_retry(
    max_retries: int = 2,
    error_message: str = "Database operation failed",
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for database operations with automatic retry on connection errors.

    The decorated method receives a pooled connection as its first argument
    after self. The owning object must expose a ``db`` attribute holding a
    DatabasePool.

    Args:
        max_retries: Maximum retry attempts (default: 2).
        error_message: Base error message for failures.

    Returns:
        Decorated function with retry logic.

    Example:
        @with_db_retry(error_message="Failed to load billing cycle")
        def get_billing_cycle(self, conn):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
            last_error: Exception | None = None

            for attempt in range(max_retries):
                conn = self.db.get_connection()
                try:
                    result = func(self, conn, *args, **kwargs)
                    conn.commit()
                    return result
                except psycopg2.OperationalError as e:
                    conn.rollback()
                    last_error = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            f"Connection error in {func.__name__}, "
                            f"retrying ({attempt + 1}/{max_retries})"
                        )
                        continue
                    logger.error(f"{error_message} after {max_retries} retries: {e}")
                except (LedgerError, InvalidTransitionError):
                    conn.rollback()
                    raise
                except Exception as e:
                    conn.rollback()
                    logger.error(f"{error_message}: {e}")
                    raise LedgerError(f"{error_message}: {e}") from e
                finally:
                    self.db.return_connection(conn)

            raise LedgerError(f"{error_message}: {last_error}") from last_error

        return wrapper

    return decorator


def _validate_connection(conn: psycopg2.extensions.connection) -> bool:
    """Validate if a database connection is alive.

    Args:
        conn: PostgreSQL connection to validate

    Returns:
        True if connection is valid, False if dead/unusable
    """
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
        return True
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        return False


class DatabasePool:
    """Thread-safe PostgreSQL connection pool.

    Attributes:
        config: Service configuration (DSN, schema, pool sizes).
        schema: Schema holding the notifier tables.
    """

    def __init__(self, config: NotifierConfig | None = None) -> None:
        """Initialize the connection pool.

        Args:
            config: Service configuration (uses global if None).

        Raises:
            LedgerError: If connection pool initialization fails.
        """
        self.config = config or get_settings()
        self.schema = self.config.SCHEMA_NAME
        self._pool: pool.ThreadedConnectionPool | None = None

        try:
            self._init_pool()
            logger.info("Database pool initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database pool: {e}")
            self.close()
            raise LedgerError(f"Connection pool initialization failed: {e}") from e

    def _init_pool(self) -> None:
        """Initialize PostgreSQL connection pool with configurable size."""
        min_conn = self.config.DB_POOL_SIZE_MIN
        max_conn = max(self.config.DB_POOL_SIZE_MAX, min_conn)

        logger.debug(f"Initializing PostgreSQL connection pool (min={min_conn}, max={max_conn})...")
        self._pool = pool.ThreadedConnectionPool(
            minconn=min_conn,
            maxconn=max_conn,
            dsn=self.config.DATABASE_URL,
            cursor_factory=RealDictCursor,
        )

    def get_connection(self) -> psycopg2.extensions.connection:
        """Get connection from pool with automatic validation.

        Raises:
            LedgerError: If pool not initialized.
        """
        if not self._pool:
            raise LedgerError("Connection pool not initialized")

        conn = self._pool.getconn()

        if not _validate_connection(conn):
            self._pool.putconn(conn, close=True)
            logger.warning("Dead connection detected, retrieving fresh connection")
            conn = self._pool.getconn()

        return conn

    def return_connection(self, conn: psycopg2.extensions.connection) -> None:
        """Return connection to pool."""
        if self._pool:
            self._pool.putconn(conn)

    def initialize_schema(self) -> None:
        """Create the notifier schema and tables if they do not exist.

        Raises:
            LedgerError: If the DDL fails.
        """
        ddl = resources.files("rent_notifier.database").joinpath("schema.sql").read_text(encoding="utf-8")
        ddl = ddl.replace("{schema}", self.schema)

        conn = self.get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(ddl)
            conn.commit()
            logger.info(f"Database schema '{self.schema}' initialized")
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to initialize schema: {e}")
            raise LedgerError(f"Failed to initialize schema: {e}") from e
        finally:
            self.return_connection(conn)

    def health_check(self) -> bool:
        """Check database connectivity.

        Returns:
            True if database is accessible, False otherwise.
        """
        try:
            conn = self.get_connection()
            try:
                return _validate_connection(conn)
            finally:
                self.return_connection(conn)
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self) -> None:
        """Clean up connection pool and release all connections."""
        if self._pool:
            try:
                self._pool.closeall()
                logger.debug("Connection pool closed successfully")
            except Exception as e:
                logger.warning(f"Error closing connection pool: {e}")
            finally:
                self._pool = None
