import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Sequence

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import make_dsn
from psycopg2.pool import ThreadedConnectionPool

from src.portal.config import Settings

logger = logging.getLogger("alumni_portal.db")

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


class DatabaseError(Exception):
    """Base class for persistence failures raised by :class:`Database`."""


class DatabaseUnavailableError(DatabaseError):
    """The database could not be reached."""


class DuplicateRecordError(DatabaseError):
    """An insert violated a unique constraint."""


class EmptyResultError(DatabaseError):
    """A RETURNING statement produced no row."""


# PUBLIC_INTERFACE
def build_dsn(settings: Settings) -> str:
    """
    Build a libpq DSN from settings.

    Uses DATABASE_URL when provided, otherwise DB_HOST/DB_PORT/DB_USER/DB_PASSWORD/DB_NAME.
    """
    if settings.database_url:
        return settings.database_url
    return make_dsn(
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        dbname=settings.db_name,
    )


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


class Database:
    """Thread-safe PostgreSQL connection pool with parameterized query helpers."""

    def __init__(self, dsn: str, *, minconn: int = 1, maxconn: int = 10) -> None:
        self._dsn = dsn
        self._minconn = minconn
        self._maxconn = maxconn
        self._pool: Optional[ThreadedConnectionPool] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(build_dsn(settings), minconn=settings.db_pool_min, maxconn=settings.db_pool_max)

    @property
    def connected(self) -> bool:
        return self._pool is not None and not self._pool.closed

    # PUBLIC_INTERFACE
    def connect(self, attempts: int = 5, delay: float = 1.0, backoff: float = 2.0) -> None:
        """Open the pool, retrying with exponential backoff. Raises DatabaseUnavailableError."""
        if self.connected:
            return

        current_delay = delay
        for attempt in range(1, attempts + 1):
            try:
                self._pool = ThreadedConnectionPool(
                    minconn=self._minconn,
                    maxconn=self._maxconn,
                    dsn=self._dsn,
                )
            except psycopg2.OperationalError as exc:
                if attempt == attempts:
                    logger.error("All %d attempts to connect to the database failed: %s", attempts, exc)
                    raise DatabaseUnavailableError("Could not connect to the database") from exc
                logger.warning(
                    "Database connection attempt %d/%d failed: %s. Retrying in %.2fs",
                    attempt,
                    attempts,
                    exc,
                    current_delay,
                )
                time.sleep(current_delay)
                current_delay *= backoff
            else:
                logger.info("Connected to PostgreSQL database")
                return

    def close(self) -> None:
        if self._pool is not None and not self._pool.closed:
            self._pool.closeall()
        self._pool = None

    @contextmanager
    def _get_conn(self) -> Iterator[Any]:
        if not self.connected:
            raise DatabaseUnavailableError("Database pool is not connected")
        assert self._pool is not None
        conn = self._pool.getconn()
        try:
            yield conn
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self._pool.putconn(conn, close=bool(conn.closed))

    # PUBLIC_INTERFACE
    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Fetch a single row as a dict, or None."""
        with self._get_conn() as conn:
            with _dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                row = cur.fetchone()
                conn.commit()
                return dict(row) if row else None

    # PUBLIC_INTERFACE
    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Execute a statement with RETURNING and return the first row as dict."""
        try:
            with self._get_conn() as conn:
                with _dict_cursor(conn) as cur:
                    cur.execute(query, params or [])
                    row = cur.fetchone()
                    if not row:
                        raise EmptyResultError("Expected one row returned, got none.")
                    conn.commit()
                    return dict(row)
        except psycopg2.errors.UniqueViolation as exc:
            raise DuplicateRecordError(str(exc).strip() or "unique constraint violated") from exc

    def ping(self) -> bool:
        try:
            return self.fetch_one("SELECT 1 AS ok") is not None
        except (DatabaseError, psycopg2.Error):
            logger.warning("Database health check failed", exc_info=True)
            return False

    # PUBLIC_INTERFACE
    def initialize(self, schema_path: Path = SCHEMA_PATH) -> None:
        """Create the portal tables if they do not already exist."""
        ddl = schema_path.read_text(encoding="utf-8")
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(ddl)
            conn.commit()
        logger.info("Database schema applied from %s", schema_path)
