"""
Notedly Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, FastAPI dependency, and the
       translation of driver failures into Notedly exceptions.
How:   One transaction per request (or per run_in_transaction() call): commit
       on success, roll back on error, and close without committing on
       cancellation, so a partial grant or board mutation is never observable.
Who:   Routes use get_db_session(); services wrap their queries in
       storage_errors(); the CLI uses run_in_transaction().

Isolation:
    PostgreSQL connections run at settings.db_isolation_level (default
    REPEATABLE READ). Write paths lock the board row with SELECT ... FOR UPDATE
    and bump boards.acl_version on ACL changes; a transaction that lost the
    race gets SQLSTATE 40001, surfaced as ConcurrentModificationError.
    SQLite (tests) ignores FOR UPDATE and the isolation setting.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable, Dict, Optional, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from notedly.config import Settings, settings
from notedly.exceptions import (
    ConcurrentModificationError,
    DatabaseError,
    NotedlyError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def engine_options(config: Settings) -> Dict[str, Any]:
    """
    Keyword arguments for create_async_engine().

    SQLite's pools reject pool sizing and PostgreSQL isolation names, so
    those are only passed for server databases.
    """
    options: Dict[str, Any] = {"echo": config.log_level == "DEBUG"}
    if config.is_sqlite:
        return options
    options.update(
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=config.db_pool_pre_ping,
        pool_recycle=3600,
        isolation_level=config.db_isolation_level,
    )
    return options


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **engine_options(settings))

# expire_on_commit=False: returned ORM objects stay readable after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for migrations and the
    test suite uses for create_all().
    """
    pass


# ── Error Translation ─────────────────────────────────────────────────────
def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncIterator[None]:
    """
    Translate SQLAlchemy and driver failures raised inside the block.

    Mapping:
        NotedlyError                      → re-raised unchanged
        IntegrityError                    → ConcurrentModificationError
            (services check uniqueness before writing, so a violation
            means a concurrent writer got there first)
        SQLSTATE 40001 / 40P01            → ConcurrentModificationError
        OperationalError, InterfaceError,
        invalidated connection, OSError   → StorageUnavailableError
        anything else from SQLAlchemy     → DatabaseError

    Usage:
        async with storage_errors("grant permission"):
            await db.execute(...)
    """
    try:
        yield
    except NotedlyError:
        raise
    except IntegrityError as e:
        logger.warning("Constraint race during %s: %s", operation, e.orig)
        raise ConcurrentModificationError(context={"operation": operation}) from e
    except DBAPIError as e:
        if _sqlstate(e) in _RETRYABLE_SQLSTATES:
            logger.warning("Serialization failure during %s: %s", operation, e.orig)
            raise ConcurrentModificationError(context={"operation": operation}) from e
        if e.connection_invalidated or isinstance(e, (OperationalError, InterfaceError)):
            logger.error("Data store unavailable during %s: %s", operation, e.orig)
            raise StorageUnavailableError(
                retry_after=settings.storage_retry_after,
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e
        logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
        raise DatabaseError(context={"operation": operation, "error_type": type(e).__name__}) from e
    except OSError as e:
        # Connection refused / DNS / timeout raised by the driver before a
        # DBAPI connection exists
        logger.error("Data store unreachable during %s: %s", operation, str(e))
        raise StorageUnavailableError(
            retry_after=settings.storage_retry_after,
            context={"operation": operation, "error_type": type(e).__name__},
        ) from e
    except SQLAlchemyError as e:
        logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
        raise DatabaseError(context={"operation": operation, "error_type": type(e).__name__}) from e


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back
        5. Always: closes the session (returns connection to pool); closing
           an uncommitted session discards its work, which covers cancellation
    """
    async with async_session_factory() as session:
        try:
            yield session
            async with storage_errors("commit"):
                await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── In-process Transactions ───────────────────────────────────────────────
@retry(
    retry=retry_if_exception_type(ConcurrentModificationError),
    stop=stop_after_attempt(settings.retry_max_attempts),
    # min_wait * 2^n capped at max_wait, plus up to min_wait of jitter
    wait=wait_exponential(multiplier=settings.retry_min_wait, max=settings.retry_max_wait)
    + wait_random(0, settings.retry_min_wait),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def run_in_transaction(
    operation: Callable[[AsyncSession], Awaitable[T]],
    session_factory: Optional[async_sessionmaker] = None,
) -> T:
    """
    Run `operation(session)` in its own transaction, retrying lost races.

    What:    The entry point for callers that are not behind the HTTP
             dependency (CLI import, scripts, other in-process services).
    How:     Opens a session, begins a transaction, awaits the operation and
             commits. A ConcurrentModificationError rolls everything back and
             the whole operation is re-run from scratch with exponential
             backoff + jitter, up to settings.retry_max_attempts times.

    Args:
        operation:        Coroutine function receiving the session
        session_factory:  Override for tests; defaults to the app factory

    Raises:
        ConcurrentModificationError: Still losing after all attempts
        Any NotedlyError raised by the operation (not retried)
    """
    factory = session_factory or async_session_factory
    async with factory() as session:
        async with storage_errors("transaction"):
            async with session.begin():
                return await operation(session)


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections. Called during application shutdown."""
    await engine.dispose()
