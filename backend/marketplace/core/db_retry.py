"""Retry short write transactions that lose a lock race.

Booking and unbooking are single conditional UPDATEs; when MySQL picks one of
them as a deadlock victim (or the lock wait times out) the whole transaction
is rolled back and simply run again.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.db_errors import LOCK_NOWAIT_ERROR_CODES

T = TypeVar("T")

DEADLOCK = 1213
LOCK_WAIT_TIMEOUT = 1205
MYSQL_RETRIABLE_ERROR_CODES = {DEADLOCK, LOCK_WAIT_TIMEOUT} | LOCK_NOWAIT_ERROR_CODES
# serialization_failure / deadlock_detected
RETRIABLE_SQLSTATES = {"40001", "40P01"}


def _driver_error_code(exc: DBAPIError) -> int | None:
    args = getattr(exc.orig, "args", None)
    if not args:
        return None
    try:
        return int(args[0])
    except (TypeError, ValueError):
        return None


def is_retriable(exc: DBAPIError) -> bool:
    """True when ``exc`` is a lock race worth replaying."""

    code = _driver_error_code(exc)
    if code in LOCK_NOWAIT_ERROR_CODES and settings.DB_NOWAIT_LOCKS:
        return False  # NOWAIT conflicts surface as 409 instead
    if code in MYSQL_RETRIABLE_ERROR_CODES:
        return True
    if getattr(exc.orig, "sqlstate", None) in RETRIABLE_SQLSTATES:
        return True
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "deadlock" in message or "lock wait timeout" in message


def backoff_delay(attempt: int, base_delay: float, jitter: float) -> float:
    return base_delay * (2 ** (attempt - 1)) + random.uniform(0, jitter)


async def with_db_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    label: str = "db_write",
    attempts: int | None = None,
    base_delay: float | None = None,
    jitter: float | None = None,
) -> T:
    """Run ``operation``, rolling back and replaying it on lock races.

    The last failure is re-raised once ``attempts`` runs have all lost.
    """

    attempts = max(1, attempts or settings.DB_RETRY_ATTEMPTS)
    base_delay = settings.DB_RETRY_BASE_DELAY if base_delay is None else base_delay
    jitter = settings.DB_RETRY_JITTER if jitter is None else jitter

    attempt = 1
    while True:
        try:
            return await operation()
        except DBAPIError as exc:
            if not is_retriable(exc):
                raise
            await session.rollback()
            if attempt >= attempts:
                logger.bind(operation=label, attempts=attempts).error("db_retry_exhausted")
                raise
            delay = backoff_delay(attempt, base_delay, jitter)
            logger.bind(
                operation=label,
                attempt=attempt,
                max_attempts=attempts,
                sleep=round(delay, 4),
                error=str(exc.orig),
            ).warning("db_retry_lock_race")
            attempt += 1
            await asyncio.sleep(delay)
