"""
Reliability utilities for ledger writes.

Runs a unit of work as one transaction, rolling back on any failure and
retrying transient store conflicts (sequence number collisions, serialization
failures) a bounded number of times.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gym_ledger.app.core.config import settings
from gym_ledger.app.core.exceptions import AppException, TransactionError

logger = logging.getLogger("gym_ledger.reliability")

T = TypeVar("T")

# Unique columns whose collisions come from concurrent number generation
SEQUENCE_COLUMNS = ("payment_number", "locker_number")

SERIALIZATION_FAILURE = "40001"


def is_transient_conflict(exc: SQLAlchemyError, retry_columns: Iterable[str] = SEQUENCE_COLUMNS) -> bool:
    """True when the store rejected the commit for a reason a fresh attempt can fix."""
    orig = getattr(exc, "orig", None)
    if isinstance(exc, IntegrityError):
        text = str(orig or exc)
        return any(column in text for column in retry_columns)
    if isinstance(exc, DBAPIError):
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return sqlstate == SERIALIZATION_FAILURE
    return False


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    operation: str,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Execute `work` and commit it atomically.

    Args:
        db: Transaction-scoped session. Must have no uncommitted changes of its own.
        work: Coroutine factory that stages all row changes (it may flush, never commit)
        operation: Name used in logs and error details
        max_attempts: Override for settings.transaction_max_retries

    Returns:
        Whatever `work` returned on the attempt that committed

    Raises:
        AppException: Business-rule failures raised by `work`, after rollback
        TransactionError: Store failure, or conflicts persisting past the retry budget
    """
    attempts = max_attempts or settings.transaction_max_retries

    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except AppException:
            await db.rollback()
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            if is_transient_conflict(exc) and attempt < attempts:
                logger.warning(
                    "Transient conflict during %s (attempt %d/%d): %s",
                    operation, attempt, attempts, exc.__class__.__name__
                )
                continue
            logger.error("Transaction failed during %s: %s", operation, exc)
            raise TransactionError(
                message=f"Could not commit {operation}",
                details={"operation": operation, "attempts": attempt}
            ) from exc
        except Exception:
            await db.rollback()
            raise

    # Unreachable: the loop either returns or raises
    raise TransactionError(details={"operation": operation, "attempts": attempts})
