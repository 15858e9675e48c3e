"""
Date-scoped sequence identifiers.

Produces numbers like PAY-20250730-001. The next number is read inside the
caller's transaction, so a rolled back insert never consumes a number and
the unique constraint on the numbered column catches concurrent duplicates
(which the transaction runner retries).
"""

from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import InstrumentedAttribute

SEQUENCE_WIDTH = 3


def format_sequence_number(prefix: str, on_date: date, sequence: int) -> str:
    """PREFIX-YYYYMMDD-NNN, zero padded to at least three digits."""
    return f"{prefix}-{on_date.strftime('%Y%m%d')}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(number: str) -> int:
    """Return the trailing sequence of a PREFIX-YYYYMMDD-NNN number."""
    return int(number.rsplit("-", 1)[1])


async def next_sequence_number(
    db: AsyncSession,
    column: InstrumentedAttribute,
    prefix: str,
    on_date: Optional[date] = None
) -> str:
    """
    Generate the next identifier for `column` scoped to `on_date`.

    Args:
        db: Session of the transaction that will insert the numbered row
        column: Unique string column holding the numbers (e.g. Payment.payment_number)
        prefix: Category prefix ('PAY', 'LCK')
        on_date: Scope date, defaults to today

    Returns:
        Next free number for the day
    """
    on_date = on_date or date.today()
    day_prefix = f"{prefix}-{on_date.strftime('%Y%m%d')}-"

    # Longest first, then lexical: keeps ordering numeric past 999
    query = (
        select(column)
        .where(column.like(f"{day_prefix}%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    )
    last_number = (await db.execute(query)).scalar_one_or_none()

    sequence = parse_sequence(last_number) + 1 if last_number else 1
    return format_sequence_number(prefix, on_date, sequence)
