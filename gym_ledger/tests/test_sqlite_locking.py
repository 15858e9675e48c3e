"""
Local SQLite mode: write transactions are serialized at BEGIN.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from gym_ledger.app.db.session import use_immediate_transactions


@pytest.fixture
async def file_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 0.1},
    )
    use_immediate_transactions(engine)
    async with engine.begin() as conn:
        await conn.execute(text("CREATE TABLE refunds_total (amount REAL)"))

    yield engine

    await engine.dispose()


@pytest.mark.asyncio
async def test_second_transaction_cannot_read_while_first_is_open(file_engine):
    async with file_engine.connect() as first:
        await first.execute(text("SELECT coalesce(sum(amount), 0) FROM refunds_total"))

        async with file_engine.connect() as second:
            with pytest.raises(OperationalError, match="locked"):
                await second.execute(text("SELECT coalesce(sum(amount), 0) FROM refunds_total"))

        await first.execute(text("INSERT INTO refunds_total VALUES (0.1)"))
        await first.commit()

    async with file_engine.connect() as third:
        total = (await third.execute(text("SELECT sum(amount) FROM refunds_total"))).scalar()
        assert total == 0.1
