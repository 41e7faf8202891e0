from __future__ import annotations

import pytest

from storekb.domain.models import Base
from storekb.persistence.db import engine


@pytest.fixture(autouse=True)
async def database_schema() -> None:
    # Fresh schema per test keeps sync and ingestion assertions independent.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()
