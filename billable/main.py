# billable/main.py
from __future__ import annotations
import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from billable.core.logger import setup_logging
from billable.persistence.base import Base
from billable.persistence import models  # noqa: F401  registers tables on Base

logger = structlog.get_logger(__name__)


async def init_db(bind: AsyncEngine) -> None:
    """Create missing tables (accounts, subscriptions, tax_rates, invoices)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", tables=sorted(Base.metadata.tables))


def main() -> None:
    setup_logging()
    from billable.core.deps import engine

    asyncio.run(init_db(engine))
