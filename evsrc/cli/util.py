from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine

from evsrc.application.di import create_container
from evsrc.config import Config
from evsrc.domain.source.port.repository import SourceRepository
from evsrc.infrastructure.persistence.database import create_tables
from evsrc.util.di.scope import Scope


@asynccontextmanager
async def source_repository(config: Config) -> AsyncIterator[SourceRepository]:
    """Repository in one unit of work, committed when the block exits."""
    container = create_container(config)
    try:
        await create_tables(await container.get(AsyncEngine))
        async with container(scope=Scope.UOW) as scope:
            yield await scope.get(SourceRepository)
    finally:
        await container.close()
