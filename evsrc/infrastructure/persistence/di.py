from typing import AsyncIterable

from dishka import provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from evsrc.config import Config
from evsrc.domain.source.port.repository import SourceRepository
from evsrc.infrastructure.persistence.database import create_db_engine, create_session_factory
from evsrc.infrastructure.persistence.repository.source import SQLAlchemySourceRepository
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope


class PersistenceProvider(Provider):
    # APP-scoped factories
    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterable[AsyncEngine]:
        engine = create_db_engine(config)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return create_session_factory(engine)

    # UOW-scoped session (one per unit of work)
    @provide(scope=Scope.UOW)
    async def get_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> AsyncIterable[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
            finally:
                # A status written before a pass failed is still committed.
                await session.commit()

    source_repo = provide(SQLAlchemySourceRepository, scope=Scope.UOW, provides=SourceRepository)
