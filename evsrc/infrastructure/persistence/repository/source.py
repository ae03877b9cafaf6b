from datetime import UTC, datetime

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from evsrc.domain.shared.error import ConflictError
from evsrc.domain.source.model.source import EventSource, SourceKey, SourceKind
from evsrc.domain.source.port.repository import SourceRepository
from evsrc.infrastructure.persistence.mappers.source import (
    row_to_source,
    spec_to_dict,
    status_to_dict,
)
from evsrc.infrastructure.persistence.tables import sources_table


def _where_key(key: SourceKey):
    return and_(
        sources_table.c.kind == key.kind.value,
        sources_table.c.namespace == key.namespace,
        sources_table.c.name == key.name,
    )


class SQLAlchemySourceRepository(SourceRepository):
    """SQLAlchemy implementation of SourceRepository.

    Status and finalizer writes are conditional on the resource version the
    caller read, so a pass working on stale data fails with ConflictError
    instead of overwriting a newer write.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: SourceKey) -> EventSource | None:
        stmt = select(sources_table).where(_where_key(key))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_source(dict(row)) if row else None

    async def list_sources(
        self, kind: SourceKind | None = None, namespace: str | None = None
    ) -> list[EventSource]:
        stmt = select(sources_table).order_by(
            sources_table.c.kind, sources_table.c.namespace, sources_table.c.name
        )
        if kind is not None:
            stmt = stmt.where(sources_table.c.kind == kind.value)
        if namespace is not None:
            stmt = stmt.where(sources_table.c.namespace == namespace)

        result = await self.session.execute(stmt)
        return [row_to_source(dict(r)) for r in result.mappings().all()]

    async def list_keys(self) -> list[SourceKey]:
        stmt = select(sources_table.c.kind, sources_table.c.namespace, sources_table.c.name)
        result = await self.session.execute(stmt)
        return [
            SourceKey(kind=SourceKind(r["kind"]), namespace=r["namespace"], name=r["name"])
            for r in result.mappings().all()
        ]

    async def apply(self, source: EventSource) -> EventSource:
        now = datetime.now(UTC)
        existing = await self.get(source.key)

        if existing is None:
            stmt = insert(sources_table).values(
                kind=source.kind.value,
                namespace=source.namespace,
                name=source.name,
                uid=source.metadata.uid,
                generation=1,
                resource_version=1,
                labels=source.metadata.labels,
                finalizers=[],
                deletion_timestamp=None,
                spec=spec_to_dict(source),
                status={},
                created_at=now,
                updated_at=now,
            )
            await self.session.execute(stmt)
            await self.session.flush()
            return await self._must_get(source.key)

        spec = spec_to_dict(source)
        spec_changed = spec != spec_to_dict(existing)
        if not spec_changed and source.metadata.labels == existing.metadata.labels:
            return existing

        stmt = (
            update(sources_table)
            .where(_where_key(source.key))
            .values(
                spec=spec,
                labels=source.metadata.labels,
                generation=existing.metadata.generation + (1 if spec_changed else 0),
                resource_version=sources_table.c.resource_version + 1,
                updated_at=now,
            )
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return await self._must_get(source.key)

    async def request_deletion(self, key: SourceKey) -> EventSource | None:
        source = await self.get(key)
        if source is None:
            return None
        if not source.metadata.finalizers:
            await self.delete(key)
            return None
        if source.is_deleting:
            return source

        stmt = (
            update(sources_table)
            .where(_where_key(key))
            .values(
                deletion_timestamp=datetime.now(UTC),
                resource_version=sources_table.c.resource_version + 1,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return await self._must_get(key)

    async def update_status(self, source: EventSource) -> EventSource:
        await self._conditional_update(source, status=status_to_dict(source))
        return source

    async def update_finalizers(self, source: EventSource) -> EventSource:
        if source.is_deleting and not source.metadata.finalizers:
            await self.delete(source.key)
            return source
        await self._conditional_update(source, finalizers=list(source.metadata.finalizers))
        return source

    async def delete(self, key: SourceKey) -> None:
        await self.session.execute(delete(sources_table).where(_where_key(key)))
        await self.session.flush()

    async def _conditional_update(self, source: EventSource, **values) -> None:
        version = source.metadata.resource_version
        stmt = (
            update(sources_table)
            .where(_where_key(source.key), sources_table.c.resource_version == version)
            .values(resource_version=version + 1, updated_at=datetime.now(UTC), **values)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise ConflictError(f"Source {source.key} was modified concurrently")
        await self.session.flush()
        source.metadata.resource_version = version + 1

    async def _must_get(self, key: SourceKey) -> EventSource:
        source = await self.get(key)
        if source is None:
            raise ConflictError(f"Source {key} disappeared while being written")
        return source
