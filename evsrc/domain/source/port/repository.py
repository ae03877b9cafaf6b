"""SourceRepository port: persisted sources with optimistic concurrency."""

from typing import Protocol

from evsrc.domain.source.model.source import EventSource, SourceKey, SourceKind


class SourceRepository(Protocol):
    async def get(self, key: SourceKey) -> EventSource | None: ...

    async def list_sources(
        self, kind: SourceKind | None = None, namespace: str | None = None
    ) -> list[EventSource]: ...

    async def list_keys(self) -> list[SourceKey]: ...

    async def apply(self, source: EventSource) -> EventSource:
        """Create the source or replace its spec, bumping the generation on change."""
        ...

    async def request_deletion(self, key: SourceKey) -> EventSource | None:
        """Mark the source as deleting, or delete it right away when nothing guards it."""
        ...

    async def update_status(self, source: EventSource) -> EventSource:
        """Write ``source.status``.

        Raises:
            ConflictError: If the stored resource version moved on.
        """
        ...

    async def update_finalizers(self, source: EventSource) -> EventSource:
        """Write ``source.metadata.finalizers``; deleting sources with none left are removed.

        Raises:
            ConflictError: If the stored resource version moved on.
        """
        ...

    async def delete(self, key: SourceKey) -> None: ...
