"""SinkResolver port: turns a Destination into a delivery URI."""

from typing import Protocol

from evsrc.domain.source.model.source import Destination


class SinkResolver(Protocol):
    async def resolve(self, destination: Destination, namespace: str) -> str:
        """Resolve ``destination`` for a source living in ``namespace``.

        Raises:
            NotFoundError: If the referenced addressable does not exist.
        """
        ...
