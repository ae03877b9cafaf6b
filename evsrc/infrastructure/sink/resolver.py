"""SinkResolver backed by a static list of addressables from the config file."""

from urllib.parse import urljoin

from evsrc.config import SinkConfig
from evsrc.domain.shared.error import NotFoundError
from evsrc.domain.source.model.source import Destination
from evsrc.domain.source.port.sink import SinkResolver


class ConfiguredSinkResolver(SinkResolver):
    """Resolves ``ref`` sinks against configured addressables.

    A bare ``uri`` is used as is. A ``uri`` next to a ``ref`` is joined onto
    the addressable's URL.
    """

    def __init__(self, sinks: list[SinkConfig]) -> None:
        self._urls = {(s.kind, s.namespace, s.name): s.url for s in sinks}

    async def resolve(self, destination: Destination, namespace: str) -> str:
        ref = destination.ref
        if ref is None:
            return destination.uri or ""

        ref_namespace = ref.namespace or namespace
        base = self._urls.get((ref.kind, ref_namespace, ref.name))
        if base is None:
            raise NotFoundError(f'{ref.kind} "{ref_namespace}/{ref.name}" not found')

        if destination.uri:
            return urljoin(base, destination.uri)
        return base
