"""DI provider for HTTP infrastructure."""

from typing import AsyncIterable, NewType

import httpx
from dishka import provide

from evsrc.config import Config
from evsrc.domain.source.port.zendesk import ZendeskClientFactory
from evsrc.infrastructure.http.zendesk import HttpZendeskClientFactory
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope

ZendeskHttpClient = NewType("ZendeskHttpClient", httpx.AsyncClient)


class HttpProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_zendesk_http_client(self, config: Config) -> AsyncIterable[ZendeskHttpClient]:
        """Connection pool shared by every Zendesk account."""
        client = httpx.AsyncClient(timeout=config.zendesk.timeout)
        yield ZendeskHttpClient(client)
        await client.aclose()

    @provide(scope=Scope.APP)
    def get_zendesk_client_factory(
        self, client: ZendeskHttpClient, config: Config
    ) -> ZendeskClientFactory:
        return HttpZendeskClientFactory(client, base_url=config.zendesk.base_url)
