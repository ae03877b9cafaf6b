"""Zendesk API port.

Errors are raised as ExternalServiceError carrying the HTTP status code, so
callers can tell permission problems (401/403) and duplicates (409/422)
from transient failures.
"""

from typing import Protocol

from evsrc.domain.source.model.zendesk import ZendeskTarget, ZendeskTrigger


class ZendeskApi(Protocol):
    async def list_targets(self) -> list[ZendeskTarget]: ...

    async def create_target(self, target: ZendeskTarget) -> ZendeskTarget: ...

    async def delete_target(self, target_id: int) -> None: ...

    async def list_triggers(self) -> list[ZendeskTrigger]: ...

    async def create_trigger(self, trigger: ZendeskTrigger) -> ZendeskTrigger: ...

    async def delete_trigger(self, trigger_id: int) -> None: ...


class ZendeskClientFactory(Protocol):
    def __call__(self, subdomain: str, email: str, token: str) -> ZendeskApi: ...
