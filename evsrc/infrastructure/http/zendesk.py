"""HTTP adapter for the Zendesk API port."""

import logging
from typing import Any, Callable, TypeVar

import httpx
from pydantic import ValidationError

from evsrc.domain.shared.error import ExternalServiceError
from evsrc.domain.source.model.zendesk import ZendeskTarget, ZendeskTrigger
from evsrc.domain.source.port.zendesk import ZendeskApi, ZendeskClientFactory

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://{subdomain}.zendesk.com"

T = TypeVar("T", ZendeskTarget, ZendeskTrigger)


class HttpZendeskApi(ZendeskApi):
    """Zendesk Support API v2 client authenticated with an API token.

    Listing follows ``next_page`` links, so objects past the first page are
    found as well.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        subdomain: str,
        email: str,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._client = client
        self._subdomain = subdomain
        self._base = base_url.format(subdomain=subdomain).rstrip("/") + "/api/v2"
        self._auth = httpx.BasicAuth(f"{email}/token", token)

    async def list_targets(self) -> list[ZendeskTarget]:
        # Accounts hold email, url and other target types; only the fields
        # every type shares are read.
        items = await self._list("/targets.json", "targets")
        return self._parse(
            "targets",
            items,
            lambda item: ZendeskTarget(
                id=item["id"],
                title=item["title"],
                type=item.get("type") or "http_target",
                target_url=item.get("target_url") or "",
            ),
        )

    async def create_target(self, target: ZendeskTarget) -> ZendeskTarget:
        body = {"target": target.model_dump(exclude={"id"}, exclude_none=True)}
        data = await self._request("POST", f"{self._base}/targets.json", json=body)
        # The API never echoes the password back.
        return target.model_copy(update={"id": data["target"]["id"]})

    async def delete_target(self, target_id: int) -> None:
        await self._request("DELETE", f"{self._base}/targets/{target_id}.json")

    async def list_triggers(self) -> list[ZendeskTrigger]:
        items = await self._list("/triggers.json", "triggers")
        return self._parse(
            "triggers", items, lambda item: ZendeskTrigger(id=item["id"], title=item["title"])
        )

    async def create_trigger(self, trigger: ZendeskTrigger) -> ZendeskTrigger:
        body = {
            "trigger": {
                "title": trigger.title,
                "conditions": {
                    "all": [c.model_dump() for c in trigger.all_conditions],
                    "any": [c.model_dump() for c in trigger.any_conditions],
                },
                "actions": [a.model_dump() for a in trigger.actions],
            }
        }
        data = await self._request("POST", f"{self._base}/triggers.json", json=body)
        return trigger.model_copy(update={"id": data["trigger"]["id"]})

    async def delete_trigger(self, trigger_id: int) -> None:
        await self._request("DELETE", f"{self._base}/triggers/{trigger_id}.json")

    async def _list(self, path: str, field: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        url: str | None = f"{self._base}{path}"
        while url:
            page = await self._request("GET", url)
            items.extend(page.get(field) or [])
            url = page.get("next_page")
        return items

    def _parse(
        self, field: str, items: list[dict[str, Any]], parse: Callable[[dict[str, Any]], T]
    ) -> list[T]:
        try:
            return [parse(item) for item in items]
        except (KeyError, TypeError, ValidationError) as e:
            raise ExternalServiceError(
                f"Unexpected {field} listing from Zendesk ({self._subdomain}): {e}",
                code="zendesk_error",
            ) from e

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, auth=self._auth, **kwargs)
        except httpx.RequestError as e:
            logger.warning("Zendesk request %s %s failed: %s", method, url, e)
            raise ExternalServiceError(
                f"Failed to connect to Zendesk ({self._subdomain}): {e}",
                code="zendesk_unavailable",
            ) from e

        if response.is_error:
            logger.warning(
                "Zendesk request %s %s failed: status=%d, body=%s",
                method,
                url,
                response.status_code,
                response.text,
            )
            raise ExternalServiceError(
                f"Zendesk API responded with {response.status_code} to {method} {url}",
                code="zendesk_error",
                status_code=response.status_code,
            )

        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return {}
        return response.json()


class HttpZendeskClientFactory(ZendeskClientFactory):
    """Builds per-account clients sharing one connection pool."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = DEFAULT_BASE_URL) -> None:
        self._client = client
        self._base_url = base_url

    def __call__(self, subdomain: str, email: str, token: str) -> ZendeskApi:
        return HttpZendeskApi(self._client, subdomain, email, token, base_url=self._base_url)
