"""Registration of the adapter's webhook URL with Zendesk.

A Zendesk "Target" points at the adapter URL, and a "Trigger" fires it when a
ticket is created. Both carry the same title derived from the source, which
is how later passes find them again. Every step first looks for the existing
object, so an interrupted pass is resumed rather than repeated.
"""

import logging
from typing import TypeVar, cast

import logfire

from evsrc.domain.shared.error import (
    EvsrcError,
    NotFoundError,
    PermanentError,
    is_conflict,
    is_denied,
)
from evsrc.domain.shared.service import Service
from evsrc.domain.source.model.source import ZendeskSource
from evsrc.domain.source.model.zendesk import (
    REASON_CREDENTIAL_ERROR,
    REASON_FAILED_SYNC,
    REASON_FAILED_TARGET_CREATE,
    REASON_FAILED_TARGET_DELETE,
    REASON_NO_URL,
    REASON_TARGET_CREATED,
    REASON_TARGET_DELETED,
    REASON_TRIGGER_CREATED,
    REASON_TRIGGER_DELETED,
    ZendeskTarget,
    ZendeskTrigger,
    desired_target,
    desired_trigger,
    target_title,
)
from evsrc.domain.source.port.zendesk import ZendeskApi, ZendeskClientFactory
from evsrc.domain.source.reconciler.context import ReconcileContext
from evsrc.domain.source.service.adapter import AdapterReconciler
from evsrc.domain.source.service.secret import SecretResolver

logger = logging.getLogger(__name__)


T = TypeVar("T", ZendeskTarget, ZendeskTrigger)


def _by_title(items: list[T], title: str) -> T | None:
    for item in items:
        if item.title == title:
            return item
    return None


class ZendeskSynchronizer(Service):
    adapters: AdapterReconciler
    secrets: SecretResolver
    zendesk: ZendeskClientFactory

    async def ensure(self, ctx: ReconcileContext) -> None:
        """Make sure a Target and a Trigger exist for the adapter's public URL."""
        source = cast(ZendeskSource, ctx.source)

        try:
            adapter = await self.adapters.find_adapter(source)
        except NotFoundError:
            ctx.status.mark_target_sync_unknown(
                REASON_NO_URL, "The receive adapter does not exist yet"
            )
            return
        except EvsrcError as e:
            ctx.status.mark_target_sync_unknown(
                REASON_NO_URL, f"Unable to look up the receive adapter: {e}"
            )
            raise

        url = adapter.status.url
        if not adapter.status.ready or not url:
            ctx.status.mark_target_sync_unknown(
                REASON_NO_URL, "The receive adapter did not report its public URL yet"
            )
            return

        try:
            token = await self.secrets.resolve(source.namespace, source.spec.token)
            password = await self.secrets.resolve(source.namespace, source.spec.webhook_password)
        except EvsrcError as e:
            ctx.status.mark_target_not_synced(
                REASON_CREDENTIAL_ERROR, f"Unable to obtain Zendesk credentials: {e}"
            )
            raise

        title = target_title(source)
        client = self.zendesk(source.spec.subdomain, source.spec.email, token)

        with logfire.span("zendesk ensure {title}", title=title):
            target = await self._ensure_target(
                ctx, client, desired_target(title, url, source.spec.webhook_username, password)
            )
            await self._ensure_trigger(ctx, client, title, target)

        ctx.status.mark_target_synced()

    async def _ensure_target(
        self, ctx: ReconcileContext, client: ZendeskApi, desired: ZendeskTarget
    ) -> ZendeskTarget:
        existing = _by_title(await self._list_targets(ctx, client), desired.title)
        if existing is not None:
            return existing

        try:
            created = await client.create_target(desired)
        except EvsrcError as e:
            if not is_conflict(e):
                ctx.events.warn(
                    REASON_FAILED_TARGET_CREATE,
                    f'Failed to create Zendesk Target "{desired.title}": {e}',
                )
                raise self._sync_failed(ctx, "Unable to create Target", e)

            # Another pass registered it between our list and create.
            existing = _by_title(await self._list_targets(ctx, client), desired.title)
            if existing is None:
                raise self._sync_failed(ctx, "Unable to create Target", e)
            return existing

        ctx.events.normal(REASON_TARGET_CREATED, f'Zendesk Target "{desired.title}" was created')
        logger.info("Created Zendesk target %s (id=%s)", desired.title, created.id)
        return created

    async def _ensure_trigger(
        self, ctx: ReconcileContext, client: ZendeskApi, title: str, target: ZendeskTarget
    ) -> None:
        if _by_title(await self._list_triggers(ctx, client), title) is not None:
            return

        if target.id is None:
            raise self._sync_failed(
                ctx,
                "Unable to create Trigger",
                EvsrcError(f'Zendesk Target "{title}" has no id'),
            )

        try:
            created = await client.create_trigger(desired_trigger(title, target.id))
        except EvsrcError as e:
            if is_conflict(e) and _by_title(await self._list_triggers(ctx, client), title):
                return
            ctx.events.warn(
                REASON_FAILED_TARGET_CREATE, f'Failed to create Zendesk Trigger "{title}": {e}'
            )
            raise self._sync_failed(ctx, "Unable to create Trigger", e)

        ctx.events.normal(REASON_TRIGGER_CREATED, f'Zendesk Trigger "{title}" was created')
        logger.info("Created Zendesk trigger %s (id=%s)", title, created.id)

    async def _list_targets(self, ctx: ReconcileContext, client: ZendeskApi) -> list[ZendeskTarget]:
        try:
            return await client.list_targets()
        except EvsrcError as e:
            raise self._sync_failed(ctx, "Unable to list Targets", e)

    async def _list_triggers(
        self, ctx: ReconcileContext, client: ZendeskApi
    ) -> list[ZendeskTrigger]:
        try:
            return await client.list_triggers()
        except EvsrcError as e:
            raise self._sync_failed(ctx, "Unable to list Triggers", e)

    def _sync_failed(self, ctx: ReconcileContext, step: str, error: EvsrcError) -> EvsrcError:
        """Record a failed step on TargetSynced and classify the error for retry."""
        ctx.status.mark_target_not_synced(REASON_FAILED_SYNC, f"{step}: {error}")
        if is_denied(error):
            return PermanentError(error)
        return error

    async def teardown(self, ctx: ReconcileContext) -> None:
        """Remove the Trigger, then the Target registered for a deleted source.

        Missing credentials or rejected credentials waive the cleanup: nothing
        we can do would remove the objects, and blocking deletion forever helps
        nobody. Other failures are raised so that deletion is retried.
        """
        source = cast(ZendeskSource, ctx.source)
        title = target_title(source)

        try:
            token = await self.secrets.resolve(source.namespace, source.spec.token)
        except NotFoundError as e:
            ctx.events.warn(
                REASON_FAILED_TARGET_DELETE,
                f'Secret missing while finalizing Zendesk Target "{title}". Ignoring: {e}',
            )
            return

        client = self.zendesk(source.spec.subdomain, source.spec.email, token)

        with logfire.span("zendesk teardown {title}", title=title):
            if not await self._delete_trigger(ctx, client, title):
                return
            await self._delete_target(ctx, client, title)

    async def _delete_trigger(self, ctx: ReconcileContext, client: ZendeskApi, title: str) -> bool:
        try:
            trigger = _by_title(await client.list_triggers(), title)
            if trigger is None or trigger.id is None:
                return True
            await client.delete_trigger(trigger.id)
        except EvsrcError as e:
            return self._teardown_failed(ctx, f'Error finalizing Zendesk Trigger "{title}"', e)

        ctx.events.normal(REASON_TRIGGER_DELETED, f'Zendesk Trigger "{title}" was deleted')
        logger.info("Deleted Zendesk trigger %s (id=%s)", title, trigger.id)
        return True

    async def _delete_target(self, ctx: ReconcileContext, client: ZendeskApi, title: str) -> bool:
        try:
            target = _by_title(await client.list_targets(), title)
            if target is None or target.id is None:
                return True
            await client.delete_target(target.id)
        except EvsrcError as e:
            return self._teardown_failed(ctx, f'Error finalizing Zendesk Target "{title}"', e)

        ctx.events.normal(REASON_TARGET_DELETED, f'Zendesk Target "{title}" was deleted')
        logger.info("Deleted Zendesk target %s (id=%s)", title, target.id)
        return True

    def _teardown_failed(self, ctx: ReconcileContext, message: str, error: EvsrcError) -> bool:
        """Returns False when the failure waives the rest of the cleanup, raises otherwise."""
        if is_denied(error):
            ctx.events.warn(
                REASON_FAILED_TARGET_DELETE, f"{message}, authorization denied. Ignoring: {error}"
            )
            return False
        ctx.events.warn(REASON_FAILED_TARGET_DELETE, f"{message}: {error}")
        raise error
