from evsrc.domain.source.model.source import SourceKind, ZendeskSource
from evsrc.domain.source.model.workload import EnvVar
from evsrc.domain.source.model.zendesk import ZENDESK_SOURCE_CONDITIONS
from evsrc.domain.source.reconciler.base import SourceReconciler
from evsrc.domain.source.reconciler.context import ReconcileContext
from evsrc.domain.source.reconciler.resources import AdapterSettings, secret_env
from evsrc.domain.source.service.adapter import AdapterReconciler
from evsrc.domain.source.service.zendesk import ZendeskSynchronizer

ADAPTER_NAME = "zendesksource"


class ZendeskSourceReconciler(SourceReconciler[ZendeskSource]):
    """Runs a Service adapter and registers its URL as a Zendesk webhook."""

    kind = SourceKind.ZENDESK

    def __init__(
        self,
        adapters: AdapterReconciler,
        settings: AdapterSettings,
        sync: ZendeskSynchronizer,
    ) -> None:
        super().__init__(adapters, settings, ZENDESK_SOURCE_CONDITIONS)
        self.sync = sync

    def app_env(self, source: ZendeskSource) -> list[EnvVar]:
        spec = source.spec
        return [
            EnvVar(name="ZENDESK_WEBHOOK_USERNAME", value=spec.webhook_username),
            *secret_env("ZENDESK_WEBHOOK_PASSWORD", spec.webhook_password),
            EnvVar(name="ZENDESK_SUBDOMAIN", value=spec.subdomain),
        ]

    async def reconcile_kind(self, ctx: ReconcileContext) -> None:
        await super().reconcile_kind(ctx)
        await self.sync.ensure(ctx)

    async def finalize_kind(self, ctx: ReconcileContext) -> None:
        # The webhook goes first; it points at the adapter.
        await self.sync.teardown(ctx)
        await super().finalize_kind(ctx)
