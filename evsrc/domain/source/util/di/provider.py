from dishka import provide

from evsrc.config import Config
from evsrc.domain.source.handler.reconcile_source import ReconcileSource
from evsrc.domain.source.model.source import SourceKind
from evsrc.domain.source.model.workload import WorkloadKind
from evsrc.domain.source.port.secret import SecretStore
from evsrc.domain.source.port.sink import SinkResolver
from evsrc.domain.source.port.workload import WorkloadClient
from evsrc.domain.source.port.zendesk import ZendeskClientFactory
from evsrc.domain.source.reconciler import http, slack, zendesk
from evsrc.domain.source.reconciler.registry import SourceReconcilers
from evsrc.domain.source.reconciler.resources import AdapterSettings
from evsrc.domain.source.service.adapter import AdapterReconciler
from evsrc.domain.source.service.secret import SecretResolver
from evsrc.domain.source.service.zendesk import ZendeskSynchronizer
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope


def adapter_settings(config: Config, kind: SourceKind) -> AdapterSettings:
    obs = config.observability
    return AdapterSettings(
        image=config.adapters.image_for(kind),
        logging_config=obs.logging_config,
        metrics_config=obs.metrics_config,
        tracing_config=obs.tracing_config,
    )


class SourceProvider(Provider):
    handler = provide(ReconcileSource, scope=Scope.UOW)

    @provide(scope=Scope.APP)
    def get_secret_resolver(self, store: SecretStore) -> SecretResolver:
        return SecretResolver(secrets=store)

    @provide(scope=Scope.APP)
    def get_reconcilers(
        self,
        config: Config,
        workloads: WorkloadClient,
        sinks: SinkResolver,
        secrets: SecretResolver,
        zendesk_clients: ZendeskClientFactory,
    ) -> SourceReconcilers:
        def adapters(name: str, kind: WorkloadKind) -> AdapterReconciler:
            return AdapterReconciler(
                adapter_name=name, kind=kind, workloads=workloads, sinks=sinks
            )

        zendesk_adapters = adapters(zendesk.ADAPTER_NAME, WorkloadKind.SERVICE)
        reconcilers = [
            http.HttpSourceReconciler(
                adapters(http.ADAPTER_NAME, WorkloadKind.SERVICE),
                adapter_settings(config, SourceKind.HTTP),
            ),
            zendesk.ZendeskSourceReconciler(
                zendesk_adapters,
                adapter_settings(config, SourceKind.ZENDESK),
                ZendeskSynchronizer(
                    adapters=zendesk_adapters, secrets=secrets, zendesk=zendesk_clients
                ),
            ),
            slack.SlackSourceReconciler(
                adapters(slack.ADAPTER_NAME, WorkloadKind.DEPLOYMENT),
                adapter_settings(config, SourceKind.SLACK),
            ),
        ]
        return SourceReconcilers({r.kind: r for r in reconcilers})
