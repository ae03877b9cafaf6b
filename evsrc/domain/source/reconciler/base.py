"""Per-kind reconcilers plugged into the source controller."""

from typing import Generic, TypeVar, cast

from evsrc.domain.shared.model.condition import ConditionSet
from evsrc.domain.source.model.source import EventSource, SourceKind
from evsrc.domain.source.model.status import EVENT_SOURCE_CONDITIONS
from evsrc.domain.source.model.workload import AdapterWorkload, EnvVar
from evsrc.domain.source.reconciler.context import ReconcileContext
from evsrc.domain.source.reconciler.resources import AdapterSettings, make_adapter
from evsrc.domain.source.service.adapter import AdapterReconciler

S = TypeVar("S", bound=EventSource)


class SourceReconciler(Generic[S]):
    """Reconciles the sources of one kind.

    Subclasses name their kind and describe their adapter's app env. The
    condition set is owned by the instance and is read-only after
    construction.
    """

    kind: SourceKind

    def __init__(
        self,
        adapters: AdapterReconciler,
        settings: AdapterSettings,
        condition_set: ConditionSet = EVENT_SOURCE_CONDITIONS,
    ) -> None:
        self.adapters = adapters
        self.settings = settings
        self.condition_set = condition_set

    @property
    def finalizes(self) -> bool:
        """Whether deleting a source of this kind needs cleanup by the controller.

        Every kind runs an adapter that has to be removed with its source.
        """
        return True

    def app_env(self, source: S) -> list[EnvVar]:
        return []

    def build_adapter(self, source: EventSource, sink_uri: str | None) -> AdapterWorkload:
        return make_adapter(
            self.adapters.kind,
            source,
            self.adapters.adapter_name,
            self.settings,
            # The registry only routes sources of ``self.kind`` here.
            self.app_env(cast(S, source)),
            sink_uri,
        )

    async def reconcile_kind(self, ctx: ReconcileContext) -> None:
        await self.adapters.reconcile_source(
            ctx, lambda sink_uri: self.build_adapter(ctx.source, sink_uri)
        )

    async def finalize_kind(self, ctx: ReconcileContext) -> None:
        await self.adapters.delete_adapter(ctx)
