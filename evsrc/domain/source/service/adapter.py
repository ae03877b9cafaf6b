"""Generic reconciliation of a source's receive adapter."""

import logging
from typing import Callable

from evsrc.domain.shared.error import (
    ConflictError,
    EvsrcError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
)
from evsrc.domain.shared.service import Service
from evsrc.domain.source.model.source import EventSource
from evsrc.domain.source.model.status import (
    CONDITION_DEPLOYED,
    REASON_DEPLOYING,
    REASON_UNAVAILABLE,
)
from evsrc.domain.source.model.workload import AdapterWorkload, WorkloadKind, child_name
from evsrc.domain.source.port.sink import SinkResolver
from evsrc.domain.source.port.workload import WorkloadClient
from evsrc.domain.source.reconciler.context import ReconcileContext

logger = logging.getLogger(__name__)

REASON_ADAPTER_CREATE = "AdapterCreated"
REASON_ADAPTER_UPDATE = "AdapterUpdated"
REASON_ADAPTER_DELETE = "AdapterDeleted"
REASON_FAILED_ADAPTER_CREATE = "FailedAdapterCreate"
REASON_FAILED_ADAPTER_UPDATE = "FailedAdapterUpdate"
REASON_FAILED_ADAPTER_DELETE = "FailedAdapterDelete"
REASON_BAD_SINK_URI = "BadSinkURI"
REASON_NOT_OWNED = "AdapterNotOwned"

# Builds the desired adapter from the resolved sink URI.
AdapterBuilder = Callable[[str | None], AdapterWorkload]


class AdapterReconciler(Service):
    """Keeps exactly one receive adapter per source in its desired state.

    The adapter is found by a name derived from the source name, so no index
    of owned objects is needed. Only controller-owned fields are compared,
    which keeps other writers (autoscalers setting annotations) from causing
    update loops.
    """

    adapter_name: str
    kind: WorkloadKind
    workloads: WorkloadClient
    sinks: SinkResolver

    def adapter_name_for(self, source: EventSource) -> str:
        return child_name(f"{self.adapter_name}-", source.name)

    async def find_adapter(self, source: EventSource) -> AdapterWorkload:
        """Read-only lookup of the source's adapter.

        Raises:
            NotFoundError: If the adapter does not exist (yet).
        """
        return await self.workloads.get(source.namespace, self.adapter_name_for(source))

    async def reconcile_source(self, ctx: ReconcileContext, build: AdapterBuilder) -> None:
        source = ctx.source
        source.status.ce_attributes = source.cloud_event_attributes()

        await self._resolve_sink(ctx)
        await self._reconcile_adapter(ctx, build(source.status.sink_uri))

    async def _resolve_sink(self, ctx: ReconcileContext) -> None:
        source = ctx.source
        try:
            uri = await self.sinks.resolve(source.spec.sink, source.namespace)
        except EvsrcError as e:
            ctx.status.mark_no_sink(str(e))
            ctx.events.warn(REASON_BAD_SINK_URI, f"Could not resolve sink URI: {e}")
            raise
        ctx.status.mark_sink(uri)

    async def _reconcile_adapter(self, ctx: ReconcileContext, desired: AdapterWorkload) -> None:
        try:
            current: AdapterWorkload | None = await self.workloads.get(
                desired.namespace, desired.name
            )
        except NotFoundError:
            current = None
        except EvsrcError as e:
            ctx.status.mark_deployment_unknown(
                REASON_UNAVAILABLE,
                f'Failed to look up adapter {self.kind} "{desired.name}": {e}',
            )
            raise

        if current is None:
            # Availability is only trusted once a later pass observes the adapter.
            created = await self._create_adapter(ctx, desired)
            ctx.status.mark_deployment_unknown(
                REASON_DEPLOYING, f'The adapter {self.kind} "{created.name}" was just created'
            )
            return

        current = await self._update_adapter(ctx, current, desired)
        ctx.status.propagate_availability(self.kind, current)

    async def delete_adapter(self, ctx: ReconcileContext) -> None:
        """Remove the adapter of a deleted source.

        An adapter that is gone already or belongs to someone else is left
        alone.
        """
        source = ctx.source
        name = self.adapter_name_for(source)
        try:
            current = await self.workloads.get(source.namespace, name)
        except (NotFoundError, ConflictError):
            # Gone, or a container we never managed.
            return

        if not current.is_controlled_by(source.owner_reference()):
            logger.info("Leaving adapter %s/%s owned by someone else", source.namespace, name)
            return

        try:
            await self.workloads.delete(source.namespace, name)
        except EvsrcError as e:
            msg = f'Failed to delete adapter {self.kind} "{name}": {e}'
            ctx.events.warn(REASON_FAILED_ADAPTER_DELETE, msg)
            raise

        ctx.events.normal(REASON_ADAPTER_DELETE, f'Deleted adapter {self.kind} "{name}"')
        logger.info("Deleted adapter %s %s/%s", self.kind, source.namespace, name)

    async def _create_adapter(
        self, ctx: ReconcileContext, desired: AdapterWorkload
    ) -> AdapterWorkload:
        try:
            created = await self.workloads.create(desired)
        except EvsrcError as e:
            msg = f'Failed to create adapter {self.kind} "{desired.name}": {e}'
            ctx.status.mark_deployment_unknown(REASON_UNAVAILABLE, msg)
            ctx.events.warn(REASON_FAILED_ADAPTER_CREATE, msg)
            raise ExternalServiceError(msg) from e

        ctx.events.normal(REASON_ADAPTER_CREATE, f'Created adapter {self.kind} "{desired.name}"')
        logger.info("Created adapter %s %s/%s", self.kind, desired.namespace, desired.name)
        return created

    async def _update_adapter(
        self, ctx: ReconcileContext, current: AdapterWorkload, desired: AdapterWorkload
    ) -> AdapterWorkload:
        owner = ctx.source.owner_reference()
        if not current.is_controlled_by(owner):
            msg = f'Adapter {self.kind} "{current.name}" is not owned by {owner.kind} "{owner.name}"'
            ctx.status.conditions.mark_false(CONDITION_DEPLOYED, REASON_NOT_OWNED, msg)
            raise InvalidStateError(msg)

        if not current.differs_from(desired):
            return current

        try:
            updated = await self.workloads.update(current.with_desired(desired))
        except EvsrcError as e:
            msg = f'Failed to update adapter {self.kind} "{desired.name}": {e}'
            ctx.events.warn(REASON_FAILED_ADAPTER_UPDATE, msg)
            ctx.status.propagate_availability(self.kind, current)
            raise ExternalServiceError(msg) from e

        ctx.events.normal(REASON_ADAPTER_UPDATE, f'Updated adapter {self.kind} "{desired.name}"')
        logger.info("Updated adapter %s %s/%s", self.kind, desired.namespace, desired.name)
        return updated
