"""ReconcileSource: drives one reconciliation pass for one source key."""

import logging

import logfire

from evsrc.domain.shared.error import ConfigurationError
from evsrc.domain.shared.port.event_recorder import EventRecorderFactory
from evsrc.domain.shared.service import Service
from evsrc.domain.source.model.source import SOURCE_FINALIZER, EventSource, SourceKey
from evsrc.domain.source.model.status import SourceStatusManager
from evsrc.domain.source.port.repository import SourceRepository
from evsrc.domain.source.reconciler.base import SourceReconciler
from evsrc.domain.source.reconciler.context import ReconcileContext
from evsrc.domain.source.reconciler.registry import SourceReconcilers

logger = logging.getLogger(__name__)


class ReconcileSource(Service):
    """Converges one source towards its spec, or finalizes it when deleted.

    Status is written back only when the pass changed it, and any error from
    the kind reconciler is raised after that write so the queue can retry.
    """

    repository: SourceRepository
    reconcilers: SourceReconcilers
    recorders: EventRecorderFactory

    async def handle(self, key: SourceKey) -> None:
        source = await self.repository.get(key)
        if source is None:
            logger.debug("Source %s no longer exists", key)
            return

        reconciler = self.reconcilers.get(key.kind)
        if reconciler is None:
            raise ConfigurationError(f"No reconciler registered for kind {key.kind}")

        with logfire.span("reconcile {key}", key=str(key)):
            if source.is_deleting:
                await self._finalize(source, reconciler)
                return

            if reconciler.finalizes and SOURCE_FINALIZER not in source.metadata.finalizers:
                source.metadata.finalizers.append(SOURCE_FINALIZER)
                source = await self.repository.update_finalizers(source)

            await self._reconcile(source, reconciler)

    def _context(self, source: EventSource, reconciler: SourceReconciler) -> ReconcileContext:
        return ReconcileContext(
            source=source,
            status=SourceStatusManager(source.status, reconciler.condition_set),
            events=self.recorders(str(source.key)),
        )

    async def _reconcile(self, source: EventSource, reconciler: SourceReconciler) -> None:
        original = source.status.model_copy(deep=True)
        ctx = self._context(source, reconciler)
        ctx.status.initialize_conditions()

        error: Exception | None = None
        try:
            await reconciler.reconcile_kind(ctx)
        except Exception as e:
            error = e

        source.status.observed_generation = source.metadata.generation
        if source.status != original:
            await self.repository.update_status(source)

        if error is not None:
            raise error
        logger.debug("Reconciled %s (ready=%s)", source.key, ctx.status.is_ready())

    async def _finalize(self, source: EventSource, reconciler: SourceReconciler) -> None:
        if SOURCE_FINALIZER not in source.metadata.finalizers:
            return

        await reconciler.finalize_kind(self._context(source, reconciler))

        source.metadata.finalizers.remove(SOURCE_FINALIZER)
        await self.repository.update_finalizers(source)
        logger.info("Finalized %s", source.key)
