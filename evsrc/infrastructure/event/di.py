"""Dependency injection provider for events and the reconcile queue."""

import logging

from dishka import AsyncContainer, provide

from evsrc.config import Config
from evsrc.domain.shared.port.event_recorder import EventRecorderFactory
from evsrc.infrastructure.event.recorder import LoggingEventRecorderFactory
from evsrc.infrastructure.event.worker import ReconcileQueue
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope

logger = logging.getLogger(__name__)


class EventProvider(Provider):
    @provide(scope=Scope.APP)
    def get_recorder_factory(self) -> EventRecorderFactory:
        return LoggingEventRecorderFactory()

    @provide(scope=Scope.APP)
    def get_reconcile_queue(self, container: AsyncContainer, config: Config) -> ReconcileQueue:
        worker = config.worker
        queue = ReconcileQueue(
            container=container,
            concurrency=worker.concurrency,
            backoff_base=worker.backoff_base,
            backoff_max=worker.backoff_max,
            resync_interval=worker.resync_interval,
            poll_interval=worker.poll_interval,
        )
        logger.info("ReconcileQueue created with concurrency %d", worker.concurrency)
        return queue
