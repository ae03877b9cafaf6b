"""ReconcileQueue: keyed work queue driving source reconciliation."""

import asyncio
import logging

from dishka import AsyncContainer

from evsrc.domain.shared.error import is_permanent
from evsrc.domain.source.handler.reconcile_source import ReconcileSource
from evsrc.domain.source.model.source import SourceKey
from evsrc.domain.source.port.repository import SourceRepository
from evsrc.util.di.scope import Scope

logger = logging.getLogger(__name__)


class ReconcileQueue:
    """Runs ReconcileSource for queued keys on a bounded set of workers.

    - A key waiting in the queue is queued only once.
    - A key is never processed by two workers at once. Enqueuing a key that
      is being processed schedules one more pass after the current one.
    - Failed keys are retried after ``backoff_base * 2**(n-1)`` seconds for
      the n-th consecutive failure, capped at ``backoff_max``. Permanent
      errors are logged and dropped until the next resync.
    - Every ``resync_interval`` seconds all stored keys are enqueued, and
      every ``poll_interval`` seconds the keys whose spec changed or whose
      deletion was requested. Neither cuts a pending retry short, except for
      a spec change.

    Each pass runs in its own UOW scope.

    Usage:
        queue = ReconcileQueue(container, concurrency=2)
        async with queue:
            await stop_event.wait()
    """

    def __init__(
        self,
        container: AsyncContainer | None = None,
        concurrency: int = 2,
        backoff_base: float = 0.5,
        backoff_max: float = 300.0,
        resync_interval: float = 600.0,
        poll_interval: float = 2.0,
    ) -> None:
        self._container = container
        self._concurrency = concurrency
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._resync_interval = resync_interval
        self._poll_interval = poll_interval

        self._queue: asyncio.Queue[SourceKey | None] = asyncio.Queue()
        self._queued: set[SourceKey] = set()
        self._in_flight: set[SourceKey] = set()
        self._dirty: set[SourceKey] = set()
        self._failures: dict[SourceKey, int] = {}
        self._retries: dict[SourceKey, asyncio.TimerHandle] = {}

        self._workers: list[asyncio.Task] = []
        self._resync_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._shutdown = False

        self.processed_count = 0
        self.failed_count = 0

    def set_container(self, container: AsyncContainer) -> None:
        """Set the DI container used to open a scope per pass."""
        self._container = container

    @property
    def pending(self) -> int:
        return len(self._queued)

    def failures(self, key: SourceKey) -> int:
        """Consecutive failures of ``key`` since its last successful pass."""
        return self._failures.get(key, 0)

    def retry_pending(self, key: SourceKey) -> bool:
        return key in self._retries

    def backoff(self, failures: int) -> float:
        return min(self._backoff_base * 2 ** (failures - 1), self._backoff_max)

    def enqueue(self, key: SourceKey) -> None:
        if self._shutdown:
            return

        retry = self._retries.pop(key, None)
        if retry is not None:
            retry.cancel()

        if key in self._in_flight:
            self._dirty.add(key)
            return
        if key in self._queued:
            return

        self._queued.add(key)
        self._queue.put_nowait(key)

    async def start(self) -> None:
        """Start the workers and the resync and poll tasks."""
        if self._container is None:
            raise RuntimeError("Container not set. Call set_container() first.")

        self._shutdown = False
        self._workers = [
            asyncio.create_task(self._run_worker(), name=f"reconcile-worker-{i}")
            for i in range(self._concurrency)
        ]
        if self._resync_interval > 0:
            self._resync_task = asyncio.create_task(self._run_resync(), name="resync")
        if self._poll_interval > 0:
            self._poll_task = asyncio.create_task(self._run_poll(), name="poll-changes")

        logger.info("ReconcileQueue started with %d workers", self._concurrency)

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop gracefully, letting in-flight passes finish within ``timeout``."""
        self._shutdown = True

        for handle in self._retries.values():
            handle.cancel()
        self._retries.clear()

        for task in (self._resync_task, self._poll_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        # One sentinel per worker, queued behind the remaining keys.
        for _ in self._workers:
            self._queue.put_nowait(None)

        tasks = [t for t in self._workers if not t.done()]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
        self._workers = []

        logger.info("ReconcileQueue stopped")

    async def join(self) -> None:
        """Wait until every queued key has been processed once."""
        await self._queue.join()

    async def resync(self) -> int:
        """Enqueue every stored source not waiting for a retry. Returns the number of keys."""
        async with self._container(scope=Scope.UOW) as scope:  # type: ignore[misc]
            repo = await scope.get(SourceRepository)
            keys = await repo.list_keys()
        keys = [k for k in keys if not self.retry_pending(k)]
        for key in keys:
            self.enqueue(key)
        return len(keys)

    async def poll_changes(self) -> int:
        """Enqueue sources whose latest spec or deletion was not handled yet."""
        async with self._container(scope=Scope.UOW) as scope:  # type: ignore[misc]
            repo = await scope.get(SourceRepository)
            sources = await repo.list_sources()
        changed = [
            s.key
            for s in sources
            if s.status.observed_generation != s.metadata.generation
            or (s.is_deleting and not self.retry_pending(s.key))
        ]
        for key in changed:
            self.enqueue(key)
        return len(changed)

    async def _run_worker(self) -> None:
        while True:
            key = await self._queue.get()
            try:
                if key is None:
                    return
                self._queued.discard(key)
                self._in_flight.add(key)
                try:
                    await self._process(key)
                finally:
                    self._in_flight.discard(key)
                    if key in self._dirty:
                        self._dirty.discard(key)
                        self.enqueue(key)
            finally:
                self._queue.task_done()

    async def _process(self, key: SourceKey) -> None:
        try:
            async with self._container(scope=Scope.UOW) as scope:  # type: ignore[misc]
                handler = await scope.get(ReconcileSource)
                await handler.handle(key)
        except (asyncio.CancelledError, SystemExit, KeyboardInterrupt):
            raise
        except Exception as e:
            self.failed_count += 1
            if is_permanent(e):
                self._failures.pop(key, None)
                logger.error("Reconcile of %s failed permanently, not retrying: %s", key, e)
                return

            failures = self._failures.get(key, 0) + 1
            self._failures[key] = failures
            delay = self.backoff(failures)
            logger.warning(
                "Reconcile of %s failed (failures: %d), retrying in %.1fs: %s",
                key,
                failures,
                delay,
                e,
            )
            self._schedule_retry(key, delay)
            return

        self._failures.pop(key, None)
        self.processed_count += 1

    def _schedule_retry(self, key: SourceKey, delay: float) -> None:
        if self._shutdown:
            return
        loop = asyncio.get_running_loop()
        self._retries[key] = loop.call_later(delay, self._retry, key)

    def _retry(self, key: SourceKey) -> None:
        self._retries.pop(key, None)
        self.enqueue(key)

    async def _run_resync(self) -> None:
        """Resync right away, then periodically."""
        while not self._shutdown:
            try:
                count = await self.resync()
                logger.debug("Resync enqueued %d sources", count)
                await asyncio.sleep(self._resync_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Resync failed: {e}")
                await asyncio.sleep(self._resync_interval)

    async def _run_poll(self) -> None:
        while not self._shutdown:
            try:
                await asyncio.sleep(self._poll_interval)
                count = await self.poll_changes()
                if count:
                    logger.debug("Enqueued %d changed sources", count)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Polling for changed sources failed: {e}")

    async def __aenter__(self) -> "ReconcileQueue":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.stop()
