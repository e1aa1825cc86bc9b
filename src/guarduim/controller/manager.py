"""
guarduim.controller.manager

Controller runtime: worker pool, watch pump, and periodic resync.

Responsibilities:
- Feed identity keys into the WorkQueue from store watch events and a resync timer.
- Run N workers that drain the queue and call `Reconciler.reconcile`.
- Re-queue failures with per-key backoff and successes after `requeue_after`.
- Route DELETED events through the same queue when deletion cleanup is enabled.
"""

from __future__ import annotations

import asyncio
import contextlib

from guarduim.controller.namespace import NamespaceResolver
from guarduim.controller.queue import QueueShutDown, WorkQueue
from guarduim.controller.reconciler import Reconciler
from guarduim.domain.models import MonitoredIdentity, ObjectKey
from guarduim.errors import GuarduimError
from guarduim.observability.context import reconcile_scope
from guarduim.observability.logging import get_logger
from guarduim.store.base import IdentityStore, WatchEventKind

log = get_logger(__name__)


class Controller:
    def __init__(
        self,
        *,
        reconciler: Reconciler,
        store: IdentityStore,
        queue: WorkQueue | None = None,
        namespaces: NamespaceResolver | None = None,
        workers: int = 4,
        resync_interval: float = 60.0,
        cleanup_on_delete: bool = False,
    ) -> None:
        self._reconciler = reconciler
        self._store = store
        self.queue = queue or WorkQueue()
        self._namespaces = namespaces
        self._workers = workers
        self._resync_interval = resync_interval
        self._cleanup_on_delete = cleanup_on_delete

        # Last known record for keys deleted while cleanup is pending.
        self._tombstones: dict[ObjectKey, MonitoredIdentity] = {}
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def enqueue(self, key: ObjectKey) -> None:
        self.queue.add(key)

    async def start(self) -> None:
        if self._tasks:
            return
        # Subscribe before the first resync so no write in between is missed.
        events = self._store.watch()
        self._tasks.append(asyncio.create_task(self._watch_loop(events), name="guarduim-watch"))
        self._tasks.append(asyncio.create_task(self._resync_loop(), name="guarduim-resync"))
        for i in range(self._workers):
            self._tasks.append(asyncio.create_task(self._worker(i), name=f"guarduim-worker-{i}"))
        log.info("controller_started", workers=self._workers)

    async def stop(self) -> None:
        if not self._tasks:
            return
        self.queue.shut_down()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        log.info("controller_stopped")

    async def resync(self) -> int:
        namespace = await self._namespaces.resolve() if self._namespaces is not None else None
        identities = await self._store.list_identities(namespace)
        for identity in identities:
            self.queue.add(identity.key)
        return len(identities)

    async def _watch_loop(self, events) -> None:
        async for event in events:
            if event.kind == WatchEventKind.deleted:
                if not self._cleanup_on_delete:
                    continue
                self._tombstones[event.key] = event.identity
            self.queue.add(event.key)

    async def _resync_loop(self) -> None:
        while True:
            try:
                count = await self.resync()
                log.debug("resync_enqueued", count=count)
            except GuarduimError as e:
                log.warning("resync_failed", error=str(e))
            except Exception:
                log.exception("resync_crashed")
            await asyncio.sleep(self._resync_interval)

    async def _worker(self, index: int) -> None:
        while True:
            try:
                key = await self.queue.get()
            except QueueShutDown:
                return
            try:
                with reconcile_scope(key, worker=index):
                    await self._process(key)
            finally:
                self.queue.done(key)

    async def _process(self, key: ObjectKey) -> None:
        try:
            tombstone = self._tombstones.pop(key, None)
            if tombstone is not None:
                try:
                    await self._reconciler.finalize(tombstone)
                except BaseException:
                    self._tombstones.setdefault(key, tombstone)
                    raise
            result = await self._reconciler.reconcile(key)
        except asyncio.CancelledError:
            raise
        except GuarduimError as e:
            if not e.retryable:
                log.error("reconcile_failed_permanently", error=str(e), error_type=type(e).__name__)
                self.queue.forget(key)
                return
            delay = self.queue.add_rate_limited(key)
            log.warning(
                "reconcile_failed",
                error=str(e),
                error_type=type(e).__name__,
                retry_in=delay,
                attempts=self.queue.num_requeues(key),
            )
            return
        except Exception:
            delay = self.queue.add_rate_limited(key)
            log.exception("reconcile_crashed", retry_in=delay)
            return

        self.queue.forget(key)
        if result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)


# --- Module Notes -----------------------------------------------------------
# A non-retryable error (malformed record) is not re-queued with backoff; the next
# watch event for that key (an operator fixing it) or the resync picks it up again.
