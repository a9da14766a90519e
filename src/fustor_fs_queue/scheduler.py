"""
Cooperative I/O scheduler.

Callers issue stat/read/write requests; a single drain task processes
everything queued in passes of three ordered phases (stat, then write, then
read). Only one drain task exists per scheduler, so no two passes ever run
concurrently.

State machine:
    IDLE --wake--> RUNNING --queues empty--> IDLE (fires one completion waiter)
    RUNNING --new work / deferred reads--> RUNNING (next pass, after yielding)
    RUNNING --systemic fault--> BACKOFF_WAIT --backoff_delay_sec--> RUNNING
    any --close()--> CLOSED

Wake signals while RUNNING or BACKOFF_WAIT are no-ops; the active drain task
re-checks the queues before going idle.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from .backend import FileBackend, LocalFileBackend, NOT_FOUND
from .common.metrics import Metrics, get_metrics
from .common.paths import PathLike, to_path_key
from .exceptions import ReadRetriesExhaustedError, StateConflictError, SystemicBackendFault
from .models.config import SchedulerConfig, load_scheduler_config
from .models.states import SchedulerState
from .notifier import CompletionCallback, CompletionNotifier
from .registry import PendingRead, PendingStat, PendingWrite, RequestRegistry, capture_payload

logger = logging.getLogger("fustor_fs_queue.scheduler")


class IOScheduler:
    """
    Coalescing front end for a FileBackend.

    Usage:
        async with IOScheduler(LocalFileBackend()) as sched:
            data, meta = await asyncio.gather(sched.read("a.txt"), sched.stat("b.txt"))
            await sched.write("c.txt", data)
            await sched.await_all_settled()

    The request methods are synchronous and return futures. They must be
    called from inside the event loop the scheduler is bound to (the loop of
    the first request).
    """

    def __init__(
        self,
        backend: Optional[FileBackend] = None,
        config: Optional[SchedulerConfig] = None,
        metrics: Optional[Metrics] = None,
    ):
        self.config = config or SchedulerConfig()
        if backend is None:
            backend = LocalFileBackend(
                create_parents=self.config.create_parents,
                atomic_writes=self.config.atomic_writes,
            )
        self.backend = backend
        self._metrics = metrics
        self._registry = RequestRegistry()
        self._notifier = CompletionNotifier()
        self._state = SchedulerState.IDLE
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._pass_count = 0
        self._fault_count = 0
        # Set by wake signals while a drain task is active; cuts short the deferred-read delay.
        self._work_arrived = asyncio.Event()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def metrics(self) -> Metrics:
        return self._metrics or get_metrics()

    async def __aenter__(self) -> "IOScheduler":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # --- public operations ---

    def stat(self, path: PathLike) -> asyncio.Future:
        """
        Request metadata for path.

        Resolves with FileMetadata, or with NOT_FOUND on any backend stat
        error. Never rejects. Concurrent requests for the same path share
        one future and one backend call.

        The future is shared: cancelling it (including through
        asyncio.wait_for timing out) cancels it for every caller of that
        path. Use asyncio.shield() to bound the wait without doing so. The
        backend call still completes and the next stat() gets a fresh future.
        """
        key = self._prepare(path)
        future, created = self._registry.register_stat(key, self._loop)
        if created:
            self._wake()
        return future

    def read(self, path: PathLike) -> asyncio.Future:
        """
        Request the full contents of path.

        Concurrent requests for the same path share one future. A failed
        attempt is retried on a later pass; with the default config the
        future only ever resolves.

        The future is shared: cancelling it (including through
        asyncio.wait_for timing out) cancels it for every caller of that
        path. Use asyncio.shield() to bound the wait without doing so. The
        read keeps being attempted and the next read() gets a fresh future.
        """
        key = self._prepare(path)
        future, created = self._registry.register_read(key, self._loop)
        if created:
            self._wake()
        return future

    def write(self, path: PathLike, data: Any) -> asyncio.Future:
        """
        Queue one write of data to path.

        data is copied at call time. The future resolves to None on success
        and is rejected with the backend's exception on failure; there is no
        retry. Writes are never merged.
        """
        key = self._prepare(path)
        payload = capture_payload(data)
        pending = self._registry.register_write(key, payload, self._loop)
        self._wake()
        return pending.future

    def on_all_settled(self, callback: CompletionCallback) -> None:
        """Register a one-shot callback for the next quiescence not claimed by an earlier waiter."""
        self._check_open()
        self._notifier.add_callback(callback)

    def await_all_settled(self) -> asyncio.Future:
        """Future counterpart of on_all_settled(); resolves with the number of waiters still queued."""
        self._check_open()
        return self._notifier.get_completion_signal(self._bind_loop())

    add_callback = on_all_settled
    get_completion_signal = await_all_settled

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "pending": self._registry.pending_counts(),
            "outstanding_reads": len(self._registry.reads),
            "outstanding_stats": len(self._registry.stats),
            "waiters": len(self._notifier),
            "passes": self._pass_count,
            "faults": self._fault_count,
        }

    async def close(self):
        """Stop draining and cancel every outstanding future and waiter."""
        if self._state == SchedulerState.CLOSED:
            return
        self._state = SchedulerState.CLOSED

        task, self._drain_task = self._drain_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        cancelled = self._registry.cancel_all() + self._notifier.cancel_all()
        if cancelled:
            logger.warning(f"Scheduler closed with {cancelled} outstanding requests/waiters cancelled")
        await self.backend.close()
        logger.debug("Scheduler closed")

    # --- internals ---

    def _check_open(self):
        if self._state == SchedulerState.CLOSED:
            raise StateConflictError("Scheduler is closed")

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is None:
            self._loop = loop
        elif self._loop is not loop:
            raise StateConflictError("Scheduler is bound to a different event loop")
        return loop

    def _prepare(self, path: PathLike) -> str:
        self._check_open()
        key = to_path_key(path)
        self._bind_loop()
        return key

    def _wake(self):
        if self._state != SchedulerState.IDLE:
            self._work_arrived.set()
            return
        self._state = SchedulerState.RUNNING
        self._drain_task = self._loop.create_task(self._drain(), name="fs-queue-drain")

    async def _drain(self):
        registry = self._registry
        while True:
            try:
                await self._run_pass()
            except Exception as e:
                self._fault_count += 1
                self.metrics.counter("fs_queue.pass.fault")
                delay = self.config.backoff_delay_sec
                logger.error(f"Drain pass aborted, retrying in {delay}s: {e}", exc_info=True)
                self._state = SchedulerState.BACKOFF_WAIT
                await asyncio.sleep(delay)
                self._state = SchedulerState.RUNNING
                continue

            if registry.has_active_work():
                # Requests arrived mid-pass; yield before draining them.
                await asyncio.sleep(0)
                continue

            if registry.deferred_reads:
                if await self._wait_for_retry_round():
                    # New requests are drained now; deferred reads stay parked.
                    continue
                moved = registry.requeue_deferred()
                logger.debug(f"Retrying {moved} deferred read(s)")
                await asyncio.sleep(0)
                continue

            self._state = SchedulerState.IDLE
            self._drain_task = None
            logger.debug(f"Quiescent after {self._pass_count} passes")
            self._notifier.fire_one()
            return

    async def _wait_for_retry_round(self) -> bool:
        """Sleep read_retry_delay_sec unless new work arrives first. Returns True if it did."""
        delay = self.config.read_retry_delay_sec
        if delay <= 0:
            return False
        self._work_arrived.clear()
        try:
            await asyncio.wait_for(self._work_arrived.wait(), delay)
        except asyncio.TimeoutError:
            pass
        return self._registry.has_active_work()

    async def _run_pass(self):
        self._pass_count += 1
        self.metrics.counter("fs_queue.pass")
        registry = self._registry

        for pending in registry.stat_batch():
            await self._stat_one(pending)
        for pending in registry.write_batch():
            await self._write_one(pending)
        for pending in registry.read_batch():
            await self._read_one(pending)

        counts = registry.pending_counts()
        self.metrics.gauge("fs_queue.pending", sum(counts.values()))

    async def _stat_one(self, pending: PendingStat):
        try:
            result = await self.backend.stat(pending.path)
        except SystemicBackendFault:
            raise
        except Exception as e:
            logger.debug(f"stat {pending.path} -> NOT_FOUND ({e!r})")
            result = NOT_FOUND
        if result is None:
            result = NOT_FOUND
        self.metrics.counter("fs_queue.stat")
        self._registry.complete_stat(pending, result)

    async def _write_one(self, pending: PendingWrite):
        try:
            await self.backend.write(pending.path, pending.payload)
        except SystemicBackendFault:
            raise
        except Exception as e:
            logger.warning(f"Write to {pending.path} failed: {e}")
            self.metrics.counter("fs_queue.write.failed")
            self._registry.complete_write(pending, e)
            return
        self.metrics.counter("fs_queue.write")
        self._registry.complete_write(pending)

    async def _read_one(self, pending: PendingRead):
        try:
            data = await self.backend.read(pending.path)
        except SystemicBackendFault:
            raise
        except Exception as e:
            attempts = self._registry.defer_read(pending, e)
            cap = self.config.max_read_attempts
            if cap is not None and attempts >= cap:
                logger.warning(f"Giving up on read of {pending.path} after {attempts} attempts: {e}")
                self.metrics.counter("fs_queue.read.exhausted")
                self._registry.fail_read(pending, ReadRetriesExhaustedError(pending.path, attempts, e))
            else:
                logger.debug(f"Read of {pending.path} failed (attempt {attempts}), deferring: {e}")
                self.metrics.counter("fs_queue.read.deferred")
            return
        self.metrics.counter("fs_queue.read")
        self._registry.complete_read(pending, data)


def create_scheduler(
    config_path: Optional[PathLike] = None,
    backend: Optional[FileBackend] = None,
    metrics: Optional[Metrics] = None,
) -> IOScheduler:
    """Build a scheduler from the YAML config ($FUSTOR_HOME/fs-queue.yaml unless config_path is given)."""
    config = load_scheduler_config(config_path)
    return IOScheduler(backend=backend, config=config, metrics=metrics)
