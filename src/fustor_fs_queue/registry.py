"""
Request registry and pending queues.

Stat and read requests are deduplicated per path key: while one is
outstanding, further requests for the same key share its future. Writes are
never deduplicated; each call is its own queue entry.

Queues are insertion-ordered dicts used as sets. Only the drain loop removes
entries or settles futures; the public entry points only add.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .backend import Payload
from .exceptions import ValidationError
from .models.states import RequestKind

logger = logging.getLogger("fustor_fs_queue.registry")


def capture_payload(data: Any) -> Payload:
    """Copy write data so later mutation of the caller's buffer has no effect."""
    if isinstance(data, str):
        return data
    if type(data) is bytes:
        return data
    try:
        return memoryview(data).tobytes()
    except (TypeError, ValueError):
        raise ValidationError(
            f"write() expects str or a bytes-like object, got {type(data).__name__}"
        )


def settle(future: asyncio.Future, result: Any = None, error: Optional[BaseException] = None) -> bool:
    """Resolve or reject a future unless it is already done. Returns True if it was settled here."""
    if future.done():
        return False
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
    return True


@dataclass(eq=False)
class PendingStat:
    path: str
    future: asyncio.Future


@dataclass(eq=False)
class PendingRead:
    path: str
    future: asyncio.Future
    attempts: int = 0
    last_error: Optional[BaseException] = None


@dataclass(eq=False)
class PendingWrite:
    path: str
    payload: Payload
    future: asyncio.Future


@dataclass
class RequestRegistry:
    stats: Dict[str, PendingStat] = field(default_factory=dict)
    reads: Dict[str, PendingRead] = field(default_factory=dict)
    stat_queue: Dict[str, None] = field(default_factory=dict)
    write_queue: Dict[PendingWrite, None] = field(default_factory=dict)
    read_queue: Dict[str, None] = field(default_factory=dict)
    deferred_reads: Dict[str, None] = field(default_factory=dict)

    # --- registration (entry points) ---

    def register_stat(self, path: str, loop: asyncio.AbstractEventLoop) -> Tuple[asyncio.Future, bool]:
        pending = self.stats.get(path)
        if pending is not None:
            if pending.future.cancelled():
                pending.future = loop.create_future()
            return pending.future, False
        pending = PendingStat(path, loop.create_future())
        self.stats[path] = pending
        self.stat_queue[path] = None
        return pending.future, True

    def register_read(self, path: str, loop: asyncio.AbstractEventLoop) -> Tuple[asyncio.Future, bool]:
        pending = self.reads.get(path)
        if pending is not None:
            if pending.future.cancelled():
                pending.future = loop.create_future()
            return pending.future, False
        pending = PendingRead(path, loop.create_future())
        self.reads[path] = pending
        self.read_queue[path] = None
        return pending.future, True

    def register_write(self, path: str, payload: Payload, loop: asyncio.AbstractEventLoop) -> PendingWrite:
        pending = PendingWrite(path, payload, loop.create_future())
        self.write_queue[pending] = None
        return pending

    # --- phase snapshots ---

    def stat_batch(self) -> List[PendingStat]:
        return [self.stats[path] for path in self.stat_queue]

    def write_batch(self) -> List[PendingWrite]:
        return list(self.write_queue)

    def read_batch(self) -> List[PendingRead]:
        return [self.reads[path] for path in self.read_queue]

    # --- completion (drain loop only) ---

    def complete_stat(self, pending: PendingStat, result: Any):
        self.stat_queue.pop(pending.path, None)
        if self.stats.get(pending.path) is pending:
            del self.stats[pending.path]
        settle(pending.future, result)

    def complete_write(self, pending: PendingWrite, error: Optional[BaseException] = None):
        self.write_queue.pop(pending, None)
        settle(pending.future, error=error)

    def complete_read(self, pending: PendingRead, data: bytes):
        self.read_queue.pop(pending.path, None)
        self.deferred_reads.pop(pending.path, None)
        if self.reads.get(pending.path) is pending:
            del self.reads[pending.path]
        settle(pending.future, data)

    def defer_read(self, pending: PendingRead, error: BaseException) -> int:
        """Park a failed read for a later round. The registry entry stays so the original future still resolves."""
        pending.attempts += 1
        pending.last_error = error
        self.read_queue.pop(pending.path, None)
        self.deferred_reads[pending.path] = None
        return pending.attempts

    def fail_read(self, pending: PendingRead, error: BaseException):
        self.read_queue.pop(pending.path, None)
        self.deferred_reads.pop(pending.path, None)
        if self.reads.get(pending.path) is pending:
            del self.reads[pending.path]
        settle(pending.future, error=error)

    def requeue_deferred(self) -> int:
        moved = len(self.deferred_reads)
        for path in self.deferred_reads:
            self.read_queue[path] = None
        self.deferred_reads.clear()
        return moved

    # --- inspection ---

    def has_active_work(self) -> bool:
        return bool(self.stat_queue or self.write_queue or self.read_queue)

    def is_quiescent(self) -> bool:
        return not (self.has_active_work() or self.deferred_reads)

    def pending_counts(self) -> Dict[str, int]:
        return {
            RequestKind.STAT.value: len(self.stat_queue),
            RequestKind.WRITE.value: len(self.write_queue),
            RequestKind.READ.value: len(self.read_queue),
            "deferred_read": len(self.deferred_reads),
        }

    def cancel_all(self) -> int:
        """Cancel every outstanding future and empty all queues. Returns how many futures were cancelled."""
        futures = [p.future for p in self.stats.values()]
        futures.extend(p.future for p in self.reads.values())
        futures.extend(p.future for p in self.write_queue)
        self.stats.clear()
        self.reads.clear()
        self.stat_queue.clear()
        self.write_queue.clear()
        self.read_queue.clear()
        self.deferred_reads.clear()
        return sum(1 for fut in futures if fut.cancel())
