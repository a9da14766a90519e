import asyncio
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from fustor_fs_queue.backend import FileBackend, FileMetadata
from fustor_fs_queue.models.config import SchedulerConfig
from fustor_fs_queue.scheduler import IOScheduler


class FakeBackend(FileBackend):
    """
    In-memory backend that records every call in order.

    Failures are scripted per (operation, path) and consumed one per call;
    `hooks` run at the start of a call, before it yields, so tests can issue
    new requests while a pass is in flight.
    """

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], List[BaseException]] = defaultdict(list)
        self.hooks: Dict[Tuple[str, str], Callable[[], None]] = {}
        self.closed = False

    def fail_next(self, op: str, path: str, *errors: BaseException):
        self.failures[(op, path)].extend(errors)

    def on_call(self, op: str, path: str, hook: Callable[[], None]):
        self.hooks[(op, path)] = hook

    def count(self, op: str, path: Optional[str] = None) -> int:
        return sum(1 for o, p in self.calls if o == op and (path is None or p == path))

    def ops(self) -> List[str]:
        return [o for o, _ in self.calls]

    async def _step(self, op: str, path: str):
        self.calls.append((op, path))
        hook = self.hooks.pop((op, path), None)
        if hook:
            hook()
        await asyncio.sleep(0)
        pending = self.failures.get((op, path))
        if pending:
            raise pending.pop(0)

    async def stat(self, path: str) -> FileMetadata:
        await self._step("stat", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return FileMetadata(path, len(self.files[path]), 0.0, 0.0, 0o100644, False, True)

    async def read(self, path: str) -> bytes:
        await self._step("read", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write(self, path: str, data) -> None:
        await self._step("write", path)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.files[path] = data

    async def close(self):
        self.closed = True


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0):
    """Yield to the loop until predicate() holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config():
    return SchedulerConfig(backoff_delay_sec=0.01)


@pytest_asyncio.fixture
async def scheduler(backend, config):
    sched = IOScheduler(backend=backend, config=config)
    yield sched
    await sched.close()
