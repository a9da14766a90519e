"""
File backends consumed by the I/O scheduler.

A backend performs exactly one stat, read or write per call and reports
failure by raising. Any exception is treated as a per-path failure except
SystemicBackendFault, which aborts the whole drain pass.
"""
import asyncio
import errno
import logging
import os
import stat as stat_module
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from .exceptions import SystemicBackendFault

logger = logging.getLogger("fustor_fs_queue.backend")

Payload = Union[bytes, str]

# errno values that say nothing about the path being accessed
SYSTEMIC_ERRNOS = frozenset({errno.EMFILE, errno.ENFILE, errno.ENOMEM})


class NotFound:
    """Sentinel type for a stat that did not produce metadata."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __reduce__(self):
        return (NotFound, ())


NOT_FOUND = NotFound()


@dataclass(frozen=True)
class FileMetadata:
    path: str
    size: int
    mtime: float
    ctime: float
    mode: int
    is_dir: bool
    is_file: bool

    @classmethod
    def from_stat_result(cls, path: str, st: os.stat_result) -> "FileMetadata":
        return cls(
            path=path,
            size=st.st_size,
            mtime=st.st_mtime,
            ctime=st.st_ctime,
            mode=st.st_mode,
            is_dir=stat_module.S_ISDIR(st.st_mode),
            is_file=stat_module.S_ISREG(st.st_mode),
        )


class FileBackend(ABC):
    """
    Abstract Base Class for file backends.

    Paths handed to a backend are already normalized absolute path keys.
    """

    @abstractmethod
    async def stat(self, path: str) -> FileMetadata:
        """Return metadata for path; raise if it does not exist or cannot be inspected."""
        raise NotImplementedError

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Return the full contents of path."""
        raise NotImplementedError

    @abstractmethod
    async def write(self, path: str, data: Payload) -> None:
        """Replace the contents of path with data. `str` data is encoded as UTF-8."""
        raise NotImplementedError

    async def close(self):
        """
        Optional: Gracefully closes any open resources.
        """
        pass


def _raise_if_systemic(e: OSError, path: str):
    if e.errno in SYSTEMIC_ERRNOS:
        raise SystemicBackendFault(
            f"{os.strerror(e.errno)} while accessing {path}",
            context={"path": path, "errno": e.errno},
        ) from e


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


class LocalFileBackend(FileBackend):
    """Local filesystem backend; blocking calls run in the default executor."""

    def __init__(self, create_parents: bool = True, atomic_writes: bool = False):
        self.create_parents = create_parents
        self.atomic_writes = atomic_writes
        self._umask = _current_umask()

    async def stat(self, path: str) -> FileMetadata:
        try:
            st = await asyncio.to_thread(os.stat, path)
        except OSError as e:
            _raise_if_systemic(e, path)
            raise
        return FileMetadata.from_stat_result(path, st)

    async def read(self, path: str) -> bytes:
        try:
            return await asyncio.to_thread(self._read_sync, path)
        except OSError as e:
            _raise_if_systemic(e, path)
            raise

    async def write(self, path: str, data: Payload) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            await asyncio.to_thread(self._write_sync, path, data)
        except OSError as e:
            _raise_if_systemic(e, path)
            raise

    def _target_mode(self, path: str) -> int:
        """Mode for the replacement file: keep the existing file's, else what open() would give."""
        try:
            return stat_module.S_IMODE(os.stat(path).st_mode)
        except FileNotFoundError:
            return 0o666 & ~self._umask

    @staticmethod
    def _read_sync(path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def _write_sync(self, path: str, data: bytes):
        parent = os.path.dirname(path)
        if self.create_parents and parent:
            os.makedirs(parent, exist_ok=True)

        if not self.atomic_writes:
            with open(path, "wb") as f:
                f.write(data)
            return

        fd, tmp_path = tempfile.mkstemp(dir=parent or None, prefix=".fsq-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                os.fchmod(f.fileno(), self._target_mode(path))
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.warning(f"Could not remove temp file {tmp_path}")
            raise
