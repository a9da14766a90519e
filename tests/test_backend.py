import asyncio
import errno
import os
import pickle
import stat

import pytest

from fustor_fs_queue import IOScheduler, LocalFileBackend, NOT_FOUND, NotFound, SchedulerConfig
from fustor_fs_queue.backend import FileMetadata
from fustor_fs_queue.exceptions import SystemicBackendFault


def test_not_found_is_a_falsy_singleton():
    assert NotFound() is NOT_FOUND
    assert not NOT_FOUND
    assert repr(NOT_FOUND) == "NOT_FOUND"
    assert pickle.loads(pickle.dumps(NOT_FOUND)) is NOT_FOUND


@pytest.mark.asyncio
async def test_local_backend_round_trip(tmp_path):
    backend = LocalFileBackend()
    target = str(tmp_path / "nested" / "dir" / "file.txt")

    await backend.write(target, "héllo")

    assert await backend.read(target) == "héllo".encode("utf-8")
    meta = await backend.stat(target)
    assert isinstance(meta, FileMetadata)
    assert meta.is_file and not meta.is_dir
    assert meta.size == len("héllo".encode("utf-8"))


@pytest.mark.asyncio
async def test_local_backend_without_create_parents_fails(tmp_path):
    backend = LocalFileBackend(create_parents=False)
    with pytest.raises(FileNotFoundError):
        await backend.write(str(tmp_path / "missing" / "file.bin"), b"x")


@pytest.mark.asyncio
async def test_local_backend_atomic_write_leaves_no_temp_files(tmp_path):
    backend = LocalFileBackend(atomic_writes=True)
    target = tmp_path / "atomic.bin"
    target.write_bytes(b"old")
    target.chmod(0o644)

    await backend.write(str(target), b"new contents")

    assert target.read_bytes() == b"new contents"
    assert [p.name for p in tmp_path.iterdir()] == ["atomic.bin"]
    assert stat.S_IMODE(target.stat().st_mode) == 0o644


@pytest.mark.asyncio
async def test_local_backend_atomic_write_new_file_honours_umask(tmp_path):
    umask = os.umask(0o027)
    try:
        backend = LocalFileBackend(atomic_writes=True)
        target = tmp_path / "fresh.bin"
        await backend.write(str(target), b"x")
    finally:
        os.umask(umask)

    assert stat.S_IMODE(target.stat().st_mode) == 0o640


@pytest.mark.asyncio
async def test_local_backend_stat_directory(tmp_path):
    meta = await LocalFileBackend().stat(str(tmp_path))
    assert meta.is_dir
    assert not meta.is_file


@pytest.mark.asyncio
async def test_local_backend_missing_file_raises(tmp_path):
    backend = LocalFileBackend()
    with pytest.raises(FileNotFoundError):
        await backend.stat(str(tmp_path / "nope"))
    with pytest.raises(FileNotFoundError):
        await backend.read(str(tmp_path / "nope"))


@pytest.mark.asyncio
async def test_descriptor_exhaustion_is_systemic(tmp_path, mocker):
    mocker.patch(
        "fustor_fs_queue.backend.LocalFileBackend._read_sync",
        side_effect=OSError(errno.EMFILE, "Too many open files"),
    )
    with pytest.raises(SystemicBackendFault) as exc_info:
        await LocalFileBackend().read(str(tmp_path / "any"))
    assert exc_info.value.context["errno"] == errno.EMFILE


@pytest.mark.asyncio
async def test_scheduler_over_local_filesystem(tmp_path):
    config = SchedulerConfig(atomic_writes=True)
    async with IOScheduler(config=config) as sched:
        path = tmp_path / "out" / "data.json"

        missing = await asyncio.wait_for(sched.stat(path), 2.0)
        assert missing is NOT_FOUND

        await asyncio.wait_for(sched.write(path, b'{"ok": true}'), 2.0)
        meta, data = await asyncio.wait_for(asyncio.gather(sched.stat(path), sched.read(path)), 2.0)

        assert meta.path == os.path.abspath(str(path))
        assert meta.size == len(data)
        assert data == b'{"ok": true}'
        assert isinstance(sched.backend, LocalFileBackend)
        assert sched.backend.atomic_writes is True
