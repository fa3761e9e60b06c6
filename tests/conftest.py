from datetime import datetime, timezone

import pytest

from fallout.cache import DirectoryCache
from fallout.io import MemoryFileSystem


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# Three builders, overlapping port names across categories
FIXTURE_LOGS = [
    ("130amd64", "devel/go", _utc(2024, 1, 1, 10), b"===> Building go\nerror: linker failed\n*** Error code 1\n"),
    ("130amd64", "lang/go", _utc(2024, 1, 2, 10), b"go: downloading x/sys\nerror: checksum mismatch\n"),
    ("130amd64", "lang/rust", _utc(2024, 1, 3, 10), b"rustc panicked\nnote: run with RUST_BACKTRACE=1\n"),
    ("140amd64", "devel/go", _utc(2024, 2, 1, 10), b"===> Building go\nall good until\nsegfault\n"),
    ("140amd64", "devel/go", _utc(2024, 2, 5, 10), b"===> Building go\nerror: out of memory\n"),
    ("140amd64", "www/node", _utc(2024, 2, 3, 10), b"gyp ERR! build error\nnode-gyp failed\n"),
    ("140i386", "lang/go", _utc(2024, 3, 1, 10), b"go: unsupported GOARCH\nerror: 386 is gone\n"),
    ("140i386", "devel/rust-cargo", _utc(2024, 3, 2, 10), b"cargo build\nerror[E0425]: cannot find value\n"),
]


@pytest.fixture
def mem_fs():
    """A fresh in-memory file system, not shared with other tests"""
    return MemoryFileSystem()


@pytest.fixture
def mem_cache(mem_fs):
    return DirectoryCache("/cache", fs=mem_fs)


@pytest.fixture
def disk_cache(tmp_path):
    return DirectoryCache(tmp_path / "cache")


@pytest.fixture
def fixture_logs():
    return list(FIXTURE_LOGS)


@pytest.fixture(params=["memory", "disk"])
def populated_cache(request, tmp_path):
    """A cache holding FIXTURE_LOGS, on both file system flavours"""
    if request.param == "memory":
        cache = DirectoryCache("/cache", fs=MemoryFileSystem())
    else:
        cache = DirectoryCache(tmp_path / "cache")
    for builder, origin, ts, content in FIXTURE_LOGS:
        cache.entry(builder, origin, ts).write(content)
    return cache
