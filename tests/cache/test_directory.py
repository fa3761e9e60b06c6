# tests/cache/test_directory.py

import threading
from datetime import datetime, timedelta, timezone
from pathlib import PurePath

import pytest

from fallout.cache import DirectoryCache, BufferPool, make_key
from fallout.exceptions import EntryNotFoundError, InvalidKeyError
from fallout.io import MemoryFileSystem

TS = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


class TestEntryKeys:
    """Entry identity validation and canonical form."""

    @pytest.mark.parametrize(
        "builder, origin",
        [
            ("", "devel/go"),
            ("140amd64", ""),
            ("140amd64", "go"),
            ("140amd64", "devel/go/extra"),
            ("140amd64", "/go"),
            ("140amd64", "devel/"),
            ("140/amd64", "devel/go"),
            ("..", "devel/go"),
            (".hidden", "devel/go"),
            ("140amd64", "../go"),
        ],
    )
    def test_malformed_identity_is_rejected(self, mem_cache, builder, origin):
        with pytest.raises(InvalidKeyError):
            mem_cache.entry(builder, origin, TS)

    def test_zero_timestamp_is_rejected(self, mem_cache):
        with pytest.raises(InvalidKeyError):
            mem_cache.entry("140amd64", "devel/go", None)

    def test_timestamp_is_canonical_utc_seconds(self):
        local = datetime(2024, 5, 6, 9, 8, 9, 123456, tzinfo=timezone(timedelta(hours=2)))
        key = make_key("140amd64", "devel/go", local)
        assert key.timestamp == TS
        assert key.category == "devel"
        assert key.name == "go"

    def test_naive_timestamp_is_taken_as_utc(self):
        assert make_key("b", "c/n", datetime(2024, 5, 6, 7, 8, 9)).timestamp == TS

    def test_entry_path_layout(self, mem_cache):
        entry = mem_cache.entry("140amd64", "devel/go", TS)
        assert entry.path == "/cache/140amd64/devel/go/2024-05-06T07:08:09.log"
        assert str(entry) == entry.path


class TestDirectoryEntry:

    def test_write_read_round_trip(self, mem_cache):
        entry = mem_cache.entry("140amd64", "devel/go", TS)
        content = b"line one\n\x00\xffbinary\n"
        entry.write(content)
        assert entry.read() == content
        assert entry.size() == len(content)

    def test_exists_before_and_after_write(self, mem_cache):
        entry = mem_cache.entry("140amd64", "devel/go", TS)
        assert not entry.exists()
        entry.write(b"x")
        assert entry.exists()

    def test_zero_length_entry_does_not_exist(self, mem_cache):
        entry = mem_cache.entry("140amd64", "devel/go", TS)
        entry.write(b"")
        assert not entry.exists()

    def test_read_and_remove_absent_entry(self, mem_cache):
        entry = mem_cache.entry("140amd64", "devel/go", TS)
        with pytest.raises(EntryNotFoundError):
            entry.read()
        with pytest.raises(EntryNotFoundError):
            entry.remove()
        with pytest.raises(EntryNotFoundError):
            entry.with_content(lambda buf: None)

    def test_remove(self, disk_cache):
        entry = disk_cache.entry("140amd64", "devel/go", TS)
        entry.write(b"x")
        entry.remove()
        assert not entry.exists()

    def test_same_second_writes_overwrite(self, mem_cache):
        mem_cache.entry("140amd64", "devel/go", TS).write(b"first")
        mem_cache.entry("140amd64", "devel/go", TS + timedelta(microseconds=500)).write(b"second")
        assert mem_cache.entry("140amd64", "devel/go", TS).read() == b"second"

    def test_info(self, mem_cache):
        info = mem_cache.entry("140amd64", "devel/go", TS).info()
        assert (info.builder, info.origin, info.timestamp) == ("140amd64", "devel/go", TS)

    @pytest.mark.parametrize("size", [0, 1, 1000, 70000])
    def test_with_content_sees_exact_content(self, disk_cache, size):
        content = bytes(i % 251 for i in range(size))
        entry = disk_cache.entry("140amd64", "devel/go", TS)
        entry.write(content)
        seen = []
        entry.with_content(lambda buf: seen.append(bytes(buf)))
        assert seen == [content]

    def test_with_content_returns_buffer_to_pool(self, mem_fs):
        pool = BufferPool()
        cache = DirectoryCache("/cache", fs=mem_fs, pool=pool)
        entry = cache.entry("140amd64", "devel/go", TS)
        entry.write(b"payload")
        entry.with_content(lambda buf: None)
        assert pool.idle_count() == 1

    def test_with_content_returns_buffer_when_callback_fails(self, mem_fs):
        pool = BufferPool()
        cache = DirectoryCache("/cache", fs=mem_fs, pool=pool)
        entry = cache.entry("140amd64", "devel/go", TS)
        entry.write(b"payload")

        def boom(buf):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            entry.with_content(boom)
        assert pool.idle_count() == 1


class TestCacheTimestamp:
    """Freshest write timestamp bookkeeping."""

    def test_new_cache_has_no_timestamp(self, mem_cache):
        assert mem_cache.timestamp() is None

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_timestamp_never_goes_back(self, mem_cache, order):
        stamps = [TS, TS + timedelta(hours=1)]
        for i in order:
            mem_cache.entry("140amd64", "devel/go", stamps[i]).write(b"x")
        assert mem_cache.timestamp() == stamps[1]

    def test_concurrent_writers_leave_the_maximum(self, mem_cache):
        stamps = [TS + timedelta(minutes=i) for i in range(40)]

        def write(ts):
            mem_cache.entry("140amd64", f"devel/p{ts.minute}", ts).write(b"x")

        threads = [threading.Thread(target=write, args=(ts,)) for ts in reversed(stamps)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert mem_cache.timestamp() == max(stamps)

    def test_timestamp_survives_reopen(self, tmp_path):
        DirectoryCache(tmp_path).entry("140amd64", "devel/go", TS).write(b"x")
        assert (tmp_path / ".timestamp").read_text() == "2024-05-06T07:08:09Z"
        assert DirectoryCache(tmp_path).timestamp() == TS

    def test_unreadable_timestamp_is_ignored(self, tmp_path):
        (tmp_path / ".timestamp").write_text("not a time")
        assert DirectoryCache(tmp_path).timestamp() is None

    def test_remove_resets_everything(self, populated_cache):
        populated_cache.remove()
        assert populated_cache.timestamp() is None
        seen = []
        populated_cache.walker().walk(lambda entry, err: seen.append((entry, err)))
        assert seen == []

    def test_cache_is_usable_after_remove(self, mem_cache):
        mem_cache.entry("140amd64", "devel/go", TS).write(b"x")
        mem_cache.remove()
        mem_cache.entry("140amd64", "devel/go", TS).write(b"y")
        assert mem_cache.entry("140amd64", "devel/go", TS).read() == b"y"
        assert mem_cache.timestamp() == TS


def test_relative_root_is_made_absolute():
    cache = DirectoryCache("cache", fs=MemoryFileSystem())
    assert cache.root == PurePath("/cache")
    assert cache.path == "/cache"
