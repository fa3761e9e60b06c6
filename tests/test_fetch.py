# tests/test_fetch.py

from datetime import datetime, timezone

import pytest

from fallout.fetch import Fetcher, FetchFilter, FetchResult, sync_fetched


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class StaticFetcher:
    """Serves a fixed list of logs, honouring filter.after and the skip predicate"""

    def __init__(self, logs, fail_after=None):
        self.logs = logs
        self.fail_after = fail_after
        self.filters = []
        self.downloaded = []

    def fetch(self, filter, skip, fn):
        self.filters.append(filter)
        for i, res in enumerate(self.logs):
            if filter.after is not None and res.timestamp <= filter.after:
                continue
            if skip(res):
                continue
            if self.fail_after is not None and i >= self.fail_after:
                fn(None, ConnectionError("mail archive went away"))
                return
            self.downloaded.append(res)
            fn(res, None)


LOGS = [
    FetchResult(builder="140amd64", origin="devel/go", timestamp=utc(2024, 1, 1), content=b"a"),
    FetchResult(builder="140amd64", origin="lang/rust", timestamp=utc(2024, 1, 2), content=b"bb"),
    FetchResult(builder="130i386", origin="devel/go", timestamp=utc(2024, 1, 3), content=b"ccc"),
]


class TestSyncFetched:

    def test_fetcher_protocol(self):
        assert isinstance(StaticFetcher([]), Fetcher)

    def test_stores_everything_into_empty_cache(self, mem_cache):
        stored = []
        n = sync_fetched(mem_cache, StaticFetcher(LOGS), on_stored=stored.append)
        assert n == 3
        assert stored == LOGS
        assert mem_cache.entry("130i386", "devel/go", utc(2024, 1, 3)).read() == b"ccc"
        assert mem_cache.timestamp() == utc(2024, 1, 3)

    def test_only_new_uses_cache_timestamp(self, mem_cache):
        mem_cache.entry("140amd64", "devel/go", utc(2024, 1, 1)).write(b"a")
        fetcher = StaticFetcher(LOGS)
        assert sync_fetched(mem_cache, fetcher, FetchFilter(after=utc(2020, 1, 1))) == 2
        assert fetcher.filters[0].after == utc(2024, 1, 1)

    def test_cached_entries_are_skipped(self, mem_cache):
        mem_cache.entry("140amd64", "lang/rust", utc(2024, 1, 2)).write(b"bb")
        fetcher = StaticFetcher(LOGS)
        cached = []
        n = sync_fetched(mem_cache, fetcher, only_new=False, on_cached=cached.append)
        assert n == 2
        assert [r.origin for r in cached] == ["lang/rust"]
        assert [r.origin for r in fetcher.downloaded] == ["devel/go", "devel/go"]

    def test_fetch_errors_propagate(self, mem_cache):
        with pytest.raises(ConnectionError):
            sync_fetched(mem_cache, StaticFetcher(LOGS, fail_after=1))
        assert mem_cache.entry("140amd64", "devel/go", utc(2024, 1, 1)).exists()

    def test_filter_validation(self):
        with pytest.raises(ValueError):
            FetchFilter(limit=-1)

    def test_result_str(self):
        assert str(LOGS[0]).startswith("2024-01-01 00:00:00 ")
        assert str(LOGS[0]).endswith(" 140amd64 devel/go")
