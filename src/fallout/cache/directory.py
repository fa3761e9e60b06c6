import logging
import queue
import threading
from datetime import datetime
from pathlib import PurePath
from threading import Lock
from typing import BinaryIO, List, Optional

from .base import Action, Cache, Entry, EntryInfo, Walker, WalkFunc, WithFunc
from .filter import CacheFilter, to_utc
from .pool import BufferPool, buffer_pool
from ..io import DiskFileSystem, FileInfo, FileSystem
from ..exceptions import (
    EntryNotFoundError,
    EnumerationError,
    FalloutIOError,
    InvalidKeyError,
    PathNotFoundError,
)
from .. import constants

logger = logging.getLogger(__name__)


def _check_segment(kind: str, value: str) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidKeyError(f"empty {kind}")
    if "/" in value or "\\" in value or value.startswith(".") or "\x00" in value:
        raise InvalidKeyError(f"invalid {kind}: {value!r}")


def make_key(builder: str, origin: str, timestamp: Optional[datetime]) -> EntryInfo:
    """
    Validate and canonicalize an entry identity.

    Origin has to be category/name, timestamp is moved to UTC and truncated
    to whole seconds.
    """
    _check_segment("builder", builder)
    if not isinstance(origin, str) or not origin:
        raise InvalidKeyError("empty origin")
    parts = origin.split("/")
    if len(parts) != 2:
        raise InvalidKeyError(f"origin must be category/name: {origin!r}")
    _check_segment("category", parts[0])
    _check_segment("port name", parts[1])
    if timestamp is None:
        raise InvalidKeyError("zero timestamp")
    if not isinstance(timestamp, datetime):
        raise InvalidKeyError(f"invalid timestamp: {timestamp!r}")
    ts = to_utc(timestamp).replace(microsecond=0)
    return EntryInfo(builder=builder, origin=origin, timestamp=ts)


def format_timestamp(ts: datetime) -> str:
    return ts.strftime(constants.ENTRY_TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return to_utc(datetime.strptime(value, constants.ENTRY_TIMESTAMP_FORMAT))


# --------------------
#
# Directory Cache
#
# --------------------

class DirectoryCache(Cache):
    """
    Filesystem cache, one file per entry at
    <root>/<builder>/<category>/<name>/<timestamp>.log
    """

    def __init__(self, root, fs: Optional[FileSystem] = None, pool: Optional[BufferPool] = None):
        """
        Initialize the cache, creating root if it is missing

        Args:
            root: Cache directory
            fs: File system instance to use, local disk by default
            pool: Buffer pool used by Entry.with_content, process-wide by default
        """
        self.fs = fs or DiskFileSystem()
        self.pool = pool or buffer_pool
        self._root = self.fs.absolute(PurePath(root))
        self._mu = Lock()
        self.fs.mkdir(self._root, exist_ok=True)
        self._timestamp = self._load_timestamp()
        logger.debug(f"Opened cache at {self._root}, freshest entry: {self._timestamp}")

    @property
    def path(self) -> str:
        return str(self._root)

    @property
    def root(self) -> PurePath:
        return self._root

    def timestamp(self) -> Optional[datetime]:
        with self._mu:
            return self._timestamp

    def entry(self, builder: str, origin: str, timestamp: datetime) -> "DirectoryEntry":
        return DirectoryEntry(self, make_key(builder, origin, timestamp))

    def walker(self, filter: Optional[CacheFilter] = None) -> "DirectoryWalker":
        return DirectoryWalker(self, filter)

    def remove(self) -> None:
        with self._mu:
            logger.info(f"Removing cache {self._root}")
            self.fs.rmtree(self._root)
            self._timestamp = None

    def _timestamp_path(self) -> PurePath:
        return self._root / constants.CACHE_TIMESTAMP_NAME

    def _load_timestamp(self) -> Optional[datetime]:
        path = self._timestamp_path()
        if not self.fs.exists(path):
            return None
        try:
            return to_utc(datetime.fromisoformat(self.fs.read_text(path).strip()))
        except (ValueError, FalloutIOError) as e:
            logger.warning(f"Ignoring unreadable cache timestamp {path}: {e}")
            return None

    def _update_timestamp(self, ts: datetime) -> None:
        """Advance the freshest write timestamp, it never goes back"""
        with self._mu:
            if self._timestamp is not None and ts <= self._timestamp:
                return
            try:
                self.fs.replace_bytes(
                    self._timestamp_path(),
                    ts.strftime(constants.CACHE_TIMESTAMP_FORMAT).encode(),
                )
            except FalloutIOError as e:
                logger.warning(f"Failed to record cache timestamp {ts}: {e}")
                return
            self._timestamp = ts


# --------------------
#
# Directory Entry
#
# --------------------

class DirectoryEntry(Entry):
    """Filesystem cache entry, a deferred reference until written"""

    def __init__(self, cache: DirectoryCache, key: EntryInfo):
        self.cache = cache
        self._info = key
        category, name = key.origin.split("/")
        self._path = cache.root / key.builder / category / name / (
            format_timestamp(key.timestamp) + constants.ENTRY_EXT
        )

    @property
    def path(self) -> str:
        return str(self._path)

    @property
    def fs(self) -> FileSystem:
        return self.cache.fs

    def exists(self) -> bool:
        # a zero-length file is what a failed write leaves behind
        try:
            return self.fs.is_file(self._path) and self.fs.size(self._path) > 0
        except FalloutIOError:
            return False

    def read(self) -> bytes:
        try:
            return self.fs.read_bytes(self._path)
        except PathNotFoundError as e:
            raise EntryNotFoundError(f"not cached: {self}") from e

    def write(self, content: bytes) -> None:
        self.fs.write_bytes(self._path, bytes(content))
        self.cache._update_timestamp(self._info.timestamp)

    def remove(self) -> None:
        try:
            self.fs.remove(self._path)
        except PathNotFoundError as e:
            raise EntryNotFoundError(f"not cached: {self}") from e

    def with_content(self, fn: WithFunc) -> None:
        try:
            f = self.fs.open(self._path, "rb")
        except PathNotFoundError as e:
            raise EntryNotFoundError(f"not cached: {self}") from e

        with f:
            size = self.fs.size(self._path)
            # one spare byte tells a file that grew since stat from one that did not
            with self.cache.pool.checkout(size + 1) as buf:
                n = _read_into(f, buf)
                if n < len(buf):
                    fn(memoryview(buf)[:n])
                else:
                    fn(memoryview(bytes(buf) + f.read()))

    def size(self) -> int:
        try:
            return self.fs.size(self._path)
        except PathNotFoundError as e:
            raise EntryNotFoundError(f"not cached: {self}") from e

    def info(self) -> EntryInfo:
        return self._info

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}('{self._path}')"


def _read_into(f: BinaryIO, buf: bytearray) -> int:
    view = memoryview(buf)
    n = 0
    while n < len(buf):
        got = f.readinto(view[n:])
        if not got:
            break
        n += got
    return n


# --------------------
#
# Directory Walker
#
# --------------------

_DONE = object()


class _WalkRun:
    """State shared by one walk's producer thread and its consumer"""

    def __init__(self):
        self.queue = queue.Queue(maxsize=constants.WALK_QUEUE_SIZE)
        self.stop = threading.Event()

    @property
    def stopped(self) -> bool:
        return self.stop.is_set()

    def emit(self, item) -> bool:
        """Hand item to the consumer, False once the consumer has gone away"""
        while not self.stop.is_set():
            try:
                self.queue.put(item, timeout=constants.WALK_PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def emit_error(self, err: Exception) -> bool:
        return self.emit((None, err))


class DirectoryWalker(Walker):
    """
    Depth-first traversal of builder -> category -> name -> log file,
    pruning every subtree whose level fails the filter.
    """

    def __init__(self, cache: DirectoryCache, filter: Optional[CacheFilter] = None):
        self.cache = cache
        self.filter = filter if filter is not None else CacheFilter()

    def walk(self, fn: WalkFunc) -> None:
        run = _WalkRun()
        producer = threading.Thread(
            target=self._walk_cache, args=(run,), name="fallout-walker", daemon=True
        )
        producer.start()
        try:
            while True:
                item = run.queue.get()
                if item is _DONE:
                    return
                entry, err = item
                if fn(entry, err) is Action.STOP:
                    logger.debug("Walk stopped by caller")
                    return
        finally:
            run.stop.set()

    def _scan(self, run: _WalkRun, path: PurePath) -> List[FileInfo]:
        try:
            return self.cache.fs.scandir(path)
        except FalloutIOError as e:
            err = EnumerationError(f"can not list {path}: {e}")
            err.__cause__ = e
            run.emit_error(err)
            return []

    def _walk_cache(self, run: _WalkRun) -> None:
        try:
            root = self.cache.root
            if not self.cache.fs.exists(root):
                logger.debug(f"Cache root {root} does not exist, nothing to walk")
                return
            for d in self._scan(run, root):
                if run.stopped:
                    return
                if not d.is_dir or d.name.startswith("."):
                    continue
                if not self.filter.builder_allowed(d.name):
                    logger.debug(f"Skipping builder {d.name}")
                    continue
                self._walk_builder(run, d.name)
        except Exception as e:
            logger.debug(f"Walk aborted: {e}")
            run.emit_error(e)
        finally:
            run.emit(_DONE)

    def _walk_builder(self, run: _WalkRun, builder: str) -> None:
        for d in self._scan(run, self.cache.root / builder):
            if run.stopped:
                return
            if not d.is_dir or d.name.startswith("."):
                continue
            if not self.filter.category_allowed(d.name):
                continue
            self._walk_category(run, builder, d.name)

    def _walk_category(self, run: _WalkRun, builder: str, category: str) -> None:
        for d in self._scan(run, self.cache.root / builder / category):
            if run.stopped:
                return
            if not d.is_dir or d.name.startswith("."):
                continue
            origin = f"{category}/{d.name}"
            if not (self.filter.origin_allowed(origin) and self.filter.name_allowed(d.name)):
                continue
            self._walk_origin(run, builder, origin)

    def _walk_origin(self, run: _WalkRun, builder: str, origin: str) -> None:
        for f in self._scan(run, self.cache.root / builder / origin):
            if run.stopped:
                return
            if f.is_dir or f.name.startswith(".") or not f.name.endswith(constants.ENTRY_EXT):
                continue
            stem = f.name[: -len(constants.ENTRY_EXT)]
            try:
                ts = parse_timestamp(stem)
                # strptime takes unpadded fields, entry paths are always padded
                if format_timestamp(ts) != stem:
                    raise ValueError(f"non-canonical timestamp {stem!r}")
            except ValueError as e:
                err = InvalidKeyError(f"malformed timestamp in {self.cache.root / builder / origin / f.name}")
                err.__cause__ = e
                if not run.emit_error(err):
                    return
                continue
            if not self.filter.time_allowed(ts):
                continue
            try:
                entry = self.cache.entry(builder, origin, ts)
            except InvalidKeyError as e:
                if not run.emit_error(e):
                    return
                continue
            if not run.emit((entry, None)):
                return
