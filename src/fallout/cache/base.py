"""
Fallout Cache Abstractions

The cache stores immutable build failure logs keyed by (builder, origin, timestamp).
Everything that consumes the cache (search, cleanup, statistics, fetching) is
written against these interfaces, the filesystem backed implementation lives in
directory.py.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from .filter import CacheFilter


class Action(Enum):
    """
    Control value returned by walk and grep callbacks.

    Returning None is the same as CONTINUE. Failing is done by raising,
    the exception then propagates out of the walk.
    """

    CONTINUE = "continue"
    STOP = "stop"


# Module level alias so callers can write `return cache.STOP`
STOP = Action.STOP


class EntryInfo(BaseModel):
    """Entry attributes"""

    model_config = ConfigDict(frozen=True)

    # Builder name
    builder: str
    # Port origin, category/name
    origin: str
    # Failure log timestamp, UTC, whole seconds
    timestamp: datetime

    @property
    def category(self) -> str:
        return self.origin.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.origin.split("/", 1)[-1]


WithFunc = Callable[[memoryview], None]


class Entry(ABC):
    """One cached failure log"""

    @property
    @abstractmethod
    def path(self) -> str:
        """Entry location (implementation-specific)"""
        pass

    @abstractmethod
    def exists(self) -> bool:
        """True if the entry is present in the cache and not empty"""
        pass

    @abstractmethod
    def read(self) -> bytes:
        """Entry contents, EntryNotFoundError if absent"""
        pass

    @abstractmethod
    def write(self, content: bytes) -> None:
        """Save content as the entry contents"""
        pass

    @abstractmethod
    def remove(self) -> None:
        """Remove this entry, EntryNotFoundError if absent"""
        pass

    @abstractmethod
    def with_content(self, fn: WithFunc) -> None:
        """
        Call fn with the entry contents.

        The buffer behind the view is borrowed from a pool and reused once fn
        returns, fn must copy anything it wants to keep.
        """
        pass

    @abstractmethod
    def size(self) -> int:
        """Size of the stored contents in bytes, EntryNotFoundError if absent"""
        pass

    @abstractmethod
    def info(self) -> EntryInfo:
        """Entry attributes"""
        pass

    def __str__(self) -> str:
        return self.path


WalkFunc = Callable[[Optional[Entry], Optional[Exception]], Optional[Action]]


class Walker(ABC):
    """Filtered cache traversal"""

    @abstractmethod
    def walk(self, fn: WalkFunc) -> None:
        """
        Walk the cache calling fn(entry, None) for every entry that made it
        through the filter and fn(None, err) for enumeration errors.

        Returns normally when fn returns Action.STOP, exceptions raised by fn
        propagate.
        """
        pass


class Cache(ABC):
    """Log cache interface"""

    @property
    @abstractmethod
    def path(self) -> str:
        """Cache location (implementation-specific)"""
        pass

    @abstractmethod
    def timestamp(self) -> Optional[datetime]:
        """Timestamp of the most recent written entry, None if nothing was written yet"""
        pass

    @abstractmethod
    def entry(self, builder: str, origin: str, timestamp: datetime) -> Entry:
        """A possibly not yet existing entry with the given attributes"""
        pass

    @abstractmethod
    def walker(self, filter: Optional["CacheFilter"] = None) -> Walker:
        """Traversal over the entries allowed by filter, None allows all"""
        pass

    @abstractmethod
    def remove(self) -> None:
        """Completely remove all cached data"""
        pass
