"""
Fallout Log Acquisition

A Fetcher downloads failure logs from wherever they are published and hands
them over one by one. Before downloading a log it asks the caller whether the
log should be skipped, which is how the cache avoids downloading what it
already holds without the fetcher knowing anything about storage.
"""

import logging
from datetime import datetime
from threading import Lock
from typing import Callable, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator

from .cache.base import Action, Cache
from .cache.filter import to_utc

logger = logging.getLogger(__name__)


class FetchFilter(BaseModel):
    """
        Describes which logs a fetcher should download
    """
    # Download only logs created after this moment
    after: Optional[datetime] = None
    # Download only this many most recent logs, 0 is unlimited
    limit: int = Field(default=0, ge=0)
    # Allowed builder names, partial names are ok
    builders: List[str] = Field(default_factory=list)
    # Allowed categories, partial names are ok
    categories: List[str] = Field(default_factory=list)
    # Allowed origins, partial names are ok
    origins: List[str] = Field(default_factory=list)
    # Allowed port names, partial names are ok
    names: List[str] = Field(default_factory=list)

    @field_validator("after", mode="after")
    @classmethod
    def canonical_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None


class FetchResult(BaseModel):
    """One downloaded (or about to be downloaded) log"""

    builder: str
    origin: str
    timestamp: datetime
    url: str = ""
    content: bytes = b""

    def __str__(self) -> str:
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} {self.builder:>32} {self.origin}"


# True means the log is cached already and must not be downloaded
SkipFunc = Callable[[FetchResult], bool]
# Called with every downloaded log, or with the error that prevented it
ResultFunc = Callable[[Optional[FetchResult], Optional[Exception]], Optional[Action]]


@runtime_checkable
class Fetcher(Protocol):
    """
    Protocol for log downloaders.
    """

    def fetch(self, filter: FetchFilter, skip: SkipFunc, fn: ResultFunc) -> None:
        """
        Download logs allowed by filter.

        Args:
            filter: What to download
            skip: Asked for every candidate before its content is downloaded
            fn: Called for every downloaded log, returning Action.STOP ends the fetch
        """
        ...


def sync_fetched(
    cache: Cache,
    fetcher: Fetcher,
    filter: Optional[FetchFilter] = None,
    only_new: bool = True,
    on_cached: Optional[Callable[[FetchResult], None]] = None,
    on_stored: Optional[Callable[[FetchResult], None]] = None,
) -> int:
    """
    Download logs with fetcher and store them in cache.

    With only_new the cache's freshest timestamp replaces filter.after, so
    only logs newer than anything stored so far are requested. Returns the
    number of newly stored logs. Fetch errors propagate.
    """
    filter = filter or FetchFilter()
    latest = cache.timestamp()
    if only_new and latest is not None:
        filter = filter.model_copy(update={"after": latest})
        logger.debug(f"Fetching logs newer than {latest}")

    mu = Lock()
    stored = 0

    def skip(res: FetchResult) -> bool:
        if cache.entry(res.builder, res.origin, res.timestamp).exists():
            if on_cached is not None:
                on_cached(res)
            return True
        return False

    def store(res: Optional[FetchResult], err: Optional[Exception]) -> None:
        nonlocal stored
        if err is not None:
            raise err
        cache.entry(res.builder, res.origin, res.timestamp).write(res.content)
        logger.debug(f"Stored {res} ({len(res.content)} bytes)")
        with mu:
            stored += 1
        if on_stored is not None:
            on_stored(res)

    fetcher.fetch(filter, skip, store)
    logger.info(f"Stored {stored} new logs in {cache.path}")
    return stored
