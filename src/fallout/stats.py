import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Optional, Set

from pydantic import BaseModel, Field

from .cache.base import Cache
from .cache.filter import CacheFilter
from .utils.util import format_size

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class CacheStats(BaseModel):
    """Aggregate figures of the cached logs"""

    logs_count: int = 0
    logs_size: int = 0
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    # builder -> origins with at least one log
    builders: Dict[str, Set[str]] = Field(default_factory=dict)
    origins: Set[str] = Field(default_factory=set)

    @property
    def builders_count(self) -> int:
        return len(self.builders)

    @property
    def origins_count(self) -> int:
        return len(self.origins)

    @property
    def top_builder(self) -> Optional[str]:
        """Builder with the most failing ports, ties go to the first in name order"""
        if not self.builders:
            return None
        return min(self.builders, key=lambda b: (-len(self.builders[b]), b))

    def render(self) -> str:
        if self.logs_count == 0:
            return "No logs in cache.\n"
        top = self.top_builder
        return (
            f"Cache size:         {format_size(self.logs_size)}\n"
            f"Latest log:         {self.latest:{TIME_FORMAT}}\n"
            f"Earliest log:       {self.earliest:{TIME_FORMAT}}\n"
            f"Builders:           {self.builders_count}\n"
            f"Failing ports:      {self.origins_count}\n"
            f"Logs:               {self.logs_count}\n"
            f"Most failures:      {top} ({len(self.builders[top])} ports)\n"
        )


def collect_stats(cache: Cache, filter: Optional[CacheFilter] = None) -> CacheStats:
    """
    Walk the cache once and fold every entry into a CacheStats.
    Enumeration errors abort the walk.
    """
    logs_count = 0
    logs_size = 0
    earliest = latest = None
    builders: Dict[str, Set[str]] = defaultdict(set)
    origins: Set[str] = set()

    def visit(entry, err):
        nonlocal logs_count, logs_size, earliest, latest
        if err is not None:
            raise err
        info = entry.info()
        if earliest is None or info.timestamp < earliest:
            earliest = info.timestamp
        if latest is None or info.timestamp > latest:
            latest = info.timestamp
        builders[info.builder].add(info.origin)
        origins.add(info.origin)
        logs_count += 1
        logs_size += entry.size()

    cache.walker(filter).walk(visit)
    logger.debug(f"Collected stats over {logs_count} logs in {cache.path}")
    return CacheStats(
        logs_count=logs_count,
        logs_size=logs_size,
        earliest=earliest,
        latest=latest,
        builders=dict(builders),
        origins=origins,
    )
