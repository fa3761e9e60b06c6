import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .base import Cache, Entry
from .filter import to_utc
from ..exceptions import EntryNotFoundError

logger = logging.getLogger(__name__)

RemoveFunc = Callable[[Entry], None]


def cutoff_days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    """The moment `days` days before now, in UTC"""
    if days < 0:
        raise ValueError(f"negative number of days: {days}")
    now = to_utc(now) if now is not None else datetime.now(timezone.utc)
    return now - timedelta(days=days)


def clean_older_than(cache: Cache, cutoff: datetime, on_remove: Optional[RemoveFunc] = None) -> List[Entry]:
    """
    Remove every entry with a timestamp strictly before cutoff.

    on_remove is called with each entry right before it is removed.
    Enumeration errors abort the cleanup.
    """
    cutoff = to_utc(cutoff)
    removed: List[Entry] = []

    def visit(entry, err):
        if err is not None:
            raise err
        if entry.info().timestamp >= cutoff:
            return None
        if on_remove is not None:
            on_remove(entry)
        try:
            entry.remove()
        except EntryNotFoundError:
            logger.debug(f"{entry} vanished before it could be removed")
            return None
        removed.append(entry)
        return None

    cache.walker().walk(visit)
    logger.info(f"Removed {len(removed)} logs older than {cutoff:%Y-%m-%d %H:%M:%S} from {cache.path}")
    return removed


def clean_all(cache: Cache) -> None:
    """Remove all cached data"""
    cache.remove()
