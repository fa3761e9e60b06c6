"""
Fallout Cache Module

The log cache consists of:
- Cache / Entry / Walker: Storage interfaces everything else is written against
- DirectoryCache: Filesystem backed cache, one file per log
- CacheFilter: Builder, category, origin, name and time range restrictions
- BufferPool: Reusable read buffers shared by concurrent readers
- clean_older_than / clean_all: Retention cleanup
"""

from .base import Action, STOP, Cache, Entry, EntryInfo, Walker, WalkFunc, WithFunc
from .filter import CacheFilter, to_utc
from .pool import BufferPool, buffer_pool
from .directory import DirectoryCache, DirectoryEntry, DirectoryWalker, make_key
from .retention import clean_all, clean_older_than, cutoff_days_ago

__all__ = [
    'Action',
    'STOP',
    'Cache',
    'Entry',
    'EntryInfo',
    'Walker',
    'WalkFunc',
    'WithFunc',
    'CacheFilter',
    'to_utc',
    'BufferPool',
    'buffer_pool',
    'DirectoryCache',
    'DirectoryEntry',
    'DirectoryWalker',
    'make_key',
    'clean_all',
    'clean_older_than',
    'cutoff_days_ago',
]
