"""
Fallout

Caches FreeBSD package build failure logs and searches them.

Main modules:
- cache: Log cache store, filtered walker, retention cleanup
- grep: Context window matching and bounded-parallel search
- fetch: Log acquisition interface and cache synchronisation
- io: File system abstraction the cache is written against
- config: Settings loading and validation
- utils: Logging setup and small helpers

Quick start example:
```python
from fallout.cache import DirectoryCache, CacheFilter
from fallout.grep import Grepper, GrepOptions

cache = DirectoryCache("/var/cache/fallout")
g = Grepper(cache.walker(CacheFilter(builders=["140amd64"])))
g.grep(GrepOptions(context_before=2), ["error:"], lambda entry, matches, err: print(entry))
```
"""

__version__ = "0.3.0"

from .cache import (
    Action,
    STOP,
    Cache,
    Entry,
    EntryInfo,
    Walker,
    CacheFilter,
    DirectoryCache,
)
from .grep import Grepper, GrepOptions, Match, Matcher

__all__ = [
    '__version__',
    'Action',
    'STOP',
    'Cache',
    'Entry',
    'EntryInfo',
    'Walker',
    'CacheFilter',
    'DirectoryCache',
    'Grepper',
    'GrepOptions',
    'Match',
    'Matcher',
]
