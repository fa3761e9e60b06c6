"""
Fallout Grep Module

- Matcher: One query compiled into a context window pattern
- Match: A context window and the query hit inside it
- Grepper: Bounded-parallel search over the entries of a walker
- GrepOptions: Context size, query syntax and AND/OR policy

Usage:
    from fallout.grep import Grepper, GrepOptions

    g = Grepper(cache.walker(flt))
    g.grep(GrepOptions(context_before=2), ["error:"], on_result, jobs=4)
"""

from .matcher import Match, Matcher
from .grepper import GrepFunc, GrepOptions, Grepper

__all__ = [
    'Match',
    'Matcher',
    'GrepFunc',
    'GrepOptions',
    'Grepper',
]
