import logging
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from .matcher import Match, Matcher
from ..cache.base import Action, Entry, Walker
from .. import constants

logger = logging.getLogger(__name__)

GrepFunc = Callable[[Optional[Entry], Optional[List[Match]], Optional[Exception]], Optional[Action]]

_DONE = object()


class GrepOptions(BaseModel):
    """
        Search options shared by every query of one grep
    """
    # Lines of context after the match
    context_after: int = Field(default=0, ge=0)
    # Lines of context before the match
    context_before: int = Field(default=0, ge=0)
    # Queries are regular expressions, not plain text
    query_is_regex: bool = True
    # At least one query needs to match, not all of them
    ored: bool = False

    def matcher(self, query: str) -> Matcher:
        return Matcher(
            query,
            before=self.context_before,
            after=self.context_after,
            regex=self.query_is_regex,
        )


class _GrepRun:
    """State of one grep call, shared by the coordinator, the tasks and the caller"""

    def __init__(self, matchers: List[Matcher], ored: bool, jobs: int):
        self.matchers = matchers
        self.ored = ored
        self.jobs = jobs
        self.results = queue.Queue(maxsize=constants.GREP_QUEUE_SIZE)
        self.stop = threading.Event()
        self.slots = threading.BoundedSemaphore(jobs)

    @property
    def stopped(self) -> bool:
        return self.stop.is_set()

    def emit(self, item) -> bool:
        while not self.stop.is_set():
            try:
                self.results.put(item, timeout=constants.WALK_PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def acquire_slot(self) -> bool:
        """Wait for a free task slot, False if the caller stopped meanwhile"""
        while not self.stop.is_set():
            if self.slots.acquire(timeout=constants.WALK_PUT_POLL_INTERVAL):
                return True
        return False


class Grepper:
    """Searches the entries produced by a walker"""

    def __init__(self, walker: Walker):
        self.walker = walker

    def grep(
        self,
        options: GrepOptions,
        queries: Sequence[str],
        fn: GrepFunc,
        jobs: Optional[int] = None,
    ) -> None:
        """
        Search cached logs calling fn(entry, matches, None) for every entry
        that satisfies the queries and fn(entry_or_None, None, err) for errors.

        Queries are compiled before anything is walked, a bad one raises
        InvalidQueryError. With no queries every entry matches as a whole.
        Results arrive in completion order. Returning Action.STOP from fn ends
        the search, exceptions raised by fn propagate.
        """
        matchers = [options.matcher(q) for q in queries]
        jobs = max(1, jobs or os.cpu_count() or 1)
        run = _GrepRun(matchers, options.ored, jobs)

        coordinator = threading.Thread(
            target=self._coordinate, args=(run,), name="fallout-grep", daemon=True
        )
        coordinator.start()
        logger.debug(f"Searching {len(matchers)} queries with {jobs} jobs")
        try:
            while True:
                item = run.results.get()
                if item is _DONE:
                    return
                entry, matches, err = item
                if fn(entry, matches, err) is Action.STOP:
                    logger.debug("Search stopped by caller")
                    return
        finally:
            run.stop.set()

    def _coordinate(self, run: _GrepRun) -> None:
        executor = ThreadPoolExecutor(max_workers=run.jobs, thread_name_prefix="fallout-match")

        def schedule(entry: Optional[Entry], err: Optional[Exception]) -> Optional[Action]:
            if err is not None:
                return None if run.emit((None, None, err)) else Action.STOP
            if not run.acquire_slot():
                return Action.STOP
            try:
                executor.submit(self._match_entry, run, entry)
            except RuntimeError:
                run.slots.release()
                raise
            return None

        try:
            self.walker.walk(schedule)
        except Exception as e:
            logger.debug(f"Walk failed during search: {e}")
            run.emit((None, None, e))
        finally:
            executor.shutdown(wait=True)
            run.emit(_DONE)

    def _match_entry(self, run: _GrepRun, entry: Entry) -> None:
        try:
            if run.stopped:
                return
            found: List[List[Match]] = []
            entry.with_content(lambda buf: found.append(self._match_content(run, buf)))
            if found and found[0]:
                run.emit((entry, found[0], None))
        except Exception as e:
            logger.debug(f"Search failed on {entry}: {e}")
            run.emit((entry, None, e))
        finally:
            run.slots.release()

    @staticmethod
    def _match_content(run: _GrepRun, buf: memoryview) -> List[Match]:
        if not run.matchers:
            return [Match(text=bytes(buf), start=0, end=len(buf))]
        matches = []
        for m in run.matchers:
            res = m.match(buf)
            if res is None:
                if not run.ored:
                    return []
                continue
            matches.append(res)
        return matches
