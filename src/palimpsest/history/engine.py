"""Undo/redo history engine.

Two stacks of entries, newest first:
- record() pushes onto the undo stack and invalidates the redo stack
- perform() moves one batch between the stacks, calling apply() on each edit
- begin_group()/end_group() bracket a run of edits with a sentinel pair;
  nested groups flatten into the outermost one

A batch is either a whole group (bounded by its sentinels) or a run of
same-mask edits recorded within the coalescing window of the first one.

One non-reentrant lock serializes every operation. Callbacks run while it is
held, so a record() issued from inside apply() is dropped, and any other
locked call from a callback raises ReentrantCallError instead of deadlocking.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from palimpsest.history.entry import (
    ApplyFn,
    Entry,
    ReleaseFn,
    Reversible,
    VisitorFn,
    apply_reversible,
    release_reversible,
)
from palimpsest.history.errors import (
    HistoryClosedError,
    ReentrantCallError,
    UnbalancedGroupError,
)
from palimpsest.history.kinds import Action, Kind


logger = logging.getLogger(__name__)

# Seconds; plain edits closer than this to the first edit of a batch replay together
COALESCE_WINDOW = 0.5


class History:
    """In-memory undo/redo history shared by many editing subsystems."""

    def __init__(
        self,
        coalesce_window: float = COALESCE_WINDOW,
        on_refresh: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.coalesce_window = coalesce_window
        self.on_refresh = on_refresh
        self._clock = clock

        self._undo: deque[Entry] = deque()
        self._redo: deque[Entry] = deque()

        self._group = Kind.NONE
        self._group_depth = 0

        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._replaying = False
        self._disable_next = False
        self._flag_lock = threading.Lock()
        self._closed = False

    # =========================================================================
    # Guard
    # =========================================================================

    def _held_here(self) -> bool:
        return self._owner == threading.get_ident()

    def _replaying_here(self) -> bool:
        return self._replaying and self._held_here()

    @contextmanager
    def _locked(self, operation: str, require_open: bool = True) -> Iterator[None]:
        if self._held_here():
            raise ReentrantCallError(
                f"{operation}() called from inside a history callback"
            )
        with self._lock:
            self._owner = threading.get_ident()
            try:
                if require_open and self._closed:
                    raise HistoryClosedError(f"{operation}() after teardown()")
                yield
            finally:
                self._owner = None

    @contextmanager
    def _reading(self) -> Iterator[None]:
        """Lock for a read, unless this thread already holds the lock."""
        if self._held_here():
            yield
            return
        with self._locked("read"):
            yield

    # =========================================================================
    # Item store
    # =========================================================================

    def disable_next_record(self) -> None:
        """Drop the next record() call (its payload is released)."""
        with self._flag_lock:
            self._disable_next = True

    def _take_disable_next(self) -> bool:
        with self._flag_lock:
            armed, self._disable_next = self._disable_next, False
        return armed

    def record(
        self,
        owner: Any,
        kind: Kind,
        payload: Any,
        apply: ApplyFn,
        release: Optional[ReleaseFn] = None,
    ) -> None:
        """Record an edit and discard all redo history."""
        if self._closed:
            raise HistoryClosedError("record() after teardown()")
        if not callable(apply):
            raise TypeError("apply must be callable")
        kind = Kind(kind)

        if self._take_disable_next():
            logger.debug("Record suppressed: %r", kind)
            if release is not None:
                release(payload)
            return

        if self._replaying:
            # Side effects of a replay are not themselves undoable
            logger.debug("Record dropped during replay: %r", kind)
            if release is not None:
                release(payload)
            return

        with self._locked("record"):
            self._push(Entry(owner, kind, payload, self._clock(), False, apply, release))

    def record_change(self, owner: Any, kind: Kind, change: Reversible) -> None:
        """Record a Reversible; it is replayed and released through its own methods."""
        self.record(owner, kind, change, apply_reversible, release_reversible)

    def _push(self, entry: Entry) -> None:
        self._undo.appendleft(entry)
        if self._redo:
            stale = list(self._redo)
            self._redo.clear()
            logger.debug("Redo history invalidated: %d entries", len(stale))
            _discard_all(stale)

    def clear(self, mask: Kind = Kind.ALL) -> int:
        """Remove every entry matching mask from both stacks.

        Returns the number of entries removed, sentinels included.
        """
        with self._locked("clear"):
            removed = _detach(self._undo, mask) + _detach(self._redo, mask)
            self._take_disable_next()
            _discard_all(removed)
        logger.debug("Cleared %d entries for %r", len(removed), mask)
        return len(removed)

    def teardown(self) -> None:
        """Release every entry. The engine cannot be used afterwards."""
        with self._locked("teardown", require_open=False):
            if self._closed:
                return
            entries = [*self._undo, *self._redo]
            self._undo.clear()
            self._redo.clear()
            self._group, self._group_depth = Kind.NONE, 0
            self._take_disable_next()
            self._closed = True
            _discard_all(entries)

    def __enter__(self) -> "History":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.teardown()

    # =========================================================================
    # Transactions
    # =========================================================================

    def begin_group(self, kind: Kind) -> None:
        """Open a group, or deepen the one already open."""
        if self._replaying_here():
            logger.debug("begin_group dropped during replay: %r", kind)
            return
        with self._locked("begin_group"):
            self._group_depth += 1
            if self._group_depth > 1:
                return
            self._group = Kind(kind)
            self._push(Entry.boundary(self._group, self._clock()))

    def end_group(self) -> None:
        """Close one nesting level; the outermost close records the end sentinel."""
        if self._replaying_here():
            logger.debug("end_group dropped during replay")
            return
        with self._locked("end_group"):
            if self._group_depth == 0:
                raise UnbalancedGroupError("end_group() called with no open group")
            self._group_depth -= 1
            if self._group_depth:
                return
            kind, self._group = self._group, Kind.NONE
            self._push(Entry.boundary(kind, self._clock()))

    @contextmanager
    def group(self, kind: Kind) -> Iterator["History"]:
        self.begin_group(kind)
        try:
            yield self
        finally:
            self.end_group()

    @property
    def group_depth(self) -> int:
        return self._group_depth

    @property
    def in_group(self) -> bool:
        return self._group_depth > 0

    # =========================================================================
    # Replay
    # =========================================================================

    def undo(self, mask: Kind = Kind.ALL) -> int:
        return self.perform(mask, Action.UNDO)

    def redo(self, mask: Kind = Kind.ALL) -> int:
        return self.perform(mask, Action.REDO)

    def perform(self, mask: Kind, action: Action) -> int:
        """Replay the newest batch matching mask in the given direction.

        Returns the number of entries moved to the opposite stack (0 when
        nothing matched). The refresh hook runs once afterwards either way.

        An exception from apply() propagates. Entries replayed before it stay
        on the destination stack; the failing entry and the rest of the batch
        stay on the source stack.
        """
        with self._locked("perform"):
            self._replaying = True
            try:
                moved = self._replay(Kind(mask), action)
            finally:
                self._replaying = False

        if moved:
            logger.debug("%s: %d entries for %r", action.value, moved, mask)
        if self.on_refresh is not None:
            self.on_refresh()
        return moved

    def _replay(self, mask: Kind, action: Action) -> int:
        if action is Action.UNDO:
            source, target = self._undo, self._redo
        else:
            source, target = self._redo, self._undo

        index = next((i for i, e in enumerate(source) if e.matches(mask)), None)
        if index is None:
            return 0

        if source[index].is_boundary:
            return self._replay_group(source, target, index, action)
        return self._replay_run(source, target, index, mask, action)

    @staticmethod
    def _replay_group(source: deque, target: deque, index: int, action: Action) -> int:
        # Opening sentinel first, then everything up to and including its partner
        _move(source, target, index)
        moved = 1
        while index < len(source):
            entry = source[index]
            if not entry.is_boundary:
                entry.replay(action)
            _move(source, target, index)
            moved += 1
            if entry.is_boundary:
                break
        return moved

    def _replay_run(
        self, source: deque, target: deque, index: int, mask: Kind, action: Action
    ) -> int:
        first_ts = source[index].timestamp
        in_group = False
        moved = 0
        while True:
            entry = source[index]
            if entry.is_boundary:
                in_group = not in_group
            else:
                entry.replay(action)
            _move(source, target, index)
            moved += 1

            if index >= len(source):
                break
            following = source[index]
            if not following.matches(mask):
                break
            if not in_group and abs(following.timestamp - first_ts) >= self.coalesce_window:
                break
        return moved

    # =========================================================================
    # Iteration and queries
    # =========================================================================

    def iterate(self, mask: Kind, visitor: VisitorFn) -> None:
        """Visit matching edits, undo stack first, newest first within each stack."""
        with self._locked("iterate"):
            self.iterate_locked(mask, visitor)

    def iterate_locked(self, mask: Kind, visitor: VisitorFn) -> None:
        """Same as iterate(), for callers already inside a locked operation."""
        for stack in (self._undo, self._redo):
            for entry in stack:
                if not entry.is_boundary and entry.matches(mask):
                    visitor(entry.owner, entry.kind, entry.payload)

    def can_undo(self, mask: Kind = Kind.ALL) -> bool:
        with self._reading():
            return any(e.matches(mask) for e in self._undo)

    def can_redo(self, mask: Kind = Kind.ALL) -> bool:
        with self._reading():
            return any(e.matches(mask) for e in self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def snapshot(self) -> tuple[tuple[Entry, ...], tuple[Entry, ...]]:
        """(undo, redo) entries, newest first, sentinels included."""
        with self._reading():
            return tuple(self._undo), tuple(self._redo)


def _move(source: deque, target: deque, index: int) -> None:
    entry = source[index]
    del source[index]
    target.appendleft(entry)


def _detach(stack: deque, mask: Kind) -> list[Entry]:
    kept: list[Entry] = []
    removed: list[Entry] = []
    for entry in stack:
        (removed if entry.matches(mask) else kept).append(entry)
    stack.clear()
    stack.extend(kept)
    return removed


def _discard_all(entries: list[Entry]) -> None:
    """Release every entry; a failing release does not stop the rest.

    The first exception is re-raised once all entries have been released.
    """
    error: Optional[BaseException] = None
    for entry in entries:
        try:
            entry.discard()
        except Exception as e:
            if error is None:
                error = e
    if error is not None:
        raise error
