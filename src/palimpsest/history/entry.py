"""Recorded history entries.

An entry is either a real edit (payload plus apply/release callbacks) or a
group boundary sentinel. The engine owns the payload from record until
release; replay hands it to apply() but never frees it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from palimpsest.history.kinds import Action, Kind


ApplyFn = Callable[[Any, Kind, Any, Action], None]
ReleaseFn = Callable[[Any], None]
VisitorFn = Callable[[Any, Kind, Any], None]


@dataclass(eq=False)
class Entry:
    owner: Any
    kind: Kind
    payload: Any
    timestamp: float
    is_boundary: bool = False
    apply: Optional[ApplyFn] = None
    release: Optional[ReleaseFn] = None

    @classmethod
    def boundary(cls, kind: Kind, timestamp: float) -> "Entry":
        return cls(owner=None, kind=kind, payload=None, timestamp=timestamp, is_boundary=True)

    def matches(self, mask: Kind) -> bool:
        return bool(self.kind & mask)

    def replay(self, action: Action) -> None:
        self.apply(self.owner, self.kind, self.payload, action)

    def discard(self) -> None:
        """Release the payload. Called once, when the entry leaves history for good."""
        if self.release is not None:
            self.release(self.payload)


class Reversible(ABC):
    """A payload that knows how to replay and release itself.

    Subsystems that prefer an object over the (payload, apply, release)
    triple implement this and record it with History.record_change().
    """

    @abstractmethod
    def apply(self, action: Action) -> None:
        """Undo or redo this change."""

    def release(self) -> None:
        """Free resources held by this change. Default: nothing to free."""


def apply_reversible(owner: Any, kind: Kind, payload: Reversible, action: Action) -> None:
    payload.apply(action)


def release_reversible(payload: Reversible) -> None:
    payload.release()
