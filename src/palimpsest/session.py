"""Scripted editing sessions.

A session drives a History with a small key/value Document, one step at a
time. Scripts are YAML lists; each item is a bare step name or a one-key
mapping:

    - set: {key: exposure, value: 1.2, kind: history}
    - wait: 0.6
    - begin: tags
    - set: {key: tag, value: sunset, kind: tags}
    - end
    - undo: all
    - redo: tags
    - clear: ratings
    - disable_next

Architecture (same shape as the TUI reducer):
- Steps are frozen dataclasses
- Session.dispatch(step) applies one step to the history/document
- Time is simulated: only `wait` advances the clock, so consecutive `set`
  steps fall inside one coalescing window
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from palimpsest.config import HistoryConfig
from palimpsest.history import Action, History, Kind, Reversible, parse_kind


# =============================================================================
# Demo subsystem
# =============================================================================

@dataclass
class SimulatedClock:
    now: float = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class SetValue(Reversible):
    """One key change in a Document. None means the key was absent."""
    document: "Document"
    key: str
    old: Any
    new: Any

    def apply(self, action: Action) -> None:
        self.document.write(self.key, self.old if action is Action.UNDO else self.new)


class Document:
    """Key/value document whose every change is undoable."""

    def __init__(self, history: History) -> None:
        self.history = history
        self.values: dict[str, Any] = {}

    def set(self, key: str, value: Any, kind: Kind = Kind.PROPERTY) -> None:
        old = self.values.get(key)
        self.write(key, value)
        self.history.record_change(self, kind, SetValue(self, key, old, value))

    def write(self, key: str, value: Any) -> None:
        """Change a value without recording history."""
        if value is None:
            self.values.pop(key, None)
        else:
            self.values[key] = value


# =============================================================================
# Steps
# =============================================================================

@dataclass(frozen=True)
class SetStep:
    key: str
    value: Any
    kind: Kind = Kind.PROPERTY


@dataclass(frozen=True)
class BeginStep:
    kind: Kind = Kind.PROPERTY


@dataclass(frozen=True)
class EndStep:
    pass


@dataclass(frozen=True)
class UndoStep:
    mask: Kind = Kind.ALL


@dataclass(frozen=True)
class RedoStep:
    mask: Kind = Kind.ALL


@dataclass(frozen=True)
class ClearStep:
    mask: Kind = Kind.ALL


@dataclass(frozen=True)
class WaitStep:
    seconds: float


@dataclass(frozen=True)
class DisableNextStep:
    pass


Step = Union[
    SetStep,
    BeginStep,
    EndStep,
    UndoStep,
    RedoStep,
    ClearStep,
    WaitStep,
    DisableNextStep,
]


def _mask(arg: Any) -> Kind:
    return Kind.ALL if arg is None else parse_kind(arg)


def parse_step(item: Any) -> Step:
    """Parse one script item. Raises ValueError on anything unknown."""
    if isinstance(item, str):
        name, arg = item, None
    elif isinstance(item, dict) and len(item) == 1:
        ((name, arg),) = item.items()
    else:
        raise ValueError(f"Invalid step: {item!r}")

    match name:
        case "set":
            if not isinstance(arg, dict) or "key" not in arg:
                raise ValueError("set needs a mapping with at least 'key'")
            return SetStep(
                key=str(arg["key"]),
                value=arg.get("value"),
                kind=parse_kind(arg.get("kind", "property")),
            )
        case "begin":
            return BeginStep(kind=parse_kind(arg) if arg is not None else Kind.PROPERTY)
        case "end":
            return EndStep()
        case "undo":
            return UndoStep(mask=_mask(arg))
        case "redo":
            return RedoStep(mask=_mask(arg))
        case "clear":
            return ClearStep(mask=_mask(arg))
        case "wait":
            if arg is None:
                raise ValueError("wait needs a number of seconds")
            try:
                seconds = float(arg)
            except (TypeError, ValueError):
                raise ValueError(f"wait needs a number of seconds, got {arg!r}") from None
            return WaitStep(seconds=seconds)
        case "disable_next":
            return DisableNextStep()

    raise ValueError(f"Unknown step: {name}")


def parse_steps(raw: Any) -> list[Step]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("Script must be a list of steps")

    steps = []
    for n, item in enumerate(raw, 1):
        try:
            steps.append(parse_step(item))
        except ValueError as e:
            raise ValueError(f"Step {n}: {e}") from None
    return steps


# =============================================================================
# Session
# =============================================================================

@dataclass
class Session:
    """A History plus a Document, driven by steps."""

    config: HistoryConfig = field(default_factory=HistoryConfig)
    clock: SimulatedClock = field(default_factory=SimulatedClock)
    refreshes: int = 0
    history: Optional[History] = None
    document: Optional[Document] = None

    def __post_init__(self) -> None:
        if self.history is None:
            self.history = self.config.build(on_refresh=self._on_refresh, clock=self.clock)
        if self.document is None:
            self.document = Document(self.history)

    def _on_refresh(self) -> None:
        self.refreshes += 1

    def dispatch(self, step: Step) -> None:
        match step:
            case SetStep(key=key, value=value, kind=kind):
                self.document.set(key, value, kind)

            case BeginStep(kind=kind):
                self.history.begin_group(kind)

            case EndStep():
                self.history.end_group()

            case UndoStep(mask=mask):
                self.history.undo(mask)

            case RedoStep(mask=mask):
                self.history.redo(mask)

            case ClearStep(mask=mask):
                self.history.clear(mask)

            case WaitStep(seconds=seconds):
                self.clock.advance(seconds)

            case DisableNextStep():
                self.history.disable_next_record()

    def run(self, steps: list[Step]) -> None:
        for step in steps:
            self.dispatch(step)
