"""Entry kinds and replay actions.

Every recorded entry carries a Kind bit naming the subsystem that owns it.
Undo, redo, clear and iterate all take a Kind mask and only act on entries
whose bit is in the mask.
"""

from __future__ import annotations

import enum


class Kind(enum.IntFlag):
    NONE = 0
    GEOTAG = 1 << 0
    HISTORY = 1 << 1
    MASK = 1 << 2
    TAGS = 1 << 3
    METADATA = 1 << 4
    RATINGS = 1 << 5
    COLORLABELS = 1 << 6
    DUPLICATE = 1 << 7
    FLAGS = 1 << 8
    DATETIME = 1 << 9
    SELECTION = 1 << 10
    TEXT = 1 << 11
    PROPERTY = 1 << 12

    # Composite masks (one per application view)
    DEVELOP = HISTORY | MASK
    LIGHTTABLE = (
        GEOTAG | TAGS | METADATA | RATINGS | COLORLABELS | DUPLICATE | FLAGS | DATETIME
    )
    EDITOR = TEXT | PROPERTY | SELECTION
    ALL = (1 << 13) - 1


COMPOSITES = (Kind.DEVELOP, Kind.LIGHTTABLE, Kind.EDITOR, Kind.ALL)


class Action(enum.Enum):
    UNDO = "undo"
    REDO = "redo"


def single_kinds() -> list[Kind]:
    """All one-bit kinds, lowest bit first."""
    return [k for k in Kind if k and k not in COMPOSITES and (k & (k - 1)) == 0]


def parse_kind(text: str | int) -> Kind:
    """Parse a kind mask.

    Accepts an int, a name ("ratings"), or names joined with "|"
    ("ratings|tags"). Names are case-insensitive.
    """
    if isinstance(text, int):
        return Kind(text)
    if not isinstance(text, str):
        raise ValueError(f"Invalid kind: {text!r}")

    raw = text.strip()
    if raw.isdigit():
        return Kind(int(raw))

    mask = Kind.NONE
    for part in raw.split("|"):
        name = part.strip().upper()
        if not name:
            continue
        try:
            mask |= Kind[name]
        except KeyError:
            raise ValueError(f"Unknown kind: {part.strip()}") from None
    return mask
