"""History layer: the undo/redo engine and its data model.

Editing subsystems import from here:

    from palimpsest.history import History, Kind, Action
"""

from palimpsest.history.engine import COALESCE_WINDOW, History
from palimpsest.history.entry import Entry, Reversible
from palimpsest.history.errors import (
    HistoryClosedError,
    HistoryError,
    ReentrantCallError,
    UnbalancedGroupError,
)
from palimpsest.history.kinds import Action, Kind, parse_kind

__all__ = [
    "COALESCE_WINDOW",
    "Action",
    "Entry",
    "History",
    "HistoryClosedError",
    "HistoryError",
    "Kind",
    "ReentrantCallError",
    "Reversible",
    "UnbalancedGroupError",
    "parse_kind",
]
