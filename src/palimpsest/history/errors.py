"""History engine errors.

Only contract violations raise. Empty matches, suppressed records and
records dropped during a replay are silent no-ops.
"""


class HistoryError(RuntimeError):
    """Base class for history engine errors."""


class UnbalancedGroupError(HistoryError):
    """end_group() was called with no open group."""


class ReentrantCallError(HistoryError):
    """A history callback called back into a locked engine operation."""


class HistoryClosedError(HistoryError):
    """The engine was used after teardown()."""
