"""Error taxonomy for the budget ledger.

Every error raised by the engine derives from :class:`LedgerError`, so the
application layer can catch the whole family in one place while still
telling the cases apart.
"""

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""


class InvalidConfig(LedgerError, ValueError):
    """A budget configuration value was rejected before persistence."""


class InvalidExpense(LedgerError, ValueError):
    """An expense amount or date was rejected before reaching the ledger."""


class NoConfig(LedgerError, LookupError):
    """A budget operation was requested for an account without a config."""

    def __init__(self, account_id: str) -> None:
        super().__init__(f"No active budget config for account '{account_id}'")
        self.account_id = account_id


class NotFound(LedgerError, LookupError):
    """An expense, cycle or record id does not exist for the account."""


class DateOutOfRange(LedgerError, ValueError):
    """A date outside the resolved cycle was requested.

    This signals a mismatch between the cycle and daily record managers and
    is a defect, not a user-facing condition.
    """


class ConcurrentModification(LedgerError):
    """A conflicting write was detected; retry the whole operation."""


class RecalculationIncomplete(LedgerError):
    """A recalculation cascade stopped before reaching a fixed point.

    Cycles up to and including ``last_cycle_id`` are consistent; later cycles
    keep a stale carry-over until the recalculation is re-run.
    """

    def __init__(self, message: str, *, last_cycle_id: Optional[int] = None, processed: int = 0) -> None:
        super().__init__(message)
        self.last_cycle_id = last_cycle_id
        self.processed = processed
