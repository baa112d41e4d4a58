"""Top-level package for the rolling budget ledger.

The primary modules are:

* ``calculations`` – pure date and money arithmetic
* ``cycles`` / ``daily_records`` / ``recalculation`` – the ledger engine
* ``db`` – the SQLite ledger store
* ``ledger`` – the facade the application calls
* ``dashboard`` – a Streamlit page on top of the facade

To run the dashboard from the command line you can execute:

```bash
streamlit run rolling_budget/dashboard.py
```
"""

import logging

from .db import SQLiteLedgerStore
from .errors import (
    ConcurrentModification,
    DateOutOfRange,
    InvalidConfig,
    InvalidExpense,
    LedgerError,
    NoConfig,
    NotFound,
    RecalculationIncomplete,
)
from .ledger import BudgetLedger
from .models import BudgetStatus, CarryOverMode, CycleStatus

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'BudgetLedger',
    'SQLiteLedgerStore',
    'BudgetStatus',
    'CarryOverMode',
    'CycleStatus',
    'LedgerError',
    'InvalidConfig',
    'InvalidExpense',
    'NoConfig',
    'NotFound',
    'DateOutOfRange',
    'ConcurrentModification',
    'RecalculationIncomplete',
]
