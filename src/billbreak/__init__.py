"""BillBreak - Track shared expenses and settle group debts."""

__version__ = "0.1.0"

from .balances import compute_balances
from .config import Settings, load_settings
from .db import Database
from .models import (
    Balance,
    Expense,
    Member,
    RecordedSettlement,
    SettlementTransaction,
    Split,
)
from .service import LedgerService
from .settlement import DEFAULT_EPSILON, apply_settlements, plan_settlements

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Balance",
    "Expense",
    "Member",
    "RecordedSettlement",
    "SettlementTransaction",
    "Split",
    "compute_balances",
    "plan_settlements",
    "apply_settlements",
    "DEFAULT_EPSILON",
    "LedgerService",
]
