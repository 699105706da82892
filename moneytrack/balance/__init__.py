"""Balance adjustment protocol and currency display helpers."""

from moneytrack.balance.adjuster import (
    AdjustmentJournal,
    AdjustmentStatus,
    BalanceAdjuster,
    PendingAdjustment,
    balance_deltas,
)
from moneytrack.balance.currency import (
    CURRENCY_SYMBOLS,
    EXCHANGE_RATES,
    convert_to_usd,
    currency_symbol,
    format_currency,
    total_balance_usd,
)

__all__ = [
    "AdjustmentJournal",
    "AdjustmentStatus",
    "BalanceAdjuster",
    "CURRENCY_SYMBOLS",
    "EXCHANGE_RATES",
    "PendingAdjustment",
    "balance_deltas",
    "convert_to_usd",
    "currency_symbol",
    "format_currency",
    "total_balance_usd",
]
