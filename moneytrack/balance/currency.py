"""
Currency conversion for display totals.

Fixed rates only. The converted total is a display aggregate: nothing
here touches a stored balance.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from moneytrack.models.ledger import Account, Currency


# Units of USD per unit of currency
EXCHANGE_RATES: dict[str, Decimal] = {
    Currency.USD.value: Decimal("1"),
    Currency.UAH.value: Decimal("0.025"),
    Currency.EUR.value: Decimal("1.09"),
    Currency.GBP.value: Decimal("1.28"),
}

CURRENCY_SYMBOLS: dict[str, str] = {
    Currency.USD.value: "$",
    Currency.UAH.value: "₴",
    Currency.EUR.value: "€",
    Currency.GBP.value: "£",
}

CENTS = Decimal("0.01")


def _code(currency: Union[Currency, str]) -> str:
    return currency.value if isinstance(currency, Currency) else str(currency)


def convert_to_usd(amount: Union[Decimal, int, str], currency: Union[Currency, str]) -> Decimal:
    """Unknown currencies convert at 1:1."""
    return Decimal(amount) * EXCHANGE_RATES.get(_code(currency), Decimal("1"))


def total_balance_usd(accounts: Iterable[Account]) -> Decimal:
    """Sum of all balances in USD, rounded to cents."""
    total = sum(
        (convert_to_usd(account.balance, account.currency) for account in accounts),
        Decimal("0"),
    )
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def currency_symbol(currency: Union[Currency, str]) -> str:
    return CURRENCY_SYMBOLS.get(_code(currency), "$")


def format_currency(amount: Union[Decimal, int, str], currency: Union[Currency, str]) -> str:
    """Symbol followed by the amount with two decimals, e.g. "₴1000.00"."""
    value = Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"{currency_symbol(currency)}{value}"
