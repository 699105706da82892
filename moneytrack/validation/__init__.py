"""Draft validation package."""

from moneytrack.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
