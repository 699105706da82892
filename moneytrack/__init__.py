"""
moneytrack - Source Package

Client-side consistency layer for a personal-finance tracker whose
accounts and expenses live in a hosted row store.

DESIGN PRINCIPLES:
1. The remote store is the source of truth
2. Every in-memory list can be rebuilt by a reload
3. The Main Account is a per-user singleton and is never deleted
4. Failures surface, they are never silently masked
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "moneytrack Team"
