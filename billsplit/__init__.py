"""
billsplit - Source Package

Split allocation and balance ledger engine for a bill splitting app.

DESIGN PRINCIPLES:
1. Money is integer cents inside, Decimal at the edges
2. Shares always reconcile to the total, to the cent
3. What the user typed is never overwritten
4. Problems are states the user can see and fix, not crashes
5. Engines are pure functions; the app decides when to persist
"""

__version__ = "1.0.0"
__author__ = "billsplit Team"
