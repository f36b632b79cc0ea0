"""Validation package."""

from billsplit.validation.validator import ExpenseValidator

__all__ = ["ExpenseValidator"]
