"""Exception hierarchy for POS Ledger business rules."""

from __future__ import annotations


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product, customer, account, or order is unknown."""


class DayNotOpenError(BusinessRuleViolation):
    """Raised when a sale is attempted without an open day session."""


class InvalidStateError(BusinessRuleViolation):
    """Raised when a record is not in a state that allows the operation."""


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "DayNotOpenError",
    "InvalidStateError",
]
