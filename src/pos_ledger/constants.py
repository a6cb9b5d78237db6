"""Enumerations shared across POS Ledger modules.

Centralises domain constants so that the ledger engine, the day-session
reconciler, the persistence gateway, and the CLI rely on a single source of
truth for transaction tags and well-known identifiers.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating snapshots.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Versioned key under which the whole store snapshot is filed.
STORAGE_KEY = "pos-ledger-v1"

# Version tag written into JSON backups.
BACKUP_VERSION = "1.0_LOCAL"

CASH_ACCOUNT_ID = "cash"
DEFAULT_BANK_ACCOUNT_ID = "bank"
DEFAULT_CATEGORY_ID = "UNGROUPED"


class TransactionType(str, Enum):
    """Enumerate the business events the ledger engine understands."""

    SALE = "SALE"
    PURCHASE = "PURCHASE"
    EXPENSE = "EXPENSE"
    CREDIT_PAYMENT = "CREDIT_PAYMENT"
    TRANSFER = "TRANSFER"


class PaymentMethod(str, Enum):
    """Enumerate how money moved (or will move) for a transaction."""

    CASH = "CASH"
    BANK = "BANK"
    CARD = "CARD"
    CREDIT = "CREDIT"
    CHEQUE = "CHEQUE"


# Methods whose cash movement happens after the transaction is recorded.
DEFERRED_PAYMENT_METHODS = frozenset({PaymentMethod.CREDIT, PaymentMethod.CHEQUE})

INFLOW_TYPES = frozenset({TransactionType.SALE, TransactionType.CREDIT_PAYMENT})
OUTFLOW_TYPES = frozenset({TransactionType.EXPENSE, TransactionType.PURCHASE})


class PurchaseOrderStatus(str, Enum):
    """Lifecycle states of a vendor purchase order."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class SessionStatus(str, Enum):
    """States of a day session."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Collection(str, Enum):
    """Enumerate the snapshot collections, keyed as they appear in backups."""

    PRODUCTS = "products"
    CATEGORIES = "categories"
    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    PURCHASE_ORDERS = "purchaseOrders"
    VENDORS = "vendors"
    CUSTOMERS = "customers"
    USER_PROFILE = "userProfile"
    RECURRING_EXPENSES = "recurringExpenses"
    POS_SESSION = "posSession"
    DAY_SESSIONS = "daySessions"

    @property
    def sheet_name(self) -> str:
        """Worksheet title used for this collection in the store workbook."""

        return self.value[0].upper() + self.value[1:]


META_SHEET = "Meta"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "STORAGE_KEY",
    "BACKUP_VERSION",
    "CASH_ACCOUNT_ID",
    "DEFAULT_BANK_ACCOUNT_ID",
    "DEFAULT_CATEGORY_ID",
    "TransactionType",
    "PaymentMethod",
    "DEFERRED_PAYMENT_METHODS",
    "INFLOW_TYPES",
    "OUTFLOW_TYPES",
    "PurchaseOrderStatus",
    "SessionStatus",
    "Collection",
    "META_SHEET",
]
