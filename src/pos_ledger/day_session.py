"""Day-session reconciliation for the cash drawer.

A day session is keyed by its calendar date (``YYYY-MM-DD``). Opening a day
declares the cash float and hard-sets the ``cash`` account to it; closing a
day records the counted cash. The expected closing balance is never kept up
to date incrementally: :func:`compute_expected_closing` derives it from the
transaction log each time, so edits to same-day transactions are reflected
without any recompute step.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Iterable, Optional

from . import log
from .constants import CASH_ACCOUNT_ID, PaymentMethod, SessionStatus, TransactionType
from .errors import DayNotOpenError
from .models import Account, DaySession, EntityStore, Transaction, ZERO, day_key, find_by_id


def today_key(now: Optional[datetime] = None) -> str:
    """Return the session key for ``now`` (defaults to the current UTC date)."""

    return day_key(now or datetime.now(UTC))


def get_session(store: EntityStore, day: str) -> Optional[DaySession]:
    for session in store.day_sessions:
        if session.date == day:
            return session
    return None


def _ensure_cash_account(store: EntityStore) -> Account:
    account = find_by_id(store.accounts, CASH_ACCOUNT_ID)
    if account is None:
        account = Account(id=CASH_ACCOUNT_ID, name="Cash Drawer")
        store.accounts.insert(0, account)
        log.warning("Cash account was missing; created '%s'", CASH_ACCOUNT_ID)
    return account


def open_day(store: EntityStore, opening_balance: Decimal, *, today: Optional[str] = None) -> DaySession:
    """Open (or re-open) the session for ``today`` with a declared cash float.

    Any session already stored under the same date is replaced. Sessions for
    other dates are left alone, even if still open. The ``cash`` account
    balance is set to ``opening_balance`` rather than adjusted by a delta.

    Args:
        store (EntityStore): Store holding sessions and accounts.
        opening_balance (Decimal): Cash float counted at day start.
        today (str | None): Session key override, mainly for tests.

    Returns:
        DaySession: The new ``OPEN`` session.
    """

    day = today or today_key()
    session = DaySession(
        date=day,
        opening_balance=opening_balance,
        expected_closing=opening_balance,
        actual_closing=None,
        status=SessionStatus.OPEN,
    )
    store.day_sessions[:] = [existing for existing in store.day_sessions if existing.date != day]
    store.day_sessions.insert(0, session)

    _ensure_cash_account(store).balance = opening_balance
    log.info("Opened day session '%s' with opening balance %s", day, opening_balance)
    return session


def close_day(store: EntityStore, actual_closing: Decimal, *, today: Optional[str] = None) -> Optional[DaySession]:
    """Close today's open session with the counted cash.

    The expected closing at that moment is stored on the session as a
    historical snapshot. The cash account is not corrected for the variance.

    Returns:
        DaySession | None: The closed session, or ``None`` when no session is
            open for ``today``.
    """

    day = today or today_key()
    session = get_session(store, day)
    if session is None or session.status is not SessionStatus.OPEN:
        log.warning("Close requested for day '%s' but no open session exists", day)
        return None

    session.expected_closing = compute_expected_closing(store, day)
    session.actual_closing = actual_closing
    session.status = SessionStatus.CLOSED
    log.info(
        "Closed day session '%s' (expected=%s, actual=%s)",
        day,
        session.expected_closing,
        actual_closing,
    )
    return session


def cash_movement(transaction: Transaction) -> Decimal:
    """Signed effect of ``transaction`` on the physical drawer.

    Transfers count when they move money into or out of the ``cash``
    account; every other type counts only when paid with ``CASH``.
    """

    kind = transaction.type
    if kind is TransactionType.TRANSFER:
        movement = ZERO
        if transaction.destination_account_id == CASH_ACCOUNT_ID and transaction.account_id:
            movement += transaction.amount
        if transaction.account_id == CASH_ACCOUNT_ID and transaction.destination_account_id:
            movement -= transaction.amount
        return movement
    if transaction.payment_method is not PaymentMethod.CASH:
        return ZERO
    if kind is TransactionType.SALE or kind is TransactionType.CREDIT_PAYMENT:
        return transaction.amount
    if kind is TransactionType.EXPENSE or kind is TransactionType.PURCHASE:
        return -transaction.amount
    return ZERO


def day_transactions(transactions: Iterable[Transaction], day: str) -> list[Transaction]:
    return [transaction for transaction in transactions if transaction.day == day]


def compute_expected_closing(store: EntityStore, day: Optional[str] = None) -> Decimal:
    """Opening float plus the day's cash inflows minus its cash outflows.

    Returns:
        Decimal: Expected drawer content, or zero when no session exists for
            ``day``.
    """

    day = day or today_key()
    session = get_session(store, day)
    opening = session.opening_balance if session is not None else ZERO
    movement = sum((cash_movement(transaction) for transaction in day_transactions(store.transactions, day)), ZERO)
    expected = opening + movement
    log.debug("Computed expected closing for '%s': %s", day, expected)
    return expected


def session_variance(store: EntityStore, day: Optional[str] = None) -> Optional[Decimal]:
    """Counted minus expected cash for a closed session, else ``None``."""

    session = get_session(store, day or today_key())
    if session is None or session.actual_closing is None:
        return None
    return session.actual_closing - compute_expected_closing(store, session.date)


def is_day_open(store: EntityStore, *, today: Optional[str] = None) -> bool:
    session = get_session(store, today or today_key())
    return session is not None and session.status is SessionStatus.OPEN


def require_open_session(store: EntityStore, *, today: Optional[str] = None) -> DaySession:
    """Gate revenue-generating operations on an open session for today.

    Raises:
        DayNotOpenError: If today has no session or it is already closed.
    """

    day = today or today_key()
    session = get_session(store, day)
    if session is None or session.status is not SessionStatus.OPEN:
        log.warning("Blocked operation: day session '%s' is not open", day)
        raise DayNotOpenError(f"Day session '{day}' is not open")
    return session


__all__ = [
    "DayNotOpenError",
    "today_key",
    "get_session",
    "open_day",
    "close_day",
    "cash_movement",
    "day_transactions",
    "compute_expected_closing",
    "session_variance",
    "is_day_open",
    "require_open_session",
]
