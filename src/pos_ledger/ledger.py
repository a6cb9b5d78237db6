"""Ledger / impact engine for POS Ledger.

The engine is the single authority that turns a business event into balance
mutations. A call to :func:`record_transaction` normalizes a partial
descriptor, prepends it to the transaction log, plans the deltas it implies
for accounts, customer credit, and product stock, and applies them.

Planning and applying are separate steps. :func:`plan_impact` reads the store
but never writes to it, so every delta of a transaction is derived from the
same normalized snapshot. The resulting :class:`ImpactPlan` doubles as the
result of the operation: it lists the deltas that were applied and a typed
:class:`Skip` for each linked effect that was silently dropped. Nothing in
this module raises for malformed business data.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union, assert_never

from . import log
from .constants import (
    CASH_ACCOUNT_ID,
    DEFAULT_BANK_ACCOUNT_ID,
    DEFERRED_PAYMENT_METHODS,
    PaymentMethod,
    TransactionType,
)
from .models import (
    AppliedDeltas,
    EntityStore,
    Transaction,
    camel_case,
    coerce_enum,
    find_by_id,
    generate_id,
    is_numeric,
    parse_timestamp,
)


class SkipKind(str, Enum):
    """Why a linked effect of a transaction was not applied."""

    MISSING_ACCOUNT = "MISSING_ACCOUNT"
    UNKNOWN_ACCOUNT = "UNKNOWN_ACCOUNT"
    UNKNOWN_CUSTOMER = "UNKNOWN_CUSTOMER"
    UNKNOWN_PRODUCT = "UNKNOWN_PRODUCT"
    DEFERRED_PAYMENT = "DEFERRED_PAYMENT"
    MALFORMED_AMOUNT = "MALFORMED_AMOUNT"


@dataclass(frozen=True)
class Skip:
    kind: SkipKind
    detail: str


@dataclass
class ImpactPlan:
    """Deltas derived from one transaction, plus the effects that were skipped."""

    transaction: Transaction
    account_deltas: Dict[str, Decimal] = field(default_factory=dict)
    credit_deltas: Dict[str, Decimal] = field(default_factory=dict)
    stock_deltas: Dict[str, int] = field(default_factory=dict)
    skips: List[Skip] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        """``True`` when at least one non-zero delta is part of the plan."""

        return any(
            delta != 0
            for deltas in (self.account_deltas, self.credit_deltas, self.stock_deltas)
            for delta in deltas.values()
        )

    def skipped(self, kind: SkipKind) -> bool:
        return any(skip.kind is kind for skip in self.skips)

    def add_account_delta(self, account_id: str, delta: Decimal) -> None:
        self.account_deltas[account_id] = self.account_deltas.get(account_id, Decimal("0")) + delta

    def add_credit_delta(self, customer_id: str, delta: Decimal) -> None:
        self.credit_deltas[customer_id] = self.credit_deltas.get(customer_id, Decimal("0")) + delta

    def add_stock_delta(self, product_id: str, delta: int) -> None:
        self.stock_deltas[product_id] = self.stock_deltas.get(product_id, 0) + delta

    def skip(self, kind: SkipKind, detail: str) -> None:
        self.skips.append(Skip(kind=kind, detail=detail))

    def as_applied(self) -> AppliedDeltas:
        """Freeze the non-zero deltas of this plan for storage on the transaction."""

        return AppliedDeltas(
            accounts=tuple((key, value) for key, value in self.account_deltas.items() if value),
            credit=tuple((key, value) for key, value in self.credit_deltas.items() if value),
            stock=tuple((key, value) for key, value in self.stock_deltas.items() if value),
        )

    @classmethod
    def from_applied(cls, transaction: Transaction, applied: AppliedDeltas) -> "ImpactPlan":
        return cls(
            transaction=transaction,
            account_deltas=dict(applied.accounts),
            credit_deltas=dict(applied.credit),
            stock_deltas=dict(applied.stock),
        )

    def inverted(self) -> "ImpactPlan":
        """Return the compensating plan that undoes this one."""

        return ImpactPlan(
            transaction=self.transaction,
            account_deltas={key: -value for key, value in self.account_deltas.items()},
            credit_deltas={key: -value for key, value in self.credit_deltas.items()},
            stock_deltas={key: -value for key, value in self.stock_deltas.items()},
            skips=list(self.skips),
        )


PartialTransaction = Union[Mapping[str, Any], Transaction]

_ID_PREFIXES = {
    TransactionType.SALE: "SL",
    TransactionType.PURCHASE: "PU",
    TransactionType.EXPENSE: "EX",
    TransactionType.CREDIT_PAYMENT: "CP",
    TransactionType.TRANSFER: "TR",
}


def normalize_transaction(partial: PartialTransaction, *, now: Optional[datetime] = None) -> Transaction:
    """Fill identity and timestamp defaults and coerce numeric fields.

    Keys may be given in ``snake_case`` or ``camelCase``. ``amount`` and
    ``discount`` that are not numeric become zero; an absent ``id`` gets a
    generated one; an absent ``date`` becomes ``now``.

    Args:
        partial (Mapping | Transaction): Descriptor built by a caller. A
            :class:`Transaction` is returned unchanged.
        now (datetime | None): Timestamp used for a missing ``date``.
            Defaults to the current UTC time.

    Returns:
        Transaction: The frozen, fully populated transaction.
    """

    if isinstance(partial, Transaction):
        return partial
    data = {camel_case(str(key)): value for key, value in partial.items()}
    data["date"] = parse_timestamp(data.get("date"), default=now or datetime.now(UTC))
    if not data.get("id"):
        kind = coerce_enum(TransactionType, data.get("type"), TransactionType.SALE)
        data["id"] = generate_id(_ID_PREFIXES[kind])
    return Transaction.from_dict(data)


def malformed_amount_fields(partial: PartialTransaction) -> List[str]:
    if isinstance(partial, Transaction):
        return []
    data = {camel_case(str(key)): value for key, value in partial.items()}
    return [
        name
        for name in ("amount", "discount")
        if data.get(name) not in (None, "") and not is_numeric(data[name])
    ]


def liquidity_direction(kind: TransactionType) -> int:
    """Sign applied to the target account for a non-transfer transaction."""

    if kind is TransactionType.SALE or kind is TransactionType.CREDIT_PAYMENT:
        return 1
    elif kind is TransactionType.EXPENSE or kind is TransactionType.PURCHASE:
        return -1
    elif kind is TransactionType.TRANSFER:
        return 0
    else:
        assert_never(kind)


def resolve_target_account_id(transaction: Transaction, default_bank_account_id: str = DEFAULT_BANK_ACCOUNT_ID) -> str:
    """Pick the liquidity account a non-transfer transaction settles against."""

    if transaction.account_id:
        return transaction.account_id
    if transaction.payment_method is PaymentMethod.CASH:
        return CASH_ACCOUNT_ID
    return default_bank_account_id


def _plan_liquidity(store: EntityStore, transaction: Transaction, plan: ImpactPlan, default_bank_account_id: str) -> None:
    amount = transaction.amount
    if transaction.type is TransactionType.TRANSFER:
        if not transaction.account_id or not transaction.destination_account_id:
            plan.skip(SkipKind.MISSING_ACCOUNT, "transfer requires source and destination accounts")
            return
        source = find_by_id(store.accounts, transaction.account_id)
        destination = find_by_id(store.accounts, transaction.destination_account_id)
        if source is None or destination is None:
            missing = transaction.account_id if source is None else transaction.destination_account_id
            plan.skip(SkipKind.UNKNOWN_ACCOUNT, f"unknown account '{missing}'")
            return
        plan.add_account_delta(source.id, -amount)
        plan.add_account_delta(destination.id, amount)
        return

    if transaction.payment_method in DEFERRED_PAYMENT_METHODS:
        plan.skip(SkipKind.DEFERRED_PAYMENT, f"{transaction.payment_method.value} settles outside liquidity accounts")
        return

    target_id = resolve_target_account_id(transaction, default_bank_account_id)
    account = find_by_id(store.accounts, target_id)
    if account is None:
        plan.skip(SkipKind.UNKNOWN_ACCOUNT, f"unknown account '{target_id}'")
        return
    plan.add_account_delta(account.id, amount * liquidity_direction(transaction.type))


def _plan_credit(store: EntityStore, transaction: Transaction, plan: ImpactPlan) -> None:
    if not transaction.customer_id:
        return
    if transaction.type is TransactionType.SALE and transaction.payment_method is PaymentMethod.CREDIT:
        delta = transaction.amount
    elif transaction.type is TransactionType.CREDIT_PAYMENT:
        delta = -transaction.amount
    else:
        return
    customer = find_by_id(store.customers, transaction.customer_id)
    if customer is None:
        plan.skip(SkipKind.UNKNOWN_CUSTOMER, f"unknown customer '{transaction.customer_id}'")
        return
    plan.add_credit_delta(customer.id, delta)


def _plan_inventory(store: EntityStore, transaction: Transaction, plan: ImpactPlan) -> None:
    sign = -1 if transaction.type is TransactionType.SALE else 1
    for item in transaction.items:
        product = find_by_id(store.products, item.product_id)
        if product is None:
            plan.skip(SkipKind.UNKNOWN_PRODUCT, f"unknown product '{item.product_id}'")
            continue
        plan.add_stock_delta(product.id, sign * item.quantity)


def plan_impact(
    store: EntityStore,
    transaction: Transaction,
    *,
    default_bank_account_id: str = DEFAULT_BANK_ACCOUNT_ID,
) -> ImpactPlan:
    """Derive every delta implied by ``transaction`` without mutating ``store``.

    Args:
        store (EntityStore): Store used to resolve account, customer, and
            product references.
        transaction (Transaction): Normalized transaction.
        default_bank_account_id (str): Account used for non-cash methods when
            the transaction names no account.

    Returns:
        ImpactPlan: Account, credit, and stock deltas plus skipped effects.
    """

    plan = ImpactPlan(transaction=transaction)
    _plan_liquidity(store, transaction, plan, default_bank_account_id)
    _plan_credit(store, transaction, plan)
    _plan_inventory(store, transaction, plan)
    return plan


def apply_impact(store: EntityStore, plan: ImpactPlan) -> None:
    """Apply the deltas of ``plan`` to the records of ``store``.

    References that disappeared since planning are ignored.
    """

    for account_id, delta in plan.account_deltas.items():
        account = find_by_id(store.accounts, account_id)
        if account is not None:
            account.balance += delta
    for customer_id, delta in plan.credit_deltas.items():
        customer = find_by_id(store.customers, customer_id)
        if customer is not None:
            customer.total_credit += delta
    for product_id, delta in plan.stock_deltas.items():
        product = find_by_id(store.products, product_id)
        if product is not None:
            product.stock += delta


def _log_skips(plan: ImpactPlan) -> None:
    for skip in plan.skips:
        if skip.kind is SkipKind.DEFERRED_PAYMENT:
            log.debug("Transaction '%s': %s", plan.transaction.id, skip.detail)
        else:
            log.warning("Transaction '%s' skipped effect %s: %s", plan.transaction.id, skip.kind.value, skip.detail)


def apply_transaction(
    store: EntityStore,
    transaction: Transaction,
    *,
    default_bank_account_id: str = DEFAULT_BANK_ACCOUNT_ID,
    malformed_fields: Sequence[str] = (),
) -> ImpactPlan:
    """Plan and apply the impact of ``transaction``.

    The returned ``plan.transaction`` carries the applied deltas so the
    impact can later be reversed without re-planning.
    """

    plan = plan_impact(store, transaction, default_bank_account_id=default_bank_account_id)
    for name in malformed_fields:
        plan.skip(SkipKind.MALFORMED_AMOUNT, f"non-numeric {name} treated as zero")
    apply_impact(store, plan)
    _log_skips(plan)
    plan.transaction = replace(transaction, applied_deltas=plan.as_applied())
    return plan


def record_transaction(
    store: EntityStore,
    partial: PartialTransaction,
    *,
    default_bank_account_id: str = DEFAULT_BANK_ACCOUNT_ID,
    now: Optional[datetime] = None,
) -> ImpactPlan:
    """Normalize, log, and apply a business event.

    The transaction is prepended to ``store.transactions`` and its impact is
    applied exactly once. Missing relations and unknown references degrade to
    skipped effects; the transaction is logged regardless.

    Args:
        store (EntityStore): Store to mutate.
        partial (Mapping | Transaction): Descriptor lacking id/date defaults.
        default_bank_account_id (str): Fallback account for non-cash methods.
        now (datetime | None): Clock override for the default ``date``.

    Returns:
        ImpactPlan: The applied plan; ``plan.transaction`` is the logged record.
    """

    malformed = malformed_amount_fields(partial)
    transaction = normalize_transaction(partial, now=now)
    plan = apply_transaction(
        store,
        transaction,
        default_bank_account_id=default_bank_account_id,
        malformed_fields=malformed,
    )
    store.transactions.insert(0, plan.transaction)
    log.info(
        "Recorded %s transaction '%s' (amount=%s, method=%s)",
        transaction.type.value,
        transaction.id,
        transaction.amount,
        transaction.payment_method.value,
    )
    return plan


def reverse_impact(
    store: EntityStore,
    transaction: Transaction,
    *,
    default_bank_account_id: str = DEFAULT_BANK_ACCOUNT_ID,
) -> ImpactPlan:
    """Apply the compensating deltas of a previously recorded transaction.

    The deltas recorded on ``transaction.applied_deltas`` are inverted as
    they are, so references created or re-pointed since the sale do not
    change what gets undone. Transactions without recorded deltas are
    re-planned against the current store. The log itself is left
    untouched; callers remove or replace the entry.
    """

    if transaction.applied_deltas is not None:
        plan = ImpactPlan.from_applied(transaction, transaction.applied_deltas).inverted()
    else:
        log.warning("Transaction '%s' has no recorded impact; re-planning against the current store", transaction.id)
        plan = plan_impact(store, transaction, default_bank_account_id=default_bank_account_id).inverted()
    apply_impact(store, plan)
    log.info("Reversed impact of transaction '%s'", transaction.id)
    return plan


__all__ = [
    "SkipKind",
    "Skip",
    "ImpactPlan",
    "PartialTransaction",
    "normalize_transaction",
    "malformed_amount_fields",
    "liquidity_direction",
    "resolve_target_account_id",
    "plan_impact",
    "apply_impact",
    "apply_transaction",
    "record_transaction",
    "reverse_impact",
]
