"""Business logic layer for POS Ledger.

This module orchestrates the ledger engine and the day-session reconciler on
top of an explicit :class:`RuntimeContext`. It owns the rules that sit around
the engine (the sales gate, purchase-order lifecycle, compensating edits) and
the read views used by the CLI. Every command that mutates the store notifies
the snapshot scheduler afterwards; no function here writes to disk directly.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from . import data_manager, day_session, ledger, log
from .constants import (
    CASH_ACCOUNT_ID,
    EXPECTED_SCHEMA_VERSION,
    INFLOW_TYPES,
    OUTFLOW_TYPES,
    PaymentMethod,
    PurchaseOrderStatus,
    TransactionType,
)
from .errors import BusinessRuleViolation, DayNotOpenError, InvalidStateError, MissingReferenceError
from .ledger import ImpactPlan
from .models import (
    ZERO,
    Account,
    CartLine,
    Category,
    Customer,
    DaySession,
    EntityStore,
    POSSession,
    Product,
    PurchaseOrder,
    RecurringExpense,
    Transaction,
    UserProfile,
    Vendor,
    camel_case,
    day_key,
    find_by_id,
    purchase_order_total,
    remove_by_id,
    replace_by_id,
    sanitize_id,
)
from .persistence import CloudSync, OfflineSync, SnapshotScheduler


# Credit limit granted to customers created without an explicit limit.
DEFAULT_CREDIT_LIMIT = Decimal("5000")


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, the live store, and its persistence hooks."""

    settings: data_manager.ConfigSettings
    store: EntityStore
    scheduler: SnapshotScheduler
    sync: CloudSync = field(default_factory=OfflineSync, repr=False, compare=False)


@dataclass(frozen=True)
class CheckoutCommand:
    """User intent for completing a point-of-sale checkout."""

    cart: Tuple[CartLine, ...]
    payment_method: PaymentMethod = PaymentMethod.CASH
    discount: Decimal = ZERO
    account_id: Optional[str] = None
    customer_id: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ChequeEvent:
    """A cheque expected to clear on or after today."""

    direction: str
    reference: str
    amount: Decimal
    entity: str
    description: str
    date: str


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def _today(now: Optional[datetime] = None) -> str:
    return day_key(_resolve_timestamp(now))


def _schedule(context: RuntimeContext) -> None:
    context.scheduler.schedule(context.store)


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {camel_case(str(key)): value for key, value in data.items()}


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and the persisted store.

    The helper resolves ``config.ini``, parses settings, and loads the store
    workbook. A missing or unreadable workbook yields the default store (the
    data layer logs the reason), so a fresh installation starts empty instead
    of failing.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Context bundling settings, store, and a scheduler that
            writes back to ``settings.data_file``.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    store = data_manager.load_store(settings.data_file)
    scheduler = SnapshotScheduler(settings.data_file, delay_seconds=settings.flush_delay_seconds)
    log.info("Loaded runtime context for store '%s'", settings.data_file)
    return RuntimeContext(settings=settings, store=store, scheduler=scheduler)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate configuration compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Store schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Store schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> bool:
    """Write the current store to disk synchronously.

    Any pending debounced write is superseded by this one. Returns ``False``
    when the write failed; the store stays authoritative in memory.
    """
    context.scheduler.schedule(context.store)
    return context.scheduler.flush_now()


def close_runtime_context(context: RuntimeContext) -> None:
    """Flush pending writes and stop the scheduler."""

    context.scheduler.shutdown()


def sync_context(context: RuntimeContext) -> bool:
    """Offer the current snapshot to the configured cloud sync target."""

    return context.sync.push(data_manager.snapshot_store(context.store))


# --- Ledger commands -------------------------------------------------------


def record_transaction(
    context: RuntimeContext,
    partial: ledger.PartialTransaction,
    *,
    now: Optional[datetime] = None,
) -> ImpactPlan:
    """Record a business event through the ledger engine.

    Args:
        context (RuntimeContext): Runtime context holding the store.
        partial (Mapping | Transaction): Transaction descriptor; ``id`` and
            ``date`` may be omitted.
        now (datetime | None): Clock override used for a missing ``date``.

    Returns:
        ImpactPlan: Applied deltas and skipped effects.
    """
    plan = ledger.record_transaction(
        context.store,
        partial,
        default_bank_account_id=context.settings.default_bank_account_id,
        now=_resolve_timestamp(now),
    )
    _schedule(context)
    return plan


def update_transaction(context: RuntimeContext, transaction_id: str, changes: Mapping[str, Any]) -> ImpactPlan:
    """Replace a logged transaction and rebalance the store.

    The stored transaction's impact is reversed first, then the replacement
    (the original merged with ``changes``) is applied. The identifier and the
    position in the log are kept.

    Raises:
        MissingReferenceError: If ``transaction_id`` is not in the log.
    """
    original = get_transaction(context, transaction_id)
    bank_id = context.settings.default_bank_account_id
    ledger.reverse_impact(context.store, original, default_bank_account_id=bank_id)

    merged = {**original.to_dict(), **_normalize_keys(changes), "id": original.id}
    merged.pop("appliedDeltas", None)
    replacement = ledger.normalize_transaction(merged, now=original.date)
    plan = ledger.apply_transaction(
        context.store,
        replacement,
        default_bank_account_id=bank_id,
        malformed_fields=ledger.malformed_amount_fields(changes),
    )
    index = context.store.transactions.index(original)
    context.store.transactions[index] = plan.transaction
    _schedule(context)
    log.info("Updated transaction '%s'", transaction_id)
    return plan


def delete_transaction(context: RuntimeContext, transaction_id: str) -> Transaction:
    """Reverse a transaction's impact and remove it from the log.

    Raises:
        MissingReferenceError: If ``transaction_id`` is not in the log.
    """
    transaction = get_transaction(context, transaction_id)
    ledger.reverse_impact(
        context.store,
        transaction,
        default_bank_account_id=context.settings.default_bank_account_id,
    )
    context.store.transactions.remove(transaction)
    _schedule(context)
    log.info("Deleted transaction '%s'", transaction_id)
    return transaction


def open_day(context: RuntimeContext, opening_balance: Decimal, *, now: Optional[datetime] = None) -> DaySession:
    session = day_session.open_day(context.store, opening_balance, today=_today(now))
    _schedule(context)
    return session


def close_day(context: RuntimeContext, actual_closing: Decimal, *, now: Optional[datetime] = None) -> Optional[DaySession]:
    """Close today's session; returns ``None`` (and writes nothing) when none is open."""

    session = day_session.close_day(context.store, actual_closing, today=_today(now))
    if session is not None:
        _schedule(context)
    return session


def checkout_sale(context: RuntimeContext, command: CheckoutCommand) -> ImpactPlan:
    """Validate a POS cart and record it as a ``SALE`` transaction.

    The workflow requires an open day session for today, resolves every cart
    line to a known product, merges lines of the same product, checks the
    merged quantity against stock, totals ``price * quantity`` less the
    discount (never below zero), and records the sale with its line items so
    the engine decrements stock. Credit sales must name a known
    customer; exceeding the remaining credit limit is logged but allowed.

    Args:
        context (RuntimeContext): Runtime context holding the store.
        command (CheckoutCommand): Structured intent describing the checkout.

    Returns:
        ImpactPlan: The plan of the recorded sale.

    Raises:
        DayNotOpenError: If today's day session is not open.
        BusinessRuleViolation: If the cart is empty, a product lacks stock,
            or a credit sale names no customer.
        MissingReferenceError: If a product or the customer is unknown.
        ValueError: When a cart quantity is not positive or the discount is
            negative.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    day_session.require_open_session(context.store, today=day_key(timestamp))
    if not command.cart:
        raise BusinessRuleViolation("Cannot check out an empty cart")
    require_nonnegative_money(command.discount)

    # Stock is checked against the quantity merged per product.
    requested: Counter = Counter()
    for line in command.cart:
        require_positive_quantity(line.quantity)
        requested[get_product(context, line.product_id).id] += line.quantity

    items = []
    subtotal = ZERO
    for product_id, quantity in requested.items():
        product = get_product(context, product_id)
        if product.stock < quantity:
            log.warning(
                "Checkout blocked: product '%s' has %s in stock, %s requested",
                product.id,
                product.stock,
                quantity,
            )
            raise BusinessRuleViolation(f"Product '{product.sku}' is out of stock")
        subtotal += product.price * quantity
        items.append({"productId": product.id, "quantity": quantity, "price": product.price})
    total = max(subtotal - command.discount, ZERO)

    customer = None
    if command.payment_method is PaymentMethod.CREDIT:
        if not command.customer_id:
            raise BusinessRuleViolation("Credit sales require a customer")
        customer = get_customer(context, command.customer_id)
        if total > customer.remaining_credit:
            log.warning(
                "Credit sale of %s exceeds remaining limit %s for customer '%s'",
                total,
                customer.remaining_credit,
                customer.id,
            )
    elif command.customer_id:
        customer = get_customer(context, command.customer_id)

    description = f"POS Sale: {len(items)} items via {command.payment_method.value}"
    if customer is not None:
        description += f" to Customer ID {customer.id}"

    return record_transaction(
        context,
        {
            "type": TransactionType.SALE,
            "date": timestamp,
            "amount": total,
            "discount": command.discount,
            "paymentMethod": command.payment_method,
            "accountId": command.account_id,
            "customerId": customer.id if customer is not None else None,
            "items": items,
            "chequeNumber": command.cheque_number,
            "chequeDate": command.cheque_date,
            "description": description,
        },
    )


def receive_purchase_order(context: RuntimeContext, order_id: str, *, now: Optional[datetime] = None) -> ImpactPlan:
    """Receive a pending purchase order into stock and the ledger.

    The order is marked ``RECEIVED``, each known product's cost basis is
    updated to the order cost, and a ``PURCHASE`` transaction carrying the
    order lines is recorded (the engine adds the quantities to stock and
    debits the paying account). Credit orders increase the vendor balance.

    Raises:
        MissingReferenceError: If ``order_id`` is unknown.
        InvalidStateError: If the order is not ``PENDING``.
    """
    order = get_purchase_order(context, order_id)
    if order.status is not PurchaseOrderStatus.PENDING:
        log.warning("Cannot receive purchase order '%s' in status %s", order.id, order.status.value)
        raise InvalidStateError(f"Purchase order '{order.id}' is {order.status.value}, expected PENDING")

    timestamp = _resolve_timestamp(now)
    order.status = PurchaseOrderStatus.RECEIVED
    order.received_date = timestamp
    for item in order.items:
        product = find_by_id(context.store.products, item.product_id)
        if product is not None:
            product.cost = item.cost

    plan = record_transaction(
        context,
        {
            "type": TransactionType.PURCHASE,
            "date": timestamp,
            "amount": order.total_amount,
            "paymentMethod": order.payment_method,
            "accountId": order.account_id,
            "vendorId": order.vendor_id,
            "items": [
                {"productId": item.product_id, "quantity": item.quantity, "price": item.cost}
                for item in order.items
            ],
            "chequeNumber": order.cheque_number,
            "chequeDate": order.cheque_date,
            "description": f"Stock Received against PO: {order.id}",
        },
    )

    if order.payment_method is PaymentMethod.CREDIT:
        vendor = find_by_id(context.store.vendors, order.vendor_id)
        if vendor is None:
            log.warning("Vendor '%s' of purchase order '%s' is unknown; balance not updated", order.vendor_id, order.id)
        else:
            vendor.total_balance += order.total_amount
    _schedule(context)
    log.info("Received purchase order '%s' (total=%s)", order.id, order.total_amount)
    return plan


def finalize_purchase_order(context: RuntimeContext, order_id: str) -> PurchaseOrder:
    """Move a ``DRAFT`` order to ``PENDING``."""

    order = get_purchase_order(context, order_id)
    if order.status is not PurchaseOrderStatus.DRAFT:
        raise InvalidStateError(f"Purchase order '{order.id}' is {order.status.value}, expected DRAFT")
    order.status = PurchaseOrderStatus.PENDING
    _schedule(context)
    log.info("Finalized purchase order '%s'", order.id)
    return order


def cancel_purchase_order(context: RuntimeContext, order_id: str) -> PurchaseOrder:
    order = get_purchase_order(context, order_id)
    if order.status in (PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED):
        raise InvalidStateError(f"Purchase order '{order.id}' is already {order.status.value}")
    order.status = PurchaseOrderStatus.CANCELLED
    _schedule(context)
    log.info("Cancelled purchase order '%s'", order.id)
    return order


def post_recurring_expense(context: RuntimeContext, expense_id: str, *, now: Optional[datetime] = None) -> ImpactPlan:
    """Record an ``EXPENSE`` from a recurring template, once per calendar month.

    Raises:
        MissingReferenceError: If ``expense_id`` is unknown.
        InvalidStateError: If the template was already posted this month.
    """
    expense = get_recurring_expense(context, expense_id)
    timestamp = _resolve_timestamp(now)
    today = day_key(timestamp)
    if expense.last_posted and expense.last_posted[:7] == today[:7]:
        raise InvalidStateError(f"Recurring expense '{expense.id}' already posted for {today[:7]}")

    plan = record_transaction(
        context,
        {
            "type": TransactionType.EXPENSE,
            "date": timestamp,
            "amount": expense.amount,
            "paymentMethod": expense.payment_method,
            "accountId": expense.account_id,
            "description": f"Recurring: {expense.description}",
        },
    )
    expense.last_posted = today
    _schedule(context)
    return plan


# --- Entity maintenance ----------------------------------------------------


def _upsert_record(
    context: RuntimeContext,
    records: List[Any],
    record_type: Type[Any],
    data: Mapping[str, Any],
    *,
    label: str,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Any:
    payload = _normalize_keys(data)
    existing = None
    if payload.get("id"):
        payload["id"] = sanitize_id(payload["id"])
        existing = find_by_id(records, payload["id"])
    if existing is not None:
        payload = {**existing.to_dict(), **payload}
    elif defaults:
        payload = {**defaults, **payload}

    record = record_type.from_dict(payload)
    replaced = replace_by_id(records, record)
    _schedule(context)
    log.info("%s %s '%s'", "Updated" if replaced else "Created", label, record.id)
    return record


def _delete_record(context: RuntimeContext, records: List[Any], record_id: str, *, label: str) -> Any:
    record = remove_by_id(records, record_id)
    if record is None:
        log.warning("%s lookup failed for id '%s'", label.capitalize(), record_id)
        raise MissingReferenceError(f"Unknown {label} id: {record_id}")
    _schedule(context)
    log.info("Deleted %s '%s'", label, record_id)
    return record


def upsert_product(context: RuntimeContext, data: Mapping[str, Any]) -> Product:
    """Create or update a product.

    Fields absent from ``data`` keep their stored values, so editing a
    product's name never resets its stock.
    """
    return _upsert_record(context, context.store.products, Product, data, label="product")


def upsert_category(context: RuntimeContext, data: Mapping[str, Any]) -> Category:
    return _upsert_record(context, context.store.categories, Category, data, label="category")


def upsert_customer(context: RuntimeContext, data: Mapping[str, Any]) -> Customer:
    """Create or update a customer; new customers default to a 5000 credit limit."""

    return _upsert_record(
        context,
        context.store.customers,
        Customer,
        data,
        label="customer",
        defaults={"creditLimit": DEFAULT_CREDIT_LIMIT},
    )


def upsert_vendor(context: RuntimeContext, data: Mapping[str, Any]) -> Vendor:
    return _upsert_record(context, context.store.vendors, Vendor, data, label="vendor")


def upsert_account(context: RuntimeContext, data: Mapping[str, Any]) -> Account:
    return _upsert_record(context, context.store.accounts, Account, data, label="account")


def upsert_recurring_expense(context: RuntimeContext, data: Mapping[str, Any]) -> RecurringExpense:
    return _upsert_record(
        context,
        context.store.recurring_expenses,
        RecurringExpense,
        data,
        label="recurring expense",
    )


def upsert_purchase_order(context: RuntimeContext, data: Mapping[str, Any]) -> PurchaseOrder:
    """Create or update a purchase order.

    The order total is always recomputed from its lines.

    Raises:
        BusinessRuleViolation: If the order names no vendor or has no lines.
        InvalidStateError: If the stored order was already received.
    """
    payload = _normalize_keys(data)
    existing = None
    if payload.get("id"):
        existing = find_by_id(context.store.purchase_orders, sanitize_id(payload["id"]))
        if existing is not None and existing.status is PurchaseOrderStatus.RECEIVED:
            raise InvalidStateError(f"Purchase order '{existing.id}' was already received")

    candidate = PurchaseOrder.from_dict({**(existing.to_dict() if existing is not None else {}), **payload})
    if not candidate.vendor_id or not candidate.items:
        log.warning("Rejected purchase order without vendor or items")
        raise BusinessRuleViolation("Purchase orders require a vendor and at least one item")
    payload["totalAmount"] = purchase_order_total(candidate.items)

    return _upsert_record(context, context.store.purchase_orders, PurchaseOrder, payload, label="purchase order")


def delete_product(context: RuntimeContext, product_id: str) -> Product:
    return _delete_record(context, context.store.products, product_id, label="product")


def delete_category(context: RuntimeContext, category_id: str) -> Category:
    return _delete_record(context, context.store.categories, category_id, label="category")


def delete_customer(context: RuntimeContext, customer_id: str) -> Customer:
    return _delete_record(context, context.store.customers, customer_id, label="customer")


def delete_vendor(context: RuntimeContext, vendor_id: str) -> Vendor:
    return _delete_record(context, context.store.vendors, vendor_id, label="vendor")


def delete_account(context: RuntimeContext, account_id: str) -> Account:
    return _delete_record(context, context.store.accounts, account_id, label="account")


def delete_recurring_expense(context: RuntimeContext, expense_id: str) -> RecurringExpense:
    return _delete_record(context, context.store.recurring_expenses, expense_id, label="recurring expense")


def delete_purchase_order(context: RuntimeContext, order_id: str) -> PurchaseOrder:
    return _delete_record(context, context.store.purchase_orders, order_id, label="purchase order")


def update_user_profile(context: RuntimeContext, changes: Mapping[str, Any]) -> UserProfile:
    merged = {**context.store.user_profile.to_dict(), **_normalize_keys(changes)}
    context.store.user_profile = UserProfile.from_dict(merged)
    _schedule(context)
    return context.store.user_profile


def update_pos_session(context: RuntimeContext, changes: Mapping[str, Any]) -> POSSession:
    """Persist the draft state of the point-of-sale screen."""

    merged = {**context.store.pos_session.to_dict(), **_normalize_keys(changes)}
    context.store.pos_session = POSSession.from_dict(merged)
    _schedule(context)
    return context.store.pos_session


def import_backup(context: RuntimeContext, source: Path) -> Dict[str, int]:
    counts = data_manager.import_backup(context.store, source)
    _schedule(context)
    return counts


def export_backup(context: RuntimeContext, destination: Path, *, now: Optional[datetime] = None) -> Path:
    return data_manager.export_backup(context.store, destination, now=_resolve_timestamp(now))


# --- Read views ------------------------------------------------------------


def _lookup(records: Sequence[Any], record_id: str, label: str) -> Any:
    record = find_by_id(records, record_id)
    if record is None:
        log.warning("%s lookup failed for id '%s'", label.capitalize(), record_id)
        raise MissingReferenceError(f"Unknown {label} id: {record_id}")
    return record


def list_products(context: RuntimeContext) -> List[Product]:
    return list(context.store.products)


def list_customers(context: RuntimeContext) -> List[Customer]:
    return list(context.store.customers)


def list_vendors(context: RuntimeContext) -> List[Vendor]:
    return list(context.store.vendors)


def list_accounts(context: RuntimeContext) -> List[Account]:
    return list(context.store.accounts)


def list_categories(context: RuntimeContext) -> List[Category]:
    return list(context.store.categories)


def list_purchase_orders(context: RuntimeContext) -> List[PurchaseOrder]:
    return list(context.store.purchase_orders)


def list_recurring_expenses(context: RuntimeContext) -> List[RecurringExpense]:
    return list(context.store.recurring_expenses)


def list_day_sessions(context: RuntimeContext) -> List[DaySession]:
    return list(context.store.day_sessions)


def list_transactions(context: RuntimeContext, *, limit: Optional[int] = None) -> List[Transaction]:
    """Return logged transactions, newest first."""

    transactions = list(context.store.transactions)
    return transactions if limit is None else transactions[:limit]


def get_product(context: RuntimeContext, product_id: str) -> Product:
    """Resolve a product by identifier.

    Raises:
        MissingReferenceError: If ``product_id`` is unknown.
    """
    return _lookup(context.store.products, product_id, "product")


def get_customer(context: RuntimeContext, customer_id: str) -> Customer:
    return _lookup(context.store.customers, customer_id, "customer")


def get_vendor(context: RuntimeContext, vendor_id: str) -> Vendor:
    return _lookup(context.store.vendors, vendor_id, "vendor")


def get_account(context: RuntimeContext, account_id: str) -> Account:
    return _lookup(context.store.accounts, account_id, "account")


def get_purchase_order(context: RuntimeContext, order_id: str) -> PurchaseOrder:
    return _lookup(context.store.purchase_orders, order_id, "purchase order")


def get_recurring_expense(context: RuntimeContext, expense_id: str) -> RecurringExpense:
    return _lookup(context.store.recurring_expenses, expense_id, "recurring expense")


def get_transaction(context: RuntimeContext, transaction_id: str) -> Transaction:
    return _lookup(context.store.transactions, transaction_id, "transaction")


def calculate_day_report(context: RuntimeContext, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Summarize today's drawer: opening float, live expected, counted, variance.

    Returns:
        dict[str, Any]: ``date``, ``status`` (``None`` without a session),
            ``opening_balance``, ``expected_closing`` (recomputed from the
            log), ``actual_closing``, ``variance`` and ``cash_balance``.
    """
    today = _today(now)
    session = day_session.get_session(context.store, today)
    cash = find_by_id(context.store.accounts, CASH_ACCOUNT_ID)
    report = {
        "date": today,
        "status": session.status.value if session is not None else None,
        "opening_balance": session.opening_balance if session is not None else ZERO,
        "expected_closing": day_session.compute_expected_closing(context.store, today),
        "actual_closing": session.actual_closing if session is not None else None,
        "variance": day_session.session_variance(context.store, today),
        "cash_balance": cash.balance if cash is not None else ZERO,
    }
    log.debug("Calculated day report for '%s'", today)
    return report


def calculate_dashboard_summary(context: RuntimeContext, *, now: Optional[datetime] = None) -> Dict[str, Decimal]:
    """Produce today's headline figures.

    ``realized_inflow`` counts sales and credit payments not made on credit.
    ``realized_outflow`` counts expenses, purchases, and transfers with a
    source account. ``stock_valuation`` is ``cost * stock`` over all products.

    Returns:
        dict[str, Decimal]: ``today_sales``, ``realized_inflow``,
            ``realized_outflow`` and ``stock_valuation``.
    """
    today = _today(now)
    todays = day_session.day_transactions(context.store.transactions, today)
    today_sales = sum((t.amount for t in todays if t.type is TransactionType.SALE), ZERO)
    realized_inflow = sum(
        (t.amount for t in todays if t.type in INFLOW_TYPES and t.payment_method is not PaymentMethod.CREDIT),
        ZERO,
    )
    realized_outflow = sum(
        (
            t.amount
            for t in todays
            if t.type in OUTFLOW_TYPES or (t.type is TransactionType.TRANSFER and t.account_id)
        ),
        ZERO,
    )
    stock_valuation = sum((p.cost * p.stock for p in context.store.products), ZERO)
    log.debug(
        "Calculated dashboard summary: sales=%s inflow=%s outflow=%s stock=%s",
        today_sales,
        realized_inflow,
        realized_outflow,
        stock_valuation,
    )
    return {
        "today_sales": today_sales,
        "realized_inflow": realized_inflow,
        "realized_outflow": realized_outflow,
        "stock_valuation": stock_valuation,
    }


def list_low_stock_products(context: RuntimeContext) -> List[Product]:
    """Products at or below their threshold, lowest stock first."""

    return sorted((p for p in context.store.products if p.is_low_stock), key=lambda p: p.stock)


def list_upcoming_cheques(context: RuntimeContext, *, now: Optional[datetime] = None) -> List[ChequeEvent]:
    """Cheques maturing today or later, ordered by cheque date.

    Cheque transactions yield incoming events for sales and customer credit
    payments and outgoing events otherwise. Purchase orders paid by cheque
    contribute an outgoing event only while not yet received, since receiving
    an order records its own cheque transaction.
    """
    today = _today(now)
    store = context.store
    events: List[ChequeEvent] = []

    for t in store.transactions:
        if t.payment_method is not PaymentMethod.CHEQUE or not t.cheque_date or t.cheque_date < today:
            continue
        if t.type is TransactionType.SALE or (t.type is TransactionType.CREDIT_PAYMENT and t.customer_id):
            customer = find_by_id(store.customers, t.customer_id)
            events.append(
                ChequeEvent(
                    direction="IN",
                    reference=t.id,
                    amount=t.amount,
                    entity=customer.name if customer is not None else "Walk-in Client",
                    description="Sales Cheque Maturity" if t.type is TransactionType.SALE else "Credit Settlement Receipt",
                    date=t.cheque_date,
                )
            )
        elif t.type in OUTFLOW_TYPES or t.type is TransactionType.CREDIT_PAYMENT:
            vendor = find_by_id(store.vendors, t.vendor_id)
            events.append(
                ChequeEvent(
                    direction="OUT",
                    reference=t.id,
                    amount=t.amount,
                    entity=vendor.name if vendor is not None else "Payee",
                    description="Overhead Maturity" if t.type is TransactionType.EXPENSE else "Settlement Maturity",
                    date=t.cheque_date,
                )
            )

    for order in store.purchase_orders:
        if (
            order.status is not PurchaseOrderStatus.RECEIVED
            and order.payment_method is PaymentMethod.CHEQUE
            and order.cheque_date
            and order.cheque_date >= today
        ):
            vendor = find_by_id(store.vendors, order.vendor_id)
            events.append(
                ChequeEvent(
                    direction="OUT",
                    reference=order.id,
                    amount=order.total_amount,
                    entity=vendor.name if vendor is not None else "Supplier",
                    description="Inventory Purchase Cheque",
                    date=order.cheque_date,
                )
            )

    events.sort(key=lambda event: event.date)
    return events


def calculate_vendor_performance(context: RuntimeContext) -> List[Dict[str, Any]]:
    """Order count, received count, and total spent on received orders per vendor."""

    performance = []
    for vendor in context.store.vendors:
        orders = [order for order in context.store.purchase_orders if order.vendor_id == vendor.id]
        received = [order for order in orders if order.status is PurchaseOrderStatus.RECEIVED]
        performance.append(
            {
                "id": vendor.id,
                "name": vendor.name,
                "order_count": len(orders),
                "received_count": len(received),
                "total_spent": sum((order.total_amount for order in received), ZERO),
            }
        )
    return performance


def list_customer_history(context: RuntimeContext, customer_id: str) -> List[Transaction]:
    """Transactions linked to a customer, newest first.

    Raises:
        MissingReferenceError: If ``customer_id`` is unknown.
    """
    customer = get_customer(context, customer_id)
    return [t for t in context.store.transactions if t.customer_id == customer.id]


def calculate_outstanding_credit(context: RuntimeContext) -> Dict[str, Decimal]:
    """Map each customer with a positive receivable to the amount owed."""

    return {
        customer.id: customer.total_credit
        for customer in sorted(context.store.customers, key=lambda c: c.total_credit, reverse=True)
        if customer.total_credit > ZERO
    }


def require_positive_quantity(quantity: int) -> None:
    """Validate that a quantity is strictly positive.

    Raises:
        ValueError: If ``quantity`` is zero or negative.
    """
    if quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be greater than zero")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValueError: If ``amount`` is less than zero.
    """
    if amount < ZERO:
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "DayNotOpenError",
    "InvalidStateError",
    "DEFAULT_CREDIT_LIMIT",
    "RuntimeContext",
    "CheckoutCommand",
    "ChequeEvent",
    "load_runtime_context",
    "ensure_schema_version",
    "persist_context",
    "close_runtime_context",
    "sync_context",
    "record_transaction",
    "update_transaction",
    "delete_transaction",
    "open_day",
    "close_day",
    "checkout_sale",
    "receive_purchase_order",
    "finalize_purchase_order",
    "cancel_purchase_order",
    "post_recurring_expense",
    "upsert_product",
    "upsert_category",
    "upsert_customer",
    "upsert_vendor",
    "upsert_account",
    "upsert_recurring_expense",
    "upsert_purchase_order",
    "delete_product",
    "delete_category",
    "delete_customer",
    "delete_vendor",
    "delete_account",
    "delete_recurring_expense",
    "delete_purchase_order",
    "update_user_profile",
    "update_pos_session",
    "import_backup",
    "export_backup",
    "list_products",
    "list_customers",
    "list_vendors",
    "list_accounts",
    "list_categories",
    "list_purchase_orders",
    "list_recurring_expenses",
    "list_day_sessions",
    "list_transactions",
    "get_product",
    "get_customer",
    "get_vendor",
    "get_account",
    "get_purchase_order",
    "get_recurring_expense",
    "get_transaction",
    "calculate_day_report",
    "calculate_dashboard_summary",
    "list_low_stock_products",
    "list_upcoming_cheques",
    "calculate_vendor_performance",
    "list_customer_history",
    "calculate_outstanding_credit",
    "require_positive_quantity",
    "require_nonnegative_money",
]
