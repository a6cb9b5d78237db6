"""Entity records and the in-memory store for POS Ledger.

Every business record is a dataclass. Records mutated over time (accounts,
customers, products, ...) are plain dataclasses; a :class:`Transaction` is
frozen because its impact is applied once at creation and never re-derived.

Records serialize to camelCase mappings through :meth:`Record.to_dict` and are
rebuilt through their ``from_dict`` constructors. The constructors are
deliberately forgiving: malformed numbers become zero, unknown enum tags fall
back to a default, and missing identifiers are generated, so snapshots written
by older versions or edited by hand still load.
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field, fields
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation, getcontext
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from .constants import (
    CASH_ACCOUNT_ID,
    DEFAULT_BANK_ACCOUNT_ID,
    DEFAULT_CATEGORY_ID,
    PaymentMethod,
    PurchaseOrderStatus,
    SessionStatus,
    TransactionType,
)


ZERO = Decimal("0")
MAX_QUANTITY_DIGITS = 15

E = TypeVar("E", bound=Enum)

_UNSAFE_ID_CHARS = re.compile(r"[/.\s#$\[\]]")


def _exponent_limit() -> int:
    # Half the context range, so a sum or product of two amounts cannot overflow.
    context = getcontext()
    return min(context.Emax, -context.Emin) // 2


def coerce_amount(value: Any, fallback: Decimal = ZERO) -> Decimal:
    """Convert ``value`` to a finite :class:`Decimal` without ever raising.

    Args:
        value (Any): Raw number, numeric string, ``Decimal`` or ``None``.
        fallback (Decimal): Value returned when ``value`` is not numeric.

    Returns:
        Decimal: The parsed amount, or ``fallback`` for ``None``, booleans,
            non-numeric strings, NaN, infinities and magnitudes so extreme
            that arithmetic on them would overflow the decimal context.
    """

    if value is None or isinstance(value, bool):
        return fallback
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return fallback
    if not amount.is_finite():
        return fallback
    if amount and abs(amount.adjusted()) > _exponent_limit():
        return fallback
    return amount


def coerce_quantity(value: Any, fallback: int = 0) -> int:
    """Convert ``value`` to an integer quantity, truncating fractions.

    Quantities with more than ``MAX_QUANTITY_DIGITS`` integer digits are
    treated as malformed and replaced by ``fallback``.
    """

    amount = coerce_amount(value, fallback=Decimal(fallback))
    if amount and amount.adjusted() >= MAX_QUANTITY_DIGITS:
        return fallback
    return int(amount)


def is_numeric(value: Any) -> bool:
    """Return ``True`` when :func:`coerce_amount` would parse ``value``."""

    sentinel = Decimal("NaN")
    return not coerce_amount(value, fallback=sentinel).is_nan()


def generate_id(prefix: str = "ID") -> str:
    """Return a high-entropy identifier such as ``SL-3F2A...``."""

    return f"{prefix}-{uuid.uuid4().hex.upper()}"


def sanitize_id(value: Any, *, prefix: str = "ID") -> str:
    """Normalize a caller supplied identifier into a storage-safe key.

    Blank values receive a freshly generated identifier. Separators that would
    break key paths in a blob store (``/``, ``.``, whitespace, ``#``, ``$``,
    brackets) are replaced by underscores.
    """

    if value is None or not str(value).strip():
        return generate_id(prefix)
    return _UNSAFE_ID_CHARS.sub("_", str(value).strip())


def parse_timestamp(value: Any, *, default: Optional[datetime] = None) -> Optional[datetime]:
    """Parse ISO-8601 strings (including a trailing ``Z``) into aware datetimes.

    Naive values are assumed to be UTC. Unparseable input yields ``default``.
    """

    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return default
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment


def day_key(moment: datetime) -> str:
    """Return the ``YYYY-MM-DD`` calendar key used to group a timestamp."""

    return moment.astimezone(UTC).date().isoformat()


def coerce_enum(enum_cls: Type[E], value: Any, default: E) -> E:
    """Map ``value`` onto ``enum_cls`` case-insensitively, else ``default``."""

    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        return default


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _text(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


def _as_list(value: Any) -> list:
    """Accept nested lists either as sequences or JSON-encoded text."""

    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if isinstance(value, Mapping):
        return []
    return list(value) if isinstance(value, Iterable) else []


def camel_case(name: str) -> str:
    """Convert ``snake_case`` field names to ``camelCase`` keys."""

    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


def _encode(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


class Record:
    """Mixin providing camelCase serialization for dataclass records."""

    def to_dict(self) -> dict[str, Any]:
        """Return a mapping of camelCase keys to plain values.

        ``Decimal`` values are kept as-is so callers decide how to render
        them; datetimes become ISO strings and enums their tag values.
        """

        return {camel_case(item.name): _encode(getattr(self, item.name)) for item in fields(self)}


@dataclass(frozen=True)
class LineItem(Record):
    """One product line of a transaction."""

    product_id: str
    quantity: int
    price: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        return cls(
            product_id=_text(data.get("productId")),
            quantity=coerce_quantity(data.get("quantity", data.get("qty"))),
            price=coerce_amount(data.get("price")),
        )


def _delta_pairs(value: Any, coerce: Any) -> tuple:
    if not isinstance(value, Mapping):
        return ()
    return tuple((str(key), coerce(delta)) for key, delta in value.items())


@dataclass(frozen=True)
class AppliedDeltas(Record):
    """The account, credit and stock deltas a transaction actually applied.

    Stored on the transaction when it is recorded so a later edit or delete
    undoes exactly these, whatever the store looks like by then.
    """

    accounts: Tuple[Tuple[str, Decimal], ...] = ()
    credit: Tuple[Tuple[str, Decimal], ...] = ()
    stock: Tuple[Tuple[str, int], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "accounts": dict(self.accounts),
            "credit": dict(self.credit),
            "stock": dict(self.stock),
        }

    @classmethod
    def from_value(cls, value: Any) -> Optional["AppliedDeltas"]:
        """Rebuild from a mapping or its JSON text; ``None`` when absent or unreadable."""

        if isinstance(value, AppliedDeltas):
            return value
        if isinstance(value, str) and value.strip():
            try:
                value = json.loads(value)
            except ValueError:
                return None
        if not isinstance(value, Mapping):
            return None
        return cls(
            accounts=_delta_pairs(value.get("accounts"), coerce_amount),
            credit=_delta_pairs(value.get("credit"), coerce_amount),
            stock=_delta_pairs(value.get("stock"), coerce_quantity),
        )


@dataclass(frozen=True)
class Transaction(Record):
    """Immutable record of a single business event.

    ``applied_deltas`` is ``None`` for transactions whose impact was never
    recorded, such as entries imported from older backups.
    """

    id: str
    date: datetime
    type: TransactionType
    amount: Decimal
    payment_method: PaymentMethod
    discount: Decimal = ZERO
    account_id: Optional[str] = None
    destination_account_id: Optional[str] = None
    customer_id: Optional[str] = None
    vendor_id: Optional[str] = None
    items: Tuple[LineItem, ...] = ()
    cheque_number: Optional[str] = None
    cheque_date: Optional[str] = None
    description: str = ""
    applied_deltas: Optional[AppliedDeltas] = None

    @property
    def day(self) -> str:
        return day_key(self.date)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        return cls(
            id=sanitize_id(data.get("id"), prefix="TX"),
            date=parse_timestamp(data.get("date"), default=datetime.now(UTC)),
            type=coerce_enum(TransactionType, data.get("type"), TransactionType.SALE),
            amount=coerce_amount(data.get("amount", data.get("total"))),
            payment_method=coerce_enum(PaymentMethod, data.get("paymentMethod"), PaymentMethod.CASH),
            discount=coerce_amount(data.get("discount")),
            account_id=_optional_text(data.get("accountId")),
            destination_account_id=_optional_text(data.get("destinationAccountId")),
            customer_id=_optional_text(data.get("customerId")),
            vendor_id=_optional_text(data.get("vendorId")),
            items=tuple(LineItem.from_dict(item) for item in _as_list(data.get("items")) if isinstance(item, Mapping)),
            cheque_number=_optional_text(data.get("chequeNumber")),
            cheque_date=_optional_text(data.get("chequeDate")),
            description=_text(data.get("description")),
            applied_deltas=AppliedDeltas.from_value(data.get("appliedDeltas")),
        )


@dataclass
class Account(Record):
    """A cash or bank liquidity node."""

    id: str
    name: str
    balance: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Account":
        return cls(
            id=sanitize_id(data.get("id"), prefix="ACC"),
            name=_text(data.get("name")),
            balance=coerce_amount(data.get("balance")),
        )


@dataclass
class Customer(Record):
    """Credit account holder."""

    id: str
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    credit_limit: Decimal = ZERO
    total_credit: Decimal = ZERO

    @property
    def remaining_credit(self) -> Decimal:
        return self.credit_limit - self.total_credit

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Customer":
        return cls(
            id=sanitize_id(data.get("id"), prefix="CUS"),
            name=_text(data.get("name")),
            phone=_text(data.get("phone")),
            email=_text(data.get("email")),
            address=_text(data.get("address")),
            credit_limit=coerce_amount(data.get("creditLimit")),
            total_credit=coerce_amount(data.get("totalCredit")),
        )


@dataclass
class Product(Record):
    """Inventory unit."""

    id: str
    sku: str
    name: str
    category_id: str = DEFAULT_CATEGORY_ID
    vendor_id: Optional[str] = None
    cost: Decimal = ZERO
    price: Decimal = ZERO
    stock: int = 0
    low_stock_threshold: int = 0

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        stock = data.get("stock")
        if stock is None:
            stock = data.get("qty")
        return cls(
            id=sanitize_id(data.get("id") or data.get("sku"), prefix="PRD"),
            sku=_text(data.get("sku") or data.get("id")),
            name=_text(data.get("name")),
            category_id=_optional_text(data.get("categoryId") or data.get("category")) or DEFAULT_CATEGORY_ID,
            vendor_id=_optional_text(data.get("vendorId")),
            cost=coerce_amount(data.get("cost")),
            price=coerce_amount(data.get("price")),
            stock=coerce_quantity(stock),
            low_stock_threshold=coerce_quantity(data.get("lowStockThreshold")),
        )


@dataclass
class Category(Record):
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Category":
        return cls(id=sanitize_id(data.get("id"), prefix="CAT"), name=_text(data.get("name")))


@dataclass
class Vendor(Record):
    """Supplier; ``total_balance`` is what the business owes for credit purchases."""

    id: str
    name: str
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    total_balance: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Vendor":
        return cls(
            id=sanitize_id(data.get("id"), prefix="VEN"),
            name=_text(data.get("name")),
            contact_person=_text(data.get("contactPerson")),
            email=_text(data.get("email")),
            phone=_text(data.get("phone")),
            address=_text(data.get("address")),
            total_balance=coerce_amount(data.get("totalBalance")),
        )


@dataclass(frozen=True)
class PurchaseOrderItem(Record):
    product_id: str
    quantity: int
    cost: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PurchaseOrderItem":
        return cls(
            product_id=_text(data.get("productId")),
            quantity=coerce_quantity(data.get("quantity")),
            cost=coerce_amount(data.get("cost")),
        )


@dataclass
class PurchaseOrder(Record):
    """Vendor intake request. Receiving it spawns a ``PURCHASE`` transaction."""

    id: str
    date: datetime
    vendor_id: str
    items: Tuple[PurchaseOrderItem, ...] = ()
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    total_amount: Decimal = ZERO
    payment_method: PaymentMethod = PaymentMethod.CASH
    account_id: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[str] = None
    received_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PurchaseOrder":
        items = tuple(
            PurchaseOrderItem.from_dict(item) for item in _as_list(data.get("items")) if isinstance(item, Mapping)
        )
        total = data.get("totalAmount")
        return cls(
            id=sanitize_id(data.get("id"), prefix="PO"),
            date=parse_timestamp(data.get("date"), default=datetime.now(UTC)),
            vendor_id=_text(data.get("vendorId")),
            items=items,
            status=coerce_enum(PurchaseOrderStatus, data.get("status"), PurchaseOrderStatus.DRAFT),
            total_amount=coerce_amount(total) if total is not None else purchase_order_total(items),
            payment_method=coerce_enum(PaymentMethod, data.get("paymentMethod"), PaymentMethod.CASH),
            account_id=_optional_text(data.get("accountId")),
            cheque_number=_optional_text(data.get("chequeNumber")),
            cheque_date=_optional_text(data.get("chequeDate")),
            received_date=parse_timestamp(data.get("receivedDate")),
        )


def purchase_order_total(items: Iterable[PurchaseOrderItem]) -> Decimal:
    """Sum ``quantity * cost`` across purchase order lines."""

    return sum((item.cost * item.quantity for item in items), ZERO)


@dataclass
class DaySession(Record):
    """Cash-drawer session for one calendar date."""

    date: str
    opening_balance: Decimal = ZERO
    expected_closing: Decimal = ZERO
    actual_closing: Optional[Decimal] = None
    status: SessionStatus = SessionStatus.OPEN

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DaySession":
        opening = coerce_amount(data.get("openingBalance"))
        actual = data.get("actualClosing")
        return cls(
            date=_text(data.get("date")),
            opening_balance=opening,
            expected_closing=coerce_amount(data.get("expectedClosing"), fallback=opening),
            actual_closing=coerce_amount(actual) if actual not in (None, "") else None,
            status=coerce_enum(SessionStatus, data.get("status"), SessionStatus.OPEN),
        )


@dataclass
class RecurringExpense(Record):
    """Template for an expense posted periodically (rent, utilities...)."""

    id: str
    description: str
    amount: Decimal = ZERO
    payment_method: PaymentMethod = PaymentMethod.CASH
    account_id: Optional[str] = None
    day_of_month: int = 1
    last_posted: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecurringExpense":
        return cls(
            id=sanitize_id(data.get("id"), prefix="RE"),
            description=_text(data.get("description")),
            amount=coerce_amount(data.get("amount")),
            payment_method=coerce_enum(PaymentMethod, data.get("paymentMethod"), PaymentMethod.CASH),
            account_id=_optional_text(data.get("accountId")),
            day_of_month=min(max(coerce_quantity(data.get("dayOfMonth"), fallback=1), 1), 31),
            last_posted=_optional_text(data.get("lastPosted")),
        )


@dataclass
class UserProfile(Record):
    name: str = "POS LEDGER"
    branch: str = "Main Terminal"
    is_admin: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        default = cls()
        return cls(
            name=_text(data.get("name"), default.name),
            branch=_text(data.get("branch"), default.branch),
            is_admin=_as_bool(data.get("isAdmin", default.is_admin)),
        )


@dataclass(frozen=True)
class CartLine(Record):
    product_id: str
    quantity: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartLine":
        return cls(
            product_id=_text(data.get("productId")),
            quantity=coerce_quantity(data.get("quantity", data.get("qty"))),
        )


@dataclass
class POSSession(Record):
    """Draft state of the point-of-sale screen, kept across restarts."""

    cart: Tuple[CartLine, ...] = ()
    discount: Decimal = ZERO
    discount_percent: Decimal = ZERO
    payment_method: PaymentMethod = PaymentMethod.CASH
    account_id: Optional[str] = CASH_ACCOUNT_ID
    search: str = ""
    cheque_number: str = ""
    cheque_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "POSSession":
        return cls(
            cart=tuple(CartLine.from_dict(line) for line in _as_list(data.get("cart")) if isinstance(line, Mapping)),
            discount=coerce_amount(data.get("discount")),
            discount_percent=coerce_amount(data.get("discountPercent")),
            payment_method=coerce_enum(PaymentMethod, data.get("paymentMethod"), PaymentMethod.CASH),
            account_id=_optional_text(data.get("accountId")),
            search=_text(data.get("search")),
            cheque_number=_text(data.get("chequeNumber")),
            cheque_date=_optional_text(data.get("chequeDate")),
        )


def default_accounts() -> List[Account]:
    """Liquidity accounts every fresh store starts with."""

    return [
        Account(id=CASH_ACCOUNT_ID, name="Cash Drawer"),
        Account(id=DEFAULT_BANK_ACCOUNT_ID, name="Main Bank Account"),
    ]


@dataclass
class EntityStore:
    """The complete business state, owned by a single runtime context.

    ``transactions`` is kept newest first.
    """

    products: List[Product] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    customers: List[Customer] = field(default_factory=list)
    vendors: List[Vendor] = field(default_factory=list)
    accounts: List[Account] = field(default_factory=default_accounts)
    purchase_orders: List[PurchaseOrder] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    day_sessions: List[DaySession] = field(default_factory=list)
    recurring_expenses: List[RecurringExpense] = field(default_factory=list)
    user_profile: UserProfile = field(default_factory=UserProfile)
    pos_session: POSSession = field(default_factory=POSSession)


R = TypeVar("R")


def find_by_id(records: Sequence[R], record_id: Optional[str]) -> Optional[R]:
    """Return the first record whose ``id`` equals ``record_id``."""

    if record_id is None:
        return None
    for record in records:
        if getattr(record, "id") == record_id:
            return record
    return None


def replace_by_id(records: List[R], record: R) -> bool:
    """Replace the record sharing ``record.id`` in place, else append it.

    Returns:
        bool: ``True`` when an existing record was replaced.
    """

    record_id = getattr(record, "id")
    for index, existing in enumerate(records):
        if getattr(existing, "id") == record_id:
            records[index] = record
            return True
    records.append(record)
    return False


def remove_by_id(records: List[R], record_id: str) -> Optional[R]:
    """Remove and return the record with ``record_id`` if present."""

    for index, existing in enumerate(records):
        if getattr(existing, "id") == record_id:
            return records.pop(index)
    return None


__all__ = [
    "ZERO",
    "coerce_amount",
    "coerce_quantity",
    "is_numeric",
    "generate_id",
    "sanitize_id",
    "parse_timestamp",
    "day_key",
    "coerce_enum",
    "camel_case",
    "Record",
    "LineItem",
    "AppliedDeltas",
    "Transaction",
    "Account",
    "Customer",
    "Product",
    "Category",
    "Vendor",
    "PurchaseOrderItem",
    "PurchaseOrder",
    "purchase_order_total",
    "DaySession",
    "RecurringExpense",
    "UserProfile",
    "CartLine",
    "POSSession",
    "default_accounts",
    "EntityStore",
    "find_by_id",
    "replace_by_id",
    "remove_by_id",
]
