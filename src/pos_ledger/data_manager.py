"""Data access layer for POS Ledger.

This module provides the helpers that move the whole :class:`EntityStore` in
and out of storage. Business rules belong elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Snapshots: converting the store to and from a plain mapping keyed by
   collection name (``products``, ``purchaseOrders``, ...).
3. Workbook persistence: writing a snapshot as one worksheet per collection
   plus a ``Meta`` sheet carrying the versioned storage key, and reading it
   back.
4. Backups: exporting the snapshot as JSON and merging a JSON backup into a
   live store.
"""


from __future__ import annotations

import configparser
import json
from dataclasses import dataclass, fields
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import (
    BACKUP_VERSION,
    DEFAULT_BANK_ACCOUNT_ID,
    EXPECTED_SCHEMA_VERSION,
    META_SHEET,
    STORAGE_KEY,
    Collection,
)
from .models import (
    Account,
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
    coerce_amount,
    sanitize_id,
)


CONFIG_FILE_NAME = "config.ini"
DEFAULT_FLUSH_DELAY_SECONDS = 1.5


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    shop_name: str
    schema_version: str
    default_bank_account_id: str = DEFAULT_BANK_ACCOUNT_ID
    flush_delay_seconds: float = DEFAULT_FLUSH_DELAY_SECONDS


# Collections stored as lists, mapped to the store attribute and record type.
LIST_COLLECTIONS: Dict[Collection, Tuple[str, Type[Any]]] = {
    Collection.PRODUCTS: ("products", Product),
    Collection.CATEGORIES: ("categories", Category),
    Collection.TRANSACTIONS: ("transactions", Transaction),
    Collection.ACCOUNTS: ("accounts", Account),
    Collection.PURCHASE_ORDERS: ("purchase_orders", PurchaseOrder),
    Collection.VENDORS: ("vendors", Vendor),
    Collection.CUSTOMERS: ("customers", Customer),
    Collection.RECURRING_EXPENSES: ("recurring_expenses", RecurringExpense),
    Collection.DAY_SESSIONS: ("day_sessions", DaySession),
}

# Collections stored as a single record.
SINGLE_COLLECTIONS: Dict[Collection, Tuple[str, Type[Any]]] = {
    Collection.USER_PROFILE: ("user_profile", UserProfile),
    Collection.POS_SESSION: ("pos_session", POSSession),
}


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the
    current working directory looking for ``CONFIG_FILE_NAME``; the first
    match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` must define ``DataFile``, ``ShopName`` and ``SchemaVersion``.
    The ``[Defaults]`` section is optional; ``DefaultBankAccount`` and
    ``FlushDelaySeconds`` fall back to ``bank`` and 1.5 seconds. Relative
    data file paths are expanded against ``base_path`` (or the current
    working directory) and resolved.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory anchoring relative ``DataFile``
            entries.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing, or
            ``FlushDelaySeconds`` is not a number.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    default_bank = parser.get("Defaults", "DefaultBankAccount", fallback=DEFAULT_BANK_ACCOUNT_ID)
    try:
        flush_delay = parser.getfloat("Defaults", "FlushDelaySeconds", fallback=DEFAULT_FLUSH_DELAY_SECONDS)
    except ValueError as exc:
        raise KeyError(f"Invalid configuration entry FlushDelaySeconds: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        shop_name=shop_name,
        schema_version=schema_version,
        default_bank_account_id=default_bank,
        flush_delay_seconds=max(flush_delay, 0.0),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open a store workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def header_for(key: str) -> str:
    """Worksheet header for a camelCase snapshot key (``lowStockThreshold`` -> ``LowStockThreshold``)."""

    return key[:1].upper() + key[1:]


def key_for(header: Any) -> str:
    text = str(header)
    return text[:1].lower() + text[1:]


def record_headers(record_type: Type[Any]) -> List[str]:
    return [header_for(camel_case(item.name)) for item in fields(record_type)]


def snapshot_store(store: EntityStore) -> Dict[str, Any]:
    """Capture the whole store as a mapping of collection key to plain data.

    The snapshot is detached from the live store: later mutations of the
    store do not alter it.
    """

    snapshot: Dict[str, Any] = {}
    for collection, (attribute, _record_type) in LIST_COLLECTIONS.items():
        snapshot[collection.value] = [record.to_dict() for record in getattr(store, attribute)]
    for collection, (attribute, _record_type) in SINGLE_COLLECTIONS.items():
        snapshot[collection.value] = getattr(store, attribute).to_dict()
    return snapshot


def restore_store(snapshot: Mapping[str, Any]) -> EntityStore:
    """Rebuild an :class:`EntityStore` from a snapshot mapping.

    Missing collections keep their defaults (a fresh store has ``cash`` and
    ``bank`` accounts). Entries that are not mappings are ignored.
    """

    store = EntityStore()
    for collection, (attribute, record_type) in LIST_COLLECTIONS.items():
        raw_items = snapshot.get(collection.value)
        if raw_items is None:
            continue
        records = [record_type.from_dict(item) for item in raw_items if isinstance(item, Mapping)]
        setattr(store, attribute, records)
    for collection, (attribute, record_type) in SINGLE_COLLECTIONS.items():
        raw = snapshot.get(collection.value)
        if isinstance(raw, Mapping):
            setattr(store, attribute, record_type.from_dict(raw))
    return store


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(value: Any, **kwargs: Any) -> str:
    return json.dumps(value, default=_json_default, **kwargs)


def serialize_cell(value: Any) -> Any:
    """Convert a snapshot value into something a worksheet cell can hold.

    Nested sequences and mappings (line items, cart lines) are stored as JSON
    text. ``Decimal`` values are written as text because a numeric cell is
    read back as a float.
    """

    if isinstance(value, (list, tuple, dict)):
        return to_json(value)
    if isinstance(value, Decimal):
        return str(value)
    return value


def _write_sheet(workbook: Workbook, title: str, headers: List[str], rows: List[Mapping[str, Any]]) -> None:
    worksheet = workbook.create_sheet(title=title)
    bold_font = Font(bold=True)
    for column_index, header in enumerate(headers, start=1):
        cell = worksheet.cell(row=1, column=column_index, value=header)
        cell.font = bold_font
    for row in rows:
        worksheet.append([serialize_cell(row.get(key_for(header))) for header in headers])


def build_workbook(snapshot: Mapping[str, Any], *, saved_at: Optional[datetime] = None) -> Workbook:
    """Lay out a snapshot as a workbook.

    Each collection becomes a worksheet whose bold header row lists the
    record fields in PascalCase. The ``Meta`` sheet stores the storage key,
    schema version, and save timestamp.
    """

    workbook = openpyxl.Workbook()
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    for collection, (_attribute, record_type) in LIST_COLLECTIONS.items():
        rows = [row for row in snapshot.get(collection.value, []) if isinstance(row, Mapping)]
        _write_sheet(workbook, collection.sheet_name, record_headers(record_type), rows)
    for collection, (_attribute, record_type) in SINGLE_COLLECTIONS.items():
        raw = snapshot.get(collection.value)
        rows = [raw] if isinstance(raw, Mapping) else []
        _write_sheet(workbook, collection.sheet_name, record_headers(record_type), rows)

    meta = workbook.create_sheet(title=META_SHEET)
    meta.append(["Key", "Value"])
    for cell in meta[1]:
        cell.font = Font(bold=True)
    meta.append(["StorageKey", STORAGE_KEY])
    meta.append(["SchemaVersion", EXPECTED_SCHEMA_VERSION])
    meta.append(["SavedAt", (saved_at or datetime.now(UTC)).isoformat()])
    return workbook


def read_meta(workbook: Workbook) -> Dict[str, str]:
    """Return the ``Meta`` sheet as a key/value mapping.

    Raises:
        KeyError: If the workbook has no ``Meta`` sheet.
    """

    sheet = workbook[META_SHEET]
    return {
        str(key): str(value)
        for key, value in sheet.iter_rows(min_row=2, max_col=2, values_only=True)
        if key is not None
    }


def _iter_sheet_rows(workbook: Workbook, title: str) -> List[Dict[str, Any]]:
    if title not in workbook.sheetnames:
        return []
    sheet = workbook[title]
    rows = sheet.iter_rows(values_only=True)
    header_row = next(rows, None)
    if header_row is None:
        return []
    keys = [key_for(header) if header is not None else None for header in header_row]
    records = []
    for raw in rows:
        # skip fully empty rows
        if not any(cell is not None for cell in raw):
            continue
        records.append({key: value for key, value in zip(keys, raw) if key is not None})
    return records


def read_workbook_snapshot(workbook: Workbook) -> Dict[str, Any]:
    """Read every collection sheet of a store workbook into a snapshot.

    Raises:
        KeyError: If the ``Meta`` sheet is missing.
        ValueError: If the workbook was written under another storage key.
    """

    meta = read_meta(workbook)
    if meta.get("StorageKey") != STORAGE_KEY:
        raise ValueError(
            f"Workbook storage key mismatch: expected {STORAGE_KEY}, found {meta.get('StorageKey')}"
        )

    snapshot: Dict[str, Any] = {}
    for collection in LIST_COLLECTIONS:
        if collection.sheet_name in workbook.sheetnames:
            snapshot[collection.value] = _iter_sheet_rows(workbook, collection.sheet_name)
    for collection in SINGLE_COLLECTIONS:
        rows = _iter_sheet_rows(workbook, collection.sheet_name)
        if rows:
            snapshot[collection.value] = rows[0]
    return snapshot


def save_snapshot(snapshot: Mapping[str, Any], destination: Path, *, saved_at: Optional[datetime] = None) -> None:
    """Write ``snapshot`` as a store workbook at ``destination``."""

    save_workbook(build_workbook(snapshot, saved_at=saved_at), destination)


def save_store(store: EntityStore, destination: Path) -> None:
    save_snapshot(snapshot_store(store), destination)


def load_store(data_file: Path) -> EntityStore:
    """Load the store from a workbook, falling back to a fresh store.

    A missing file, an unreadable workbook, or a workbook written under a
    different storage key is logged and answered with the default initial
    state. The function never raises for storage problems.
    """

    try:
        workbook = open_workbook(data_file)
        snapshot = read_workbook_snapshot(workbook)
    except FileNotFoundError:
        log.warning("Store workbook '%s' not found; starting from the default state", data_file)
        return EntityStore()
    except Exception:
        log.exception("Failed to load store workbook '%s'; starting from the default state", data_file)
        return EntityStore()

    store = restore_store(snapshot)
    log.info(
        "Loaded store from '%s' (%d products, %d transactions)",
        data_file,
        len(store.products),
        len(store.transactions),
    )
    return store


def export_backup(store: EntityStore, destination: Path, *, now: Optional[datetime] = None) -> Path:
    """Write a JSON backup of every collection plus version and timestamp."""

    payload = snapshot_store(store)
    payload["version"] = BACKUP_VERSION
    payload["timestamp"] = (now or datetime.now(UTC)).isoformat()

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(to_json(payload, indent=2), encoding="utf-8")
    log.info("Exported backup to '%s'", dest)
    return dest


def _normalize_import_item(collection: Collection, item: Mapping[str, Any]) -> Dict[str, Any]:
    # Only fields present on the item are normalized so partial rows merge cleanly.
    normalized = dict(item)
    if collection is Collection.PRODUCTS:
        for key in ("name", "sku"):
            if key in item:
                normalized[key] = str(item[key] or "").upper()
        for key in ("price", "cost"):
            if key in item:
                normalized[key] = coerce_amount(item[key])
    elif collection is Collection.TRANSACTIONS:
        if "amount" in item or "total" in item:
            normalized["amount"] = coerce_amount(item.get("amount") or item.get("total"))
        if "type" in item:
            normalized["type"] = str(item["type"] or "SALE").upper()
    return normalized


def bulk_upsert(records: List[Any], record_type: Type[Any], collection: Collection, items: List[Any]) -> int:
    """Merge raw backup items into ``records`` by sanitized identifier.

    Incoming fields override those of an existing record with the same key;
    fields the backup omits keep their current value. Day sessions are keyed
    by ``date``; everything else by ``id``.

    Returns:
        int: Number of records inserted or updated.
    """

    key_field = "date" if record_type is DaySession else "id"
    index = {getattr(record, key_field): position for position, record in enumerate(records)}
    count = 0
    for item in items:
        if not isinstance(item, Mapping):
            continue
        normalized = _normalize_import_item(collection, item)
        if key_field == "id":
            normalized["id"] = sanitize_id(item.get("id") or normalized.get("sku") or item.get("date"))
        key = normalized.get(key_field)
        position = index.get(key)
        if position is not None:
            merged = {**records[position].to_dict(), **normalized}
            records[position] = record_type.from_dict(merged)
        else:
            records.append(record_type.from_dict(normalized))
            index[getattr(records[-1], key_field)] = len(records) - 1
        count += 1
    return count


def import_backup(store: EntityStore, source: Path) -> Dict[str, int]:
    """Merge a JSON backup into ``store`` without replaying ledger impacts.

    Balances, credit and stock come from the backup as recorded values, so
    transactions are merged into the log but never re-applied.

    Returns:
        dict[str, int]: Number of merged records per collection key.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        ValueError: If the file is not a JSON object.
    """

    source = Path(source).expanduser().resolve()
    if not source.exists():
        raise FileNotFoundError(f"Backup not found: {source}")
    data = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError("Backup must contain a JSON object")

    counts: Dict[str, int] = {}
    for collection, (attribute, record_type) in LIST_COLLECTIONS.items():
        items = data.get(collection.value) or []
        counts[collection.value] = bulk_upsert(getattr(store, attribute), record_type, collection, list(items))
    store.transactions.sort(key=lambda transaction: transaction.date, reverse=True)

    for collection, (attribute, record_type) in SINGLE_COLLECTIONS.items():
        raw = data.get(collection.value)
        if isinstance(raw, Mapping):
            merged = {**getattr(store, attribute).to_dict(), **raw}
            setattr(store, attribute, record_type.from_dict(merged))
            counts[collection.value] = 1
    log.info("Imported backup '%s' (%s)", source, ", ".join(f"{key}={value}" for key, value in counts.items()))
    return counts


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigSettings",
    "LIST_COLLECTIONS",
    "SINGLE_COLLECTIONS",
    "find_config_file",
    "read_config",
    "parse_settings",
    "open_workbook",
    "save_workbook",
    "header_for",
    "key_for",
    "record_headers",
    "snapshot_store",
    "restore_store",
    "to_json",
    "serialize_cell",
    "build_workbook",
    "read_meta",
    "read_workbook_snapshot",
    "save_snapshot",
    "save_store",
    "load_store",
    "export_backup",
    "bulk_upsert",
    "import_backup",
]
