"""Unit tests verifying the business logic layer with a mocked snapshot scheduler."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from pos_ledger import constants, core_logic, data_manager
from pos_ledger.constants import PaymentMethod, PurchaseOrderStatus, SessionStatus, TransactionType
from pos_ledger.models import Account, CartLine, PurchaseOrder, PurchaseOrderItem, find_by_id


NOW = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
YESTERDAY = datetime(2026, 2, 28, 16, 0, tzinfo=UTC)


def balance(context, account_id):
    return find_by_id(context.store.accounts, account_id).balance


def product(context, product_id):
    return find_by_id(context.store.products, product_id)


@pytest.fixture
def open_context(context):
    """Context whose day session for ``NOW`` is open with a 1000 float."""

    core_logic.open_day(context, Decimal("1000"), now=NOW)
    context.scheduler.reset_mock()
    return context


def checkout(context, *lines, **overrides):
    cart = tuple(CartLine(product_id=pid, quantity=qty) for pid, qty in lines)
    overrides.setdefault("timestamp", NOW)
    return core_logic.checkout_sale(context, core_logic.CheckoutCommand(cart=cart, **overrides))


def add_order(context, **fields):
    payload = {
        "id": "PO-1",
        "vendorId": "V1",
        "items": [{"productId": "P1", "quantity": 5, "cost": "750"}],
        "status": "PENDING",
        "paymentMethod": "CASH",
    }
    payload.update(fields)
    return core_logic.upsert_purchase_order(context, payload)


# ---------------------------------------------------------------------------
# Runtime/context management
# ---------------------------------------------------------------------------


def test_load_runtime_context_returns_context(monkeypatch, tmp_path, store):
    """load_runtime_context should assemble settings, store, and scheduler."""

    config_path = tmp_path / "config.ini"
    parser = Mock(name="parser")
    parsed_settings = data_manager.ConfigSettings(
        data_file=tmp_path / "store.xlsx",
        shop_name="Shop",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        flush_delay_seconds=2.0,
    )

    find_config_file = Mock(return_value=config_path)
    read_config = Mock(return_value=parser)
    parse_settings = Mock(return_value=parsed_settings)
    load_store = Mock(return_value=store)

    monkeypatch.setattr(data_manager, "find_config_file", find_config_file)
    monkeypatch.setattr(data_manager, "read_config", read_config)
    monkeypatch.setattr(data_manager, "parse_settings", parse_settings)
    monkeypatch.setattr(data_manager, "load_store", load_store)

    context = core_logic.load_runtime_context(config_path)

    assert context.settings is parsed_settings
    assert context.store is store
    assert context.scheduler.destination == parsed_settings.data_file
    assert context.scheduler.delay_seconds == 2.0
    find_config_file.assert_called_once_with(config_path)
    read_config.assert_called_once_with(config_path.resolve())
    parse_settings.assert_called_once_with(parser, base_path=config_path.resolve().parent)
    load_store.assert_called_once_with(parsed_settings.data_file)


def test_ensure_schema_version_rejects_mismatch(context):
    stale = replace(context, settings=replace(context.settings, schema_version="0.9.0"))

    with pytest.raises(RuntimeError):
        core_logic.ensure_schema_version(stale)


def test_ensure_schema_version_accepts_expected(context):
    core_logic.ensure_schema_version(context)


def test_persist_context_flushes_immediately(context):
    context.scheduler.flush_now.return_value = True

    assert core_logic.persist_context(context) is True

    context.scheduler.schedule.assert_called_once_with(context.store)
    context.scheduler.flush_now.assert_called_once_with()


def test_close_runtime_context_shuts_down_scheduler(context):
    core_logic.close_runtime_context(context)

    context.scheduler.shutdown.assert_called_once_with()


def test_sync_context_stays_local_when_offline(context):
    assert core_logic.sync_context(context) is False


# ---------------------------------------------------------------------------
# Ledger commands and compensating edits
# ---------------------------------------------------------------------------


def test_record_transaction_schedules_snapshot(context):
    plan = core_logic.record_transaction(context, {"type": "SALE", "amount": 120, "paymentMethod": "CARD"}, now=NOW)

    assert plan.transaction.date == NOW
    assert balance(context, "bank") == Decimal("120")
    context.scheduler.schedule.assert_called_once_with(context.store)


def test_record_transaction_uses_configured_bank_account(context):
    context.store.accounts.append(Account(id="hnb", name="HNB"))
    custom = replace(context, settings=replace(context.settings, default_bank_account_id="hnb"))

    core_logic.record_transaction(custom, {"type": "SALE", "amount": 10, "paymentMethod": "BANK"}, now=NOW)

    assert balance(context, "hnb") == Decimal("10")
    assert balance(context, "bank") == Decimal("0")


def test_update_transaction_rebalances_accounts(context):
    first = core_logic.record_transaction(context, {"type": "SALE", "amount": 500, "paymentMethod": "CASH"}, now=NOW)
    core_logic.record_transaction(context, {"type": "EXPENSE", "amount": 40, "paymentMethod": "CASH"}, now=NOW)

    core_logic.update_transaction(context, first.transaction.id, {"amount": 300})

    assert balance(context, "cash") == Decimal("260")
    updated = context.store.transactions[1]
    assert updated.id == first.transaction.id
    assert updated.amount == Decimal("300")
    assert updated.date == NOW


def test_update_transaction_moves_sale_onto_credit(context):
    plan = core_logic.record_transaction(context, {"type": "SALE", "amount": 700, "paymentMethod": "CASH"}, now=NOW)

    core_logic.update_transaction(context, plan.transaction.id, {"payment_method": "CREDIT", "customer_id": "C1"})

    assert balance(context, "cash") == Decimal("0")
    assert find_by_id(context.store.customers, "C1").total_credit == Decimal("700")


def test_delete_transaction_restores_every_balance(context):
    plan = core_logic.record_transaction(
        context,
        {
            "type": "SALE",
            "amount": 2000,
            "paymentMethod": "CREDIT",
            "customerId": "C1",
            "items": [{"productId": "P1", "quantity": 2, "price": 1000}],
        },
        now=NOW,
    )

    removed = core_logic.delete_transaction(context, plan.transaction.id)

    assert removed is plan.transaction
    assert context.store.transactions == []
    assert product(context, "P1").stock == 10
    assert find_by_id(context.store.customers, "C1").total_credit == Decimal("0")


def test_delete_transaction_ignores_product_created_after_sale(context):
    plan = core_logic.record_transaction(
        context,
        {"type": "SALE", "amount": 40, "paymentMethod": "CASH", "items": [{"productId": "LATE", "quantity": 4}]},
        now=NOW,
    )
    core_logic.upsert_product(context, {"id": "LATE", "sku": "LATE-1", "name": "LATE ARRIVAL", "stock": 10})

    core_logic.delete_transaction(context, plan.transaction.id)

    assert product(context, "LATE").stock == 10
    assert balance(context, "cash") == Decimal("0")


def test_delete_transaction_ignores_account_recreated_after_sale(context):
    core_logic.delete_account(context, "cash")
    plan = core_logic.record_transaction(context, {"type": "SALE", "amount": 50, "paymentMethod": "CASH"}, now=NOW)
    core_logic.upsert_account(context, {"id": "cash", "name": "Cash Drawer", "balance": 100})

    core_logic.delete_transaction(context, plan.transaction.id)

    assert balance(context, "cash") == Decimal("100")


def test_delete_transaction_reverses_the_account_originally_credited(context):
    plan = core_logic.record_transaction(context, {"type": "SALE", "amount": 120, "paymentMethod": "CARD"}, now=NOW)
    context.store.accounts.append(Account(id="hnb", name="HNB", balance=Decimal("500")))
    moved = replace(context, settings=replace(context.settings, default_bank_account_id="hnb"))

    core_logic.delete_transaction(moved, plan.transaction.id)

    assert balance(context, "bank") == Decimal("0")
    assert balance(context, "hnb") == Decimal("500")


def test_update_transaction_reapplies_against_current_store(context):
    plan = core_logic.record_transaction(
        context,
        {"type": "SALE", "amount": 40, "paymentMethod": "CASH", "items": [{"productId": "LATE", "quantity": 4}]},
        now=NOW,
    )
    core_logic.upsert_product(context, {"id": "LATE", "sku": "LATE-1", "name": "LATE ARRIVAL", "stock": 10})

    updated = core_logic.update_transaction(context, plan.transaction.id, {"amount": 60})

    assert product(context, "LATE").stock == 6
    assert balance(context, "cash") == Decimal("60")
    assert context.store.transactions == [updated.transaction]
    assert dict(updated.transaction.applied_deltas.stock) == {"LATE": -4}


def test_edit_unknown_transaction_raises(context):
    with pytest.raises(core_logic.MissingReferenceError):
        core_logic.update_transaction(context, "ghost", {"amount": 1})
    with pytest.raises(core_logic.MissingReferenceError):
        core_logic.delete_transaction(context, "ghost")


# ---------------------------------------------------------------------------
# Day sessions and checkout
# ---------------------------------------------------------------------------


def test_open_day_uses_current_date(context, set_fixed_datetime):
    set_fixed_datetime(NOW)

    session = core_logic.open_day(context, Decimal("250"))

    assert session.date == "2026-03-01"
    assert balance(context, "cash") == Decimal("250")
    context.scheduler.schedule.assert_called_once_with(context.store)


def test_close_day_without_session_writes_nothing(context):
    assert core_logic.close_day(context, Decimal("10"), now=NOW) is None

    context.scheduler.schedule.assert_not_called()


def test_checkout_requires_open_day(context):
    with pytest.raises(core_logic.DayNotOpenError):
        checkout(context, ("P1", 1))

    assert context.store.transactions == []


def test_checkout_records_sale_with_items(open_context):
    plan = checkout(open_context, ("P1", 2), ("P2", 1), discount=Decimal("100"))

    transaction = plan.transaction
    assert transaction.type is TransactionType.SALE
    assert transaction.amount == Decimal("2100")
    assert transaction.discount == Decimal("100")
    assert [(item.product_id, item.quantity, item.price) for item in transaction.items] == [
        ("P1", 2, Decimal("1000")),
        ("P2", 1, Decimal("200")),
    ]
    assert transaction.description == "POS Sale: 2 items via CASH"
    assert product(open_context, "P1").stock == 8
    assert product(open_context, "P2").stock == 1
    assert balance(open_context, "cash") == Decimal("3100")
    open_context.scheduler.schedule.assert_called_once_with(open_context.store)


def test_checkout_uses_current_time_when_no_timestamp(context, set_fixed_datetime):
    set_fixed_datetime(NOW)
    core_logic.open_day(context, Decimal("0"))

    plan = core_logic.checkout_sale(context, core_logic.CheckoutCommand(cart=(CartLine("P1", 1),)))

    assert plan.transaction.date == NOW


def test_checkout_discount_never_drives_total_negative(open_context):
    plan = checkout(open_context, ("P2", 1), discount=Decimal("500"))

    assert plan.transaction.amount == Decimal("0")


def test_checkout_blocks_when_stock_is_short(open_context):
    with pytest.raises(core_logic.BusinessRuleViolation, match="out of stock"):
        checkout(open_context, ("P2", 3))

    assert open_context.store.transactions == []
    assert product(open_context, "P2").stock == 2


def test_checkout_checks_stock_against_merged_lines(open_context):
    with pytest.raises(core_logic.BusinessRuleViolation, match="out of stock"):
        checkout(open_context, ("P1", 6), ("P1", 6))

    assert open_context.store.transactions == []
    assert product(open_context, "P1").stock == 10


def test_checkout_records_one_item_per_product(open_context):
    plan = checkout(open_context, ("P1", 2), ("P2", 1), ("P1", 3))

    assert [(item.product_id, item.quantity) for item in plan.transaction.items] == [("P1", 5), ("P2", 1)]
    assert plan.transaction.amount == Decimal("5200")
    assert product(open_context, "P1").stock == 5


@pytest.mark.parametrize(
    "lines, overrides, error",
    [
        ((), {}, core_logic.BusinessRuleViolation),
        ((("P1", 0),), {}, ValueError),
        ((("P1", 1),), {"discount": Decimal("-1")}, ValueError),
        ((("NOPE", 1),), {}, core_logic.MissingReferenceError),
        ((("P1", 1),), {"payment_method": PaymentMethod.CREDIT}, core_logic.BusinessRuleViolation),
        ((("P1", 1),), {"payment_method": PaymentMethod.CREDIT, "customer_id": "ghost"}, core_logic.MissingReferenceError),
    ],
)
def test_checkout_rejects_invalid_carts(open_context, lines, overrides, error):
    with pytest.raises(error):
        checkout(open_context, *lines, **overrides)

    assert open_context.store.transactions == []


def test_credit_checkout_raises_customer_credit(open_context):
    plan = checkout(open_context, ("P1", 3), payment_method=PaymentMethod.CREDIT, customer_id="C1")

    assert plan.transaction.customer_id == "C1"
    assert plan.transaction.description == "POS Sale: 1 items via CREDIT to Customer ID C1"
    assert find_by_id(open_context.store.customers, "C1").total_credit == Decimal("3000")
    assert balance(open_context, "cash") == Decimal("1000")


def test_credit_checkout_over_limit_is_logged_not_blocked(open_context, caplog):
    with caplog.at_level("WARNING", logger="pos_ledger"):
        checkout(open_context, ("P1", 6), payment_method=PaymentMethod.CREDIT, customer_id="C1")

    assert find_by_id(open_context.store.customers, "C1").total_credit == Decimal("6000")
    assert "exceeds remaining limit" in caplog.text


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------


def test_upsert_purchase_order_computes_total(context):
    order = add_order(context)

    assert order.total_amount == Decimal("3750")
    assert order.status is PurchaseOrderStatus.PENDING
    assert context.store.purchase_orders == [order]


def test_upsert_purchase_order_requires_vendor_and_items(context):
    with pytest.raises(core_logic.BusinessRuleViolation):
        add_order(context, items=[])
    with pytest.raises(core_logic.BusinessRuleViolation):
        add_order(context, vendorId="")

    assert context.store.purchase_orders == []


def test_failed_update_keeps_existing_order(context):
    add_order(context)

    with pytest.raises(core_logic.BusinessRuleViolation):
        add_order(context, items=[])

    assert len(find_by_id(context.store.purchase_orders, "PO-1").items) == 1


def test_receive_purchase_order_updates_stock_cost_and_cash(context):
    add_order(context)

    plan = core_logic.receive_purchase_order(context, "PO-1", now=NOW)

    order = find_by_id(context.store.purchase_orders, "PO-1")
    assert order.status is PurchaseOrderStatus.RECEIVED
    assert order.received_date == NOW
    assert product(context, "P1").stock == 15
    assert product(context, "P1").cost == Decimal("750")
    assert balance(context, "cash") == Decimal("-3750")
    assert plan.transaction.type is TransactionType.PURCHASE
    assert plan.transaction.vendor_id == "V1"
    assert plan.transaction.description == "Stock Received against PO: PO-1"


def test_receive_credit_purchase_order_raises_vendor_balance(context):
    add_order(context, paymentMethod="CREDIT")

    core_logic.receive_purchase_order(context, "PO-1", now=NOW)

    assert find_by_id(context.store.vendors, "V1").total_balance == Decimal("3750")
    assert balance(context, "cash") == Decimal("0")


def test_receive_requires_pending_status(context):
    add_order(context, status="DRAFT")

    with pytest.raises(core_logic.InvalidStateError):
        core_logic.receive_purchase_order(context, "PO-1", now=NOW)

    assert product(context, "P1").stock == 10


def test_received_order_cannot_be_edited_or_cancelled(context):
    add_order(context)
    core_logic.receive_purchase_order(context, "PO-1", now=NOW)

    with pytest.raises(core_logic.InvalidStateError):
        add_order(context)
    with pytest.raises(core_logic.InvalidStateError):
        core_logic.cancel_purchase_order(context, "PO-1")
    with pytest.raises(core_logic.InvalidStateError):
        core_logic.receive_purchase_order(context, "PO-1", now=NOW)


def test_finalize_and_cancel_purchase_order(context):
    add_order(context, status="DRAFT")

    assert core_logic.finalize_purchase_order(context, "PO-1").status is PurchaseOrderStatus.PENDING
    with pytest.raises(core_logic.InvalidStateError):
        core_logic.finalize_purchase_order(context, "PO-1")

    assert core_logic.cancel_purchase_order(context, "PO-1").status is PurchaseOrderStatus.CANCELLED


# ---------------------------------------------------------------------------
# Recurring expenses
# ---------------------------------------------------------------------------


def test_post_recurring_expense_once_per_month(context):
    core_logic.upsert_recurring_expense(
        context,
        {"id": "RENT", "description": "Shop rent", "amount": "25000", "paymentMethod": "BANK"},
    )

    plan = core_logic.post_recurring_expense(context, "RENT", now=NOW)

    assert plan.transaction.description == "Recurring: Shop rent"
    assert balance(context, "bank") == Decimal("-25000")
    assert core_logic.get_recurring_expense(context, "RENT").last_posted == "2026-03-01"

    with pytest.raises(core_logic.InvalidStateError):
        core_logic.post_recurring_expense(context, "RENT", now=datetime(2026, 3, 28, tzinfo=UTC))

    core_logic.post_recurring_expense(context, "RENT", now=datetime(2026, 4, 1, tzinfo=UTC))
    assert balance(context, "bank") == Decimal("-50000")


# ---------------------------------------------------------------------------
# Entity maintenance
# ---------------------------------------------------------------------------


def test_upsert_customer_defaults_credit_limit(context):
    customer = core_logic.upsert_customer(context, {"id": "C2", "name": "Dockside Bar"})

    assert customer.credit_limit == core_logic.DEFAULT_CREDIT_LIMIT
    assert core_logic.upsert_customer(context, {"name": "Quay Kiosk", "creditLimit": 900}).credit_limit == Decimal("900")


def test_upsert_customer_keeps_existing_fields(context):
    find_by_id(context.store.customers, "C1").total_credit = Decimal("120")

    updated = core_logic.upsert_customer(context, {"id": "C1", "phone": "555-0101"})

    assert updated.name == "Harbor Cafe"
    assert updated.total_credit == Decimal("120")
    assert updated.phone == "555-0101"
    assert len(context.store.customers) == 1


def test_upsert_product_accepts_snake_case_and_keeps_stock(context):
    created = core_logic.upsert_product(
        context,
        {"id": "P3", "sku": "TEA-100", "name": "TEA 100G", "low_stock_threshold": 4, "stock": 9},
    )
    renamed = core_logic.upsert_product(context, {"id": "P1", "name": "RICE 5KG PREMIUM"})

    assert created.low_stock_threshold == 4
    assert renamed.stock == 10
    assert [p.id for p in core_logic.list_products(context)] == ["P1", "P2", "P3"]
    assert context.scheduler.schedule.call_count == 2


def test_upsert_sanitizes_identifiers(context):
    account = core_logic.upsert_account(context, {"id": "petty.cash", "name": "Petty"})

    assert account.id == "petty_cash"
    assert core_logic.get_account(context, "petty_cash") is account


def test_delete_record_removes_and_schedules(context):
    removed = core_logic.delete_vendor(context, "V1")

    assert removed.name == "Acme Wholesale"
    assert core_logic.list_vendors(context) == []
    context.scheduler.schedule.assert_called_once_with(context.store)


@pytest.mark.parametrize(
    "getter",
    [
        core_logic.get_product,
        core_logic.get_customer,
        core_logic.get_vendor,
        core_logic.get_account,
        core_logic.get_purchase_order,
        core_logic.get_recurring_expense,
        core_logic.get_transaction,
        core_logic.delete_product,
        core_logic.delete_category,
    ],
)
def test_unknown_identifiers_raise_missing_reference(context, getter):
    with pytest.raises(core_logic.MissingReferenceError):
        getter(context, "does-not-exist")


def test_update_user_profile_and_pos_session(context):
    profile = core_logic.update_user_profile(context, {"branch": "Harbor Road"})
    session = core_logic.update_pos_session(
        context,
        {"cart": [{"productId": "P1", "quantity": 2}], "payment_method": "CARD"},
    )

    assert profile.branch == "Harbor Road"
    assert profile.name == "POS LEDGER"
    assert session.cart == (CartLine(product_id="P1", quantity=2),)
    assert session.payment_method is PaymentMethod.CARD
    assert context.scheduler.schedule.call_count == 2


def test_backup_export_then_import_into_fresh_context(context, tmp_path, scheduler):
    path = core_logic.export_backup(context, tmp_path / "backup.json", now=NOW)
    fresh = core_logic.RuntimeContext(
        settings=context.settings,
        store=data_manager.restore_store({}),
        scheduler=scheduler,
    )
    scheduler.reset_mock()

    counts = core_logic.import_backup(fresh, path)

    assert counts["products"] == 2
    assert [p.id for p in fresh.store.products] == ["P1", "P2"]
    scheduler.schedule.assert_called_once_with(fresh.store)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def test_day_report_after_close(context):
    core_logic.open_day(context, Decimal("1000"), now=NOW)
    core_logic.record_transaction(context, {"type": "SALE", "amount": 500, "paymentMethod": "CASH"}, now=NOW)
    core_logic.close_day(context, Decimal("1450"), now=NOW)

    report = core_logic.calculate_day_report(context, now=NOW)

    assert report == {
        "date": "2026-03-01",
        "status": SessionStatus.CLOSED.value,
        "opening_balance": Decimal("1000"),
        "expected_closing": Decimal("1500"),
        "actual_closing": Decimal("1450"),
        "variance": Decimal("-50"),
        "cash_balance": Decimal("1500"),
    }


def test_day_report_without_session(context):
    report = core_logic.calculate_day_report(context, now=NOW)

    assert report["status"] is None
    assert report["expected_closing"] == Decimal("0")
    assert report["variance"] is None


def test_dashboard_summary_counts_only_today(context):
    record = core_logic.record_transaction
    record(context, {"type": "SALE", "amount": 500, "paymentMethod": "CASH"}, now=NOW)
    record(context, {"type": "SALE", "amount": 300, "paymentMethod": "CREDIT", "customerId": "C1"}, now=NOW)
    record(context, {"type": "CREDIT_PAYMENT", "amount": 100, "paymentMethod": "BANK", "customerId": "C1"}, now=NOW)
    record(context, {"type": "EXPENSE", "amount": 50, "paymentMethod": "CASH"}, now=NOW)
    record(context, {"type": "TRANSFER", "amount": 20, "accountId": "cash", "destinationAccountId": "bank"}, now=NOW)
    record(context, {"type": "SALE", "amount": 999, "paymentMethod": "CASH", "date": YESTERDAY}, now=NOW)

    summary = core_logic.calculate_dashboard_summary(context, now=NOW)

    assert summary == {
        "today_sales": Decimal("800"),
        "realized_inflow": Decimal("600"),
        "realized_outflow": Decimal("70"),
        "stock_valuation": Decimal("8300"),
    }


def test_low_stock_products_sorted_by_stock(context):
    core_logic.upsert_product(context, {"id": "P3", "sku": "SALT", "name": "SALT", "stock": 0, "lowStockThreshold": 1})

    assert [p.id for p in core_logic.list_low_stock_products(context)] == ["P3", "P2"]


def test_upcoming_cheques_merge_transactions_and_orders(context):
    record = core_logic.record_transaction
    record(
        context,
        {"type": "SALE", "amount": 400, "paymentMethod": "CHEQUE", "customerId": "C1", "chequeDate": "2026-03-05"},
        now=NOW,
    )
    record(context, {"type": "EXPENSE", "amount": 90, "paymentMethod": "CHEQUE", "chequeDate": "2026-03-03"}, now=NOW)
    record(context, {"type": "EXPENSE", "amount": 10, "paymentMethod": "CHEQUE", "chequeDate": "2026-02-01"}, now=NOW)
    context.store.purchase_orders.append(
        PurchaseOrder(
            id="PO-9",
            date=NOW,
            vendor_id="V1",
            items=(PurchaseOrderItem(product_id="P1", quantity=1, cost=Decimal("800")),),
            status=PurchaseOrderStatus.PENDING,
            total_amount=Decimal("800"),
            payment_method=PaymentMethod.CHEQUE,
            cheque_date="2026-03-04",
        )
    )

    events = core_logic.list_upcoming_cheques(context, now=NOW)

    assert [(e.direction, e.entity, e.amount, e.date) for e in events] == [
        ("OUT", "Payee", Decimal("90"), "2026-03-03"),
        ("OUT", "Acme Wholesale", Decimal("800"), "2026-03-04"),
        ("IN", "Harbor Cafe", Decimal("400"), "2026-03-05"),
    ]
    assert events[0].description == "Overhead Maturity"
    assert events[2].description == "Sales Cheque Maturity"


def test_vendor_performance_counts_received_spend(context):
    add_order(context)
    add_order(context, id="PO-2", items=[{"productId": "P2", "quantity": 1, "cost": "100"}])
    core_logic.receive_purchase_order(context, "PO-2", now=NOW)

    assert core_logic.calculate_vendor_performance(context) == [
        {
            "id": "V1",
            "name": "Acme Wholesale",
            "order_count": 2,
            "received_count": 1,
            "total_spent": Decimal("100"),
        }
    ]


def test_outstanding_credit_and_customer_history(context):
    core_logic.upsert_customer(context, {"id": "C2", "name": "Dockside Bar"})
    sale = core_logic.record_transaction(
        context,
        {"type": "SALE", "amount": 300, "paymentMethod": "CREDIT", "customerId": "C1"},
        now=NOW,
    )
    core_logic.record_transaction(context, {"type": "SALE", "amount": 5, "paymentMethod": "CASH"}, now=NOW)

    assert core_logic.calculate_outstanding_credit(context) == {"C1": Decimal("300")}
    assert core_logic.list_customer_history(context, "C1") == [sale.transaction]


def test_list_transactions_honours_limit(context):
    for amount in (1, 2, 3):
        core_logic.record_transaction(context, {"type": "SALE", "amount": amount}, now=NOW)

    assert [t.amount for t in core_logic.list_transactions(context, limit=2)] == [Decimal("3"), Decimal("2")]


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def test_require_positive_quantity():
    core_logic.require_positive_quantity(1)

    with pytest.raises(ValueError):
        core_logic.require_positive_quantity(0)


def test_require_nonnegative_money():
    core_logic.require_nonnegative_money(Decimal("0"))

    with pytest.raises(ValueError):
        core_logic.require_nonnegative_money(Decimal("-0.01"))
