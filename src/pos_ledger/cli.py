"""Command-line entry points for the POS Ledger toolkit.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the requests consumed by the business layer, and
printing read views. Keeping the CLI thin ensures the same parser
configuration can be reused by tests or any alternative front-end.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log
from .constants import PaymentMethod, PurchaseOrderStatus, TransactionType
from .models import CartLine


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    mutates: bool = False


def parse_money(text: str) -> Decimal:
    """argparse type for monetary amounts."""
    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"invalid amount: {text!r}") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError(f"invalid amount: {text!r}")
    return amount


def parse_cart_line(text: str) -> CartLine:
    """argparse type for ``PRODUCT_ID[:QTY]`` cart entries."""
    product_id, _, quantity = text.partition(":")
    if not product_id:
        raise argparse.ArgumentTypeError(f"invalid item: {text!r}")
    try:
        return CartLine(product_id=product_id, quantity=int(quantity or "1"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid quantity in item: {text!r}") from exc


def parse_order_line(text: str) -> Dict[str, Any]:
    """argparse type for ``PRODUCT_ID:QTY:COST`` purchase order entries."""
    parts = text.split(":")
    if len(parts) != 3 or not parts[0]:
        raise argparse.ArgumentTypeError(f"expected PRODUCT_ID:QTY:COST, got {text!r}")
    try:
        quantity = int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid quantity in item: {text!r}") from exc
    return {"productId": parts[0], "quantity": quantity, "cost": parse_money(parts[2])}


def _add_method_argument(parser: argparse.ArgumentParser, *, default: PaymentMethod = PaymentMethod.CASH) -> None:
    parser.add_argument(
        "--method",
        choices=[member.value for member in PaymentMethod],
        default=default.value,
    )


def _add_cheque_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cheque-number", default=None)
    parser.add_argument("--cheque-date", default=None, help="Maturity date (YYYY-MM-DD).")


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pos-ledger",
        description="Command-line tools for the POS Ledger store.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and transfers."""
    specs = {
        "open-day": register_open_day_command(subparsers),
        "close-day": register_close_day_command(subparsers),
        "sale": register_sale_command(subparsers),
        "expense": register_expense_command(subparsers),
        "transfer": register_transfer_command(subparsers),
        "pay-credit": register_pay_credit_command(subparsers),
        "add-product": register_add_product_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "add-account": register_add_account_command(subparsers),
        "add-vendor": register_add_vendor_command(subparsers),
        "add-po": register_add_po_command(subparsers),
        "receive-po": register_receive_po_command(subparsers),
        "import-backup": register_import_backup_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "accounts": register_accounts_command(subparsers),
        "stock": register_stock_command(subparsers),
        "day-report": register_day_report_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
        "cheques": register_cheques_command(subparsers),
        "debts": register_debts_command(subparsers),
        "log": register_log_command(subparsers),
        "export-backup": register_export_backup_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_open_day_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``open-day``."""
    name = "open-day"
    help_text = "Open today's session with the counted cash float."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--opening-balance", type=parse_money, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_open_day, mutates=True)


def register_close_day_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``close-day``."""
    name = "close-day"
    help_text = "Close today's session with the counted cash."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--actual-closing", type=parse_money, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_close_day, mutates=True)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Check out a point-of-sale cart."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--item",
            dest="items",
            type=parse_cart_line,
            action="append",
            required=True,
            help="PRODUCT_ID[:QTY]; repeat for several lines.",
        )
        _add_method_argument(parser)
        parser.add_argument("--discount", type=parse_money, default=Decimal("0"))
        parser.add_argument("--customer-id", default=None)
        parser.add_argument("--account-id", default=None)
        _add_cheque_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale, mutates=True)


def register_expense_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``expense``."""
    name = "expense"
    help_text = "Record an expense."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--amount", type=parse_money, required=True)
        parser.add_argument("--description", default="")
        _add_method_argument(parser)
        parser.add_argument("--account-id", default=None)
        _add_cheque_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_expense, mutates=True)


def register_transfer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``transfer``."""
    name = "transfer"
    help_text = "Move money between two accounts."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--from-account", required=True)
        parser.add_argument("--to-account", required=True)
        parser.add_argument("--amount", type=parse_money, required=True)
        parser.add_argument("--description", default="")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_transfer, mutates=True)


def register_pay_credit_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``pay-credit``."""
    name = "pay-credit"
    help_text = "Record a customer's payment against their credit balance."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--amount", type=parse_money, required=True)
        _add_method_argument(parser)
        parser.add_argument("--account-id", default=None)
        _add_cheque_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_pay_credit, mutates=True)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Create or update a product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--name", required=True)
        parser.add_argument("--sku", default=None)
        parser.add_argument("--price", type=parse_money, required=True)
        parser.add_argument("--cost", type=parse_money, default=Decimal("0"))
        parser.add_argument("--stock", type=int, default=0)
        parser.add_argument("--low-stock-threshold", type=int, default=0)
        parser.add_argument("--category-id", default=None)
        parser.add_argument("--vendor-id", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product, mutates=True)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Create or update a credit customer."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--name", required=True)
        parser.add_argument("--phone", default="")
        parser.add_argument("--credit-limit", type=parse_money, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer, mutates=True)


def register_add_account_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-account``."""
    name = "add-account"
    help_text = "Create a cash or bank account."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--account-id", required=True)
        parser.add_argument("--name", required=True)
        parser.add_argument("--balance", type=parse_money, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_account, mutates=True)


def register_add_vendor_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-vendor``."""
    name = "add-vendor"
    help_text = "Create or update a supplier."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--vendor-id", required=True)
        parser.add_argument("--name", required=True)
        parser.add_argument("--contact-person", default="")
        parser.add_argument("--phone", default="")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_vendor, mutates=True)


def register_add_po_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-po``."""
    name = "add-po"
    help_text = "Create a purchase order (PENDING unless --draft)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--po-id", default=None)
        parser.add_argument("--vendor-id", required=True)
        parser.add_argument(
            "--item",
            dest="items",
            type=parse_order_line,
            action="append",
            required=True,
            help="PRODUCT_ID:QTY:COST; repeat for several lines.",
        )
        _add_method_argument(parser)
        parser.add_argument("--account-id", default=None)
        _add_cheque_arguments(parser)
        parser.add_argument("--draft", action="store_true", help="Keep the order as DRAFT.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_po, mutates=True)


def register_receive_po_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``receive-po``."""
    name = "receive-po"
    help_text = "Receive a pending purchase order into stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--po-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_receive_po, mutates=True)


def register_import_backup_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``import-backup``."""
    name = "import-backup"
    help_text = "Merge a JSON backup into the store."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--file", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_import_backup, mutates=True)


def register_accounts_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``accounts``."""
    name = "accounts"
    help_text = "Display account balances."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_accounts_report)


def register_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock``."""
    name = "stock"
    help_text = "Display current stock levels."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--low", action="store_true", help="Only show products at or below their threshold.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_report)


def register_day_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``day-report``."""
    name = "day-report"
    help_text = "Display today's cash reconciliation."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_day_report)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    name = "dashboard"
    help_text = "Display today's sales, cash flow, and stock valuation."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_dashboard_report)


def register_cheques_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``cheques``."""
    name = "cheques"
    help_text = "Display cheques maturing today or later."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_cheques_report)


def register_debts_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``debts``."""
    name = "debts"
    help_text = "Display outstanding customer credit and vendor balances."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_debts_report)


def register_log_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``log``."""
    name = "log"
    help_text = "Display the transaction log, newest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--limit", type=int, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_log_report)


def register_export_backup_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export-backup``."""
    name = "export-backup"
    help_text = "Write a JSON backup of the store."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--file", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export_backup)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_sale(args: argparse.Namespace) -> core_logic.CheckoutCommand:
    """Translate CLI args into a checkout command object."""
    return core_logic.CheckoutCommand(
        cart=tuple(args.items),
        payment_method=PaymentMethod(args.method),
        discount=args.discount,
        account_id=args.account_id,
        customer_id=args.customer_id,
        cheque_number=args.cheque_number,
        cheque_date=args.cheque_date,
    )


def translate_expense(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an expense transaction descriptor."""
    return {
        "type": TransactionType.EXPENSE,
        "amount": args.amount,
        "payment_method": args.method,
        "account_id": args.account_id,
        "cheque_number": args.cheque_number,
        "cheque_date": args.cheque_date,
        "description": args.description,
    }


def translate_transfer(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into a transfer transaction descriptor."""
    return {
        "type": TransactionType.TRANSFER,
        "amount": args.amount,
        "payment_method": PaymentMethod.BANK,
        "account_id": args.from_account,
        "destination_account_id": args.to_account,
        "description": args.description or f"Transfer {args.from_account} -> {args.to_account}",
    }


def translate_pay_credit(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into a credit payment descriptor."""
    return {
        "type": TransactionType.CREDIT_PAYMENT,
        "amount": args.amount,
        "payment_method": args.method,
        "account_id": args.account_id,
        "customer_id": args.customer_id,
        "cheque_number": args.cheque_number,
        "cheque_date": args.cheque_date,
        "description": f"Credit settlement from {args.customer_id}",
    }


def translate_add_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-product request."""
    payload: Dict[str, Any] = {
        "id": args.product_id,
        "sku": args.sku or args.product_id,
        "name": args.name,
        "price": args.price,
        "cost": args.cost,
        "stock": args.stock,
        "low_stock_threshold": args.low_stock_threshold,
    }
    if args.category_id:
        payload["category_id"] = args.category_id
    if args.vendor_id:
        payload["vendor_id"] = args.vendor_id
    return payload


def translate_add_customer(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-customer request."""
    payload: Dict[str, Any] = {"id": args.customer_id, "name": args.name, "phone": args.phone}
    if args.credit_limit is not None:
        payload["credit_limit"] = args.credit_limit
    return payload


def translate_add_po(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into a purchase order request."""
    status = PurchaseOrderStatus.DRAFT if args.draft else PurchaseOrderStatus.PENDING
    payload: Dict[str, Any] = {
        "vendor_id": args.vendor_id,
        "items": list(args.items),
        "status": status,
        "payment_method": args.method,
        "account_id": args.account_id,
        "cheque_number": args.cheque_number,
        "cheque_date": args.cheque_date,
    }
    if args.po_id:
        payload["id"] = args.po_id
    return payload


def run_open_day(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    session = core_logic.open_day(context, args.opening_balance)
    print(f"Day {session.date} opened with {session.opening_balance}")
    return 0


def run_close_day(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Close today's session; exits with 2 when no session is open."""
    session = core_logic.close_day(context, args.actual_closing)
    if session is None:
        print("No open day session to close.")
        return 2
    variance = (session.actual_closing or 0) - session.expected_closing
    print(f"Day {session.date} closed: expected {session.expected_closing}, counted {session.actual_closing}, variance {variance}")
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the checkout workflow via the BLL."""
    plan = core_logic.checkout_sale(context, translate_sale(args))
    print(f"Recorded sale {plan.transaction.id} for {plan.transaction.amount}")
    return 0


def run_expense(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    plan = core_logic.record_transaction(context, translate_expense(args))
    print(f"Recorded expense {plan.transaction.id} for {plan.transaction.amount}")
    return 0


def run_transfer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute a transfer; unknown accounts are reported but still logged."""
    plan = core_logic.record_transaction(context, translate_transfer(args))
    if not plan.applied:
        for skip in plan.skips:
            print(f"Warning: {skip.detail}")
    print(f"Recorded transfer {plan.transaction.id} for {plan.transaction.amount}")
    return 0


def run_pay_credit(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.get_customer(context, args.customer_id)
    plan = core_logic.record_transaction(context, translate_pay_credit(args))
    print(f"Recorded credit payment {plan.transaction.id} for {plan.transaction.amount}")
    return 0


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    product = core_logic.upsert_product(context, translate_add_product(args))
    print(f"Saved product {product.id} ({product.name})")
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    customer = core_logic.upsert_customer(context, translate_add_customer(args))
    print(f"Saved customer {customer.id} (credit limit {customer.credit_limit})")
    return 0


def run_add_account(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    payload: Dict[str, Any] = {"id": args.account_id, "name": args.name}
    if args.balance is not None:
        payload["balance"] = args.balance
    account = core_logic.upsert_account(context, payload)
    print(f"Saved account {account.id} (balance {account.balance})")
    return 0


def run_add_vendor(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    vendor = core_logic.upsert_vendor(
        context,
        {"id": args.vendor_id, "name": args.name, "contact_person": args.contact_person, "phone": args.phone},
    )
    print(f"Saved vendor {vendor.id}")
    return 0


def run_add_po(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    order = core_logic.upsert_purchase_order(context, translate_add_po(args))
    print(f"Saved purchase order {order.id} ({order.status.value}, total {order.total_amount})")
    return 0


def run_receive_po(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    plan = core_logic.receive_purchase_order(context, args.po_id)
    print(f"Received purchase order {args.po_id} as {plan.transaction.id}")
    return 0


def run_import_backup(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    counts = core_logic.import_backup(context, args.file)
    for key, value in counts.items():
        print(f"{key:<20}{value:>8}")
    return 0


def run_accounts_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print every account with its balance."""
    for account in core_logic.list_accounts(context):
        print(f"{account.id:<16}{account.name:<28}{account.balance:>14}")
    return 0


def run_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print stock levels, optionally only the low-stock products."""
    products = core_logic.list_low_stock_products(context) if args.low else core_logic.list_products(context)
    for product in products:
        flag = " LOW" if product.is_low_stock else ""
        print(f"{product.id:<16}{product.name:<28}{product.stock:>8}{flag}")
    return 0


def run_day_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    report = core_logic.calculate_day_report(context)
    for key in ("date", "status", "opening_balance", "expected_closing", "actual_closing", "variance", "cash_balance"):
        value = report[key]
        print(f"{key:<20}{'-' if value is None else value}")
    return 0


def run_dashboard_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for key, value in core_logic.calculate_dashboard_summary(context).items():
        print(f"{key:<20}{value:>14}")
    return 0


def run_cheques_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for event in core_logic.list_upcoming_cheques(context):
        print(f"{event.date}  {event.direction:<4}{event.reference:<24}{event.entity:<24}{event.amount:>12}")
    return 0


def run_debts_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print receivables per customer and payables per vendor."""
    for customer_id, amount in core_logic.calculate_outstanding_credit(context).items():
        print(f"customer  {customer_id:<24}{amount:>14}")
    for vendor in core_logic.list_vendors(context):
        if vendor.total_balance:
            print(f"vendor    {vendor.id:<24}{vendor.total_balance:>14}")
    return 0


def run_log_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for transaction in core_logic.list_transactions(context, limit=args.limit):
        print(
            f"{transaction.date.isoformat()}  {transaction.id:<40}{transaction.type.value:<16}"
            f"{transaction.payment_method.value:<8}{transaction.amount:>12}"
        )
    return 0


def run_export_backup(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    destination = core_logic.export_backup(context, args.file)
    print(f"Backup written to {destination}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_store(context: core_logic.RuntimeContext) -> None:
    """Flush the store to disk after a successful write command."""
    if not core_logic.persist_context(context):
        raise RuntimeError(f"Unable to write store '{context.settings.data_file}'")


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        core_logic.ensure_schema_version(context)
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and command_table[args.command].mutates:
            persist_store(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
