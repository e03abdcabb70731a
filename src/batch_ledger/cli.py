"""Command-line entry points for Batch Ledger.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing the results. Keeping the CLI thin ensures the same parser
configuration can be reused by tests, scripts, or any alternative front-end.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log
from .reporting import summarize_reports
from .settlement import settlement_status


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    mutates: bool = False


def parse_money(raw: str) -> Decimal:
    """argparse ``type`` converting text into a :class:`~decimal.Decimal`."""
    try:
        amount = Decimal(raw)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"invalid amount: {raw!r}") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError(f"amount must be a finite number: {raw!r}")
    return amount


def parse_item(raw: str) -> core_logic.PurchaseLine:
    """argparse ``type`` converting ``SIZE_ID:QTY`` into a purchase line."""
    size_id, sep, quantity = raw.rpartition(":")
    if not sep or not size_id:
        raise argparse.ArgumentTypeError(f"expected SIZE_ID:QTY, got {raw!r}")
    try:
        return core_logic.PurchaseLine(size_id=size_id, quantity=int(quantity))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"quantity must be a whole number in {raw!r}") from exc


def format_money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledger-cli",
        description="Command-line tools for the Batch Ledger workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to searching upward from the working directory).",
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
    """Declare mutating CLI commands such as purchases and batch edits."""
    specs = {
        "add-batch": register_add_batch_command(subparsers),
        "add-size": register_add_size_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "purchase": register_purchase_command(subparsers),
        "mark-balanced": register_mark_balanced_command(subparsers),
        "edit-batch": register_edit_batch_command(subparsers),
        "delete-batch": register_delete_batch_command(subparsers),
        "delete-purchase": register_delete_purchase_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as balances and reports."""
    specs = {
        "balance": register_balance_command(subparsers),
        "report": register_report_command(subparsers),
        "customer-sizes": register_customer_sizes_command(subparsers),
        "purchases": register_purchases_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
        "notifications": register_notifications_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_add_batch_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-batch``."""
    name = "add-batch"
    help_text = "Create a new inventory batch."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--cost-price", type=parse_money, required=True)
        parser.add_argument("--tax-rate", type=parse_money, default=Decimal("0"), help="Percentage, e.g. 7.5")
        parser.add_argument("--expenses", type=parse_money, default=Decimal("0"))
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_batch, mutates=True)


def register_add_size_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-size``."""
    name = "add-size"
    help_text = "Add a priced, stocked size to a batch."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--batch-id", required=True)
        parser.add_argument("--size-name", required=True)
        parser.add_argument("--price", type=parse_money, required=True)
        parser.add_argument("--stock", type=int, default=0)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_size, mutates=True)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a new customer."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--email", default=None)
        parser.add_argument("--address", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer, mutates=True)


def register_purchase_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``purchase``."""
    name = "purchase"
    help_text = "Record a purchase, settling old debt first with the cash tendered."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--batch-id", required=True)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument(
            "--item",
            dest="items",
            type=parse_item,
            action="append",
            required=True,
            metavar="SIZE_ID:QTY",
            help="Line item; repeat for several sizes.",
        )
        parser.add_argument("--cash", type=parse_money, default=Decimal("0"))
        parser.add_argument("--recorded-by", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_purchase, mutates=True)


def register_mark_balanced_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``mark-balanced``."""
    name = "mark-balanced"
    help_text = "Flag a batch as balanced (or back to active)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--batch-id", required=True)
        parser.add_argument("--unbalanced", action="store_true", help="Return the batch to active.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_mark_balanced, mutates=True)


def register_edit_batch_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit-batch``."""
    name = "edit-batch"
    help_text = "Change a batch's name, cost, tax rate, or expenses."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--batch-id", required=True)
        parser.add_argument("--name", default=None)
        parser.add_argument("--cost-price", type=parse_money, default=None)
        parser.add_argument("--tax-rate", type=parse_money, default=None)
        parser.add_argument("--expenses", type=parse_money, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit_batch, mutates=True)


def register_delete_batch_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-batch``."""
    name = "delete-batch"
    help_text = "Delete a batch record (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--batch-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_batch, mutates=True)


def register_delete_purchase_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-purchase``."""
    name = "delete-purchase"
    help_text = "Delete a purchase record (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--purchase-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_purchase, mutates=True)


def register_balance_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``balance``."""
    name = "balance"
    help_text = "Display a customer's outstanding balance."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_balance)


def register_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``report``."""
    name = "report"
    help_text = "Display profit, tithe, and tax per batch."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_report)


def register_customer_sizes_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``customer-sizes``."""
    name = "customer-sizes"
    help_text = "Display what a customer bought per size."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_customer_sizes)


def register_purchases_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``purchases``."""
    name = "purchases"
    help_text = "List purchases with their settlement status."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--batch-id", default=None)
        parser.add_argument("--customer-id", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_purchases)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    name = "dashboard"
    help_text = "Display headline totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_dashboard)


def register_notifications_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``notifications``."""
    name = "notifications"
    help_text = "List notifications, newest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_notifications)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    context = core_logic.load_runtime_context(config_path)
    core_logic.ensure_schema_version(context)
    return context


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


def translate_add_batch(args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        "name": args.name,
        "cost_price": args.cost_price,
        "tax_rate": args.tax_rate,
        "expenses": args.expenses,
    }


def translate_add_size(args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        "batch_id": args.batch_id,
        "size_name": args.size_name,
        "price": args.price,
        "stock_quantity": args.stock,
    }


def translate_add_customer(args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        "name": args.name,
        "phone": args.phone,
        "email": args.email,
        "address": args.address,
    }


def translate_purchase(args: argparse.Namespace) -> core_logic.PurchaseCommand:
    """Translate CLI args into a purchase command object."""
    return core_logic.PurchaseCommand(
        batch_id=args.batch_id,
        customer_id=args.customer_id,
        items=tuple(args.items or ()),
        cash_tendered=args.cash,
        recorded_by=args.recorded_by,
    )


def run_add_batch(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    batch = core_logic.add_batch(context, **translate_add_batch(args))
    print(batch.batch_id)
    return 0


def run_add_size(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    size = core_logic.add_size(context, **translate_add_size(args))
    print(size.size_id)
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    customer = core_logic.add_customer(context, **translate_add_customer(args))
    print(customer.customer_id)
    return 0


def run_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the purchase workflow via the BLL."""
    purchase = core_logic.record_purchase(context, translate_purchase(args))
    print(
        f"{purchase.purchase_id} total={format_money(purchase.total_amount)} "
        f"paid={format_money(purchase.cash_paid)} balance={format_money(purchase.balance)} "
        f"status={settlement_status(purchase).value}"
    )
    return 0


def run_mark_balanced(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.set_batch_balanced(context, args.batch_id, balanced=not args.unbalanced)
    return 0


def run_edit_batch(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.update_batch(
        context,
        args.batch_id,
        name=args.name,
        cost_price=args.cost_price,
        tax_rate=args.tax_rate,
        expenses=args.expenses,
    )
    return 0


def run_delete_batch(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_batch(context, args.batch_id)
    return 0


def run_delete_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_purchase(context, args.purchase_id)
    return 0


def run_balance(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    balance = core_logic.compute_outstanding_balance(context, args.customer_id)
    print(format_money(balance))
    return 0


def run_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print one line per batch followed by the portfolio totals."""
    reports = core_logic.generate_batch_reports(context)
    for report in reports:
        print(
            f"{report.batch_id} {report.name}: revenue={format_money(report.revenue)} "
            f"tax={format_money(report.tax)} profit={format_money(report.profit)} "
            f"tithe={format_money(report.tithe)} margin={report.margin:.1f}% "
            f"{'Balanced' if report.is_balanced else 'Active'}"
        )
    totals = summarize_reports(reports)
    print(
        f"TOTAL: revenue={format_money(totals.total_revenue)} profit={format_money(totals.total_profit)} "
        f"tithe={format_money(totals.total_tithe)} expenses={format_money(totals.total_expenses)}"
    )
    return 0


def run_customer_sizes(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for summary in core_logic.customer_size_report(context, args.customer_id):
        print(f"{summary.size_name}: quantity={summary.total_quantity} spent={format_money(summary.total_spent)}")
    return 0


def run_purchases(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    purchases = core_logic.list_purchases(context, batch_id=args.batch_id, customer_id=args.customer_id)
    for purchase in purchases:
        print(
            f"{purchase.purchase_id} {purchase.created_at} {purchase.customer_name}: "
            f"total={format_money(purchase.total_amount)} paid={format_money(purchase.cash_paid)} "
            f"balance={format_money(purchase.balance)} {settlement_status(purchase).value}"
        )
    return 0


def run_dashboard(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    summary = core_logic.dashboard_summary(context)
    print(f"Total revenue: {format_money(summary.total_revenue)}")
    print(f"Total profit: {format_money(summary.total_profit)}")
    print(f"Unpaid balances: {format_money(summary.total_outstanding)}")
    print(f"Customers: {summary.customer_count}")
    print(f"Active batches: {summary.active_batches}")
    return 0


def run_notifications(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for notification in core_logic.list_notifications(context):
        print(f"{notification.created_at} [{notification.notification_type}] {notification.title}: {notification.message}")
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


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(f"Workbook is locked or read-only: {error}") from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and command_table[args.command].mutates:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
