"""Command-line entry points for the Booth Ledger toolkit.

All orchestration in this module is limited to argparse wiring and translating
command-line arguments into calls on the business layer. Every mutating
business operation persists its own changes, so the CLI never saves the
workbook itself.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from . import core_logic, log
from .constants import AgeGroup, Gender, MarketingChannel


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="booth-ledger",
        description="Command-line tools for the Booth Ledger sales workbook.",
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
    """Declare mutating CLI commands such as sales and catalog edits."""
    specs = {
        "add-event": register_add_event_command(subparsers),
        "select-event": register_select_event_command(subparsers),
        "add-product": register_add_product_command(subparsers),
        "add-bundle": register_add_bundle_command(subparsers),
        "edit-product": register_edit_product_command(subparsers),
        "remove-product": register_remove_product_command(subparsers),
        "sale": register_sale_command(subparsers),
        "edit-transaction": register_edit_transaction_command(subparsers),
        "delete-transaction": register_delete_transaction_command(subparsers),
        "clear-transactions": register_clear_transactions_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare reporting CLI commands."""
    specs = {
        "events": register_events_command(subparsers),
        "products": register_products_command(subparsers),
        "log": register_log_command(subparsers),
        "summary": register_summary_command(subparsers),
        "export": register_export_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def parse_item(text: str) -> Tuple[str, int]:
    """Parse ``PRODUCT_ID=QTY`` into a ``(product_id, quantity)`` pair."""
    product_id, sep, quantity_raw = text.rpartition("=")
    if not sep or not product_id:
        raise argparse.ArgumentTypeError(f"Expected PRODUCT_ID=QTY, got {text!r}")
    try:
        quantity = int(quantity_raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Quantity must be an integer: {quantity_raw!r}") from exc
    if quantity <= 0:
        raise argparse.ArgumentTypeError(f"Quantity must be positive: {quantity}")
    return product_id, quantity


def add_profile_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach the customer-profile options shared by ``sale`` and ``edit-transaction``."""
    parser.add_argument("--age-group", choices=[member.value for member in AgeGroup], default=None)
    parser.add_argument("--gender", choices=[member.value for member in Gender], default=None)
    parser.add_argument("--channel", choices=[member.value for member in MarketingChannel], default=None)
    for flag in ("exhibitor", "acquaintance", "cashless", "reserved"):
        parser.add_argument(
            f"--{flag}",
            dest=flag,
            action=argparse.BooleanOptionalAction,
            default=None,
        )
    parser.add_argument("--notes", dest="notes", default=None)


def register_add_event_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-event``."""
    name = "add-event"
    help_text = "Create an event and make it the current one."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_event)


def register_select_event_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``select-event``."""
    name = "select-event"
    help_text = "Make an existing event the current one."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--event-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_select_event)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a single item to the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--price", type=int, required=True)
        parser.add_argument("--product-id", default=None)
        parser.add_argument("--managed", action="store_true", help="Track stock for this item.")
        parser.add_argument("--stock", type=int, default=0)
        parser.add_argument("--image-ref", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_add_bundle_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-bundle``."""
    name = "add-bundle"
    help_text = "Add a bundle made of existing products."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--price", type=int, required=True)
        parser.add_argument("--component", dest="components", action="append", required=True)
        parser.add_argument("--product-id", default=None)
        parser.add_argument("--managed", action="store_true", help="Derive availability from components.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_bundle)


def register_edit_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit-product``."""
    name = "edit-product"
    help_text = "Change the name, price, stock, or stock tracking of a product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--name", default=None)
        parser.add_argument("--price", type=int, default=None)
        parser.add_argument("--stock", type=int, default=None)
        parser.add_argument("--managed", dest="managed", action=argparse.BooleanOptionalAction, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit_product)


def register_remove_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``remove-product``."""
    name = "remove-product"
    help_text = "Delete a product from the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_remove_product)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale for the current event."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--item", dest="items", type=parse_item, action="append", required=True)
        add_profile_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_edit_transaction_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit-transaction``."""
    name = "edit-transaction"
    help_text = "Change quantities or the customer profile of a recorded sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        parser.add_argument("--item", dest="items", type=parse_item, action="append", default=None)
        add_profile_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit_transaction)


def register_delete_transaction_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-transaction``."""
    name = "delete-transaction"
    help_text = "Delete a recorded sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_transaction)


def register_clear_transactions_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``clear-transactions``."""
    name = "clear-transactions"
    help_text = "Delete every recorded sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--yes", action="store_true", required=True, help="Confirm deletion.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_clear_transactions)


def register_events_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``events``."""
    name = "events"
    help_text = "List events, marking the current one."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_events_report)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "List the catalog with available stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products_report)


def register_log_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``log``."""
    name = "log"
    help_text = "Display recorded sales."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--event-id", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_log_report)


def register_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``summary``."""
    name = "summary"
    help_text = "Display per-product sales for an event."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--event-id", default=None, help="Defaults to the current event.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_summary_report)


def register_export_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export``."""
    name = "export"
    help_text = "Print the path of the sales CSV export."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--rewrite", action="store_true", help="Regenerate the file from the ledger first.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    context = core_logic.load_runtime_context(target)
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


def translate_profile(args: argparse.Namespace) -> Dict[str, object]:
    """Collect the customer-profile options that were given on the command line."""
    fields = {
        "age_group": args.age_group,
        "gender": args.gender,
        "channel": args.channel,
        "is_exhibitor": args.exhibitor,
        "is_acquaintance": args.acquaintance,
        "is_cashless": args.cashless,
        "is_reserved": args.reserved,
        "notes": args.notes,
    }
    return {key: value for key, value in fields.items() if value is not None}


def translate_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> core_logic.Session:
    """Translate CLI args into a filled-in session."""
    session = core_logic.Session.from_settings(context.settings)
    for product_id, quantity in args.items:
        session.set_quantity(product_id, session.basket.get(product_id, 0) + quantity)
    session.update_profile(**translate_profile(args))
    return session


def run_add_event(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    event = core_logic.add_event(context, args.name)
    print(event.event_id)
    return 0


def run_select_event(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.select_event(context, args.event_id)
    return 0


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    product = core_logic.add_product(
        context,
        product_name=args.name,
        price=args.price,
        inventory_managed=args.managed,
        stock=args.stock,
        image_ref=args.image_ref,
        product_id=args.product_id,
    )
    print(product.product_id)
    return 0


def run_add_bundle(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    bundle = core_logic.add_bundle(
        context,
        product_name=args.name,
        price=args.price,
        component_ids=args.components,
        inventory_managed=args.managed,
        product_id=args.product_id,
    )
    print(bundle.product_id)
    return 0


def run_edit_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.edit_product(
        context,
        args.product_id,
        product_name=args.name,
        price=args.price,
        stock=args.stock,
        inventory_managed=args.managed,
    )
    return 0


def run_remove_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.remove_product(context, args.product_id)
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the validate-then-commit sale workflow."""
    session = translate_sale(context, args)
    transaction = core_logic.commit_sale(context, session)
    if transaction is None:
        print("Sale rejected: select an event and check stock levels.")
        return 2
    print(transaction.transaction_id)
    return 0


def run_edit_transaction(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    quantities = dict(args.items) if args.items else None
    core_logic.revise_transaction(
        context,
        args.transaction_id,
        quantities=quantities,
        **translate_profile(args),
    )
    return 0


def run_delete_transaction(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    if not core_logic.delete_transaction(context, args.transaction_id):
        print(f"No transaction with id {args.transaction_id}")
    return 0


def run_clear_transactions(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_all_transactions(context)
    return 0


def run_events_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for event in core_logic.list_events(context):
        marker = "*" if event.event_id == context.selected_event_id else " "
        print(f"{marker} {event.event_id}  {event.event_name}")
    return 0


def run_products_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for product in core_logic.list_products(context):
        available = context.catalog.available_stock(product)
        stock_text = "-" if available is None else str(available)
        kind = "bundle" if product.is_bundle else "item"
        print(f"{product.product_id}  {product.product_name}  {product.price}  {kind}  stock={stock_text}")
    return 0


def run_log_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for transaction in core_logic.list_transactions(context, args.event_id):
        total = core_logic.transaction_total(context, transaction)
        lines: List[str] = []
        for item in transaction.items:
            product = context.catalog.get(item.product_id)
            if product is not None:
                lines.append(f"{product.product_name} x{item.quantity}")
        print(
            f"{transaction.transaction_id}  {transaction.timestamp.isoformat()}  "
            f"{core_logic.event_name(context, transaction.event_id)}  {total}  {', '.join(lines)}"
        )
    return 0


def run_summary_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    event_id = args.event_id or context.selected_event_id
    if event_id is None:
        raise core_logic.BusinessRuleViolation("No event selected")
    summaries = sorted(core_logic.summarize(context, event_id), key=lambda row: row.product_name)
    for row in summaries:
        remaining = "" if row.remaining_stock is None else f"  remaining={row.remaining_stock}"
        print(f"{row.product_name}  {row.count}  {row.total}{remaining}")
    print(f"Total  {sum(row.total for row in summaries)}")
    return 0


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    if args.rewrite:
        core_logic.rewrite_export(context)
    path = core_logic.export_file_path(context)
    if path is None:
        print("No export file yet.")
        return 1
    print(path)
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


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
