"""Business logic layer for Booth Ledger.

This module wires the in-memory catalog, event list, and ledger to the
workbook-backed data access layer and to the CSV exporter. Every operation a
front-end may invoke lives here: event and product management, the
validate-then-commit sale protocol, ledger edits, and per-event summaries.

Domain outcomes never raise. A sale that cannot proceed, or an edit that
targets a transaction which no longer exists, is a logged no-op reported
through the return value. Persistence failures are logged and reported as
``False`` while the in-memory state keeps the attempted change.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from openpyxl.workbook import Workbook

from . import data_manager, log
from .catalog import Catalog
from .constants import EXPECTED_SCHEMA_VERSION, AgeGroup, Gender, MarketingChannel
from .data_manager import (
    BundleComponents,
    Event,
    EventsSnapshot,
    Product,
    SaleItem,
    SimpleStock,
    Transaction,
)
from .export import LedgerExporter
from .ledger import LedgerStore


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a product, event, or transaction targeted by id is unknown."""


# Loaded when the workbook has no catalog sheet yet.
SEED_PRODUCTS: tuple[tuple[str, int, str], ...] = (
    ("Zine A", 500, "zine_a"),
    ("Zine B", 700, "zine_b"),
    ("Goods Set", 1200, "goods_set"),
)


@dataclass(frozen=True)
class ProfileDefaults:
    """Customer-profile values a :class:`Session` resets to."""

    age_group: AgeGroup = AgeGroup.TWENTIES
    gender: Gender = Gender.MALE
    channel: MarketingChannel = MarketingChannel.SNS


@dataclass
class Session:
    """Transient state of one point-of-sale session.

    Holds the basket being assembled and the customer profile that will be
    captured with the next sale. A successful commit resets it; a rejected one
    leaves it untouched so the operator can adjust the basket.
    """

    basket: Dict[str, int] = field(default_factory=dict)
    age_group: AgeGroup = AgeGroup.TWENTIES
    gender: Gender = Gender.MALE
    channel: MarketingChannel = MarketingChannel.SNS
    is_exhibitor: bool = False
    is_acquaintance: bool = False
    is_cashless: bool = False
    is_reserved: bool = False
    notes: str = ""
    defaults: ProfileDefaults = field(default_factory=ProfileDefaults, repr=False)

    @classmethod
    def from_settings(cls, settings: data_manager.ConfigSettings) -> "Session":
        defaults = ProfileDefaults(
            age_group=settings.default_age_group,
            gender=settings.default_gender,
            channel=settings.default_channel,
        )
        session = cls(defaults=defaults)
        session.reset()
        return session

    def toggle_product(self, product_id: str) -> None:
        """Add ``product_id`` with quantity 1, or drop it if already present."""

        if product_id in self.basket:
            del self.basket[product_id]
        else:
            self.basket[product_id] = 1

    def set_quantity(self, product_id: str, quantity: Optional[int]) -> None:
        """Set a basket quantity; ``None`` removes the entry, values below 1 clamp to 1."""

        if quantity is None:
            self.basket.pop(product_id, None)
            return
        self.basket[product_id] = max(1, int(quantity))

    def update_profile(self, **changes: Any) -> None:
        """Assign customer-profile fields, accepting enum members or their labels."""

        converters: Dict[str, Callable[[Any], Any]] = {
            "age_group": AgeGroup.from_label,
            "gender": Gender.from_label,
            "channel": MarketingChannel.from_label,
            "is_exhibitor": bool,
            "is_acquaintance": bool,
            "is_cashless": bool,
            "is_reserved": bool,
            "notes": str,
        }
        for name, value in changes.items():
            if name not in converters:
                raise ValueError(f"Unknown customer-profile field: {name}")
            setattr(self, name, converters[name](value))

    def reset(self) -> None:
        """Clear the basket and restore the default customer profile."""

        self.basket = {}
        self.age_group = self.defaults.age_group
        self.gender = self.defaults.gender
        self.channel = self.defaults.channel
        self.is_exhibitor = False
        self.is_acquaintance = False
        self.is_cashless = False
        self.is_reserved = False
        self.notes = ""


@dataclass(frozen=True)
class ProductSummary:
    """Per-product sales figures for one event."""

    product_id: str
    product_name: str
    count: int
    total: int
    remaining_stock: Optional[int]


@dataclass
class RuntimeContext:
    """Container for configuration, workbook, and the live domain state."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    catalog: Catalog = field(default_factory=Catalog)
    events: List[Event] = field(default_factory=list)
    selected_event_id: Optional[str] = None
    ledger: LedgerStore = field(default_factory=LedgerStore)
    exporter: Optional[LedgerExporter] = field(default=None, repr=False)


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or, when ``None``, the current UTC time."""

    return candidate if candidate is not None else datetime.now(UTC)


def generate_transaction_id(*, prefix: str = "T", when: Optional[datetime] = None) -> str:
    """Generate a sortable transaction identifier.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}-{suffix}``
            where ``suffix`` is eight random hex digits, so two sales in the
            same microsecond still get distinct ids.
    """
    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:8]}"


def new_id() -> str:
    """Opaque identifier for products, events, and sale items."""

    return uuid.uuid4().hex


def seed_catalog() -> List[Product]:
    return [
        Product(product_id=new_id(), product_name=name, price=price, image_ref=image_ref)
        for name, price, image_ref in SEED_PRODUCTS
    ]


def build_runtime_context(settings: data_manager.ConfigSettings, workbook: Workbook) -> RuntimeContext:
    """Assemble the live domain state from an opened workbook.

    A workbook without a catalog sheet starts from :data:`SEED_PRODUCTS`;
    missing event or ledger sheets start empty.
    """

    products = data_manager.load_products(workbook)
    if products is None:
        log.info("No catalog found in workbook; starting from the sample catalog")
        products = seed_catalog()
    events = data_manager.load_events(workbook) or EventsSnapshot()
    snapshot = data_manager.load_transactions(workbook) or data_manager.LedgerSnapshot()

    context = RuntimeContext(
        settings=settings,
        workbook=workbook,
        catalog=Catalog(products),
        events=list(events.events),
        selected_event_id=events.selected_event_id,
        exporter=LedgerExporter(settings.export_file),
    )
    context.ledger = LedgerStore(
        snapshot.transactions,
        persist=partial(persist_ledger, context),
        on_history_changed=partial(rewrite_export, context),
    )
    log.debug(
        "Runtime context holds %d products, %d events, %d transactions",
        len(context.catalog),
        len(context.events),
        len(context.ledger),
    )
    return context


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the BLL.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return build_runtime_context(settings, workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook and rebuild the domain state from disk.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return build_runtime_context(context.settings, workbook)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def _persist(context: RuntimeContext, label: str, write: Callable[[Workbook], None]) -> bool:
    try:
        write(context.workbook)
        data_manager.save_workbook(context.workbook, destination=context.settings.data_file)
    except (OSError, ValueError) as exc:
        log.warning("Failed to persist %s to '%s': %s", label, context.settings.data_file, exc)
        return False
    log.debug("Persisted %s to '%s'", label, context.settings.data_file)
    return True


def persist_catalog(context: RuntimeContext) -> bool:
    """Write the catalog blob and save the workbook."""

    return _persist(
        context,
        "catalog",
        lambda workbook: data_manager.store_products(workbook, context.catalog.products),
    )


def persist_events(context: RuntimeContext) -> bool:
    """Write the events blob (list plus selection) and save the workbook."""

    snapshot = EventsSnapshot(events=tuple(context.events), selected_event_id=context.selected_event_id)
    return _persist(context, "events", lambda workbook: data_manager.store_events(workbook, snapshot))


def persist_ledger(context: RuntimeContext, transactions: Optional[Sequence[Transaction]] = None) -> bool:
    """Write the ledger blob and save the workbook."""

    if transactions is None:
        transactions = context.ledger.transactions
    return _persist(
        context,
        "ledger",
        lambda workbook: data_manager.store_transactions(workbook, transactions),
    )


def persist_context(context: RuntimeContext) -> bool:
    """Write every blob and save the workbook once."""

    def write_all(workbook: Workbook) -> None:
        data_manager.store_products(workbook, context.catalog.products)
        data_manager.store_events(
            workbook,
            EventsSnapshot(events=tuple(context.events), selected_event_id=context.selected_event_id),
        )
        data_manager.store_transactions(workbook, context.ledger.transactions)

    return _persist(context, "workbook", write_all)


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def require_positive_quantity(quantity: int) -> None:
    """Validate that a quantity is a strictly positive integer.

    Raises:
        ValueError: If ``quantity`` is zero, negative, or not an integer.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be a positive integer")


def require_nonnegative_amount(amount: int, *, what: str = "Amount") -> None:
    """Validate that a price or stock count is a non-negative integer.

    Raises:
        ValueError: If ``amount`` is negative or not an integer.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        log.error("%s validation failed: %s", what, amount)
        raise ValueError(f"{what} must be a non-negative integer")


def require_name(name: str, *, what: str = "Name") -> str:
    """Return ``name`` stripped of surrounding whitespace, rejecting blanks."""

    stripped = (name or "").strip()
    if not stripped:
        log.error("%s validation failed: blank value", what)
        raise ValueError(f"{what} must not be blank")
    return stripped


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def list_events(context: RuntimeContext) -> List[Event]:
    return list(context.events)


def get_event(context: RuntimeContext, event_id: str) -> Optional[Event]:
    return next((event for event in context.events if event.event_id == event_id), None)


def event_name(context: RuntimeContext, event_id: str) -> str:
    """Name of ``event_id``, or an empty string when the event is unknown."""

    event = get_event(context, event_id)
    return event.event_name if event is not None else ""


def current_event_name(context: RuntimeContext) -> str:
    """Name of the selected event, falling back to the configured booth name."""

    if context.selected_event_id is not None:
        event = get_event(context, context.selected_event_id)
        if event is not None:
            return event.event_name
    return context.settings.booth_name


def add_event(context: RuntimeContext, name: str) -> Event:
    """Append a new event, select it, and persist the events blob."""

    event = Event(event_id=new_id(), event_name=require_name(name, what="Event name"))
    context.events.append(event)
    context.selected_event_id = event.event_id
    persist_events(context)
    log.info("Created and selected event '%s' (%s)", event.event_name, event.event_id)
    return event


def select_event(context: RuntimeContext, event_id: str) -> Event:
    """Make ``event_id`` the current event and persist the selection.

    Raises:
        MissingReferenceError: If no event has ``event_id``.
    """

    event = get_event(context, event_id)
    if event is None:
        log.warning("Event lookup failed for id '%s'", event_id)
        raise MissingReferenceError(f"Unknown event id: {event_id}")
    context.selected_event_id = event.event_id
    persist_events(context)
    log.info("Selected event '%s' (%s)", event.event_name, event.event_id)
    return event


# ---------------------------------------------------------------------------
# Catalog management
# ---------------------------------------------------------------------------


def list_products(context: RuntimeContext) -> List[Product]:
    return context.catalog.products


def get_product(context: RuntimeContext, product_id: str) -> Product:
    """Resolve a product by id.

    Raises:
        MissingReferenceError: If ``product_id`` is absent from the catalog.
    """
    product = context.catalog.get(product_id)
    if product is None:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise MissingReferenceError(f"Unknown product id: {product_id}")
    return product


def add_product(
    context: RuntimeContext,
    *,
    product_name: str,
    price: int,
    inventory_managed: bool = False,
    stock: int = 0,
    image_ref: Optional[str] = None,
    product_id: Optional[str] = None,
) -> Product:
    """Append a single item to the catalog and persist it."""

    require_nonnegative_amount(price, what="Price")
    require_nonnegative_amount(stock, what="Stock")
    product = Product(
        product_id=product_id or new_id(),
        product_name=require_name(product_name, what="Product name"),
        price=price,
        inventory_managed=inventory_managed,
        kind=SimpleStock(stock=stock),
        image_ref=image_ref,
    )
    context.catalog.add(product)
    persist_catalog(context)
    log.info("Added product '%s' (%s) priced %d", product.product_name, product.product_id, price)
    return product


def add_bundle(
    context: RuntimeContext,
    *,
    product_name: str,
    price: int,
    component_ids: Sequence[str],
    inventory_managed: bool = False,
    image_ref: Optional[str] = None,
    product_id: Optional[str] = None,
) -> Product:
    """Append a bundle built from ``component_ids`` and persist it.

    Components are not checked for existence or for being bundles themselves;
    readers skip whatever does not resolve.
    """

    require_nonnegative_amount(price, what="Price")
    if not component_ids:
        log.error("Bundle '%s' rejected: no components", product_name)
        raise ValueError("A bundle needs at least one component")
    bundle = Product(
        product_id=product_id or new_id(),
        product_name=require_name(product_name, what="Bundle name"),
        price=price,
        inventory_managed=inventory_managed,
        kind=BundleComponents(component_ids=tuple(component_ids)),
        image_ref=image_ref,
    )
    context.catalog.add(bundle)
    persist_catalog(context)
    log.info(
        "Added bundle '%s' (%s) with %d components",
        bundle.product_name,
        bundle.product_id,
        len(bundle.component_ids),
    )
    return bundle


_UNSET: Any = object()


def edit_product(
    context: RuntimeContext,
    product_id: str,
    *,
    product_name: Optional[str] = None,
    price: Optional[int] = None,
    inventory_managed: Optional[bool] = None,
    stock: Optional[int] = None,
    component_ids: Optional[Sequence[str]] = None,
    image_ref: Any = _UNSET,
) -> Product:
    """Replace selected fields of an existing product and persist the catalog.

    Raises:
        MissingReferenceError: If ``product_id`` is unknown.
        ValueError: If a field fails validation or does not apply to the
            product's variant (stock on a bundle, components on an item).
    """

    current = get_product(context, product_id)
    changes: Dict[str, Any] = {}
    if product_name is not None:
        changes["product_name"] = require_name(product_name, what="Product name")
    if price is not None:
        require_nonnegative_amount(price, what="Price")
        changes["price"] = price
    if inventory_managed is not None:
        changes["inventory_managed"] = inventory_managed
    if image_ref is not _UNSET:
        changes["image_ref"] = image_ref
    if stock is not None:
        if current.is_bundle:
            raise ValueError("Bundles derive their stock from their components")
        require_nonnegative_amount(stock, what="Stock")
        changes["kind"] = SimpleStock(stock=stock)
    if component_ids is not None:
        if not current.is_bundle:
            raise ValueError("Only bundles have components")
        if not component_ids:
            raise ValueError("A bundle needs at least one component")
        changes["kind"] = BundleComponents(component_ids=tuple(component_ids))

    updated = replace(current, **changes)
    context.catalog.replace(updated)
    persist_catalog(context)
    log.info("Updated product '%s' (%s)", updated.product_name, product_id)
    return updated


def remove_product(context: RuntimeContext, product_id: str) -> None:
    """Hard-delete a product; references to it elsewhere become dangling.

    Raises:
        MissingReferenceError: If ``product_id`` is unknown.
    """

    product = get_product(context, product_id)
    context.catalog.remove(product_id)
    persist_catalog(context)
    log.info("Removed product '%s' (%s)", product.product_name, product_id)


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def validate_basket(context: RuntimeContext, basket: Mapping[str, int]) -> bool:
    """Decide whether ``basket`` can be sold as a whole.

    Ids that do not resolve are ignored. One resolved entry that cannot be
    sold rejects the entire basket.
    """

    for product_id, quantity in basket.items():
        require_positive_quantity(quantity)
        product = context.catalog.get(product_id)
        if product is None:
            log.debug("Ignoring unresolved basket entry '%s'", product_id)
            continue
        if not context.catalog.can_sell(product, quantity):
            log.warning(
                "Insufficient stock for '%s' (%s): requested %d, available %s",
                product.product_name,
                product_id,
                quantity,
                context.catalog.available_stock(product),
            )
            return False
    return True


def basket_total(context: RuntimeContext, session: Session) -> int:
    """Sum of quantity times current price over the resolvable basket entries."""

    total = 0
    for product_id, quantity in session.basket.items():
        amount = context.catalog.line_amount(product_id, quantity)
        if amount is not None:
            total += amount
    return total


def build_sale_transaction(
    session: Session,
    *,
    event_id: str,
    transaction_id: str,
    timestamp: datetime,
) -> Transaction:
    """Materialize the session's basket and profile into a :class:`Transaction`.

    One sale item is created per basket entry, in basket order.
    """

    items = tuple(
        SaleItem(sale_item_id=new_id(), product_id=product_id, quantity=quantity)
        for product_id, quantity in session.basket.items()
    )
    return Transaction(
        transaction_id=transaction_id,
        timestamp=timestamp,
        event_id=event_id,
        items=items,
        age_group=session.age_group,
        gender=session.gender,
        channel=session.channel,
        is_exhibitor=session.is_exhibitor,
        is_acquaintance=session.is_acquaintance,
        is_cashless=session.is_cashless,
        is_reserved=session.is_reserved,
        notes=session.notes,
    )


def commit_sale(
    context: RuntimeContext,
    session: Session,
    *,
    timestamp: Optional[datetime] = None,
) -> Optional[Transaction]:
    """Validate the session's basket and, if it passes, record the sale.

    On success the transaction is appended to the ledger, stock is
    decremented, both blobs are persisted, the transaction's rows are appended
    to the export file, and the session is reset.

    Returns:
        Transaction | None: The recorded transaction, or ``None`` when no
            event is selected, the basket is empty, or any resolvable entry
            lacks stock. Nothing changes in that case.
    """

    event_id = context.selected_event_id
    if event_id is None:
        log.warning("Sale rejected: no event selected")
        return None
    if not session.basket:
        log.warning("Sale rejected: basket is empty")
        return None
    if not validate_basket(context, session.basket):
        log.warning("Sale rejected: basket failed stock validation")
        return None

    basket = dict(session.basket)
    when = _resolve_timestamp(timestamp)
    transaction = build_sale_transaction(
        session,
        event_id=event_id,
        transaction_id=generate_transaction_id(when=when),
        timestamp=when,
    )
    context.ledger.append(transaction)
    context.catalog.apply_sale(basket)
    persist_catalog(context)
    if context.exporter is not None:
        context.exporter.append_transaction(transaction, context.catalog, partial(event_name, context))
    session.reset()
    log.info(
        "Recorded sale '%s' for event '%s' (%d items)",
        transaction.transaction_id,
        event_id,
        len(transaction.items),
    )
    return transaction


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


def list_transactions(context: RuntimeContext, event_id: Optional[str] = None) -> List[Transaction]:
    """Transactions in ledger order, optionally limited to one event."""

    if event_id is None:
        return context.ledger.transactions
    return context.ledger.for_event(event_id)


def get_transaction(context: RuntimeContext, transaction_id: str) -> Transaction:
    """Resolve a transaction by id.

    Raises:
        MissingReferenceError: If the ledger lacks ``transaction_id``.
    """
    transaction = context.ledger.get(transaction_id)
    if transaction is None:
        log.warning("Transaction lookup failed for id '%s'", transaction_id)
        raise MissingReferenceError(f"Unknown transaction id: {transaction_id}")
    return transaction


def transaction_total(context: RuntimeContext, transaction: Transaction) -> int:
    """Current value of a transaction; items of deleted products count as 0."""

    total = 0
    for item in transaction.items:
        amount = context.catalog.line_amount(item.product_id, item.quantity)
        if amount is not None:
            total += amount
    return total


def edit_transaction(context: RuntimeContext, transaction_id: str, updated: Transaction) -> bool:
    """Replace a transaction wholesale and regenerate the export file.

    Stock is not adjusted. Returns ``False`` (and changes nothing) when
    ``transaction_id`` is no longer in the ledger.
    """

    for item in updated.items:
        require_positive_quantity(item.quantity)
    replaced = context.ledger.replace(transaction_id, updated)
    if replaced:
        log.info("Edited transaction '%s'", transaction_id)
    return replaced


def revise_transaction(
    context: RuntimeContext,
    transaction_id: str,
    *,
    quantities: Optional[Mapping[str, int]] = None,
    **profile: Any,
) -> bool:
    """Edit an existing transaction field by field.

    ``quantities`` maps product ids of existing items to new quantities;
    ``profile`` accepts the same keywords as :meth:`Session.update_profile`.

    Raises:
        MissingReferenceError: If ``transaction_id`` is unknown or ``quantities``
            names a product the transaction has no item for.
    """

    current = get_transaction(context, transaction_id)
    draft = Session(
        age_group=current.age_group,
        gender=current.gender,
        channel=current.channel,
        is_exhibitor=current.is_exhibitor,
        is_acquaintance=current.is_acquaintance,
        is_cashless=current.is_cashless,
        is_reserved=current.is_reserved,
        notes=current.notes,
    )
    draft.update_profile(**profile)
    items = current.items
    if quantities:
        unknown = sorted(set(quantities) - {item.product_id for item in current.items})
        if unknown:
            log.warning("Transaction '%s' has no items for products %s", transaction_id, unknown)
            raise MissingReferenceError(
                f"Transaction {transaction_id} has no items for products: {', '.join(unknown)}"
            )
        items = tuple(
            replace(item, quantity=quantities.get(item.product_id, item.quantity)) for item in current.items
        )
    updated = replace(
        current,
        items=items,
        age_group=draft.age_group,
        gender=draft.gender,
        channel=draft.channel,
        is_exhibitor=draft.is_exhibitor,
        is_acquaintance=draft.is_acquaintance,
        is_cashless=draft.is_cashless,
        is_reserved=draft.is_reserved,
        notes=draft.notes,
    )
    return edit_transaction(context, transaction_id, updated)


def delete_transaction(context: RuntimeContext, transaction_id: str) -> bool:
    """Remove one transaction; unknown ids are a no-op. Stock is not restored."""

    deleted = context.ledger.delete_one(transaction_id)
    if deleted:
        log.info("Deleted transaction '%s'", transaction_id)
    return deleted


def delete_all_transactions(context: RuntimeContext) -> None:
    """Empty the ledger; the export file is left holding only its header."""

    count = len(context.ledger)
    context.ledger.delete_all()
    log.info("Deleted all %d transactions", count)


# ---------------------------------------------------------------------------
# Export and reporting
# ---------------------------------------------------------------------------


def rewrite_export(context: RuntimeContext, transactions: Optional[Sequence[Transaction]] = None) -> bool:
    """Regenerate the export file from the ledger and the current catalog."""

    if context.exporter is None:
        return False
    if transactions is None:
        transactions = context.ledger.transactions
    return context.exporter.rewrite_all(transactions, context.catalog, partial(event_name, context))


def export_file_path(context: RuntimeContext) -> Optional[Path]:
    """Path of the export file, or ``None`` if nothing has been exported yet."""

    if context.exporter is None:
        return None
    return context.exporter.existing_path()


def summarize(context: RuntimeContext, event_id: str) -> List[ProductSummary]:
    """Per-product sold counts, revenue, and remaining stock for one event.

    Items whose product no longer resolves are skipped. Revenue uses current
    prices. Rows come out in first-sold order; callers wanting another order
    must sort.
    """

    totals: Dict[str, List[int]] = {}
    for transaction in context.ledger.for_event(event_id):
        for item in transaction.items:
            product = context.catalog.get(item.product_id)
            if product is None:
                continue
            entry = totals.setdefault(item.product_id, [0, 0])
            entry[0] += item.quantity
            entry[1] += item.quantity * product.price

    summaries = []
    for product_id, (count, total) in totals.items():
        product = context.catalog.get(product_id)
        if product is None:
            continue
        summaries.append(
            ProductSummary(
                product_id=product_id,
                product_name=product.product_name,
                count=count,
                total=total,
                remaining_stock=context.catalog.available_stock(product) if product.inventory_managed else None,
            )
        )
    log.debug("Summarized %d products for event '%s'", len(summaries), event_id)
    return summaries
