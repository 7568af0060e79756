"""Data access layer for Booth Ledger.

This module provides low-level helpers that read from and write to the
``booth_ledger.xlsx`` master workbook. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Blob operations: each persisted collection (catalog, events, ledger) is a
   set of worksheets that is read as a whole and rewritten as a whole.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import (
    DEFAULT_BOOTH_NAME,
    SHEET_COLUMNS,
    AgeGroup,
    Gender,
    MarketingChannel,
    SheetName,
)


CONFIG_FILE_NAME = "config.ini"
DEFAULT_EXPORT_FILE_NAME = "sales.csv"
COMPONENT_SEPARATOR = ";"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    export_file: Path
    schema_version: str
    booth_name: str = DEFAULT_BOOTH_NAME
    default_age_group: AgeGroup = AgeGroup.TWENTIES
    default_gender: Gender = Gender.MALE
    default_channel: MarketingChannel = MarketingChannel.SNS


@dataclass(frozen=True)
class SimpleStock:
    """Variant payload of a single item: it owns its stock count."""

    stock: int = 0


@dataclass(frozen=True)
class BundleComponents:
    """Variant payload of a bundle: the ordered ids of its components."""

    component_ids: tuple[str, ...] = ()


ProductKind = Union[SimpleStock, BundleComponents]


@dataclass(frozen=True)
class Product:
    """A sellable catalog entry, either a single item or a bundle."""

    product_id: str
    product_name: str
    price: int
    inventory_managed: bool = False
    kind: ProductKind = SimpleStock()
    image_ref: Optional[str] = None

    @property
    def is_bundle(self) -> bool:
        return isinstance(self.kind, BundleComponents)

    @property
    def stock(self) -> int:
        # A bundle's own stock is never authoritative.
        return self.kind.stock if isinstance(self.kind, SimpleStock) else 0

    @property
    def component_ids(self) -> tuple[str, ...]:
        return self.kind.component_ids if isinstance(self.kind, BundleComponents) else ()


@dataclass(frozen=True)
class Event:
    """An exhibition or sales event transactions are attributed to."""

    event_id: str
    event_name: str


@dataclass(frozen=True)
class SaleItem:
    """One product line of a transaction."""

    sale_item_id: str
    product_id: str
    quantity: int


@dataclass(frozen=True)
class Transaction:
    """A recorded sale together with the customer profile captured with it."""

    transaction_id: str
    timestamp: datetime
    event_id: str
    items: tuple[SaleItem, ...] = ()
    age_group: AgeGroup = AgeGroup.TWENTIES
    gender: Gender = Gender.MALE
    channel: MarketingChannel = MarketingChannel.SNS
    is_exhibitor: bool = False
    is_acquaintance: bool = False
    is_cashless: bool = False
    is_reserved: bool = False
    notes: str = ""


@dataclass(frozen=True)
class EventsSnapshot:
    """Contents of the events blob: the event list plus the selection."""

    events: tuple[Event, ...] = ()
    selected_event_id: Optional[str] = None


@dataclass(frozen=True)
class LedgerSnapshot:
    """Contents of the ledger blob in ledger order."""

    transactions: tuple[Transaction, ...] = ()


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match that exists on disk wins.

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

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def _anchor_path(raw: str, base_path: Path) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_path / path).resolve()
    return path


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System] DataFile`` and ``[System] SchemaVersion`` are required.
    ``ExportFile`` defaults to ``sales.csv`` beside the workbook. The optional
    ``[Defaults]`` section selects the customer-profile values a session resets
    to and the title shown when no event is selected. Relative paths are
    anchored at ``base_path`` (or the current working directory).

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor relative paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required option is missing.
        ValueError: If a default names an unknown enumeration label.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    if base_path is None:
        base_path = Path.cwd()

    data_file_path = _anchor_path(data_file_raw, base_path)
    export_raw = parser.get("System", "ExportFile", fallback=None)
    if export_raw:
        export_file_path = _anchor_path(export_raw, base_path)
    else:
        export_file_path = data_file_path.parent / DEFAULT_EXPORT_FILE_NAME

    return ConfigSettings(
        data_file=data_file_path,
        export_file=export_file_path,
        schema_version=schema_version,
        booth_name=parser.get("Defaults", "BoothName", fallback=DEFAULT_BOOTH_NAME),
        default_age_group=AgeGroup.from_label(
            parser.get("Defaults", "AgeGroup", fallback=AgeGroup.TWENTIES.value)),
        default_gender=Gender.from_label(
            parser.get("Defaults", "Gender", fallback=Gender.MALE.value)),
        default_channel=MarketingChannel.from_label(
            parser.get("Defaults", "Channel", fallback=MarketingChannel.SNS.value)),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk at an explicitly provided destination.

    Parent directories are created on demand.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def has_blob(workbook: Workbook, sheet_name: SheetName) -> bool:
    """Return ``True`` when the worksheet backing ``sheet_name`` exists."""

    return sheet_name.value in workbook.sheetnames


def read_rows(workbook: Workbook, sheet_name: SheetName) -> Optional[list[tuple]]:
    """Return the data rows of a blob worksheet, or ``None`` when it is absent.

    The header row and fully empty rows are skipped.
    """

    if not has_blob(workbook, sheet_name):
        return None
    sheet = workbook[sheet_name.value]
    return [
        tuple(raw)
        for raw in sheet.iter_rows(min_row=2, values_only=True)
        if any(cell is not None for cell in raw)
    ]


def write_rows(workbook: Workbook, sheet_name: SheetName, rows: Iterable[Sequence[object]]) -> None:
    """Replace every data row of a blob worksheet, creating it if needed.

    The header row is kept (or written in bold for a new sheet); all previous
    data rows are discarded before ``rows`` are appended in order.
    """

    if has_blob(workbook, sheet_name):
        sheet = workbook[sheet_name.value]
        if sheet.max_row > 1:
            sheet.delete_rows(2, sheet.max_row - 1)
    else:
        sheet = workbook.create_sheet(title=sheet_name.value)
        write_header(sheet, SHEET_COLUMNS[sheet_name])

    # Addressed explicitly: ``append`` would continue below the deleted rows.
    count = 0
    for row_index, row in enumerate(rows, start=2):
        for column_index, value in enumerate(row, start=1):
            sheet.cell(row=row_index, column=column_index, value=_cell_value(value))
        count += 1
    log.debug("Wrote %d rows to sheet '%s'", count, sheet_name.value)


def _cell_value(value: object) -> object:
    # openpyxl refuses control characters in cell text.
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def write_header(sheet, columns: Sequence[str]) -> None:
    """Write ``columns`` as a bold header on the first row of ``sheet``."""

    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = bold_font


def load_products(workbook: Workbook) -> Optional[list[Product]]:
    """Load the catalog blob in sheet order, or ``None`` when it is absent."""

    rows = read_rows(workbook, SheetName.PRODUCTS)
    if rows is None:
        return None
    return [deserialize_product(raw) for raw in rows]


def store_products(workbook: Workbook, products: Iterable[Product]) -> None:
    """Rewrite the catalog blob with ``products`` in order."""

    write_rows(workbook, SheetName.PRODUCTS, (serialize_product(p) for p in products))


def load_events(workbook: Workbook) -> Optional[EventsSnapshot]:
    """Load the events blob, or ``None`` when it is absent.

    The first row flagged ``IsSelected`` provides the selected event id.
    """

    rows = read_rows(workbook, SheetName.EVENTS)
    if rows is None:
        return None
    events: list[Event] = []
    selected: Optional[str] = None
    for raw in rows:
        event, is_selected = deserialize_event(raw)
        events.append(event)
        if is_selected and selected is None:
            selected = event.event_id
    return EventsSnapshot(events=tuple(events), selected_event_id=selected)


def store_events(workbook: Workbook, snapshot: EventsSnapshot) -> None:
    """Rewrite the events blob, flagging the selected event."""

    write_rows(
        workbook,
        SheetName.EVENTS,
        (serialize_event(event, event.event_id == snapshot.selected_event_id) for event in snapshot.events),
    )


def load_transactions(workbook: Workbook) -> Optional[LedgerSnapshot]:
    """Load the ledger blob, or ``None`` when the transaction sheet is absent.

    Sale items are attached to their owning transaction in sheet order. Items
    whose transaction id matches no transaction row are dropped.
    """

    transaction_rows = read_rows(workbook, SheetName.TRANSACTIONS)
    if transaction_rows is None:
        return None
    item_rows = read_rows(workbook, SheetName.SALE_ITEMS) or []

    items_by_transaction: dict[str, list[SaleItem]] = {}
    for raw in item_rows:
        transaction_id, item = deserialize_sale_item(raw)
        items_by_transaction.setdefault(transaction_id, []).append(item)

    transactions = []
    for raw in transaction_rows:
        transaction = deserialize_transaction(raw)
        items = tuple(items_by_transaction.get(transaction.transaction_id, ()))
        transactions.append(replace(transaction, items=items))
    return LedgerSnapshot(transactions=tuple(transactions))


def store_transactions(workbook: Workbook, transactions: Iterable[Transaction]) -> None:
    """Rewrite the ledger blob (transactions and their sale items)."""

    transactions = list(transactions)
    write_rows(workbook, SheetName.TRANSACTIONS, (serialize_transaction(t) for t in transactions))
    write_rows(
        workbook,
        SheetName.SALE_ITEMS,
        (
            serialize_sale_item(t.transaction_id, item)
            for t in transactions
            for item in t.items
        ),
    )


def serialize_product(record: Product) -> list[object]:
    """Convert a product into the ``Products`` worksheet column ordering.

    Returns:
        list[object]: Values arranged as ``[ProductID, ProductName, Price,
        ImageRef, InventoryManaged, Stock, IsBundle, ComponentIDs]``.
    """

    return [
        record.product_id,
        record.product_name,
        record.price,
        record.image_ref,
        record.inventory_managed,
        record.stock,
        record.is_bundle,
        COMPONENT_SEPARATOR.join(record.component_ids) if record.is_bundle else None,
    ]


def serialize_event(record: Event, is_selected: bool) -> list[object]:
    return [record.event_id, record.event_name, is_selected]


def serialize_transaction(record: Transaction) -> list[object]:
    """Convert a transaction header into the ``Transactions`` column order.

    Enumerations are stored by value and the timestamp as ISO 8601 text.
    """

    return [
        record.transaction_id,
        record.timestamp.isoformat(),
        record.event_id,
        record.age_group.value,
        record.gender.value,
        record.channel.value,
        record.is_exhibitor,
        record.is_acquaintance,
        record.is_cashless,
        record.is_reserved,
        record.notes,
    ]


def serialize_sale_item(transaction_id: str, record: SaleItem) -> list[object]:
    return [record.sale_item_id, transaction_id, record.product_id, record.quantity]


def _as_int(raw: object, default: int = 0) -> int:
    if raw is None or raw == "":
        return default
    return int(raw)


def _as_optional_str(raw: object) -> Optional[str]:
    if raw is None or raw == "":
        return None
    return str(raw)


def deserialize_product(raw_row: Sequence[object]) -> Product:
    """Convert a raw worksheet row into a :class:`Product`.

    Identifier and name fields are coerced to ``str`` so that Excel's habit of
    turning numeric-looking ids into numbers does not leak out. The
    ``IsBundle`` flag selects which variant payload is built.
    """

    (
        product_id,
        product_name,
        price_raw,
        image_ref,
        inventory_managed,
        stock_raw,
        is_bundle,
        component_raw,
    ) = tuple(raw_row[:8]) + (None,) * (8 - len(raw_row[:8]))

    kind: ProductKind
    if bool(is_bundle):
        component_ids = tuple(
            part for part in str(component_raw or "").split(COMPONENT_SEPARATOR) if part
        )
        kind = BundleComponents(component_ids=component_ids)
    else:
        kind = SimpleStock(stock=_as_int(stock_raw))

    return Product(
        product_id=str(product_id),
        product_name=str(product_name) if product_name is not None else "",
        price=_as_int(price_raw),
        inventory_managed=bool(inventory_managed),
        kind=kind,
        image_ref=_as_optional_str(image_ref),
    )


def deserialize_event(raw_row: Sequence[object]) -> tuple[Event, bool]:
    """Convert a raw ``Events`` row into an :class:`Event` and its selection flag."""

    event_id, event_name, is_selected = tuple(raw_row[:3]) + (None,) * (3 - len(raw_row[:3]))
    event = Event(event_id=str(event_id), event_name=str(event_name) if event_name is not None else "")
    return event, bool(is_selected)


def deserialize_transaction(raw_row: Sequence[object]) -> Transaction:
    """Convert a raw ``Transactions`` row into an item-less :class:`Transaction`.

    Sale items live on their own sheet and are attached by
    :func:`load_transactions`. Blank notes become an empty string.
    """

    (
        transaction_id,
        timestamp_iso,
        event_id,
        age_group,
        gender,
        channel,
        is_exhibitor,
        is_acquaintance,
        is_cashless,
        is_reserved,
        notes,
    ) = tuple(raw_row[:11]) + (None,) * (11 - len(raw_row[:11]))

    timestamp = timestamp_iso if isinstance(timestamp_iso, datetime) else datetime.fromisoformat(str(timestamp_iso))

    return Transaction(
        transaction_id=str(transaction_id),
        timestamp=timestamp,
        event_id=str(event_id),
        age_group=AgeGroup(str(age_group)),
        gender=Gender(str(gender)),
        channel=MarketingChannel(str(channel)),
        is_exhibitor=bool(is_exhibitor),
        is_acquaintance=bool(is_acquaintance),
        is_cashless=bool(is_cashless),
        is_reserved=bool(is_reserved),
        notes=str(notes) if notes is not None else "",
    )


def deserialize_sale_item(raw_row: Sequence[object]) -> tuple[str, SaleItem]:
    """Convert a raw ``SaleItems`` row into ``(transaction_id, SaleItem)``."""

    sale_item_id, transaction_id, product_id, quantity = tuple(raw_row[:4]) + (None,) * (4 - len(raw_row[:4]))
    item = SaleItem(
        sale_item_id=str(sale_item_id),
        product_id=str(product_id),
        quantity=_as_int(quantity),
    )
    return str(transaction_id), item
