"""Flat CSV rendering of the ledger for external reporting.

Rows are always derived from the current catalog: product names and prices
are resolved when a row is written, so a full rewrite after a price change
retroactively updates historical rows. Sale items whose product no longer
resolves are left out of the export.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from . import log
from .catalog import Catalog
from .constants import EXPORT_DATETIME_FORMAT, EXPORT_HEADER
from .data_manager import Transaction


EventNameResolver = Callable[[str], str]


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as local wall-clock ``YYYY-MM-DD HH:MM:SS``."""

    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime(EXPORT_DATETIME_FORMAT)


def flatten_notes(notes: str) -> str:
    return notes.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")


def _flag(value: bool) -> str:
    return "1" if value else "0"


def transaction_rows(
    transaction: Transaction,
    catalog: Catalog,
    event_name: EventNameResolver,
) -> List[List[str]]:
    """Build the export fields for every resolvable item of ``transaction``."""

    rows = []
    event_label = event_name(transaction.event_id)
    timestamp = format_timestamp(transaction.timestamp)
    for item in transaction.items:
        product = catalog.get(item.product_id)
        if product is None:
            log.debug(
                "Skipping export of item '%s': product '%s' no longer exists",
                item.sale_item_id,
                item.product_id,
            )
            continue
        rows.append(
            [
                event_label,
                timestamp,
                product.product_name,
                str(item.quantity),
                str(product.price),
                str(item.quantity * product.price),
                transaction.age_group.label,
                transaction.gender.label,
                transaction.channel.label,
                _flag(transaction.is_exhibitor),
                _flag(transaction.is_acquaintance),
                _flag(transaction.is_cashless),
                _flag(transaction.is_reserved),
                flatten_notes(transaction.notes),
            ]
        )
    return rows


def render_lines(rows: Iterable[Sequence[str]]) -> str:
    """Quote every field, double inner quotes, and end each row with ``\\n``."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def header_line() -> str:
    return ",".join(EXPORT_HEADER) + "\n"


class LedgerExporter:
    """Writes the ledger to a single UTF-8 CSV file.

    Two strategies are offered: :meth:`append_transaction` for a freshly
    committed sale, and :meth:`rewrite_all` whenever history changed.
    Write failures are logged and reported as ``False``.
    """

    def __init__(self, export_file: Path) -> None:
        self.export_file = Path(export_file)

    def existing_path(self) -> Optional[Path]:
        """The export path if the file has been written at least once."""

        return self.export_file if self.export_file.exists() else None

    def append_transaction(
        self,
        transaction: Transaction,
        catalog: Catalog,
        event_name: EventNameResolver,
    ) -> bool:
        """Append the rows of one transaction, writing the header first if needed."""

        text = render_lines(transaction_rows(transaction, catalog, event_name))
        try:
            self.export_file.parent.mkdir(parents=True, exist_ok=True)
            if not self.export_file.exists():
                text = header_line() + text
            with self.export_file.open("a", encoding="utf-8", newline="") as handle:
                handle.write(text)
        except OSError as exc:
            log.warning("Unable to append to export file '%s': %s", self.export_file, exc)
            return False
        log.debug("Appended transaction '%s' to '%s'", transaction.transaction_id, self.export_file)
        return True

    def rewrite_all(
        self,
        transactions: Iterable[Transaction],
        catalog: Catalog,
        event_name: EventNameResolver,
    ) -> bool:
        """Regenerate the whole file: header plus every row in ledger order."""

        rows: List[List[str]] = []
        for transaction in transactions:
            rows.extend(transaction_rows(transaction, catalog, event_name))
        text = header_line() + render_lines(rows)
        try:
            self.export_file.parent.mkdir(parents=True, exist_ok=True)
            self.export_file.write_text(text, encoding="utf-8", newline="")
        except OSError as exc:
            log.warning("Unable to rewrite export file '%s': %s", self.export_file, exc)
            return False
        log.info("Rewrote export file '%s' with %d rows", self.export_file, len(rows))
        return True
