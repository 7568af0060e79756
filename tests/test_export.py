"""Tests for the CSV export format and its append/rewrite strategies."""

from __future__ import annotations

import csv
import io
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import pytest

from booth_ledger import constants, export
from booth_ledger.catalog import Catalog
from booth_ledger.data_manager import Product, SaleItem, SimpleStock, Transaction
from booth_ledger.export import LedgerExporter

HEADER = (
    "Event,DateTime,ProductName,Quantity,UnitPrice,Amount,AgeGroup,Gender,Channel,"
    "Exhibitor,Acquaintance,Cashless,Reserved,Notes\n"
)


def _names(event_id: str) -> str:
    return {"E1": "Spring Fair"}.get(event_id, "")


@pytest.fixture
def catalog() -> Catalog:
    return Catalog(
        [
            Product("A", 'Zine "Alpha", vol.1', 500, inventory_managed=True, kind=SimpleStock(stock=10)),
            Product("B", "Sticker", 200),
        ]
    )


@pytest.fixture
def sale() -> Transaction:
    return Transaction(
        transaction_id="T1",
        timestamp=datetime(2024, 5, 1, 14, 5, 9),
        event_id="E1",
        items=(SaleItem("S1", "A", 2), SaleItem("S2", "gone", 1), SaleItem("S3", "B", 3)),
        age_group=constants.AgeGroup.THIRTIES,
        gender=constants.Gender.FEMALE,
        channel=constants.MarketingChannel.SAMPLE_BOOK,
        is_cashless=True,
        notes="line one\r\nline two\nthree",
    )


def test_header_lists_fourteen_columns():
    """The header line is unquoted and matches the fixed column order."""

    assert export.header_line() == HEADER
    assert len(constants.EXPORT_HEADER) == 14


def test_transaction_rows_skip_dangling_products(catalog, sale):
    """Items whose product was deleted are left out of the export."""

    rows = export.transaction_rows(sale, catalog, _names)

    assert [row[2] for row in rows] == ['Zine "Alpha", vol.1', "Sticker"]


def test_transaction_rows_field_values(catalog, sale):
    """Each row carries labels, integer amounts, and 1/0 flags."""

    first = export.transaction_rows(sale, catalog, _names)[0]

    assert first == [
        "Spring Fair",
        "2024-05-01 14:05:09",
        'Zine "Alpha", vol.1',
        "2",
        "500",
        "1000",
        "30-39",
        "Female",
        "Sample Book",
        "0",
        "0",
        "1",
        "0",
        "line one line two three",
    ]


def test_render_lines_quotes_every_field(catalog, sale):
    """Every data field is quoted and inner quotes are doubled."""

    text = export.render_lines(export.transaction_rows(sale, catalog, _names))
    lines = text.split("\n")

    assert lines[0].startswith('"Spring Fair","2024-05-01 14:05:09","Zine ""Alpha"", vol.1","2"')
    assert lines[-1] == ""
    assert len(lines) == 3


def test_rows_survive_a_csv_reader(catalog, sale):
    """A standard CSV parser recovers the original field values."""

    text = export.render_lines(export.transaction_rows(sale, catalog, _names))

    parsed = list(csv.reader(io.StringIO(text)))

    assert parsed == export.transaction_rows(sale, catalog, _names)


def test_unknown_event_renders_empty_label(catalog, sale):
    rows = export.transaction_rows(replace(sale, event_id="E9"), catalog, _names)

    assert rows[0][0] == ""


def test_append_writes_header_once(tmp_path: Path, catalog, sale):
    """The first append creates the file with a header; later ones only add rows."""

    exporter = LedgerExporter(tmp_path / "out" / "sales.csv")
    assert exporter.existing_path() is None

    assert exporter.append_transaction(sale, catalog, _names)
    assert exporter.append_transaction(sale, catalog, _names)

    content = exporter.export_file.read_text(encoding="utf-8")
    assert content.startswith(HEADER)
    assert content.count(HEADER) == 1
    assert content.count("\n") == 1 + 4
    assert exporter.existing_path() == exporter.export_file


def test_rewrite_all_matches_ledger(tmp_path: Path, catalog, sale):
    """A rewrite yields one header plus one line per resolvable item."""

    exporter = LedgerExporter(tmp_path / "sales.csv")
    exporter.append_transaction(sale, catalog, _names)
    exporter.append_transaction(sale, catalog, _names)

    assert exporter.rewrite_all([sale], catalog, _names)

    lines = exporter.export_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1 + 2


def test_rewrite_uses_current_prices(tmp_path: Path, catalog, sale):
    """Rewritten rows reflect catalog changes made after the sale."""

    exporter = LedgerExporter(tmp_path / "sales.csv")
    catalog.replace(Product("B", "Sticker", 250))

    exporter.rewrite_all([sale], catalog, _names)

    rows = list(csv.reader(io.StringIO(exporter.export_file.read_text(encoding="utf-8"))))
    assert rows[2][4:6] == ["250", "750"]


def test_rewrite_of_empty_ledger_leaves_header(tmp_path: Path, catalog):
    exporter = LedgerExporter(tmp_path / "sales.csv")

    exporter.rewrite_all([], catalog, _names)

    assert exporter.export_file.read_text(encoding="utf-8") == HEADER


def test_write_failures_are_reported(tmp_path: Path, catalog, sale, caplog):
    """Export errors are logged and returned as False instead of raising."""

    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    exporter = LedgerExporter(blocker / "sales.csv")

    assert not exporter.append_transaction(sale, catalog, _names)
    assert not exporter.rewrite_all([sale], catalog, _names)
    assert "Unable to" in caplog.text


def test_format_timestamp_uses_local_time_for_aware_values():
    """Timezone-aware timestamps are shown as local wall-clock time."""

    aware = datetime(2024, 5, 1, 12, 0).astimezone()

    assert export.format_timestamp(aware) == aware.strftime("%Y-%m-%d %H:%M:%S")
