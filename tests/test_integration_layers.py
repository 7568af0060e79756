"""Integration tests describing end-to-end Booth Ledger workflows.

These scenarios exercise the data access and business logic layers together
against a real workbook on disk, reloading between steps the way separate
CLI invocations would.
"""

from __future__ import annotations

import csv

from booth_ledger import constants, core_logic, data_manager


def _reload(context: core_logic.RuntimeContext) -> core_logic.RuntimeContext:
    return core_logic.refresh_context(context)


def _read_export(path):
    with path.open(encoding="utf-8", newline="") as handle:
        return list(csv.reader(handle))


def test_event_sale_and_report_lifecycle(runtime_context):
    """Walk through catalog setup, a bundle sale, an edit, and reporting."""

    context = runtime_context
    core_logic.add_product(
        context, product_id="A", product_name="Zine A", price=500, inventory_managed=True, stock=10
    )
    core_logic.add_product(
        context, product_id="B", product_name="Zine B", price=700, inventory_managed=True, stock=4
    )
    core_logic.add_bundle(
        context,
        product_id="X",
        product_name="Zine Set",
        price=1100,
        component_ids=["A", "B"],
        inventory_managed=True,
    )
    event = core_logic.add_event(context, "Spring Fair")

    context = _reload(context)
    assert context.selected_event_id == event.event_id
    assert context.catalog.available_stock(context.catalog.get("X")) == 4

    session = core_logic.Session.from_settings(context.settings)
    session.set_quantity("X", 3)
    session.update_profile(age_group="Under 18", is_exhibitor=True)
    sale = core_logic.commit_sale(context, session)
    assert sale is not None

    # Every mutation saved itself; a reload must see the same state.
    context = _reload(context)
    assert context.catalog.get("A").stock == 7
    assert context.catalog.get("B").stock == 1
    stored = context.ledger.get(sale.transaction_id)
    assert stored.age_group is constants.AgeGroup.UNDER_18
    assert stored.is_exhibitor
    assert stored.items == sale.items

    rows = _read_export(context.settings.export_file)
    assert rows[0] == list(constants.EXPORT_HEADER)
    assert rows[1][:7] == ["Spring Fair", rows[1][1], "Zine Set", "3", "1100", "3300", "Under 18"]

    assert core_logic.revise_transaction(context, sale.transaction_id, quantities={"X": 2})
    context = _reload(context)
    summary = core_logic.summarize(context, event.event_id)
    assert [(row.product_name, row.count, row.total, row.remaining_stock) for row in summary] == [
        ("Zine Set", 2, 2200, 1)
    ]
    assert _read_export(context.settings.export_file)[1][3] == "2"


def test_second_sale_is_rejected_after_stock_runs_out(runtime_context):
    context = runtime_context
    core_logic.add_product(
        context, product_id="A", product_name="Zine A", price=500, inventory_managed=True, stock=2
    )
    core_logic.add_event(context, "Spring Fair")

    session = core_logic.Session.from_settings(context.settings)
    session.set_quantity("A", 2)
    assert core_logic.commit_sale(context, session) is not None

    session.set_quantity("A", 1)
    assert core_logic.commit_sale(context, session) is None

    context = _reload(context)
    assert len(context.ledger) == 1
    assert context.catalog.get("A").stock == 0


def test_deleting_a_product_keeps_history_readable(runtime_context):
    """Stale product references are skipped by reports and the export."""

    context = runtime_context
    core_logic.add_product(context, product_id="A", product_name="Zine A", price=500)
    core_logic.add_product(context, product_id="B", product_name="Poster", price=300)
    core_logic.add_event(context, "Spring Fair")
    session = core_logic.Session.from_settings(context.settings)
    session.set_quantity("A", 1)
    session.set_quantity("B", 2)
    core_logic.commit_sale(context, session)

    core_logic.remove_product(context, "B")
    core_logic.rewrite_export(context)

    context = _reload(context)
    assert [row.product_id for row in core_logic.summarize(context, context.selected_event_id)] == ["A"]
    rows = _read_export(context.settings.export_file)
    assert len(rows) == 2
    assert rows[1][2] == "Zine A"
    assert len(context.ledger.transactions[0].items) == 2


def test_clearing_the_ledger_persists(runtime_context):
    context = runtime_context
    core_logic.add_product(context, product_id="A", product_name="Zine A", price=500)
    core_logic.add_event(context, "Spring Fair")
    session = core_logic.Session.from_settings(context.settings)
    session.set_quantity("A", 1)
    core_logic.commit_sale(context, session)

    core_logic.delete_all_transactions(context)

    context = _reload(context)
    assert len(context.ledger) == 0
    assert data_manager.load_transactions(context.workbook).transactions == ()
    assert _read_export(context.settings.export_file) == [list(constants.EXPORT_HEADER)]
