"""Unit tests for the ordered transaction ledger and its persistence hooks."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from booth_ledger.data_manager import SaleItem, Transaction
from booth_ledger.ledger import LedgerStore


def _transaction(transaction_id: str, event_id: str = "E1", quantity: int = 1) -> Transaction:
    return Transaction(
        transaction_id=transaction_id,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        event_id=event_id,
        items=(SaleItem(f"S-{transaction_id}", "A", quantity),),
    )


@pytest.fixture
def hooks():
    return Mock(name="persist", return_value=True), Mock(name="rewrite")


@pytest.fixture
def ledger(hooks):
    persist, rewrite = hooks
    return LedgerStore(
        [_transaction("T1"), _transaction("T2", event_id="E2"), _transaction("T3")],
        persist=persist,
        on_history_changed=rewrite,
    )


def test_append_persists_without_rewriting(ledger, hooks):
    """Appends flush the snapshot but leave export regeneration to the caller."""

    persist, rewrite = hooks

    assert ledger.append(_transaction("T4"))

    assert [t.transaction_id for t in ledger] == ["T1", "T2", "T3", "T4"]
    persist.assert_called_once()
    assert len(persist.call_args.args[0]) == 4
    rewrite.assert_not_called()


def test_append_reports_persist_failure(hooks):
    """A failed durable write is reported but the in-memory append stands."""

    persist = Mock(return_value=False)
    ledger = LedgerStore(persist=persist)

    assert not ledger.append(_transaction("T1"))
    assert len(ledger) == 1


def test_replace_keeps_position_and_rewrites(ledger, hooks):
    """An edit swaps the record in place, persists, and regenerates the export."""

    persist, rewrite = hooks
    edited = _transaction("T2", event_id="E2", quantity=5)

    assert ledger.replace("T2", edited)

    assert ledger.transactions[1] is edited
    persist.assert_called_once()
    rewrite.assert_called_once()


def test_replace_unknown_id_is_noop(ledger, hooks):
    """A stale edit neither persists nor rewrites."""

    persist, rewrite = hooks

    assert not ledger.replace("T9", _transaction("T9"))

    persist.assert_not_called()
    rewrite.assert_not_called()
    assert len(ledger) == 3


def test_delete_one_preserves_order(ledger, hooks):
    """Deleting removes exactly one record and keeps the rest in order."""

    persist, rewrite = hooks

    assert ledger.delete_one("T2")

    assert [t.transaction_id for t in ledger] == ["T1", "T3"]
    persist.assert_called_once()
    rewrite.assert_called_once_with(ledger.transactions)


def test_delete_one_unknown_id_is_noop(ledger, hooks):
    persist, rewrite = hooks

    assert not ledger.delete_one("missing")

    persist.assert_not_called()
    rewrite.assert_not_called()


def test_delete_all_empties_and_rewrites(ledger, hooks):
    """delete_all leaves an empty ledger and asks for an export rewrite."""

    persist, rewrite = hooks

    ledger.delete_all()

    assert len(ledger) == 0
    persist.assert_called_once_with([])
    rewrite.assert_called_once_with([])


def test_for_event_filters_in_order(ledger):
    assert [t.transaction_id for t in ledger.for_event("E1")] == ["T1", "T3"]
    assert ledger.get("T2").event_id == "E2"
    assert ledger.get("T9") is None


def test_iteration_is_a_snapshot(ledger):
    """Mutating while iterating must not skip records."""

    seen = []
    for transaction in ledger:
        seen.append(transaction.transaction_id)
        ledger.delete_one(transaction.transaction_id)

    assert seen == ["T1", "T2", "T3"]
    assert len(ledger) == 0
