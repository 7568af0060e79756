"""Ordered, in-memory ledger of recorded transactions."""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from . import log
from .data_manager import Transaction


PersistHook = Callable[[Sequence[Transaction]], bool]
RewriteHook = Callable[[Sequence[Transaction]], object]


class LedgerStore:
    """Owns every :class:`Transaction` in recording order.

    Each mutation is followed by a call to ``persist`` with the full snapshot.
    Edits and deletions additionally call ``on_history_changed`` so the export
    surface can be regenerated; appends do not, because the caller appends the
    new rows incrementally.

    Ids are expected to be unique but this is not enforced; lookups act on
    the first match.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        *,
        persist: Optional[PersistHook] = None,
        on_history_changed: Optional[RewriteHook] = None,
    ) -> None:
        self._transactions: List[Transaction] = list(transactions)
        self._persist = persist
        self._on_history_changed = on_history_changed

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._transactions))

    def __len__(self) -> int:
        return len(self._transactions)

    @property
    def transactions(self) -> List[Transaction]:
        return list(self._transactions)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        index = self._index_of(transaction_id)
        return None if index is None else self._transactions[index]

    def for_event(self, event_id: str) -> List[Transaction]:
        """Transactions attributed to ``event_id`` in ledger order."""

        return [t for t in self._transactions if t.event_id == event_id]

    def _index_of(self, transaction_id: str) -> Optional[int]:
        for index, transaction in enumerate(self._transactions):
            if transaction.transaction_id == transaction_id:
                return index
        return None

    def _flush(self) -> bool:
        if self._persist is None:
            return True
        return self._persist(self.transactions)

    def _history_changed(self) -> None:
        if self._on_history_changed is not None:
            self._on_history_changed(self.transactions)

    def append(self, transaction: Transaction) -> bool:
        """Add ``transaction`` at the end and persist.

        Returns:
            bool: ``False`` when the durable write failed. The in-memory
                append stands either way.
        """

        self._transactions.append(transaction)
        log.debug("Ledger now holds %d transactions", len(self._transactions))
        return self._flush()

    def replace(self, transaction_id: str, transaction: Transaction) -> bool:
        """Swap the record with ``transaction_id`` for ``transaction``.

        Unknown ids are a no-op: nothing is persisted or re-exported.
        """

        index = self._index_of(transaction_id)
        if index is None:
            log.warning("Cannot replace unknown transaction '%s'", transaction_id)
            return False
        self._transactions[index] = transaction
        self._flush()
        self._history_changed()
        return True

    def delete_one(self, transaction_id: str) -> bool:
        """Remove the record with ``transaction_id`` if present."""

        index = self._index_of(transaction_id)
        if index is None:
            log.warning("Cannot delete unknown transaction '%s'", transaction_id)
            return False
        del self._transactions[index]
        self._flush()
        self._history_changed()
        return True

    def delete_all(self) -> None:
        """Empty the ledger, persist, and regenerate the export surface."""

        self._transactions.clear()
        self._flush()
        self._history_changed()
