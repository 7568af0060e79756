"""In-memory product catalog with bundle-aware stock rules.

Lookups are first-match scans over the ordered product list. Ids that no
longer resolve (a deleted component, a product removed after it was sold)
are skipped by every reader instead of raising.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Iterator, List, Mapping, Optional

from . import log
from .data_manager import Product, SimpleStock


class Catalog:
    """Ordered collection of :class:`Product` records.

    The catalog owns the stock levels of single items. A bundle never carries
    stock of its own: its availability is derived from its inventory-managed
    components, and selling it decrements those components.
    """

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: List[Product] = list(products)

    def __iter__(self) -> Iterator[Product]:
        return iter(list(self._products))

    def __len__(self) -> int:
        return len(self._products)

    @property
    def products(self) -> List[Product]:
        """Shallow copy of the products in catalog order."""

        return list(self._products)

    def get(self, product_id: str) -> Optional[Product]:
        """Return the first product whose id matches, or ``None``."""

        index = self._index_of(product_id)
        return None if index is None else self._products[index]

    def _index_of(self, product_id: str) -> Optional[int]:
        for index, product in enumerate(self._products):
            if product.product_id == product_id:
                return index
        return None

    def _managed_components(self, bundle: Product) -> Iterator[Product]:
        for component_id in bundle.component_ids:
            component = self.get(component_id)
            if component is None:
                log.debug("Bundle '%s' references missing component '%s'", bundle.product_id, component_id)
                continue
            if component.inventory_managed:
                yield component

    def available_stock(self, product: Product) -> Optional[int]:
        """Quantity that can still be sold, or ``None`` for unmanaged products.

        A managed bundle reports the smallest stock among its managed
        components; unmanaged components are left out of the minimum and a
        bundle with no managed component reports 0.
        """

        if not product.inventory_managed:
            return None
        if product.is_bundle:
            stocks = [component.stock for component in self._managed_components(product)]
            return min(stocks) if stocks else 0
        return product.stock

    def can_sell(self, product: Product, quantity: int) -> bool:
        """Return ``True`` when ``quantity`` units of ``product`` are available."""

        if not product.inventory_managed:
            return True
        if product.is_bundle:
            return all(component.stock >= quantity for component in self._managed_components(product))
        return product.stock >= quantity

    def decrement_stock(self, product: Product, quantity: int) -> None:
        """Remove ``quantity`` units from stock, never going below zero.

        Unmanaged products are left alone. For a bundle every managed
        component is decremented; the bundle record itself is untouched.
        """

        if not product.inventory_managed:
            return
        if product.is_bundle:
            for component_id in product.component_ids:
                index = self._index_of(component_id)
                if index is None:
                    continue
                if self._products[index].inventory_managed:
                    self._take(index, quantity)
        else:
            index = self._index_of(product.product_id)
            if index is not None:
                self._take(index, quantity)

    def _take(self, index: int, quantity: int) -> None:
        current = self._products[index]
        if current.is_bundle:
            return
        remaining = max(0, current.stock - quantity)
        if current.stock < quantity:
            log.warning(
                "Stock of '%s' clamped at zero (had %d, requested %d)",
                current.product_id,
                current.stock,
                quantity,
            )
        self._products[index] = replace(current, kind=SimpleStock(stock=remaining))

    def apply_sale(self, basket: Mapping[str, int]) -> None:
        """Apply the stock decrements of a validated basket.

        Uses the same bundle expansion as :meth:`can_sell`. Ids that do not
        resolve are skipped.
        """

        for product_id, quantity in basket.items():
            product = self.get(product_id)
            if product is None:
                continue
            self.decrement_stock(product, quantity)

    def add(self, product: Product) -> None:
        self._products.append(product)

    def replace(self, product: Product) -> bool:
        """Replace the first product sharing ``product.product_id``."""

        index = self._index_of(product.product_id)
        if index is None:
            return False
        self._products[index] = product
        return True

    def remove(self, product_id: str) -> bool:
        """Hard-delete the first product with ``product_id``."""

        index = self._index_of(product_id)
        if index is None:
            return False
        del self._products[index]
        return True

    def component_names(self, bundle: Product) -> List[str]:
        """Names of the bundle's components that still resolve."""

        names = []
        for component_id in bundle.component_ids:
            component = self.get(component_id)
            if component is not None:
                names.append(component.product_name)
        return names

    def line_amount(self, product_id: str, quantity: int) -> Optional[int]:
        """``quantity`` times the current price, or ``None`` if unresolved."""

        product = self.get(product_id)
        if product is None:
            return None
        return quantity * product.price
