"""
DineIn Ordering Engine - Cart Builder
=======================================
Lines are staged locally and committed as one request, so no partial
ticket is ever persisted.

Prices are captured from the catalog when a line is added. flush()
targets the reservation's open ticket (ordered|preparing) when there is
one, otherwise it opens a new ticket.
"""

from __future__ import annotations

import uuid
from typing import Callable, List, Optional, Sequence, Union

from engines.ordering.catalog import CatalogReader
from engines.ordering.commands import OrderAppendRequest, OrderPlaceRequest
from engines.ordering.records import AddOnSelection, OrderLine


class CartError(ValueError):
    """Raised for items the catalog cannot supply or an empty flush."""


class CartBuilder:
    def __init__(
        self,
        *,
        catalog: CatalogReader,
        restaurant_id,
        reservation_id: str,
        table_id: str,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self._catalog = catalog
        self._restaurant_id = restaurant_id
        self._reservation_id = reservation_id
        self._table_id = table_id
        self._id_factory = id_factory
        self._lines: List[OrderLine] = []

    def add(
        self,
        menu_item_id: str,
        quantity: int = 1,
        add_on_ids: Sequence[str] = (),
        note: str = "",
    ) -> OrderLine:
        item = self._catalog.get_menu_item(self._restaurant_id, menu_item_id)
        if item is None or not item.is_available:
            raise CartError(f"Menu item '{menu_item_id}' is not available.")

        add_ons = []
        for add_on_id in add_on_ids:
            add_on = item.find_add_on(add_on_id)
            if add_on is None:
                raise CartError(
                    f"Add-on '{add_on_id}' is not offered for '{menu_item_id}'."
                )
            add_ons.append(AddOnSelection(
                add_on_id=add_on.add_on_id, name=add_on.name, price=add_on.price,
            ))

        line = OrderLine(
            line_id=self._id_factory(),
            menu_item_id=item.menu_item_id,
            name=item.name,
            unit_price=item.price,
            quantity=quantity,
            add_ons=tuple(add_ons),
            note=note,
        )
        self._lines.append(line)
        return line

    def remove(self, line_id: str) -> None:
        self._lines = [line for line in self._lines if line.line_id != line_id]

    @property
    def lines(self) -> tuple:
        return tuple(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def flush(
        self,
        open_order_id: Optional[str] = None,
    ) -> Union[OrderPlaceRequest, OrderAppendRequest]:
        """Produce exactly one request and clear the cart."""
        if not self._lines:
            raise CartError("Cart is empty.")

        lines = tuple(self._lines)
        if open_order_id:
            request = OrderAppendRequest(
                order_id=open_order_id,
                reservation_id=self._reservation_id,
                lines=lines,
            )
        else:
            request = OrderPlaceRequest(
                order_id=self._id_factory(),
                reservation_id=self._reservation_id,
                table_id=self._table_id,
                lines=lines,
            )
        self._lines = []
        return request
