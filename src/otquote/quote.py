"""Stateful quote draft: items that claim work orders and price them with a factor."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .models import DEFAULT_FACTOR, DEFAULT_ITEM_NAME, FALLBACK_FACTOR, QuoteItem, Ticket, WorkOrder
from .normalize import leading_float

logger = logging.getLogger(__name__)


def parse_factor(value: object) -> float:
    """Parse a factor entry; anything that is not a positive number becomes ``1``."""

    numeric = leading_float(value) if value is not None else None
    if numeric is None or numeric <= 0 or math.isnan(numeric):
        return FALLBACK_FACTOR
    return numeric


def item_total(item: QuoteItem) -> float:
    """Sum of the assigned labor costs multiplied by the item factor."""

    base = sum(ot.labor_cost for ot in item.ots)
    return base * item.factor


def grand_total(items: Iterable[QuoteItem]) -> float:
    return sum(item_total(item) for item in items)


@dataclass
class QuoteDraft:
    """Owned, mutable quote draft for a single active ticket.

    ``work_orders`` is the universe OTs are resolved from.  Every work order is
    claimed by at most one item: assigning it moves it out of any other item.
    Unknown OT or item ids are ignored.
    """

    work_orders: Sequence[WorkOrder] = ()
    ticket: Optional[Ticket] = None
    items: List[QuoteItem] = field(default_factory=list)
    _next_id: int = field(default=1, repr=False)

    def select_ticket(self, ticket: Optional[Ticket]) -> None:
        """Make ``ticket`` active and start a new, empty draft."""

        self.ticket = ticket
        self.items = []
        logger.debug("Quote draft reset for ticket %s", ticket.id if ticket else None)

    def create_item(self) -> QuoteItem:
        item = QuoteItem(id=self._next_id, name=DEFAULT_ITEM_NAME, factor=DEFAULT_FACTOR)
        self._next_id += 1
        self.items.append(item)
        return item

    def get_item(self, item_id: int) -> Optional[QuoteItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def rename_item(self, item_id: int, name: str) -> None:
        item = self.get_item(item_id)
        if item is not None:
            item.name = name

    def set_factor(self, item_id: int, factor_input: object) -> None:
        item = self.get_item(item_id)
        if item is not None:
            item.factor = parse_factor(factor_input)

    def delete_item(self, item_id: int) -> None:
        """Drop an item; its work orders return to the available pool."""

        self.items = [item for item in self.items if item.id != item_id]

    def find_work_order(self, ot_id: object) -> Optional[WorkOrder]:
        key = str(ot_id).strip()
        for ot in self.work_orders:
            if ot.id == key:
                return ot
        return None

    def assign_ot(self, ot_id: object, item_id: int) -> None:
        """Move a work order into ``item_id``, removing it from every other item first."""

        ot = self.find_work_order(ot_id)
        if ot is None:
            logger.debug("Ignoring assignment of unknown OT %s", ot_id)
            return
        target = self.get_item(item_id)
        if target is None:
            logger.debug("Ignoring assignment to unknown quote item %s", item_id)
            return

        for item in self.items:
            item.ots = [claimed for claimed in item.ots if claimed.id != ot.id]
        target.ots.append(ot)
        if target.name == DEFAULT_ITEM_NAME and len(target.ots) == 1:
            target.name = ot.subject

    def unassign_ot(self, item_id: int, ot_id: object) -> None:
        item = self.get_item(item_id)
        if item is None:
            return
        key = str(ot_id).strip()
        item.ots = [claimed for claimed in item.ots if claimed.id != key]

    def claimed_ids(self) -> set:
        return {ot.id for item in self.items for ot in item.ots}

    def available_ots(self, ticket_id: Optional[str] = None) -> List[WorkOrder]:
        """Work orders of the ticket that no item currently claims."""

        if ticket_id is None:
            if self.ticket is None:
                return []
            ticket_id = self.ticket.id
        claimed = self.claimed_ids()
        return [ot for ot in self.work_orders if ot.ticket_id == ticket_id and ot.id not in claimed]

    def item_total(self, item: QuoteItem) -> float:
        return item_total(item)

    def grand_total(self) -> float:
        return grand_total(self.items)


__all__ = ["QuoteDraft", "grand_total", "item_total", "parse_factor"]
