from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional

DEFAULT_SUBJECT = "Sin asunto"
DEFAULT_SECTOR = "N/A"
DEFAULT_DATE = "0000-00-00"
DEFAULT_ITEM_NAME = "Nuevo Ítem de Cotización"
DEFAULT_FACTOR = 1.5
FALLBACK_FACTOR = 1.0


@dataclass
class Ticket:
    """Customer-facing issue grouping one or more work orders.

    ``total_cost`` is only accumulated while the catalog is being built.
    """

    id: str
    subject: str = DEFAULT_SUBJECT
    sector: str = DEFAULT_SECTOR
    date: str = DEFAULT_DATE
    total_cost: float = 0.0


@dataclass(frozen=True)
class WorkOrder:
    """Executed unit of labor (an OT) belonging to exactly one ticket."""

    id: str
    ticket_id: str
    subject: str = DEFAULT_SUBJECT
    sector: str = DEFAULT_SECTOR
    labor_hours: float = 0.0
    labor_cost: float = 0.0
    technician_count: int = 0
    execution_date: str = DEFAULT_DATE


@dataclass
class QuoteItem:
    """Named bucket of work orders priced with a cost multiplier."""

    id: int
    name: str = DEFAULT_ITEM_NAME
    factor: float = DEFAULT_FACTOR
    ots: List[WorkOrder] = field(default_factory=list)

    @property
    def ot_ids(self) -> List[str]:
        return [ot.id for ot in self.ots]


@dataclass(frozen=True)
class FilterSpec:
    """Analytics filter. Empty sets and blank dates mean no restriction."""

    sectors: FrozenSet[str] = frozenset()
    tickets: FrozenSet[str] = frozenset()
    date_start: str = ""
    date_end: str = ""

    @classmethod
    def build(
        cls,
        sectors: Optional[Iterable[str]] = None,
        tickets: Optional[Iterable[str]] = None,
        date_start: Optional[str] = None,
        date_end: Optional[str] = None,
    ) -> "FilterSpec":
        return cls(
            sectors=frozenset(sectors or ()),
            tickets=frozenset(tickets or ()),
            date_start=(date_start or "").strip(),
            date_end=(date_end or "").strip(),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.sectors or self.tickets or self.date_start or self.date_end)


@dataclass(frozen=True)
class Catalog:
    """Normalized view of a row export: tickets by date descending, OTs in encounter order."""

    tickets: List[Ticket] = field(default_factory=list)
    ots: List[WorkOrder] = field(default_factory=list)

    def ticket(self, ticket_id: str) -> Optional[Ticket]:
        for ticket in self.tickets:
            if ticket.id == ticket_id:
                return ticket
        return None

    def ots_for_ticket(self, ticket_id: str) -> List[WorkOrder]:
        return [ot for ot in self.ots if ot.ticket_id == ticket_id]


@dataclass(frozen=True)
class LoadResult:
    """Outcome of loading a catalog, including the status shown to users."""

    catalog: Catalog
    status: str
    ok: bool = True
    source: str = "rows"
    error: Optional[str] = None
    loaded_at: Optional[datetime] = None
