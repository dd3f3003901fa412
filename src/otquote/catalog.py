"""Build the ticket catalog and work-order list from raw export rows."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import CatalogBuildError
from .models import Catalog, LoadResult, Ticket, WorkOrder
from .normalize import normalize_row

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 15


def extract_rows(payload: Any) -> Any:
    """Return the row array carried by a payload.

    Accepts a bare list, a mapping with ``result`` or ``data``, or the API
    envelope ``{"message": {"success": true, "data": [...]}}``.  Anything
    else is returned unchanged so :func:`build_catalog` can reject it.
    """

    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        message = payload.get("message")
        if isinstance(message, Mapping) and isinstance(message.get("data"), list):
            return message["data"]
        for key in ("result", "data"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
        return []
    return payload


def build_catalog(rows: Iterable[Any]) -> Catalog:
    """Normalize ``rows`` into tickets and work orders in a single pass.

    The first row mentioning a ticket fixes its attributes; every row carrying
    a work order adds its labor cost to that ticket.  Tickets come back
    ordered by ``date`` descending using plain string comparison, so dates
    must already be ISO-like for the order to be calendar-correct.

    Raises
    ------
    CatalogBuildError
        If ``rows`` is not an iterable of rows (e.g. ``None``, a mapping or a
        string), or if iterating the rows raises.  Individual malformed rows
        are skipped instead.
    """

    if rows is None or isinstance(rows, (str, bytes, Mapping)):
        raise CatalogBuildError(f"Row payload is not a row sequence: {type(rows).__name__}")
    try:
        iterator = iter(rows)
    except TypeError as exc:
        raise CatalogBuildError(f"Row payload is not iterable: {exc}") from exc

    tickets: Dict[str, Ticket] = {}
    ots: List[WorkOrder] = []
    skipped = 0

    try:
        for row in iterator:
            normalized = normalize_row(row)
            if normalized is None:
                skipped += 1
                continue
            fragment = normalized.ticket
            ticket = tickets.get(fragment.id)
            if ticket is None:
                ticket = fragment
                tickets[fragment.id] = ticket
            work_order = normalized.work_order
            if work_order is not None:
                ticket.total_cost += work_order.labor_cost
                ots.append(work_order)
    except Exception as exc:
        raise CatalogBuildError(f"Row iteration failed after {len(ots)} work orders: {exc}") from exc

    ordered = sorted(tickets.values(), key=lambda t: t.date, reverse=True)
    logger.debug(
        "Catalog built: %d tickets, %d work orders, %d rows skipped",
        len(ordered),
        len(ots),
        skipped,
    )
    return Catalog(tickets=ordered, ots=ots)


def load_catalog(
    rows: Any,
    *,
    source: str = "rows",
    now: Optional[datetime] = None,
) -> LoadResult:
    """Build a catalog without ever raising; failures become an empty catalog and a status."""

    timestamp = now or datetime.now()
    try:
        catalog = build_catalog(extract_rows(rows))
    except CatalogBuildError as exc:
        logger.error("Unable to process row payload: %s", exc)
        return LoadResult(
            catalog=Catalog(),
            status="⚠️ Error procesando datos",
            ok=False,
            source=source,
            error=str(exc),
            loaded_at=timestamp,
        )

    count = len(catalog.tickets)
    if source == "api":
        status = f"✅ {count} registros desde API"
    elif source == "local":
        status = f"✅ {count} Tickets cargados (datos locales)"
    else:
        status = f"✅ {count} Tickets cargados"
    return LoadResult(catalog=catalog, status=status, ok=True, source=source, loaded_at=timestamp)


def search_tickets(tickets: Iterable[Ticket], query: str, limit: int = SEARCH_LIMIT) -> List[Ticket]:
    """Case-insensitive substring search on ticket id or subject, in catalog order."""

    needle = (query or "").strip().lower()
    if not needle:
        return []
    matches: List[Ticket] = []
    for ticket in tickets:
        if needle in ticket.id.lower() or needle in ticket.subject.lower():
            matches.append(ticket)
            if len(matches) >= limit:
                break
    return matches


__all__ = ["SEARCH_LIMIT", "build_catalog", "extract_rows", "load_catalog", "search_tickets"]
