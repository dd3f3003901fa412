"""Tolerant mapping of raw export rows onto tickets and work orders.

Export rows come from several generations of the ERP report, so every logical
field is looked up through an ordered list of candidate column names.  The
first candidate holding a usable value wins; otherwise a literal default is
used.  Nothing here mutates shared state.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

from .models import DEFAULT_DATE, DEFAULT_SECTOR, DEFAULT_SUBJECT, Ticket, WorkOrder

logger = logging.getLogger(__name__)

# Keep tuple structure: lookup priority is the tuple order.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "ticket_id": ("iss", "ticket", "ID_ISS"),
    "ticket_subject": ("subject_ticket", "subject", "asunto"),
    "sector": ("sector",),
    "ticket_date": ("fecha_ejecucion", "fecha_ticket", "fecha"),
    "ot_id": ("ot", "OT", "nro_ot"),
    "ot_subject": ("subject_ot", "subject", "subject_ticket"),
    "duration": ("duracion", "duration"),
    "labor_cost": ("costo_mo_total", "costo_mo"),
    "technician_count": ("nro_tec", "tecnicos"),
    "execution_date": ("fecha_ejecucion", "fecha"),
}

FIELD_DEFAULTS: Dict[str, Any] = {
    "ticket_id": None,
    "ticket_subject": DEFAULT_SUBJECT,
    "sector": DEFAULT_SECTOR,
    "ticket_date": DEFAULT_DATE,
    "ot_id": None,
    "ot_subject": DEFAULT_SUBJECT,
    "duration": "00:00",
    "labor_cost": 0,
    "technician_count": 0,
    "execution_date": DEFAULT_DATE,
}

_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^[+-]?\d+")


@dataclass(frozen=True)
class NormalizedRow:
    """Contribution of a single raw row: a ticket fragment and an optional OT."""

    ticket: Ticket
    work_order: Optional[WorkOrder] = None


def _is_blank(value: object) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (int, float)):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False


def resolve_field(row: Mapping[str, Any], field_name: str) -> Any:
    """Return the first usable alias value for ``field_name`` or its default."""

    for alias in FIELD_ALIASES[field_name]:
        value = row.get(alias)
        if not _is_blank(value):
            return value
    return FIELD_DEFAULTS[field_name]


def _as_text(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def leading_float(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    else:
        match = _LEADING_FLOAT.match(str(value).strip())
        if not match:
            return None
        try:
            numeric = float(match.group(0))
        except ValueError:
            return None
    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def round_half_up(value: float, places: int = 2) -> float:
    """Round like a fixed-point display would: halves away from zero on the exact binary value."""

    try:
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0.0


def parse_duration(value: object) -> float:
    """Parse a duration as hours.

    ``"2:30"`` is hours and minutes (2.5); a bare number such as ``"45"`` is
    already hours.  Anything else yields ``0``.  Results keep two decimals.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str) and ":" in value:
        parts = value.split(":")
        try:
            hours = float(parts[0].strip() or 0)
            minutes = float(parts[1].strip() or 0)
        except ValueError:
            return 0.0
        total = hours + minutes / 60
    else:
        total = leading_float(value)
        if total is None:
            return 0.0
    if math.isnan(total) or math.isinf(total):
        return 0.0
    return round_half_up(total, 2)


def parse_cost(value: object) -> float:
    """Coerce a labor cost to float; non-numeric input is ``0``."""

    if value is None:
        return 0.0
    numeric = leading_float(value)
    return numeric if numeric is not None else 0.0


def parse_technician_count(value: object) -> int:
    """Coerce a technician count to an integer; non-numeric input is ``0``."""

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return 0
        return int(value)
    match = _LEADING_INT.match(str(value).strip())
    if not match:
        return 0
    return int(match.group(0))


def normalize_row(row: object) -> Optional[NormalizedRow]:
    """Map a raw row onto a ticket fragment and, when present, a work order.

    Rows without any ticket identifier alias contribute nothing and return
    ``None``; the same applies to values that are not mappings at all.
    An alias whose value is ``None``, ``False``, ``0``, NaN or a
    whitespace-only string counts as missing, so the next alias is tried.
    """

    if not isinstance(row, Mapping):
        return None

    raw_ticket_id = resolve_field(row, "ticket_id")
    if _is_blank(raw_ticket_id):
        logger.debug("Skipping row without ticket id: %s", list(row.keys()))
        return None
    ticket_id = _as_text(raw_ticket_id)

    sector = _as_text(resolve_field(row, "sector"))
    ticket = Ticket(
        id=ticket_id,
        subject=_as_text(resolve_field(row, "ticket_subject")),
        sector=sector,
        date=_as_text(resolve_field(row, "ticket_date")),
    )

    raw_ot_id = resolve_field(row, "ot_id")
    if _is_blank(raw_ot_id):
        return NormalizedRow(ticket=ticket)

    work_order = WorkOrder(
        id=_as_text(raw_ot_id),
        ticket_id=ticket_id,
        subject=_as_text(resolve_field(row, "ot_subject")),
        sector=sector,
        labor_hours=parse_duration(resolve_field(row, "duration")),
        labor_cost=parse_cost(resolve_field(row, "labor_cost")),
        technician_count=parse_technician_count(resolve_field(row, "technician_count")),
        execution_date=_as_text(resolve_field(row, "execution_date")),
    )
    return NormalizedRow(ticket=ticket, work_order=work_order)


__all__ = [
    "FIELD_ALIASES",
    "FIELD_DEFAULTS",
    "NormalizedRow",
    "normalize_row",
    "leading_float",
    "parse_cost",
    "parse_duration",
    "parse_technician_count",
    "resolve_field",
    "round_half_up",
]
