from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Sequence, Union

import pandas as pd

from .models import QuoteItem, Ticket
from .normalize import round_half_up
from .quote import grand_total, item_total

if TYPE_CHECKING:
    from .analytics import Kpis

CSV_BOM = "\ufeff"
CSV_HEADER = "Item;Nombre;Factor;OT;OT_Asunto;Subtotal"
RULE = "-" * 42
TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"

Timestamp = Union[datetime, str]


def format_amount(value: float) -> str:
    """Format with ``.`` thousands and ``,`` decimals, e.g. ``1.234,56``."""

    text = f"{round_half_up(value, 2):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_decimal_comma(value: float) -> str:
    """Two decimals with a comma separator and no grouping, e.g. ``1234,56``."""

    return f"{round_half_up(value, 2):.2f}".replace(".", ",")


def format_factor(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _stamp(value: Optional[Timestamp]) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    return str(value)


def _quoted(text: str) -> str:
    return '"' + str(text).replace('"', '""') + '"'


def render_summary(
    ticket: Ticket,
    items: Sequence[QuoteItem],
    timestamp: Timestamp,
    *,
    last_update: Optional[Timestamp] = None,
    source_label: Optional[str] = None,
) -> str:
    """Render the plain-text quote handed to customers.

    Output is fully determined by the arguments; the caller supplies the
    generation timestamp.
    """

    lines = [
        f"COTIZACION DE MANO DE OBRA - {ticket.id}",
        f"ASUNTO: {ticket.subject}",
        f"FECHA: {_stamp(timestamp)}",
    ]
    if last_update is not None:
        lines.append(f"ÚLTIMA ACTUALIZACIÓN: {_stamp(last_update)}")
    if source_label:
        lines.append(f"FUENTE: {source_label}")
    lines.append(RULE)

    for idx, item in enumerate(items, start=1):
        lines.append("")
        lines.append(f"ITEM {idx}: {item.name.upper()}")
        lines.append(f"FACTOR: {format_factor(item.factor)}")
        for ot in item.ots:
            lines.append(f"- OT: {ot.id} | {ot.subject}")
        lines.append(f"SUBTOTAL: ${round_half_up(item_total(item), 2):.2f}")

    lines.append("")
    lines.append(RULE)
    lines.append(f"TOTAL GENERAL: $ {format_amount(grand_total(items))}")
    return "\n".join(lines) + "\n"


def render_csv(items: Sequence[QuoteItem]) -> str:
    """Render the ``;``-separated quote export, one row per (item, OT) pair.

    The subtotal column repeats the item total on every row of that item.
    """

    rows = [CSV_BOM + CSV_HEADER]
    for idx, item in enumerate(items, start=1):
        subtotal = format_decimal_comma(item_total(item))
        for ot in item.ots:
            rows.append(
                ";".join(
                    [
                        str(idx),
                        _quoted(item.name),
                        format_factor(item.factor),
                        ot.id,
                        _quoted(ot.subject),
                        subtotal,
                    ]
                )
            )
    return "\n".join(rows) + "\n"


def quote_filenames(ticket_id: str) -> Dict[str, str]:
    return {"txt": f"cotizacion_{ticket_id}.txt", "csv": f"cotizacion_{ticket_id}.csv"}


def write_quote_files(
    ticket: Ticket,
    items: Sequence[QuoteItem],
    output_dir: Union[str, Path],
    timestamp: Timestamp,
    *,
    last_update: Optional[Timestamp] = None,
    source_label: Optional[str] = None,
) -> Dict[str, Path]:
    """Write the text summary and CSV export for ``ticket`` into ``output_dir``."""

    target = Path(output_dir)
    target.mkdir(parents=True, exist_ok=True)
    names = quote_filenames(ticket.id)
    txt_path = target / names["txt"]
    csv_path = target / names["csv"]
    summary = render_summary(ticket, items, timestamp, last_update=last_update, source_label=source_label)
    txt_path.write_text(summary, encoding="utf-8")
    # render_csv already carries the BOM; plain utf-8 keeps it single.
    csv_path.write_text(render_csv(items), encoding="utf-8")
    return {"txt": txt_path, "csv": csv_path}


def make_summary_text(frame: pd.DataFrame, kpis: "Kpis", top: int = 5) -> str:
    """Short console summary of the filtered work orders and their top cost drivers."""

    if frame.empty:
        return "No work orders matched the current filters.\n"
    drivers = (
        frame.sort_values("labor_cost", ascending=False, kind="stable")
        .head(top)[["id", "ticket_id", "sector", "labor_hours", "labor_cost"]]
    )
    return (
        f"Work orders: {kpis.total_ots} across {kpis.total_tickets} tickets.\n"
        f"Labor hours: {kpis.total_hours:,.1f} | labor cost: ${kpis.total_cost_rounded:,} "
        f"| cost per hour: ${kpis.cost_per_hour:,.2f} | max technicians: {kpis.max_technicians}\n"
        f"Top cost drivers:\n{drivers.to_string(index=False)}\n"
    )


def iter_item_lines(items: Iterable[QuoteItem]) -> Iterable[str]:
    """Yield one ``[item n] name :: k OTs :: factor f :: $total`` line per item for logging."""

    for idx, item in enumerate(items, start=1):
        yield f"[item {idx}] {item.name} :: {len(item.ots)} OTs :: factor {format_factor(item.factor)} :: ${format_amount(item_total(item))}"


__all__ = [
    "CSV_BOM",
    "CSV_HEADER",
    "format_amount",
    "format_decimal_comma",
    "format_factor",
    "iter_item_lines",
    "make_summary_text",
    "quote_filenames",
    "render_csv",
    "render_summary",
    "write_quote_files",
]
