from __future__ import annotations

from datetime import datetime

import pandas as pd

from otquote.analytics import compute_kpis, work_order_frame
from otquote.catalog import build_catalog
from otquote.quote import QuoteDraft
from otquote.reporting import (
    CSV_BOM,
    CSV_HEADER,
    format_amount,
    make_summary_text,
    render_csv,
    render_summary,
    write_quote_files,
)

STAMP = datetime(2024, 5, 6, 14, 30, 5)


def _two_item_draft(catalog) -> QuoteDraft:
    draft = QuoteDraft(work_orders=catalog.ots)
    draft.select_ticket(catalog.ticket("T1"))
    first = draft.create_item()
    draft.assign_ot("OT1", first.id)
    draft.set_factor(first.id, "1")
    second = draft.create_item()
    draft.rename_item(second.id, 'Cableado "nuevo"')
    draft.assign_ot("OT2", second.id)
    draft.set_factor(second.id, "1")
    return draft


def test_format_amount_uses_argentine_grouping() -> None:
    assert format_amount(1234.5) == "1.234,50"
    assert format_amount(1234567.891) == "1.234.567,89"
    assert format_amount(0) == "0,00"


def test_render_summary_layout(catalog) -> None:
    draft = _two_item_draft(catalog)
    text = render_summary(draft.ticket, draft.items, STAMP)
    lines = text.splitlines()
    assert lines[0] == "COTIZACION DE MANO DE OBRA - T1"
    assert lines[1] == "ASUNTO: Tablero principal"
    assert lines[2] == "FECHA: 06/05/2024, 14:30:05"
    assert lines[3] == "-" * 42
    assert "ITEM 1: CAMBIO DE TÉRMICA" in lines
    assert "FACTOR: 1" in lines
    assert "- OT: OT1 | Cambio de térmica" in lines
    assert "SUBTOTAL: $100.00" in lines
    assert "SUBTOTAL: $300.00" in lines
    assert lines[-1] == "TOTAL GENERAL: $ 400,00"


def test_render_summary_optional_header_lines(catalog) -> None:
    draft = _two_item_draft(catalog)
    text = render_summary(draft.ticket, draft.items, STAMP, last_update=STAMP, source_label="Datos locales")
    assert "ÚLTIMA ACTUALIZACIÓN: 06/05/2024, 14:30:05" in text
    assert "FUENTE: Datos locales" in text


def test_render_summary_is_deterministic(catalog) -> None:
    draft = _two_item_draft(catalog)
    assert render_summary(draft.ticket, draft.items, STAMP) == render_summary(draft.ticket, draft.items, STAMP)


def test_render_csv_rows_and_single_bom(catalog) -> None:
    draft = _two_item_draft(catalog)
    text = render_csv(draft.items)
    assert text.count(CSV_BOM) == 1
    lines = text.splitlines()
    assert lines[0] == CSV_BOM + CSV_HEADER
    assert lines[1] == '1;"Cambio de térmica";1;OT1;"Cambio de térmica";100,00'
    assert lines[2] == '2;"Cableado ""nuevo""";1;OT2;"Cableado";300,00'


def test_csv_subtotal_repeats_per_work_order(catalog) -> None:
    draft = QuoteDraft(work_orders=catalog.ots)
    draft.select_ticket(catalog.ticket("T1"))
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    draft.assign_ot("OT2", item.id)
    draft.set_factor(item.id, "1")
    rows = render_csv(draft.items).splitlines()[1:]
    assert [row.rsplit(";", 1)[1] for row in rows] == ["400,00", "400,00"]


def test_write_quote_files(tmp_path, catalog) -> None:
    draft = _two_item_draft(catalog)
    paths = write_quote_files(draft.ticket, draft.items, tmp_path / "out", STAMP)
    assert paths["txt"].name == "cotizacion_T1.txt"
    assert paths["csv"].name == "cotizacion_T1.csv"
    raw = paths["csv"].read_bytes()
    assert raw.startswith(CSV_BOM.encode("utf-8"))
    assert raw.count(CSV_BOM.encode("utf-8")) == 1
    assert "TOTAL GENERAL: $ 400,00" in paths["txt"].read_text(encoding="utf-8")


def test_make_summary_text(catalog) -> None:
    frame = work_order_frame(catalog.ots)
    text = make_summary_text(frame, compute_kpis(catalog.ots), top=2)
    assert "Work orders: 3 across 2 tickets." in text
    assert "OT2" in text and "OT3" in text
    assert make_summary_text(pd.DataFrame(), compute_kpis([])) == "No work orders matched the current filters.\n"


def test_csv_factor_column_and_scaled_subtotals() -> None:
    catalog = build_catalog(
        [
            {"iss": "T9", "subject_ticket": "Obra", "ot": "OTA", "subject_ot": "Base", "costo_mo_total": 100},
            {"iss": "T9", "subject_ticket": "Obra", "ot": "OTB", "subject_ot": "Extra", "costo_mo_total": 200},
        ]
    )
    draft = QuoteDraft(work_orders=catalog.ots)
    draft.select_ticket(catalog.ticket("T9"))
    first = draft.create_item()
    draft.assign_ot("OTA", first.id)
    draft.set_factor(first.id, 1)
    second = draft.create_item()
    draft.assign_ot("OTB", second.id)
    draft.set_factor(second.id, "2")

    rows = render_csv(draft.items).splitlines()[1:]
    assert rows == [
        '1;"Base";1;OTA;"Base";100,00',
        '2;"Extra";2;OTB;"Extra";400,00',
    ]
    assert "TOTAL GENERAL: $ 500,00" in render_summary(draft.ticket, draft.items, STAMP)
