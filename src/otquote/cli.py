"""Command line entry point for the labor analytics and quoting pipeline."""
from __future__ import annotations

import argparse
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .analytics import build_dashboard, quick_date_range, work_order_frame
from .catalog import load_catalog
from .config import Config
from .config import load_config as load_runtime_config
from .errors import OtQuoteError
from .export import write_dashboard_workbook, write_kpi_summary
from .models import FilterSpec
from .plan import apply_quote_plan, load_quote_plan
from .reporting import iter_item_lines, make_summary_text, write_quote_files
from .source import load_local_rows, refresh
from .visuals import emit_dashboard_charts

BASE_DIR = Path(__file__).resolve().parents[2]
WORKBOOK_NAME = "labor_dashboard.xlsx"
SUMMARY_NAME = "labor_summary.txt"
ROWS_SOURCE_LABEL = "Archivo de filas"

logger = logging.getLogger(__name__)


def _build_filters(args: argparse.Namespace, now: datetime) -> FilterSpec:
    date_start = getattr(args, "date_start", None)
    date_end = getattr(args, "date_end", None)
    last_days = getattr(args, "last_days", None)
    if last_days is not None:
        date_start, date_end = quick_date_range(last_days, today=now.date())
    return FilterSpec.build(
        sectors=getattr(args, "sector", None),
        tickets=getattr(args, "ticket", None),
        date_start=date_start,
        date_end=date_end,
    )


def run(
    runtime_config: Config,
    args: Optional[argparse.Namespace] = None,
    *,
    now: Optional[datetime] = None,
) -> int:
    args = args or argparse.Namespace()
    timestamp = now or datetime.now()
    stage_counter = 0

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    def log_stage(message: str) -> None:
        nonlocal stage_counter
        stage_counter += 1
        logger.info("[pipeline:%02d] %s", stage_counter, message)

    def log_detail(message: str) -> None:
        logger.info("           %s", message)

    output_dir = runtime_config.output_dir
    rows_path = getattr(args, "rows", None)

    log_stage("Loading labor rows")
    if rows_path:
        result = load_catalog(load_local_rows(rows_path), source="rows", now=timestamp)
        source_label = ROWS_SOURCE_LABEL
        log_detail(f"rows_file => {Path(rows_path).resolve()}")
    else:
        result = refresh(runtime_config, now=timestamp)
        source_label = runtime_config.source_label
        log_detail(f"source => {source_label}")
    log_detail(f"status => {result.status}")
    if not result.ok:
        logger.error("No usable rows were loaded: %s", result.error)
        return 1
    catalog = result.catalog
    log_detail(f"tickets={len(catalog.tickets)} work_orders={len(catalog.ots)}")

    log_stage("Filtering work orders")
    filters = _build_filters(args, timestamp)
    if filters.is_empty:
        log_detail("no filters applied")
    else:
        log_detail(
            f"sectors={sorted(filters.sectors) or '*'} tickets={sorted(filters.tickets) or '*'} "
            f"dates={filters.date_start or '..'}:{filters.date_end or '..'}"
        )

    log_stage("Aggregating dashboard series")
    dashboard = build_dashboard(
        catalog.ots,
        filters,
        top_n_cost=runtime_config.top_n_cost,
        top_n_hours=runtime_config.top_n_hours,
    )
    log_detail(f"filtered_work_orders={len(dashboard.filtered)}")

    written = []
    summary_path = write_kpi_summary(dashboard, output_dir / SUMMARY_NAME)
    written.append(summary_path)

    charts_format = getattr(args, "charts", None)
    if charts_format:
        log_stage(f"Rendering charts ({charts_format})")
        visuals = emit_dashboard_charts(
            dashboard,
            output_dir / "charts",
            format=charts_format,
            bundle_pdf=not getattr(args, "no_pdf", False),
        )
        written.extend(Path(path) for path in visuals["charts"])
        if visuals["pdf"]:
            written.append(Path(visuals["pdf"]))
        for reason in visuals["skipped"]:
            log_detail(f"skipped: {reason}")

    if getattr(args, "workbook", False):
        log_stage("Writing dashboard workbook")
        written.append(write_dashboard_workbook(dashboard, output_dir / WORKBOOK_NAME))

    plan_path = getattr(args, "quote_plan", None)
    if plan_path:
        log_stage("Building quote")
        plan = load_quote_plan(plan_path)
        draft = apply_quote_plan(catalog, plan)
        for line in iter_item_lines(draft.items):
            log_detail(line)
        paths = write_quote_files(
            draft.ticket,
            draft.items,
            output_dir,
            timestamp,
            last_update=result.loaded_at,
            source_label=source_label,
        )
        written.extend([paths["txt"], paths["csv"]])

    logger.info("\n=== SUMMARY ===\n")
    logger.info("%s", make_summary_text(work_order_frame(dashboard.filtered), dashboard.kpis))
    logger.info("Status: %s", result.status)
    logger.info("\nOutputs written:")
    for path in written:
        logger.info(" - %s", path)
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Labor cost analytics and quoting for ERP work orders")
    parser.add_argument("--rows", help="JSON row export to use instead of the API or local dataset")
    parser.add_argument("--local-data", help="Local JSON dataset used when the API is unavailable")
    parser.add_argument("--offline", action="store_true", help="Skip the API and use the local dataset")
    parser.add_argument("--timeout", type=float, help="API timeout in seconds")
    parser.add_argument("--sector", action="append", help="Restrict analytics to a sector (repeatable)")
    parser.add_argument("--ticket", action="append", help="Restrict analytics to a ticket id (repeatable)")
    parser.add_argument("--date-start", help="Earliest execution date (YYYY-MM-DD, inclusive)")
    parser.add_argument("--date-end", help="Latest execution date (YYYY-MM-DD, inclusive)")
    parser.add_argument("--last-days", type=int, help="Shortcut for a date range ending today")
    parser.add_argument("--top-n-cost", type=int, help="Work orders shown in the top-by-cost ranking")
    parser.add_argument("--top-n-hours", type=int, help="Work orders shown in the top-by-hours ranking")
    parser.add_argument("--output-dir", help="Directory for generated outputs")
    parser.add_argument("--charts", choices=["png", "pdf", "both"], help="Render dashboard charts")
    parser.add_argument("--no-pdf", action="store_true", help="Do not bundle charts into a summary PDF")
    parser.add_argument("--workbook", action="store_true", help="Write the dashboard series to an Excel workbook")
    parser.add_argument("--quote-plan", help="JSON/YAML quote plan to build and export")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(BASE_DIR / ".env")
    args = parse_args(argv)
    runtime_cfg = load_runtime_config(os.environ, args)
    log_level = logging.DEBUG if runtime_cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")
    try:
        return run(runtime_cfg, args)
    except OtQuoteError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # pragma: no cover - defensive
        logger.exception("Fatal error during labor report generation")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
