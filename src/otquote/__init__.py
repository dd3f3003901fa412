"""Labor cost analytics and quoting over ERP work-order exports."""

from .analytics import DashboardSeries, Kpis, build_dashboard, filter_work_orders
from .catalog import build_catalog, extract_rows, load_catalog, search_tickets
from .errors import CatalogBuildError, DataSourceError, OtQuoteError, QuotePlanError
from .models import Catalog, FilterSpec, LoadResult, QuoteItem, Ticket, WorkOrder
from .normalize import normalize_row, parse_duration
from .quote import QuoteDraft
from .reporting import render_csv, render_summary

__all__ = [
    "Catalog",
    "CatalogBuildError",
    "DashboardSeries",
    "DataSourceError",
    "FilterSpec",
    "Kpis",
    "LoadResult",
    "OtQuoteError",
    "QuoteDraft",
    "QuoteItem",
    "QuotePlanError",
    "Ticket",
    "WorkOrder",
    "build_catalog",
    "build_dashboard",
    "extract_rows",
    "filter_work_orders",
    "load_catalog",
    "normalize_row",
    "parse_duration",
    "render_csv",
    "render_summary",
    "search_tickets",
]
