from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Union

import pandas as pd

from .analytics import DashboardSeries, work_order_frame
from .reporting import make_summary_text

logger = logging.getLogger(__name__)

SHEET_NAME_LIMIT = 31


def _sheet_name(name: str) -> str:
    return name.upper()[:SHEET_NAME_LIMIT]


def write_dashboard_workbook(dashboard: DashboardSeries, path: Union[str, Path]) -> Path:
    """Write one sheet per dashboard series plus the filtered work orders."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    frames: Dict[str, pd.DataFrame] = dashboard.frames()
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        for name, frame in frames.items():
            frame.to_excel(writer, sheet_name=_sheet_name(name), index=False)
        work_order_frame(dashboard.filtered).to_excel(writer, sheet_name="WORK_ORDERS", index=False)
    logger.debug("Dashboard workbook written with %d sheets: %s", len(frames) + 1, target)
    return target


def write_kpi_summary(dashboard: DashboardSeries, path: Union[str, Path], top: int = 5) -> Path:
    """Write the console KPI summary to a text file."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    text = make_summary_text(work_order_frame(dashboard.filtered), dashboard.kpis, top=top)
    target.write_text(text, encoding="utf-8")
    return target


__all__ = ["write_dashboard_workbook", "write_kpi_summary"]
