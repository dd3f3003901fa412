from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .cli import SUMMARY_NAME, WORKBOOK_NAME
from .cli import run as run_pipeline
from .config import load_config
from .plan import load_quote_plan
from .reporting import quote_filenames


@dataclass
class ReportOptions:
    rows: Optional[Path] = None
    local_data: Optional[Path] = None
    output_dir: Optional[Path] = None
    sectors: List[str] = field(default_factory=list)
    tickets: List[str] = field(default_factory=list)
    date_start: Optional[str] = None
    date_end: Optional[str] = None
    workbook: bool = True
    quote_plan: Optional[Path] = None
    offline: bool = True


def generate_report(options: ReportOptions, now: Optional[datetime] = None) -> Dict[str, Path]:
    """Programmatic interface to run the labor report and return artifact paths.

    Returns a dict with keys: summary, and optionally workbook, quote_txt, quote_csv.
    """
    import os

    env = dict(os.environ)
    if options.local_data:
        env["OTQUOTE_LOCAL_DATA"] = str(options.local_data)
    if options.output_dir:
        env["OTQUOTE_OUTPUT_DIR"] = str(options.output_dir)
    if options.offline:
        env["OTQUOTE_DISABLE_API"] = "1"

    cfg = load_config(env, None)
    args = argparse.Namespace(
        rows=str(options.rows) if options.rows else None,
        sector=list(options.sectors) or None,
        ticket=list(options.tickets) or None,
        date_start=options.date_start,
        date_end=options.date_end,
        last_days=None,
        charts=None,
        no_pdf=True,
        workbook=options.workbook,
        quote_plan=str(options.quote_plan) if options.quote_plan else None,
    )
    rc = run_pipeline(cfg, args, now=now)
    if rc != 0:
        raise RuntimeError(f"Labor report run failed with code {rc}")

    artifacts: Dict[str, Path] = {"summary": cfg.output_dir / SUMMARY_NAME}
    if options.workbook:
        artifacts["workbook"] = cfg.output_dir / WORKBOOK_NAME
    if options.quote_plan:
        names = quote_filenames(load_quote_plan(options.quote_plan).ticket)
        artifacts["quote_txt"] = cfg.output_dir / names["txt"]
        artifacts["quote_csv"] = cfg.output_dir / names["csv"]
    return artifacts
