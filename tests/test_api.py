from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

pytest.importorskip("openpyxl")

from otquote.api import ReportOptions, generate_report


def test_generate_report_returns_artifacts(tmp_path: Path, raw_rows) -> None:
    rows = tmp_path / "rows.json"
    rows.write_text(json.dumps(raw_rows), encoding="utf-8")
    plan = tmp_path / "plan.json"
    plan.write_text(json.dumps({"ticket": "T2", "items": [{"ots": ["OT3"]}]}), encoding="utf-8")

    artifacts = generate_report(
        ReportOptions(rows=rows, output_dir=tmp_path / "out", quote_plan=plan),
        now=datetime(2024, 6, 1, 8, 0, 0),
    )

    assert set(artifacts) == {"summary", "workbook", "quote_txt", "quote_csv"}
    for path in artifacts.values():
        assert path.exists()
    assert artifacts["quote_csv"].name == "cotizacion_T2.csv"
