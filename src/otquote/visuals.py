"""Optional chart output for the labor analytics dashboard."""

from __future__ import annotations

import io
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

try:  # pragma: no cover - optional dependency
    import matplotlib

    matplotlib.use("Agg")  # Ensure headless operation on CI/servers.
    import matplotlib.pyplot as plt
    from matplotlib.ticker import PercentFormatter, StrMethodFormatter
except Exception:  # pragma: no cover - matplotlib unavailable or misconfigured
    plt = None  # type: ignore
    StrMethodFormatter = None  # type: ignore
    PercentFormatter = None  # type: ignore

from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .analytics import DashboardSeries, Pair

PDF_NAME = "Labor_Dashboard_Summary.pdf"


@dataclass
class _ChartRecord:
    """Metadata captured for PDF bundling."""

    title: str
    caption: str
    image_bytes: bytes


def _currency_formatter() -> Optional[StrMethodFormatter]:
    if StrMethodFormatter is None:
        return None
    return StrMethodFormatter("$ {x:,.0f}")


def _labels_values(pairs: Sequence[Pair]) -> Tuple[List[str], List[float]]:
    return [str(label) for label, _ in pairs], [float(value) for _, value in pairs]


def _write_figure(
    fig: "plt.Figure",
    base_name: str,
    output_dir: Path,
    *,
    save_png: bool,
    save_pdf: bool,
    dpi: int = 140,
) -> Tuple[List[Path], bytes]:
    output_dir.mkdir(parents=True, exist_ok=True)
    created: List[Path] = []
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=dpi, bbox_inches="tight")
    png_bytes = buffer.getvalue()
    if save_png:
        png_path = output_dir / f"{base_name}.png"
        with open(png_path, "wb") as handle:
            handle.write(png_bytes)
        created.append(png_path)
    if save_pdf:
        pdf_path = output_dir / f"{base_name}.pdf"
        fig.savefig(pdf_path, format="pdf", bbox_inches="tight")
        created.append(pdf_path)
    plt.close(fig)
    return created, png_bytes


def _bundle_pdf(entries: Sequence[_ChartRecord], pdf_path: Path) -> None:
    c = canvas.Canvas(str(pdf_path), pagesize=landscape(letter))
    page_width, page_height = landscape(letter)
    margin = 36
    text_width = page_width - 2 * margin
    image_height = page_height - 2 * margin - 32
    for entry in entries:
        c.setFont("Helvetica-Bold", 16)
        c.drawString(margin, page_height - margin + 4, entry.title)
        image = ImageReader(io.BytesIO(entry.image_bytes))
        img_width, img_height = image.getSize()
        scale = min(text_width / img_width, image_height / img_height)
        draw_width = img_width * scale
        draw_height = img_height * scale
        x = (page_width - draw_width) / 2
        y = margin + 24
        c.drawImage(image, x, y, width=draw_width, height=draw_height, preserveAspectRatio=True, mask="auto")
        c.setFont("Helvetica", 10)
        text_y = margin
        for line in textwrap.wrap(entry.caption, width=110) or [entry.caption]:
            c.drawString(margin, text_y, line)
            text_y -= 12
        c.showPage()
    c.save()


def emit_dashboard_charts(
    dashboard: DashboardSeries,
    output_dir: str | Path,
    *,
    format: str = "png",
    bundle_pdf: bool = True,
) -> Dict[str, object]:
    """Draw the dashboard series as charts.

    Series are plotted in the order :mod:`otquote.analytics` returns them.
    Returns ``{"charts": [paths], "pdf": path or None, "skipped": [reasons]}``.
    """

    if plt is None:
        return {"charts": [], "pdf": None, "skipped": ["matplotlib not available"]}

    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    fmt = (format or "png").lower()
    save_png = fmt in {"png", "both"}
    save_pdf = fmt in {"pdf", "both"}
    if not (save_png or save_pdf):
        save_png = True

    charts: List[Path] = []
    skipped: List[str] = []
    pdf_entries: List[_ChartRecord] = []
    formatter = _currency_formatter()

    def record_chart(fig: "plt.Figure", base_name: str, title: str, caption: str) -> None:
        try:
            created, png_bytes = _write_figure(
                fig,
                base_name,
                target_dir,
                save_png=save_png,
                save_pdf=save_pdf,
            )
            charts.extend(created)
            if bundle_pdf:
                pdf_entries.append(_ChartRecord(title=title, caption=caption, image_bytes=png_bytes))
        except Exception as exc:  # pragma: no cover - robust path
            skipped.append(f"failed to save {base_name}: {exc}")

    # Cost by sector -----------------------------------------------------------------
    try:
        if not dashboard.sector_cost:
            skipped.append("sector cost chart skipped (no work orders)")
        else:
            labels, values = _labels_values(dashboard.sector_cost)
            fig, ax = plt.subplots(figsize=(8, 5), dpi=140)
            ax.bar(labels, values, color="#4C72B0")
            ax.set_title("Labor Cost by Sector")
            ax.set_ylabel("Labor cost")
            ax.tick_params(axis="x", rotation=30)
            if formatter is not None:
                ax.yaxis.set_major_formatter(formatter)
            ax.grid(True, axis="y", linestyle="--", alpha=0.3)
            fig.tight_layout()
            record_chart(fig, "sector_labor_cost", "Labor Cost by Sector", "Summed labor cost of the filtered work orders grouped by sector.")
    except Exception as exc:  # pragma: no cover - defensive
        skipped.append(f"sector cost chart failed: {exc}")

    # Top OTs by cost ----------------------------------------------------------------
    try:
        if not dashboard.top_ots_cost:
            skipped.append("top OTs chart skipped (no work orders)")
        else:
            labels, values = _labels_values(dashboard.top_ots_cost)
            fig, ax = plt.subplots(figsize=(8, 5), dpi=140)
            # barh draws bottom-up; reverse so the ranking reads top-down.
            ax.barh(labels[::-1], values[::-1], color="#8172B3")
            ax.set_xlabel("Labor cost")
            ax.set_ylabel("OT")
            ax.set_title("Top Work Orders by Labor Cost")
            if formatter is not None:
                ax.xaxis.set_major_formatter(formatter)
            ax.grid(True, axis="x", linestyle="--", alpha=0.3)
            fig.tight_layout()
            record_chart(fig, "top_ots_labor_cost", "Top Work Orders by Cost", "Work orders ranked by labor cost.")
    except Exception as exc:  # pragma: no cover - defensive
        skipped.append(f"top OTs chart failed: {exc}")

    # Pareto by ticket ---------------------------------------------------------------
    try:
        if not dashboard.pareto:
            skipped.append("pareto chart skipped (no tickets)")
        else:
            labels = [str(point.ticket_id) for point in dashboard.pareto]
            fig, ax = plt.subplots(figsize=(9, 5), dpi=140)
            ax.bar(labels, [point.cost for point in dashboard.pareto], color="#55A868", label="Labor cost")
            ax.set_ylabel("Labor cost")
            ax.tick_params(axis="x", rotation=60, labelsize="small")
            if formatter is not None:
                ax.yaxis.set_major_formatter(formatter)
            twin = ax.twinx()
            twin.plot(labels, [point.cumulative_cost_pct for point in dashboard.pareto], color="#C44E52", marker="o", linewidth=1.8, label="Cumulative cost %")
            twin.plot(labels, [point.cumulative_hours_pct for point in dashboard.pareto], color="#DD8452", linestyle="--", linewidth=1.6, label="Cumulative hours %")
            twin.set_ylim(0, 105)
            if PercentFormatter is not None:
                twin.yaxis.set_major_formatter(PercentFormatter(100))
            handles, names = ax.get_legend_handles_labels()
            twin_handles, twin_names = twin.get_legend_handles_labels()
            ax.legend(handles + twin_handles, names + twin_names, loc="center right", frameon=False, fontsize="small")
            ax.set_title("Pareto of Labor Cost by Ticket")
            fig.tight_layout()
            record_chart(fig, "ticket_pareto", "Pareto by Ticket", "Tickets ranked by labor cost with cumulative cost and hours shares.")
    except Exception as exc:  # pragma: no cover - defensive
        skipped.append(f"pareto chart failed: {exc}")

    # Hours vs cost scatter ------------------------------------------------------------
    try:
        if not dashboard.scatter:
            skipped.append("scatter chart skipped (no work orders)")
        else:
            fig, ax = plt.subplots(figsize=(8, 5), dpi=140)
            for idx, series in enumerate(dashboard.scatter):
                color = plt.get_cmap("tab10")(idx % 10)
                ax.scatter(series.hours, series.cost, s=18, alpha=0.6, color=color, label=str(series.name))
            ax.set_title("Labor Hours vs Cost by Sector")
            ax.set_xlabel("Labor hours")
            ax.set_ylabel("Labor cost")
            if formatter is not None:
                ax.yaxis.set_major_formatter(formatter)
            ax.grid(True, linestyle="--", alpha=0.3)
            ax.legend(loc="upper left", frameon=False, fontsize="small")
            fig.tight_layout()
            record_chart(fig, "hours_cost_scatter", "Hours vs Cost", "Each point is one work order, colored by sector.")
    except Exception as exc:  # pragma: no cover - defensive
        skipped.append(f"scatter chart failed: {exc}")

    # Hours distribution ---------------------------------------------------------------
    try:
        histogram = dashboard.histogram
        if histogram is None or not histogram.counts:
            skipped.append("hours histogram skipped (no work orders)")
        else:
            edges = histogram.edges
            widths = [right - left for left, right in zip(edges[:-1], edges[1:])]
            fig, ax = plt.subplots(figsize=(8, 5), dpi=140)
            ax.bar(edges[:-1], histogram.counts, width=widths, align="edge", color="#64B5CD", edgecolor="white", alpha=0.85)
            ax.set_title("Labor Hours Distribution")
            ax.set_xlabel("Labor hours")
            ax.set_ylabel("Work orders")
            ax.grid(True, axis="y", linestyle="--", alpha=0.3)
            fig.tight_layout()
            record_chart(fig, "labor_hours_hist", "Labor Hours Distribution", "Histogram of labor hours per work order.")
    except Exception as exc:  # pragma: no cover - defensive
        skipped.append(f"hours histogram failed: {exc}")

    # Bundle PDF ---------------------------------------------------------------------
    pdf_path: Optional[Path] = None
    if bundle_pdf and pdf_entries:
        try:
            pdf_path = target_dir / PDF_NAME
            _bundle_pdf(pdf_entries, pdf_path)
        except Exception as exc:  # pragma: no cover - defensive
            skipped.append(f"failed to build summary PDF: {exc}")
            pdf_path = None

    return {
        "charts": [str(path) for path in charts],
        "pdf": str(pdf_path) if pdf_path else None,
        "skipped": skipped,
    }


__all__ = ["emit_dashboard_charts"]
