"""Filtering, grouping and ranking of work orders for the analytics reports.

Every function is a pure derivation of its inputs; callers re-run them from
scratch whenever filters or data change.  Grouped series are returned
already sorted (and truncated where asked) so chart code must not re-sort.
Ties keep the order in which their groups were first encountered.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .models import FilterSpec, WorkOrder

logger = logging.getLogger(__name__)

TICKET_TOP_N = 15
SUBJECT_TOP_N = 10
TECHNICIANS_TOP_N = 10
HISTOGRAM_BINS = 20
DEFAULT_TOP_N = 10

FRAME_COLUMNS: Tuple[str, ...] = tuple(f.name for f in fields(WorkOrder))

Key = Union[str, Callable[[WorkOrder], Any]]
Pair = Tuple[Any, float]

# (series attribute, label column, value column) for tabular export.
PAIR_SERIES: Tuple[Tuple[str, str, str], ...] = (
    ("sector_cost", "sector", "labor_cost"),
    ("sector_hours", "sector", "labor_hours"),
    ("sector_ots", "sector", "ot_count"),
    ("technicians_per_ot", "ot_id", "technician_count"),
    ("top_ots_cost", "ot_id", "labor_cost"),
    ("top_ots_hours", "ot_id", "labor_hours"),
    ("ticket_cost", "ticket_id", "labor_cost"),
    ("ticket_hours", "ticket_id", "labor_hours"),
    ("ticket_ots", "ticket_id", "ot_count"),
    ("ticket_avg_cost", "ticket_id", "avg_cost_per_ot"),
    ("subject_cost", "subject", "labor_cost"),
    ("subject_tickets", "subject", "ticket_count"),
    ("subject_ots", "subject", "ot_count"),
)


@dataclass(frozen=True)
class Kpis:
    total_hours: float
    total_cost: float
    total_cost_rounded: int
    cost_per_hour: float
    total_ots: int
    total_tickets: int
    max_technicians: int


@dataclass(frozen=True)
class ParetoPoint:
    ticket_id: str
    cost: float
    hours: float
    cumulative_cost_pct: float
    cumulative_hours_pct: float


@dataclass(frozen=True)
class ScatterSeries:
    name: Any
    hours: List[float]
    cost: List[float]


@dataclass(frozen=True)
class HoursHistogram:
    counts: List[int]
    edges: List[float]


@dataclass
class DashboardSeries:
    """Every aggregated series the dashboard reports are drawn from."""

    filter_spec: FilterSpec
    filtered: List[WorkOrder]
    kpis: Kpis
    sector_cost: List[Pair] = field(default_factory=list)
    sector_hours: List[Pair] = field(default_factory=list)
    sector_ots: List[Pair] = field(default_factory=list)
    technicians_per_ot: List[Pair] = field(default_factory=list)
    top_ots_cost: List[Pair] = field(default_factory=list)
    top_ots_hours: List[Pair] = field(default_factory=list)
    ticket_cost: List[Pair] = field(default_factory=list)
    ticket_hours: List[Pair] = field(default_factory=list)
    ticket_ots: List[Pair] = field(default_factory=list)
    ticket_avg_cost: List[Pair] = field(default_factory=list)
    subject_cost: List[Pair] = field(default_factory=list)
    subject_tickets: List[Pair] = field(default_factory=list)
    subject_ots: List[Pair] = field(default_factory=list)
    pareto: List[ParetoPoint] = field(default_factory=list)
    scatter: List[ScatterSeries] = field(default_factory=list)
    histogram: Optional[HoursHistogram] = None

    def frames(self) -> Dict[str, pd.DataFrame]:
        """Tabular view of each series, keyed by series name, in report order."""

        out: Dict[str, pd.DataFrame] = {
            "kpis": pd.DataFrame([asdict(self.kpis)]),
        }
        for name, label_col, value_col in PAIR_SERIES:
            out[name] = pd.DataFrame(getattr(self, name), columns=[label_col, value_col])
        out["pareto"] = pd.DataFrame(
            [asdict(point) for point in self.pareto],
            columns=[f.name for f in fields(ParetoPoint)],
        )
        out["scatter"] = pd.DataFrame(
            [
                {"series": series.name, "labor_hours": hours, "labor_cost": cost}
                for series in self.scatter
                for hours, cost in zip(series.hours, series.cost)
            ],
            columns=["series", "labor_hours", "labor_cost"],
        )
        return out


def work_order_frame(ots: Sequence[WorkOrder]) -> pd.DataFrame:
    """One row per work order, columns named after the ``WorkOrder`` fields."""

    frame = pd.DataFrame([asdict(ot) for ot in ots], columns=list(FRAME_COLUMNS))
    frame["labor_hours"] = pd.to_numeric(frame["labor_hours"], errors="coerce").fillna(0.0).astype(float)
    frame["labor_cost"] = pd.to_numeric(frame["labor_cost"], errors="coerce").fillna(0.0).astype(float)
    frame["technician_count"] = pd.to_numeric(frame["technician_count"], errors="coerce").fillna(0).astype(int)
    return frame


def _series(ots: Sequence[WorkOrder], frame: pd.DataFrame, key: Key) -> pd.Series:
    if callable(key):
        return pd.Series([key(ot) for ot in ots], index=frame.index, dtype=object)
    if key not in frame.columns:
        raise KeyError(f"Unknown work order field: {key}")
    return frame[key]


_NAN_KEY = object()


def _group_codes(keys: pd.Series) -> Tuple[np.ndarray, List[Any]]:
    """Integer group codes in first-encountered order plus the label of each code.

    Missing keys (``None``, NaN) form groups of their own and keep their
    original value as label.
    """

    labels: List[Any] = []
    positions: Dict[Any, int] = {}
    codes: List[int] = []
    for key in keys.tolist():
        lookup = _NAN_KEY if isinstance(key, float) and math.isnan(key) else key
        code = positions.get(lookup)
        if code is None:
            code = len(labels)
            positions[lookup] = code
            labels.append(key)
        codes.append(code)
    return np.asarray(codes, dtype=int), labels


def _ranked(pairs: Dict[Any, float] | pd.Series, top_n: Optional[int] = None) -> List[Pair]:
    items = list(pairs.items())
    # sorted() is stable with reverse=True, so ties keep first-encountered order.
    ordered = sorted(items, key=lambda kv: kv[1], reverse=True)
    if top_n is not None:
        ordered = ordered[: max(0, int(top_n))]
    return ordered


def filter_work_orders(ots: Sequence[WorkOrder], filters: Optional[FilterSpec] = None) -> List[WorkOrder]:
    """Keep work orders matching every active restriction of ``filters``.

    Dates compare as strings and both bounds are inclusive.
    """

    if not ots:
        return []
    if filters is None or filters.is_empty:
        return list(ots)

    frame = work_order_frame(ots)
    mask = pd.Series(True, index=frame.index)
    if filters.sectors:
        mask &= frame["sector"].isin(list(filters.sectors))
    if filters.tickets:
        mask &= frame["ticket_id"].isin(list(filters.tickets))
    if filters.date_start:
        mask &= frame["execution_date"].astype(str) >= filters.date_start
    if filters.date_end:
        mask &= frame["execution_date"].astype(str) <= filters.date_end
    kept = [ot for ot, keep in zip(ots, mask.tolist()) if keep]
    logger.debug("Filter kept %d of %d work orders", len(kept), len(ots))
    return kept


def _round_display(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_kpis(filtered: Sequence[WorkOrder]) -> Kpis:
    """Headline figures for the filtered work orders."""

    frame = work_order_frame(filtered)
    hours = float(sum(frame["labor_hours"].tolist()))
    cost = float(sum(frame["labor_cost"].tolist()))
    return Kpis(
        total_hours=hours,
        total_cost=cost,
        total_cost_rounded=_round_display(cost),
        cost_per_hour=cost / (hours or 1),
        total_ots=int(frame["id"].nunique()),
        total_tickets=int(frame["ticket_id"].nunique()),
        max_technicians=max(int(frame["technician_count"].max()) if not frame.empty else 0, 0),
    )


def group_sum(
    filtered: Sequence[WorkOrder],
    key: Key,
    value: Key,
    top_n: Optional[int] = None,
) -> List[Pair]:
    """Sum ``value`` per ``key``; pairs sorted by sum descending."""

    if not filtered:
        return []
    frame = work_order_frame(filtered)
    keys = _series(filtered, frame, key)
    values = pd.to_numeric(_series(filtered, frame, value), errors="coerce").fillna(0.0)
    codes, labels = _group_codes(keys)
    sums = values.groupby(codes, sort=False).sum()
    return [(labels[code], float(total)) for code, total in _ranked(sums, top_n)]


def group_distinct_count(
    filtered: Sequence[WorkOrder],
    key: Key,
    id_key: Key,
    top_n: Optional[int] = None,
) -> List[Pair]:
    """Count distinct ``id_key`` values per ``key``; pairs sorted by count descending."""

    if not filtered:
        return []
    frame = work_order_frame(filtered)
    keys = _series(filtered, frame, key)
    ids = _series(filtered, frame, id_key)
    codes, labels = _group_codes(keys)
    counts = ids.groupby(codes, sort=False).nunique(dropna=False)
    return [(labels[code], int(count)) for code, count in _ranked(counts, top_n)]


def top_n_sum(filtered: Sequence[WorkOrder], key: Key, value: Key, n: int) -> List[Pair]:
    return group_sum(filtered, key, value, top_n=n)


def top_n_distinct_count(filtered: Sequence[WorkOrder], key: Key, id_key: Key, n: int) -> List[Pair]:
    return group_distinct_count(filtered, key, id_key, top_n=n)


def average_cost_per_ot(
    filtered: Sequence[WorkOrder],
    key: Key = "ticket_id",
    top_n: Optional[int] = None,
) -> List[Pair]:
    """Summed labor cost divided by distinct work orders, per group."""

    if not filtered:
        return []
    frame = work_order_frame(filtered)
    codes, labels = _group_codes(_series(filtered, frame, key))
    costs = frame["labor_cost"].groupby(codes, sort=False).sum()
    counts = frame["id"].groupby(codes, sort=False).nunique(dropna=False)
    averages = costs / counts
    return [(labels[code], float(avg)) for code, avg in _ranked(averages, top_n)]


def top_technicians_per_ot(filtered: Sequence[WorkOrder], n: int = TECHNICIANS_TOP_N) -> List[Pair]:
    """Rows with the most technicians, as ``(ot_id, technician_count)``."""

    rows = sorted(filtered, key=lambda ot: ot.technician_count, reverse=True)
    return [(ot.id, ot.technician_count) for ot in rows[: max(0, n)]]


def pareto_by_ticket(filtered: Sequence[WorkOrder]) -> List[ParetoPoint]:
    """Cost concentration by ticket.

    Tickets are ranked by summed cost; cumulative cost and cumulative hours are
    both accumulated in that cost order and expressed as percentages of their
    own totals (``0`` throughout when a total is zero).
    """

    costs = group_sum(filtered, "ticket_id", "labor_cost")
    if not costs:
        return []
    hours = dict(group_sum(filtered, "ticket_id", "labor_hours"))

    cumulative_cost = np.cumsum([cost for _, cost in costs]).tolist()
    cumulative_hours = np.cumsum([hours.get(ticket, 0.0) for ticket, _ in costs]).tolist()
    total_cost = cumulative_cost[-1]
    total_hours = cumulative_hours[-1]

    points: List[ParetoPoint] = []
    for idx, (ticket_id, cost) in enumerate(costs):
        points.append(
            ParetoPoint(
                ticket_id=ticket_id,
                cost=cost,
                hours=float(hours.get(ticket_id, 0.0)),
                cumulative_cost_pct=(cumulative_cost[idx] / total_cost * 100) if total_cost else 0.0,
                cumulative_hours_pct=(cumulative_hours[idx] / total_hours * 100) if total_hours else 0.0,
            )
        )
    return points


def scatter_series(filtered: Sequence[WorkOrder], key: Key = "sector") -> List[ScatterSeries]:
    """Hours/cost coordinates per group, groups in discovery order."""

    if not filtered:
        return []
    frame = work_order_frame(filtered)
    codes, labels = _group_codes(_series(filtered, frame, key))
    series: List[ScatterSeries] = []
    for code, group in frame.groupby(codes, sort=False):
        series.append(
            ScatterSeries(
                name=labels[code],
                hours=group["labor_hours"].astype(float).tolist(),
                cost=group["labor_cost"].astype(float).tolist(),
            )
        )
    return series


def hours_histogram(filtered: Sequence[WorkOrder], bins: int = HISTOGRAM_BINS) -> HoursHistogram:
    hours = np.asarray([ot.labor_hours for ot in filtered], dtype=float)
    if hours.size == 0:
        return HoursHistogram(counts=[], edges=[])
    counts, edges = np.histogram(hours, bins=max(1, bins))
    return HoursHistogram(counts=counts.astype(int).tolist(), edges=edges.astype(float).tolist())


def filter_options(ots: Sequence[WorkOrder]) -> Tuple[List[str], List[str]]:
    """Sorted distinct sectors and ticket ids for the filter pickers."""

    sectors = sorted({ot.sector for ot in ots})
    tickets = sorted({ot.ticket_id for ot in ots})
    return sectors, tickets


def quick_date_range(days: Union[int, str], today: Optional[date] = None) -> Tuple[str, str]:
    """Inclusive ``(start, end)`` bounds covering the last ``days`` days; ``"all"`` clears them."""

    if isinstance(days, str) and days.strip().lower() == "all":
        return "", ""
    end = today or date.today()
    start = end - timedelta(days=int(days))
    return start.isoformat(), end.isoformat()


def build_dashboard(
    ots: Sequence[WorkOrder],
    filters: Optional[FilterSpec] = None,
    *,
    top_n_cost: int = DEFAULT_TOP_N,
    top_n_hours: int = DEFAULT_TOP_N,
) -> DashboardSeries:
    """Recompute every dashboard series from ``ots`` under ``filters``."""

    filters = filters or FilterSpec()
    filtered = filter_work_orders(ots, filters)
    dashboard = DashboardSeries(
        filter_spec=filters,
        filtered=filtered,
        kpis=compute_kpis(filtered),
        sector_cost=group_sum(filtered, "sector", "labor_cost"),
        sector_hours=group_sum(filtered, "sector", "labor_hours"),
        sector_ots=group_distinct_count(filtered, "sector", "id"),
        technicians_per_ot=top_technicians_per_ot(filtered),
        top_ots_cost=top_n_sum(filtered, "id", "labor_cost", top_n_cost),
        top_ots_hours=top_n_sum(filtered, "id", "labor_hours", top_n_hours),
        ticket_cost=top_n_sum(filtered, "ticket_id", "labor_cost", TICKET_TOP_N),
        ticket_hours=top_n_sum(filtered, "ticket_id", "labor_hours", TICKET_TOP_N),
        ticket_ots=top_n_distinct_count(filtered, "ticket_id", "id", TICKET_TOP_N),
        ticket_avg_cost=average_cost_per_ot(filtered, "ticket_id", top_n=TICKET_TOP_N),
        subject_cost=top_n_sum(filtered, "subject", "labor_cost", SUBJECT_TOP_N),
        subject_tickets=top_n_distinct_count(filtered, "subject", "ticket_id", SUBJECT_TOP_N),
        subject_ots=top_n_distinct_count(filtered, "subject", "id", SUBJECT_TOP_N),
        pareto=pareto_by_ticket(filtered),
        scatter=scatter_series(filtered, "sector"),
        histogram=hours_histogram(filtered),
    )
    logger.debug(
        "Dashboard rebuilt: %d of %d work orders after filters", len(filtered), len(ots)
    )
    return dashboard


__all__ = [
    "DashboardSeries",
    "HoursHistogram",
    "Kpis",
    "ParetoPoint",
    "ScatterSeries",
    "average_cost_per_ot",
    "build_dashboard",
    "compute_kpis",
    "filter_options",
    "filter_work_orders",
    "group_distinct_count",
    "group_sum",
    "hours_histogram",
    "pareto_by_ticket",
    "quick_date_range",
    "scatter_series",
    "top_n_distinct_count",
    "top_n_sum",
    "top_technicians_per_ot",
    "work_order_frame",
]
