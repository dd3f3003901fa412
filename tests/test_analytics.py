from __future__ import annotations

import math
from datetime import date

import pytest

from otquote.analytics import (
    average_cost_per_ot,
    build_dashboard,
    compute_kpis,
    filter_options,
    filter_work_orders,
    group_distinct_count,
    group_sum,
    hours_histogram,
    pareto_by_ticket,
    quick_date_range,
    scatter_series,
    top_n_sum,
    top_technicians_per_ot,
)
from otquote.models import FilterSpec, WorkOrder


def _ot(ot_id, ticket_id, cost, hours=1.0, sector="A", subject="S", techs=1, when="2024-01-01"):
    return WorkOrder(
        id=ot_id,
        ticket_id=ticket_id,
        subject=subject,
        sector=sector,
        labor_hours=hours,
        labor_cost=cost,
        technician_count=techs,
        execution_date=when,
    )


def test_empty_filter_is_identity(catalog) -> None:
    assert filter_work_orders(catalog.ots, FilterSpec()) == catalog.ots
    assert filter_work_orders(catalog.ots, None) == catalog.ots


def test_filters_combine_and_bounds_are_inclusive(catalog) -> None:
    filters = FilterSpec.build(sectors=["Electricidad"], date_start="2024-03-02", date_end="2024-03-02")
    assert [ot.id for ot in filter_work_orders(catalog.ots, filters)] == ["OT2"]
    filters = FilterSpec.build(tickets=["T2"])
    assert [ot.id for ot in filter_work_orders(catalog.ots, filters)] == ["OT3"]
    filters = FilterSpec.build(sectors=["Nope"])
    assert filter_work_orders(catalog.ots, filters) == []


def test_compute_kpis(catalog) -> None:
    kpis = compute_kpis(catalog.ots)
    assert kpis.total_hours == pytest.approx(7.5)
    assert kpis.total_cost == pytest.approx(600.0)
    assert kpis.total_cost_rounded == 600
    assert kpis.cost_per_hour == pytest.approx(80.0)
    assert kpis.total_ots == 3
    assert kpis.total_tickets == 2
    assert kpis.max_technicians == 3


def test_compute_kpis_empty_avoids_division_by_zero() -> None:
    kpis = compute_kpis([])
    assert kpis.total_cost == 0
    assert kpis.cost_per_hour == 0
    assert kpis.max_technicians == 0


def test_group_sum_sorted_descending_with_stable_ties() -> None:
    ots = [
        _ot("1", "T1", 50, sector="B"),
        _ot("2", "T1", 70, sector="A"),
        _ot("3", "T2", 20, sector="C"),
        _ot("4", "T2", 30, sector="C"),
    ]
    assert group_sum(ots, "sector", "labor_cost") == [("A", 70.0), ("B", 50.0), ("C", 50.0)]
    assert top_n_sum(ots, "sector", "labor_cost", 1) == [("A", 70.0)]


def test_group_sum_accepts_callable_keys() -> None:
    ots = [_ot("1", "T1", 10, when="2024-01-05"), _ot("2", "T2", 15, when="2024-02-01")]
    by_month = group_sum(ots, lambda ot: ot.execution_date[:7], "labor_cost")
    assert by_month == [("2024-02", 15.0), ("2024-01", 10.0)]


def test_group_distinct_count_counts_unique_ids() -> None:
    ots = [_ot("1", "T1", 1, subject="X"), _ot("1", "T1", 1, subject="X"), _ot("2", "T2", 1, subject="X")]
    assert group_distinct_count(ots, "subject", "id") == [("X", 2)]
    assert group_distinct_count(ots, "subject", "ticket_id") == [("X", 2)]


def test_average_cost_per_ot() -> None:
    ots = [_ot("1", "T1", 100), _ot("2", "T1", 300), _ot("3", "T2", 250)]
    assert average_cost_per_ot(ots) == [("T2", 250.0), ("T1", 200.0)]


def test_top_technicians_per_ot() -> None:
    ots = [_ot("1", "T1", 1, techs=2), _ot("2", "T1", 1, techs=5), _ot("3", "T1", 1, techs=2)]
    assert top_technicians_per_ot(ots, n=2) == [("2", 5), ("1", 2)]


def test_pareto_is_monotonic_and_ends_at_100() -> None:
    ots = [_ot("1", "T1", 100, hours=1), _ot("2", "T2", 300, hours=5), _ot("3", "T3", 50, hours=2)]
    points = pareto_by_ticket(ots)
    assert [p.ticket_id for p in points] == ["T2", "T1", "T3"]
    cost_pct = [p.cumulative_cost_pct for p in points]
    hours_pct = [p.cumulative_hours_pct for p in points]
    assert cost_pct == sorted(cost_pct)
    assert hours_pct == sorted(hours_pct)
    assert cost_pct[-1] == pytest.approx(100.0)
    assert hours_pct[-1] == pytest.approx(100.0)
    assert hours_pct[0] == pytest.approx(5 / 8 * 100)


def test_pareto_with_zero_totals_is_all_zero() -> None:
    points = pareto_by_ticket([_ot("1", "T1", 0, hours=0), _ot("2", "T2", 0, hours=0)])
    assert len(points) == 2
    assert all(p.cumulative_cost_pct == 0 and p.cumulative_hours_pct == 0 for p in points)


def test_scatter_series_in_discovery_order(catalog) -> None:
    series = scatter_series(catalog.ots)
    assert [s.name for s in series] == ["Electricidad", "Sanitarios"]
    assert series[0].hours == [2.5, 1.0]
    assert series[0].cost == [100.0, 300.0]


def test_hours_histogram_counts_every_work_order(catalog) -> None:
    histogram = hours_histogram(catalog.ots, bins=4)
    assert sum(histogram.counts) == 3
    assert len(histogram.edges) == 5
    assert hours_histogram([]).counts == []


def test_filter_options_and_quick_ranges(catalog) -> None:
    sectors, tickets = filter_options(catalog.ots)
    assert sectors == ["Electricidad", "Sanitarios"]
    assert tickets == ["T1", "T2"]
    assert quick_date_range(7, today=date(2024, 3, 10)) == ("2024-03-03", "2024-03-10")
    assert quick_date_range("all") == ("", "")


def test_build_dashboard_respects_top_n_and_frames(catalog) -> None:
    dashboard = build_dashboard(catalog.ots, FilterSpec(), top_n_cost=2, top_n_hours=1)
    assert [ot_id for ot_id, _ in dashboard.top_ots_cost] == ["OT2", "OT3"]
    assert [ot_id for ot_id, _ in dashboard.top_ots_hours] == ["OT3"]
    assert dashboard.sector_cost == [("Electricidad", 400.0), ("Sanitarios", 200.0)]
    assert dashboard.ticket_ots == [("T1", 2), ("T2", 1)]
    frames = dashboard.frames()
    assert list(frames["ticket_cost"].columns) == ["ticket_id", "labor_cost"]
    assert frames["pareto"]["cumulative_cost_pct"].iloc[-1] == pytest.approx(100.0)
    assert len(frames["scatter"]) == 3


def test_build_dashboard_empty_selection() -> None:
    dashboard = build_dashboard([], FilterSpec())
    assert dashboard.kpis.total_ots == 0
    assert dashboard.pareto == []
    assert dashboard.sector_cost == []


def test_missing_group_keys_form_their_own_group() -> None:
    ots = [_ot("1", "T1", 5, hours=1), _ot("2", "T2", 7, hours=2)]
    assert group_sum(ots, lambda ot: None, "labor_cost") == [(None, 12.0)]
    assert group_distinct_count(ots, lambda ot: None, "id") == [(None, 2)]
    assert group_distinct_count(ots, "sector", lambda ot: None) == [("A", 1)]
    assert average_cost_per_ot(ots, lambda ot: None) == [(None, 6.0)]

    mixed = group_sum(ots, lambda ot: None if ot.id == "1" else float("nan"), "labor_cost")
    assert len(mixed) == 2
    assert math.isnan(mixed[0][0]) and mixed[0][1] == 7.0
    assert mixed[1] == (None, 5.0)

    series = scatter_series(ots, lambda ot: None)
    assert [s.name for s in series] == [None]
    assert series[0].cost == [5.0, 7.0]
