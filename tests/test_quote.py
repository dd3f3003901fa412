from __future__ import annotations

import pytest

from otquote.catalog import build_catalog
from otquote.models import DEFAULT_FACTOR, DEFAULT_ITEM_NAME
from otquote.quote import QuoteDraft, parse_factor


@pytest.fixture
def draft(catalog) -> QuoteDraft:
    draft = QuoteDraft(work_orders=catalog.ots)
    draft.select_ticket(catalog.ticket("T1"))
    return draft


def test_new_item_has_defaults_and_monotonic_ids(draft) -> None:
    first = draft.create_item()
    second = draft.create_item()
    assert first.name == DEFAULT_ITEM_NAME
    assert first.factor == DEFAULT_FACTOR
    assert second.id > first.id
    draft.delete_item(second.id)
    third = draft.create_item()
    assert third.id > second.id


def test_assign_names_item_after_first_work_order(draft) -> None:
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    assert item.name == "Cambio de térmica"
    draft.assign_ot("OT2", item.id)
    assert item.name == "Cambio de térmica"
    assert item.ot_ids == ["OT1", "OT2"]


def test_reassignment_moves_work_order_between_items(draft) -> None:
    a = draft.create_item()
    b = draft.create_item()
    draft.assign_ot("OT1", a.id)
    draft.assign_ot("OT1", b.id)
    assert a.ots == []
    assert b.ot_ids == ["OT1"]


def test_work_order_claimed_by_at_most_one_item(draft) -> None:
    items = [draft.create_item() for _ in range(3)]
    for item in items:
        draft.assign_ot("OT2", item.id)
        draft.assign_ot("OT1", item.id)
    claims = [ot.id for item in draft.items for ot in item.ots]
    assert sorted(claims) == ["OT1", "OT2"]
    assert draft.available_ots() == []


def test_unknown_ids_are_ignored(draft) -> None:
    item = draft.create_item()
    draft.assign_ot("NOPE", item.id)
    draft.assign_ot("OT1", 999)
    assert item.ots == []
    assert [ot.id for ot in draft.available_ots()] == ["OT1", "OT2"]


def test_delete_and_unassign_release_work_orders(draft) -> None:
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    draft.assign_ot("OT2", item.id)
    draft.unassign_ot(item.id, "OT1")
    assert [ot.id for ot in draft.available_ots()] == ["OT1"]
    draft.delete_item(item.id)
    assert [ot.id for ot in draft.available_ots()] == ["OT1", "OT2"]


def test_select_ticket_resets_draft(draft, catalog) -> None:
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    draft.select_ticket(catalog.ticket("T2"))
    assert draft.items == []
    assert [ot.id for ot in draft.available_ots()] == ["OT3"]


@pytest.mark.parametrize("raw, expected", [("2", 2.0), ("1.25", 1.25), ("", 1.0), ("abc", 1.0), ("0", 1.0), ("-3", 1.0), (None, 1.0)])
def test_parse_factor_falls_back_to_one(raw, expected) -> None:
    assert parse_factor(raw) == expected


def test_totals_scale_linearly_with_factor(draft) -> None:
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    draft.assign_ot("OT2", item.id)
    draft.set_factor(item.id, "1")
    base = draft.item_total(item)
    draft.set_factor(item.id, "2.5")
    assert draft.item_total(item) == pytest.approx(base * 2.5)
    assert draft.grand_total() == pytest.approx(1000.0)


def test_cost_round_trip_with_default_factor(draft) -> None:
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    assert draft.item_total(item) == pytest.approx(150.0)
    assert draft.grand_total() == pytest.approx(150.0)


def test_single_row_catalog_quotes_cost_times_default_factor() -> None:
    catalog = build_catalog([{"iss": "T1", "ot": "OT1", "costo_mo_total": 100}])
    draft = QuoteDraft(work_orders=catalog.ots)
    draft.select_ticket(catalog.ticket("T1"))
    item = draft.create_item()
    draft.assign_ot("OT1", item.id)
    assert item.factor == DEFAULT_FACTOR
    assert draft.item_total(item) == pytest.approx(150.0)
    assert draft.grand_total() == pytest.approx(150.0)
