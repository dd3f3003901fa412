"""Quote plans: a file describing the items of a quote, replayed through a draft."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml

from .errors import QuotePlanError
from .models import Catalog
from .quote import QuoteDraft

LOGGER = logging.getLogger(__name__)


@dataclass
class PlanItem:
    name: Optional[str] = None
    factor: Any = None
    ots: List[str] = field(default_factory=list)


@dataclass
class QuotePlan:
    """Ticket plus the ordered items to build for it."""

    ticket: str
    items: List[PlanItem] = field(default_factory=list)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "QuotePlan":
        """Load a plan from a YAML or JSON file."""
        plan_path = Path(path)
        if not plan_path.exists():
            raise QuotePlanError(f"Quote plan not found: {plan_path}")

        with plan_path.open("r", encoding="utf-8") as f:
            try:
                if plan_path.suffix.lower() in {".yaml", ".yml"}:
                    raw = yaml.safe_load(f)
                else:
                    raw = json.load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as exc:
                raise QuotePlanError(f"Quote plan {plan_path} could not be parsed: {exc}") from exc

        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Any) -> "QuotePlan":
        if not isinstance(raw, dict):
            raise QuotePlanError("Quote plan must be a mapping with 'ticket' and 'items'")
        ticket = raw.get("ticket")
        if ticket is None or not str(ticket).strip():
            raise QuotePlanError("Quote plan is missing 'ticket'")
        entries = raw.get("items") or []
        if not isinstance(entries, list):
            raise QuotePlanError("Quote plan 'items' must be a list")

        items: List[PlanItem] = []
        for idx, entry in enumerate(entries, start=1):
            if not isinstance(entry, dict):
                raise QuotePlanError(f"Quote plan item {idx} must be a mapping")
            ots = entry.get("ots") or []
            if not isinstance(ots, list):
                raise QuotePlanError(f"Quote plan item {idx}: 'ots' must be a list")
            name = entry.get("name")
            items.append(
                PlanItem(
                    name=str(name) if name is not None else None,
                    factor=entry.get("factor"),
                    ots=[str(ot).strip() for ot in ots],
                )
            )
        return cls(ticket=str(ticket).strip(), items=items)


def load_quote_plan(path: Union[str, Path]) -> QuotePlan:
    return QuotePlan.load(path)


def apply_quote_plan(catalog: Catalog, plan: QuotePlan) -> QuoteDraft:
    """Replay ``plan`` against ``catalog`` and return the resulting draft.

    Work orders that do not belong to the plan's ticket are skipped with a
    warning.
    """

    ticket = catalog.ticket(plan.ticket)
    if ticket is None:
        raise QuotePlanError(f"Ticket {plan.ticket} is not in the loaded catalog")

    draft = QuoteDraft(work_orders=catalog.ots)
    draft.select_ticket(ticket)
    ticket_ots = {ot.id for ot in catalog.ots_for_ticket(ticket.id)}

    for entry in plan.items:
        item = draft.create_item()
        if entry.name:
            draft.rename_item(item.id, entry.name)
        if entry.factor is not None:
            draft.set_factor(item.id, entry.factor)
        for ot_id in entry.ots:
            if ot_id not in ticket_ots:
                LOGGER.warning("OT %s does not belong to ticket %s; skipped", ot_id, ticket.id)
                continue
            draft.assign_ot(ot_id, item.id)
    return draft


__all__ = ["PlanItem", "QuotePlan", "apply_quote_plan", "load_quote_plan"]
