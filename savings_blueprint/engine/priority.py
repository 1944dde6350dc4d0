# PURPOSE: Build the tax-preference-aware fill order over the eligible vehicles.
# CONTEXT: Starts from the profile's base order in the catalog; education vehicles and the
#          Backdoor Roth are not in any base order and get slotted in here.

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from savings_blueprint.engine.eligibility import (
    BACKDOOR_ROTH,
    HSA,
    IRA_ROTH,
    IRA_TRADITIONAL,
)
from savings_blueprint.model_interface.loader import Catalog
from savings_blueprint.model_interface.types import EligibleVehicle

_ROTH = "roth"
_TRADITIONAL = "traditional"


def _anchor_index(filtered: Sequence[str], base: Sequence[str], anchor: str, after: bool) -> Optional[int]:
    """
    Position in `filtered` where `anchor` sits (or would sit) according to the base order.
    Works even when the anchor itself was filtered out.
    """
    if anchor not in base:
        return None
    pos = base.index(anchor)
    if after:
        return sum(1 for n in filtered if base.index(n) <= pos)
    return sum(1 for n in filtered if base.index(n) < pos)


def _insert_before_overflow(order: List[str], names: Sequence[str], overflow: str) -> None:
    idx = order.index(overflow) if overflow in order else len(order)
    order[idx:idx] = list(names)


def apply_tax_preference(order: List[str], eligible: Dict[str, EligibleVehicle], preference: str) -> List[str]:
    """
    Reorder Roth- vs Traditional-labelled vehicles.

    notes:
    - Only the slots holding Roth/Traditional vehicles are permuted, so match, health,
      education and overflow keep their positions.
    - "Now" puts Roth first, "Later" Traditional first (stable within each label); "Both"
      leaves the order alone.
    """
    if preference not in ("Now", "Later"):
        return list(order)
    slots = [i for i, n in enumerate(order) if eligible[n]["tax_treatment"] in (_ROTH, _TRADITIONAL)]
    first = _ROTH if preference == "Now" else _TRADITIONAL
    moved = sorted((order[i] for i in slots), key=lambda n: 0 if eligible[n]["tax_treatment"] == first else 1)
    out = list(order)
    for i, name in zip(slots, moved):
        out[i] = name
    return out


def order_vehicles(profile_id: int, eligible: Dict[str, EligibleVehicle], preference: str, catalog: Catalog) -> List[str]:
    """
    Produce the fill order for the waterfall.

    parameters:
    - profile_id: int – classified profile.
    - eligible: dict – output of resolve_eligibility()["vehicles"].
    - preference: str – "Now" | "Later" | "Both".
    - catalog: Catalog – source of the base priority order.

    returns:
    - list[str] – eligible vehicle names in fill order; the overflow vehicle is last.

    raises:
    - ConfigurationError – if the base order names a vehicle missing from the catalog.
    """
    base = list(catalog.profile(profile_id).priority)
    for name in base:
        catalog.vehicle(name)

    overflow = catalog.overflow_vehicle().name
    order = [n for n in base if n in eligible and n != overflow]

    education = [n for n, v in eligible.items() if v["domain"] == "Education"]
    # Capped vehicles before unlimited ones.
    education.sort(key=lambda n: eligible[n].get("monthly_limit") is None)
    if education:
        idx = _anchor_index(order, base, HSA, after=True)
        if idx is None:
            _insert_before_overflow(order, education, overflow)
        else:
            order[idx:idx] = education

    if BACKDOOR_ROTH in eligible and BACKDOOR_ROTH not in order:
        # Base positions are only meaningful for names that came from the base order.
        from_base = [n for n in order if n in base]
        idx = _anchor_index(from_base, base, IRA_ROTH, after=False)
        if idx is not None:
            # Translate the index among base names to an index in the full order.
            idx = order.index(from_base[idx]) if idx < len(from_base) else len(order)
            order.insert(idx, BACKDOOR_ROTH)
        elif IRA_TRADITIONAL in order:
            order.insert(order.index(IRA_TRADITIONAL), BACKDOOR_ROTH)
        else:
            order.append(BACKDOOR_ROTH)

    order = apply_tax_preference(order, eligible, preference)
    order.append(overflow)
    return order


def suggest_tax_preference(gross_income: Optional[float], filing_status: Optional[str], catalog: Catalog) -> str:
    """
    Suggest a tax preference from income thresholds per filing status.

    returns:
    - "Now" for lower incomes (Roth-heavy), "Later" for higher incomes (Traditional-heavy),
      "Both" in between or when income is unknown.
    """
    if gross_income is None:
        return "Both"
    thresholds = catalog.tax_strategy_thresholds.get(filing_status or "Single") \
        or catalog.tax_strategy_thresholds.get("Single")
    if not thresholds:
        return "Both"
    if gross_income < thresholds["roth_heavy"]:
        return "Now"
    if gross_income > thresholds["traditional_heavy"]:
        return "Later"
    return "Both"
