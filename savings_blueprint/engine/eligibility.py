"""
Vehicle eligibility resolution.

PURPOSE:
- Filter the catalog down to the vehicles that apply to the classified profile and the
  client's facts, and compute each one's effective monthly limit.

CONTEXT:
- Limits are annual in the catalog; everything returned here is also expressed monthly
  because the allocator works on a monthly budget.
- Action-item vehicles (rollovers) are returned separately and never receive dollars.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

import structlog

from savings_blueprint.model_interface.loader import Catalog, VehicleEntry
from savings_blueprint.model_interface.types import EligibleVehicle

log = structlog.get_logger(__name__)

# Profiles that carry W-2 wages and can therefore hold an employer 401(k).
W2_PROFILES = frozenset({1, 2, 3, 5, 6, 7, 8, 9})

EMPLOYER_401K = "401(k) Traditional"
ROTH_401K = "401(k) Roth"
EMPLOYER_MATCH = "401(k) Employer Match"
IRA_TRADITIONAL = "IRA Traditional"
IRA_ROTH = "IRA Roth"
BACKDOOR_ROTH = "Backdoor Roth IRA"
HSA = "HSA"
SOLO_ROTH = "Solo 401(k) Employee (Roth)"
SOLO_TRADITIONAL = "Solo 401(k) Employee (Traditional)"
SOLO_EMPLOYER = "Solo 401(k) Employer"
SEP_IRA = "SEP-IRA"
SIMPLE_IRA = "SIMPLE IRA"
PLAN_529 = "529 Plan"
COVERDELL = "Coverdell ESA"
ROBS_DISTRIBUTION = "ROBS Distribution"
ROLLOVER_TO_ROBS = "IRA Rollover to ROBS"
ROLLOVER_TO_401K = "IRA Rollover to 401k"

_CUSTOM_MATCH = re.compile(r"^\s*(\d+(?:\.\d+)?)_(\d+(?:\.\d+)?)\s*$")


# -------------------- Limit helpers -------------------- #

def catch_up_for(entry: VehicleEntry, age: int) -> float:
    """
    Age-gated catch-up. The super catch-up band (e.g. 60-63) replaces the regular catch-up.
    """
    if (
        entry.super_catch_up_age is not None
        and entry.super_catch_up_amount
        and entry.super_catch_up_age <= age <= (entry.super_catch_up_max_age or entry.super_catch_up_age)
    ):
        return float(entry.super_catch_up_amount)
    if entry.catch_up_age is not None and age >= entry.catch_up_age:
        return float(entry.catch_up_amount)
    return 0.0


def annual_limit_for(entry: VehicleEntry, age: int, coverage: Optional[str] = None) -> Optional[float]:
    """Statutory annual limit including catch-up; None for unlimited vehicles."""
    base = entry.coverage_limits.get(coverage) if coverage else None
    if base is None:
        base = entry.annual_limit
    if base is None:
        return None
    return float(base) + catch_up_for(entry, age)


def roth_phase_out_factor(gross_income: Optional[float], filing_status: str, catalog: Catalog) -> float:
    """
    Fraction of the Roth IRA limit still available: 1 below the band, linear inside it,
    0 at or above the end. Unknown income means no phase-out.
    """
    if gross_income is None:
        return 1.0
    band = catalog.limits["roth_phase_out"].get(filing_status) or catalog.limits["roth_phase_out"]["Single"]
    start, end = float(band["start"]), float(band["end"])
    if gross_income <= start:
        return 1.0
    if gross_income >= end or end <= start:
        return 0.0
    return (end - gross_income) / (end - start)


def match_terms(formula: Optional[str], catalog: Catalog) -> Optional[Tuple[float, float]]:
    """
    Resolve a match formula to (rate, limit): "100_3" means 100% match up to 3% of salary.
    Catalogue keys are used first; any other "R_L" string is parsed as percentages.
    """
    if not formula:
        return None
    known = catalog.match_formulas.get(formula)
    if known is not None:
        return float(known["rate"]), float(known["limit"])
    m = _CUSTOM_MATCH.match(str(formula))
    if not m:
        return None
    return float(m.group(1)) / 100.0, float(m.group(2)) / 100.0


def employer_match_monthly(resolved: Dict[str, Any], catalog: Catalog) -> float:
    terms = match_terms(resolved.get("match_formula"), catalog)
    income = resolved.get("gross_income")
    if terms is None or not income:
        return 0.0
    rate, limit = terms
    return income * limit * rate / 12.0


def backdoor_advisory(resolved: Dict[str, Any]) -> str:
    """Pick the Backdoor Roth advisory from the existing Traditional IRA balance and rollover options."""
    balance = resolved.get("trad_ira_balance")
    if balance == "none":
        return "clean"
    if balance in ("under10k", "over10k"):
        if resolved.get("accepts_rollovers") == "yes" and resolved.get("has_401k"):
            return "rollover_available"
        return "pro_rata"
    return "unsure"


# -------------------- Building entries -------------------- #

def _entry(vehicle: VehicleEntry, annual: Optional[float], **extra) -> EligibleVehicle:
    out: EligibleVehicle = {
        "name": vehicle.name,
        "domain": vehicle.domain,
        "tax_treatment": vehicle.tax_treatment,
        "annual_limit": annual,
        "monthly_limit": annual / 12.0 if annual is not None else None,
        "shares_limit_with": vehicle.shares_limit_with,
        "non_discretionary": vehicle.non_discretionary,
        "seed": 0.0,
        "note": None,
        "warning": None,
    }
    out.update(extra)
    return out


def _action_item(vehicle: VehicleEntry, reason: str) -> Dict[str, str]:
    return {"name": vehicle.name, "description": vehicle.description, "reason": reason}


def resolve_eligibility(profile_id: int, resolved: Dict[str, Any], catalog: Catalog) -> Dict[str, Any]:
    """
    Resolve the eligible vehicle map for one profile + answer set.

    parameters:
    - profile_id: int – classified profile (1-9).
    - resolved: dict – resolved answers (see inputs.resolve_answers).
    - catalog: Catalog – injected limits and vehicle definitions.

    returns:
    - dict – {"vehicles": {name: EligibleVehicle}, "action_items": [..]}

    notes:
    - The overflow vehicle is always present.
    - A Roth IRA fully phased out by income is replaced by the Backdoor Roth IRA, which
      carries the advisory note/steps/warning from the catalog.
    """
    age = int(resolved.get("age") or 0)
    preference = resolved.get("tax_preference") or "Both"
    se_income = float(resolved.get("self_employment_income") or 0.0)
    vehicles: Dict[str, EligibleVehicle] = {}
    action_items: List[Dict[str, str]] = []

    def add(name: str, annual: Optional[float] = None, use_statutory: bool = True, **extra) -> None:
        v = catalog.vehicle(name)
        if use_statutory:
            annual = annual_limit_for(v, age, extra.pop("coverage", None))
        vehicles[name] = _entry(v, annual, **extra)

    # ROBS structure
    if profile_id == 1 and resolved.get("robs_distribution"):
        add(ROBS_DISTRIBUTION, seed=float(resolved["robs_distribution"]))
    if profile_id == 2:
        action_items.append(_action_item(catalog.vehicle(ROLLOVER_TO_ROBS), "Fund the ROBS C-corp with an IRA rollover"))

    # Employer 401(k) family
    has_401k = bool(resolved.get("has_401k")) or profile_id == 1
    if profile_id in W2_PROFILES and has_401k:
        add(EMPLOYER_401K)
        if resolved.get("has_roth_401k"):
            add(ROTH_401K)
        if resolved.get("has_match"):
            seed = employer_match_monthly(resolved, catalog)
            if seed > 0:
                add(EMPLOYER_MATCH, seed=seed)

    # Self-employed without employees: Solo 401(k)
    if profile_id == 4:
        if preference in ("Now", "Both"):
            add(SOLO_ROTH)
        if preference in ("Later", "Both"):
            add(SOLO_TRADITIONAL)
        pct = catalog.limits.get("solo_employer_pct", {}).get(resolved.get("business_entity") or "sole_prop")
        if pct is None:
            pct = catalog.vehicle(SOLO_EMPLOYER).percent_of_compensation or 0.0
        room = float(catalog.limits["total_401k"]) - float(catalog.limits["employee_401k"])
        employer = min(pct * se_income, room)
        if employer > 0:
            add(SOLO_EMPLOYER, annual=employer, use_statutory=False)

    # Business with employees: SEP / SIMPLE
    if profile_id == 3:
        sep = catalog.vehicle(SEP_IRA)
        sep_annual = min((sep.percent_of_compensation or 0.0) * se_income,
                         float(catalog.limits.get("sep_ira_max") or sep.annual_limit or 0.0))
        if sep_annual > 0:
            add(SEP_IRA, annual=sep_annual, use_statutory=False)
        add(SIMPLE_IRA)

    # IRAs
    add(IRA_TRADITIONAL)
    factor = roth_phase_out_factor(resolved.get("gross_income"), resolved.get("filing_status") or "Single", catalog)
    if factor >= 1.0:
        add(IRA_ROTH)
    elif factor > 0.0:
        full = annual_limit_for(catalog.vehicle(IRA_ROTH), age)
        add(IRA_ROTH, annual=full * factor, use_statutory=False,
            note=f"Roth IRA limit reduced to {factor:.0%} by the income phase-out")
    else:
        advisory = backdoor_advisory(resolved)
        text = catalog.backdoor_advisories.get(advisory) or {}
        add(BACKDOOR_ROTH, advisory=advisory, note=text.get("note"), warning=text.get("warning"),
            steps=list(text.get("steps") or ()))
        if advisory == "rollover_available":
            action_items.append(_action_item(catalog.vehicle(ROLLOVER_TO_401K), "Clears the pro-rata rule for Backdoor Roth"))
        log.info("eligibility.backdoor_substituted", advisory=advisory)

    # Health
    if resolved.get("hsa_eligible"):
        add(HSA, coverage=resolved.get("hsa_coverage") or "Individual")

    # Education
    if resolved.get("has_children"):
        choice = resolved.get("education_vehicle") or "529"
        if choice in ("coverdell", "both"):
            children = max(1, int(resolved.get("num_children") or 1))
            coverdell = catalog.vehicle(COVERDELL)
            per_child = annual_limit_for(coverdell, age)
            add(COVERDELL, annual=per_child * children if coverdell.per_beneficiary else per_child, use_statutory=False)
        if choice in ("529", "both"):
            add(PLAN_529)

    overflow = catalog.overflow_vehicle()
    vehicles[overflow.name] = _entry(overflow, None)

    return {"vehicles": vehicles, "action_items": action_items}


# -------------------- Shared limits -------------------- #

def limit_group(name: str, eligible: Dict[str, EligibleVehicle]) -> str:
    """Group key for shared limits: the partner a vehicle shares with, else itself."""
    return eligible[name].get("shares_limit_with") or name


def group_limit(group: str, eligible: Dict[str, EligibleVehicle]) -> Optional[float]:
    """
    Monthly pool limit for a shared-limit group.

    notes:
    - Taken from the group root when it is eligible; otherwise the largest member limit.
    """
    if group in eligible:
        return eligible[group].get("monthly_limit")
    members = [v.get("monthly_limit") for n, v in eligible.items() if v.get("shares_limit_with") == group]
    if not members or any(m is None for m in members):
        return None
    return max(members)
