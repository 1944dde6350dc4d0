"""
Waterfall allocator.

PURPOSE:
- Distribute the discretionary monthly budget across the ordered eligible vehicles.

CONTEXT:
- Non-discretionary seeds (employer match, ROBS distribution) are placed first. They count
  toward limit usage but never consume budget.
- Domain budgets cascade Education -> Health -> Retirement; whatever Retirement cannot
  absorb lands in the overflow vehicle, which is always present in the result.
- Vehicles sharing one statutory limit are filled together with an even split.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import structlog

from savings_blueprint.constants.domains import CASCADE_ORDER
from savings_blueprint.engine.eligibility import group_limit, limit_group
from savings_blueprint.model_interface.types import AllocationResult, DomainWeights, EligibleVehicle
from savings_blueprint.utils.rounding import round_allocation, round_money

log = structlog.get_logger(__name__)

EPS = 1e-9
INF = float("inf")


def empty_result(budget: float, status: str, message: str, overflow: Optional[str] = None) -> AllocationResult:
    """Allocation with no vehicle amounts, used for blocking or degraded outcomes."""
    return {
        "status": status,
        "message": message,
        "budget": round_money(budget or 0.0),
        "vehicles": {overflow: 0.0} if overflow else {},
        "seeds": {},
        "domain_totals": {},
        "overflow": 0.0,
        "employer_match": 0.0,
    }


def split_evenly(names: List[str], amount: float, rooms: Dict[str, float]) -> Dict[str, float]:
    """
    Split `amount` evenly across `names`, re-spreading whatever a capped member cannot take.

    returns:
    - dict – name -> amount; the total is min(amount, sum of rooms).
    """
    out = {n: 0.0 for n in names}
    remaining = amount
    active = [n for n in names if rooms[n] > EPS]
    while remaining > EPS and active:
        share = remaining / len(active)
        still = []
        for n in active:
            give = min(share, rooms[n] - out[n])
            out[n] += give
            remaining -= give
            if rooms[n] - out[n] > EPS:
                still.append(n)
        active = still
    return out


class _Filler:
    """Tracks per-vehicle allocations and shared-limit usage during one waterfall run."""

    def __init__(self, eligible: Dict[str, EligibleVehicle], seeds: Dict[str, float]):
        self.eligible = eligible
        self.alloc: Dict[str, float] = {}
        self.usage: Dict[str, float] = {}
        for name, amount in seeds.items():
            g = limit_group(name, eligible)
            self.usage[g] = self.usage.get(g, 0.0) + amount

    def own_room(self, name: str) -> float:
        limit = self.eligible[name].get("monthly_limit")
        if limit is None:
            return INF
        return max(0.0, limit - self.alloc.get(name, 0.0))

    def pool_room(self, group: str) -> float:
        limit = group_limit(group, self.eligible)
        if limit is None:
            return INF
        return max(0.0, limit - self.usage.get(group, 0.0))

    def give(self, name: str, amount: float) -> None:
        self.alloc[name] = self.alloc.get(name, 0.0) + amount
        g = limit_group(name, self.eligible)
        self.usage[g] = self.usage.get(g, 0.0) + amount

    def fill(self, names: List[str], available: float) -> float:
        """Fill `names` in order from `available`; returns the leftover."""
        done = set()
        for name in names:
            if name in done or available <= EPS:
                continue
            group = limit_group(name, self.eligible)
            partners = [n for n in names if n not in done and limit_group(n, self.eligible) == group]
            done.update(partners)
            target = min(available, self.pool_room(group))
            if target <= EPS:
                continue
            if len(partners) == 1:
                amount = min(target, self.own_room(name))
                self.give(name, amount)
                available -= amount
                continue
            split = split_evenly(partners, target, {n: self.own_room(n) for n in partners})
            for n, amount in split.items():
                self.give(n, amount)
                available -= amount
        return max(0.0, available)


def allocate(
    order: List[str],
    eligible: Dict[str, EligibleVehicle],
    weights: DomainWeights,
    budget: float,
    overflow: str,
) -> AllocationResult:
    """
    Run the waterfall.

    parameters:
    - order: list[str] – fill order from order_vehicles(); overflow last.
    - eligible: dict – eligible vehicles with monthly limits and seeds.
    - weights: dict – domain weights summing to 1.0.
    - budget: float – discretionary monthly budget.
    - overflow: str – name of the overflow vehicle.

    returns:
    - AllocationResult – discretionary amounts sum to the budget (to the cent); seeds are
      reported separately. A non-positive budget returns status "cannot_allocate".
    """
    if budget is None or budget <= 0:
        return empty_result(
            budget or 0.0,
            "cannot_allocate",
            "Cannot allocate: a positive monthly savings budget is required.",
            overflow,
        )

    seeds = {n: float(v.get("seed") or 0.0) for n, v in eligible.items()
             if v.get("non_discretionary") and (v.get("seed") or 0.0) > 0}
    filler = _Filler(eligible, seeds)

    discretionary = [n for n in order if n != overflow and n in eligible and not eligible[n].get("non_discretionary")]
    carry = 0.0
    for domain in CASCADE_ORDER:
        names = [n for n in discretionary if eligible[n]["domain"] == domain]
        available = budget * float(weights.get(domain, 0.0)) + carry
        carry = filler.fill(names, available)
        if carry > EPS:
            log.debug("waterfall.cascade", domain=domain, leftover=round_money(carry))

    raw = {n: filler.alloc.get(n, 0.0) for n in discretionary}
    raw[overflow] = carry
    vehicles = round_allocation(raw, budget, overflow)

    domain_totals: Dict[str, float] = {}
    for name, amount in vehicles.items():
        d = eligible[name]["domain"]
        domain_totals[d] = round_money(domain_totals.get(d, 0.0) + amount)

    rounded_seeds = {n: round_money(v) for n, v in seeds.items()}
    match = next((amt for n, amt in rounded_seeds.items() if eligible[n]["tax_treatment"] == "match"), 0.0)

    return {
        "status": "ok",
        "message": None,
        "budget": round_money(budget),
        "vehicles": vehicles,
        "seeds": rounded_seeds,
        "domain_totals": domain_totals,
        "overflow": vehicles[overflow],
        "employer_match": match,
    }
