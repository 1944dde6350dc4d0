"""
Interactive rebalancer.

PURPOSE:
- Repair an allocation after a single manual edit (slider drag, lock toggle, budget change)
  without re-running the full waterfall.

CONTEXT:
- AllocationState is a value: every transition returns a new state and leaves its input
  untouched, so a UI can keep the previous state for undo.
- After every transition the vehicle amounts sum to the budget (to the cent) and no
  unlocked vehicle exceeds its limit, shared-limit partners included.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional

import structlog

from savings_blueprint.engine.eligibility import group_limit, limit_group
from savings_blueprint.model_interface.types import AllocationResult, EligibleVehicle
from savings_blueprint.utils.rounding import round_allocation, round_money

log = structlog.get_logger(__name__)

EPS = 1e-9
INF = float("inf")


@dataclass(frozen=True)
class AllocationState:
    """
    Editing session state for one allocation.

    attributes:
    - vehicles: dict – current monthly amounts (overflow included).
    - original: dict – recommended amounts the session started from.
    - locked: frozenset – vehicles excluded as source and destination of rebalancing.
    - limits: dict – effective monthly limit per vehicle (None = unlimited).
    - groups: dict – vehicle -> shared-limit group key.
    - group_limits: dict – group key -> monthly pool limit (None = unlimited).
    - seed_usage: dict – group key -> non-discretionary amount already using the pool.
    - budget: float – total the vehicle amounts must sum to.
    - overflow: str – the overflow vehicle's name.
    """
    vehicles: Dict[str, float]
    original: Dict[str, float]
    budget: float
    overflow: str
    limits: Dict[str, Optional[float]] = field(default_factory=dict)
    groups: Dict[str, str] = field(default_factory=dict)
    group_limits: Dict[str, Optional[float]] = field(default_factory=dict)
    seed_usage: Dict[str, float] = field(default_factory=dict)
    locked: FrozenSet[str] = frozenset()

    @property
    def total(self) -> float:
        return round_money(sum(self.vehicles.values()))


def init_state(allocation: AllocationResult, eligible: Dict[str, EligibleVehicle], overflow: str) -> AllocationState:
    """Open an editing session from a waterfall result."""
    names = list(allocation["vehicles"])
    groups = {n: limit_group(n, eligible) for n in names}
    seed_usage: Dict[str, float] = {}
    for n, amount in allocation.get("seeds", {}).items():
        g = limit_group(n, eligible)
        seed_usage[g] = seed_usage.get(g, 0.0) + amount
    return AllocationState(
        vehicles=dict(allocation["vehicles"]),
        original=dict(allocation["vehicles"]),
        budget=float(allocation["budget"]),
        overflow=overflow,
        limits={n: eligible[n].get("monthly_limit") for n in names},
        groups=groups,
        group_limits={g: group_limit(g, eligible) for g in set(groups.values())},
        seed_usage=seed_usage,
    )


# -------------------- Room and redistribution helpers -------------------- #

def _own_room(state: AllocationState, amounts: Dict[str, float], name: str) -> float:
    if name == state.overflow:
        return INF
    limit = state.limits.get(name)
    return INF if limit is None else max(0.0, limit - amounts[name])


def _pool_room(state: AllocationState, amounts: Dict[str, float], name: str) -> float:
    """Headroom left in the shared pool `name` belongs to, seeds included."""
    g = state.groups.get(name, name)
    pool = state.group_limits.get(g)
    if pool is None:
        return INF
    used = state.seed_usage.get(g, 0.0) + sum(amounts[n] for n in amounts if state.groups.get(n, n) == g)
    return max(0.0, pool - used)


def _room(state: AllocationState, amounts: Dict[str, float], name: str) -> float:
    """Remaining headroom for `name`, counting its own limit and its shared pool."""
    if name == state.overflow:
        return INF
    return min(_own_room(state, amounts, name), _pool_room(state, amounts, name))


def _shares(state: AllocationState, names: Iterable[str], amounts: Dict[str, float]) -> Dict[str, float]:
    """Proportions from the original recommendation; current amounts when those are all zero."""
    names = list(names)
    weights = {n: max(0.0, state.original.get(n, 0.0)) for n in names}
    if sum(weights.values()) <= EPS:
        weights = {n: max(0.0, amounts[n]) for n in names}
    return weights


def _spread(amount: float, names: List[str], weights: Dict[str, float], capacity) -> Dict[str, float]:
    """
    Hand out `amount` across names in proportion to weights, each capped by capacity(name, given).

    returns:
    - dict – name -> amount handed out; the remainder is amount - sum(values).
    """
    given = {n: 0.0 for n in names}
    remaining = amount
    active = [n for n in names if weights.get(n, 0.0) > EPS and capacity(n, 0.0) > EPS]
    while remaining > EPS and active:
        total_w = sum(weights[n] for n in active)
        round_total = 0.0
        still = []
        for n in active:
            share = remaining * weights[n] / total_w
            take = min(share, capacity(n, given[n]))
            given[n] += take
            round_total += take
            if capacity(n, given[n]) > EPS:
                still.append(n)
        remaining -= round_total
        if round_total <= EPS:
            break
        active = still
    return given


def _take_from(state: AllocationState, amounts: Dict[str, float], amount: float, sources: List[str]) -> float:
    """Withdraw `amount` from sources proportionally; returns what could not be withdrawn."""
    weights = _shares(state, sources, amounts)
    taken = _spread(amount, sources, weights, lambda n, got: amounts[n] - got)
    for n, t in taken.items():
        amounts[n] -= t
    return amount - sum(taken.values())


def _give_to(state: AllocationState, amounts: Dict[str, float], amount: float, recipients: List[str]) -> float:
    """Deposit `amount` into recipients proportionally, capped by room; returns the unabsorbed rest."""
    weights = _shares(state, recipients, amounts)
    remaining = amount
    # Room changes as partners fill, so deposit one pass at a time.
    while remaining > EPS:
        given = _spread(remaining, recipients, weights, lambda n, got: _room(state, amounts, n) - got)
        placed = 0.0
        for n, g in given.items():
            g = min(g, _room(state, amounts, n))
            amounts[n] += g
            placed += g
        remaining -= placed
        if placed <= EPS:
            break
    return remaining


def _clamp_to_limits(state: AllocationState, amounts: Dict[str, float], locked: FrozenSet[str] = frozenset()) -> None:
    """Pull unlocked vehicles back under their own and pooled limits; the excess goes to overflow."""
    for n in amounts:
        if n == state.overflow or n in locked:
            continue
        limit = state.limits.get(n)
        if limit is not None and amounts[n] > limit:
            amounts[state.overflow] += amounts[n] - limit
            amounts[n] = limit
    for g, pool in state.group_limits.items():
        if pool is None:
            continue
        members = [n for n in amounts if state.groups.get(n, n) == g and n not in locked and n != state.overflow]
        used = state.seed_usage.get(g, 0.0) + sum(amounts[n] for n in amounts if state.groups.get(n, n) == g)
        over = used - pool
        if over > EPS and members:
            amounts[state.overflow] += over - _take_from(state, amounts, over, members)


def _normalize(state: AllocationState, amounts: Dict[str, float], edited: Optional[str] = None) -> Dict[str, float]:
    """
    Correct drift so amounts sum to the budget.

    - Over budget: shrink unlocked vehicles proportionally (edited vehicle last).
    - Under budget: shortfall to overflow (if unlocked), else to the first vehicle with room.
    """
    total = sum(amounts.values())
    unlocked = [n for n in amounts if n not in state.locked]
    if total > state.budget + EPS:
        excess = total - state.budget
        others = [n for n in unlocked if n != edited]
        excess = _take_from(state, amounts, excess, others) if others else excess
        if excess > EPS and edited and edited not in state.locked:
            cut = min(excess, amounts[edited])
            amounts[edited] -= cut
            excess -= cut
        if excess > EPS:
            # Locked amounts alone exceed the budget.
            log.warning("rebalance.locked_exceeds_budget", excess=round_money(excess))
            _take_from(state, amounts, excess, [n for n in amounts if amounts[n] > EPS])
    elif total < state.budget - EPS:
        shortfall = state.budget - total
        if state.overflow not in state.locked:
            amounts[state.overflow] += shortfall
        else:
            for n in unlocked:
                if n == edited:
                    continue
                give = min(shortfall, _room(state, amounts, n))
                amounts[n] += give
                shortfall -= give
                if shortfall <= EPS:
                    break
            if shortfall > EPS:
                target = edited if edited and edited not in state.locked else state.overflow
                amounts[target] += shortfall
    residual_key = state.overflow if state.overflow not in state.locked else (edited or state.overflow)
    return round_allocation(amounts, state.budget, residual_key)


# -------------------- Transitions -------------------- #

def update_vehicle(state: AllocationState, name: str, new_value: float) -> AllocationState:
    """
    Set one vehicle to `new_value` and rebalance the others.

    parameters:
    - state: AllocationState – current session state (not modified).
    - name: str – vehicle being edited; must not be the overflow vehicle.
    - new_value: float – requested monthly amount.

    returns:
    - AllocationState – new state. The requested value is clamped to [0, limit] and to what
      the unlocked vehicles can give up.

    raises:
    - KeyError – unknown vehicle.
    - ValueError – editing the overflow vehicle, which only ever holds the remainder.
    """
    if name not in state.vehicles:
        raise KeyError(name)
    if name == state.overflow:
        raise ValueError(f"'{name}' holds the unallocated remainder and cannot be set directly")
    if name in state.locked:
        log.info("rebalance.edit_ignored_locked", vehicle=name)
        return state

    amounts = dict(state.vehicles)
    current = amounts[name]
    others = [n for n in amounts if n not in state.locked and n not in (name, state.overflow)]
    overflow_free = state.overflow not in state.locked

    # Unlocked shared-limit partners can give up pool room to the edited vehicle.
    group = state.groups.get(name, name)
    partners = [n for n in others if state.groups.get(n, n) == group]
    pool_room = _pool_room(state, amounts, name)

    target = max(0.0, float(new_value))
    reachable = min(_own_room(state, amounts, name), pool_room + sum(amounts[n] for n in partners))
    target = min(target, current + reachable)
    obtainable = sum(amounts[n] for n in others) + (amounts[state.overflow] if overflow_free else 0.0)
    target = min(target, current + obtainable)
    delta = target - current

    if delta > EPS:
        need = delta
        pool_excess = delta - pool_room
        if pool_excess > EPS and partners:
            need -= pool_excess - _take_from(state, amounts, pool_excess, partners)
        if need > EPS and overflow_free:
            pulled = min(need, amounts[state.overflow])
            amounts[state.overflow] -= pulled
            need -= pulled
        if need > EPS:
            need = _take_from(state, amounts, need, others)
        amounts[name] = current + (delta - need)
    elif delta < -EPS:
        freed = -delta
        amounts[name] = target
        rest = _give_to(state, amounts, freed, others)
        if rest > EPS:
            amounts[state.overflow] += rest

    vehicles = _normalize(state, amounts, edited=name)
    log.debug("rebalance.updated", vehicle=name, requested=new_value, applied=vehicles[name])
    return replace(state, vehicles=vehicles)


def set_lock(state: AllocationState, name: str, locked: bool = True) -> AllocationState:
    """Lock or unlock a vehicle; amounts are unchanged."""
    if name not in state.vehicles:
        raise KeyError(name)
    flags = set(state.locked)
    if locked:
        flags.add(name)
    else:
        flags.discard(name)
    return replace(state, locked=frozenset(flags))


def change_budget(
    state: AllocationState,
    new_budget: float,
    limits: Optional[Dict[str, Optional[float]]] = None,
) -> AllocationState:
    """
    Rescale the session to a new budget.

    parameters:
    - new_budget: float – must be positive.
    - limits: dict|None – recomputed effective monthly limits, if they changed.

    returns:
    - AllocationState – unlocked amounts (and the recommended amounts used for proportions)
      scaled by new/old, clamped to limits, renormalised to the new budget.

    raises:
    - ValueError – for a non-positive budget.
    """
    if new_budget is None or new_budget <= 0:
        raise ValueError("budget must be positive")
    ratio = new_budget / state.budget if state.budget > 0 else 0.0
    new_limits = dict(state.limits)
    if limits:
        new_limits.update(limits)

    amounts = {n: (v if n in state.locked else v * ratio) for n, v in state.vehicles.items()}
    original = {n: v * ratio for n, v in state.original.items()}
    scaled = replace(state, budget=float(new_budget), limits=new_limits, original=dict(original))

    _clamp_to_limits(scaled, amounts, state.locked)
    # Reset must land within limits too, so the recommendation is clamped the same way.
    _clamp_to_limits(scaled, original)

    vehicles = _normalize(scaled, amounts)
    log.info("rebalance.budget_changed", old=state.budget, new=new_budget)
    return replace(scaled, vehicles=vehicles, original=round_allocation(original, new_budget, state.overflow))


def reset_to_recommended(state: AllocationState) -> AllocationState:
    """Restore the recommended amounts and clear all locks."""
    return replace(state, vehicles=dict(state.original), locked=frozenset())
