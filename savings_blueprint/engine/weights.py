"""
Domain weights ("Ambition Quotient").

PURPOSE:
- Split the monthly budget across the Retirement, Education and Health domains from the
  client's importance ratings (1-7) and how soon each goal arrives.

CONTEXT:
- Urgency is a monthly present-value discount: goals that are closer in time weigh more.
- Inactive domains (no children, not HSA-eligible) always report 0.0.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from savings_blueprint.constants.domains import EDUCATION, HEALTH, RETIREMENT, WEIGHTED_DOMAINS
from savings_blueprint.model_interface.types import DomainWeights


def active_domains(resolved: Dict) -> List[str]:
    """Retirement is always active; Education needs children, Health needs HSA eligibility."""
    active = [RETIREMENT]
    if resolved.get("has_children"):
        active.append(EDUCATION)
    if resolved.get("hsa_eligible"):
        active.append(HEALTH)
    return active


def _months(domain: str, resolved: Dict) -> int:
    if domain == RETIREMENT:
        years = resolved.get("years_to_retirement")
    elif domain == EDUCATION:
        years = resolved.get("years_to_education")
    else:
        years = resolved.get("health_years")
    return max(0, int(years or 0)) * 12


def apply_tiebreaker(weights: Dict[str, float], domain: Optional[str], boost: float, cap: float) -> Dict[str, float]:
    """
    Boost one domain by `boost` (capped at `cap`) and shrink the others proportionally.

    notes:
    - A boost that would not raise the domain's weight (already at or above the cap) is skipped.
    """
    if not domain or domain not in weights:
        return weights
    current = weights[domain]
    target = min(current + boost, cap)
    if target <= current:
        return weights
    others = {d: w for d, w in weights.items() if d != domain}
    others_total = sum(others.values())
    out = {domain: target}
    for d, w in others.items():
        out[d] = (w / others_total) * (1.0 - target) if others_total > 0 else 0.0
    return out


def calculate_domain_weights(resolved: Dict, ambition: Dict) -> DomainWeights:
    """
    Compute normalised domain weights.

    parameters:
    - resolved: dict – resolved answers (see inputs.resolve_answers).
    - ambition: mapping – catalog ambition config (monthly_discount_rate, tiebreaker_boost, tiebreaker_cap).

    returns:
    - dict – {"Retirement", "Education", "Health"} summing to 1.0 over active domains.
    """
    active = active_domains(resolved)
    weights = {d: 0.0 for d in WEIGHTED_DOMAINS}

    if len(active) == 1:
        weights[active[0]] = 1.0
        return weights

    r = float(ambition["monthly_discount_rate"])
    urgency_raw = {d: 1.0 / (1.0 + r) ** _months(d, resolved) for d in active}
    max_urgency = max(urgency_raw.values())

    raw = {}
    for d in active:
        importance = resolved.get(f"{d.lower()}_importance") or 4
        importance_norm = (importance - 1) / 6.0
        urgency_norm = urgency_raw[d] / max_urgency if max_urgency > 0 else 0.0
        raw[d] = (importance_norm + urgency_norm) / 2.0

    total = sum(raw.values())
    if total <= 0:
        # Every active domain rated 1 with no urgency: split evenly.
        normalised = {d: 1.0 / len(active) for d in active}
    else:
        normalised = {d: w / total for d, w in raw.items()}

    if len(active) == 3:
        normalised = apply_tiebreaker(
            normalised,
            resolved.get("tiebreaker"),
            float(ambition["tiebreaker_boost"]),
            float(ambition["tiebreaker_cap"]),
        )

    weights.update(normalised)
    return weights
