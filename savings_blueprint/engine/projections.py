# PURPOSE: Future-value projections, inflation adjustment and tax-treatment breakdown
#          over a finished allocation.
# CONTEXT: Compounding is monthly. Every overflow path (huge horizon, absurd rate, growth
#          factor blowing up) is capped with the catalog's projection limits, never raised.

from __future__ import annotations

from typing import Dict, Mapping, Optional

import numpy as np

from savings_blueprint.constants.domains import EDUCATION, TAX_BUCKETS
from savings_blueprint.model_interface.loader import Catalog
from savings_blueprint.model_interface.types import AllocationResult, EligibleVehicle, ProjectionResult, TaxBreakdown


def personalized_rate(score: Optional[int], cfg: Mapping[str, float]) -> float:
    """Expected annual return for an investment score 1-7: base + (score-1)/6 × max additional."""
    s = min(7, max(1, int(score or 4)))
    return float(cfg["base_rate"]) + (s - 1) / 6.0 * float(cfg["max_additional_rate"])


def _growth_factor(annual_rate: float, years: float, cfg: Mapping[str, float]) -> Optional[float]:
    """(1 + r/12)^(12·years) with caps applied; None when the factor is non-finite or too large."""
    years = min(float(years), float(cfg["max_years"]))
    rate = min(float(annual_rate), float(cfg["max_rate"]))
    with np.errstate(over="ignore", invalid="ignore"):
        factor = np.power(1.0 + rate / 12.0, years * 12.0)
    if not np.isfinite(factor) or factor > float(cfg["max_growth_factor"]):
        return None
    return float(factor)


def future_value(monthly_contribution: float, annual_rate: float, years: float, cfg: Mapping[str, float]) -> float:
    """
    Future value of a level monthly contribution.

    parameters:
    - monthly_contribution: float – dollars per month.
    - annual_rate: float – nominal annual return (0.08 = 8%).
    - years: float – horizon; the "not applicable" sentinel (99) yields 0.
    - cfg: mapping – catalog projection config.

    returns:
    - float – whole dollars, capped at cfg["max_fv"].
    """
    if monthly_contribution is None or monthly_contribution <= 0 or years is None or years <= 0:
        return 0.0
    if years >= float(cfg["not_applicable_years"]):
        return 0.0
    cap = float(cfg["max_fv"])
    factor = _growth_factor(annual_rate, years, cfg)
    if factor is None:
        return cap
    r = min(float(annual_rate), float(cfg["max_rate"])) / 12.0
    n = min(float(years), float(cfg["max_years"])) * 12.0
    fv = monthly_contribution * ((factor - 1.0) / r) if r > 0 else monthly_contribution * n
    return float(min(round(fv), cap))


def lump_sum_growth(balance: float, annual_rate: float, years: float, cfg: Mapping[str, float]) -> float:
    """Compound an existing balance with the same caps as future_value()."""
    if balance is None or balance <= 0:
        return 0.0
    if years is None or years <= 0:
        return float(round(balance))
    if years >= float(cfg["not_applicable_years"]):
        return 0.0
    cap = float(cfg["max_fv"])
    factor = _growth_factor(annual_rate, years, cfg)
    if factor is None:
        return cap
    return float(min(round(balance * factor), cap))


def _discount(amount: float, inflation: float, years: float, cfg: Mapping[str, float]) -> float:
    years = min(float(years), float(cfg["max_years"]))
    return float(round(amount / (1.0 + inflation) ** years)) if years > 0 else float(round(amount))


def _monthly_total(allocation: AllocationResult, eligible: Dict[str, EligibleVehicle], education: bool) -> float:
    total = 0.0
    for source in (allocation["vehicles"], allocation.get("seeds", {})):
        for name, amount in source.items():
            if (eligible[name]["domain"] == EDUCATION) == education:
                total += amount
    return total


def calculate_projections(
    allocation: AllocationResult,
    eligible: Dict[str, EligibleVehicle],
    resolved: Dict,
    catalog: Catalog,
    inflation: Optional[float] = None,
) -> ProjectionResult:
    """
    Project the non-education allocation (seeds included) to retirement.

    returns:
    - dict – projected_balance, inflation_adjusted, baseline (no further contributions),
      improvement, monthly_retirement_income (real balance / income divisor, the 4% rule),
      plus the inputs used and the tax breakdown.
    """
    cfg = catalog.projection
    inflation = float(cfg["default_inflation"]) if inflation is None else float(inflation)
    years = int(resolved.get("years_to_retirement") or 0)
    rate = personalized_rate(resolved.get("investment_score"), cfg)
    monthly = _monthly_total(allocation, eligible, education=False)
    current = sum(float(resolved.get(k) or 0.0) for k in
                  ("current_401k_balance", "current_ira_balance", "current_hsa_balance"))

    baseline = lump_sum_growth(current, rate, years, cfg)
    projected = min(future_value(monthly, rate, years, cfg) + baseline, float(cfg["max_fv"]))
    real = _discount(projected, inflation, years, cfg)
    score = int(resolved.get("investment_score") or 4)

    return {
        "projected_balance": projected,
        "inflation_adjusted": real,
        "baseline": baseline,
        "improvement": projected - baseline,
        "monthly_retirement_income": float(round(real / float(cfg["income_divisor"]))),
        "current_balance": float(round(current)),
        "monthly_contribution": round(monthly, 2),
        "years": years,
        "annual_rate": round(rate, 4),
        "investment_label": catalog.investment_score_labels.get(score, ""),
        "tax_breakdown": calculate_tax_breakdown(allocation, eligible, projected),
    }


def calculate_education_projections(
    allocation: AllocationResult,
    eligible: Dict[str, EligibleVehicle],
    resolved: Dict,
    catalog: Catalog,
    inflation: Optional[float] = None,
) -> ProjectionResult:
    """Same math over the education vehicles, on the education horizon. Zeros without dependents."""
    cfg = catalog.projection
    years = int(resolved.get("years_to_education") or 0)
    rate = personalized_rate(resolved.get("investment_score"), cfg)
    zero: ProjectionResult = {
        "projected_balance": 0.0,
        "inflation_adjusted": 0.0,
        "baseline": 0.0,
        "improvement": 0.0,
        "current_balance": 0.0,
        "monthly_contribution": 0.0,
        "years": years,
        "annual_rate": round(rate, 4),
    }
    if not resolved.get("has_children") or years >= float(cfg["not_applicable_years"]):
        return zero

    inflation = float(cfg["default_inflation"]) if inflation is None else float(inflation)
    monthly = _monthly_total(allocation, eligible, education=True)
    current = float(resolved.get("current_education_balance") or 0.0)
    baseline = lump_sum_growth(current, rate, years, cfg)
    projected = min(future_value(monthly, rate, years, cfg) + baseline, float(cfg["max_fv"]))
    zero.update({
        "projected_balance": projected,
        "inflation_adjusted": _discount(projected, inflation, years, cfg),
        "baseline": baseline,
        "improvement": projected - baseline,
        "current_balance": float(round(current)),
        "monthly_contribution": round(monthly, 2),
    })
    return zero


def calculate_tax_breakdown(
    allocation: AllocationResult,
    eligible: Dict[str, EligibleVehicle],
    projected_balance: float,
) -> TaxBreakdown:
    """
    Bucket monthly contributions by tax treatment and apply the shares to the projected balance.

    notes:
    - Roth and health vehicles are tax-free; traditional, match and other seeds are
      tax-deferred; overflow is taxable. Education vehicles are excluded.
    """
    buckets = {"tax_free": 0.0, "tax_deferred": 0.0, "taxable": 0.0}
    for source in (allocation["vehicles"], allocation.get("seeds", {})):
        for name, amount in source.items():
            bucket = TAX_BUCKETS.get(eligible[name]["tax_treatment"])
            if bucket:
                buckets[bucket] += amount
    total = sum(buckets.values())
    out: TaxBreakdown = {}
    for bucket, amount in buckets.items():
        share = amount / total if total > 0 else 0.0
        out[f"{bucket}_percent"] = round(share * 100, 1)
        out[f"{bucket}_amount"] = float(round(share * projected_balance))
    return out
