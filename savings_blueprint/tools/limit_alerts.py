from savings_blueprint.engine.eligibility import (
    EMPLOYER_401K, ROTH_401K, IRA_TRADITIONAL, IRA_ROTH, BACKDOOR_ROTH,
    SOLO_ROTH, SOLO_TRADITIONAL, annual_limit_for,
)
from savings_blueprint.model_interface.types import ValidationReport

# Dollars per year of slack before a limit breach is reported (cent rounding on monthly amounts).
TOLERANCE = 1.0

SHARED_LIMITS = (
    ("401k_combined", (EMPLOYER_401K, ROTH_401K), EMPLOYER_401K),
    ("solo_401k_employee_combined", (SOLO_TRADITIONAL, SOLO_ROTH), SOLO_TRADITIONAL),
    ("ira_combined", (IRA_TRADITIONAL, IRA_ROTH, BACKDOOR_ROTH), IRA_TRADITIONAL),
)


def _true_annual_limit(name, eligible, catalog, resolved):
    entry = catalog.vehicle(name)
    age = int(resolved.get("age") or 0)
    coverage = resolved.get("hsa_coverage") or "Individual"
    statutory = annual_limit_for(entry, age, coverage if entry.coverage_limits else None)
    if statutory is not None and entry.per_beneficiary:
        statutory *= max(1, int(resolved.get("num_children") or 1))
    allowed = (eligible.get(name) or {}).get("annual_limit")
    if statutory is None:
        return allowed
    if allowed is None:
        return statutory
    # Compensation-based and phased-out vehicles sit below the statutory figure.
    return min(statutory, allowed)


def limit_alerts(vehicles, eligible, resolved, catalog) -> ValidationReport:
    """
    Advisory check of monthly amounts against annual contribution limits.

    returns:
    - dict – {"passed": bool, "warnings": [{"type", "severity", "vehicles", "evidence", "suggested_action"}]}
    """
    age = int(resolved.get("age") or 0)
    warnings = []

    for name, monthly in vehicles.items():
        if name not in catalog.vehicles:
            continue
        limit = _true_annual_limit(name, eligible, catalog, resolved)
        annual = monthly * 12
        if limit is not None and annual > limit + TOLERANCE:
            warnings.append({"type": "limit_exceeded", "severity": "high", "vehicles": [name],
                             "evidence": f"{name}: ${annual:,.0f}/yr exceeds the ${limit:,.0f} annual limit",
                             "suggested_action": f"Reduce {name} to ${limit / 12:,.2f}/mo or less."})

    for kind, members, root in SHARED_LIMITS:
        present = [n for n in members if vehicles.get(n)]
        if len(present) < 2:
            continue
        limit = annual_limit_for(catalog.vehicle(root), age)
        annual = sum(vehicles[n] for n in present) * 12
        if annual > limit + TOLERANCE:
            warnings.append({"type": kind, "severity": "high", "vehicles": present,
                             "evidence": f"{' + '.join(present)}: ${annual:,.0f}/yr exceeds the shared ${limit:,.0f} limit",
                             "suggested_action": "Move part of the combined contribution to another vehicle."})

    return {"passed": not warnings, "warnings": warnings}
