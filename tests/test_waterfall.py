import pytest

from savings_blueprint.engine.eligibility import group_limit, limit_group, resolve_eligibility
from savings_blueprint.engine.priority import order_vehicles
from savings_blueprint.engine.waterfall import allocate, split_evenly
from savings_blueprint.inputs import resolve_answers
from savings_blueprint.model_interface.loader import load_catalog

catalog = load_catalog()
ONLY_RETIREMENT = {"Retirement": 1.0, "Education": 0.0, "Health": 0.0}


def _v(name, domain, limit, tax="traditional", shares=None, seed=0.0):
    return {
        "name": name, "domain": domain, "tax_treatment": tax, "monthly_limit": limit,
        "annual_limit": limit * 12 if limit is not None else None, "shares_limit_with": shares,
        "non_discretionary": seed > 0, "seed": seed,
    }


def _run(profile_id, budget, weights=ONLY_RETIREMENT, **answers):
    resolved = resolve_answers(answers)
    eligible = resolve_eligibility(profile_id, resolved, catalog)["vehicles"]
    order = order_vehicles(profile_id, eligible, resolved["tax_preference"], catalog)
    return eligible, allocate(order, eligible, weights, budget, "Family Bank")


def test_single_capped_vehicle_then_overflow():
    eligible = {
        "IRA Traditional": _v("IRA Traditional", "Retirement", 583.0),
        "Family Bank": _v("Family Bank", "Overflow", None, tax="taxable"),
    }
    out = allocate(["IRA Traditional", "Family Bank"], eligible, ONLY_RETIREMENT, 1000, "Family Bank")
    assert out["status"] == "ok"
    assert out["vehicles"] == {"IRA Traditional": 583.0, "Family Bank": 417.0}
    assert out["overflow"] == 417.0
    assert out["domain_totals"] == {"Retirement": 583.0, "Overflow": 417.0}


def test_cascade_education_to_health_to_retirement():
    eligible = {
        "Coverdell ESA": _v("Coverdell ESA", "Education", 166.67, tax="education"),
        "HSA": _v("HSA", "Health", 358.33, tax="health"),
        "IRA Traditional": _v("IRA Traditional", "Retirement", 583.33),
        "Family Bank": _v("Family Bank", "Overflow", None, tax="taxable"),
    }
    weights = {"Education": 0.5, "Health": 0.25, "Retirement": 0.25}
    out = allocate(list(eligible), eligible, weights, 1000, "Family Bank")
    assert out["vehicles"]["Coverdell ESA"] == 166.67
    assert out["vehicles"]["HSA"] == 358.33
    assert out["vehicles"]["IRA Traditional"] == 475.0
    assert out["vehicles"]["Family Bank"] == 0.0


def test_seeds_do_not_consume_budget():
    eligible, out = _run(7, 1500, has_401k="yes", has_match="yes", match_formula="100_4", gross_income=120000)
    assert out["employer_match"] == 400.0
    assert out["seeds"] == {"401(k) Employer Match": 400.0}
    assert "401(k) Employer Match" not in out["vehicles"]
    assert round(sum(out["vehicles"].values()), 2) == 1500.0


def test_shared_pair_filled_evenly_and_employer_on_top():
    eligible, out = _run(4, 5000, work_situation="Self-employed", tax_preference="Both",
                         self_employment_income=120000, age=45)
    v = out["vehicles"]
    roth, trad = v["Solo 401(k) Employee (Roth)"], v["Solo 401(k) Employee (Traditional)"]
    assert roth == pytest.approx(trad, abs=0.01)
    assert roth + trad == pytest.approx(23500 / 12, abs=0.02)
    assert v["Solo 401(k) Employer"] == 2000.0
    assert v["IRA Roth"] + v["IRA Traditional"] == pytest.approx(7000 / 12, abs=0.02)
    assert round(sum(v.values()), 2) == 5000.0


@pytest.mark.parametrize("budget", [50, 400, 1999.99, 2600, 7500, 20000])
def test_budget_conservation_and_limit_respect(budget):
    eligible, out = _run(7, budget, has_401k="yes", has_roth_401k="yes", hsa_eligible="yes",
                         has_children="yes", education_vehicle="coverdell",
                         weights={"Retirement": 0.5, "Education": 0.3, "Health": 0.2})
    vehicles = out["vehicles"]
    assert round(sum(vehicles.values()), 2) == round(budget, 2)
    usage = {}
    for name, amount in vehicles.items():
        limit = eligible[name]["monthly_limit"]
        if limit is not None:
            assert amount <= limit + 0.01
        g = limit_group(name, eligible)
        usage[g] = usage.get(g, 0.0) + amount
    for g, used in usage.items():
        pool = group_limit(g, eligible)
        if pool is not None:
            assert used <= pool + 0.02


def test_non_positive_budget_cannot_allocate():
    for budget in (0, -100):
        _, out = _run(7, budget)
        assert out["status"] == "cannot_allocate"
        assert "budget" in out["message"]
        assert out["vehicles"] == {"Family Bank": 0.0}


def test_split_evenly_respreads_capped_share():
    out = split_evenly(["a", "b"], 300.0, {"a": 100.0, "b": float("inf")})
    assert out == {"a": 100.0, "b": 200.0}
    assert sum(split_evenly(["a", "b"], 500.0, {"a": 100.0, "b": 150.0}).values()) == pytest.approx(250.0)
