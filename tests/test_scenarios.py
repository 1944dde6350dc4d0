import pytest

from savings_blueprint.engine.eligibility import annual_limit_for, resolve_eligibility
from savings_blueprint.engine.priority import order_vehicles
from savings_blueprint.engine.rebalancer import AllocationState, update_vehicle
from savings_blueprint.engine.waterfall import allocate
from savings_blueprint.engine.weights import calculate_domain_weights
from savings_blueprint.inputs import resolve_answers
from savings_blueprint.model_interface.loader import load_catalog

catalog = load_catalog()
FB = "Family Bank"


def _recommend(profile_id, budget, answers):
    resolved = resolve_answers(answers)
    weights = calculate_domain_weights(resolved, catalog.ambition)
    eligible = resolve_eligibility(profile_id, resolved, catalog)["vehicles"]
    order = order_vehicles(profile_id, eligible, resolved["tax_preference"], catalog)
    return eligible, allocate(order, eligible, weights, budget, FB)


def test_foundation_builder_fills_ira_then_overflow():
    eligible = {
        "IRA Traditional": {"domain": "Retirement", "tax_treatment": "traditional", "monthly_limit": 583.0},
        FB: {"domain": "Overflow", "tax_treatment": "taxable", "monthly_limit": None},
    }
    out = allocate(["IRA Traditional", FB], eligible, {"Retirement": 1.0}, 1000, FB)
    assert out["vehicles"] == {"IRA Traditional": 583.0, FB: 417.0}


def test_solo_optimizer_split_and_employer_contribution():
    eligible, out = _recommend(4, 6000, {"tax_preference": "Both", "self_employment_income": 120000, "age": 45})
    v = out["vehicles"]
    employee = v["Solo 401(k) Employee (Roth)"] + v["Solo 401(k) Employee (Traditional)"]
    assert employee == pytest.approx(1958.33, abs=0.02)
    assert v["Solo 401(k) Employee (Roth)"] == pytest.approx(v["Solo 401(k) Employee (Traditional)"], abs=0.01)
    assert v["Solo 401(k) Employer"] == pytest.approx(min(0.20 * 120000, 70000 - 23500) / 12)


def test_high_income_single_swaps_roth_ira_for_backdoor():
    eligible = resolve_eligibility(7, resolve_answers({"gross_income": 200000, "filing_status": "Single"}), catalog)
    names = eligible["vehicles"]
    assert "IRA Roth" not in names
    assert names["Backdoor Roth IRA"]["shares_limit_with"] == "IRA Traditional"


def test_hsa_slider_takes_from_overflow():
    vehicles = {"HSA": 150.0, "401(k) Traditional": 550.0, FB: 300.0}
    limits = {"HSA": 358.33, "401(k) Traditional": 1958.33, FB: None}
    state = AllocationState(vehicles=dict(vehicles), original=dict(vehicles), budget=1000.0, overflow=FB,
                            limits=limits, groups={n: n for n in vehicles}, group_limits=dict(limits))
    out = update_vehicle(state, "HSA", 250.0)
    assert out.vehicles == {"HSA": 250.0, "401(k) Traditional": 550.0, FB: 200.0}


def test_traditional_401k_cut_flows_to_overflow_when_nothing_else_has_room():
    vehicles = {"401(k) Traditional": 1958.33, "IRA Traditional": 583.33, "HSA": 358.33, FB: 100.01}
    limits = {"401(k) Traditional": 1958.33, "IRA Traditional": 583.33, "HSA": 358.33, FB: None}
    state = AllocationState(vehicles=dict(vehicles), original=dict(vehicles), budget=3000.0, overflow=FB,
                            limits=limits, groups={n: n for n in vehicles}, group_limits=dict(limits))
    out = update_vehicle(state, "401(k) Traditional", 1758.33)
    assert out.vehicles[FB] == 300.01
    assert out.vehicles["IRA Traditional"] == 583.33
    assert out.vehicles["HSA"] == 358.33


def test_super_catch_up_sets_effective_limit_at_62():
    entry = catalog.vehicle("401(k) Traditional")
    assert annual_limit_for(entry, 62) == entry.annual_limit + entry.super_catch_up_amount
    out = resolve_eligibility(7, resolve_answers({"has_401k": "yes", "age": 62}), catalog)["vehicles"]
    assert out["401(k) Traditional"]["monthly_limit"] == pytest.approx((23500 + 11250) / 12)
