from savings_blueprint.model_interface.loader import load_catalog
from savings_blueprint.tools.limit_alerts import limit_alerts

catalog = load_catalog()


def _check(vehicles, age=40, coverage="Individual", eligible=None):
    return limit_alerts(vehicles, eligible or {}, {"age": age, "hsa_coverage": coverage}, catalog)


def test_within_limits_passes():
    out = _check({"401(k) Traditional": 1958.33, "IRA Roth": 583.33, "Family Bank": 5000})
    assert out == {"passed": True, "warnings": []}


def test_single_vehicle_over_limit():
    out = _check({"IRA Traditional": 700})
    assert out["passed"] is False
    w = out["warnings"][0]
    assert w["type"] == "limit_exceeded"
    assert w["vehicles"] == ["IRA Traditional"]
    assert "$8,400" in w["evidence"]


def test_catch_up_resolved_by_age():
    assert _check({"IRA Traditional": 666.66}, age=52)["passed"] is True
    assert _check({"IRA Traditional": 666.66}, age=45)["passed"] is False
    assert _check({"HSA": 795.83}, age=56, coverage="Family")["passed"] is True
    assert _check({"HSA": 800}, age=56, coverage="Family")["passed"] is False


def test_shared_limits():
    pair = _check({"401(k) Traditional": 1500, "401(k) Roth": 1000})
    assert [w["type"] for w in pair["warnings"]] == ["401k_combined"]

    trio = _check({"IRA Traditional": 400, "Backdoor Roth IRA": 300})
    assert [w["type"] for w in trio["warnings"]] == ["ira_combined"]
    assert trio["warnings"][0]["vehicles"] == ["IRA Traditional", "Backdoor Roth IRA"]


def test_compensation_based_limit_comes_from_eligibility():
    eligible = {"SEP-IRA": {"annual_limit": 25000.0}}
    assert _check({"SEP-IRA": 2000}, eligible=eligible)["passed"] is True
    assert _check({"SEP-IRA": 2500}, eligible=eligible)["passed"] is False


def test_per_beneficiary_limit_scales_with_children():
    eligible = {"Coverdell ESA": {"annual_limit": 6000.0}}
    three = {"age": 40, "num_children": 3}
    assert limit_alerts({"Coverdell ESA": 500}, eligible, three, catalog)["passed"] is True
    out = limit_alerts({"Coverdell ESA": 600}, eligible, three, catalog)
    assert out["passed"] is False
    assert "$6,000" in out["warnings"][0]["evidence"]
    # One child keeps the single-beneficiary figure.
    assert _check({"Coverdell ESA": 500}, eligible={"Coverdell ESA": {"annual_limit": 2000.0}})["passed"] is False
