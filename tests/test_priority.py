import copy
import json

import pytest

from savings_blueprint.engine.eligibility import resolve_eligibility
from savings_blueprint.engine.priority import apply_tax_preference, order_vehicles, suggest_tax_preference
from savings_blueprint.inputs import resolve_answers
from savings_blueprint.model_interface.loader import DEFAULT_CATALOG, ConfigurationError, build_catalog, load_catalog

catalog = load_catalog()


def _order(profile_id, preference="Both", **answers):
    resolved = resolve_answers(dict(answers, tax_preference=preference))
    eligible = resolve_eligibility(profile_id, resolved, catalog)["vehicles"]
    return order_vehicles(profile_id, eligible, preference, catalog)


def test_base_order_filtered_to_eligible_with_education_after_hsa():
    order = _order(7, has_401k="yes", has_roth_401k="yes", has_match="yes", match_formula="100_3",
                   gross_income=80000, hsa_eligible="yes", has_children="yes", education_vehicle="both")
    assert order == [
        "401(k) Employer Match", "HSA", "Coverdell ESA", "529 Plan",
        "401(k) Roth", "401(k) Traditional", "IRA Roth", "IRA Traditional", "Family Bank",
    ]


def test_education_uses_hsa_slot_when_hsa_not_eligible():
    order = _order(7, has_401k="yes", has_match="yes", match_formula="100_3", gross_income=80000,
                   has_children="yes")
    assert order[:2] == ["401(k) Employer Match", "529 Plan"]
    assert order[-1] == "Family Bank"


def test_backdoor_takes_roth_ira_position():
    order = _order(7, has_401k="yes", has_roth_401k="yes", gross_income=200000)
    assert order == ["401(k) Roth", "401(k) Traditional", "Backdoor Roth IRA", "IRA Traditional", "Family Bank"]


def test_backdoor_before_traditional_ira_when_profile_has_no_roth_ira():
    order = _order(9, has_401k="yes", gross_income=200000, age=58)
    assert order == ["401(k) Traditional", "Backdoor Roth IRA", "IRA Traditional", "Family Bank"]


def test_tax_preference_now_and_later():
    answers = dict(has_401k="yes", has_roth_401k="yes", has_match="yes", match_formula="100_3",
                   gross_income=90000, hsa_eligible="yes")
    assert _order(5, "Now", **answers) == [
        "401(k) Employer Match", "HSA", "401(k) Roth", "IRA Roth", "401(k) Traditional", "IRA Traditional", "Family Bank",
    ]
    assert _order(8, "Later", **answers) == [
        "401(k) Employer Match", "HSA", "401(k) Traditional", "IRA Traditional", "401(k) Roth", "IRA Roth", "Family Bank",
    ]
    assert _order(8, "Both", **answers) == [
        "401(k) Employer Match", "HSA", "401(k) Roth", "IRA Roth", "401(k) Traditional", "IRA Traditional", "Family Bank",
    ]


def test_apply_tax_preference_only_permutes_roth_and_traditional_slots():
    eligible = {
        "A": {"tax_treatment": "traditional"},
        "H": {"tax_treatment": "health"},
        "R": {"tax_treatment": "roth"},
    }
    assert apply_tax_preference(["A", "H", "R"], eligible, "Now") == ["R", "H", "A"]
    assert apply_tax_preference(["A", "H", "R"], eligible, "Later") == ["A", "H", "R"]


def test_unknown_vehicle_in_base_order_is_a_configuration_error():
    raw = json.loads(DEFAULT_CATALOG.read_text(encoding="utf-8"))
    broken = copy.deepcopy(raw)
    broken["profiles"]["7"]["priority"].insert(1, "Mystery Vehicle")
    bad = build_catalog(broken)
    eligible = resolve_eligibility(7, resolve_answers({}), bad)["vehicles"]
    with pytest.raises(ConfigurationError):
        order_vehicles(7, eligible, "Both", bad)


def test_suggest_tax_preference():
    assert suggest_tax_preference(60000, "Single", catalog) == "Now"
    assert suggest_tax_preference(120000, "Single", catalog) == "Both"
    assert suggest_tax_preference(250000, "MFJ", catalog) == "Later"
    assert suggest_tax_preference(60000, "MFS", catalog) == "Now"
    assert suggest_tax_preference(None, "Single", catalog) == "Both"
