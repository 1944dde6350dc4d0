from savings_blueprint.engine.classifier import NeedsAnswer, Resolved, classify_profile, classify_step
from savings_blueprint.inputs import normalize_facts
from savings_blueprint.model_interface.loader import load_catalog

catalog = load_catalog()


def _pid(answers, facts=None):
    return classify_profile(answers, facts)["id"]


def test_rule_order_first_match_wins():
    assert _pid({"robs_status": "using"}) == 1
    assert _pid({"robs_status": "interested", "robs_new_business": "yes",
                 "robs_rollover_balance": "yes", "robs_setup_funds": "yes"}) == 2
    assert _pid({"work_situation": "BizWithEmployees"}) == 3
    assert _pid({"work_situation": "Self-employed"}) == 4
    assert _pid({"work_situation": "Both"}) == 4
    assert _pid({"has_trad_ira": "yes"}) == 5
    assert _pid({"tax_focus": "Now"}) == 8
    assert _pid({"tax_focus": "Both"}) == 8
    assert _pid({}) == 7


def test_robs_interest_without_all_qualifiers_falls_through():
    answers = {"robs_status": "interested", "robs_new_business": "yes",
               "robs_rollover_balance": "no", "robs_setup_funds": "yes", "work_situation": "Self-employed"}
    assert _pid(answers) == 4


def test_derived_overrides_sit_before_tax_focus():
    assert _pid({"age": 56, "tax_focus": "Now"}) == 9
    assert _pid({"age": 40, "years_to_retirement": 4, "tax_focus": "Now"}) == 9
    assert _pid({"age": 52, "catch_up_feeling": "yes", "tax_focus": "Now"}) == 6
    # Earlier rules still win over the derived ones.
    assert _pid({"robs_status": "using", "age": 60}) == 1
    assert _pid({"has_trad_ira": "yes", "age": 60}) == 5


def test_profile_6_requires_explicit_catch_up_answer():
    assert _pid({"age": 52}) == 7
    assert _pid({"age": 52, "catch_up_feeling": "no", "tax_focus": "Now"}) == 8
    assert _pid({"age": 45, "catch_up_feeling": "yes"}) == 7


def test_facts_feed_classification():
    assert _pid({}, normalize_facts({"age": 58})) == 9
    assert _pid({}, normalize_facts({"employment_type": "Self-employed"})) == 4


def test_malformed_answers_use_defaults():
    assert _pid({"age": "abc", "robs_status": "maybe"}) == 7


def test_profile_name_comes_from_catalog():
    out = classify_profile({"work_situation": "Self-employed"}, {}, catalog)
    assert out == {"id": 4, "name": "Solo 401(k) Optimizer", "match_reason": out["match_reason"]}
    assert out["match_reason"]


def test_step_asks_questions_in_rule_order():
    assert classify_step({}) == NeedsAnswer("robs_status")
    assert classify_step({"robs_status": "no"}) == NeedsAnswer("work_situation")
    assert classify_step({"robs_status": "interested"}) == NeedsAnswer("robs_new_business")
    assert classify_step({"robs_status": "no"}, {"employment_type": "W-2 employee"}) == NeedsAnswer("has_trad_ira")
    base = {"robs_status": "no", "work_situation": "W-2", "has_trad_ira": "no"}
    assert classify_step(dict(base, age=52)) == NeedsAnswer("catch_up_feeling")
    assert classify_step(dict(base, age=40)) == NeedsAnswer("tax_focus")
    assert classify_step(dict(base, age=57)).profile_id == 9


def test_step_and_batch_agree():
    answer_sets = [
        {"robs_status": "using"},
        {"robs_status": "interested", "robs_new_business": "yes", "robs_rollover_balance": "yes", "robs_setup_funds": "yes"},
        {"robs_status": "no", "work_situation": "BizWithEmployees"},
        {"robs_status": "no", "work_situation": "W-2", "has_trad_ira": "yes"},
        {"robs_status": "no", "work_situation": "W-2", "has_trad_ira": "no", "age": 51, "catch_up_feeling": "yes"},
        {"robs_status": "no", "work_situation": "W-2", "has_trad_ira": "no", "age": 30, "tax_focus": "Later"},
        {"robs_status": "no", "work_situation": "W-2", "has_trad_ira": "no", "age": 30, "tax_focus": "Now"},
    ]
    for answers in answer_sets:
        step = classify_step(answers)
        assert isinstance(step, Resolved)
        assert step.profile_id == _pid(answers)
        assert _pid(answers) == _pid(dict(answers))


def test_missing_age_is_implied_by_retirement_horizon():
    assert _pid({"years_to_retirement": 8}) == 9
    assert _pid({"years_to_retirement": 12, "catch_up_feeling": "yes"}) == 6
    # A stated age wins over the horizon.
    assert _pid({"years_to_retirement": 8, "age": 40}) == 7
