# PURPOSE: Map client answers + upstream facts onto one of the nine investor profiles.
# CONTEXT: Batch recompute and the step-wise questionnaire share _evaluate(); the step-wise
#          path just stops at the first question the rules still need, so both paths land
#          on the same profile for the same answers.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Union

from savings_blueprint.inputs import parse_answer, resolve_answers, work_situation_from_employment
from savings_blueprint.model_interface.types import ProfileResult

ROBS_QUALIFIERS = ("robs_new_business", "robs_rollover_balance", "robs_setup_funds")


@dataclass(frozen=True)
class Resolved:
    profile_id: int
    reason: str


@dataclass(frozen=True)
class NeedsAnswer:
    key: str


StepResult = Union[Resolved, NeedsAnswer]


class _Unanswered(Exception):
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key


class _Reader:
    """
    Answer access for the rule predicates.

    - ask(key): a question the client answers. In batch mode an unanswered key resolves to
      its default; in step mode it stops evaluation with that key.
    - derived(key): age/timeline values that are never asked here; always resolved.
    """

    def __init__(self, answers: Dict[str, Any], facts: Dict[str, Any], complete: bool):
        self._answers = answers
        self._facts = facts
        self._complete = complete
        self._resolved = resolve_answers(answers, facts, warn=False)

    def _provided(self, key: str) -> bool:
        if parse_answer(key, self._answers.get(key)) is not None:
            return True
        if key == "work_situation":
            return work_situation_from_employment(self._facts.get("employment_type")) is not None
        return False

    def ask(self, key: str) -> Any:
        if self._complete or self._provided(key):
            return self._resolved[key]
        raise _Unanswered(key)

    def derived(self, key: str) -> Any:
        return self._resolved[key]


Rule = Tuple[int, str, Callable[[_Reader], bool]]

_PRIMARY_RULES: Tuple[Rule, ...] = (
    (1, "Currently using a ROBS structure",
     lambda r: r.ask("robs_status") == "using"),
    (2, "Interested in ROBS and meets all three qualifiers",
     lambda r: r.ask("robs_status") == "interested" and all(r.ask(k) for k in ROBS_QUALIFIERS)),
    (3, "Business owner with employees",
     lambda r: r.ask("work_situation") == "BizWithEmployees"),
    (4, "Self-employed without employees",
     lambda r: r.ask("work_situation") in ("Self-employed", "Both")),
    (5, "Has an existing Traditional IRA",
     lambda r: bool(r.ask("has_trad_ira"))),
)

# Checked right before the tax-focus question, whichever way the caller got here.
_DERIVED_RULES: Tuple[Rule, ...] = (
    (9, "Age 55+ or within 5 years of retirement",
     lambda r: r.derived("age") >= 55 or r.derived("years_to_retirement") <= 5),
    (6, "Age 50+ and feeling behind on retirement savings",
     lambda r: r.derived("age") >= 50 and bool(r.ask("catch_up_feeling"))),
)

_FINAL_RULES: Tuple[Rule, ...] = (
    (8, "Prefers paying tax now (Roth focus)",
     lambda r: r.ask("tax_focus") in ("Now", "Both")),
    (7, "Standard investor building a retirement foundation",
     lambda r: True),
)


def _evaluate(answers: Optional[Dict[str, Any]], facts: Optional[Dict[str, Any]], complete: bool) -> StepResult:
    reader = _Reader(answers or {}, facts or {}, complete)
    try:
        for group in (_PRIMARY_RULES, _DERIVED_RULES, _FINAL_RULES):
            for profile_id, reason, predicate in group:
                if predicate(reader):
                    return Resolved(profile_id, reason)
    except _Unanswered as e:
        return NeedsAnswer(e.key)
    # Unreachable: the final rule always matches.
    raise AssertionError("classifier rules are not exhaustive")


def classify_step(answers: Optional[Dict[str, Any]], facts: Optional[Dict[str, Any]] = None) -> StepResult:
    """
    Step-wise classification against a partial answer set.

    returns:
    - Resolved(profile_id, reason) once the rules reach a verdict, or
      NeedsAnswer(key) naming the next question the rules depend on.
    """
    return _evaluate(answers, facts, complete=False)


def classify_profile(answers: Optional[Dict[str, Any]], facts: Optional[Dict[str, Any]] = None, catalog=None) -> ProfileResult:
    """
    Batch classification; unanswered questions take their documented defaults.

    parameters:
    - answers: dict – raw client answers.
    - facts: dict – normalised upstream facts.
    - catalog: Catalog|None – when given, the profile name is taken from it.

    returns:
    - dict – {"id": int, "name": str, "match_reason": str}
    """
    result = _evaluate(answers, facts, complete=True)
    name = catalog.profile(result.profile_id).name if catalog is not None else ""
    return {"id": result.profile_id, "name": name, "match_reason": result.reason}
