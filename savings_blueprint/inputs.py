"""
Input normalisation for client answers and upstream facts.

PURPOSE:
- Turn the open-ended answers map and the optional upstream facts into one fully
  resolved dict the engine can read without further checks.
- Malformed or out-of-range values never stop a recompute: the documented default is
  substituted and a warning is logged.

CONTEXT:
- The step-wise classifier reads raw answers through the same parsers (as_bool,
  as_choice, ...) so "provided" means "present and parseable" everywhere.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Iterable, Optional

import structlog

from savings_blueprint.constants.domains import TAX_PREFERENCES, WEIGHTED_DOMAINS

log = structlog.get_logger(__name__)

_YES = {"yes", "y", "true", "1"}
_NO = {"no", "n", "false", "0"}

WORK_SITUATIONS = ("W-2", "Self-employed", "Both", "BizWithEmployees")
ROBS_STATUSES = ("using", "interested", "no")
TRAD_IRA_BALANCES = ("none", "under10k", "over10k", "unsure")
ROLLOVER_ANSWERS = ("yes", "no", "unsure")
EDUCATION_VEHICLES = ("529", "coverdell", "both")
BUSINESS_ENTITIES = ("sole_prop", "corporation")
FILING_STATUSES = ("Single", "MFJ", "MFS")
COVERAGE_TYPES = ("Individual", "Family")

DEFAULT_AGE = 35
DEFAULT_YEARS_TO_RETIREMENT = 30
RETIREMENT_AGE = 65
NOT_APPLICABLE_YEARS = 99
DEFAULT_IMPORTANCE = 4
DEFAULT_INVESTMENT_SCORE = 4


# -------------------- Value parsers -------------------- #

def as_bool(value: Any) -> Optional[bool]:
    """Parse yes/no style answers; returns None when the value is missing or unrecognised."""
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in _YES:
        return True
    if text in _NO:
        return False
    return None


def as_choice(value: Any, choices: Iterable[str]) -> Optional[str]:
    """Case-insensitive match of value against choices; returns the canonical spelling."""
    if value is None:
        return None
    text = str(value).strip().lower()
    for c in choices:
        if c.lower() == text:
            return c
    return None


def as_number(value: Any, lo: Optional[float] = None, hi: Optional[float] = None) -> Optional[float]:
    """Parse a number (accepts "$85,000"); None if missing, not finite or outside [lo, hi]."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "").strip()
        if not value:
            return None
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(x):
        return None
    if lo is not None and x < lo:
        return None
    if hi is not None and x > hi:
        return None
    return x


def as_int(value: Any, lo: Optional[int] = None, hi: Optional[int] = None) -> Optional[int]:
    x = as_number(value, lo, hi)
    return int(round(x)) if x is not None else None


# -------------------- Facts -------------------- #

def infer_filing_status(marital: Any) -> Optional[str]:
    """Map free-text marital status ("Married", "mfs", ...) onto a filing status."""
    if marital is None or marital == "":
        return None
    canonical = as_choice(marital, FILING_STATUSES)
    if canonical:
        return canonical
    lower = str(marital).lower()
    if "separately" in lower:
        return "MFS"
    if "married" in lower:
        return "MFJ"
    return "Single"


def infer_hsa_coverage(filing_status: Optional[str]) -> str:
    return "Family" if filing_status == "MFJ" else "Individual"


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = raw.get(k)
        if v is not None and v != "":
            return v
    return None


def normalize_facts(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Normalise upstream facts. Every field is optional; unknown keys are ignored.

    parameters:
    - raw: dict|None – facts from upstream tools. Accepts a few alternate spellings
      (annual_income, marital_status, monthly_take_home + savings_percent).

    returns:
    - dict – Facts with None for anything unknown.

    notes:
    - monthly_budget falls back to monthly_take_home × savings_percent / 100 when both exist.
    """
    raw = raw or {}
    filing = infer_filing_status(_first(raw, "filing_status", "marital_status", "marital"))
    coverage = as_choice(raw.get("hsa_coverage"), COVERAGE_TYPES)

    budget = as_number(raw.get("monthly_budget"), lo=0)
    if budget is None:
        take_home = as_number(raw.get("monthly_take_home"), lo=0)
        pct = as_number(raw.get("savings_percent"), lo=0, hi=100)
        if take_home and pct:
            budget = float(round(take_home * pct / 100))

    return {
        "age": as_int(_first(raw, "age", "current_age"), lo=0, hi=120),
        "gross_income": as_number(_first(raw, "gross_income", "annual_income", "income"), lo=0),
        "filing_status": filing,
        "employment_type": _first(raw, "employment_type", "employment", "work_situation"),
        "hsa_eligible": as_bool(raw.get("hsa_eligible")),
        "hsa_coverage": coverage,
        "has_401k": as_bool(raw.get("has_401k")),
        "has_roth_401k": as_bool(raw.get("has_roth_401k")),
        "has_match": as_bool(raw.get("has_match")),
        "match_formula": raw.get("match_formula") or None,
        "trad_ira_balance": as_number(raw.get("trad_ira_balance"), lo=0),
        "current_401k_balance": as_number(raw.get("current_401k_balance"), lo=0),
        "current_ira_balance": as_number(raw.get("current_ira_balance"), lo=0),
        "current_hsa_balance": as_number(raw.get("current_hsa_balance"), lo=0),
        "current_education_balance": as_number(raw.get("current_education_balance"), lo=0),
        "years_to_retirement": as_int(raw.get("years_to_retirement"), lo=0, hi=99),
        "investment_score": as_int(raw.get("investment_score"), lo=1, hi=7),
        "monthly_budget": budget,
    }


def work_situation_from_employment(employment: Any) -> Optional[str]:
    """Best-effort mapping of an upstream employment description onto a work situation."""
    if employment is None:
        return None
    canonical = as_choice(employment, WORK_SITUATIONS)
    if canonical:
        return canonical
    lower = str(employment).lower()
    if "employees" in lower:
        return "BizWithEmployees"
    if "both" in lower:
        return "Both"
    if "self" in lower or "1099" in lower or "contractor" in lower:
        return "Self-employed"
    if "w-2" in lower or "w2" in lower or "employee" in lower:
        return "W-2"
    return None


# -------------------- Answers -------------------- #

def _trad_ira_from_facts(facts: Dict[str, Any]) -> str:
    bal = facts.get("trad_ira_balance")
    if bal is None:
        return "unsure"
    if bal <= 0:
        return "none"
    return "under10k" if bal < 10000 else "over10k"


def _age_from_horizon(years_to_retirement: int) -> int:
    """Age implied by a horizon to a typical retirement age of 65; the default when implausible."""
    age = RETIREMENT_AGE - years_to_retirement
    return age if age >= 18 else DEFAULT_AGE


def _bool_default(fact_key: str) -> Callable[[Dict[str, Any], Dict[str, Any]], bool]:
    return lambda resolved, facts: bool(facts.get(fact_key))


# (key, parser, default). Defaults may depend on facts and on keys resolved earlier.
_ANSWER_SPEC = [
    ("robs_status", lambda v: as_choice(v, ROBS_STATUSES), "no"),
    ("robs_new_business", as_bool, False),
    ("robs_rollover_balance", as_bool, False),
    ("robs_setup_funds", as_bool, False),
    ("work_situation", lambda v: as_choice(v, WORK_SITUATIONS),
     lambda r, f: work_situation_from_employment(f.get("employment_type")) or "W-2"),
    ("has_trad_ira", as_bool, False),
    ("catch_up_feeling", as_bool, False),
    ("tax_focus", lambda v: as_choice(v, TAX_PREFERENCES), "Later"),
    ("tax_preference", lambda v: as_choice(v, TAX_PREFERENCES), "Both"),
    ("years_to_retirement", lambda v: as_int(v, 0, 99),
     lambda r, f: f.get("years_to_retirement") or DEFAULT_YEARS_TO_RETIREMENT),
    ("age", lambda v: as_int(v, 0, 120), lambda r, f: f.get("age") or _age_from_horizon(r["years_to_retirement"])),
    ("gross_income", lambda v: as_number(v, lo=0), lambda r, f: f.get("gross_income")),
    ("filing_status", infer_filing_status, lambda r, f: f.get("filing_status") or "Single"),
    ("has_401k", as_bool, _bool_default("has_401k")),
    ("has_match", as_bool, _bool_default("has_match")),
    ("match_formula", lambda v: str(v).strip() if v not in (None, "") else None,
     lambda r, f: f.get("match_formula")),
    ("has_roth_401k", as_bool, _bool_default("has_roth_401k")),
    ("hsa_eligible", as_bool, _bool_default("hsa_eligible")),
    ("hsa_coverage", lambda v: as_choice(v, COVERAGE_TYPES),
     lambda r, f: f.get("hsa_coverage") or infer_hsa_coverage(r["filing_status"])),
    ("has_children", as_bool, False),
    ("num_children", lambda v: as_int(v, 0, 10), lambda r, f: 1 if r["has_children"] else 0),
    ("years_to_education", lambda v: as_int(v, 0, NOT_APPLICABLE_YEARS), NOT_APPLICABLE_YEARS),
    ("education_vehicle", lambda v: as_choice(v, EDUCATION_VEHICLES), "529"),
    ("trad_ira_balance", lambda v: as_choice(v, TRAD_IRA_BALANCES), lambda r, f: _trad_ira_from_facts(f)),
    ("accepts_rollovers", lambda v: as_choice(v, ROLLOVER_ANSWERS), "unsure"),
    ("self_employment_income", lambda v: as_number(v, lo=0), 0.0),
    ("business_entity", lambda v: as_choice(v, BUSINESS_ENTITIES), "sole_prop"),
    ("robs_distribution", lambda v: as_number(v, lo=0), 0.0),
    ("current_401k_balance", lambda v: as_number(v, lo=0), lambda r, f: f.get("current_401k_balance") or 0.0),
    ("current_ira_balance", lambda v: as_number(v, lo=0), lambda r, f: f.get("current_ira_balance") or 0.0),
    ("current_hsa_balance", lambda v: as_number(v, lo=0), lambda r, f: f.get("current_hsa_balance") or 0.0),
    ("current_education_balance", lambda v: as_number(v, lo=0),
     lambda r, f: f.get("current_education_balance") or 0.0),
    ("retirement_importance", lambda v: as_int(v, 1, 7), DEFAULT_IMPORTANCE),
    ("education_importance", lambda v: as_int(v, 1, 7), DEFAULT_IMPORTANCE),
    ("health_importance", lambda v: as_int(v, 1, 7), DEFAULT_IMPORTANCE),
    ("health_years", lambda v: as_int(v, 0, NOT_APPLICABLE_YEARS), lambda r, f: r["years_to_retirement"]),
    ("tiebreaker", lambda v: as_choice(v, WEIGHTED_DOMAINS), None),
    ("investment_score", lambda v: as_int(v, 1, 7), lambda r, f: f.get("investment_score") or DEFAULT_INVESTMENT_SCORE),
    ("monthly_budget", lambda v: as_number(v), lambda r, f: f.get("monthly_budget") or 0.0),
]


_PARSERS = {key: parse for key, parse, _ in _ANSWER_SPEC}


def parse_answer(key: str, value: Any) -> Any:
    """Parse one raw answer with the parser registered for key; None if missing or malformed."""
    parse = _PARSERS.get(key)
    if parse is None or value is None or value == "":
        return None
    return parse(value)


def resolve_answers(
    answers: Optional[Dict[str, Any]],
    facts: Optional[Dict[str, Any]] = None,
    warn: bool = True,
) -> Dict[str, Any]:
    """
    Resolve every documented answer key to a usable value.

    parameters:
    - answers: dict|None – raw client answers; unknown keys are ignored.
    - facts: dict|None – normalised facts (see normalize_facts) used as fallbacks.
    - warn: bool – log substituted defaults (the pipeline logs once, helpers pass False).

    returns:
    - dict – one entry per documented key.

    notes:
    - A value that is present but malformed (e.g. age "abc", importance 9) is logged as
      inputs.default_substituted and replaced by the default.
    """
    answers = answers or {}
    facts = facts or {}
    resolved: Dict[str, Any] = {}
    for key, parse, default in _ANSWER_SPEC:
        raw = answers.get(key)
        value = parse(raw) if raw is not None and raw != "" else None
        if value is None:
            if warn and raw is not None and raw != "":
                log.warning("inputs.default_substituted", key=key, value=str(raw)[:40])
            value = default(resolved, facts) if callable(default) else default
        resolved[key] = value
    return resolved


# -------------------- Readiness -------------------- #

_STATUS_GROUPS = {
    "demographics": ("age", "gross_income", "employment_type", "filing_status"),
    "financial": ("monthly_budget", "years_to_retirement"),
    "investment": ("investment_score",),
    "balances": ("current_401k_balance", "current_ira_balance", "current_hsa_balance"),
}


def data_status(facts: Dict[str, Any], budget: Optional[float] = None) -> Dict[str, Any]:
    """
    Report which fact groups are complete, partial or missing, and whether allocation can run.

    returns:
    - dict – {group: {"status", "present", "total", "missing"}, "overall": {...}}
    """
    status: Dict[str, Any] = {}
    for group, fields in _STATUS_GROUPS.items():
        present = [f for f in fields if facts.get(f) not in (None, "", 0)]
        if len(present) == len(fields):
            badge = "complete"
        elif present:
            badge = "partial"
        else:
            badge = "missing"
        status[group] = {
            "status": badge,
            "present": len(present),
            "total": len(fields),
            "missing": [f for f in fields if f not in present],
        }
    effective_budget = budget if budget is not None else (facts.get("monthly_budget") or 0)
    can_proceed = effective_budget > 0
    status["overall"] = {
        "can_proceed": can_proceed,
        "ready_for_calculation": can_proceed and status["demographics"]["status"] != "missing",
        "blocker": None if can_proceed else "A positive monthly savings budget is required.",
    }
    return status
