# PURPOSE: Full recompute: validate the request, classify the client, weight the domains,
#          resolve eligible vehicles, run the waterfall, then validate limits and project
#          balances. Output is checked against recommendation.schema.json.
# CONTEXT: Pure and synchronous; callers may run it inline or hand it to a worker. The
#          interactive rebalancer works on the "allocation" and "eligible" parts of the output.

from __future__ import annotations

import json
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from jsonschema import ValidationError

from savings_blueprint.engine.classifier import classify_profile
from savings_blueprint.engine.eligibility import resolve_eligibility
from savings_blueprint.engine.priority import order_vehicles, suggest_tax_preference
from savings_blueprint.engine.projections import calculate_education_projections, calculate_projections
from savings_blueprint.engine.waterfall import allocate, empty_result
from savings_blueprint.engine.weights import calculate_domain_weights
from savings_blueprint.engine_io import (
    error_to_string,
    make_ok_message,
    make_system_message,
    validate_recommendation,
    validate_request,
)
from savings_blueprint.inputs import data_status, normalize_facts, resolve_answers
from savings_blueprint.model_interface.loader import Catalog, ConfigurationError, load_catalog
from savings_blueprint.tools.limit_alerts import limit_alerts
from savings_blueprint.utils.rounding import round_money

log = structlog.get_logger(__name__)


def _run_id() -> str:
    """
    Short random prefix plus a UTC timestamp suffix.
    Example: 'a1b2c3d4-20251021130000'
    """
    return uuid.uuid4().hex[:8] + "-" + datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


def _summary(profile: Dict[str, Any], allocation: Dict[str, Any], overflow: str) -> str:
    funded = [n for n, v in allocation["vehicles"].items() if v > 0 and n != overflow]
    text = (
        f"Profile {profile['id']} ({profile['name']}): ${allocation['budget']:,.2f}/mo allocated "
        f"across {len(funded)} vehicle(s)"
    )
    if allocation["overflow"] > 0:
        text += f"; ${allocation['overflow']:,.2f}/mo flows to {overflow}"
    if allocation["employer_match"] > 0:
        text += f"; employer match adds ${allocation['employer_match']:,.2f}/mo"
    return text + "."


def _guarded_allocation(profile_id, eligible, weights, budget, preference, catalog, overflow):
    """
    Priority ordering + waterfall. A catalog mismatch degrades to an empty allocation with a
    message instead of failing the whole recompute.
    """
    try:
        order = order_vehicles(profile_id, eligible, preference, catalog)
        return order, allocate(order, eligible, weights, budget, overflow)
    except ConfigurationError as e:
        log.error("allocation.config_error", error=str(e), profile=profile_id)
        return [], empty_result(budget, "config_error", f"Allocation unavailable: {e}", overflow)


def run_pipeline(payload: Dict[str, Any], catalog: Optional[Catalog] = None) -> Dict[str, Any]:
    """
    End-to-end recompute.

    steps:
    1) Validate the request shape.
    2) Normalise facts and resolve answers (bad values -> defaults, logged).
    3) Classify the profile.
    4) Compute domain weights.
    5) Resolve eligible vehicles.
    6) Order + allocate (guarded against ConfigurationError).
    7) Limit validation (advisory).
    8) Projections + tax breakdown.
    9) Assemble output with run_id and latency; validate against recommendation.schema.json.

    parameters:
    - payload: dict – {"answers": {...}, "facts": {...}, "budget": float|None}
    - catalog: Catalog|None – injected catalog; defaults to load_catalog().

    returns:
    - dict – recommendation payload.

    raises:
    - jsonschema.ValidationError – malformed request or output.
    - ConfigurationError – catalog data inconsistent outside the allocation step.
    """
    t0 = time.time()

    # 1) Validate input
    validate_request(payload)
    catalog = catalog or load_catalog()

    # 2) Inputs
    facts = normalize_facts(payload.get("facts"))
    answers = payload.get("answers") or {}
    resolved = resolve_answers(answers, facts)
    budget = payload.get("budget")
    budget = float(budget) if budget is not None else float(resolved.get("monthly_budget") or 0.0)

    # 3) Profile
    profile = classify_profile(answers, facts, catalog)
    log.info("pipeline.profile_classified", profile=profile["id"], reason=profile["match_reason"])

    # 4) Weights
    weights = calculate_domain_weights(resolved, catalog.ambition)

    # 5) Eligibility
    eligibility = resolve_eligibility(profile["id"], resolved, catalog)
    eligible = eligibility["vehicles"]
    overflow = catalog.overflow_vehicle().name

    # 6) Allocation
    order, allocation = _guarded_allocation(
        profile["id"], eligible, weights, budget, resolved["tax_preference"], catalog, overflow
    )
    log.info("pipeline.allocated", status=allocation["status"], budget=round_money(budget),
             overflow=allocation["overflow"])

    # 7) Limits
    validation = limit_alerts(allocation["vehicles"], eligible, resolved, catalog)
    if not validation["passed"]:
        log.warning("pipeline.limit_warnings", count=len(validation["warnings"]))

    # 8) Projections
    projections = {
        "retirement": calculate_projections(allocation, eligible, resolved, catalog),
        "education": calculate_education_projections(allocation, eligible, resolved, catalog),
    }

    # 9) Assemble
    if allocation["status"] == "ok":
        messages = [make_ok_message(_summary(profile, allocation, overflow))]
    elif allocation["status"] == "cannot_allocate":
        messages = [make_ok_message(allocation["message"])]
    else:
        messages = [make_system_message(allocation["message"])]

    out = {
        "status": allocation["status"],
        "catalog_version": catalog.version,
        "profile": profile,
        "weights": weights,
        "eligible": eligible,
        "order": order,
        "allocation": allocation,
        "action_items": eligibility["action_items"],
        "validation": validation,
        "projections": projections,
        "suggested_tax_preference": suggest_tax_preference(
            resolved.get("gross_income"), resolved.get("filing_status"), catalog
        ),
        "data_status": data_status(facts, budget),
        "messages": messages,
        "run_id": _run_id(),
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }

    validate_recommendation(out)
    log.info("pipeline.completed", run_id=out["run_id"], latency_ms=out["latency_ms"])
    return out


def handle_request(payload: Dict[str, Any], catalog: Optional[Catalog] = None) -> Dict[str, Any]:
    """
    Wrapper for callers that want a payload back in every case.

    returns:
    - dict – run_pipeline() output, or {"status": "error", "messages": [...], "latency_ms": float}
      when the request/output fails validation or the catalog is inconsistent.
    """
    t0 = time.time()
    try:
        return run_pipeline(payload, catalog)
    except ValidationError as e:
        log.error("pipeline.schema_invalid", error=error_to_string(e))
        msg = error_to_string(e)
    except ConfigurationError as e:
        log.error("pipeline.config_error", error=str(e))
        msg = error_to_string(e)
    return {
        "status": "error",
        "messages": [make_system_message(msg)],
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }


if __name__ == "__main__":
    # Quick manual run to see a formatted result in the console.
    demo = {
        "answers": {"age": 40, "has_401k": "yes", "has_match": "yes", "match_formula": "100_4",
                    "gross_income": 95000, "years_to_retirement": 25},
        "facts": {"filing_status": "Single"},
        "budget": 1500,
    }
    print(json.dumps(run_pipeline(demo), indent=2))
