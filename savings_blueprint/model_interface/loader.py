"""
Catalog loader.

PURPOSE:
- Load the versioned vehicle/profile/limit catalog from JSON, validate it against
  catalog.schema.json and freeze it so engine code cannot mutate it.

CONTEXT:
- Yearly IRS limit changes are data edits: drop a new catalog file next to irs_2025.json
  and point BLUEPRINT_CATALOG at it (or pass a path to load_catalog()).
"""

from __future__ import annotations

import json
import os
import pathlib
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from savings_blueprint.engine_io import validate_catalog

DEFAULT_CATALOG = pathlib.Path(__file__).resolve().parent.parent / "catalogs" / "irs_2025.json"


class ConfigurationError(Exception):
    """Catalog data is inconsistent (e.g. a priority list names a vehicle that does not exist)."""


@dataclass(frozen=True)
class VehicleEntry:
    name: str
    domain: str
    tax_treatment: str
    annual_limit: Optional[float]
    catch_up_age: Optional[int] = None
    catch_up_amount: float = 0.0
    super_catch_up_age: Optional[int] = None
    super_catch_up_max_age: Optional[int] = None
    super_catch_up_amount: float = 0.0
    shares_limit_with: Optional[str] = None
    non_discretionary: bool = False
    action_item: bool = False
    income_phase_out: bool = False
    per_beneficiary: bool = False
    percent_of_compensation: Optional[float] = None
    coverage_limits: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    description: str = ""

    @property
    def unlimited(self) -> bool:
        return self.annual_limit is None


@dataclass(frozen=True)
class InvestorProfile:
    id: int
    name: str
    description: str
    priority: Tuple[str, ...]


@dataclass(frozen=True)
class Catalog:
    """
    Immutable view over one catalog version.

    attributes:
    - version: str – catalog version label (e.g. "2025.1")
    - vehicles: Mapping[str, VehicleEntry] – keyed by vehicle name, in file order
    - profiles: Mapping[int, InvestorProfile] – the nine investor profiles keyed 1–9
    - limits/ambition/projection/...: read-only mappings copied from the JSON sections
    """
    version: str
    tax_year: int
    limits: Mapping[str, Any]
    vehicles: Mapping[str, VehicleEntry]
    profiles: Mapping[int, InvestorProfile]
    ambition: Mapping[str, float]
    projection: Mapping[str, float]
    investment_score_labels: Mapping[int, str]
    tax_strategy_thresholds: Mapping[str, Mapping[str, float]]
    match_formulas: Mapping[str, Mapping[str, Any]]
    backdoor_advisories: Mapping[str, Mapping[str, Any]]

    def vehicle(self, name: str) -> VehicleEntry:
        try:
            return self.vehicles[name]
        except KeyError:
            raise ConfigurationError(f"Vehicle '{name}' is not defined in catalog {self.version}") from None

    def profile(self, profile_id: int) -> InvestorProfile:
        try:
            return self.profiles[int(profile_id)]
        except (KeyError, ValueError):
            raise ConfigurationError(f"Profile '{profile_id}' is not defined in catalog {self.version}") from None

    def overflow_vehicle(self) -> VehicleEntry:
        for v in self.vehicles.values():
            if v.domain == "Overflow":
                return v
        raise ConfigurationError(f"Catalog {self.version} has no overflow vehicle")


def _freeze(obj: Any) -> Any:
    """Recursively wrap dicts in MappingProxyType and lists in tuples."""
    if isinstance(obj, dict):
        return MappingProxyType({k: _freeze(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return tuple(_freeze(v) for v in obj)
    return obj


def build_catalog(raw: dict) -> Catalog:
    """
    Validate raw catalog data and build the immutable Catalog.

    raises:
    - jsonschema.ValidationError – if the data does not match catalog.schema.json.
    - ConfigurationError – if shared-limit partners reference unknown vehicles.
    """
    validate_catalog(raw)

    vehicles = {}
    for name, body in raw["vehicles"].items():
        fields = dict(body)
        fields["coverage_limits"] = MappingProxyType(dict(fields.get("coverage_limits") or {}))
        vehicles[name] = VehicleEntry(name=name, **fields)

    for v in vehicles.values():
        if v.shares_limit_with and v.shares_limit_with not in vehicles:
            raise ConfigurationError(f"'{v.name}' shares a limit with unknown vehicle '{v.shares_limit_with}'")

    profiles = {
        int(pid): InvestorProfile(
            id=int(pid),
            name=p["name"],
            description=p.get("description", ""),
            priority=tuple(p["priority"]),
        )
        for pid, p in raw["profiles"].items()
    }

    return Catalog(
        version=raw["version"],
        tax_year=int(raw.get("tax_year") or 0),
        limits=_freeze(raw["limits"]),
        vehicles=MappingProxyType(vehicles),
        profiles=MappingProxyType(profiles),
        ambition=_freeze(raw["ambition"]),
        projection=_freeze(raw["projection"]),
        investment_score_labels=MappingProxyType(
            {int(k): v for k, v in (raw.get("investment_score_labels") or {}).items()}
        ),
        tax_strategy_thresholds=_freeze(raw.get("tax_strategy_thresholds") or {}),
        match_formulas=_freeze(raw.get("match_formulas") or {}),
        backdoor_advisories=_freeze(raw.get("backdoor_advisories") or {}),
    )


@lru_cache(maxsize=8)
def _load_cached(abs_path: str) -> Catalog:
    with open(abs_path, "r", encoding="utf-8") as f:
        return build_catalog(json.load(f))


def load_catalog(path: Optional[str] = None) -> Catalog:
    """
    Load a catalog from an explicit path, the BLUEPRINT_CATALOG env var, or the bundled default.

    returns:
    - Catalog – cached per resolved path.
    """
    p = pathlib.Path(path or os.getenv("BLUEPRINT_CATALOG") or DEFAULT_CATALOG)
    return _load_cached(str(p.resolve()))
