from typing import TypedDict, Literal, Optional, Dict, List

Domain = Literal["Retirement", "Education", "Health", "Overflow"]
TaxPreference = Literal["Now", "Later", "Both"]
FilingStatus = Literal["Single", "MFJ", "MFS"]
Coverage = Literal["Individual", "Family"]
BackdoorAdvisory = Literal["clean", "pro_rata", "rollover_available", "unsure"]

class Facts(TypedDict, total=False):
    age: Optional[int]
    gross_income: Optional[float]
    filing_status: Optional[FilingStatus]
    employment_type: Optional[str]
    hsa_eligible: Optional[bool]
    hsa_coverage: Optional[Coverage]
    has_401k: Optional[bool]
    has_roth_401k: Optional[bool]
    has_match: Optional[bool]
    match_formula: Optional[str]
    trad_ira_balance: Optional[float]
    current_401k_balance: Optional[float]
    current_ira_balance: Optional[float]
    current_hsa_balance: Optional[float]
    current_education_balance: Optional[float]
    years_to_retirement: Optional[int]
    investment_score: Optional[int]
    monthly_budget: Optional[float]

class ProfileResult(TypedDict):
    id: int
    name: str
    match_reason: str

class DomainWeights(TypedDict):
    Retirement: float
    Education: float
    Health: float

class EligibleVehicle(TypedDict, total=False):
    name: str
    domain: Domain
    tax_treatment: str
    monthly_limit: Optional[float]
    annual_limit: Optional[float]
    shares_limit_with: Optional[str]
    non_discretionary: bool
    seed: float
    note: Optional[str]
    warning: Optional[str]
    advisory: Optional[BackdoorAdvisory]
    steps: List[str]

class AllocationResult(TypedDict):
    status: Literal["ok", "cannot_allocate", "config_error"]
    message: Optional[str]
    budget: float
    vehicles: Dict[str, float]
    seeds: Dict[str, float]
    domain_totals: Dict[str, float]
    overflow: float
    employer_match: float

class LimitWarning(TypedDict):
    type: str
    severity: str
    vehicles: List[str]
    evidence: str
    suggested_action: str

class ValidationReport(TypedDict):
    passed: bool
    warnings: List[LimitWarning]

class TaxBreakdown(TypedDict):
    tax_free_percent: float
    tax_deferred_percent: float
    taxable_percent: float
    tax_free_amount: float
    tax_deferred_amount: float
    taxable_amount: float

class ProjectionResult(TypedDict, total=False):
    projected_balance: float
    inflation_adjusted: float
    baseline: float
    improvement: float
    monthly_retirement_income: float
    current_balance: float
    monthly_contribution: float
    years: int
    annual_rate: float
    investment_label: str
    tax_breakdown: TaxBreakdown
