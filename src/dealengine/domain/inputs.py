from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dealengine.adapters.config import AppConfig
from dealengine.domain.errors import AmbiguousRentInput, InvalidFinancingParameters, InvalidInput


class RehabBudgetMode(str, Enum):
    PERCENT = "percent"
    DOLLAR = "dollar"


class FundingMode(str, Enum):
    CASH = "cash"
    BRIDGE = "bridge"
    DSCR_REFI = "dscr_refi"  # bridge purchase, then refinance into a DSCR loan


# Spellings the acquisition form (and older saved records) use for the modes.
_REHAB_MODE_ALIASES = {
    "percent": RehabBudgetMode.PERCENT,
    "pct": RehabBudgetMode.PERCENT,
    "%": RehabBudgetMode.PERCENT,
    "dollar": RehabBudgetMode.DOLLAR,
    "dollars": RehabBudgetMode.DOLLAR,
    "$": RehabBudgetMode.DOLLAR,
}

_FUNDING_MODE_ALIASES = {
    "cash": FundingMode.CASH,
    "allcash": FundingMode.CASH,
    "bridge": FundingMode.BRIDGE,
    "hardmoney": FundingMode.BRIDGE,
    "dscrrefi": FundingMode.DSCR_REFI,
    "dscr": FundingMode.DSCR_REFI,
    "brrrr": FundingMode.DSCR_REFI,
}

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
    extra="ignore",
    allow_inf_nan=False,
)


class RehabLineItem(BaseModel):
    model_config = _MODEL_CONFIG

    category: str = ""
    name: str = ""
    cost: float = 0.0


class RentUnit(BaseModel):
    model_config = _MODEL_CONFIG

    label: str = ""
    rent: float = 0.0


class Loan(BaseModel):
    model_config = _MODEL_CONFIG

    loan_amount: float = 0.0
    interest_rate: float = Field(default=0.0, description="annual, 0-100 scale")
    term_years: float = Field(
        default=0.0,
        validation_alias=AliasChoices("term_years", "termYears", "term"),
    )


class DealInputs(BaseModel):
    """
    Immutable snapshot of everything the underwriting engine reads.

    Only shape is validated here. Economic checks (negative prices, ambiguous
    rent, degenerate loan terms) happen in the stage that reads the field so
    they surface as CalculationError subclasses.
    """
    model_config = _MODEL_CONFIG

    purchase_price: float = Field(..., description="Acquisition price ($)")
    arv: float = Field(..., description="After-repair value ($)")

    rehab_budget_mode: RehabBudgetMode = RehabBudgetMode.DOLLAR
    rehab_budget_percent: float | None = None
    rehab_budget_absolute: float | None = None
    rehab_line_items: tuple[RehabLineItem, ...] = Field(
        default=(),
        validation_alias=AliasChoices("rehab_line_items", "rehabLineItems", "rehabItems"),
    )

    closing_costs_percent: float | None = None
    inspection_percent: float | None = None
    holding_percent: float | None = Field(default=None, description="monthly, % of purchase price")
    vacancy_percent: float | None = None
    opex_percent: float | None = Field(
        default=None,
        validation_alias=AliasChoices("opex_percent", "opexPercent", "opExPercent"),
    )

    rent_roll: tuple[RentUnit, ...] = ()
    rent_monthly: float | None = None
    other_income_monthly: float = 0.0

    rehab_timeline_months: int = Field(
        default=0,
        validation_alias=AliasChoices("rehab_timeline_months", "rehabTimelineMonths", "rehabTimeline"),
    )

    property_tax: float = Field(default=0.0, description="annual")
    insurance: float = Field(default=0.0, description="annual")

    funding_mode: FundingMode = FundingMode.CASH
    bridge_ltv_percent: float | None = None
    dscr_refi_ltv_percent: float | None = None
    dscr_refi_rate_percent: float | None = None
    dscr_refi_amort_years: float | None = None
    dscr_refi_target: float | None = None

    loans: tuple[Loan, ...] = ()

    @field_validator("rehab_budget_mode", mode="before")
    @classmethod
    def _normalize_rehab_mode(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().lower()
            if key in _REHAB_MODE_ALIASES:
                return _REHAB_MODE_ALIASES[key]
        return v

    @field_validator("funding_mode", mode="before")
    @classmethod
    def _normalize_funding_mode(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().lower().replace("_", "").replace("-", "").replace(" ", "")
            if key in _FUNDING_MODE_ALIASES:
                return _FUNDING_MODE_ALIASES[key]
        return v


# ---------------------------------------------------------------------
# Tagged variants for the three modal inputs.
# Stages consume these instead of poking at optional fields.
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PercentOfPurchase:
    percent: float


@dataclass(frozen=True)
class FixedBudget:
    amount: float


RehabBudget = Union[PercentOfPurchase, FixedBudget]


@dataclass(frozen=True)
class RentRollSource:
    rents: tuple[float, ...]


@dataclass(frozen=True)
class FlatRentSource:
    rent: float


RentSource = Union[RentRollSource, FlatRentSource]


@dataclass(frozen=True)
class CashPlan:
    pass


@dataclass(frozen=True)
class BridgePlan:
    bridge_ltv_percent: float


@dataclass(frozen=True)
class DscrRefiPlan:
    bridge_ltv_percent: float
    ltv_percent: float
    rate_percent: float
    amort_years: float
    dscr_target: float


FundingPlan = Union[CashPlan, BridgePlan, DscrRefiPlan]


def require_finite(value: Any, field: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid number for {field}: {value!r}", field=field)
    if not math.isfinite(f):
        raise InvalidInput(f"{field} must be a finite number (got {value!r})", field=field)
    return f


def require_non_negative(value: float | None, field: str) -> float:
    if value is None:
        raise InvalidInput(f"Missing required numeric field: {field}", field=field)
    f = require_finite(value, field)
    if f < 0:
        raise InvalidInput(f"{field} must be non-negative (got {f})", field=field)
    return f


def clamp_ltv(percent: float) -> float:
    """LTV is a lender ceiling; anything outside 0-100 is meaningless."""
    return min(max(percent, 0.0), 100.0)


def or_default(value: float | None, default: float, field: str) -> float:
    """Configured default when the form left the field blank; NaN/inf never pass."""
    return default if value is None else require_finite(value, field)


def rehab_budget_of(inputs: DealInputs) -> RehabBudget:
    if inputs.rehab_budget_mode is RehabBudgetMode.PERCENT:
        pct = require_non_negative(inputs.rehab_budget_percent, "rehab_budget_percent")
        return PercentOfPurchase(percent=pct)
    amount = require_non_negative(inputs.rehab_budget_absolute, "rehab_budget_absolute")
    return FixedBudget(amount=amount)


def rent_source_of(inputs: DealInputs) -> RentSource:
    if inputs.rent_roll:
        if inputs.rent_monthly:
            raise AmbiguousRentInput(
                "Supply either a rent roll or a flat monthly rent, not both",
                field="rent_monthly",
            )
        rents = tuple(
            require_non_negative(u.rent, f"rent_roll[{i}].rent")
            for i, u in enumerate(inputs.rent_roll)
        )
        return RentRollSource(rents=rents)

    rent = 0.0 if inputs.rent_monthly is None else inputs.rent_monthly
    return FlatRentSource(rent=require_non_negative(rent, "rent_monthly"))


def funding_plan_of(inputs: DealInputs, cfg: AppConfig) -> FundingPlan:
    if inputs.funding_mode is FundingMode.CASH:
        return CashPlan()

    bridge_ltv = clamp_ltv(
        or_default(inputs.bridge_ltv_percent, cfg.DEFAULT_BRIDGE_LTV_PCT, "bridge_ltv_percent")
    )
    if inputs.funding_mode is FundingMode.BRIDGE:
        return BridgePlan(bridge_ltv_percent=bridge_ltv)

    rate = or_default(inputs.dscr_refi_rate_percent, cfg.DEFAULT_DSCR_REFI_RATE_PCT, "dscr_refi_rate_percent")
    if rate < 0:
        raise InvalidInput(f"dscr_refi_rate_percent must be non-negative (got {rate})", field="dscr_refi_rate_percent")

    amort_years = or_default(inputs.dscr_refi_amort_years, cfg.DEFAULT_DSCR_REFI_AMORT_YEARS, "dscr_refi_amort_years")
    if amort_years <= 0:
        raise InvalidFinancingParameters(
            f"dscr_refi_amort_years must be > 0 (got {amort_years})",
            field="dscr_refi_amort_years",
        )

    target = or_default(inputs.dscr_refi_target, cfg.DEFAULT_DSCR_REFI_TARGET, "dscr_refi_target")
    if target <= 0:
        raise InvalidFinancingParameters(
            f"dscr_refi_target must be > 0 (got {target})",
            field="dscr_refi_target",
        )

    ltv = clamp_ltv(
        or_default(inputs.dscr_refi_ltv_percent, cfg.DEFAULT_DSCR_REFI_LTV_PCT, "dscr_refi_ltv_percent")
    )

    return DscrRefiPlan(
        bridge_ltv_percent=bridge_ltv,
        ltv_percent=ltv,
        rate_percent=rate,
        amort_years=amort_years,
        dscr_target=target,
    )
