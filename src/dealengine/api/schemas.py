# src/dealengine/api/schemas.py
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


# --------------------------------------------
# Metrics
# --------------------------------------------

class DealPayload(BaseModel):
    """
    Raw form payload. Permissive on purpose: the form posts whatever it has
    (camelCase, blank strings, "6.5%") and parse_deal_inputs normalizes it.
    """
    model_config = ConfigDict(extra="allow")


class MetricsResponse(BaseModel):
    """
    DealMetrics as JSON. Permissive so new metric fields don't break clients.
    """
    model_config = ConfigDict(extra="allow")

    achieved_dscr_infinite: bool = False
    flags: list[dict[str, Any]] = []


class CalculationErrorBody(BaseModel):
    code: str
    field: str | None = None
    message: str


class CalculationErrorResponse(BaseModel):
    """400 body for any CalculationError: {"detail": {code, field, message}}."""
    detail: CalculationErrorBody


# --------------------------------------------
# Analysis
# --------------------------------------------

class SensitivityRequest(DealPayload):
    arv_deltas: list[float] | None = None
    rent_deltas: list[float] | None = None


class SensitivityRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    arv_percent: float
    rent_percent: float
    net_operating_income_annual: float
    cash_required_at_close: float
    max_refinance_loan_amount: float | None = None
    achieved_dscr: float | None = None
    cash_out_or_left_in: float | None = None
    refinance_constraint: str | None = None


class MaxOfferRequest(DealPayload):
    target_cash_left: float | None = None


class MaxOfferResponse(BaseModel):
    max_offer_price: float | None
    target_cash_left: float


class DefaultsResponse(BaseModel):
    vacancy_percent: float
    opex_percent: float
    closing_costs_percent: float
    inspection_percent: float
    holding_percent: float
    bridge_ltv_percent: float
    dscr_refi_ltv_percent: float
    dscr_refi_rate_percent: float
    dscr_refi_amort_years: int
    dscr_refi_target: float
