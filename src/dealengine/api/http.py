# src/dealengine/api/http.py
from __future__ import annotations

import math
from typing import Any

from fastapi import FastAPI, HTTPException

from dealengine.adapters.config import config
from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis.offer import solve_max_offer_price
from dealengine.analysis.sensitivity import build_sensitivity_grid
from dealengine.domain.errors import CalculationError
from dealengine.domain.inputs import DealInputs
from dealengine.services.calculator import compute_deal_metrics
from dealengine.services.validation import parse_deal_inputs
from .schemas import (
    CalculationErrorResponse,
    DealPayload,
    DefaultsResponse,
    MaxOfferRequest,
    MaxOfferResponse,
    MetricsResponse,
    SensitivityRequest,
    SensitivityRow,
)

logger = get_logger(__name__)

app = FastAPI(title="dealengine")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {400: {"model": CalculationErrorResponse}}


def _parse_or_400(raw: dict[str, Any]) -> DealInputs:
    try:
        return parse_deal_inputs(raw)
    except CalculationError as e:
        logger.warning("deal_payload_rejected", extra={"context": e.to_dict()})
        raise HTTPException(status_code=400, detail=e.to_dict()) from e


def _finite_or_none(val: Any) -> Any:
    if isinstance(val, float) and not math.isfinite(val):
        return None
    return val


@app.get("/defaults", response_model=DefaultsResponse)
def defaults() -> DefaultsResponse:
    """Percentages the engine uses when a field is left blank."""
    return DefaultsResponse(
        vacancy_percent=config.DEFAULT_VACANCY_PCT,
        opex_percent=config.DEFAULT_OPEX_PCT,
        closing_costs_percent=config.DEFAULT_CLOSING_COSTS_PCT,
        inspection_percent=config.DEFAULT_INSPECTION_PCT,
        holding_percent=config.DEFAULT_HOLDING_PCT,
        bridge_ltv_percent=config.DEFAULT_BRIDGE_LTV_PCT,
        dscr_refi_ltv_percent=config.DEFAULT_DSCR_REFI_LTV_PCT,
        dscr_refi_rate_percent=config.DEFAULT_DSCR_REFI_RATE_PCT,
        dscr_refi_amort_years=config.DEFAULT_DSCR_REFI_AMORT_YEARS,
        dscr_refi_target=config.DEFAULT_DSCR_REFI_TARGET,
    )


@app.post("/metrics", response_model=MetricsResponse, responses=_ERROR_RESPONSES)
def metrics_endpoint(payload: DealPayload) -> MetricsResponse:
    """
    Recompute the deal metrics for one form snapshot.

    Called by the form on every input change; errors come back as 400 with
    {code, field, message} so the form can mark the offending field.
    """
    inputs = _parse_or_400(payload.model_dump())
    try:
        metrics = compute_deal_metrics(inputs)
    except CalculationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e
    return MetricsResponse(**metrics.to_json_dict())


@app.post("/sensitivity", response_model=list[SensitivityRow], responses=_ERROR_RESPONSES)
def sensitivity_endpoint(payload: SensitivityRequest) -> list[SensitivityRow]:
    inputs = _parse_or_400(payload.model_dump(exclude={"arv_deltas", "rent_deltas"}))
    try:
        grid = build_sensitivity_grid(inputs, payload.arv_deltas, payload.rent_deltas)
    except CalculationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e

    rows = []
    for rec in grid.to_dict(orient="records"):
        rows.append(SensitivityRow(**{k: _finite_or_none(v) for k, v in rec.items()}))
    return rows


@app.post("/max-offer", response_model=MaxOfferResponse, responses=_ERROR_RESPONSES)
def max_offer_endpoint(payload: MaxOfferRequest) -> MaxOfferResponse:
    inputs = _parse_or_400(payload.model_dump(exclude={"target_cash_left"}))
    target = (
        config.MAX_OFFER_TARGET_CASH_LEFT
        if payload.target_cash_left is None
        else payload.target_cash_left
    )
    try:
        best = solve_max_offer_price(inputs, target)
    except CalculationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e
    return MaxOfferResponse(max_offer_price=best, target_cash_left=target)
