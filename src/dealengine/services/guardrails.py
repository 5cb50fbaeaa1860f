# src/dealengine/services/guardrails.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List

from dealengine.adapters.config import AppConfig, config
from dealengine.adapters.logging_utils import get_logger
from dealengine.domain.inputs import DealInputs, FundingMode, RehabBudgetMode
from dealengine.domain.metrics import DealMetrics

logger = get_logger(__name__)

# Percentages that are accepted as-is even outside 0-100 (flagged, not clamped)
PERCENT_FIELDS = [
    "closing_costs_percent",
    "inspection_percent",
    "holding_percent",
    "vacancy_percent",
    "opex_percent",
]

# Lender ceilings: clamped to 0-100 by the engine, flagged here
LTV_FIELDS = [
    "bridge_ltv_percent",
    "dscr_refi_ltv_percent",
]

# Line items may be a rough scope; only flag a real divergence.
LINE_ITEM_MISMATCH_TOLERANCE = 0.10

# A DSCR-sized loan lands on the target up to float rounding
DSCR_RELATIVE_TOLERANCE = 1e-9


def _flag(code: str, severity: str, message: str, **context: Any) -> Dict[str, Any]:
    return {
        "code": code,
        "severity": severity,
        "message": message,
        "context": context,
    }


def _percent_flags(inputs: DealInputs) -> List[Dict[str, Any]]:
    flags: List[Dict[str, Any]] = []

    fields = list(PERCENT_FIELDS)
    if inputs.rehab_budget_mode is RehabBudgetMode.PERCENT:
        fields.append("rehab_budget_percent")

    for name in fields:
        value = getattr(inputs, name)
        if value is not None and not (0.0 <= value <= 100.0):
            flags.append(
                _flag(
                    "PERCENT_OUT_OF_RANGE",
                    "warning",
                    f"{name} is outside 0-100; used as entered.",
                    field=name,
                    value=value,
                )
            )

    for name in LTV_FIELDS:
        value = getattr(inputs, name)
        if value is not None and not (0.0 <= value <= 100.0):
            flags.append(
                _flag(
                    "LTV_CLAMPED",
                    "warning",
                    f"{name} is outside 0-100; clamped.",
                    field=name,
                    value=value,
                    used=min(max(value, 0.0), 100.0),
                )
            )
    return flags


def apply_guardrails(
    inputs: DealInputs,
    metrics: DealMetrics,
    cfg: AppConfig | None = None,
) -> DealMetrics:
    """
    Attach sanity checks to a computed result.

    Produces metrics.flags as a tuple of
        {"code": ..., "severity": "info" | "warning" | "error", "message": ..., "context": {...}}

    These do *not* block anything; they just flag sketchy inputs or deals so
    the form can highlight them.
    """
    cfg = cfg or config
    flags: List[Dict[str, Any]] = _percent_flags(inputs)

    # ------------------------------------------------------------------
    # Income
    # ------------------------------------------------------------------
    noi = metrics.net_operating_income_annual
    if noi <= 0:
        flags.append(
            _flag(
                "NEGATIVE_NOI",
                "warning",
                "NOI is zero or negative; expenses exceed income.",
                noi_annual=noi,
            )
        )

    # ------------------------------------------------------------------
    # Rehab
    # ------------------------------------------------------------------
    rehab = metrics.rehab_budget_estimate
    if inputs.arv > 0 and rehab > inputs.arv:
        flags.append(
            _flag(
                "REHAB_EXCEEDS_ARV",
                "error",
                "Rehab budget exceeds ARV. Deal almost certainly does not pencil.",
                arv=inputs.arv,
                rehab_budget_estimate=rehab,
            )
        )

    items_total = metrics.rehab_line_items_total
    if inputs.rehab_line_items and items_total > 0:
        gap = abs(items_total - rehab) / max(rehab, 1.0)
        if gap > LINE_ITEM_MISMATCH_TOLERANCE:
            flags.append(
                _flag(
                    "REHAB_LINE_ITEMS_MISMATCH",
                    "warning",
                    "Rehab line items do not add up to the budget; the budget is used.",
                    rehab_budget_estimate=rehab,
                    rehab_line_items_total=items_total,
                )
            )

    # ------------------------------------------------------------------
    # Refinance
    # ------------------------------------------------------------------
    if inputs.funding_mode is FundingMode.DSCR_REFI and metrics.refinance_modeled:
        if metrics.refinance_constraint == "DSCR" and (metrics.max_loan_by_ltv or 0.0) > 0:
            flags.append(
                _flag(
                    "DSCR_CONSTRAINED",
                    "info",
                    "Refinance proceeds are limited by income (DSCR), not value (LTV).",
                    max_loan_by_dscr=metrics.max_loan_by_dscr,
                    max_loan_by_ltv=metrics.max_loan_by_ltv,
                )
            )

        if metrics.cash_left_in <= cfg.INFINITE_RETURN_TOLERANCE:
            flags.append(
                _flag(
                    "INFINITE_RETURN",
                    "info",
                    "Refinance returns (nearly) all invested capital.",
                    cash_out_or_left_in=metrics.cash_out_or_left_in,
                )
            )

    # ------------------------------------------------------------------
    # Coverage across all debt
    # ------------------------------------------------------------------
    coverage = metrics.combined_dscr
    target = metrics.dscr_target
    if coverage is not None and target and coverage < target * (1 - DSCR_RELATIVE_TOLERANCE):
        flags.append(
            _flag(
                "DSCR_SHORTFALL",
                "warning",
                "Debt service coverage (refinance + existing loans) is below the DSCR target.",
                combined_dscr=coverage,
                dscr_target=target,
                shortfall=target - coverage,
            )
        )

    if flags:
        logger.info("deal_guardrails_flags", extra={"context": {"flags": flags}})

    return replace(metrics, flags=tuple(flags))
