from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional

from dealengine.adapters.config import AppConfig, config
from dealengine.domain.errors import InvalidFinancingParameters
from dealengine.domain.finance import max_loan_for_dscr, monthly_mortgage_payment
from dealengine.domain.inputs import (
    BridgePlan,
    DealInputs,
    DscrRefiPlan,
    funding_plan_of,
    or_default,
    require_non_negative,
)

RefiConstraint = Literal["DSCR", "LTV"]


@dataclass(frozen=True)
class RefinanceSizing:
    max_loan_by_ltv: float
    max_loan_by_dscr: float
    max_refinance_loan_amount: float
    refinance_monthly_payment: float
    achieved_dscr: float                 # inf when there is no debt service
    constraint: RefiConstraint


@dataclass(frozen=True)
class FinancingResult:
    monthly_holding_cost: float
    total_holding_cost: float
    closing_costs: float
    inspection_costs: float
    bridge_loan_amount: float
    cash_required_at_close: float

    # None = not modeled (cash / bridge-only funding)
    refinance: Optional[RefinanceSizing]
    cash_out_or_left_in: Optional[float]

    existing_loans_balance: float
    existing_debt_service_monthly: float
    annual_cash_flow: float
    yield_on_cost: Optional[float]

    # Returns on the capital still in the deal
    cash_left_in: float
    cash_on_cash: Optional[float]        # None when no cash is left in
    payback_years: Optional[float]       # None when cash flow is not positive
    equity_created: float

    # Coverage across all debt (refinance + capital stack), None without debt
    combined_dscr: Optional[float]
    dscr_target: float


def size_refinance(noi_annual: float, arv: float, plan: DscrRefiPlan) -> RefinanceSizing:
    """
    Max DSCR loan = min(LTV cap, DSCR cap), floored at zero.

    Payment is linear in principal, so the DSCR cap is the annuity formula
    inverted at the payment that puts coverage exactly on target.
    """
    max_by_ltv = arv * plan.ltv_percent / 100.0
    max_by_dscr = max_loan_for_dscr(
        noi_annual,
        plan.dscr_target,
        plan.rate_percent,
        plan.amort_years,
    )

    loan = max(min(max_by_ltv, max_by_dscr), 0.0)
    payment = monthly_mortgage_payment(loan, plan.rate_percent, plan.amort_years)

    annual_debt_service = payment * 12.0
    achieved = noi_annual / annual_debt_service if annual_debt_service > 0 else math.inf

    return RefinanceSizing(
        max_loan_by_ltv=max_by_ltv,
        max_loan_by_dscr=max_by_dscr,
        max_refinance_loan_amount=loan,
        refinance_monthly_payment=payment,
        achieved_dscr=achieved,
        constraint="DSCR" if max_by_dscr <= max_by_ltv else "LTV",
    )


def existing_debt_service(inputs: DealInputs) -> tuple[float, float]:
    """
    (total balance, total monthly P&I) for the capital stack.

    Blank form rows (zero amount) are skipped.
    """
    balance = 0.0
    monthly = 0.0
    for i, loan in enumerate(inputs.loans):
        amount = require_non_negative(loan.loan_amount, f"loans[{i}].loan_amount")
        if amount == 0:
            continue
        rate = require_non_negative(loan.interest_rate, f"loans[{i}].interest_rate")
        if not math.isfinite(loan.term_years) or loan.term_years <= 0:
            raise InvalidFinancingParameters(
                f"loans[{i}].term_years must be > 0 (got {loan.term_years})",
                field=f"loans[{i}].term_years",
            )
        balance += amount
        monthly += monthly_mortgage_payment(amount, rate, loan.term_years)
    return balance, monthly


def size_financing(
    inputs: DealInputs,
    rehab_budget_estimate: float,
    noi_annual: float,
    cfg: AppConfig | None = None,
) -> FinancingResult:
    cfg = cfg or config

    price = require_non_negative(inputs.purchase_price, "purchase_price")
    arv = require_non_negative(inputs.arv, "arv")
    rehab = require_non_negative(rehab_budget_estimate, "rehab_budget_estimate")
    months = require_non_negative(inputs.rehab_timeline_months, "rehab_timeline_months")

    def pct(name: str, default: float) -> float:
        return or_default(getattr(inputs, name), default, name) / 100.0

    # --- acquisition costs ---
    closing = price * pct("closing_costs_percent", cfg.DEFAULT_CLOSING_COSTS_PCT)
    inspection = price * pct("inspection_percent", cfg.DEFAULT_INSPECTION_PCT)

    # --- carry during rehab ---
    holding_monthly = price * pct("holding_percent", cfg.DEFAULT_HOLDING_PCT)
    holding_total = holding_monthly * months

    # --- bridge ---
    # Lenders size against cost or value, whichever is lower.
    plan = funding_plan_of(inputs, cfg)
    bridge = 0.0
    if isinstance(plan, (BridgePlan, DscrRefiPlan)):
        bridge = min(price, arv) * plan.bridge_ltv_percent / 100.0

    cash_required = price + rehab + closing + inspection + holding_total - bridge

    # --- refinance (DSCR track only) ---
    refi: RefinanceSizing | None = None
    cash_out: float | None = None
    if isinstance(plan, DscrRefiPlan):
        refi = size_refinance(noi_annual, arv, plan)
        cash_out = refi.max_refinance_loan_amount - cash_required

    # --- capital stack & cash flow ---
    stack_balance, stack_monthly = existing_debt_service(inputs)
    refi_monthly = refi.refinance_monthly_payment if refi else 0.0
    annual_debt_service = 12.0 * (refi_monthly + stack_monthly)
    annual_cash_flow = noi_annual - annual_debt_service

    cost_basis = price + rehab + closing + inspection
    yield_on_cost = noi_annual / cost_basis if cost_basis > 0 else None

    # --- returns ---
    cash_left_in = max(-cash_out, 0.0) if cash_out is not None else max(cash_required, 0.0)
    cash_on_cash = annual_cash_flow / cash_left_in if cash_left_in > 0 else None
    payback_years = cash_left_in / annual_cash_flow if annual_cash_flow > 0 else None
    refi_proceeds = refi.max_refinance_loan_amount if refi else 0.0
    equity_created = max(arv - refi_proceeds, 0.0)

    dscr_target = plan.dscr_target if isinstance(plan, DscrRefiPlan) else cfg.DEFAULT_DSCR_REFI_TARGET
    combined_dscr = noi_annual / annual_debt_service if annual_debt_service > 0 else None

    return FinancingResult(
        monthly_holding_cost=holding_monthly,
        total_holding_cost=holding_total,
        closing_costs=closing,
        inspection_costs=inspection,
        bridge_loan_amount=bridge,
        cash_required_at_close=cash_required,
        refinance=refi,
        cash_out_or_left_in=cash_out,
        existing_loans_balance=stack_balance,
        existing_debt_service_monthly=stack_monthly,
        annual_cash_flow=annual_cash_flow,
        yield_on_cost=yield_on_cost,
        cash_left_in=cash_left_in,
        cash_on_cash=cash_on_cash,
        payback_years=payback_years,
        equity_created=equity_created,
        combined_dscr=combined_dscr,
        dscr_target=dscr_target,
    )
