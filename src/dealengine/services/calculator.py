from __future__ import annotations

from dealengine.adapters.config import AppConfig, config
from dealengine.adapters.logging_utils import get_logger
from dealengine.domain.financing import size_financing
from dealengine.domain.income import aggregate_income
from dealengine.domain.inputs import DealInputs
from dealengine.domain.metrics import DealMetrics
from dealengine.domain.rehab import line_items_total, resolve_rehab
from dealengine.services.guardrails import apply_guardrails

logger = get_logger(__name__)


def compute_deal_metrics(inputs: DealInputs, cfg: AppConfig | None = None) -> DealMetrics:
    """
    Core underwriting pass: DealInputs snapshot -> DealMetrics.

    Pure function of its inputs (plus the configured defaults). Raises a
    CalculationError subclass for anything the caller should show as a
    field-level error.
    """
    cfg = cfg or config

    # --- independent stages ---
    rehab = resolve_rehab(inputs)
    income = aggregate_income(inputs, cfg)

    # --- financing consumes both ---
    fin = size_financing(inputs, rehab, income.net_operating_income_annual, cfg)
    refi = fin.refinance

    metrics = DealMetrics(
        rehab_budget_estimate=rehab,
        blended_monthly_rent=income.blended_monthly_rent,
        monthly_holding_cost=fin.monthly_holding_cost,
        net_operating_income_annual=income.net_operating_income_annual,
        cash_required_at_close=fin.cash_required_at_close,
        max_refinance_loan_amount=refi.max_refinance_loan_amount if refi else None,
        refinance_monthly_payment=refi.refinance_monthly_payment if refi else None,
        achieved_dscr=refi.achieved_dscr if refi else None,
        cash_out_or_left_in=fin.cash_out_or_left_in,
        effective_gross_income_monthly=income.effective_gross_income_monthly,
        vacancy_loss_monthly=income.vacancy_loss_monthly,
        operating_expenses_monthly=income.operating_expenses_monthly,
        closing_costs=fin.closing_costs,
        inspection_costs=fin.inspection_costs,
        total_holding_cost=fin.total_holding_cost,
        bridge_loan_amount=fin.bridge_loan_amount,
        max_loan_by_ltv=refi.max_loan_by_ltv if refi else None,
        max_loan_by_dscr=refi.max_loan_by_dscr if refi else None,
        refinance_constraint=refi.constraint if refi else None,
        existing_loans_balance=fin.existing_loans_balance,
        existing_debt_service_monthly=fin.existing_debt_service_monthly,
        annual_cash_flow=fin.annual_cash_flow,
        yield_on_cost=fin.yield_on_cost,
        cash_on_cash=fin.cash_on_cash,
        payback_years=fin.payback_years,
        equity_created=fin.equity_created,
        combined_dscr=fin.combined_dscr,
        dscr_target=fin.dscr_target,
        rehab_line_items_total=line_items_total(inputs),
    )

    logger.debug(
        "deal_metrics_computed",
        extra={
            "context": {
                "funding_mode": inputs.funding_mode.value,
                "rehab_budget_mode": inputs.rehab_budget_mode.value,
                "noi_annual": metrics.net_operating_income_annual,
                "cash_required_at_close": metrics.cash_required_at_close,
                "max_refinance_loan_amount": metrics.max_refinance_loan_amount,
            }
        },
    )

    return apply_guardrails(inputs, metrics, cfg)
