from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple


@dataclass(frozen=True)
class DealMetrics:
    """
    Fully derived result of one underwriting pass.

    Refinance-dependent fields are None when the funding mode does not model
    a refinance, which is different from a refinance modeled as zero.
    """
    rehab_budget_estimate: float
    blended_monthly_rent: float
    monthly_holding_cost: float
    net_operating_income_annual: float
    cash_required_at_close: float

    max_refinance_loan_amount: Optional[float]
    refinance_monthly_payment: Optional[float]
    achieved_dscr: Optional[float]        # inf when payment is 0
    cash_out_or_left_in: Optional[float]  # + returned to investor, - left in deal

    # Breakdown
    effective_gross_income_monthly: float = 0.0
    vacancy_loss_monthly: float = 0.0
    operating_expenses_monthly: float = 0.0
    closing_costs: float = 0.0
    inspection_costs: float = 0.0
    total_holding_cost: float = 0.0
    bridge_loan_amount: float = 0.0
    max_loan_by_ltv: Optional[float] = None
    max_loan_by_dscr: Optional[float] = None
    refinance_constraint: Optional[Literal["DSCR", "LTV"]] = None

    # Capital stack / returns
    existing_loans_balance: float = 0.0
    existing_debt_service_monthly: float = 0.0
    annual_cash_flow: float = 0.0
    yield_on_cost: Optional[float] = None
    cash_on_cash: Optional[float] = None
    payback_years: Optional[float] = None
    equity_created: float = 0.0
    combined_dscr: Optional[float] = None   # NOI over refinance + capital stack debt service
    dscr_target: Optional[float] = None

    rehab_line_items_total: float = 0.0
    flags: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def refinance_modeled(self) -> bool:
        return self.max_refinance_loan_amount is not None

    @property
    def cash_left_in(self) -> float:
        """Investor capital still in the deal after any refinance (never negative)."""
        if self.cash_out_or_left_in is None:
            return max(self.cash_required_at_close, 0.0)
        return max(-self.cash_out_or_left_in, 0.0)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["flags"] = [dict(f) for f in self.flags]
        return out

    def to_json_dict(self) -> dict[str, Any]:
        """
        JSON has no infinity: an infinite DSCR goes out as null plus an
        explicit marker so it can't be confused with "not modeled".
        """
        out = self.to_dict()
        dscr = out.get("achieved_dscr")
        out["achieved_dscr_infinite"] = dscr is not None and math.isinf(dscr)
        if out["achieved_dscr_infinite"]:
            out["achieved_dscr"] = None
        return out
