# src/dealengine/analysis/sensitivity.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd

from dealengine.adapters.config import AppConfig, config
from dealengine.domain.inputs import DealInputs
from dealengine.services.calculator import compute_deal_metrics

# Default sweep: -10% .. +10% in 5-point steps
DEFAULT_DELTAS = np.linspace(-10.0, 10.0, 5)


@dataclass(frozen=True)
class SensitivityAdjustments:
    arv_percent: float = 0.0            # +10 means ARV * 1.10
    rent_percent: float = 0.0           # scales every unit (or the flat rent)
    refi_rate_delta: float = 0.0        # percentage points added to the refi rate
    expense_percent_delta: float = 0.0  # percentage points added to the opex ratio


def apply_sensitivity(
    inputs: DealInputs,
    adjustments: SensitivityAdjustments,
    cfg: AppConfig | None = None,
) -> DealInputs:
    """
    Return a new snapshot with the adjustments applied. The original is untouched.

    Rate and opex deltas are applied on top of the configured default when
    the field was left blank.
    """
    cfg = cfg or config
    rent_factor = 1.0 + adjustments.rent_percent / 100.0

    update: dict = {"arv": inputs.arv * (1.0 + adjustments.arv_percent / 100.0)}

    if inputs.rent_roll:
        update["rent_roll"] = tuple(
            u.model_copy(update={"rent": u.rent * rent_factor}) for u in inputs.rent_roll
        )
    elif inputs.rent_monthly is not None:
        update["rent_monthly"] = inputs.rent_monthly * rent_factor

    if adjustments.refi_rate_delta:
        base_rate = (
            cfg.DEFAULT_DSCR_REFI_RATE_PCT
            if inputs.dscr_refi_rate_percent is None
            else inputs.dscr_refi_rate_percent
        )
        update["dscr_refi_rate_percent"] = base_rate + adjustments.refi_rate_delta

    if adjustments.expense_percent_delta:
        base_opex = cfg.DEFAULT_OPEX_PCT if inputs.opex_percent is None else inputs.opex_percent
        update["opex_percent"] = base_opex + adjustments.expense_percent_delta

    return inputs.model_copy(update=update)


def build_sensitivity_grid(
    inputs: DealInputs,
    arv_deltas: Iterable[float] | None = None,
    rent_deltas: Iterable[float] | None = None,
    cfg: AppConfig | None = None,
) -> pd.DataFrame:
    """
    Recompute headline metrics across an ARV x rent grid of percent changes.

    One row per (arv_percent, rent_percent) pair, in input order.
    """
    cfg = cfg or config
    arv_arr = np.asarray(DEFAULT_DELTAS if arv_deltas is None else list(arv_deltas), dtype=float)
    rent_arr = np.asarray(DEFAULT_DELTAS if rent_deltas is None else list(rent_deltas), dtype=float)

    rows = []
    for arv_pct in arv_arr:
        for rent_pct in rent_arr:
            adjusted = apply_sensitivity(
                inputs,
                SensitivityAdjustments(arv_percent=float(arv_pct), rent_percent=float(rent_pct)),
                cfg,
            )
            m = compute_deal_metrics(adjusted, cfg)
            rows.append(
                {
                    "arv_percent": float(arv_pct),
                    "rent_percent": float(rent_pct),
                    "net_operating_income_annual": m.net_operating_income_annual,
                    "cash_required_at_close": m.cash_required_at_close,
                    "max_refinance_loan_amount": m.max_refinance_loan_amount,
                    "achieved_dscr": m.achieved_dscr,
                    "cash_out_or_left_in": m.cash_out_or_left_in,
                    "refinance_constraint": m.refinance_constraint,
                }
            )

    return pd.DataFrame(rows)
