from __future__ import annotations

from dataclasses import dataclass

from dealengine.adapters.config import AppConfig, config
from dealengine.domain.inputs import (
    DealInputs,
    FlatRentSource,
    RentRollSource,
    RentSource,
    or_default,
    rent_source_of,
    require_non_negative,
)


@dataclass(frozen=True)
class IncomeSummary:
    blended_monthly_rent: float
    other_income_monthly: float
    effective_gross_income_monthly: float
    vacancy_loss_monthly: float
    operating_expenses_monthly: float   # includes taxes + insurance
    noi_monthly: float
    net_operating_income_annual: float  # may be negative


def _blended_rent(source: RentSource) -> float:
    """
    Determine total gross scheduled rent per month.
    - Rent roll: sum of unit rents.
    - Otherwise the single flat rent.
    """
    if isinstance(source, RentRollSource):
        return sum(source.rents)
    if isinstance(source, FlatRentSource):
        return source.rent
    raise TypeError(f"unknown rent source: {source!r}")


def aggregate_income(inputs: DealInputs, cfg: AppConfig | None = None) -> IncomeSummary:
    """
    Rent roll (or flat rent) + other income -> NOI.

    Vacancy and the opex ratio are both applied to effective gross income;
    taxes and insurance are added on top of the ratio. NOI is reported even
    when negative.
    """
    cfg = cfg or config

    blended = _blended_rent(rent_source_of(inputs))
    other = require_non_negative(inputs.other_income_monthly, "other_income_monthly")
    taxes_annual = require_non_negative(inputs.property_tax, "property_tax")
    insurance_annual = require_non_negative(inputs.insurance, "insurance")

    vacancy_pct = or_default(inputs.vacancy_percent, cfg.DEFAULT_VACANCY_PCT, "vacancy_percent")
    opex_pct = or_default(inputs.opex_percent, cfg.DEFAULT_OPEX_PCT, "opex_percent")

    egi = blended + other
    vacancy_loss = egi * vacancy_pct / 100.0
    operating = egi * opex_pct / 100.0 + taxes_annual / 12.0 + insurance_annual / 12.0

    # NOI is income after vacancy + operating expenses, BEFORE debt.
    noi_monthly = egi - vacancy_loss - operating

    return IncomeSummary(
        blended_monthly_rent=blended,
        other_income_monthly=other,
        effective_gross_income_monthly=egi,
        vacancy_loss_monthly=vacancy_loss,
        operating_expenses_monthly=operating,
        noi_monthly=noi_monthly,
        net_operating_income_annual=noi_monthly * 12.0,
    )
