import math

import pytest

from dealengine.domain.errors import InvalidFinancingParameters, InvalidInput
from dealengine.domain.finance import monthly_mortgage_payment
from dealengine.domain.financing import existing_debt_service, size_financing, size_refinance
from dealengine.domain.inputs import DscrRefiPlan
from fixtures.deals import make_inputs, single_family_cash_payload


def _refi_plan(**overrides) -> DscrRefiPlan:
    params = dict(
        bridge_ltv_percent=85.0,
        ltv_percent=75.0,
        rate_percent=7.0,
        amort_years=30,
        dscr_target=1.25,
    )
    params.update(overrides)
    return DscrRefiPlan(**params)


def test_dscr_cap_binds_and_hits_target():
    sizing = size_refinance(30_000.0, 1_000_000.0, _refi_plan())

    assert sizing.constraint == "DSCR"
    assert sizing.max_refinance_loan_amount == pytest.approx(sizing.max_loan_by_dscr)
    assert sizing.achieved_dscr == pytest.approx(1.25, rel=1e-6)
    assert sizing.max_refinance_loan_amount <= sizing.max_loan_by_ltv


def test_ltv_cap_binds_on_strong_income():
    sizing = size_refinance(90_000.0, 400_000.0, _refi_plan())

    assert sizing.constraint == "LTV"
    assert sizing.max_refinance_loan_amount == pytest.approx(300_000.0)
    assert sizing.achieved_dscr > 1.25


@pytest.mark.parametrize("noi", [0.0, -12_000.0])
def test_no_income_means_no_refinance_loan(noi):
    sizing = size_refinance(noi, 300_000.0, _refi_plan())

    assert sizing.max_refinance_loan_amount == 0.0
    assert sizing.refinance_monthly_payment == 0.0
    assert math.isinf(sizing.achieved_dscr)


def test_zero_rate_refinance_is_straight_line():
    sizing = size_refinance(36_000.0, 2_000_000.0, _refi_plan(rate_percent=0.0, dscr_target=1.0))
    # 3000/mo over 360 months
    assert sizing.max_loan_by_dscr == pytest.approx(3000.0 * 360)
    assert sizing.refinance_monthly_payment == pytest.approx(3000.0)


def test_duplex_acquisition_costs(cfg):
    fin = size_financing(make_inputs(), 40_000.0, 13_560.0, cfg)

    assert fin.closing_costs == pytest.approx(6000.0)
    assert fin.inspection_costs == pytest.approx(2000.0)
    assert fin.monthly_holding_cost == pytest.approx(3000.0)
    assert fin.total_holding_cost == pytest.approx(18_000.0)
    assert fin.bridge_loan_amount == pytest.approx(170_000.0)
    assert fin.cash_required_at_close == pytest.approx(96_000.0)


def test_duplex_refinance(cfg):
    fin = size_financing(make_inputs(), 40_000.0, 13_560.0, cfg)
    refi = fin.refinance

    assert refi is not None
    assert refi.constraint == "DSCR"
    assert refi.max_loan_by_ltv == pytest.approx(225_000.0)
    # 13,560 / 1.25 / 12 = 904/mo of P&I
    assert refi.refinance_monthly_payment == pytest.approx(904.0, rel=1e-9)
    assert refi.max_refinance_loan_amount == pytest.approx(135_878, rel=1e-3)
    assert fin.cash_out_or_left_in == pytest.approx(refi.max_refinance_loan_amount - 96_000.0)
    assert fin.annual_cash_flow == pytest.approx(13_560.0 - 12 * 904.0)


def test_negative_noi_leaves_all_cash_in(cfg):
    fin = size_financing(make_inputs(), 40_000.0, -2_000.0, cfg)

    assert fin.refinance.max_refinance_loan_amount == 0.0
    assert math.isinf(fin.refinance.achieved_dscr)
    assert fin.cash_out_or_left_in == pytest.approx(-96_000.0)


def test_cash_mode_has_no_bridge_and_no_refinance(cfg):
    inputs = make_inputs(single_family_cash_payload())
    fin = size_financing(inputs, 20_000.0, 9_360.0, cfg)

    assert fin.bridge_loan_amount == 0.0
    assert fin.refinance is None
    assert fin.cash_out_or_left_in is None
    # 200k + 20k + 6k closing + 2k inspection + 4 x 3k holding
    assert fin.cash_required_at_close == pytest.approx(240_000.0)
    assert fin.yield_on_cost == pytest.approx(9_360.0 / 228_000.0)


def test_bridge_mode_has_bridge_but_no_refinance(cfg):
    inputs = make_inputs(funding_mode="bridge")
    fin = size_financing(inputs, 40_000.0, 13_560.0, cfg)

    assert fin.bridge_loan_amount == pytest.approx(170_000.0)
    assert fin.refinance is None
    assert fin.cash_out_or_left_in is None


def test_bridge_sizes_on_lower_of_price_and_arv(cfg):
    # Overpaying: ARV below price, lender sizes on ARV
    inputs = make_inputs(purchase_price=250_000, arv=200_000, funding_mode="bridge", bridge_ltv_percent=80)
    fin = size_financing(inputs, 0.0, 10_000.0, cfg)
    assert fin.bridge_loan_amount == pytest.approx(160_000.0)


def test_bridge_ltv_default_comes_from_config(cfg):
    inputs = make_inputs(bridge_ltv_percent=None, funding_mode="bridge")
    fin = size_financing(inputs, 40_000.0, 13_560.0, cfg)
    assert fin.bridge_loan_amount == pytest.approx(200_000 * cfg.DEFAULT_BRIDGE_LTV_PCT / 100)


def test_ltv_above_100_is_clamped(cfg):
    inputs = make_inputs(dscr_refi_ltv_percent=140, dscr_refi_target=0.5)
    fin = size_financing(inputs, 40_000.0, 60_000.0, cfg)
    assert fin.refinance.max_loan_by_ltv == pytest.approx(300_000.0)
    assert fin.refinance.max_refinance_loan_amount <= 300_000.0


def test_refi_defaults_come_from_config(cfg):
    inputs = make_inputs(
        dscr_refi_ltv_percent=None,
        dscr_refi_rate_percent=None,
        dscr_refi_amort_years=None,
        dscr_refi_target=None,
    )
    fin = size_financing(inputs, 40_000.0, 13_560.0, cfg)
    expected_payment = 13_560.0 / cfg.DEFAULT_DSCR_REFI_TARGET / 12
    assert fin.refinance.refinance_monthly_payment == pytest.approx(expected_payment, rel=1e-9)


@pytest.mark.parametrize("years", [0, -5])
def test_zero_amortization_raises(cfg, years):
    inputs = make_inputs(dscr_refi_amort_years=years)
    with pytest.raises(InvalidFinancingParameters) as exc:
        size_financing(inputs, 40_000.0, 13_560.0, cfg)
    assert exc.value.field == "dscr_refi_amort_years"


def test_non_positive_dscr_target_raises(cfg):
    with pytest.raises(InvalidFinancingParameters) as exc:
        size_financing(make_inputs(dscr_refi_target=0), 40_000.0, 13_560.0, cfg)
    assert exc.value.field == "dscr_refi_target"


def test_negative_refi_rate_raises(cfg):
    with pytest.raises(InvalidInput):
        size_financing(make_inputs(dscr_refi_rate_percent=-2), 40_000.0, 13_560.0, cfg)


def test_cash_mode_ignores_broken_refi_terms(cfg):
    inputs = make_inputs(single_family_cash_payload(), dscr_refi_amort_years=0)
    fin = size_financing(inputs, 20_000.0, 9_360.0, cfg)
    assert fin.refinance is None


def test_negative_timeline_raises(cfg):
    with pytest.raises(InvalidInput) as exc:
        size_financing(make_inputs(rehab_timeline_months=-1), 40_000.0, 13_560.0, cfg)
    assert exc.value.field == "rehab_timeline_months"


def test_capital_stack_is_amortized():
    inputs = make_inputs(
        loans=[
            {"loan_amount": 100_000, "interest_rate": 7, "term_years": 30},
            {"loan_amount": 0, "interest_rate": 0, "term_years": 0},  # blank row
            {"loanAmount": 20_000, "interestRate": 10, "term": 5},
        ]
    )
    balance, monthly = existing_debt_service(inputs)

    assert balance == pytest.approx(120_000.0)
    assert monthly == pytest.approx(
        monthly_mortgage_payment(100_000, 7, 30) + monthly_mortgage_payment(20_000, 10, 5)
    )


def test_capital_stack_reduces_cash_flow(cfg):
    inputs = make_inputs(loans=[{"loan_amount": 50_000, "interest_rate": 0, "term_years": 10}])
    fin = size_financing(inputs, 40_000.0, 13_560.0, cfg)
    # 50k / 120 months interest-free
    assert fin.existing_debt_service_monthly == pytest.approx(50_000 / 120)
    assert fin.annual_cash_flow == pytest.approx(13_560.0 - 12 * (904.0 + 50_000 / 120))


def test_capital_stack_zero_term_raises():
    inputs = make_inputs(loans=[{"loan_amount": 10_000, "interest_rate": 5, "term_years": 0}])
    with pytest.raises(InvalidFinancingParameters) as exc:
        existing_debt_service(inputs)
    assert exc.value.field == "loans[0].term_years"


def test_duplex_returns_all_cash(cfg):
    fin = size_financing(make_inputs(), 40_000.0, 13_560.0, cfg)
    loan = fin.refinance.max_refinance_loan_amount

    assert fin.cash_left_in == 0.0
    assert fin.cash_on_cash is None
    assert fin.payback_years == 0.0
    assert fin.equity_created == pytest.approx(300_000.0 - loan)
    assert fin.combined_dscr == pytest.approx(1.25, rel=1e-9)
    assert fin.dscr_target == 1.25


def test_cash_deal_returns(cfg):
    inputs = make_inputs(single_family_cash_payload())
    fin = size_financing(inputs, 20_000.0, 9_360.0, cfg)

    assert fin.cash_left_in == pytest.approx(240_000.0)
    assert fin.cash_on_cash == pytest.approx(9_360.0 / 240_000.0)
    assert fin.payback_years == pytest.approx(240_000.0 / 9_360.0)
    # nothing borrowed against the finished property
    assert fin.equity_created == pytest.approx(260_000.0)
    assert fin.combined_dscr is None
    assert fin.dscr_target == cfg.DEFAULT_DSCR_REFI_TARGET


def test_no_payback_without_positive_cash_flow(cfg):
    fin = size_financing(make_inputs(single_family_cash_payload()), 20_000.0, -1_000.0, cfg)

    assert fin.cash_on_cash == pytest.approx(-1_000.0 / 240_000.0)
    assert fin.payback_years is None


def test_capital_stack_drags_combined_dscr(cfg):
    inputs = make_inputs(loans=[{"loan_amount": 50_000, "interest_rate": 0, "term_years": 10}])
    fin = size_financing(inputs, 40_000.0, 13_560.0, cfg)
    # 12 x (904 refinance + 416.67 stack)
    assert fin.combined_dscr == pytest.approx(13_560.0 / 15_848.0, rel=1e-6)
    assert fin.refinance.achieved_dscr == pytest.approx(1.25, rel=1e-9)
