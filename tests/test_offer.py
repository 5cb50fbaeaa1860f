# tests/test_offer.py
import pytest

from dealengine.analysis.offer import PRICE_PRECISION, solve_max_offer_price
from dealengine.services.calculator import compute_deal_metrics
from fixtures.deals import make_inputs, single_family_cash_payload


def test_cash_deal_offer_meets_target(cfg):
    # cash in = 1.2 x price (10% rehab, 3% closing, 1% inspection, 4 x 1.5% holding)
    inputs = make_inputs(single_family_cash_payload())
    best = solve_max_offer_price(inputs, target_cash_left=5_000, cfg=cfg)

    assert best is not None
    assert 5_000 / 1.2 - PRICE_PRECISION < best <= 5_000 / 1.2

    at_best = compute_deal_metrics(inputs.model_copy(update={"purchase_price": best}), cfg)
    assert at_best.cash_left_in <= 5_000


def test_search_stops_below_arv_ceiling(cfg):
    # every price up to 98% of ARV leaves nothing in the deal after the refinance
    best = solve_max_offer_price(make_inputs(), target_cash_left=5_000, cfg=cfg)
    assert 294_000 - PRICE_PRECISION <= best <= 294_000


def test_unreachable_target_returns_none(cfg):
    inputs = make_inputs(single_family_cash_payload())
    assert solve_max_offer_price(inputs, target_cash_left=0, cfg=cfg) is None


def test_target_defaults_to_config(cfg):
    inputs = make_inputs(single_family_cash_payload())
    looser = cfg.model_copy(update={"MAX_OFFER_TARGET_CASH_LEFT": 12_000.0})
    best = solve_max_offer_price(inputs, cfg=looser)
    assert best == pytest.approx(10_000, abs=PRICE_PRECISION)


def test_offer_does_not_mutate_inputs(cfg):
    inputs = make_inputs()
    solve_max_offer_price(inputs, target_cash_left=5_000, cfg=cfg)
    assert inputs.purchase_price == 200_000.0
