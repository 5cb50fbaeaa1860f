# tests/test_non_finite_inputs.py
import math

import pytest
from pydantic import ValidationError

from dealengine.domain.errors import InvalidFinancingParameters, InvalidInput
from dealengine.domain.finance import amortization_months, monthly_mortgage_payment
from dealengine.domain.financing import existing_debt_service
from dealengine.domain.inputs import DealInputs
from dealengine.services.calculator import compute_deal_metrics
from dealengine.services.validation import _to_num, parse_deal_inputs
from fixtures.deals import duplex_brrrr_payload, make_inputs

# Every optional percent / refinance field the engine falls back to a default for
DEFAULTED_FIELDS = [
    "vacancy_percent",
    "opex_percent",
    "holding_percent",
    "closing_costs_percent",
    "inspection_percent",
    "bridge_ltv_percent",
    "dscr_refi_ltv_percent",
    "dscr_refi_rate_percent",
    "dscr_refi_amort_years",
    "dscr_refi_target",
]

NON_FINITE = ["nan", "inf", "-inf"]


@pytest.mark.parametrize("raw", ["nan", "NaN", "inf", "-Infinity", "nan%", float("nan"), float("inf")])
def test_to_num_rejects_non_finite(raw):
    with pytest.raises(InvalidInput) as exc:
        _to_num(raw, "vacancy_percent")
    assert exc.value.field == "vacancy_percent"


@pytest.mark.parametrize("value", NON_FINITE)
@pytest.mark.parametrize("name", DEFAULTED_FIELDS)
def test_form_payload_rejects_non_finite(name, value):
    raw = duplex_brrrr_payload()
    raw[name] = value
    with pytest.raises(InvalidInput) as exc:
        parse_deal_inputs(raw)
    assert exc.value.field == name


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_form_payload_rejects_non_finite_json_numbers(value):
    raw = duplex_brrrr_payload()
    raw["purchase_price"] = value
    with pytest.raises(InvalidInput) as exc:
        parse_deal_inputs(raw)
    assert exc.value.field == "purchase_price"


def test_non_finite_loan_row_is_rejected_with_row_path():
    raw = duplex_brrrr_payload()
    raw["loans"] = [{"loan_amount": 10_000, "interest_rate": "nan", "term_years": 10}]
    with pytest.raises(InvalidInput) as exc:
        parse_deal_inputs(raw)
    assert exc.value.field == "loans[0].interest_rate"


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_model_rejects_non_finite(value):
    with pytest.raises(ValidationError):
        DealInputs.model_validate({**duplex_brrrr_payload(), "vacancy_percent": value})


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
@pytest.mark.parametrize("name", [*DEFAULTED_FIELDS, "rehab_budget_absolute", "purchase_price"])
def test_engine_rejects_non_finite(cfg, name, value):
    # model_copy skips validation, so this reaches the stages directly
    inputs = make_inputs().model_copy(update={name: value})
    with pytest.raises(InvalidInput) as exc:
        compute_deal_metrics(inputs, cfg)
    assert exc.value.field == name


@pytest.mark.parametrize("years", [float("nan"), float("inf")])
def test_amortization_months_requires_finite_term(years):
    with pytest.raises(InvalidFinancingParameters):
        amortization_months(years)
    with pytest.raises(InvalidFinancingParameters):
        monthly_mortgage_payment(100_000, 7, years)


def test_capital_stack_non_finite_rate_names_row():
    inputs = make_inputs(loans=[{"loan_amount": 10_000, "interest_rate": 5, "term_years": 10}])
    bad_loan = inputs.loans[0].model_copy(update={"interest_rate": float("nan")})
    with pytest.raises(InvalidInput) as exc:
        existing_debt_service(inputs.model_copy(update={"loans": (bad_loan,)}))
    assert exc.value.field == "loans[0].interest_rate"


def test_capital_stack_infinite_term_names_row():
    inputs = make_inputs(loans=[{"loan_amount": 10_000, "interest_rate": 5, "term_years": 10}])
    bad_loan = inputs.loans[0].model_copy(update={"term_years": math.inf})
    with pytest.raises(InvalidFinancingParameters) as exc:
        existing_debt_service(inputs.model_copy(update={"loans": (bad_loan,)}))
    assert exc.value.field == "loans[0].term_years"


@pytest.mark.parametrize("value", NON_FINITE)
def test_metrics_endpoint_rejects_non_finite_with_400(client, value):
    payload = duplex_brrrr_payload()
    payload["dscr_refi_ltv_percent"] = value

    r = client.post("/metrics", json=payload)
    assert r.status_code == 400, r.text
    detail = r.json()["detail"]
    assert detail["code"] == "INVALID_INPUT"
    assert detail["field"] == "dscr_refi_ltv_percent"
