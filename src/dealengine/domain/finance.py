import math

from dealengine.domain.errors import InvalidFinancingParameters

# Rates closer to zero than this are treated as interest-free (straight-line) loans.
_ZERO_RATE_EPS = 1e-12


def monthly_rate(annual_rate_percent: float) -> float:
    """Annual nominal rate on the 0-100 scale -> periodic monthly rate."""
    return annual_rate_percent / 100.0 / 12.0


def amortization_months(years: float) -> int:
    if not math.isfinite(years):
        raise InvalidFinancingParameters(f"amortization term must be finite (got {years} years)")
    n = int(round(years * 12))
    if n <= 0:
        raise InvalidFinancingParameters(
            f"amortization term must be at least one month (got {years} years)"
        )
    return n


def annuity_factor(rate_monthly: float, n_months: int) -> float:
    """
    Payment per dollar of principal for a fixed-rate, fully amortizing loan:
    r(1+r)^n / ((1+r)^n - 1)

    Linear in principal, so both payment(principal) and its inverse are a
    multiply / divide by this factor.
    """
    if n_months <= 0:
        raise InvalidFinancingParameters("amortization term must be at least one month")
    if not math.isfinite(rate_monthly) or rate_monthly <= -1.0:
        raise InvalidFinancingParameters(f"degenerate monthly rate: {rate_monthly}")

    r = rate_monthly
    if abs(r) < _ZERO_RATE_EPS:
        return 1.0 / n_months

    try:
        growth = (1 + r) ** n_months
    except OverflowError as err:
        raise InvalidFinancingParameters("amortization factor overflowed") from err

    denom = growth - 1
    if not math.isfinite(growth) or denom == 0:
        raise InvalidFinancingParameters("amortization factor is undefined for these inputs")

    factor = r * growth / denom
    if not math.isfinite(factor) or factor <= 0:
        raise InvalidFinancingParameters("amortization factor is undefined for these inputs")
    return factor


def annuity_payment(rate_monthly: float, n_months: int, principal: float) -> float:
    return principal * annuity_factor(rate_monthly, n_months)


def principal_from_payment(payment_monthly: float, rate_monthly: float, n_months: int) -> float:
    """Largest principal a given monthly payment fully amortizes."""
    return payment_monthly / annuity_factor(rate_monthly, n_months)


def monthly_mortgage_payment(principal: float, annual_rate_percent: float, years: float) -> float:
    """
    Standard fixed-rate amortization formula:
    M = P * [ r(1+r)^n / ((1+r)^n - 1) ]
    P = loan principal
    r = monthly interest rate
    n = number of payments (months)
    """
    return annuity_payment(monthly_rate(annual_rate_percent), amortization_months(years), principal)


def max_loan_for_dscr(
    noi_annual: float,
    dscr_target: float,
    annual_rate_percent: float,
    years: float,
) -> float:
    """
    Largest principal whose annual debt service keeps NOI / debt service >= target.

    Zero when NOI is non-positive: no coverage-qualified loan exists.
    """
    if not math.isfinite(dscr_target) or dscr_target <= 0:
        raise InvalidFinancingParameters(f"DSCR target must be > 0 (got {dscr_target})")

    rate = monthly_rate(annual_rate_percent)
    n_months = amortization_months(years)
    # validate the amortization inputs even when NOI short-circuits the answer
    factor = annuity_factor(rate, n_months)

    if noi_annual <= 0:
        return 0.0

    max_payment_monthly = noi_annual / dscr_target / 12.0
    return max_payment_monthly / factor
