from __future__ import annotations

from dealengine.adapters.config import AppConfig, config
from dealengine.adapters.logging_utils import get_logger
from dealengine.domain.inputs import DealInputs
from dealengine.services.calculator import compute_deal_metrics

logger = get_logger(__name__)

MAX_ITERATIONS = 35
PRICE_PRECISION = 100.0   # stop once the bracket is narrower than this ($)
MIN_PRICE = 1000.0
ARV_CEILING_RATIO = 0.98  # never search above 98% of ARV (unless already priced above it)


def solve_max_offer_price(
    inputs: DealInputs,
    target_cash_left: float | None = None,
    cfg: AppConfig | None = None,
) -> float | None:
    """
    Highest purchase price that leaves at most `target_cash_left` of investor
    capital in the deal, found by bisection.

    Cash left in is what stays in after the refinance for the DSCR track, or
    the full cash required at close otherwise. Returns None when even the
    floor price misses the target.
    """
    cfg = cfg or config
    target = cfg.MAX_OFFER_TARGET_CASH_LEFT if target_cash_left is None else target_cash_left

    low = MIN_PRICE
    high = max(inputs.arv * ARV_CEILING_RATIO, inputs.purchase_price, MIN_PRICE)
    best: float | None = None

    for _ in range(MAX_ITERATIONS):
        mid = (low + high) / 2.0
        trial = inputs.model_copy(update={"purchase_price": mid})
        metrics = compute_deal_metrics(trial, cfg)

        if metrics.cash_left_in <= target:
            best = mid
            low = mid
        else:
            high = mid

        if high - low < PRICE_PRECISION:
            break

    logger.debug(
        "max_offer_solved",
        extra={"context": {"target_cash_left": target, "max_offer_price": best}},
    )
    return best
