from dealengine.domain.inputs import (
    DealInputs,
    FixedBudget,
    PercentOfPurchase,
    rehab_budget_of,
    require_non_negative,
)


def resolve_rehab(inputs: DealInputs) -> float:
    """
    Collapse the percent-vs-dollar rehab entry into one dollar estimate.

    Only the field matching `rehab_budget_mode` is read; the other one may
    hold a stale value from the form and is ignored. Line items are detail
    for the scope of work, not the budget.
    """
    budget = rehab_budget_of(inputs)

    if isinstance(budget, PercentOfPurchase):
        price = require_non_negative(inputs.purchase_price, "purchase_price")
        return price * budget.percent / 100.0
    if isinstance(budget, FixedBudget):
        return budget.amount

    raise TypeError(f"unknown rehab budget variant: {budget!r}")


def line_items_total(inputs: DealInputs) -> float:
    return sum(item.cost for item in inputs.rehab_line_items)
