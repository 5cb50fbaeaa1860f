from __future__ import annotations


class CalculationError(ValueError):
    """
    Base class for everything the engine reports back to the caller.

    These are field-level problems with the input snapshot, never crashes:
    the form layer shows `message` next to `field` and lets the user fix it.
    Recomputing the same snapshot always raises the same error.
    """

    code = "CALCULATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, str | None]:
        return {"code": self.code, "field": self.field, "message": str(self)}


class InvalidInput(CalculationError):
    """A numeric field is missing, non-numeric, or negative where only >= 0 makes sense."""

    code = "INVALID_INPUT"


class AmbiguousRentInput(CalculationError):
    """Both a populated rent roll and a non-zero flat monthly rent were supplied."""

    code = "AMBIGUOUS_RENT_INPUT"


class InvalidFinancingParameters(CalculationError):
    """Amortization inputs that leave the payment formula undefined."""

    code = "INVALID_FINANCING_PARAMETERS"
