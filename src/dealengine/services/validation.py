# src/dealengine/services/validation.py

import math
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from dealengine.domain.errors import InvalidInput
from dealengine.domain.inputs import DealInputs, Loan, RehabLineItem, RentUnit

# Fields without which there is no deal to reason about
REQUIRED_CORE_FIELDS = [
    "purchase_price",
    "arv",
]

# Top-level numeric fields. Blank strings mean "unset" (engine default applies).
NUMERIC_FIELDS = [
    "purchase_price",
    "arv",
    "rehab_budget_percent",
    "rehab_budget_absolute",
    "closing_costs_percent",
    "inspection_percent",
    "holding_percent",
    "vacancy_percent",
    "opex_percent",
    "rent_monthly",
    "other_income_monthly",
    "rehab_timeline_months",
    "property_tax",
    "insurance",
    "bridge_ltv_percent",
    "dscr_refi_ltv_percent",
    "dscr_refi_rate_percent",
    "dscr_refi_amort_years",
    "dscr_refi_target",
]

# Spellings saved records use that the camelCase rule doesn't produce
EXTRA_KEYS = {
    "opex_percent": ["opExPercent"],
    "rehab_timeline_months": ["rehabTimeline"],
    "rehab_line_items": ["rehabItems"],
    "term_years": ["term"],
}

# Nested rows: field -> numeric keys inside each row
ROW_FIELDS = {
    "rent_roll": ["rent"],
    "rehab_line_items": ["cost"],
    "loans": ["loan_amount", "interest_rate", "term_years"],
}

# Fields that default to zero rather than "unset" when blank
ZERO_WHEN_BLANK = {
    "other_income_monthly",
    "rehab_timeline_months",
    "property_tax",
    "insurance",
    "rent",
    "cost",
    "loan_amount",
    "interest_rate",
    "term_years",
}


def _keys(field_name: str) -> list[str]:
    return [field_name, to_camel(field_name)] + EXTRA_KEYS.get(field_name, [])


def _present_key(raw: dict[str, Any], field_name: str) -> str | None:
    for key in _keys(field_name):
        if key in raw:
            return key
    return None


def _finite(num: float, raw: Any, field_name: str) -> float:
    if not math.isfinite(num):
        raise InvalidInput(f"{field_name} must be a finite number (got {raw!r})", field=field_name)
    return num


def _to_num(val: Any, field_name: str) -> float | None:
    """
    Coerce values like:
      - 250000
      - "250000"
      - "250,000"
      - "$1,200"
      - "6.5%"
    into float. Percent strings stay on the 0-100 scale.
    Blank / None -> None. "nan" / "inf" are rejected.
    """
    if val is None:
        return None
    if isinstance(val, bool):
        raise InvalidInput(f"Invalid type for {field_name}: bool", field=field_name)
    if isinstance(val, (int, float)):
        return _finite(float(val), val, field_name)
    if isinstance(val, str):
        s = val.strip().replace(",", "").replace("$", "")
        if s.endswith("%"):
            s = s[:-1].strip()
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            raise InvalidInput(f"Invalid number for {field_name}: {val!r}", field=field_name)
        return _finite(num, val, field_name)
    raise InvalidInput(f"Invalid type for {field_name}: {type(val).__name__}", field=field_name)


def _clean_numbers(raw: dict[str, Any], fields: list[str], where: str = "") -> dict[str, Any]:
    cleaned = dict(raw)
    for name in fields:
        key = _present_key(raw, name)
        if key is None:
            continue
        num = _to_num(raw[key], f"{where}{name}")
        if num is None and name in ZERO_WHEN_BLANK:
            num = 0.0
        if num is not None and name == "rehab_timeline_months" and num.is_integer():
            cleaned[key] = int(num)
        else:
            cleaned[key] = num
    return cleaned


def _clean_rows(raw: dict[str, Any], field_name: str) -> dict[str, Any]:
    key = _present_key(raw, field_name)
    if key is None or raw[key] is None:
        return raw

    rows = raw[key]
    if not isinstance(rows, (list, tuple)):
        raise InvalidInput(f"{field_name} must be a list", field=field_name)

    cleaned_rows = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise InvalidInput(f"{field_name}[{i}] must be an object", field=f"{field_name}[{i}]")
        cleaned_rows.append(_clean_numbers(row, ROW_FIELDS[field_name], where=f"{field_name}[{i}]."))

    out = dict(raw)
    out[key] = cleaned_rows
    return out


_MODEL_FIELDS = [
    *DealInputs.model_fields,
    *RentUnit.model_fields,
    *RehabLineItem.model_fields,
    *Loan.model_fields,
]


def _field_for_key(key: str) -> str:
    for name in _MODEL_FIELDS:
        if key in _keys(name):
            return name
    return key


def _error_field(err: ValidationError) -> str | None:
    """First error location as a snake_case path, e.g. "loans[0].term_years"."""
    errors = err.errors()
    if not errors:
        return None
    path = ""
    for part in errors[0].get("loc", ()):
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += ("." if path else "") + _field_for_key(str(part))
    return path or None


def parse_deal_inputs(raw: dict[str, Any]) -> DealInputs:
    """
    Normalize an incoming form payload into a DealInputs snapshot.

    Responsibilities:
      - Ensure the core price/value fields exist.
      - Accept snake_case or camelCase keys.
      - Coerce numeric strings ("250,000", "$1,200", "6.5%") to floats;
        blank strings mean "not entered".
      - Map shape errors to InvalidInput so the caller can attach them to a field.
    """
    for name in REQUIRED_CORE_FIELDS:
        key = _present_key(raw, name)
        if key is None or _to_num(raw[key], name) is None:
            raise InvalidInput(f"Missing required field: {name}", field=name)

    cleaned = _clean_numbers(raw, NUMERIC_FIELDS)
    for rows_field in ROW_FIELDS:
        cleaned = _clean_rows(cleaned, rows_field)

    # Blank text in a mode picker means "use the model default"
    for mode_field in ("rehab_budget_mode", "funding_mode"):
        key = _present_key(cleaned, mode_field)
        if key is not None and (cleaned[key] is None or str(cleaned[key]).strip() == ""):
            cleaned.pop(key)

    try:
        return DealInputs.model_validate(cleaned)
    except ValidationError as err:
        field_name = _error_field(err)
        first = err.errors()[0]["msg"] if err.errors() else str(err)
        raise InvalidInput(f"Invalid value for {field_name}: {first}", field=field_name) from err
