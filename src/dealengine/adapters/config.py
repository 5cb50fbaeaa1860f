# src/dealengine/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # Underwriting defaults, used when the form leaves a percentage blank.
    # All percentages are on the 0-100 scale.
    DEFAULT_VACANCY_PCT: float = Field(default=5.0)
    DEFAULT_OPEX_PCT: float = Field(default=35.0)
    DEFAULT_CLOSING_COSTS_PCT: float = Field(default=3.0)
    DEFAULT_INSPECTION_PCT: float = Field(default=1.0)
    DEFAULT_HOLDING_PCT: float = Field(default=1.5)  # per month, of purchase price
    DEFAULT_BRIDGE_LTV_PCT: float = Field(default=85.0)

    # -----------------------------
    # DSCR refinance defaults
    # -----------------------------
    DEFAULT_DSCR_REFI_LTV_PCT: float = Field(default=75.0)
    DEFAULT_DSCR_REFI_RATE_PCT: float = Field(default=7.25)
    DEFAULT_DSCR_REFI_AMORT_YEARS: int = Field(default=30)
    DEFAULT_DSCR_REFI_TARGET: float = Field(default=1.20)

    # Cash left in the deal at or below this counts as an "infinite return" BRRRR
    INFINITE_RETURN_TOLERANCE: float = Field(default=100.0)

    # Max-offer solver
    MAX_OFFER_TARGET_CASH_LEFT: float = Field(default=5000.0)

    model_config = SettingsConfigDict(
        env_prefix="DEALENGINE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        allow_inf_nan=False,
    )

    @field_validator(
        "DEFAULT_VACANCY_PCT",
        "DEFAULT_OPEX_PCT",
        "DEFAULT_CLOSING_COSTS_PCT",
        "DEFAULT_INSPECTION_PCT",
        "DEFAULT_HOLDING_PCT",
        "DEFAULT_BRIDGE_LTV_PCT",
        "DEFAULT_DSCR_REFI_LTV_PCT",
        "DEFAULT_DSCR_REFI_RATE_PCT",
        mode="before",
    )
    @classmethod
    def _to_non_negative_percent(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except (TypeError, ValueError) as err:
            raise ValueError("percentage must be numeric or percent-like") from err
        if f < 0:
            raise ValueError("percentage must be non-negative")
        return f

    @field_validator("DEFAULT_DSCR_REFI_TARGET", mode="before")
    @classmethod
    def _dscr_positive(cls, v: Any) -> Any:
        f = float(v)
        if f <= 0:
            raise ValueError("DEFAULT_DSCR_REFI_TARGET must be > 0")
        return f

    @field_validator("DEFAULT_DSCR_REFI_AMORT_YEARS", mode="before")
    @classmethod
    def _amort_positive(cls, v: Any) -> Any:
        n = int(v)
        if n <= 0:
            raise ValueError("DEFAULT_DSCR_REFI_AMORT_YEARS must be > 0")
        return n


config = AppConfig()
