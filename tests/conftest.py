# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from dealengine.adapters.config import AppConfig
from dealengine.api.http import app  # ensures imports resolve; run tests from repo root


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture
def cfg():
    """Explicit defaults so tests don't depend on the environment."""
    return AppConfig(
        DEFAULT_VACANCY_PCT=5.0,
        DEFAULT_OPEX_PCT=35.0,
        DEFAULT_CLOSING_COSTS_PCT=3.0,
        DEFAULT_INSPECTION_PCT=1.0,
        DEFAULT_HOLDING_PCT=1.5,
        DEFAULT_BRIDGE_LTV_PCT=85.0,
        DEFAULT_DSCR_REFI_LTV_PCT=75.0,
        DEFAULT_DSCR_REFI_RATE_PCT=7.25,
        DEFAULT_DSCR_REFI_AMORT_YEARS=30,
        DEFAULT_DSCR_REFI_TARGET=1.20,
        INFINITE_RETURN_TOLERANCE=100.0,
        MAX_OFFER_TARGET_CASH_LEFT=5000.0,
    )
