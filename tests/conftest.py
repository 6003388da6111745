"""Shared fixtures for equity scoring engine tests."""

import sys
from pathlib import Path

import pandas as pd
import pytest

# Ensure project root is importable
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from factor_engine import load_config  # noqa: E402


@pytest.fixture
def cfg():
    """Load and validate the production config.yaml."""
    return load_config(ROOT / "config.yaml")


@pytest.fixture
def industrial_record():
    """Profitable, moderately leveraged industrial company."""
    return {
        "ticker": "WEGE3", "segment": "Motores, Compressores e Outros",
        "priceToEarnings": 10, "priceToBook": 1, "evToEbit": 5, "priceToEbit": 6,
        "returnOnInvestedCapital": 18, "returnOnEquity": 20,
        "returnOnAssets": 12, "ebitMargin": 15, "netMargin": 11,
        "netDebtToEquity": 0.8, "netDebtToEbitda": 1.2, "netDebtToEbit": 1.9,
        "netDebt": 5e8, "equity": 4e9, "totalAssets": 9e9,
        "dividendYield": 6, "payoutRatio": 50,
        "profitCagr5y": 10.03, "revenueCagr5y": 8.07,
        "volatility12M": 30, "volatilityTotal": 35,
    }


@pytest.fixture
def bank_record():
    """Adequately capitalised bank (8% equity/assets)."""
    return {
        "ticker": "ITUB4", "segment": "Bancos",
        "priceToEarnings": 8, "priceToBook": 1.5, "evToEbit": 6,
        "returnOnEquity": 14, "returnOnAssets": 1.4, "netMargin": 12,
        "equityToAssets": 0.09, "equity": 8e9, "totalAssets": 1e11,
        "dividendYield": 7, "payoutRatio": 60,
        "profitCagr5y": 9, "revenueCagr5y": 7,
        "volatility12M": 25,
    }


@pytest.fixture
def insurer_record():
    """High-return insurer holding net cash."""
    return {
        "ticker": "BBSE3", "segment": "Seguradoras",
        "priceToEarnings": 9, "priceToBook": 3, "evToEbit": 7,
        "returnOnInvestedCapital": 25, "returnOnEquity": 30,
        "returnOnAssets": 15, "equityToAssets": 0.35,
        "netDebt": -2e9, "totalAssets": 10e9, "equity": 3.5e9,
        "dividendYield": 9, "payoutRatio": 80,
        "profitCagr5y": 12, "revenueCagr5y": 10,
        "volatility12M": 22,
    }


@pytest.fixture
def sample_universe_df(industrial_record, bank_record, insurer_record):
    """A small mixed-sector universe DataFrame, one row with sparse data."""
    return pd.DataFrame([
        industrial_record,
        bank_record,
        insurer_record,
        {"ticker": "OIBR3", "segment": "Telecomunicações",
         "priceToEarnings": -2, "priceToBook": -0.5, "evToEbit": -8,
         "returnOnInvestedCapital": -15, "returnOnEquity": -40,
         "returnOnAssets": -5, "ebitMargin": -12,
         "netDebtToEquity": 2.5, "netDebtToEbitda": 3, "netDebtToEbit": 4,
         "netDebt": 2e9, "equity": 1e9,
         "profitCagr5y": -5, "revenueCagr5y": -3,
         "volatility12M": 80},
        {"ticker": "NEWC3", "segment": None},
    ])
