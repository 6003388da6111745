"""
Valuation-to-Quality Ratio (VQR) screen.

VQR relates what the market pays for operating profit to how well the
company turns invested capital into it:

    VQR    = (price / EBIT) * 100 / ROIC
    PE_ROE = (price / earnings) * 100 / ROE

Lower is better for both. A ratio is only defined when both inputs are
positive; otherwise it is None and the company drops out of the ranking.
"""

import pandas as pd

from factor_engine import _get, _safe
from normalizers import round_half_away

VQR_COLS = ["ticker", "PB", "EV_EBIT", "PE", "ROIC", "ROE", "VQR", "PE_ROE"]


def _ratio(price_multiple: float, profitability: float):
    if price_multiple > 0 and profitability > 0:
        return round_half_away(price_multiple * 100 / profitability)
    return None


def compute_vqr(metrics) -> dict:
    """VQR and PE/ROE for one record, alongside the inputs they used."""
    ev_ebit = _safe(metrics, "priceToEbit")
    roic = _safe(metrics, "returnOnInvestedCapital")
    pe = _safe(metrics, "priceToEarnings")
    roe = _safe(metrics, "returnOnEquity")
    return {
        "ticker": _get(metrics, "ticker"),
        "PB": _safe(metrics, "priceToBook"),
        "EV_EBIT": ev_ebit,
        "PE": pe,
        "ROIC": roic,
        "ROE": roe,
        "VQR": _ratio(ev_ebit, roic),
        "PE_ROE": _ratio(pe, roe),
    }


def rank_by_vqr(records) -> pd.DataFrame:
    """Companies with a valid VQR, positive P/B and PE_ROE, cheapest first.

    Ties on VQR keep their input order.
    """
    rows = [compute_vqr(r) for r in records]
    df = pd.DataFrame(rows, columns=VQR_COLS)
    if df.empty:
        return df

    vqr = pd.to_numeric(df["VQR"], errors="coerce")
    pe_roe = pd.to_numeric(df["PE_ROE"], errors="coerce")
    keep = (vqr > 0) & (df["PB"] > 0) & (pe_roe > 0)
    df = df[keep].copy()
    df["VQR"] = vqr[keep]
    df["PE_ROE"] = pe_roe[keep]
    return df.sort_values("VQR", kind="stable").reset_index(drop=True)
