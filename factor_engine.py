#!/usr/bin/env python3
"""
Equity Scoring Engine - Factor Engine
=====================================
Computes a composite 0-100 score per company from six sector-aware
factors (Value, Quality, Growth, Dividend, Leverage penalty, Volatility
penalty) and ranks a universe of companies by it.

Every calculator is a pure function of one record: no I/O, no shared
state, and no exceptions for missing, zero, negative, non-finite or
non-numeric inputs. Degradation is silent:

* missing / NaN / non-numeric metric  -> treated as 0
* non-positive price ratio            -> yield contribution of 0
* zero denominators                   -> IEEE +-inf / NaN (never raised)
* NaN terminal score                  -> 0

Records are any mapping with the acquisition layer's camelCase keys
(dict, pandas Series) or a validated ``schemas.CompanyMetrics``.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
import pandas as pd
import yaml
from pydantic import BaseModel

from normalizers import (
    clamp_round,
    linear_scale,
    log_scale,
    nan_to_zero,
    round_half_away,
    sigmoid_scale,
)
from schemas import (
    DEFAULT_CONFIG,
    BankQualityModel,
    DividendModel,
    FactorWeights,
    GrowthModel,
    InsuranceQualityModel,
    LeverageModel,
    QualityModels,
    ScoreResult,
    ScoringConfig,
    UniversalQualityModel,
    ValueModel,
    VolatilityModel,
)
from sectors import Sector, classify_segment

# =========================================================================
# A. Load configuration
# =========================================================================
ROOT = Path(__file__).resolve().parent
CONFIG_PATH = ROOT / "config.yaml"


def load_config(path: Path = CONFIG_PATH) -> ScoringConfig:
    """Load and validate the YAML configuration file.

    Falls back to the schema defaults when the bundled config.yaml is not
    shipped alongside the module. An explicit path must exist.
    """
    path = Path(path)
    if path == CONFIG_PATH and not path.exists():
        logging.warning(f"{path.name} not found, using built-in defaults")
        return DEFAULT_CONFIG
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    return ScoringConfig(**raw)


# =========================================================================
# B. Record access helpers
# =========================================================================
def _get(d, key: str):
    """Raw field lookup on a mapping, Series or pydantic model."""
    if isinstance(d, BaseModel):
        return getattr(d, key, None)
    try:
        return d.get(key)
    except AttributeError:
        return None


def _safe(d, key: str, default: float = 0.0) -> float:
    """Numeric field lookup. None, NaN and non-numeric values -> default."""
    v = _get(d, key)
    if v is None:
        return default
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    return default if np.isnan(f) else f


def _div(num: float, den: float) -> float:
    """Division with IEEE semantics: x/0 -> +-inf, 0/0 -> NaN."""
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return float(np.float64(num) / np.float64(den))


def _pow(base: float, exp: float) -> float:
    """Power that overflows to inf instead of raising OverflowError."""
    with np.errstate(over="ignore", invalid="ignore"):
        return float(np.power(np.float64(base), exp))


def _resolve_sector(metrics, sector) -> Sector:
    if sector is not None:
        return Sector(sector)
    return classify_segment(_get(metrics, "segment"))


# =========================================================================
# C. Value score (price ratios)
# =========================================================================
def _inverse_yield(ratio: float) -> float:
    # Negative earnings/book/EBIT would flip the sign of the yield
    return _div(1.0, ratio) * 100 if ratio > 0 else 0.0


def compute_value_score(metrics, model: ValueModel = DEFAULT_CONFIG.value) -> float:
    """Earnings, book and EBIT yields, square-root scaled and log-mapped.

    Each non-positive ratio cuts the averaged score by
    ``model.negative_penalty``. The result is not rounded; the aggregator
    rounds it for output.
    """
    pe = _safe(metrics, "priceToEarnings")
    pb = _safe(metrics, "priceToBook")
    ev_ebit = _safe(metrics, "evToEbit")

    earnings = np.sqrt(_inverse_yield(pe)) * model.earnings_coef
    book = np.sqrt(_inverse_yield(pb)) * model.book_coef
    ebit = np.sqrt(_inverse_yield(ev_ebit)) * model.ebit_coef

    score = (earnings + book + ebit) / 3
    negative_count = sum(1 for r in (pe, pb, ev_ebit) if r <= 0)
    score *= 1 - negative_count * model.negative_penalty

    return nan_to_zero(log_scale(score * 2, model.log_floor, model.log_ceiling))


# =========================================================================
# D. Quality score (sector dispatch)
# =========================================================================
def _weighted_score(pairs) -> float:
    """Sum of score*weight over (score, weight) pairs, clamped to 0-100."""
    total = 0.0
    with np.errstate(invalid="ignore", over="ignore"):
        for score, weight in pairs:
            total += score * weight
    return nan_to_zero(clamp_round(total, 0, 100))


def _sigmoid(value: float, params) -> float:
    return sigmoid_scale(value, params.midpoint, params.steepness)


def compute_universal_quality(metrics,
                              model: UniversalQualityModel = DEFAULT_CONFIG.quality.universal) -> float:
    roic = _safe(metrics, "returnOnInvestedCapital")
    roe = _safe(metrics, "returnOnEquity")
    roa = _safe(metrics, "returnOnAssets")
    margin = _safe(metrics, "ebitMargin")

    # A high ROE cannot rescue a company losing money on invested capital
    # or on more than one of ROE / ROA / EBIT margin.
    n_negative = sum(1 for v in (roe, roa, margin) if v < 0)
    if roic < 0 or n_negative > 1:
        logging.debug(f"Universal quality gated to 0 (roic={roic}, "
                      f"negative profitability metrics={n_negative})")
        return 0.0

    leverage_factor = min(1.0, _safe(metrics, "netDebtToEbitda") / model.leverage_divisor)
    w = model.weights
    return _weighted_score((
        (_sigmoid(roic, model.roic), w.roic),
        (_sigmoid(roe, model.roe), w.roe * (1 - leverage_factor)),
        (_sigmoid(roa, model.roa), w.roa),
        (_sigmoid(margin, model.ebit_margin), w.ebit_margin),
    ))


def compute_bank_quality(metrics,
                         model: BankQualityModel = DEFAULT_CONFIG.quality.bank) -> float:
    capital = _safe(metrics, "equityToAssets") * 100
    w = model.weights
    return _weighted_score((
        (_sigmoid(_safe(metrics, "returnOnEquity"), model.roe), w.roe),
        (_sigmoid(_safe(metrics, "returnOnAssets"), model.roa), w.roa),
        (_sigmoid(_safe(metrics, "netMargin"), model.net_margin), w.net_margin),
        (_sigmoid(capital, model.capital), w.capital),
    ))


def compute_insurance_quality(metrics,
                              model: InsuranceQualityModel = DEFAULT_CONFIG.quality.insurance) -> float:
    lo, hi = model.cash_buffer_bounds
    raw_buffer = _div(-_safe(metrics, "netDebt"), _safe(metrics, "totalAssets")) * 100
    # 0/0 (no balance sheet data) counts as no cash buffer
    cash_buffer = nan_to_zero(np.clip(raw_buffer, lo, hi))
    capital = _safe(metrics, "equityToAssets") * 100
    w = model.weights
    return _weighted_score((
        (_sigmoid(_safe(metrics, "returnOnInvestedCapital"), model.roic), w.roic),
        (_sigmoid(_safe(metrics, "returnOnEquity"), model.roe), w.roe),
        (_sigmoid(_safe(metrics, "returnOnAssets"), model.roa), w.roa),
        (_sigmoid(capital, model.capital), w.capital),
        (_sigmoid(cash_buffer, model.cash_buffer), w.cash_buffer),
    ))


def compute_quality_score(metrics, sector: Sector | None = None,
                          models: QualityModels = DEFAULT_CONFIG.quality) -> float:
    """Profitability score using the bank, insurance or universal model.

    ``sector`` is classified from the record's segment when not given.
    """
    sector = _resolve_sector(metrics, sector)
    if sector is Sector.BANK:
        return compute_bank_quality(metrics, models.bank)
    if sector is Sector.INSURANCE:
        return compute_insurance_quality(metrics, models.insurance)
    return compute_universal_quality(metrics, models.universal)


# =========================================================================
# E. Growth score (5-year CAGRs)
# =========================================================================
def compute_growth_score(metrics, model: GrowthModel = DEFAULT_CONFIG.growth) -> float:
    profit = _safe(metrics, "profitCagr5y")
    revenue = _safe(metrics, "revenueCagr5y")

    revenue_score = linear_scale(revenue, model.cagr_floor, model.cagr_ceiling)
    profit_score = linear_scale(profit, model.cagr_floor, model.cagr_ceiling)
    base = revenue_score * model.revenue_weight + profit_score * model.profit_weight

    if revenue < 0 and profit < 0:
        penalty = model.dual_negative_penalty
    elif revenue < 0 or profit < 0:
        penalty = model.single_negative_penalty
    else:
        penalty = 0

    return nan_to_zero(round_half_away(np.clip(base - penalty, 0, 100)))


# =========================================================================
# F. Dividend score (yield x payout safety)
# =========================================================================
def compute_dividend_score(metrics, model: DividendModel = DEFAULT_CONFIG.dividend) -> float:
    dy = _safe(metrics, "dividendYield")
    payout = _safe(metrics, "payoutRatio")

    with np.errstate(invalid="ignore", over="ignore"):
        yield_score = np.minimum(dy * model.yield_multiplier, model.yield_cap)
        # Payout capped below 100 keeps the root argument positive
        safety = np.sqrt((100 - np.minimum(payout, model.payout_cap)) / 100)
        score = np.clip(yield_score * safety * 2, 0, 100)

    return nan_to_zero(round_half_away(score))


# =========================================================================
# G. Leverage penalty (sector dispatch)
# =========================================================================
def universal_leverage_penalty(metrics, model: LeverageModel = DEFAULT_CONFIG.leverage) -> float:
    """Raw penalty in [-10, 40] from net debt ratios above fixed thresholds."""
    excess_equity = max(0.0, _safe(metrics, "netDebtToEquity") - model.equity_threshold)
    excess_ebitda = max(0.0, _safe(metrics, "netDebtToEbitda") - model.ebitda_threshold)
    excess_ebit = max(0.0, _safe(metrics, "netDebtToEbit") - model.ebit_threshold)

    debt_score = np.sqrt(
        _pow(excess_equity, model.equity_exponent)
        + _pow(excess_ebitda, model.ebitda_exponent)
        + _pow(excess_ebit, model.ebit_exponent)
    )

    net_debt = _safe(metrics, "netDebt")
    if net_debt < 0:
        # inf/inf (unbounded cash and equity) gives no bonus
        cash_bonus = nan_to_zero(np.maximum(
            model.cash_bonus_floor,
            _div(net_debt, _safe(metrics, "equity")) * model.cash_bonus_factor))
    else:
        cash_bonus = 0.0

    with np.errstate(invalid="ignore", over="ignore"):
        penalty = np.minimum(model.penalty_cap,
                             model.penalty_scale * _pow(debt_score, model.penalty_curve))
        penalty = np.maximum(model.penalty_floor, penalty - cash_bonus)

    return round_half_away(penalty)


def bank_leverage_penalty(metrics, model: LeverageModel = DEFAULT_CONFIG.leverage) -> float:
    """Raw penalty from equity/assets against the Basel III 8% minimum.

    Capped at 25 for undercapitalised banks and floored at -10, so any bank
    above 9% equity/assets lands on the floor.
    """
    tier1_proxy = _div(_safe(metrics, "equity"), _safe(metrics, "totalAssets"))
    penalty = np.minimum(model.bank_penalty_cap,
                         (model.bank_min_capital - tier1_proxy) * model.bank_sensitivity)
    return round_half_away(np.maximum(model.penalty_floor, penalty))


def insurance_leverage_penalty(metrics, model: LeverageModel = DEFAULT_CONFIG.leverage) -> float:
    # No insurance leverage model yet: neutral raw penalty.
    return 0.0


def compute_leverage_penalty(metrics, sector: Sector | None = None,
                             model: LeverageModel = DEFAULT_CONFIG.leverage) -> float:
    """Leverage penalty remapped onto 0-100: ``(raw + 10) * 2``."""
    sector = _resolve_sector(metrics, sector)
    if sector is Sector.BANK:
        raw = bank_leverage_penalty(metrics, model)
    elif sector is Sector.INSURANCE:
        raw = insurance_leverage_penalty(metrics, model)
    else:
        raw = universal_leverage_penalty(metrics, model)

    normalized = round_half_away((raw - model.penalty_floor) * model.normalize_scale)
    return nan_to_zero(np.clip(normalized, 0, 100))


# =========================================================================
# H. Volatility penalty
# =========================================================================
def compute_volatility_penalty(metrics, model: VolatilityModel = DEFAULT_CONFIG.volatility) -> float:
    vol = _safe(metrics, "volatility12M")
    if not vol > 0:
        vol = _safe(metrics, "volatilityTotal")
    if not vol > 0:
        return 0.0

    score = log_scale(vol, model.min_vol, model.max_vol)
    return nan_to_zero(round_half_away(np.clip(score, 0, 100)))


# =========================================================================
# I. Composite score
# =========================================================================
def compute_composite(metrics, weights: FactorWeights | None = None,
                      config: ScoringConfig | None = None) -> ScoreResult:
    """Weighted composite of the six factors for one record.

    The sector is classified once and shared by the quality and leverage
    calculators. Penalties enter the sum raw (with negative weights) and
    are reported inverted as ``low_leverage`` / ``low_vol``.
    """
    config = config or DEFAULT_CONFIG
    weights = weights or config.factor_weights
    sector = classify_segment(_get(metrics, "segment"))

    components = {
        "value": compute_value_score(metrics, config.value),
        "quality": compute_quality_score(metrics, sector, config.quality),
        "growth": compute_growth_score(metrics, config.growth),
        "dividend": compute_dividend_score(metrics, config.dividend),
        "leverage_penalty": compute_leverage_penalty(metrics, sector, config.leverage),
        "volatility_penalty": compute_volatility_penalty(metrics, config.volatility),
    }

    total = 0.0
    for name, weight in weights.ordered():
        total += components[name] * weight
    total = min(100.0, nan_to_zero(np.maximum(0.0, total)))

    return ScoreResult(
        value=round_half_away(components["value"]),
        quality=round_half_away(components["quality"]),
        growth=round_half_away(components["growth"]),
        dividend=round_half_away(components["dividend"]),
        low_leverage=round_half_away(100 - components["leverage_penalty"]),
        low_vol=round_half_away(100 - components["volatility_penalty"]),
        total=round_half_away(total),
    )


# =========================================================================
# J. Batch scoring, data-quality audit and ranking
# =========================================================================
SCORE_COLS = [
    "valueScore", "qualityScore", "growthScore", "dividendScore",
    "lowLeverageScore", "lowVolScore", "totalScore",
]

# Inputs each sector's formulas actually read. Volatility is audited on
# the 12-month field only; the total-period field is a fallback.
CORE_FIELDS = {
    Sector.UNIVERSAL: [
        "priceToEarnings", "priceToBook", "evToEbit",
        "returnOnInvestedCapital", "returnOnEquity", "returnOnAssets", "ebitMargin",
        "netDebtToEquity", "netDebtToEbitda", "netDebtToEbit", "netDebt", "equity",
        "dividendYield", "payoutRatio", "profitCagr5y", "revenueCagr5y",
        "volatility12M",
    ],
    Sector.BANK: [
        "priceToEarnings", "priceToBook", "evToEbit",
        "returnOnEquity", "returnOnAssets", "netMargin", "equityToAssets",
        "equity", "totalAssets",
        "dividendYield", "payoutRatio", "profitCagr5y", "revenueCagr5y",
        "volatility12M",
    ],
    Sector.INSURANCE: [
        "priceToEarnings", "priceToBook", "evToEbit",
        "returnOnInvestedCapital", "returnOnEquity", "returnOnAssets",
        "equityToAssets", "netDebt", "totalAssets",
        "dividendYield", "payoutRatio", "profitCagr5y", "revenueCagr5y",
        "volatility12M",
    ],
}


def audit_metrics(metrics, sector: Sector | None = None) -> list:
    """Return the core fields that are missing or non-finite for a record."""
    sector = _resolve_sector(metrics, sector)
    gaps = []
    for key in CORE_FIELDS[sector]:
        try:
            v = float(_get(metrics, key))
        except (TypeError, ValueError):
            gaps.append(key)
            continue
        if not np.isfinite(v):
            gaps.append(key)
    return gaps


def score_records(records, config: ScoringConfig = DEFAULT_CONFIG,
                  max_workers: int | None = None) -> list:
    """Score a sequence of records, returning ScoreResults in input order.

    Calculators share no state, so records may be scored on a thread pool;
    ``pool.map`` preserves input order.
    """
    records = list(records)
    if max_workers and max_workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(lambda r: compute_composite(r, config=config), records))
    return [compute_composite(r, config=config) for r in records]


def rank_scores(df: pd.DataFrame, col: str = "totalScore") -> pd.DataFrame:
    """Ranked copy sorted by ``col`` descending; ties keep their input order."""
    df = df.copy()
    if df.empty:
        df["Rank"] = pd.Series(dtype=int)
        return df
    df["Rank"] = df[col].rank(ascending=False, method="min").astype(int)
    return df.sort_values("Rank", kind="stable").reset_index(drop=True)


def score_universe(df: pd.DataFrame, config: ScoringConfig = DEFAULT_CONFIG,
                   ctx=None, max_workers: int | None = None) -> pd.DataFrame:
    """Score every row of ``df`` and return a ranked copy with score columns.

    Adds SCORE_COLS, ``Sector_Model`` (the variant used for quality and
    leverage), ``_missing_metrics`` (count of audited gaps) and ``Rank``.
    """
    log = ctx.log if ctx is not None else logging.getLogger("scoring")
    df = df.copy()
    if df.empty:
        for col in SCORE_COLS + ["Sector_Model", "_missing_metrics"]:
            df[col] = pd.Series(dtype=float)
        return rank_scores(df)

    records = df.to_dict(orient="records")
    sectors = [classify_segment(r.get("segment")) for r in records]
    log.info(f"Scoring {len(records)} records", extra={"phase": "score", "count": len(records)})
    for sector, n in pd.Series([s.value for s in sectors]).value_counts().items():
        log.info(f"  {sector}: {n} records", extra={"phase": "score", "step": "classify",
                                                    "sector": sector, "count": int(n)})

    n_missing = []
    for rec, sector in zip(records, sectors):
        gaps = audit_metrics(rec, sector)
        n_missing.append(len(gaps))
        if gaps:
            ticker = rec.get("ticker", "?")
            log.debug(f"{ticker}: {len(gaps)} core metrics missing, scored as 0",
                      extra={"ticker": ticker, "metric": ",".join(gaps),
                             "sector": sector.value})

    results = score_records(records, config, max_workers)
    scores = pd.DataFrame([r.as_columns() for r in results], index=df.index)
    for col in SCORE_COLS:
        df[col] = scores[col]
    df["Sector_Model"] = [s.value for s in sectors]
    df["_missing_metrics"] = n_missing

    df = rank_scores(df)
    log.info("Scoring complete", extra={"phase": "score", "step": "rank", "count": len(df)})
    return df
