#!/usr/bin/env python3
"""
Typed schemas for the equity scoring engine.

Provides Pydantic models for the input record, the per-record score and
the scoring configuration (factor weights plus the per-factor model
tables). Config models are frozen so a loaded configuration cannot drift
while a batch is being scored.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _coerce_number(v):
    """Map non-numeric input (``"N/A"``, ``"-"``, objects) to None."""
    if v is None or isinstance(v, (int, float)):
        return v
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


class CompanyMetrics(BaseModel):
    """Schema for one company record handed over by the acquisition layer.

    Every metric is optional. Non-numeric values are coerced to None
    rather than rejected, so validating a record never raises for a
    malformed metric. Percent-type fields (ROE, margins, yields, CAGRs,
    volatility) are expressed in percent, not fractions.
    """
    ticker: Optional[str] = None
    segment: Optional[str] = None

    # Price ratios
    priceToEarnings: Optional[float] = None
    priceToBook: Optional[float] = None
    evToEbit: Optional[float] = None
    priceToEbit: Optional[float] = None

    # Profitability
    returnOnEquity: Optional[float] = None
    returnOnInvestedCapital: Optional[float] = None
    returnOnAssets: Optional[float] = None
    ebitMargin: Optional[float] = None
    netMargin: Optional[float] = None

    # Balance sheet / leverage
    equityToAssets: Optional[float] = None
    netDebtToEquity: Optional[float] = None
    netDebtToEbitda: Optional[float] = None
    netDebtToEbit: Optional[float] = None
    grossDebtToEquity: Optional[float] = None
    totalAssets: Optional[float] = None
    equity: Optional[float] = None
    netDebt: Optional[float] = None

    # Dividends
    dividendYield: Optional[float] = None
    payoutRatio: Optional[float] = None

    # Growth
    profitCagr5y: Optional[float] = None
    revenueCagr5y: Optional[float] = None

    # Market risk
    volatility12M: Optional[float] = None
    volatilityTotal: Optional[float] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def non_numeric_to_none(cls, v, info):
        if info.field_name in ("ticker", "segment"):
            return v if isinstance(v, str) else None
        return _coerce_number(v)


class ScoreResult(BaseModel):
    """Composite score for a single record. All values rounded to 2 dp."""
    value: float = Field(ge=0, le=100)
    quality: float = Field(ge=0, le=100)
    growth: float = Field(ge=0, le=100)
    dividend: float = Field(ge=0, le=100)
    low_leverage: float = Field(ge=0, le=100)
    low_vol: float = Field(ge=0, le=100)
    total: float = Field(ge=0, le=100)

    model_config = ConfigDict(frozen=True)

    def as_columns(self) -> dict:
        """Column names used when scores are merged back onto a record."""
        return {
            "valueScore": self.value,
            "qualityScore": self.quality,
            "growthScore": self.growth,
            "dividendScore": self.dividend,
            "lowLeverageScore": self.low_leverage,
            "lowVolScore": self.low_vol,
            "totalScore": self.total,
        }


# =========================================================================
# Factor weights
# =========================================================================

class FactorWeights(BaseModel):
    """Aggregation weights, in the order the weighted sum is built.

    The four positive factors sum to 1; the two penalty weights are
    negative and applied to the raw (non-inverted) penalties.
    """
    value: float = 0.5
    quality: float = 0.3
    growth: float = 0.15
    dividend: float = 0.05
    leverage_penalty: float = -0.2
    volatility_penalty: float = -0.3

    model_config = ConfigDict(frozen=True, validate_default=True)

    @field_validator("value", "quality", "growth", "dividend")
    @classmethod
    def weight_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Weight must be >= 0, got {v}")
        return v

    @field_validator("leverage_penalty", "volatility_penalty")
    @classmethod
    def penalty_non_positive(cls, v: float) -> float:
        if v > 0:
            raise ValueError(f"Penalty weight must be <= 0, got {v}")
        return v

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "FactorWeights":
        total = self.value + self.quality + self.growth + self.dividend
        if abs(total - 1) > 0.005:
            raise ValueError(
                f"Factor weights must sum to 1 (got {total})"
            )
        return self

    def ordered(self) -> tuple:
        """(name, weight) pairs in declaration order."""
        return (
            ("value", self.value),
            ("quality", self.quality),
            ("growth", self.growth),
            ("dividend", self.dividend),
            ("leverage_penalty", self.leverage_penalty),
            ("volatility_penalty", self.volatility_penalty),
        )


# =========================================================================
# Per-factor model tables
# =========================================================================

class SigmoidParams(BaseModel):
    midpoint: float
    steepness: float = Field(0.3, gt=0)

    model_config = ConfigDict(frozen=True, validate_default=True)


class _WeightTableBase(BaseModel):
    """Base for quality weight tables. Validates all weights >= 0."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    @model_validator(mode="after")
    def weights_non_negative(self) -> "_WeightTableBase":
        for name, v in self.__dict__.items():
            if isinstance(v, (int, float)) and v < 0:
                raise ValueError(f"Quality weight '{name}' must be >= 0, got {v}")
        return self


class UniversalQualityWeights(_WeightTableBase):
    roic: float = 0.4
    roe: float = 0.25        # before the leverage discount
    roa: float = 0.2
    ebit_margin: float = 0.15


class BankQualityWeights(_WeightTableBase):
    roe: float = 0.35
    roa: float = 0.25
    net_margin: float = 0.2
    capital: float = 0.2


class InsuranceQualityWeights(_WeightTableBase):
    roic: float = 0.35
    roe: float = 0.25
    roa: float = 0.15
    capital: float = 0.15
    cash_buffer: float = 0.1


class UniversalQualityModel(BaseModel):
    roic: SigmoidParams = SigmoidParams(midpoint=8, steepness=0.175)
    roe: SigmoidParams = SigmoidParams(midpoint=12, steepness=0.15)
    roa: SigmoidParams = SigmoidParams(midpoint=6, steepness=0.2)
    ebit_margin: SigmoidParams = SigmoidParams(midpoint=10, steepness=0.175)
    weights: UniversalQualityWeights = UniversalQualityWeights()
    # netDebt/EBITDA at which the ROE weight is fully discounted
    leverage_divisor: float = Field(4, gt=0)

    model_config = ConfigDict(frozen=True, validate_default=True)


class BankQualityModel(BaseModel):
    roe: SigmoidParams = SigmoidParams(midpoint=11, steepness=0.25)
    roa: SigmoidParams = SigmoidParams(midpoint=1.2, steepness=3)
    net_margin: SigmoidParams = SigmoidParams(midpoint=10, steepness=0.5)
    capital: SigmoidParams = SigmoidParams(midpoint=10.5, steepness=0.2)
    weights: BankQualityWeights = BankQualityWeights()

    model_config = ConfigDict(frozen=True, validate_default=True)


class InsuranceQualityModel(BaseModel):
    roic: SigmoidParams = SigmoidParams(midpoint=25, steepness=0.15)
    roe: SigmoidParams = SigmoidParams(midpoint=30, steepness=0.12)
    roa: SigmoidParams = SigmoidParams(midpoint=10, steepness=0.2)
    capital: SigmoidParams = SigmoidParams(midpoint=25, steepness=0.18)
    cash_buffer: SigmoidParams = SigmoidParams(midpoint=20, steepness=0.25)
    cash_buffer_bounds: tuple[float, float] = (-25, 50)
    weights: InsuranceQualityWeights = InsuranceQualityWeights()

    model_config = ConfigDict(frozen=True, validate_default=True)


class QualityModels(BaseModel):
    universal: UniversalQualityModel = UniversalQualityModel()
    bank: BankQualityModel = BankQualityModel()
    insurance: InsuranceQualityModel = InsuranceQualityModel()

    model_config = ConfigDict(frozen=True, validate_default=True)


class ValueModel(BaseModel):
    earnings_coef: float = 6
    book_coef: float = 3.5
    ebit_coef: float = 5
    negative_penalty: float = Field(0.15, ge=0, le=1 / 3)
    log_floor: float = Field(20, gt=0)
    log_ceiling: float = 100

    model_config = ConfigDict(frozen=True, validate_default=True)

    @model_validator(mode="after")
    def ceiling_above_floor(self) -> "ValueModel":
        if self.log_ceiling <= self.log_floor:
            raise ValueError("log_ceiling must be greater than log_floor")
        return self


class GrowthModel(BaseModel):
    cagr_floor: float = -20
    cagr_ceiling: float = 50
    revenue_weight: float = Field(0.45, ge=0)
    profit_weight: float = Field(0.55, ge=0)
    dual_negative_penalty: float = 25
    single_negative_penalty: float = 10

    model_config = ConfigDict(frozen=True, validate_default=True)

    @model_validator(mode="after")
    def ceiling_above_floor(self) -> "GrowthModel":
        if self.cagr_ceiling <= self.cagr_floor:
            raise ValueError("cagr_ceiling must be greater than cagr_floor")
        return self

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "GrowthModel":
        total = self.revenue_weight + self.profit_weight
        if abs(total - 1) > 0.005:
            raise ValueError(
                f"Growth weights must sum to 1 (got {total})"
            )
        return self


class DividendModel(BaseModel):
    yield_multiplier: float = 1.5
    yield_cap: float = 50
    payout_cap: float = Field(95, lt=100)

    model_config = ConfigDict(frozen=True, validate_default=True)


class LeverageModel(BaseModel):
    # Universal debt model
    equity_threshold: float = 0.5
    ebitda_threshold: float = 1.5
    ebit_threshold: float = 2.0
    equity_exponent: float = 1.5
    ebitda_exponent: float = 1.3
    ebit_exponent: float = 1.2
    penalty_scale: float = 10
    penalty_curve: float = 1.4
    penalty_cap: float = 40
    cash_bonus_factor: float = -20
    cash_bonus_floor: float = -10
    # Bank capital model (Basel III 8% minimum)
    bank_min_capital: float = 0.08
    bank_sensitivity: float = 1000
    bank_penalty_cap: float = 25
    # Shared
    penalty_floor: float = -10
    normalize_scale: float = 2

    model_config = ConfigDict(frozen=True, validate_default=True)


class VolatilityModel(BaseModel):
    min_vol: float = Field(15, gt=0)    # % annualized, "very stable"
    max_vol: float = Field(65, gt=0)    # % annualized, full penalty

    model_config = ConfigDict(frozen=True, validate_default=True)

    @model_validator(mode="after")
    def max_above_min(self) -> "VolatilityModel":
        if self.max_vol <= self.min_vol:
            raise ValueError("max_vol must be greater than min_vol")
        return self


# =========================================================================
# ScoringConfig — top-level config schema
# =========================================================================

class ScoringConfig(BaseModel):
    """Schema for validated config.yaml contents."""
    factor_weights: FactorWeights = FactorWeights()
    value: ValueModel = ValueModel()
    quality: QualityModels = QualityModels()
    growth: GrowthModel = GrowthModel()
    dividend: DividendModel = DividendModel()
    leverage: LeverageModel = LeverageModel()
    volatility: VolatilityModel = VolatilityModel()

    model_config = ConfigDict(frozen=True, validate_default=True)


DEFAULT_CONFIG = ScoringConfig()
