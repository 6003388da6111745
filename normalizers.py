"""
Numeric normalizers shared by every factor calculator.

All helpers are NaN-transparent: a NaN input yields a NaN output so the
calling calculator can coerce its terminal value with ``nan_to_zero``.
numpy is used for clipping and transcendental functions because Python's
builtin ``min``/``max`` silently drop NaN depending on argument order.
"""

import numpy as np


def nan_to_zero(x) -> float:
    """Coerce a terminal score to 0.0 when it is NaN (or None)."""
    if x is None:
        return 0.0
    x = float(x)
    return 0.0 if np.isnan(x) else x


def round_half_away(x, precision: int = 2) -> float:
    """Round to ``precision`` decimals, halves away from zero.

    The result is re-expressed with exactly 2 decimals, so a call with a
    higher precision is rounded a second time to 2 places.
    """
    x = float(x)
    if not np.isfinite(x):
        return x
    factor = 10.0 ** precision
    scaled = x * factor
    magnitude = abs(scaled)
    whole = float(np.floor(magnitude))
    # Compare the fraction directly: magnitude + 0.5 can itself round up
    if magnitude - whole >= 0.5:
        whole += 1
    rounded = float(np.copysign(whole, scaled)) / factor
    if precision != 2:
        return round_half_away(rounded, 2)
    return rounded


def clamp_round(x, lo: float, hi: float) -> float:
    """Round ``x`` to 2 decimals, then clamp it to ``[lo, hi]``."""
    return float(np.clip(round_half_away(x), lo, hi))


def sigmoid_scale(value, midpoint: float, steepness: float = 0.3) -> float:
    """Logistic 0-100 score centered on ``midpoint``.

    The input is capped to ``midpoint ± 2|midpoint|`` (± 1 for a zero
    midpoint) so outliers saturate instead of dominating.
    """
    spread = abs(midpoint) * 2 or 1
    capped = float(np.clip(float(value), midpoint - spread, midpoint + spread))
    exponent = -steepness * (capped - midpoint)
    return float(100 / (1 + np.exp(exponent)))


def log_scale(value, lo: float, hi: float) -> float:
    """Map ``value`` logarithmically from ``[lo, hi]`` onto 0-100."""
    clamped = clamp_round(value, lo, hi)
    return float(100 * (np.log(clamped / lo) / np.log(hi / lo)))


def linear_scale(value, lo: float, hi: float) -> float:
    """Map ``value`` linearly from ``[lo, hi]`` onto 0-100, clamped."""
    return float(np.clip((float(value) - lo) / (hi - lo) * 100, 0, 100))
