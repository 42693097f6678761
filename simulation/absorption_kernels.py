"""Cumulative absorption kernels for carbohydrate and insulin action.

A kernel is the fraction of a dose's total effect that has reached the
bloodstream at each forecast step. The instantaneous absorption rate is
modelled as a Gamma density whose mode sits at the requested peak time;
accumulating and normalising that density gives a curve that starts near
0 and ends at exactly 1.0 on the last step.
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from data_models import ConfigurationError


logger = logging.getLogger(__name__)

# Forecast resolution used by the meal app (minutes)
STEP_MINUTES = 5.0

# Default forecast horizon (minutes)
TOTAL_MINUTES = 180.0

# Shape floor keeps the density zero at t=0 and single-peaked
MIN_GAMMA_SHAPE = 2.0
MIN_GAMMA_SCALE = 1e-6


def gamma_shape_parameters(peak_minutes: float) -> Tuple[float, float]:
    """
    Return (alpha, beta) for a Gamma density peaking near ``peak_minutes``.

    alpha grows with the peak time so slow absorbers also get a wider
    curve; beta (in hours) is chosen so the mode (alpha - 1) * beta lands
    on the peak.
    """
    if not math.isfinite(peak_minutes) or peak_minutes <= 0:
        raise ConfigurationError(f"peak_minutes must be positive, got {peak_minutes}")
    peak_hours = peak_minutes / 60.0
    alpha = max(MIN_GAMMA_SHAPE, 2.1 * peak_hours)
    beta = max(MIN_GAMMA_SCALE, peak_minutes / ((alpha - 1.0) * 60.0))
    return alpha, beta


def _cumulative_density(
    times_minutes: np.ndarray,
    peak_minutes: float,
    delay_minutes: float,
) -> np.ndarray:
    """Running sum of the Gamma density sampled at ``times_minutes``."""
    if not math.isfinite(delay_minutes):
        raise ConfigurationError(f"delay_minutes must be finite, got {delay_minutes}")
    alpha, beta = gamma_shape_parameters(peak_minutes)

    hours = np.maximum(0.0, times_minutes - delay_minutes) / 60.0
    density = np.zeros_like(hours)
    positive = hours > 0.0
    density[positive] = np.power(hours[positive], alpha - 1.0) * np.exp(
        -hours[positive] / beta
    )
    return np.cumsum(density)


def _normalize(cumulative: np.ndarray, peak_minutes: float, delay_minutes: float) -> np.ndarray:
    final = cumulative[-1] if cumulative.size else 0.0
    if not final > 0.0:
        # Nothing absorbed inside the window (e.g. delay beyond the horizon)
        logger.debug(
            "Kernel with peak=%.1f delay=%.1f has zero mass; returning zeros",
            peak_minutes,
            delay_minutes,
        )
        final = 1.0
    return cumulative / final


def generate_kernel(
    peak_minutes: float,
    total_minutes: float = TOTAL_MINUTES,
    delay_minutes: float = 0.0,
    step_minutes: float = STEP_MINUTES,
) -> List[float]:
    """
    Build a normalised cumulative absorption curve on a fixed step grid.

    Args:
        peak_minutes: Time of peak absorption rate (before any delay).
        total_minutes: Length of the forecast window.
        delay_minutes: Absorption lag; the curve is shifted right by this much.
        step_minutes: Grid spacing, 5 minutes for CGM-aligned forecasts.

    Returns:
        ``total_minutes // step_minutes`` non-decreasing fractions in [0, 1].
    """
    if step_minutes <= 0:
        raise ConfigurationError(f"step_minutes must be positive, got {step_minutes}")
    if total_minutes < step_minutes:
        raise ConfigurationError(
            f"total_minutes ({total_minutes}) shorter than one step ({step_minutes})"
        )

    steps = int(total_minutes // step_minutes)
    times = step_minutes * np.arange(1, steps + 1, dtype=float)
    cumulative = _cumulative_density(times, peak_minutes, delay_minutes)
    return _normalize(cumulative, peak_minutes, delay_minutes).tolist()


def kernel_for_horizons(
    peak_minutes: float,
    horizons: Sequence[float],
    delay_minutes: float = 0.0,
) -> List[float]:
    """
    Evaluate the step-grid curve at arbitrary horizon times.

    The density is accumulated on the 5 minute grid up to the last horizon
    and linearly interpolated at each horizon, so ``[10, 30, 60, 120]``
    matches ``generate_kernel(peak, 120)`` at those minutes.
    """
    times = np.asarray(horizons, dtype=float)
    if times.size == 0:
        raise ConfigurationError("Cannot build a kernel for an empty horizon list")
    if not np.all(np.isfinite(times)) or times.min() <= 0.0:
        raise ConfigurationError("Kernel horizons must be finite and positive")

    steps = max(1, int(np.ceil(times.max() / STEP_MINUTES - 1e-9)))
    grid = STEP_MINUTES * np.arange(1, steps + 1, dtype=float)
    cumulative = _cumulative_density(grid, peak_minutes, delay_minutes)

    sampled = np.interp(
        times,
        np.concatenate(([0.0], grid)),
        np.concatenate(([0.0], cumulative)),
    )
    return _normalize(sampled, peak_minutes, delay_minutes).tolist()
