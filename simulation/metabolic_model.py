"""Deterministic glucose response to a meal and an insulin bolus."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from data_models import ClipBounds, GlycemicIndexParameters


# Physiological glucose bounds (mg/dL)
GLUCOSE_MIN = 40.0   # Severe hypoglycemia threshold
GLUCOSE_MAX = 400.0  # Upper limit most CGMs report


def insulin_sensitivity(icr: float, icr_to_isf_multiplier: float) -> float:
    """Effective ISF (mg/dL drop per unit) derived from the carb ratio."""
    return icr * icr_to_isf_multiplier


def glycemic_amplitude(glycemic_index: float, gi: GlycemicIndexParameters) -> float:
    """
    Map a glycemic index onto the carb amplitude band.

    The index is clamped to [gi_min, gi_max] first, so the result always
    lies within [amplitude_base, amplitude_base + amplitude_span].
    """
    clamped = min(max(glycemic_index, gi.gi_min), gi.gi_max)
    fraction = (clamped - gi.gi_min) / (gi.gi_max - gi.gi_min)
    return gi.amplitude_base + gi.amplitude_span * fraction


def carb_effect(
    carbs_grams: float,
    carb_impact_per_gram: float,
    amplitude: float,
) -> float:
    """Total mg/dL rise once the whole meal has been absorbed."""
    return max(0.0, carbs_grams) * carb_impact_per_gram * amplitude


def insulin_effect(insulin_units: float, isf: float) -> float:
    """Total mg/dL drop once the whole bolus has acted."""
    return max(0.0, insulin_units) * isf


def _align_kernel(kernel: Sequence[float], steps: int) -> np.ndarray:
    """Pad a short kernel by repeating its last value."""
    values = np.asarray(kernel, dtype=float)
    if values.size >= steps:
        return values[:steps]
    if values.size == 0:
        return np.zeros(steps)
    padding = np.full(steps - values.size, values[-1])
    return np.concatenate([values, padding])


def calculate_glucose_trajectory(
    current_glucose: float,
    total_carb_effect: float,
    total_insulin_effect: float,
    carb_kernel: Sequence[float],
    insulin_kernel: Sequence[float],
    steps: int,
    clipping: ClipBounds = ClipBounds(GLUCOSE_MIN, GLUCOSE_MAX),
) -> np.ndarray:
    """
    Combine carb and insulin kernels into a clamped glucose trajectory.

    bg[t] = current + carb_kernel[t] * carb_effect - insulin_kernel[t] * insulin_effect

    Both effects accumulate independently, so a meal bolus typically
    produces a rise while carbs outrun insulin followed by a fall once
    the slower insulin curve catches up.
    """
    carb_fraction = _align_kernel(carb_kernel, steps)
    insulin_fraction = _align_kernel(insulin_kernel, steps)

    glucose = (
        current_glucose
        + carb_fraction * total_carb_effect
        - insulin_fraction * total_insulin_effect
    )
    return np.asarray(clipping.clip(glucose), dtype=float)
