"""Bolus insulin estimates for a parsed meal.

Bolus = (Carbs / 15) x Multiplier + Correction

The multiplier is the patient's units per 15 g exchange: 4 by default and
5 in morning mode, when insulin resistance is higher. The optional
correction brings an elevated reading back to target.
"""

from __future__ import annotations

from typing import Optional

from data_models import ConfigurationError


# One carbohydrate exchange (grams)
CARB_EXCHANGE_GRAMS = 15.0

# Units per exchange
DEFAULT_EXCHANGE_MULTIPLIER = 4.0
MORNING_EXCHANGE_MULTIPLIER = 5.0

# Correction factor: 1 unit lowers glucose by 50 mg/dL
DEFAULT_CORRECTION_FACTOR = 50.0
TARGET_GLUCOSE_MID = 100.0


def estimate_meal_bolus(
    total_carbs: float,
    morning_mode: bool = False,
    current_glucose: Optional[float] = None,
    target_glucose: float = TARGET_GLUCOSE_MID,
    correction_factor: float = DEFAULT_CORRECTION_FACTOR,
) -> float:
    """
    Estimate the bolus for a meal, rounded to 0.1 units.

    Args:
        total_carbs: Carbohydrate content of the meal (grams)
        morning_mode: Use the higher morning multiplier
        current_glucose: Current reading (mg/dL); adds a correction when above target
        target_glucose: Target glucose level (mg/dL)
        correction_factor: How much 1 unit lowers glucose (mg/dL)

    Returns:
        Bolus insulin dose in units, never negative
    """
    if correction_factor <= 0:
        raise ConfigurationError(
            f"correction_factor must be positive, got {correction_factor}"
        )

    multiplier = MORNING_EXCHANGE_MULTIPLIER if morning_mode else DEFAULT_EXCHANGE_MULTIPLIER
    carb_bolus = max(0.0, total_carbs) / CARB_EXCHANGE_GRAMS * multiplier

    correction_bolus = 0.0
    if current_glucose is not None:
        glucose_above_target = max(0.0, current_glucose - target_glucose)
        correction_bolus = glucose_above_target / correction_factor

    return max(0.0, round(carb_bolus + correction_bolus, 1))


def icr_bolus(carbs_grams: float, icr: float) -> float:
    """Units needed to cover ``carbs_grams`` at an insulin-to-carb ratio of ``icr`` g/U."""
    if icr <= 0:
        raise ConfigurationError(f"icr must be positive, got {icr}")
    return max(0.0, carbs_grams) / icr
