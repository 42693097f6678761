"""Public entry points of the blood-glucose response simulator.

Pipeline: inputs -> absorption kernels (precomputed in the parameters)
-> deterministic carb/insulin trajectory -> sensor noise overlay.
Every call is independent; the only state is the generator the caller
passes in.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np

from data_models import (
    ForecastResult,
    InputRangeWarning,
    SimulationInputs,
    SimulationParameters,
)
from parameter_loader import load_parameters
from simulation.metabolic_model import (
    calculate_glucose_trajectory,
    carb_effect,
    glycemic_amplitude,
    insulin_effect,
    insulin_sensitivity,
)
from simulation.noise import noise_model_for


logger = logging.getLogger(__name__)

InputsLike = Union[SimulationInputs, Dict[str, Any]]


def _default_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng or np.random.default_rng()


def _normalize_inputs(
    inputs: SimulationInputs,
    parameters: SimulationParameters,
) -> SimulationInputs:
    normalized, corrections = inputs.normalized(parameters.gi)
    for message in corrections:
        logger.debug("Input corrected: %s", message)
        warnings.warn(message, InputRangeWarning, stacklevel=3)
    return normalized


def _trajectory(
    inputs: SimulationInputs,
    parameters: SimulationParameters,
) -> np.ndarray:
    isf = insulin_sensitivity(inputs.icr, parameters.icr_to_isf_multiplier)
    amplitude = glycemic_amplitude(inputs.glycemic_index, parameters.gi)
    return calculate_glucose_trajectory(
        current_glucose=inputs.current_bg,
        total_carb_effect=carb_effect(
            inputs.carbs_grams, parameters.carb_impact_per_gram, amplitude
        ),
        total_insulin_effect=insulin_effect(inputs.insulin_units, isf),
        carb_kernel=parameters.carb_kernel,
        insulin_kernel=parameters.insulin_kernel,
        steps=parameters.horizon_count,
        clipping=parameters.clipping,
    )


def deterministic_trajectory(
    current_bg: float,
    carbs_grams: float,
    glycemic_index: Optional[float],
    insulin_units: float,
    icr: float,
    parameters: SimulationParameters,
) -> ForecastResult:
    """The pre-noise forecast, i.e. the mean response to the meal and bolus."""
    inputs = _normalize_inputs(
        SimulationInputs(
            current_bg=current_bg,
            carbs_grams=carbs_grams,
            insulin_units=insulin_units,
            icr=icr,
            glycemic_index=glycemic_index,
        ),
        parameters,
    )
    return ForecastResult(parameters.horizons, _trajectory(inputs, parameters))


def simulate(
    current_bg: float,
    carbs_grams: float,
    glycemic_index: Optional[float],
    insulin_units: float,
    icr: float,
    parameters: SimulationParameters,
    rng: Optional[np.random.Generator] = None,
    noise_model=None,
) -> ForecastResult:
    """
    Forecast glucose at every horizon in ``parameters``.

    Args:
        current_bg: Current reading (mg/dL)
        carbs_grams: Meal carbohydrates; negatives are clamped to 0
        glycemic_index: 0-100, clamped; None uses the configured default
        insulin_units: Bolus size; negatives are clamped to 0
        icr: Grams of carbohydrate covered by one unit (must be positive)
        parameters: Validated simulation parameters
        rng: Generator for the noise overlay; a fresh one when omitted
        noise_model: Overrides the model selected by ``parameters.noise``

    Returns:
        ForecastResult with one value per horizon, each within the clip bounds
    """
    inputs = _normalize_inputs(
        SimulationInputs(
            current_bg=current_bg,
            carbs_grams=carbs_grams,
            insulin_units=insulin_units,
            icr=icr,
            glycemic_index=glycemic_index,
        ),
        parameters,
    )
    rng = _default_rng(rng)
    noise_model = noise_model or noise_model_for(parameters.noise)

    trajectory = _trajectory(inputs, parameters)
    noisy = noise_model.apply(trajectory, parameters.horizons, parameters.clipping, rng)
    return ForecastResult(parameters.horizons, noisy)


def predict_delta(
    carbs_grams: float,
    insulin_units: float,
    icr: float,
    glycemic_index: Optional[float] = 55.0,
    parameters: Optional[SimulationParameters] = None,
    rng: Optional[np.random.Generator] = None,
    noise_model=None,
) -> ForecastResult:
    """
    Change in glucose relative to the current reading.

    Runs ``simulate`` from a zero baseline. The clip window is translated
    to delta space, +/- the width of the physiological range, so that a
    baseline of 0 is not itself clamped up to the hypoglycemia floor.
    """
    parameters = parameters or load_parameters()
    delta_parameters = parameters.with_clipping(parameters.clipping.as_delta_window())
    return simulate(
        0.0,
        carbs_grams,
        glycemic_index,
        insulin_units,
        icr,
        delta_parameters,
        rng=rng,
        noise_model=noise_model,
    )


def predict_absolute(
    inputs: InputsLike,
    parameters: Optional[SimulationParameters] = None,
    rng: Optional[np.random.Generator] = None,
    noise_model=None,
) -> ForecastResult:
    """Absolute forecast for the common case of one meal plus bolus."""
    if isinstance(inputs, dict):
        inputs = SimulationInputs.from_dict(inputs)
    parameters = parameters or load_parameters()
    return simulate(
        inputs.current_bg,
        inputs.carbs_grams,
        inputs.glycemic_index,
        inputs.insulin_units,
        inputs.icr,
        parameters,
        rng=rng,
        noise_model=noise_model,
    )


def simulate_batch(
    scenarios: Iterable[InputsLike],
    parameters: SimulationParameters,
    rng: Optional[np.random.Generator] = None,
    noise_model=None,
) -> List[ForecastResult]:
    """Forecast several scenarios, each with its own child generator."""

    rng = _default_rng(rng)
    outputs: List[ForecastResult] = []
    for scenario in scenarios:
        child_rng = np.random.default_rng(rng.integers(0, 2**32 - 1))
        outputs.append(
            predict_absolute(scenario, parameters, rng=child_rng, noise_model=noise_model)
        )
    logger.info("Simulated %d scenarios", len(outputs))
    return outputs
