"""Load SimulationParameters from the JSON resource used by the meal app."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from data_models import (
    ClipBounds,
    ConfigurationError,
    GlycemicIndexParameters,
    NoiseParameters,
    SimulationParameters,
)
from simulation.absorption_kernels import kernel_for_horizons


logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS_PATH = Path(__file__).resolve().parent / "simulation" / "default_parameters.json"

_GI_KEYS = {
    "giMin": "gi_min",
    "giMax": "gi_max",
    "amplitudeBase": "amplitude_base",
    "amplitudeSpan": "amplitude_span",
    "defaultGi": "default_gi",
}

_CLIPPING_KEYS = {
    "minBG": "min_bg",
    "maxBG": "max_bg",
}

_NOISE_KEYS = {
    "enabled": "enabled",
    "jitterAmplitude": "jitter_amplitude",
    "jitterNormalWeight": "jitter_normal_weight",
    "jitterLaplaceWeight": "jitter_laplace_weight",
    "laplaceScale": "laplace_scale",
    "largeSpikeProbability": "large_spike_probability",
    "largeSpikeSigma": "large_spike_sigma",
    "mediumSpikeProbability": "medium_spike_probability",
    "mediumSpikeSigma": "medium_spike_sigma",
    "spikeClipSigma": "spike_clip_sigma",
    "wobbleAmplitudeRange": "wobble_amplitude_range",
    "wobblePeriodRange": "wobble_period_range",
}


def _rename(section: Dict[str, Any], mapping: Dict[str, str], name: str) -> Dict[str, Any]:
    unknown = set(section) - set(mapping) - set(mapping.values())
    if unknown:
        raise ConfigurationError(f"Unknown {name} keys: {', '.join(sorted(unknown))}")
    return {mapping.get(key, key): value for key, value in section.items()}


def _build_horizons(raw: Union[List[float], Dict[str, Any]]) -> List[float]:
    """Horizons are either an explicit list or a {stepMinutes, totalMinutes} grid."""
    if isinstance(raw, dict):
        step = float(raw.get("stepMinutes", 5))
        total = float(raw.get("totalMinutes", 180))
        if step <= 0:
            raise ConfigurationError(f"stepMinutes must be positive, got {step}")
        if total < step:
            raise ConfigurationError(
                f"totalMinutes ({total}) shorter than one step ({step})"
            )
        steps = int(total // step)
        return (step * np.arange(1, steps + 1, dtype=float)).tolist()
    return [float(h) for h in raw]


def _build_kernel(
    name: str,
    raw: Union[List[float], Dict[str, Any]],
    horizons: List[float],
) -> List[float]:
    """Kernels are either precomputed fractions or a {peakMinutes, delayMinutes} shape."""
    if isinstance(raw, dict):
        if "peakMinutes" not in raw:
            raise ConfigurationError(f"{name} shape needs peakMinutes")
        return kernel_for_horizons(
            float(raw["peakMinutes"]),
            horizons,
            delay_minutes=float(raw.get("delayMinutes", 0.0)),
        )
    return [float(v) for v in raw]


def parameters_from_dict(raw: Dict[str, Any]) -> SimulationParameters:
    """Build validated parameters from the camelCase dictionary layout."""
    missing = [key for key in ("horizons", "carbKernel", "insulinKernel") if key not in raw]
    if missing:
        raise ConfigurationError(f"Missing parameter keys: {', '.join(missing)}")

    horizons = _build_horizons(raw["horizons"])
    clipping_raw = _rename(raw.get("clipping", {}), _CLIPPING_KEYS, "clipping")

    optional: Dict[str, Any] = {}
    if "carbImpactPerGram" in raw:
        optional["carb_impact_per_gram"] = float(raw["carbImpactPerGram"])
    if "icrToIsfMultiplier" in raw:
        optional["icr_to_isf_multiplier"] = float(raw["icrToIsfMultiplier"])

    return SimulationParameters(
        horizons=horizons,
        carb_kernel=_build_kernel("carbKernel", raw["carbKernel"], horizons),
        insulin_kernel=_build_kernel("insulinKernel", raw["insulinKernel"], horizons),
        gi=GlycemicIndexParameters(**_rename(raw.get("giParameters", {}), _GI_KEYS, "giParameters")),
        clipping=ClipBounds(**{key: float(value) for key, value in clipping_raw.items()}),
        noise=NoiseParameters(**_rename(raw.get("noise", {}), _NOISE_KEYS, "noise")),
        **optional,
    )


def load_parameters(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> SimulationParameters:
    """
    Read a parameter file (bundled defaults when ``path`` is None).

    ``overrides`` are merged over the top-level keys before validation,
    which lets callers keep per-patient calibration alongside the defaults.
    """
    resolved = Path(path) if path is not None else DEFAULT_PARAMETERS_PATH
    try:
        with resolved.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Could not read simulation parameters from %s: %s", resolved, exc)
        raise ConfigurationError(f"Could not read parameters from {resolved}: {exc}") from exc

    if overrides:
        raw = {**raw, **overrides}

    try:
        parameters = parameters_from_dict(raw)
    except (ConfigurationError, TypeError, ValueError) as exc:
        logger.error("Invalid simulation parameters in %s: %s", resolved, exc)
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(str(exc)) from exc

    logger.info(
        "Loaded simulation parameters from %s (%d horizons, %.0f-%.0f mg/dL)",
        resolved,
        parameters.horizon_count,
        parameters.clipping.min_bg,
        parameters.clipping.max_bg,
    )
    return parameters
