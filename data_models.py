"""Data layer definitions for the blood-glucose response simulator."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


__all__ = [
    "ClipBounds",
    "ConfigurationError",
    "FoodItem",
    "ForecastResult",
    "GlycemicIndexParameters",
    "InputRangeWarning",
    "MealBreakdown",
    "NoiseParameters",
    "SimulationInputs",
    "SimulationParameters",
]

# Tolerance used when checking kernel fractions against [0, 1].
KERNEL_TOLERANCE = 1e-9


class ConfigurationError(ValueError):
    """Structural problem with simulation parameters (fail fast at load time)."""


class InputRangeWarning(UserWarning):
    """A per-call input was outside its valid range and has been clamped."""


@dataclass(frozen=True)
class ClipBounds:
    """Hard physiological bounds enforced after every additive step."""

    min_bg: float = 40.0   # Severe hypoglycemia floor (mg/dL)
    max_bg: float = 400.0  # Typical CGM reporting ceiling (mg/dL)

    def __post_init__(self):
        if not (math.isfinite(self.min_bg) and math.isfinite(self.max_bg)):
            raise ConfigurationError("Clip bounds must be finite numbers")
        if self.min_bg >= self.max_bg:
            raise ConfigurationError(
                f"min_bg ({self.min_bg}) must be below max_bg ({self.max_bg})"
            )

    @property
    def span(self) -> float:
        return self.max_bg - self.min_bg

    def clip(self, values):
        """Clamp a scalar or array into the bounds."""
        return np.clip(values, self.min_bg, self.max_bg)

    def as_delta_window(self) -> "ClipBounds":
        """Bounds for a zero-baseline forecast: the largest possible excursion."""
        return ClipBounds(min_bg=-self.span, max_bg=self.span)


@dataclass(frozen=True)
class GlycemicIndexParameters:
    """Linear map from a glycemic index to a carb amplitude multiplier.

    With the defaults a GI of 0 yields 0.8 and a GI of 100 yields 1.4.
    """

    gi_min: float = 0.0
    gi_max: float = 100.0
    amplitude_base: float = 0.8
    amplitude_span: float = 0.6
    default_gi: float = 55.0

    def __post_init__(self):
        if self.gi_min >= self.gi_max:
            raise ConfigurationError(
                f"gi_min ({self.gi_min}) must be below gi_max ({self.gi_max})"
            )
        if self.amplitude_base < 0.0 or self.amplitude_base + self.amplitude_span < 0.0:
            raise ConfigurationError("GI amplitude band must be non-negative")
        if not (self.gi_min <= self.default_gi <= self.gi_max):
            raise ConfigurationError(
                f"default_gi ({self.default_gi}) outside [{self.gi_min}, {self.gi_max}]"
            )


@dataclass(frozen=True)
class NoiseParameters:
    """Constants for the CGM-like noise overlay (all in mg/dL or minutes)."""

    enabled: bool = True

    # Baseline jitter: amplitude * (w_normal * N(0,1) + w_laplace * Laplace)
    jitter_amplitude: float = 2.5
    jitter_normal_weight: float = 0.7
    jitter_laplace_weight: float = 0.3
    laplace_scale: float = 1.0

    # Tail spikes
    large_spike_probability: float = 0.02
    large_spike_sigma: float = 18.0
    medium_spike_probability: float = 0.10
    medium_spike_sigma: float = 7.0
    spike_clip_sigma: float = 3.0

    # Wobble, sampled once per simulation
    wobble_amplitude_range: Tuple[float, float] = (1.5, 6.0)
    wobble_period_range: Tuple[float, float] = (45.0, 150.0)

    def __post_init__(self):
        object.__setattr__(
            self, "wobble_amplitude_range", tuple(self.wobble_amplitude_range)
        )
        object.__setattr__(self, "wobble_period_range", tuple(self.wobble_period_range))

        non_negative = {
            "jitter_amplitude": self.jitter_amplitude,
            "jitter_normal_weight": self.jitter_normal_weight,
            "jitter_laplace_weight": self.jitter_laplace_weight,
            "laplace_scale": self.laplace_scale,
            "large_spike_sigma": self.large_spike_sigma,
            "medium_spike_sigma": self.medium_spike_sigma,
            "spike_clip_sigma": self.spike_clip_sigma,
        }
        for name, value in non_negative.items():
            if not math.isfinite(value) or value < 0.0:
                raise ConfigurationError(f"{name} must be a non-negative number, got {value}")

        probabilities = (self.large_spike_probability, self.medium_spike_probability)
        if any(p < 0.0 or p > 1.0 for p in probabilities) or sum(probabilities) > 1.0:
            raise ConfigurationError(
                "Spike probabilities must lie in [0, 1] and sum to at most 1"
            )

        for name, bounds in (
            ("wobble_amplitude_range", self.wobble_amplitude_range),
            ("wobble_period_range", self.wobble_period_range),
        ):
            if len(bounds) != 2 or bounds[0] > bounds[1]:
                raise ConfigurationError(f"{name} must be an ordered (low, high) pair")
        if self.wobble_amplitude_range[0] < 0.0:
            raise ConfigurationError("Wobble amplitude cannot be negative")
        if self.wobble_period_range[0] <= 0.0:
            raise ConfigurationError("Wobble period must be positive")


def _validate_kernel(name: str, kernel: Tuple[float, ...], horizon_count: int) -> None:
    if len(kernel) != horizon_count:
        raise ConfigurationError(
            f"{name} has {len(kernel)} values but there are {horizon_count} horizons"
        )
    values = np.asarray(kernel, dtype=float)
    if not np.all(np.isfinite(values)):
        raise ConfigurationError(f"{name} contains non-finite values")
    if values[0] < -KERNEL_TOLERANCE or values[-1] > 1.0 + KERNEL_TOLERANCE:
        raise ConfigurationError(f"{name} fractions must lie within [0, 1]")
    if np.any(np.diff(values) < -KERNEL_TOLERANCE):
        raise ConfigurationError(f"{name} must be non-decreasing")


@dataclass(frozen=True)
class SimulationParameters:
    """Read-only configuration shared by every simulation call.

    Kernels hold one cumulative absorption fraction per horizon step.
    Validation runs on construction so that a bad parameter file fails
    at load time rather than mid-forecast.
    """

    horizons: Tuple[float, ...]
    carb_kernel: Tuple[float, ...]
    insulin_kernel: Tuple[float, ...]
    carb_impact_per_gram: float = 4.5
    icr_to_isf_multiplier: float = 10.0
    gi: GlycemicIndexParameters = field(default_factory=GlycemicIndexParameters)
    clipping: ClipBounds = field(default_factory=ClipBounds)
    noise: NoiseParameters = field(default_factory=NoiseParameters)

    def __post_init__(self):
        object.__setattr__(self, "horizons", tuple(float(h) for h in self.horizons))
        object.__setattr__(self, "carb_kernel", tuple(float(v) for v in self.carb_kernel))
        object.__setattr__(
            self, "insulin_kernel", tuple(float(v) for v in self.insulin_kernel)
        )

        if not self.horizons:
            raise ConfigurationError("At least one horizon is required")
        if not all(math.isfinite(h) for h in self.horizons):
            raise ConfigurationError("Horizons must be finite numbers")
        if self.horizons[0] <= 0.0:
            raise ConfigurationError("Horizons must start after t=0")
        if any(b <= a for a, b in zip(self.horizons, self.horizons[1:])):
            raise ConfigurationError("Horizons must be strictly increasing")

        _validate_kernel("carb_kernel", self.carb_kernel, len(self.horizons))
        _validate_kernel("insulin_kernel", self.insulin_kernel, len(self.horizons))

        if not math.isfinite(self.carb_impact_per_gram) or self.carb_impact_per_gram < 0.0:
            raise ConfigurationError("carb_impact_per_gram must be non-negative")
        if not math.isfinite(self.icr_to_isf_multiplier) or self.icr_to_isf_multiplier <= 0.0:
            raise ConfigurationError("icr_to_isf_multiplier must be positive")

    @property
    def horizon_count(self) -> int:
        return len(self.horizons)

    def with_clipping(self, clipping: ClipBounds) -> "SimulationParameters":
        return replace(self, clipping=clipping)

    def without_noise(self) -> "SimulationParameters":
        return replace(self, noise=replace(self.noise, enabled=False))


def _require_finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value}")
    return value


@dataclass(frozen=True)
class SimulationInputs:
    """Per-call inputs. Use ``normalized`` to apply the forgiving clamps."""

    current_bg: float
    carbs_grams: float
    insulin_units: float
    icr: float
    glycemic_index: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SimulationInputs":
        """Accept snake_case or the camelCase keys used by the meal app."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in raw and raw[key] is not None:
                    return raw[key]
            return default

        missing = [
            name
            for name, keys in (
                ("current_bg", ("current_bg", "currentBG")),
                ("carbs_grams", ("carbs_grams", "carbsGrams", "carbs")),
                ("insulin_units", ("insulin_units", "insulinUnits", "bolus")),
                ("icr", ("icr", "cir")),
            )
            if pick(*keys) is None
        ]
        if missing:
            raise ValueError(f"Missing simulation inputs: {', '.join(missing)}")

        return cls(
            current_bg=pick("current_bg", "currentBG"),
            carbs_grams=pick("carbs_grams", "carbsGrams", "carbs"),
            insulin_units=pick("insulin_units", "insulinUnits", "bolus"),
            icr=pick("icr", "cir"),
            glycemic_index=pick("glycemic_index", "glycemicIndex", "gi"),
        )

    def normalized(self, gi_parameters: GlycemicIndexParameters) -> Tuple["SimulationInputs", List[str]]:
        """Return a clamped copy and a description of every correction made.

        Raises ConfigurationError for a non-positive ICR and ValueError for
        non-finite numbers; everything else is corrected in place.
        """
        current_bg = _require_finite("current_bg", self.current_bg)
        carbs = _require_finite("carbs_grams", self.carbs_grams)
        insulin = _require_finite("insulin_units", self.insulin_units)
        icr = _require_finite("icr", self.icr)
        gi = (
            gi_parameters.default_gi
            if self.glycemic_index is None
            else _require_finite("glycemic_index", self.glycemic_index)
        )

        if icr <= 0.0:
            raise ConfigurationError(f"icr must be positive, got {icr}")

        corrections: List[str] = []
        if carbs < 0.0:
            corrections.append(f"carbs_grams {carbs} clamped to 0")
            carbs = 0.0
        if insulin < 0.0:
            corrections.append(f"insulin_units {insulin} clamped to 0")
            insulin = 0.0
        clamped_gi = min(max(gi, gi_parameters.gi_min), gi_parameters.gi_max)
        if clamped_gi != gi:
            corrections.append(f"glycemic_index {gi} clamped to {clamped_gi}")

        normalized = SimulationInputs(
            current_bg=current_bg,
            carbs_grams=carbs,
            insulin_units=insulin,
            icr=icr,
            glycemic_index=clamped_gi,
        )
        return normalized, corrections


@dataclass(frozen=True)
class ForecastResult:
    """One glucose value per horizon step."""

    horizons: Tuple[float, ...]
    values: Tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "horizons", tuple(float(h) for h in self.horizons))
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))
        if len(self.horizons) != len(self.values):
            raise ValueError("Forecast horizons and values differ in length")

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]

    @property
    def peak(self) -> float:
        return max(self.values)

    @property
    def nadir(self) -> float:
        return min(self.values)

    @property
    def final(self) -> float:
        return self.values[-1]

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "horizons": list(self.horizons),
            "values": [round(v, 2) for v in self.values],
            "peak": round(self.peak, 2),
            "nadir": round(self.nadir, 2),
            "final": round(self.final, 2),
        }


@dataclass(frozen=True)
class FoodItem:
    """A single food or sub-ingredient reported by the meal analyser."""

    name: str
    carbs: float


@dataclass(frozen=True)
class MealBreakdown:
    """Carbohydrate breakdown parsed from the meal analyser's text reply."""

    items: Tuple[FoodItem, ...] = ()
    total_carbs: float = 0.0

    @property
    def item_carbs(self) -> float:
        return float(sum(item.carbs for item in self.items))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [{"name": item.name, "carbs": item.carbs} for item in self.items],
            "total_carbs": self.total_carbs,
        }
