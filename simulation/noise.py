"""CGM-like sensor noise applied on top of a deterministic trajectory.

Three components are summed per step:

- baseline jitter: a Gaussian/Laplace blend, heavier tailed than pure
  Gaussian noise, scaled to a few mg/dL;
- tail spikes: rare large or occasional medium excursions, bounded to a
  few sigma;
- wobble: one slow sinusoid per simulation, standing in for sensor drift.

The random generator is always passed in so runs can be replayed.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from data_models import ClipBounds, NoiseParameters


# Keeps the Laplace inverse CDF finite when |u - 0.5| reaches 0.5
_LAPLACE_EPSILON = 1e-12


def sample_laplace(
    rng: np.random.Generator,
    size: int,
    scale: float = 1.0,
) -> np.ndarray:
    """Laplace draws via the inverse CDF of a uniform shifted to [-0.5, 0.5)."""
    shifted = rng.random(size) - 0.5
    tail = np.clip(1.0 - 2.0 * np.abs(shifted), _LAPLACE_EPSILON, 1.0)
    return -scale * np.sign(shifted) * np.log(tail)


def baseline_jitter(
    rng: np.random.Generator,
    size: int,
    params: NoiseParameters,
) -> np.ndarray:
    gaussian = rng.normal(0.0, 1.0, size)
    laplace = sample_laplace(rng, size, params.laplace_scale)
    blend = params.jitter_normal_weight * gaussian + params.jitter_laplace_weight * laplace
    return params.jitter_amplitude * blend


def tail_spikes(
    rng: np.random.Generator,
    size: int,
    params: NoiseParameters,
) -> np.ndarray:
    """
    Per-step spike draws.

    u < p_large gives a large spike, u < p_large + p_medium a medium one,
    anything else none. Spike magnitudes are clipped to spike_clip_sigma.
    """
    selector = rng.random(size)
    unit = np.clip(rng.normal(0.0, 1.0, size), -params.spike_clip_sigma, params.spike_clip_sigma)

    large = selector < params.large_spike_probability
    medium = ~large & (
        selector < params.large_spike_probability + params.medium_spike_probability
    )

    spikes = np.zeros(size)
    spikes[large] = unit[large] * params.large_spike_sigma
    spikes[medium] = unit[medium] * params.medium_spike_sigma
    return spikes


def sample_wobble(
    rng: np.random.Generator,
    params: NoiseParameters,
) -> Tuple[float, float]:
    """Draw (amplitude, period_minutes) once for a whole simulation."""
    amplitude = float(rng.uniform(*params.wobble_amplitude_range))
    period = float(rng.uniform(*params.wobble_period_range))
    return amplitude, period


def wobble(horizons: Sequence[float], amplitude: float, period: float) -> np.ndarray:
    minutes = np.asarray(horizons, dtype=float)
    return amplitude * np.sin(2.0 * np.pi * minutes / period)


class SensorNoiseModel:
    """Jitter + spikes + wobble, re-clamped into the physiological range."""

    def __init__(self, params: Optional[NoiseParameters] = None):
        self.params = params or NoiseParameters()

    def sample(self, horizons: Sequence[float], rng: np.random.Generator) -> np.ndarray:
        """Additive noise for each horizon; draw order is fixed for replay."""
        size = len(horizons)
        amplitude, period = sample_wobble(rng, self.params)
        return (
            baseline_jitter(rng, size, self.params)
            + tail_spikes(rng, size, self.params)
            + wobble(horizons, amplitude, period)
        )

    def apply(
        self,
        trajectory: np.ndarray,
        horizons: Sequence[float],
        clipping: ClipBounds,
        rng: np.random.Generator,
    ) -> np.ndarray:
        noisy = np.asarray(trajectory, dtype=float) + self.sample(horizons, rng)
        return np.asarray(clipping.clip(noisy), dtype=float)


class NoNoise:
    """Drop-in replacement that leaves the trajectory untouched."""

    def sample(self, horizons: Sequence[float], rng: np.random.Generator) -> np.ndarray:
        return np.zeros(len(horizons))

    def apply(
        self,
        trajectory: np.ndarray,
        horizons: Sequence[float],
        clipping: ClipBounds,
        rng: np.random.Generator,
    ) -> np.ndarray:
        return np.asarray(clipping.clip(np.asarray(trajectory, dtype=float)), dtype=float)


def noise_model_for(params: NoiseParameters):
    """Pick the noise model a parameter set asks for."""
    return SensorNoiseModel(params) if params.enabled else NoNoise()
