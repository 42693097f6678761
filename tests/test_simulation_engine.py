"""Tests for the public simulation entry points."""

import numpy as np
import pytest

from data_models import (
    ConfigurationError,
    InputRangeWarning,
    NoiseParameters,
    SimulationInputs,
)
from simulation.noise import NoNoise
from simulation_engine import (
    deterministic_trajectory,
    predict_absolute,
    predict_delta,
    simulate,
    simulate_batch,
)


class TestZeroEffectBaseline:
    """No carbs, no insulin, no noise gives a flat line."""

    def test_flat_with_noise_disabled(self, quiet_parameters, rng):
        result = simulate(120, 0, 55, 0, 4.2, quiet_parameters, rng)
        assert result.values == (120.0,) * 36

    def test_flat_with_zero_amplitude_noise(self, parameters, rng):
        silent = NoiseParameters(
            jitter_amplitude=0.0,
            large_spike_probability=0.0,
            medium_spike_probability=0.0,
            wobble_amplitude_range=(0.0, 0.0),
        )
        params = parameters.__class__(
            horizons=parameters.horizons,
            carb_kernel=parameters.carb_kernel,
            insulin_kernel=parameters.insulin_kernel,
            noise=silent,
        )
        result = simulate(150, 0, 55, 0, 4.2, params, rng)
        assert set(result.values) == {150.0}

    def test_noise_model_override(self, parameters, rng):
        """An explicit NoNoise wins over parameters that enable noise."""
        result = simulate(110, 0, 55, 0, 4.2, parameters, rng, noise_model=NoNoise())
        assert set(result.values) == {110.0}


class TestClamping:
    """Every output stays inside the physiological range."""

    @pytest.mark.parametrize(
        "current_bg,carbs,insulin",
        [(350, 1000, 0), (60, 0, 100), (40, 0, 0), (400, 0, 0), (200, 500, 500)],
    )
    def test_extreme_inputs(self, parameters, current_bg, carbs, insulin):
        for seed in range(10):
            result = simulate(
                current_bg, carbs, 100, insulin, 4.2, parameters, np.random.default_rng(seed)
            )
            assert len(result) == 36
            assert all(40.0 <= v <= 400.0 for v in result)


class TestDirectionality:
    """More carbs raise the peak, more insulin lowers it."""

    def test_carbs_raise_peak(self, quiet_parameters):
        peaks = [
            deterministic_trajectory(100, carbs, 55, 5, 4.2, quiet_parameters).peak
            for carbs in (0, 20, 50, 100, 200, 400)
        ]
        assert all(b >= a for a, b in zip(peaks, peaks[1:]))
        assert peaks[-1] > peaks[0]

    def test_insulin_lowers_peak(self, quiet_parameters):
        peaks = [
            deterministic_trajectory(100, 60, 55, insulin, 4.2, quiet_parameters).peak
            for insulin in (0, 2, 5, 10, 20, 40)
        ]
        assert all(b <= a for a, b in zip(peaks, peaks[1:]))
        assert peaks[-1] < peaks[0]

    def test_higher_gi_raises_peak(self, quiet_parameters):
        low = deterministic_trajectory(100, 60, 20, 4, 4.2, quiet_parameters)
        high = deterministic_trajectory(100, 60, 90, 4, 4.2, quiet_parameters)
        assert high.peak > low.peak


class TestDeterminism:
    """Seeded generators replay bit-identically."""

    def test_same_seed_identical(self, parameters):
        first = simulate(98, 83, 55, 10, 4.2, parameters, np.random.default_rng(2024))
        second = simulate(98, 83, 55, 10, 4.2, parameters, np.random.default_rng(2024))
        assert first.values == second.values

    def test_different_seeds_stay_within_noise_bounds(self, parameters, quiet_parameters):
        baseline = deterministic_trajectory(98, 83, 55, 10, 4.2, quiet_parameters).as_array()
        first = simulate(98, 83, 55, 10, 4.2, parameters, np.random.default_rng(1))
        second = simulate(98, 83, 55, 10, 4.2, parameters, np.random.default_rng(2))
        assert first.values != second.values
        assert np.max(np.abs(first.as_array() - baseline)) < 100.0
        assert np.max(np.abs(second.as_array() - baseline)) < 100.0

    def test_default_rng_when_omitted(self, parameters):
        result = simulate(98, 83, 55, 10, 4.2, parameters)
        assert len(result) == 36


class TestMealBolusScenario:
    """The 98 mg/dL, 83 g, 10 U, ICR 4.2 example from the meal app."""

    def test_rise_then_fall(self, quiet_parameters, rng):
        result = simulate(98, 83, 55, 10, 4.2, quiet_parameters, rng)
        values = result.as_array()
        peak_index = int(np.argmax(values))

        assert values[0] == pytest.approx(98, abs=10)
        assert 0 < peak_index < len(values) - 1
        assert result.peak > 150
        assert result.final < result.peak
        assert all(40.0 <= v <= 400.0 for v in values)

    def test_final_value_balances_effects(self, quiet_parameters, rng):
        """Both kernels reach 1.0, so the last step carries the full effects."""
        result = simulate(98, 83, 55, 10, 4.2, quiet_parameters, rng)
        # 98 + 83 * 4.5 * 1.13 - 10 * 4.2 * 10
        assert result.final == pytest.approx(100.055)


class TestSingleHorizon:
    """Degenerate one-step horizons."""

    def test_single_value(self, single_step_parameters, rng):
        result = simulate(100, 20, 100, 0, 4.2, single_step_parameters, rng, noise_model=NoNoise())
        assert len(result) == 1
        # 100 + 0.1 * 20 * 4.5 * 1.4
        assert result.values[0] == pytest.approx(112.6)

    def test_single_value_with_noise(self, single_step_parameters, rng):
        result = simulate(100, 20, 55, 1, 4.2, single_step_parameters, rng)
        assert len(result) == 1
        assert 40.0 <= result.values[0] <= 400.0


class TestInputCorrections:
    """Forgiving clamps and hard failures on inputs."""

    def test_negative_carbs_clamped(self, quiet_parameters, rng):
        with pytest.warns(InputRangeWarning):
            result = simulate(100, -30, 55, 0, 4.2, quiet_parameters, rng)
        assert set(result.values) == {100.0}

    def test_negative_insulin_clamped(self, quiet_parameters, rng):
        with pytest.warns(InputRangeWarning):
            result = simulate(100, 0, 55, -2, 4.2, quiet_parameters, rng)
        assert set(result.values) == {100.0}

    def test_gi_above_range_clamped(self, quiet_parameters, rng):
        with pytest.warns(InputRangeWarning):
            clamped = simulate(100, 50, 180, 3, 4.2, quiet_parameters, rng)
        reference = simulate(100, 50, 100, 3, 4.2, quiet_parameters, rng)
        assert clamped.values == reference.values

    def test_missing_gi_uses_default(self, quiet_parameters, rng):
        implicit = simulate(100, 50, None, 3, 4.2, quiet_parameters, rng)
        explicit = simulate(100, 50, 55, 3, 4.2, quiet_parameters, rng)
        assert implicit.values == explicit.values

    @pytest.mark.parametrize("icr", [0, -4.2])
    def test_non_positive_icr_rejected(self, quiet_parameters, rng, icr):
        with pytest.raises(ConfigurationError):
            simulate(100, 50, 55, 3, icr, quiet_parameters, rng)

    def test_non_finite_input_rejected(self, quiet_parameters, rng):
        with pytest.raises(ValueError):
            simulate(float("nan"), 50, 55, 3, 4.2, quiet_parameters, rng)


class TestPredictDelta:
    """Zero-baseline forecasts."""

    def test_delta_matches_absolute_offset(self, quiet_parameters, rng):
        delta = predict_delta(83, 10, 4.2, 55, parameters=quiet_parameters, rng=rng)
        absolute = simulate(98, 83, 55, 10, 4.2, quiet_parameters, rng)
        np.testing.assert_allclose(delta.as_array() + 98.0, absolute.as_array())

    def test_delta_not_clamped_to_floor(self, quiet_parameters, rng):
        """A zero baseline is not lifted to the 40 mg/dL floor."""
        delta = predict_delta(0, 5, 4.2, parameters=quiet_parameters, rng=rng)
        assert delta.values[0] == pytest.approx(0.0)
        assert delta.final == pytest.approx(-210.0)

    def test_delta_bounded_by_range_width(self, quiet_parameters, rng):
        delta = predict_delta(0, 100, 4.2, parameters=quiet_parameters, rng=rng)
        assert delta.nadir == pytest.approx(-360.0)

    def test_default_parameters(self, rng):
        delta = predict_delta(40, 3, 10.0, rng=rng)
        assert len(delta) == 36


class TestPredictAbsolute:
    """The convenience wrapper over simulate."""

    def test_accepts_inputs_object(self, quiet_parameters, rng):
        inputs = SimulationInputs(current_bg=98, carbs_grams=83, insulin_units=10, icr=4.2)
        result = predict_absolute(inputs, quiet_parameters, rng)
        assert result.final == pytest.approx(100.055)

    def test_accepts_app_style_dict(self, quiet_parameters, rng):
        result = predict_absolute(
            {"currentBG": 98, "carbs": 83, "bolus": 10, "cir": 4.2},
            quiet_parameters,
            rng,
        )
        assert result.final == pytest.approx(100.055)

    def test_missing_keys_rejected(self, quiet_parameters, rng):
        with pytest.raises(ValueError):
            predict_absolute({"currentBG": 98, "carbs": 83}, quiet_parameters, rng)


class TestSimulateBatch:
    """Multiple scenarios with per-scenario child generators."""

    SCENARIOS = [
        {"current_bg": 98, "carbs_grams": 83, "insulin_units": 10, "icr": 4.2},
        {"current_bg": 140, "carbs_grams": 30, "insulin_units": 2, "icr": 12, "glycemic_index": 80},
        SimulationInputs(current_bg=75, carbs_grams=15, insulin_units=0, icr=10),
    ]

    def test_seeded_batch_replays(self, parameters):
        first = simulate_batch(self.SCENARIOS, parameters, np.random.default_rng(5))
        second = simulate_batch(self.SCENARIOS, parameters, np.random.default_rng(5))
        assert [r.values for r in first] == [r.values for r in second]

    def test_batch_without_noise_matches_single_calls(self, quiet_parameters):
        results = simulate_batch(self.SCENARIOS, quiet_parameters, np.random.default_rng(0))
        assert len(results) == 3
        single = predict_absolute(self.SCENARIOS[2], quiet_parameters)
        assert results[2].values == single.values
