"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from data_models import SimulationParameters
from parameter_loader import load_parameters
from simulation.absorption_kernels import generate_kernel


@pytest.fixture
def parameters() -> SimulationParameters:
    """Bundled defaults: 5..180 min horizons, 40-400 mg/dL, noise enabled."""
    return load_parameters()


@pytest.fixture
def quiet_parameters(parameters) -> SimulationParameters:
    """Bundled defaults with the noise overlay switched off."""
    return parameters.without_noise()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def single_step_parameters() -> SimulationParameters:
    return SimulationParameters(
        horizons=[5.0],
        carb_kernel=[0.1],
        insulin_kernel=[0.0],
    )


@pytest.fixture
def grid_parameters() -> SimulationParameters:
    """Parameters built directly from generated kernels, no file involved."""
    horizons = [5.0 * i for i in range(1, 37)]
    return SimulationParameters(
        horizons=horizons,
        carb_kernel=generate_kernel(45, 180),
        insulin_kernel=generate_kernel(75, 180, delay_minutes=15),
    )
