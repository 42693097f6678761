"""Simulation helpers package."""

from .absorption_kernels import generate_kernel, kernel_for_horizons  # noqa: F401
from .bolus_calculator import estimate_meal_bolus, icr_bolus  # noqa: F401
from .metabolic_model import calculate_glucose_trajectory  # noqa: F401
from .noise import NoNoise, SensorNoiseModel  # noqa: F401
