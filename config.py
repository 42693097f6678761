"""Centralized configuration for the blood-glucose forecast tooling."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load environment variables from a local .env file when present.
load_dotenv()


def _bool_from_env(var_name: str, default: bool = True) -> bool:
    """Interpret common truthy/falsey strings from the environment."""

    raw_value = os.getenv(var_name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_int_from_env(var_name: str) -> Optional[int]:
    raw_value = os.getenv(var_name)
    if raw_value is None or not raw_value.strip():
        return None
    return int(raw_value)


def _optional_path_from_env(var_name: str) -> Optional[Path]:
    raw_value = os.getenv(var_name)
    if raw_value is None or not raw_value.strip():
        return None
    return Path(raw_value)


@dataclass(frozen=True)
class SimulatorConfig:
    """Runtime settings for the CLI; the simulator core takes explicit arguments."""

    parameters_path: Optional[Path] = _optional_path_from_env("BG_PARAMETERS_PATH")
    random_seed: Optional[int] = _optional_int_from_env("BG_RANDOM_SEED")
    noise_enabled: bool = _bool_from_env("BG_NOISE_ENABLED", default=True)
    output_dir: Path = Path(os.getenv("BG_OUTPUT_DIR", "forecast_output"))
    log_level: str = os.getenv("BG_LOG_LEVEL", "INFO").upper()


SIMULATOR_CONFIG = SimulatorConfig()
