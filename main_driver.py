"""Command-line entry point for the blood-glucose forecast."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np

from config import SIMULATOR_CONFIG, SimulatorConfig
from data_models import ConfigurationError, SimulationInputs
from forecast_writer import ForecastWriter, forecast_to_frame
from nutrition_parser import parse_nutrition_text
from parameter_loader import load_parameters
from simulation.bolus_calculator import estimate_meal_bolus
from simulation_engine import predict_absolute, predict_delta


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Forecast blood glucose after a meal and an insulin bolus."
    )
    parser.add_argument("--current-bg", type=float, default=None, help="Current reading (mg/dL)")
    parser.add_argument("--carbs", type=float, default=None, help="Meal carbohydrates (g)")
    parser.add_argument("--insulin", type=float, default=None, help="Bolus (units)")
    parser.add_argument("--icr", type=float, required=True, help="Insulin-to-carb ratio (g/U)")
    parser.add_argument("--gi", type=float, default=None, help="Glycemic index (0-100)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the noise overlay")
    parser.add_argument("--no-noise", action="store_true", help="Disable sensor noise")
    parser.add_argument("--delta", action="store_true", help="Print the change from baseline")
    parser.add_argument("--parameters", type=Path, default=None, help="Parameter JSON file")
    parser.add_argument(
        "--meal-text",
        type=Path,
        default=None,
        help="Meal analyser reply; carbs (and bolus, if --insulin is omitted) come from it",
    )
    parser.add_argument("--morning", action="store_true", help="Morning bolus multiplier")
    parser.add_argument("--export", default=None, help="Write the forecast to <output_dir>/<name>.parquet")
    return parser


def _resolve_meal(args: argparse.Namespace) -> dict:
    """Fill carbs/insulin from the meal text when they were not given."""
    carbs = args.carbs
    insulin = args.insulin
    meal = None

    if args.meal_text is not None:
        meal = parse_nutrition_text(args.meal_text.read_text(encoding="utf-8"))
        logger.info(
            "Parsed %d food items, %.1f g carbs from %s",
            len(meal.items),
            meal.total_carbs,
            args.meal_text,
        )
        if carbs is None:
            carbs = meal.total_carbs
        if insulin is None:
            insulin = estimate_meal_bolus(
                carbs,
                morning_mode=args.morning,
                current_glucose=args.current_bg,
            )
            logger.info("Estimated bolus: %.1f units", insulin)

    if carbs is None or insulin is None:
        raise ConfigurationError("Provide --carbs and --insulin, or --meal-text")
    return {"carbs": carbs, "insulin": insulin, "meal": meal}


def run(argv: Optional[List[str]] = None, config: SimulatorConfig = SIMULATOR_CONFIG) -> dict:
    """Parse arguments, run the forecast and return the printed payload."""
    args = build_parser().parse_args(argv)

    parameters = load_parameters(args.parameters or config.parameters_path)
    if args.no_noise or not config.noise_enabled:
        parameters = parameters.without_noise()

    seed = args.seed if args.seed is not None else config.random_seed
    rng = np.random.default_rng(seed)

    resolved = _resolve_meal(args)
    if args.delta:
        result = predict_delta(
            resolved["carbs"],
            resolved["insulin"],
            args.icr,
            glycemic_index=args.gi if args.gi is not None else parameters.gi.default_gi,
            parameters=parameters,
            rng=rng,
        )
    else:
        if args.current_bg is None:
            raise ConfigurationError("--current-bg is required for an absolute forecast")
        inputs = SimulationInputs(
            current_bg=args.current_bg,
            carbs_grams=resolved["carbs"],
            insulin_units=resolved["insulin"],
            icr=args.icr,
            glycemic_index=args.gi,
        )
        result = predict_absolute(inputs, parameters, rng=rng)

    payload = {
        "mode": "delta" if args.delta else "absolute",
        "carbs_grams": resolved["carbs"],
        "insulin_units": resolved["insulin"],
        "seed": seed,
        "forecast": result.to_dict(),
    }
    if resolved["meal"] is not None:
        payload["meal"] = resolved["meal"].to_dict()

    if args.export:
        writer = ForecastWriter(config.output_dir)
        frame = forecast_to_frame(
            result,
            mode=payload["mode"],
            carbs_grams=resolved["carbs"],
            insulin_units=resolved["insulin"],
            icr=args.icr,
        )
        payload["export_path"] = str(writer.write(frame, args.export))

    return payload


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, SIMULATOR_CONFIG.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        payload = run()
    except ConfigurationError as exc:
        logging.error("Configuration error: %s", exc)
        sys.exit(2)

    print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
