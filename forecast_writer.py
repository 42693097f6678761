"""Write glucose forecasts to Parquet files."""

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from data_models import ForecastResult

# Configure logging
logger = logging.getLogger(__name__)


def forecast_to_frame(result: ForecastResult, **metadata: Any) -> pd.DataFrame:
    """Long-format frame: one row per horizon, metadata repeated on every row.

    Args:
        result: Forecast to convert
        **metadata: Extra constant columns (scenario id, inputs, seed...)

    Returns:
        DataFrame with ``minutes``, ``glucose_mgdl`` and the metadata columns
    """
    frame = pd.DataFrame(
        {
            "minutes": list(result.horizons),
            "glucose_mgdl": list(result.values),
        }
    )
    for column, value in metadata.items():
        frame[column] = value
    return frame


def forecasts_to_frame(
    results: Iterable[ForecastResult],
    scenario_ids: Optional[Iterable[Any]] = None,
) -> pd.DataFrame:
    """Stack several forecasts, tagging each with a ``scenario_id`` column."""
    results = list(results)
    ids = list(scenario_ids) if scenario_ids is not None else list(range(len(results)))
    if len(ids) != len(results):
        raise ValueError("scenario_ids must match the number of forecasts")
    frames = [
        forecast_to_frame(result, scenario_id=scenario_id)
        for scenario_id, result in zip(ids, results)
    ]
    if not frames:
        return pd.DataFrame(columns=["minutes", "glucose_mgdl", "scenario_id"])
    return pd.concat(frames, ignore_index=True)


class ForecastWriter:
    """Write forecast tables to Parquet format.

    Single Responsibility: Handle forecast serialization and file I/O.
    """

    def __init__(self, output_dir: Path):
        """Initialize forecast writer.

        Args:
            output_dir: Directory to write output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write(self, frame: pd.DataFrame, name: str, append: bool = True) -> Path:
        """Write a forecast table to ``<output_dir>/<name>.parquet``.

        Args:
            frame: Table produced by ``forecast_to_frame``/``forecasts_to_frame``
            name: File stem
            append: If True, append to an existing file with the same name

        Returns:
            Path to written file
        """
        output_path = self.output_dir / f"{name}.parquet"
        logger.info(f"Writing {len(frame)} forecast rows to {output_path} (append={append})")

        if append and output_path.exists():
            existing_df = pd.read_parquet(output_path, engine="pyarrow")
            frame = pd.concat([existing_df, frame], ignore_index=True)
            logger.info(f"Appended to existing forecast file, total rows now: {len(frame)}")

        table = pa.Table.from_pandas(frame, preserve_index=False)
        pq.write_table(table, output_path, compression="snappy")

        final_size = output_path.stat().st_size / 1024
        logger.info(f"Forecast file size: {final_size:.1f} KB")
        return output_path
