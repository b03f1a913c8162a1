"""
Data preparation module for the BabySteps workflow.

Turns the raw generated file into the processed copy used for modeling:
lowercase column names, integer wave index and an age-bracket category.
Uses Polars Lazy; the raw file is only ever read.
"""

import logging
from pathlib import Path
from typing import Optional

import polars as pl
import typer
from polars import LazyFrame
from tqdm import tqdm

from babysteps.config import load_config
from babysteps.io.paths import write_csv_atomic

logger = logging.getLogger(__name__)


# (upper bound in months, label); the last bracket is open-ended
AGE_GROUPS = [
    (14, "12-14 months"),
    (20, "15-20 months"),
]
AGE_GROUP_OTHER = "21-24 months"

# Columns the cleaning steps read, after lowercasing
REQUIRED_COLUMNS = ("wave", "agemonths")


class DataPreprocessor:
    """Prepares the raw BabySteps panel for analysis using Polars Lazy."""

    def __init__(self, config: dict):
        self.config = config
        self.input_path = Path(config["input"]["path"])
        self.output_path = Path(config["output"]["path"])
        self.fallback_url = config["input"].get("fallback_url")

    def _load_raw(self) -> LazyFrame:
        """Scan the raw CSV, or the published copy when the local file is missing."""
        if self.input_path.exists():
            return pl.scan_csv(self.input_path)
        if self.fallback_url:
            logger.warning("%s not found, reading %s instead", self.input_path, self.fallback_url)
            return pl.read_csv(self.fallback_url).lazy()
        raise FileNotFoundError(f"Raw data file {self.input_path} does not exist")

    @staticmethod
    def _standardize_names(df: LazyFrame) -> LazyFrame:
        names = df.collect_schema().names()
        return df.rename({name: name.lower() for name in names})

    @staticmethod
    def _check_columns(df: LazyFrame) -> None:
        names = df.collect_schema().names()
        missing = [c for c in REQUIRED_COLUMNS if c not in names]
        if missing:
            raise ValueError(f"Raw data is missing required column(s): {missing}")

    @staticmethod
    def _recode_wave(df: LazyFrame) -> LazyFrame:
        """Convert wave labels like ``T2`` into integers."""
        if df.collect_schema()["wave"].is_integer():
            return df
        return df.with_columns(
            pl.col("wave").cast(pl.Utf8).str.strip_chars_start("T").cast(pl.Int64, strict=True)
        )

    @staticmethod
    def _add_age_group(df: LazyFrame) -> LazyFrame:
        expr = pl.when(pl.col("agemonths") <= AGE_GROUPS[0][0]).then(pl.lit(AGE_GROUPS[0][1]))
        for upper, label in AGE_GROUPS[1:]:
            expr = expr.when(pl.col("agemonths") <= upper).then(pl.lit(label))
        return df.with_columns(expr.otherwise(pl.lit(AGE_GROUP_OTHER)).alias("agegroup"))

    @staticmethod
    def _report_missing(df: pl.DataFrame) -> dict:
        counts = {name: int(n) for name, n in zip(df.columns, df.null_count().row(0))}
        missing = {k: v for k, v in counts.items() if v}
        if missing:
            logger.warning("Missing values per column: %s", missing)
        else:
            logger.info("No missing values in %d rows", df.height)
        return counts

    def transform(self, df: LazyFrame) -> pl.DataFrame:
        """Apply all cleaning steps to a raw lazy frame."""
        df = self._standardize_names(df)
        self._check_columns(df)
        df = self._recode_wave(df)
        df = self._add_age_group(df)
        try:
            result = df.collect()
        except pl.exceptions.ColumnNotFoundError as e:
            raise ValueError(f"Raw data is missing a required column: {e}") from e
        except (pl.exceptions.InvalidOperationError, pl.exceptions.ComputeError) as e:
            raise ValueError(f"Wave labels must look like 'T<number>': {e}") from e
        self._report_missing(result)
        return result

    def preprocess(self) -> Path:
        """Main preparation pipeline; returns the processed file path."""
        tqdm.write(f"🚀 Preparing {self.input_path} ...")
        processed = self.transform(self._load_raw())

        path = write_csv_atomic(processed, self.output_path)
        tqdm.write(f"✅ Processed dataset saved: {path} ({processed.height:,} rows, {processed.width} columns)")
        return path


def preprocess(
    config_file: str = typer.Option("config/preprocess.yaml", "--config", help="Configuration file path"),
    input_path: Optional[str] = typer.Option(None, "--input", help="Override raw CSV path from config"),
    output_path: Optional[str] = typer.Option(None, "--output", help="Override processed CSV path from config"),
) -> Path:
    """
    Prepare the raw BabySteps dataset for analysis.

    Example:
        python cli.py prepare --config config/preprocess.yaml
    """
    config = load_config("preprocess", config_file)

    if input_path is not None:
        config["input"]["path"] = input_path
    if output_path is not None:
        config["output"]["path"] = output_path

    return DataPreprocessor(config).preprocess()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    typer.run(preprocess)
