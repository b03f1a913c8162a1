"""
Synthetic data generation module for the BabySteps panel dataset.

Generates a balanced longitudinal dataset of babies observed at several waves,
with mobility stage, age, sleep, puzzle-solving time and giggle count that
depend on each other. The whole dataset is determined by a single seed.
"""

import logging
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import typer
from tqdm import tqdm

from babysteps.config import ENGAGEMENT_MODELS, ConfigurationError, load_config, validate_data_gen_config
from babysteps.io.paths import write_csv_atomic

logger = logging.getLogger(__name__)


# Mobility stages, ordered
CATEGORIES = ("Crawling", "Toddling", "Walking")
FEEDING_METHODS = ("Breastfed", "Formula", "Mixed")

AGE_RANGE = (12, 24)
START_AGE_MAX = 18
WAVE_SPACING_MONTHS = 3

SLEEP_RANGE = (10, 14)
SLEEP_REFERENCE = 12
SLEEP_JITTER = 1

NOISE_STD = 5.0
DURATION_FLOOR = 1.0
DURATION_PRECISION = 1

ENGAGEMENT_CLAMP = (3, 10)
ENGAGEMENT_NOISE_STD = 1.0

# Engagement formula used when the config does not name one
ENGAGEMENT_MODEL = "inverse_duration"

# Seconds added to puzzle time per stage
DURATION_PENALTY = {"Crawling": 10.0, "Toddling": 5.0, "Walking": 0.0}
# Giggles added per stage, and per-month age slope per stage
ENGAGEMENT_BONUS = {"Crawling": 0.0, "Toddling": 0.5, "Walking": 1.0}
ENGAGEMENT_AGE_SLOPE = {"Crawling": 0.05, "Toddling": 0.1, "Walking": 0.15}

COLUMNS = [
    "BabyID",
    "StepType",
    "AgeMonths",
    "Wave",
    "SleepHours",
    "PuzzleTime",
    "GiggleCount",
]


def _stage_values(categories: np.ndarray, table: dict) -> np.ndarray:
    return np.array([table[c] for c in categories], dtype=float)


def simulate_panel(
    rng: np.random.Generator,
    n_subjects: int,
    waves_per_subject: int,
    engagement_model: str = ENGAGEMENT_MODEL,
    include_feeding_method: bool = False,
    categories=CATEGORIES,
) -> pd.DataFrame:
    """Simulate the BabySteps panel using ``rng`` as the only source of randomness.

    Draws happen in a fixed order (stages, start ages, sleep baseline, sleep
    jitter, puzzle noise, giggle noise, feeding method); changing that order
    changes the output for a given seed.

    Args:
        rng: Generator seeded once by the caller.
        n_subjects: Number of babies.
        waves_per_subject: Observations per baby.
        engagement_model: ``"inverse_duration"`` derives giggles from puzzle
            time; ``"independent"`` derives them from age, sleep and stage
            with their own noise.
        include_feeding_method: Append a per-baby ``FeedingMethod`` column.
        categories: Mobility stages; must hold exactly three values.

    Returns:
        DataFrame with ``n_subjects * waves_per_subject`` rows in baby-major,
        wave-minor order.
    """
    if n_subjects <= 0 or waves_per_subject <= 0:
        raise ConfigurationError(
            f"Subject and wave counts must be positive, got {n_subjects} x {waves_per_subject}"
        )
    if len(categories) != len(CATEGORIES):
        raise ConfigurationError(f"Expected {len(CATEGORIES)} mobility stages, got {len(categories)}")
    unknown = [c for c in categories if c not in DURATION_PENALTY]
    if unknown:
        raise ConfigurationError(f"Unsupported mobility stages: {unknown}")
    if engagement_model not in ENGAGEMENT_MODELS:
        raise ConfigurationError(f"Unknown engagement model {engagement_model!r}")

    shape = (n_subjects, waves_per_subject)

    # 1. stage, fixed per baby
    step_type = rng.choice(np.asarray(categories), size=n_subjects)

    # 2. ages: start age plus wave offset, capped
    start_age = rng.integers(AGE_RANGE[0], START_AGE_MAX + 1, size=n_subjects)
    offsets = WAVE_SPACING_MONTHS * np.arange(waves_per_subject)
    age = np.minimum(start_age[:, None] + offsets[None, :], AGE_RANGE[1])

    # 3. sleep: baby baseline plus small per-wave jitter
    sleep_base = rng.integers(SLEEP_RANGE[0], SLEEP_RANGE[1] + 1, size=n_subjects)
    jitter = rng.integers(-SLEEP_JITTER, SLEEP_JITTER + 1, size=shape)
    sleep = np.clip(sleep_base[:, None] + jitter, *SLEEP_RANGE)

    # 4. puzzle time
    noise = rng.normal(0.0, NOISE_STD, size=shape)
    penalty = _stage_values(step_type, DURATION_PENALTY)[:, None]
    duration = 60.0 - 1.5 * age + penalty - 2.0 * (sleep - SLEEP_REFERENCE) + noise
    duration = np.round(np.maximum(duration, DURATION_FLOOR), DURATION_PRECISION)

    # 5. giggle count
    bonus = _stage_values(step_type, ENGAGEMENT_BONUS)[:, None]
    slope = _stage_values(step_type, ENGAGEMENT_AGE_SLOPE)[:, None]
    months = age - AGE_RANGE[0]
    if engagement_model == "inverse_duration":
        engagement = 12.0 - 0.2 * duration + bonus + slope * months
    else:
        engagement_noise = rng.normal(0.0, ENGAGEMENT_NOISE_STD, size=shape)
        engagement = (
            4.0 + 0.2 * months + 0.3 * (sleep - SLEEP_REFERENCE)
            + bonus + slope * months + engagement_noise
        )
    engagement = np.clip(np.rint(engagement), *ENGAGEMENT_CLAMP).astype(int)

    feeding = None
    if include_feeding_method:
        feeding = rng.choice(np.asarray(FEEDING_METHODS), size=n_subjects)

    # 6. assemble baby-major, wave-minor
    rows = []
    for i in tqdm(
        range(n_subjects),
        desc="Assembling rows",
        unit="babies",
        ncols=80,
        ascii=True,
        leave=False,
        disable=n_subjects < 1000,
        file=sys.stdout,
    ):
        for w in range(waves_per_subject):
            row = {
                "BabyID": i + 1,
                "StepType": str(step_type[i]),
                "AgeMonths": int(age[i, w]),
                "Wave": f"T{w + 1}",
                "SleepHours": int(sleep[i, w]),
                "PuzzleTime": float(duration[i, w]),
                "GiggleCount": int(engagement[i, w]),
            }
            if feeding is not None:
                row["FeedingMethod"] = str(feeding[i])
            rows.append(row)

    columns = COLUMNS + (["FeedingMethod"] if feeding is not None else [])
    return pd.DataFrame(rows, columns=columns)


class PanelDataGenerator:
    """Generates the BabySteps raw dataset and writes it to CSV."""

    def __init__(self, config):
        validate_data_gen_config(config)
        self.config = config

    @property
    def output_path(self) -> Path:
        return Path(self.config["output"]["path"])

    def generate(self) -> Path:
        """Simulate the panel and persist it; returns the written path."""
        dataset = self.config["dataset"]
        model = self.config.get("model", {})
        seed = self.config["processing"]["seed"]

        n_subjects = dataset["n_subjects"]
        waves = dataset["waves_per_subject"]
        total_rows = n_subjects * waves
        tqdm.write(f"🚀 Generating {n_subjects:,} babies x {waves} waves ({total_rows:,} rows), seed={seed}...")

        # One generator per run; never reseeded.
        rng = np.random.default_rng(seed)
        df = simulate_panel(
            rng,
            n_subjects,
            waves,
            engagement_model=model.get("engagement_model", ENGAGEMENT_MODEL),
            include_feeding_method=bool(model.get("include_feeding_method", False)),
        )

        try:
            path = write_csv_atomic(df, self.output_path)
        except OSError as e:
            logger.error("Could not write %s: %s", self.output_path, e)
            raise

        tqdm.write(f"✅ Data generation complete! {len(df):,} rows written")
        tqdm.write(f"📁 Output file: {path.absolute()}")
        logger.info("Wrote %d rows to %s", len(df), path)
        return path


def generate(
    config_file: str = typer.Option("config/data_gen.yaml", "--config", help="Configuration file path"),
    n_subjects: int = typer.Option(None, "--n-subjects", help="Override number of babies from config"),
    waves: int = typer.Option(None, "--waves", help="Override waves per baby from config"),
    seed: int = typer.Option(None, "--seed", help="Override seed from config"),
    out: str = typer.Option(None, "--out", help="Override output CSV path from config"),
    engagement_model: str = typer.Option(
        None, "--engagement-model", help="Override giggle count model (inverse_duration | independent)"
    ),
) -> Path:
    """
    Generate the synthetic BabySteps panel dataset.

    Example:
        python cli.py data-gen --config config/data_gen.yaml
        python cli.py data-gen --n-subjects 50 --seed 7 --out 01-data/raw/small.csv
    """
    config = load_config("data_gen", config_file)

    # Override config values if provided as command line arguments
    if n_subjects is not None:
        config["dataset"]["n_subjects"] = n_subjects
    if waves is not None:
        config["dataset"]["waves_per_subject"] = waves
    if seed is not None:
        config["processing"]["seed"] = seed
    if out is not None:
        config["output"]["path"] = out
    if engagement_model is not None:
        config["model"]["engagement_model"] = engagement_model

    generator = PanelDataGenerator(config)
    return generator.generate()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    typer.run(generate)
