"""
Configuration management for the BabySteps workflow.
Loads and validates configuration from YAML files.
"""

import copy
import numbers
from pathlib import Path

import yaml

from babysteps.io.paths import CONFIG_DIR


class ConfigurationError(ValueError):
    """Raised when generation parameters are invalid."""


ENGAGEMENT_MODELS = ("inverse_duration", "independent")


class DataGenConfig:
    """Defaults for panel data generation."""
    n_subjects = 100
    waves_per_subject = 3
    seed = 123
    engagement_model = "inverse_duration"
    include_feeding_method = False
    output_path = "01-data/raw/babysteps-rawdata.csv"


class PreprocessConfig:
    """Defaults for the raw -> processed preparation step."""
    input_path = "01-data/raw/babysteps-rawdata.csv"
    output_path = "01-data/processed/babysteps.csv"
    fallback_url = None


class ReportConfig:
    """Defaults for model fitting and table export."""
    input_path = "01-data/processed/babysteps.csv"
    output_dir = "05-outputs/tables"
    baseline_wave = 1
    grid_points = 100


DEFAULTS = {
    "data_gen": {
        "dataset": {
            "n_subjects": DataGenConfig.n_subjects,
            "waves_per_subject": DataGenConfig.waves_per_subject,
        },
        "processing": {"seed": DataGenConfig.seed},
        "model": {
            "engagement_model": DataGenConfig.engagement_model,
            "include_feeding_method": DataGenConfig.include_feeding_method,
        },
        "output": {"path": DataGenConfig.output_path},
    },
    "preprocess": {
        "input": {
            "path": PreprocessConfig.input_path,
            "fallback_url": PreprocessConfig.fallback_url,
        },
        "output": {"path": PreprocessConfig.output_path},
    },
    "report": {
        "input": {"path": ReportConfig.input_path},
        "analysis": {
            "baseline_wave": ReportConfig.baseline_wave,
            "grid_points": ReportConfig.grid_points,
        },
        "output": {"directory": ReportConfig.output_dir},
    },
}


def default_config(config_type: str) -> dict:
    """Return a fresh copy of the built-in defaults for a stage."""
    if config_type not in DEFAULTS:
        raise ValueError(f"Unknown config type: {config_type}")
    return copy.deepcopy(DEFAULTS[config_type])


def _merge(base: dict, override: dict) -> dict:
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ConfigLoader:
    """Loads YAML configuration files into dicts."""

    def __init__(self, config_dir=None):
        self.config_dir = Path(config_dir) if config_dir is not None else CONFIG_DIR

    def load_yaml(self, filename: str):
        filepath = Path(filename)
        if not filepath.is_absolute() and "/" not in str(filename):
            if not self.config_dir.exists():
                raise FileNotFoundError(f"Configuration directory {self.config_dir} does not exist")
            filepath = self.config_dir / filename
        if not filepath.exists():
            raise FileNotFoundError(f"Configuration file {filepath} does not exist")
        with open(filepath, "r") as f:
            return yaml.safe_load(f) or {}

    def load_data_gen_config(self, filename="data_gen.yaml") -> dict:
        return _merge(default_config("data_gen"), self.load_yaml(filename))

    def load_preprocess_config(self, filename="preprocess.yaml") -> dict:
        return _merge(default_config("preprocess"), self.load_yaml(filename))

    def load_report_config(self, filename="report.yaml") -> dict:
        return _merge(default_config("report"), self.load_yaml(filename))


def load_config(config_type: str, filename=None, config_dir=None):
    loader = ConfigLoader(config_dir)
    if config_type == "data_gen":
        return loader.load_data_gen_config(filename or "data_gen.yaml")
    elif config_type == "preprocess":
        return loader.load_preprocess_config(filename or "preprocess.yaml")
    elif config_type == "report":
        return loader.load_report_config(filename or "report.yaml")
    else:
        raise ValueError(f"Unknown config type: {config_type}")


def _is_int(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def validate_data_gen_config(config: dict) -> None:
    """Check generation parameters, raising ConfigurationError on the first problem."""
    try:
        n_subjects = config["dataset"]["n_subjects"]
        waves = config["dataset"]["waves_per_subject"]
        seed = config["processing"]["seed"]
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Missing data generation setting: {e}") from e

    if not _is_int(n_subjects) or n_subjects <= 0:
        raise ConfigurationError(f"n_subjects must be a positive integer, got {n_subjects!r}")
    if not _is_int(waves) or waves <= 0:
        raise ConfigurationError(f"waves_per_subject must be a positive integer, got {waves!r}")
    if not _is_int(seed) or seed < 0:
        raise ConfigurationError(f"seed must be a non-negative integer, got {seed!r}")

    engagement_model = config.get("model", {}).get("engagement_model", DataGenConfig.engagement_model)
    if engagement_model not in ENGAGEMENT_MODELS:
        raise ConfigurationError(
            f"Unknown engagement_model {engagement_model!r}; expected one of {', '.join(ENGAGEMENT_MODELS)}"
        )
