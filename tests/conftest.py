"""
Shared fixtures for the BabySteps test suite.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from babysteps.config import default_config
from babysteps.data_gen import PanelDataGenerator
from babysteps.preprocess import DataPreprocessor


@pytest.fixture
def data_gen_config(tmp_path):
    """Default generation config writing into a temporary directory."""
    config = default_config("data_gen")
    config["output"]["path"] = str(tmp_path / "01-data" / "raw" / "babysteps-rawdata.csv")
    return config


@pytest.fixture
def raw_csv(data_gen_config):
    """Raw dataset generated with the default seed (123)."""
    return PanelDataGenerator(data_gen_config).generate()


@pytest.fixture
def processed_csv(raw_csv, tmp_path):
    """Processed copy of the default raw dataset."""
    config = default_config("preprocess")
    config["input"]["path"] = str(raw_csv)
    config["output"]["path"] = str(tmp_path / "01-data" / "processed" / "babysteps.csv")
    return DataPreprocessor(config).preprocess()
