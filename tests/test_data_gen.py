#!/usr/bin/env python3
"""
Tests for the synthetic BabySteps panel generator.
"""

import hashlib

import numpy as np
import pandas as pd
import pytest

from babysteps.config import ConfigurationError, default_config
from babysteps.data_gen import (
    AGE_RANGE,
    CATEGORIES,
    COLUMNS,
    ENGAGEMENT_CLAMP,
    PanelDataGenerator,
    generate,
    simulate_panel,
)


def _sha256(path):
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _config(tmp_path, name="raw.csv", **dataset):
    config = default_config("data_gen")
    config["dataset"].update(dataset)
    config["output"]["path"] = str(tmp_path / name)
    return config


class TestDeterminism:
    """Same seed, same bytes."""

    def test_same_seed_gives_identical_files(self, tmp_path):
        first = PanelDataGenerator(_config(tmp_path, "a.csv")).generate()
        second = PanelDataGenerator(_config(tmp_path, "b.csv")).generate()

        assert _sha256(first) == _sha256(second)

    def test_generate_twice_on_one_instance_is_reproducible(self, tmp_path):
        generator = PanelDataGenerator(_config(tmp_path))
        first = generator.generate().read_bytes()
        second = generator.generate().read_bytes()

        assert first == second

    def test_different_seed_changes_output(self, tmp_path):
        config_a = _config(tmp_path, "a.csv")
        config_b = _config(tmp_path, "b.csv")
        config_b["processing"]["seed"] = 124

        a = pd.read_csv(PanelDataGenerator(config_a).generate())
        b = pd.read_csv(PanelDataGenerator(config_b).generate())

        assert not a.equals(b)

    def test_feeding_method_does_not_disturb_other_columns(self):
        plain = simulate_panel(np.random.default_rng(7), 40, 3)
        with_feeding = simulate_panel(np.random.default_rng(7), 40, 3, include_feeding_method=True)

        pd.testing.assert_frame_equal(plain, with_feeding[COLUMNS])
        assert with_feeding.groupby("BabyID")["FeedingMethod"].nunique().eq(1).all()


class TestPanelShape:
    """Row counts, ordering and column layout."""

    @pytest.mark.parametrize("n_subjects,waves", [(1, 1), (1, 3), (7, 2), (100, 3), (25, 5)])
    def test_row_count(self, n_subjects, waves):
        df = simulate_panel(np.random.default_rng(0), n_subjects, waves)
        assert len(df) == n_subjects * waves

    def test_column_order(self, raw_csv):
        df = pd.read_csv(raw_csv)
        assert list(df.columns) == COLUMNS

    def test_subject_major_wave_minor_order(self, raw_csv):
        df = pd.read_csv(raw_csv)

        expected_ids = np.repeat(np.arange(1, 101), 3)
        expected_waves = ["T1", "T2", "T3"] * 100
        assert df["BabyID"].tolist() == expected_ids.tolist()
        assert df["Wave"].tolist() == expected_waves


class TestInvariants:
    """Per-row and per-baby value constraints."""

    @pytest.fixture(params=["inverse_duration", "independent"])
    def panel(self, request):
        return simulate_panel(np.random.default_rng(2024), 200, 3, engagement_model=request.param)

    def test_category_constant_within_subject(self, panel):
        assert panel.groupby("BabyID")["StepType"].nunique().eq(1).all()
        assert set(panel["StepType"]) <= set(CATEGORIES)

    def test_age_non_decreasing_and_bounded(self, panel):
        for _, ages in panel.groupby("BabyID")["AgeMonths"]:
            assert ages.is_monotonic_increasing
        assert panel["AgeMonths"].between(*AGE_RANGE).all()

    def test_age_capped_with_many_waves(self):
        panel = simulate_panel(np.random.default_rng(3), 20, 8)
        assert panel["AgeMonths"].max() == AGE_RANGE[1]
        for _, ages in panel.groupby("BabyID")["AgeMonths"]:
            assert ages.is_monotonic_increasing

    def test_engagement_within_clamp(self, panel):
        assert panel["GiggleCount"].between(*ENGAGEMENT_CLAMP).all()
        assert pd.api.types.is_integer_dtype(panel["GiggleCount"])

    def test_puzzle_time_positive_and_rounded(self, panel):
        assert (panel["PuzzleTime"] >= 1.0).all()
        assert np.allclose(panel["PuzzleTime"], panel["PuzzleTime"].round(1))

    def test_engagement_models_differ(self):
        inverse = simulate_panel(np.random.default_rng(5), 100, 3, engagement_model="inverse_duration")
        independent = simulate_panel(np.random.default_rng(5), 100, 3, engagement_model="independent")

        # same draws up to puzzle time, different giggle formula
        pd.testing.assert_series_equal(inverse["PuzzleTime"], independent["PuzzleTime"])
        assert not inverse["GiggleCount"].equals(independent["GiggleCount"])


class TestScenarios:
    """End-to-end generation runs."""

    def test_default_run(self, raw_csv):
        df = pd.read_csv(raw_csv)

        assert len(df) == 300
        assert df["BabyID"].nunique() == 100
        assert df["BabyID"].value_counts().eq(3).all()
        assert df["StepType"].nunique() == 3
        assert df["AgeMonths"].between(12, 24).all()

    def test_single_subject(self, tmp_path):
        path = PanelDataGenerator(_config(tmp_path, n_subjects=1, waves_per_subject=3)).generate()
        df = pd.read_csv(path)

        assert len(df) == 3
        assert df["BabyID"].nunique() == 1
        assert df["StepType"].nunique() == 1
        assert df["AgeMonths"].is_monotonic_increasing

    def test_creates_missing_directories(self, tmp_path):
        config = _config(tmp_path)
        config["output"]["path"] = str(tmp_path / "deep" / "nested" / "raw.csv")

        path = PanelDataGenerator(config).generate()
        assert path.exists()

    def test_generate_entry_point_applies_overrides(self, tmp_path):
        config_file = tmp_path / "data_gen.yaml"
        config_file.write_text("dataset:\n  n_subjects: 4\n")
        out = tmp_path / "out.csv"

        path = generate(
            config_file=str(config_file),
            n_subjects=None,
            waves=2,
            seed=9,
            out=str(out),
            engagement_model="independent",
        )

        df = pd.read_csv(path)
        assert path == out
        assert len(df) == 8


class TestFailures:
    """Configuration and I/O errors leave no output behind."""

    @pytest.mark.parametrize("n_subjects", [0, -1])
    def test_non_positive_subject_count(self, tmp_path, n_subjects):
        config = _config(tmp_path, n_subjects=n_subjects)

        with pytest.raises(ConfigurationError):
            PanelDataGenerator(config).generate()
        assert list(tmp_path.iterdir()) == []

    def test_non_positive_wave_count(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PanelDataGenerator(_config(tmp_path, waves_per_subject=0))
        assert list(tmp_path.iterdir()) == []

    def test_simulate_rejects_non_positive_counts(self):
        with pytest.raises(ConfigurationError):
            simulate_panel(np.random.default_rng(0), 0, 3)

    def test_unsupported_category_set(self):
        with pytest.raises(ConfigurationError):
            simulate_panel(np.random.default_rng(0), 5, 3, categories=("Crawling", "Walking"))

    def test_unwritable_parent(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        config = _config(tmp_path)
        config["output"]["path"] = str(blocker / "raw.csv")

        with pytest.raises(OSError):
            PanelDataGenerator(config).generate()
        assert sorted(p.name for p in tmp_path.iterdir()) == ["blocker"]
