"""
Model fitting and table export for the BabySteps workflow.

Reads the processed dataset, fits the linear and mixed-effects models and
writes descriptive, regression and prediction tables as CSV files.
"""

import itertools
import logging
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
import typer
from tqdm import tqdm

from babysteps.config import load_config
from babysteps.data_gen import CATEGORIES
from babysteps.io.paths import write_csv_atomic

logger = logging.getLogger(__name__)


class ReportError(RuntimeError):
    """Raised when a model cannot be fitted."""


# Baseline variables and their table labels
DESCRIPTIVE_VARIABLES = {
    "agemonths": "Age (months)",
    "puzzletime": "Puzzletime (sec)",
    "gigglecount": "Giggle count",
    "sleephours": "Sleep (hours)",
}

LINEAR_FORMULA = "puzzletime ~ agemonths + sleephours"

MODEL_FORMULAS = {
    "M1": "puzzletime ~ agemonths",
    "M2": "puzzletime ~ agemonths + steptype",
    "M3": "puzzletime ~ agemonths + steptype + sleephours",
}
MIXED_MODEL = ("M4", "puzzletime ~ agemonths + steptype + sleephours", "babyid")

COEF_MAP = {
    "agemonths": "Age in months",
    "steptype[T.Toddling]": "Step type: Toddling",
    "steptype[T.Walking]": "Step type: Walking",
    "sleephours": "Sleeptime in hours",
    "Intercept": "Intercept",
}

TIDY_COLUMNS = ["term", "estimate", "std.error", "statistic", "p.value", "conf.low", "conf.high"]

TABLE_FILES = {
    "descriptives": "tbl1-desc.csv",
    "linear": "tbl2-lm.csv",
    "models": "tbl3-models.csv",
    "interaction": "tbl4-interaction.csv",
}


def significance_stars(p_value: float) -> str:
    if p_value < 0.001:
        return "***"
    if p_value < 0.01:
        return "**"
    if p_value < 0.05:
        return "*"
    return ""


def step_type_levels(df: pd.DataFrame) -> List[str]:
    """Step types present in ``df``, in developmental order."""
    present = set(df["steptype"].dropna().unique())
    ordered = [c for c in CATEGORIES if c in present]
    return ordered + sorted(present - set(ordered))


def descriptive_table(df: pd.DataFrame) -> pd.DataFrame:
    """N plus mean and SD per step type for each baseline variable."""
    levels = step_type_levels(df)
    rows = []
    for column, label in DESCRIPTIVE_VARIABLES.items():
        row = {"Variable": label, "N": int(df[column].notna().sum())}
        for level in levels:
            values = df.loc[df["steptype"] == level, column]
            row[f"{level} / Mean"] = values.mean()
            row[f"{level} / SD"] = values.std()
        rows.append(row)
    return pd.DataFrame(rows).round(2)


def tidy(result, conf_level: float = 0.95) -> pd.DataFrame:
    """Coefficient table with confidence intervals, one row per term."""
    ci = result.conf_int(alpha=1 - conf_level)
    table = pd.DataFrame({
        "term": result.params.index,
        "estimate": result.params.values,
        "std.error": result.bse.values,
        "statistic": result.tvalues.values,
        "p.value": result.pvalues.values,
        "conf.low": ci.iloc[:, 0].values,
        "conf.high": ci.iloc[:, 1].values,
    })
    return table[TIDY_COLUMNS].round(3)


def _fit(name: str, fit_fn):
    try:
        return fit_fn()
    except Exception as e:
        raise ReportError(f"Model {name} could not be fitted: {e}") from e


def fit_models(df: pd.DataFrame) -> Dict[str, object]:
    """Fit M1..M3 by OLS and M4 as a random-intercept mixed model."""
    results = {}
    for name, formula in MODEL_FORMULAS.items():
        results[name] = _fit(name, lambda: smf.ols(formula, data=df).fit())

    name, formula, group = MIXED_MODEL
    results[name] = _fit(name, lambda: smf.mixedlm(formula, data=df, groups=df[group]).fit())
    return results


def model_comparison_table(results: Dict[str, object], coef_map: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """Side-by-side "estimate (se)" cells with stars, plus Num.Obs. and R2 rows."""
    coef_map = coef_map or COEF_MAP
    rows = []
    for term, label in coef_map.items():
        row = {"term": label}
        for name, result in results.items():
            if term in result.params.index:
                est = result.params[term]
                se = result.bse[term]
                stars = significance_stars(result.pvalues[term])
                row[name] = f"{est:.3f}{stars} ({se:.3f})"
            else:
                row[name] = ""
        rows.append(row)

    nobs = {"term": "Num.Obs."}
    r2 = {"term": "R2"}
    for name, result in results.items():
        nobs[name] = str(len(result.model.endog))
        rsquared = getattr(result, "rsquared", None)
        r2[name] = f"{rsquared:.3f}" if rsquared is not None else ""
    rows.extend([nobs, r2])

    return pd.DataFrame(rows, columns=["term"] + list(results))


def interaction_predictions(result, df: pd.DataFrame, grid_points: int = 100) -> pd.DataFrame:
    """Fixed-effect puzzle time predictions over an age grid for each step type."""
    ages = np.linspace(df["agemonths"].min(), df["agemonths"].max(), grid_points)
    grid = pd.DataFrame(
        list(itertools.product(step_type_levels(df), ages)),
        columns=["steptype", "agemonths"],
    )[["agemonths", "steptype"]]
    grid["puzzletime_pred"] = np.asarray(result.predict(grid))
    return grid.round(3)


class ReportBuilder:
    """Builds all result tables from the processed dataset."""

    def __init__(self, config: dict):
        self.config = config
        self.input_path = Path(config["input"]["path"])
        self.output_dir = Path(config["output"]["directory"])
        analysis = config.get("analysis", {})
        self.baseline_wave = analysis.get("baseline_wave", 1)
        self.grid_points = analysis.get("grid_points", 100)

    def load(self) -> pd.DataFrame:
        if not self.input_path.exists():
            raise FileNotFoundError(f"Processed data file {self.input_path} does not exist")
        df = pd.read_csv(self.input_path)
        df["steptype"] = df["steptype"].astype(str)
        return df

    def build(self) -> Dict[str, Path]:
        """Fit the models and write every table; returns name -> path."""
        df = self.load()
        tqdm.write(f"🚀 Building tables from {self.input_path} ({len(df):,} rows)...")

        baseline = df[df["wave"] == self.baseline_wave]
        tables = {"descriptives": descriptive_table(baseline)}

        linear = _fit("linear", lambda: smf.ols(LINEAR_FORMULA, data=df).fit())
        tables["linear"] = tidy(linear)

        results = fit_models(df)
        tables["models"] = model_comparison_table(results)
        tables["interaction"] = interaction_predictions(results["M2"], df, self.grid_points)

        written = {}
        for name, table in tables.items():
            written[name] = write_csv_atomic(table, self.output_dir / TABLE_FILES[name])
            logger.info("Wrote %s table to %s", name, written[name])

        tqdm.write(f"✅ {len(written)} tables saved in {self.output_dir}")
        return written


def report(
    config_file: str = typer.Option("config/report.yaml", "--config", help="Configuration file path"),
    input_path: Optional[str] = typer.Option(None, "--input", help="Override processed CSV path from config"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", help="Override tables directory from config"),
) -> Dict[str, Path]:
    """
    Fit the BabySteps models and export result tables.

    Example:
        python cli.py report --config config/report.yaml
    """
    config = load_config("report", config_file)

    if input_path is not None:
        config["input"]["path"] = input_path
    if output_dir is not None:
        config["output"]["directory"] = output_dir

    return ReportBuilder(config).build()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    typer.run(report)
