import logging
from contextlib import contextmanager

import typer

from babysteps.utils import setup_logging

# Configure logging
setup_logging("INFO")
logger = logging.getLogger(__name__)

app = typer.Typer(help="BabySteps reproducible research workflow")


@contextmanager
def _fail_on_error(step: str):
    """Print the error kind and cause, then exit non-zero."""
    from babysteps.config import ConfigurationError
    from babysteps.report import ReportError

    try:
        yield
    except (ConfigurationError, ReportError, OSError, ValueError) as e:
        logger.debug("%s failed", step, exc_info=True)
        typer.echo(f"ERROR: {type(e).__name__}: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def init(
    root: str = typer.Option(".", "--root", help="Project root to scaffold"),
):
    """Create the project folder tree"""
    from babysteps.io.paths import init_project

    with _fail_on_error("init"):
        created = init_project(root)
    typer.echo(f"Project folders ready under {root} ({len(created)} created)")


@app.command()
def data_gen(
    config_file: str = typer.Option("config/data_gen.yaml", "--config", help="Configuration file path"),
    n_subjects: int = typer.Option(None, "--n-subjects", help="Override number of babies from config"),
    waves: int = typer.Option(None, "--waves", help="Override waves per baby from config"),
    seed: int = typer.Option(None, "--seed", help="Override seed from config"),
    out: str = typer.Option(None, "--out", help="Override output CSV path from config"),
    engagement_model: str = typer.Option(None, "--engagement-model", help="Override giggle count model"),
):
    """Generate the synthetic BabySteps panel dataset"""
    from babysteps.data_gen import generate

    with _fail_on_error("data-gen"):
        generate(
            config_file=config_file,
            n_subjects=n_subjects,
            waves=waves,
            seed=seed,
            out=out,
            engagement_model=engagement_model,
        )


@app.command()
def prepare(
    config_file: str = typer.Option("config/preprocess.yaml", "--config", help="Configuration file path"),
    input_path: str = typer.Option(None, "--input", help="Override raw CSV path from config"),
    output_path: str = typer.Option(None, "--output", help="Override processed CSV path from config"),
):
    """Prepare the raw dataset for analysis"""
    from babysteps.preprocess import preprocess

    with _fail_on_error("prepare"):
        preprocess(config_file=config_file, input_path=input_path, output_path=output_path)


@app.command()
def report(
    config_file: str = typer.Option("config/report.yaml", "--config", help="Configuration file path"),
    input_path: str = typer.Option(None, "--input", help="Override processed CSV path from config"),
    output_dir: str = typer.Option(None, "--output-dir", help="Override tables directory from config"),
):
    """Fit the models and export result tables"""
    from babysteps.report import report as build_report

    with _fail_on_error("report"):
        build_report(config_file=config_file, input_path=input_path, output_dir=output_dir)


@app.command()
def pipeline(
    seed: int = typer.Option(None, "--seed", help="Override seed from config"),
):
    """Run init, data-gen, prepare and report in order"""
    init(root=".")
    data_gen(
        config_file="config/data_gen.yaml",
        n_subjects=None,
        waves=None,
        seed=seed,
        out=None,
        engagement_model=None,
    )
    prepare(config_file="config/preprocess.yaml", input_path=None, output_path=None)
    report(config_file="config/report.yaml", input_path=None, output_dir=None)


if __name__ == "__main__":
    app()
