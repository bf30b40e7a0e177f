"""
Main CLI entry point for Grove.

Combines all command modules into a single CLI interface.
"""

import typer
from typing import Optional

from ..utils.logging import setup_logging

# Create main CLI app
app = typer.Typer(
    name="grove",
    help="Grove - grid-search tuning for tree ensembles",
    add_completion=False
)

from .tune import (
    tune_hyperparameters,
    compare_models
)

app.command("tune")(tune_hyperparameters)
app.command("compare")(compare_models)


@app.command()
def version():
    """Show version information."""
    from .. import __version__
    typer.echo(f"Grove v{__version__}")


@app.command()
def info():
    """Show available model families, metrics and datasets."""
    from ..data.datasets import BUILTIN_DATASETS
    from ..evaluation.metrics import METRICS
    from ..models import MODEL_FAMILIES

    typer.echo("Grove - grid-search tuning for tree ensembles")
    typer.echo("=" * 40)

    typer.echo("Model families:")
    for name, model_class in MODEL_FAMILIES.items():
        oob = " (oob)" if model_class.supports_oob else ""
        typer.echo(f"  - {name}{oob}")

    typer.echo("Metrics:")
    for name, metric in METRICS.items():
        typer.echo(f"  - {name} [{metric.task}, {metric.direction}]")

    typer.echo("Built-in datasets:")
    for name, (_, label) in BUILTIN_DATASETS.items():
        typer.echo(f"  - {name} (label: {label})")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Log to file")
):
    """
    Grove - grid-search tuning for tree ensembles

    Tunes single trees, bagging, random forests and boosting over an ordered
    hyperparameter grid with k-fold or out-of-bag scoring.
    """
    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(log_level=log_level, log_file=log_file)


if __name__ == "__main__":
    app()
