#!/usr/bin/env python
"""
Summarize posterior draws of a learning model: point estimates, DIC and
posterior-predictive item means.
"""

from pathlib import Path

import numpy as np
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from learning_analysis import learning_fit, point_estimates
from learning_analysis.core.data import (
    load_draw_set,
    load_learning_data,
    save_deviance_table,
)
from learning_analysis.core.enums import DecodingMethod, ModelName
from learning_analysis.core.exceptions import LearningAnalysisError
from learning_analysis.summary.config import SummaryConfig

PROJECT_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_OUTPUT_DIR = PROJECT_DIR / "data" / "summaries"

console = Console(force_terminal=True, legacy_windows=True)
app = typer.Typer()


def _format(value: float) -> str:
    return "NA" if np.isnan(value) else f"{value:.2f}"


@app.command()
def main(
    draws_path: Path = typer.Argument(
        ..., help="Path to .npz archive with the posterior draws"
    ),
    data_path: Path = typer.Argument(
        ..., help="Path to .npz archive with responses, Q-matrices and design"
    ),
    model: ModelName = typer.Option(
        ..., "-m", "--model", help="Model variant the draws belong to"
    ),
    decoding: DecodingMethod = typer.Option(
        DecodingMethod.EAP,
        "-d",
        "--decoding",
        help="Trajectory decoding for the reported point estimates",
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR,
        "-o",
        "--output-dir",
        help="Output directory for the deviance table and fit report",
    ),
    seed: int | None = typer.Option(
        None,
        "-s",
        "--seed",
        help="Random seed for posterior-predictive simulation",
    ),
) -> None:
    """Compute point estimates and fit statistics for posterior draws."""

    for path in (draws_path, data_path):
        if not path.exists():
            console.print(f"[red]File not found: {path}[/red]")
            raise typer.Exit(1)

    console.print("[dim]Loading draws and data...[/dim]")
    try:
        draws = load_draw_set(draws_path)
        data = load_learning_data(data_path)
    except (LearningAnalysisError, ValueError) as e:
        console.print(f"[red]Error loading input: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(
        Panel(
            f"[bold]Summarize Learning Model[/bold]\n\n"
            f"Model: [cyan]{model.value}[/cyan]\n"
            f"Draws: [cyan]{draws.n_its}[/cyan]\n"
            f"Subjects: [cyan]{data.n_subjects}[/cyan]\n"
            f"Skills: [cyan]{data.n_skills}[/cyan]\n"
            f"Time points: [cyan]{data.n_times}[/cyan]",
            title="Configuration",
        )
    )

    config = SummaryConfig(point_estimate_decoding=decoding, seed=seed)
    try:
        estimates = point_estimates(
            draws,
            model,
            n_times=data.n_times,
            n_skills=data.n_skills,
            decoding=config.point_estimate_decoding,
        )
        fit = learning_fit(draws, model, data, config)
    except LearningAnalysisError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    mastery = estimates.alphas.mean(axis=0)  # (K, T)
    console.print("Skill mastery (share of subjects):")
    for k in range(estimates.n_skills):
        shares = "  ".join(f"{p:.2f}" for p in mastery[k])
        console.print(f"  Skill {k + 1}: {shares}")

    dic_table = Table(title="Deviance Information Criterion")
    dic_table.add_column("Statistic")
    for column in fit.dic.table.columns:
        dic_table.add_column(str(column), justify="right")
    for row_label, row in fit.dic.table.iterrows():
        dic_table.add_row(str(row_label), *(_format(v) for v in row))
    console.print(dic_table)

    item_means = fit.posterior_predictive.mean_item_means()
    console.print(
        f"Posterior-predictive item means: "
        f"min {np.nanmin(item_means):.3f}, max {np.nanmax(item_means):.3f}"
    )

    table_path = output_dir / f"{draws_path.stem}_dic.csv"
    report_path = output_dir / f"{draws_path.stem}_fit.json"
    save_deviance_table(fit.dic.table, table_path)
    with open(report_path, "w") as f:
        f.write(fit.report().model_dump_json(indent=4))

    console.print(
        Panel(
            f"[bold green]Summary saved[/bold green]\n\n"
            f"Deviance table: [cyan]{table_path}[/cyan]\n"
            f"Fit report: [cyan]{report_path}[/cyan]",
            title="Done",
        )
    )


if __name__ == "__main__":
    app()
