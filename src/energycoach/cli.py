"""CLI interface using Typer."""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from energycoach.agent.response import create_response, error_response
from energycoach.config import get_settings, reload_settings
from energycoach.config.settings import Settings, default_config_path
from energycoach.errors import EnergyCoachError
from energycoach.logging_config import configure_logging
from energycoach.tracking.models import coerce_date

app = typer.Typer(
    help="Adaptive energy expenditure and weekly coaching from your logs",
    no_args_is_help=True,
)
console = Console()

# Subcommand groups
tdee_app = typer.Typer(help="TDEE estimation and energy components")
config_app = typer.Typer(help="Show or create the settings file")

app.add_typer(tdee_app, name="tdee")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Settings file (default: ~/.energycoach/config.yaml)"
    ),
) -> None:
    """Set up logging and settings before any command."""
    configure_logging(verbose)
    if config_path is not None:
        try:
            reload_settings(config_path)
        except EnergyCoachError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: dict, file=None) -> None:
    """Output JSON response to stdout or file."""
    json_str = json.dumps(response, indent=2, default=str)
    if file:
        file.write(json_str)
    else:
        print(json_str)


def fail(command: str, error: EnergyCoachError, json_output: bool) -> None:
    """Report an engine error and exit with status 1."""
    if json_output:
        output_json(error_response(command, error).to_dict())
    else:
        console.print(f"[red]Error: {error}[/red]")
    raise typer.Exit(1)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse an optional --as-of style ISO date."""
    if value is None:
        return None
    return coerce_date("as_of", value)


# ============================================================================
# TDEE Commands
# ============================================================================


@tdee_app.command("estimate")
def tdee_estimate(
    weights: Path = typer.Option(
        ..., "--weights", "-w", exists=True, dir_okay=False, help="Weight log CSV (date,weight)"
    ),
    nutrition: Path = typer.Option(
        ..., "--nutrition", "-n", exists=True, dir_okay=False, help="Nutrition log CSV (date,calories,...)"
    ),
    profile: Path = typer.Option(
        ..., "--profile", "-p", exists=True, dir_okay=False, help="Profile YAML"
    ),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Estimate date (YYYY-MM-DD, default: latest entry)"),
    history: bool = typer.Option(False, "--history", help="Include the history row"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Estimate TDEE from your weight trend and logged intake."""
    from energycoach.data.loaders import load_nutrition_csv, load_profile, load_weight_csv
    from energycoach.tracking.diagnostics import (
        build_expenditure_record,
        format_components,
        format_tdee_estimate,
    )
    from energycoach.tracking.estimator import estimate_tdee

    command = "tdee estimate"
    try:
        user = load_profile(profile)
        weight_series = load_weight_csv(weights)
        nutrition_series = load_nutrition_csv(nutrition)
        estimate = estimate_tdee(
            weight_series,
            nutrition_series,
            user.targets,
            user.biological,
            user.activity,
            as_of=parse_date(as_of),
            settings=get_settings(),
        )
        record = build_expenditure_record(estimate, weight_series, nutrition_series)
    except EnergyCoachError as e:
        fail(command, e, json_output)
        return

    if json_output:
        data = estimate.to_dict()
        if estimate.quality_report is not None:
            data["quality"] = estimate.quality_report.to_dict()
        if history:
            data["history_row"] = record.to_dict()
        response = create_response(
            command=command,
            data=data,
            warnings=list(estimate.warnings),
            suggestions=list(estimate.quality_report.recommendations) if estimate.quality_report else [],
            human_summary=(
                f"TDEE: {estimate.current_tdee} kcal/day "
                f"({estimate.confidence_percent}% confidence, {estimate.methodology.value})"
            ),
        )
        output_json(response.to_dict())
        return

    console.print(format_tdee_estimate(estimate), markup=False)
    if estimate.energy_components is not None:
        console.print()
        console.print(format_components(estimate.energy_components), markup=False)

    if history:
        table = Table(title="History Row")
        table.add_column("Field", style="cyan")
        table.add_column("Value", justify="right")
        for key, value in record.to_dict().items():
            table.add_row(key, "-" if value is None else str(value))
        console.print(table)


@tdee_app.command("components")
def tdee_components(
    profile: Path = typer.Option(
        ..., "--profile", "-p", exists=True, dir_okay=False, help="Profile YAML"
    ),
    intake: float = typer.Option(..., "--intake", "-i", help="Average daily intake (kcal)"),
    actual_tdee: Optional[float] = typer.Option(
        None, "--actual-tdee", help="Observed TDEE to reconcile against"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Break TDEE into BMR, TEF, EAT and NEAT."""
    from energycoach.data.loaders import load_profile
    from energycoach.profiles.body_calc import decompose_energy
    from energycoach.tracking.diagnostics import format_components

    command = "tdee components"
    try:
        user = load_profile(profile)
        components = decompose_energy(user.biological, user.activity, intake, actual_tdee=actual_tdee)
    except EnergyCoachError as e:
        fail(command, e, json_output)
        return

    if json_output:
        response = create_response(
            command=command,
            data=components.to_dict(),
            human_summary=f"TDEE components total {components.total} kcal/day",
        )
        output_json(response.to_dict())
    else:
        console.print(format_components(components), markup=False)


@tdee_app.command("weighted")
def tdee_weighted(
    weights: Path = typer.Option(
        ..., "--weights", "-w", exists=True, dir_okay=False, help="Weight log CSV"
    ),
    nutrition: Path = typer.Option(
        ..., "--nutrition", "-n", exists=True, dir_okay=False, help="Nutrition log CSV"
    ),
    period: int = typer.Option(7, "--period", help="Period length in days"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Blend per-period TDEE figures by data quality and recency."""
    from energycoach.data.loaders import load_nutrition_csv, load_weight_csv
    from energycoach.tracking.diagnostics import format_weighted_tdee
    from energycoach.tracking.estimator import weighted_tdee

    command = "tdee weighted"
    try:
        result = weighted_tdee(
            load_weight_csv(weights),
            load_nutrition_csv(nutrition),
            period_days=period,
            settings=get_settings(),
        )
    except EnergyCoachError as e:
        fail(command, e, json_output)
        return

    if json_output:
        summary = (
            f"Weighted TDEE: {result.tdee} kcal/day ({result.confidence:.0%} confidence)"
            if result.tdee is not None
            else "Not enough data for a weighted TDEE"
        )
        response = create_response(command=command, data=result.to_dict(), human_summary=summary)
        output_json(response.to_dict())
    else:
        console.print(format_weighted_tdee(result), markup=False)


# ============================================================================
# Data Quality
# ============================================================================


@app.command()
def quality(
    weights: Path = typer.Option(
        ..., "--weights", "-w", exists=True, dir_okay=False, help="Weight log CSV"
    ),
    nutrition: Path = typer.Option(
        ..., "--nutrition", "-n", exists=True, dir_okay=False, help="Nutrition log CSV"
    ),
    window: Optional[int] = typer.Option(None, "--window", help="Lookback window in days (default: 30)"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Last day of the window (YYYY-MM-DD)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Score how reliable your logs are for estimating TDEE."""
    from energycoach.data.loaders import load_nutrition_csv, load_weight_csv
    from energycoach.data.quality import score_data_quality
    from energycoach.tracking.diagnostics import format_quality_report

    command = "quality"
    try:
        report = score_data_quality(
            load_nutrition_csv(nutrition),
            load_weight_csv(weights),
            window_days=window,
            as_of=parse_date(as_of),
            settings=get_settings(),
        )
    except EnergyCoachError as e:
        fail(command, e, json_output)
        return

    if json_output:
        response = create_response(
            command=command,
            data=report.to_dict(),
            suggestions=list(report.recommendations),
            human_summary=f"Data quality {report.overall_quality:.0%} ({report.level.value})",
        )
        output_json(response.to_dict())
    else:
        console.print(format_quality_report(report), markup=False)


@app.command()
def adherence(
    nutrition: Path = typer.Option(
        ..., "--nutrition", "-n", exists=True, dir_okay=False, help="Nutrition log CSV"
    ),
    profile: Path = typer.Option(
        ..., "--profile", "-p", exists=True, dir_okay=False, help="Profile YAML"
    ),
    window: int = typer.Option(30, "--window", help="Lookback window in days"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Last day of the window (YYYY-MM-DD)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Score how closely your logs followed the calorie and protein targets."""
    from energycoach.data.loaders import load_nutrition_csv, load_profile
    from energycoach.tracking.diagnostics import format_adherence_metrics
    from energycoach.tracking.estimator import calculate_adherence_metrics

    command = "adherence"
    try:
        user = load_profile(profile)
        metrics = calculate_adherence_metrics(
            load_nutrition_csv(nutrition),
            user.targets,
            period_days=window,
            as_of=parse_date(as_of),
        )
    except EnergyCoachError as e:
        fail(command, e, json_output)
        return

    if json_output:
        response = create_response(
            command=command,
            data=metrics.to_dict(),
            suggestions=list(metrics.insights),
            human_summary=f"Adherence {metrics.overall_score}% over {metrics.period_days} days",
        )
        output_json(response.to_dict())
    else:
        console.print(format_adherence_metrics(metrics), markup=False)


# ============================================================================
# Weekly Check-in
# ============================================================================


@app.command()
def checkin(
    weights: Path = typer.Option(
        ..., "--weights", "-w", exists=True, dir_okay=False, help="Weight log CSV"
    ),
    nutrition: Path = typer.Option(
        ..., "--nutrition", "-n", exists=True, dir_okay=False, help="Nutrition log CSV"
    ),
    profile: Path = typer.Option(
        ..., "--profile", "-p", exists=True, dir_okay=False, help="Profile YAML"
    ),
    energy: int = typer.Option(..., "--energy", min=1, max=5, help="Energy level 1-5 (5 = great)"),
    hunger: int = typer.Option(..., "--hunger", min=1, max=5, help="Hunger level 1-5 (5 = starving)"),
    performance: int = typer.Option(
        ..., "--performance", min=1, max=5, help="Training performance 1-5 (5 = great)"
    ),
    week_start: Optional[str] = typer.Option(
        None, "--week-start", help="First day of the week (default: 6 days before the latest entry)"
    ),
    mode: Optional[str] = typer.Option(
        None, "--mode", help="Coaching mode: coached, collaborative or manual (default: from profile)"
    ),
    notes: str = typer.Option("", "--notes", help="Notes for this week"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Run the weekly check-in and compute next week's targets."""
    from energycoach.coaching.adjuster import ProteinPolicy, goal_constraints, is_rate_safe
    from energycoach.coaching.checkin import summarize_week
    from energycoach.coaching.policy import CheckInAction, run_weekly_check_in
    from energycoach.data.loaders import load_nutrition_csv, load_profile, load_weight_csv
    from energycoach.profiles.body_calc import calculate_bmr
    from energycoach.tracking.diagnostics import format_adjustment

    command = "checkin"
    try:
        settings = get_settings()
        user = load_profile(profile)
        weight_series = load_weight_csv(weights)
        nutrition_series = load_nutrition_csv(nutrition)

        start = parse_date(week_start)
        if start is None:
            dates = [e.date for e in weight_series] + [log.date for log in nutrition_series]
            if not dates:
                raise EnergyCoachError("No weight or nutrition entries to check in")
            start = max(dates) - timedelta(days=6)

        check_in = summarize_week(
            weight_series,
            nutrition_series,
            start,
            user.targets,
            energy,
            hunger,
            performance,
            notes=notes,
            settings=settings,
        )
        body_weight = check_in.average_weight or user.biological.weight_kg
        constraints = goal_constraints(user.goal, user.biological.sex, user.training_experience)
        decision = run_weekly_check_in(
            mode or user.coaching_mode,
            check_in,
            user.targets,
            user.goal,
            body_weight_kg=body_weight,
            bmr=calculate_bmr(user.biological),
            sex=user.biological.sex,
            protein_g_per_kg=(
                constraints.protein_g_per_kg if user.protein_policy == ProteinPolicy.PER_KG else None
            ),
            settings=settings,
        )
        safety = None
        if check_in.weight_change_kg is not None:
            weekly_percent = check_in.weight_change_kg / body_weight * 100
            safety = is_rate_safe(weekly_percent, user.goal, constraints)
    except EnergyCoachError as e:
        fail(command, e, json_output)
        return

    if json_output:
        data = decision.to_dict()
        data["rate_safety"] = safety.to_dict() if safety is not None else None
        response = create_response(
            command=command,
            data=data,
            warnings=list(safety.warnings) if safety is not None else [],
            human_summary=decision.message,
        )
        output_json(response.to_dict())
        return

    summary = [
        f"Week of {check_in.week_start_date.isoformat()} ({check_in.logging_days}/7 days logged)",
        f"Adherence: {check_in.adherence_percent}%",
    ]
    if check_in.weight_change_kg is not None:
        summary.append(f"Trend change: {check_in.weight_change_kg:+.2f} kg")
    console.print(Panel("\n".join(summary), title="Weekly Check-in"))
    if safety is not None:
        for warning in safety.warnings:
            console.print(f"[yellow]{warning}[/yellow]")

    if decision.result is not None:
        console.print(format_adjustment(decision.result), markup=False)

    style = {
        CheckInAction.APPLY: "green",
        CheckInAction.PROPOSE: "yellow",
        CheckInAction.SUPPRESS: "dim",
    }[decision.action]
    console.print(f"\n[{style}]{decision.action.value.upper()}: {decision.message}[/{style}]")


# ============================================================================
# Config Commands
# ============================================================================


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the active settings."""
    try:
        settings = get_settings()
    except EnergyCoachError as e:
        fail("config show", e, json_output)
        return

    if json_output:
        output_json(create_response(command="config show", data=settings.to_dict()).to_dict())
        return

    for section, values in settings.to_dict().items():
        table = Table(title=section)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", justify="right")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)


@config_app.command("init")
def config_init(
    path: Optional[Path] = typer.Option(None, "--path", help="Where to write config.yaml"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write the default settings to a YAML file."""
    target = path or default_config_path()
    if target.exists() and not force:
        console.print(f"[yellow]{target} already exists (use --force to overwrite)[/yellow]")
        raise typer.Exit(1)

    Settings().save(target)
    console.print(f"[green]Wrote default settings to[/green] {target}")


if __name__ == "__main__":
    app()
