"""
Mastery CLI - adaptive quiz mastery from the terminal.

Usage:
    mastery score --selected 0,1,2 --correct 0,2 --options 4 --max-points 100
    mastery submit alice quiz.json     # Record a completed quiz
    mastery ability alice              # Ability estimate with intervals
    mastery next alice -n 10           # Topics for the next quiz
    mastery recalc alice               # Rebuild progress from history
    mastery status alice               # Phase and per-topic table
"""

from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from masterycore.config import Settings, get_settings
from masterycore.core.models import MasteryError, QuestionCategory
from masterycore.core.schemas import parse_quiz
from masterycore.log_config import configure_logging
from masterycore.progress.service import AbilityReport, ProgressService
from masterycore.progress.store import open_store
from masterycore.study.confidence import format_interval, reliability_label

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="mastery",
    help="Adaptive quiz mastery: ability estimates and spaced topic selection",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

STATUS_STYLES = {
    "uncovered": "dim",
    "struggling": "red",
    "learning": "yellow",
    "mastered": "green",
}


def _settings(ctx: typer.Context) -> Settings:
    overrides = ctx.obj or {}
    settings = get_settings()
    update = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=update) if update else settings


def _service(ctx: typer.Context, rng: random.Random | None = None) -> ProgressService:
    settings = _settings(ctx)
    try:
        return ProgressService(settings, store=open_store(settings), rng=rng)
    except MasteryError as e:
        console.print(f"[red]✗ {escape(str(e))}[/]")
        raise typer.Exit(1) from e


def _parse_indices(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise typer.BadParameter(f"Expected comma-separated integers, got {value!r}") from e


def _parse_log_level(value: str | None) -> str | None:
    if value is None:
        return None
    level = value.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(f"Expected one of {', '.join(LOG_LEVELS)}, got {value!r}")
    return level


def _print_ability(report: AbilityReport, title: str) -> None:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Attempts", str(report.attempt_count))
    table.add_row("Theta", f"{report.theta:+.3f}")
    table.add_row("Score (100-900)", str(report.public_score))

    if report.has_information:
        label, color = reliability_label(report.ability_interval.margin)
        table.add_row("Standard error", f"{report.standard_error:.3f}")
        table.add_row(
            "Theta interval",
            format_interval(report.ability_interval.lower, report.ability_interval.upper, brackets=True),
        )
        table.add_row(
            "Score interval",
            f"{report.score_interval.lower} to {report.score_interval.upper}",
        )
        table.add_row("Reliability", f"[{color}]{label}[/]")
    else:
        table.add_row("Standard error", "∞ (no data yet)")

    console.print(table)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def score(
    selected: Annotated[str, typer.Option("--selected", "-s", help="Selected option indices, e.g. 0,2")],
    correct: Annotated[str, typer.Option("--correct", "-c", help="Correct option indices, e.g. 0,2")],
    options: Annotated[int | None, typer.Option("--options", "-o", help="Number of options")] = None,
    max_points: Annotated[float, typer.Option("--max-points", "-p", help="Points for a full answer")] = 1,
) -> None:
    """Score one multiple-response answer with partial credit."""
    service = ProgressService(get_settings())
    points = service.score_attempt(_parse_indices(selected), _parse_indices(correct), options, max_points)
    console.print(f"[bold]{points:g}[/] / {max_points:g} points")


@app.command()
def submit(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner id")],
    quiz_file: Annotated[Path, typer.Argument(help="Completed quiz JSON document", exists=True)],
) -> None:
    """Record a completed quiz for a learner."""
    try:
        quiz = parse_quiz(json.loads(quiz_file.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]✗ Invalid quiz file {quiz_file}: {escape(str(e))}[/]")
        raise typer.Exit(2) from e

    service = _service(ctx)
    try:
        state = service.submit_quiz(learner, quiz)
    except MasteryError as e:
        console.print(f"[red]✗ {escape(str(e))}[/]")
        raise typer.Exit(1) from e

    summary = service.summary(state)
    console.print(
        Panel(
            f"Quiz [bold]{state.total_quizzes_completed}[/] recorded "
            f"({len(quiz.questions)} questions)\n"
            f"Phase: [cyan]{summary.phase.display_name}[/]\n"
            f"Coverage: {summary.coverage_percent:.0f}%  "
            f"Struggling: [red]{summary.struggling}[/]  Mastered: [green]{summary.mastered}[/]",
            title=learner,
            border_style="cyan",
        )
    )


@app.command()
def ability(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner id")],
) -> None:
    """Show the learner's ability estimate and confidence interval."""
    try:
        report = _service(ctx).learner_ability(learner)
    except MasteryError as e:
        console.print(f"[red]✗ {escape(str(e))}[/]")
        raise typer.Exit(1) from e
    _print_ability(report, f"Ability: {learner}")


@app.command("next")
def next_topics(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner id")],
    count: Annotated[int | None, typer.Option("--count", "-n", help="Number of topics")] = None,
    category: Annotated[
        QuestionCategory | None,
        typer.Option("--category", help="Constrain topics to one domain or across domains"),
    ] = None,
    seed: Annotated[int | None, typer.Option("--seed", help="Random seed for reproducible picks")] = None,
) -> None:
    """List the topics for the learner's next quiz."""
    service = _service(ctx, rng=random.Random(seed) if seed is not None else None)
    try:
        state = service.load_state(learner)
    except MasteryError as e:
        console.print(f"[red]✗ {escape(str(e))}[/]")
        raise typer.Exit(1) from e

    topics = service.next_quiz_topics(state, count, category)
    table = Table(title=f"Quiz {state.next_quiz_number} · {state.current_phase.display_name}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Topic", style="white")
    table.add_column("Domain", style="cyan")
    for i, topic in enumerate(topics, 1):
        table.add_row(str(i), topic, state.topic_coverage[topic].domain_id)
    console.print(table)

    due_questions = service.due_questions(state)
    if due_questions:
        console.print(f"[yellow]{len(due_questions)} previously asked questions due for repetition[/]")


@app.command()
def recalc(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner id")],
) -> None:
    """Rebuild the learner's progress by replaying the stored quiz history."""
    try:
        result = _service(ctx).rebuild(learner)
    except MasteryError as e:
        console.print(f"[red]✗ {escape(str(e))}[/]")
        raise typer.Exit(1) from e

    console.print(f"[green]✓ Replayed {result.quizzes_replayed} quizzes[/]")
    _print_ability(result.ability, f"Ability: {learner}")

    if result.is_partial:
        positions = ", ".join(f"#{p}" for p in result.failed_quizzes)
        console.print(f"[red]✗ Partial rebuild: quizzes {positions} could not be replayed[/]")
        raise typer.Exit(1)


@app.command()
def status(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner id")],
) -> None:
    """Show the learner's phase and per-topic progress."""
    service = _service(ctx)
    try:
        state = service.load_state(learner)
    except MasteryError as e:
        console.print(f"[red]✗ {escape(str(e))}[/]")
        raise typer.Exit(1) from e

    summary = service.summary(state)
    console.print(
        Panel(
            f"Phase: [cyan]{summary.phase.display_name}[/]  Quizzes: {summary.quizzes_completed}\n"
            f"Coverage: {summary.coverage_percent:.0f}% of {summary.total_topics} topics\n"
            f"Accuracy: {summary.accuracy_percent:.1f}% over {summary.total_questions} questions  "
            f"Points score: {summary.points_score}",
            title=learner,
            border_style="cyan",
        )
    )

    due = set(service.due_topics(state))
    table = Table(title="Topics")
    table.add_column("Domain", style="cyan")
    table.add_column("Topic", style="white")
    table.add_column("Answered", justify="right")
    table.add_column("Accuracy (95% CI)", justify="right")
    table.add_column("Status")
    table.add_column("Due quiz", justify="right")

    for topic_id in service.curriculum.topics:
        perf = state.topic_performance[topic_id]
        if perf.questions_answered == 0:
            status_name = "uncovered"
            accuracy = "-"
        else:
            status_name = (
                "struggling" if perf.is_struggling else "mastered" if perf.is_mastered else "learning"
            )
            interval = service.confidence.accuracy_interval(perf.correct_answers, perf.questions_answered)
            accuracy = f"{perf.accuracy:.0f}% ({format_interval(interval.lower, interval.upper, 0)})"
        due_quiz = perf.card.due_quiz
        due_text = "-" if due_quiz is None else f"[bold]{due_quiz}[/]" if topic_id in due else str(due_quiz)
        table.add_row(
            perf.domain_id,
            topic_id,
            str(perf.questions_answered),
            accuracy,
            f"[{STATUS_STYLES[status_name]}]{status_name}[/]",
            due_text,
        )
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None, typer.Option("--data-dir", help="Directory for the JSON progress store")
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR", callback=_parse_log_level),
    ] = None,
) -> None:
    """
    Adaptive quiz mastery.

    \b
    Progress is kept per learner under --data-dir (or MASTERY_DATA_DIR),
    or in the database named by MASTERY_DATABASE_URL.
    """
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    configure_logging(level, settings.log_file)
    ctx.obj = {"data_dir": data_dir, "log_level": level}


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
