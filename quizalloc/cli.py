"""
Typer CLI for the quiz allocation engine.

Commands:
    quizalloc init-db                  - Create database tables
    quizalloc allocate QUIZ            - Allocate questions to one requester
    quizalloc coverage QUIZ            - Check a quota against the remaining pool
    quizalloc reset-generation QUIZ    - Make every question available again
    quizalloc allocations QUIZ         - Show allocation history

Usage:
    quizalloc allocate quiz-1 -r alice -s math=4 -s science=2
    quizalloc allocate quiz-1 -r bob --total 5 --from-section math -d medium --policy recycle
    quizalloc coverage quiz-1 -s math=4 -s uncategorized=1
"""
from __future__ import annotations

import json
from typing import List, Optional, Tuple

import typer
from loguru import logger
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from quizalloc.allocation import (
    AllocationCoordinator,
    AllocationTimeoutError,
    Difficulty,
    InsufficientPoolError,
    InvalidQuotaError,
    QuotaSpec,
    SectionShortfall,
    get_policy,
)
from quizalloc.allocation.models import SectionKey, section_label
from quizalloc.config import get_settings
from quizalloc.log_config import configure_logging

app = typer.Typer(
    help="quizalloc CLI: disjoint random question sets from a shared question bank",
    no_args_is_help=True,
)

console = Console()

UNCATEGORIZED_NAME = "uncategorized"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    configure_logging(level="DEBUG" if verbose else None)


# ============================================================================
# Helpers
# ============================================================================

def _section_key(name: str) -> SectionKey:
    return None if name.strip().lower() == UNCATEGORIZED_NAME else name.strip()


def _parse_section(value: str) -> Tuple[SectionKey, int]:
    name, sep, count = value.rpartition("=")
    if not sep or not name.strip():
        raise typer.BadParameter(f"expected SECTION=COUNT, got {value!r}")
    try:
        return _section_key(name), int(count)
    except ValueError:
        raise typer.BadParameter(f"count must be an integer in {value!r}") from None


def _build_quota(
    sections: List[str] | None,
    total: int | None,
    from_sections: List[str] | None,
    difficulty: Difficulty | None,
    shuffle: bool,
) -> QuotaSpec:
    try:
        if sections:
            counts = dict(_parse_section(value) for value in sections)
            if len(counts) != len(sections):
                raise typer.BadParameter("a section was given more than once")
            return QuotaSpec.by_section(counts, difficulty=difficulty, shuffle=shuffle)
        if total is None:
            raise typer.BadParameter("give --section SECTION=COUNT or --total N")
        section_ids = [_section_key(name) for name in from_sections] if from_sections else None
        return QuotaSpec.flat(total, section_ids=section_ids, difficulty=difficulty, shuffle=shuffle)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from None


def _coordinator() -> AllocationCoordinator:
    from quizalloc.service import build_coordinator

    return build_coordinator(get_settings(), create_tables=True)


def _shortfall_table(title: str, shortfalls: List[SectionShortfall]) -> Table:
    table = Table(title=title)
    table.add_column("Section")
    table.add_column("Requested", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Missing", justify="right", style="red")
    for s in shortfalls:
        table.add_row(section_label(s.section_id), str(s.requested), str(s.available), str(s.missing))
    return table


def _fail(message: str, shortfalls: List[SectionShortfall] | None = None) -> None:
    rprint(f"[red]✗[/red] {message}")
    if shortfalls:
        console.print(_shortfall_table("Shortfall", shortfalls))
    raise typer.Exit(code=1)


# Shared option declarations
SECTION_OPTION = typer.Option(None, "--section", "-s", help="SECTION=COUNT (repeatable; 'uncategorized' for no section)")
TOTAL_OPTION = typer.Option(None, "--total", "-t", help="Flat number of questions")
FROM_SECTION_OPTION = typer.Option(None, "--from-section", help="Restrict a flat quota to this section (repeatable)")
DIFFICULTY_OPTION = typer.Option(None, "--difficulty", "-d", help="Only draw questions of this difficulty")


# ============================================================================
# Commands
# ============================================================================

@app.command("init-db")
def init_db_command() -> None:
    """Create the question bank and allocation tables (idempotent)."""
    from quizalloc.db import create_db_engine, init_db

    init_db(create_db_engine(get_settings().database_url))
    rprint("[green]✓[/green] Database initialized!")


@app.command("allocate")
def allocate_command(
    quiz_id: str = typer.Argument(..., help="Quiz identifier"),
    requester: str = typer.Option(..., "--requester", "-r", help="Session or user receiving the questions"),
    sections: Optional[List[str]] = SECTION_OPTION,
    total: Optional[int] = TOTAL_OPTION,
    from_sections: Optional[List[str]] = FROM_SECTION_OPTION,
    difficulty: Optional[Difficulty] = DIFFICULTY_OPTION,
    policy: Optional[str] = typer.Option(None, "--policy", "-p", help="strict, recycle or best_effort"),
    no_shuffle: bool = typer.Option(False, "--no-shuffle", help="Keep questions grouped by section"),
    as_json: bool = typer.Option(False, "--json", help="Print the allocation as JSON"),
) -> None:
    """Allocate a disjoint random question set to one requester."""
    quota = _build_quota(sections, total, from_sections, difficulty, not no_shuffle)
    try:
        exhaustion = get_policy(policy or get_settings().default_exhaustion_policy)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from None

    try:
        result = _coordinator().allocate(quiz_id, quota, requester, policy=exhaustion)
    except InvalidQuotaError as exc:
        _fail(f"Invalid quota: {exc}", exc.violations)
    except InsufficientPoolError as exc:
        _fail(str(exc), exc.shortfalls)
    except AllocationTimeoutError as exc:
        _fail(str(exc))

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title=f"Allocation {result.allocation_id[:8]} (generation {result.generation})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Question")
    for index, question_id in enumerate(result.question_ids, start=1):
        table.add_row(str(index), question_id)
    console.print(table)

    for entry in result.per_section:
        rprint(f"  {section_label(entry['section_id'])}: {entry['count']}")
    if result.recycled:
        rprint(f"[yellow]Pool recycled into generation {result.generation}[/yellow]")
    if result.shortfall:
        console.print(_shortfall_table("Under-served sections", list(result.shortfall.values())))


@app.command("coverage")
def coverage_command(
    quiz_id: str = typer.Argument(..., help="Quiz identifier"),
    sections: Optional[List[str]] = SECTION_OPTION,
    total: Optional[int] = TOTAL_OPTION,
    from_sections: Optional[List[str]] = FROM_SECTION_OPTION,
    difficulty: Optional[Difficulty] = DIFFICULTY_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Check whether the pool can serve a quota, without allocating."""
    quota = _build_quota(sections, total, from_sections, difficulty, True)
    report = _coordinator().coverage(quiz_id, quota)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    table = Table(title=f"Coverage for {quiz_id} (generation {report.generation})")
    table.add_column("Section")
    table.add_column("Requested", justify="right")
    table.add_column("Pool", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("OK", justify="center")
    for s in report.sections:
        table.add_row(
            section_label(s.section_id),
            str(s.requested),
            str(s.pool_size),
            str(s.remaining),
            "[green]✓[/green]" if s.sufficient else "[red]✗[/red]",
        )
    console.print(table)
    rprint(f"Allocations left this generation: [bold]{report.allocations_left}[/bold]")
    for recommendation in report.recommendations:
        rprint(f"  [yellow]•[/yellow] {recommendation}")

    if not report.coverage_met:
        raise typer.Exit(code=1)


@app.command("reset-generation")
def reset_generation_command(
    quiz_id: str = typer.Argument(..., help="Quiz identifier"),
) -> None:
    """Start a new generation: every question becomes available again."""
    try:
        generation = _coordinator().reset_generation(quiz_id)
    except AllocationTimeoutError as exc:
        _fail(str(exc))
    logger.info(f"Generation reset for {quiz_id}")
    rprint(f"[green]✓[/green] Quiz {quiz_id} is now at generation {generation}")


@app.command("allocations")
def allocations_command(
    quiz_id: str = typer.Argument(..., help="Quiz identifier"),
    generation: Optional[int] = typer.Option(None, "--generation", "-g", help="Only this generation"),
) -> None:
    """Show the allocations committed for a quiz."""
    allocations = _coordinator().list_allocations(quiz_id, generation)
    if not allocations:
        rprint(f"[dim]No allocations for {quiz_id}[/dim]")
        return

    table = Table(title=f"Allocations for {quiz_id}")
    table.add_column("Allocation")
    table.add_column("Requester")
    table.add_column("Gen", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Policy")
    table.add_column("Created")
    for a in allocations:
        table.add_row(
            a.allocation_id[:8],
            a.requester_id,
            str(a.generation),
            str(a.size),
            a.policy,
            a.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
