"""CLI Entry Point - preview prompts and weights, run evaluations."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from personalized_eval.shared.exceptions import PersonalizedEvalException
from personalized_eval.shared.logging_config import setup_logging

app = typer.Typer(
    name="personalized-eval",
    help="Personalized evaluation core - prompt previews and evaluations",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)
console = Console()


def run_async(coro):
    """Helper to run async functions in sync context."""
    return asyncio.run(coro)


async def _run_with_cleanup(coro):
    """Await coro, then release the Redis pool bound to this event loop."""
    from personalized_eval.shared.redis import close_redis

    try:
        return await coro
    finally:
        await close_redis()


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] Cannot read {path}: {e}")
        raise typer.Exit(1)


def _fail(error: PersonalizedEvalException) -> None:
    console.print(f"[red]Error ({error.code}):[/red] {error.message}")
    if error.details:
        console.print_json(data=error.details)
    raise typer.Exit(1)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
) -> None:
    setup_logging(log_level)


@app.command("kinds")
def list_kinds() -> None:
    """List the registered prompt kinds."""
    from personalized_eval.modules.prompts.registry import get_prompt_registry

    for kind in get_prompt_registry().available_kinds():
        console.print(f"  [cyan]{kind}[/cyan]")


@app.command("prompt")
def preview_prompt(
    kind: str = typer.Argument(..., help="Prompt kind: evaluation, challenge, focus_area, personality"),
    params_file: Path = typer.Argument(..., help="JSON file with builder parameters", exists=True),
    as_json: bool = typer.Option(False, "--json", help="Print the canonical prompt as JSON"),
) -> None:
    """Build a prompt and show its input and instructions."""
    from personalized_eval.modules.prompts.registry import build_prompt

    params = _load_json(params_file)
    try:
        result = run_async(build_prompt(kind, params))
    except PersonalizedEvalException as e:
        _fail(e)

    if as_json:
        console.print_json(data=result.to_dict())
        return

    if result.instructions:
        console.print(Panel(
            result.instructions,
            title="[bold magenta]Instructions[/bold magenta]",
            border_style="magenta",
        ))
    body = result.input if isinstance(result.input, str) else json.dumps(result.input, indent=2)
    console.print(Panel(body, title=f"[bold blue]{kind} prompt[/bold blue]", border_style="blue"))


@app.command("weights")
def show_weights(
    challenge_type: Optional[str] = typer.Option(None, "--type", "-t", help="Challenge type"),
    focus_area: Optional[str] = typer.Option(None, "--focus-area", "-f", help="Focus area"),
    weakness: list[str] = typer.Option([], "--weakness", "-w", help="Persistent weakness (repeatable)"),
) -> None:
    """Show the evaluation category weights for a challenge."""
    from personalized_eval.modules.prompts.weights import (
        get_category_description,
        select_category_weights,
    )

    weights = select_category_weights(challenge_type, focus_area, weakness)

    table = Table(title="Category Weights")
    table.add_column("Category", style="cyan")
    table.add_column("Points", justify="right", style="green")
    table.add_column("Description")
    for category, points in weights.items():
        table.add_row(category, str(points), get_category_description(category))
    table.add_row("[bold]total[/bold]", f"[bold]{sum(weights.values())}[/bold]", "")
    console.print(table)


def _print_evaluation(evaluation) -> None:
    status = " [yellow](ungraded)[/yellow]" if evaluation.is_ungraded else ""
    console.print(Panel.fit(
        f"[bold]Score: {evaluation.score}[/bold]{status}\n\n{evaluation.overall_feedback}",
        title="[bold blue]Evaluation[/bold blue]",
        border_style="blue",
    ))

    if evaluation.category_scores:
        table = Table(title="Category Scores")
        table.add_column("Category", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Change", justify="right")
        changes = evaluation.growth_metrics.category_score_changes
        for category, score in evaluation.category_scores.items():
            change = changes.get(category)
            table.add_row(category, str(score), "" if change is None else f"{change:+}")
        console.print(table)

    if evaluation.strengths:
        console.print("\n[green]Strengths:[/green]")
        for strength in evaluation.strengths:
            console.print(f"  • {strength}")
    if evaluation.areas_for_improvement:
        console.print("\n[yellow]Areas for improvement:[/yellow]")
        for area in evaluation.areas_for_improvement:
            console.print(f"  • {area}")
    if evaluation.next_steps:
        console.print(f"\n[bold]Next steps:[/bold] {evaluation.next_steps}")


@app.command("evaluate")
def evaluate(
    challenge_file: Path = typer.Argument(..., help="JSON file describing the challenge", exists=True),
    response_file: Path = typer.Argument(..., help="Text file with the user's response", exists=True),
    user_id: str = typer.Option(..., "--user-id", "-u", help="User being evaluated"),
    thread_id: str = typer.Option(..., "--thread-id", help="Evaluation thread id"),
    history_file: Optional[Path] = typer.Option(
        None, "--history", help="JSON file with the previous evaluation snapshot"
    ),
    stream: bool = typer.Option(False, "--stream", help="Stream the raw evaluation text"),
    as_json: bool = typer.Option(False, "--json", help="Print the evaluation record as JSON"),
) -> None:
    """Evaluate a response against a challenge with the configured AI backend."""
    from personalized_eval.modules.evaluation.service import get_evaluation_service

    challenge = _load_json(challenge_file)
    user_response = response_file.read_text(encoding="utf-8")
    options: dict[str, Any] = {"userId": user_id, "threadId": thread_id}
    if history_file is not None:
        options["evaluationHistory"] = _load_json(history_file)

    try:
        service = get_evaluation_service()
        if stream:
            run_async(_run_with_cleanup(service.stream_evaluation(
                challenge,
                user_response,
                options,
                lambda chunk: console.print(chunk, end="", markup=False, highlight=False),
            )))
            console.print()
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(description="Evaluating...", total=None)
            evaluation = run_async(_run_with_cleanup(service.evaluate_response(challenge, user_response, options)))
    except PersonalizedEvalException as e:
        _fail(e)

    if as_json:
        console.print_json(data=evaluation.to_dict())
    else:
        _print_evaluation(evaluation)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
