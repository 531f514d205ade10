"""Strata CLI - Break goals down into phased, streamable plans."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

import typer
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from config import config
from strata.core.errors import StrataError, ProviderConfigurationError, GenerationError
from strata.core.models import Language, PlanResponse
from strata.core.planning import PlanningService
from strata.core.state import AppState
from strata.core.stats import compute_stats
from strata.core.storage import HistoryRepository, create_store
from strata.core.translations import t

app = typer.Typer(help="Strata CLI")
console = Console()


@asynccontextmanager
async def create_state(
    provider_type: str = config.LLM_PROVIDER,
    model: str | None = None,
    base_url: str = config.OLLAMA_URL,
    api_key: str | None = None,
    store_backend: str = config.STORE_BACKEND,
):
    """Create and manage an AppState instance with proper cleanup."""
    console.print(f"[dim]🔌 Initializing {provider_type} provider...[/dim]")

    planner = PlanningService.create(
        provider_type=provider_type,
        model=_get_model_for_provider(provider_type, model),
        base_url=base_url,
        api_key=api_key or config.GEMINI_API_KEY,
    )
    repository = HistoryRepository(
        create_store(store_backend, config.REDIS_URL),
        default_language=Language(config.DEFAULT_LANGUAGE),
    )
    state = AppState(repository, planner, max_hops=config.MAX_ANCESTRY_HOPS)

    try:
        yield state.load()
    finally:
        planner.close()


def _get_model_for_provider(provider: str, model: str | None) -> str:
    """Get the model name for the provider, auto-detecting if not specified."""
    if model is not None:
        return model
    return config.GEMINI_MODEL if provider == "gemini" else config.OLLAMA_MODEL


def _format_timestamp(created_at: int) -> str:
    return datetime.fromtimestamp(created_at / 1000).strftime("%Y-%m-%d %H:%M")


def render_plan(plan: PlanResponse, language: Language, streaming: bool = False):
    """Build a Rich renderable for a plan (partial or complete)."""
    title = f"[bold]{plan.goal}[/bold]"
    if streaming:
        title += f"  [blue]● {t(language, 'generating')}[/blue]"

    tree = Tree(title)
    for phase in plan.phases:
        label = f"[bold cyan]{phase.title}[/bold cyan] [dim]{phase.duration}[/dim]"
        if phase.is_recurring:
            label += f" [magenta]↻ {phase.frequency or t(language, 'recurring')}[/magenta]"
        branch = tree.add(label)
        for step in phase.steps:
            marker = " [yellow]⤵[/yellow]" if step.is_breakable else ""
            branch.add(
                f"[green]{step.id}[/green] {step.title}{marker} "
                f"[dim]({step.estimated_duration} · {t(language, step.difficulty)} · "
                f"{t(language, step.type)})[/dim]"
            )

    summary = Panel(
        f"{plan.summary}\n\n[italic]“{plan.motivational_quote}”[/italic]",
        border_style="dim",
    )
    return Group(summary, tree)


def render_stats(plan: PlanResponse, language: Language) -> Table:
    stats = compute_stats(plan)
    table = Table(title=f"{t(language, 'total_steps')}: {stats.total_steps}")
    table.add_column(t(language, "composition_title"))
    table.add_column("#", justify="right")
    table.add_column("%", justify="right")
    for share in stats.types:
        table.add_row(t(language, share.type), str(share.count), f"{share.percentage}%")
    return table


def render_breadcrumbs(state: AppState, language: Language) -> str:
    path = state.path()
    parts = [
        f"[dim]{t(language, 'ancestor')} 0{index + 1}: {p.goal}[/dim]"
        for index, p in enumerate(path[:-1])
    ]
    if path:
        parts.append(f"[bold]{t(language, 'current')}: {path[-1].goal}[/bold]")
    parts.extend(
        f"[dim]{t(language, 'sub')} 0{index + 1}: {child.goal}[/dim]"
        for index, child in enumerate(state.children())
    )
    return " → ".join(parts)


async def _run_live(state: AppState, updates) -> PlanResponse:
    """Render updates as they stream; return the final plan."""
    final_plan = None
    with Live(console=console, refresh_per_second=8) as live:
        async for update in updates:
            live.update(
                render_plan(update.plan, state.language, streaming=not update.is_final)
            )
            if update.is_final:
                final_plan = update.plan
    return final_plan


def _handle_errors(e: Exception, provider: str) -> None:
    """Handle and display errors appropriately."""
    if isinstance(e, ProviderConfigurationError):
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        if provider == "gemini":
            console.print("Set GEMINI_API_KEY env var or use --gemini-api-key")
    elif isinstance(e, GenerationError):
        console.print(f"[bold red]Generation Error:[/bold red] {e}")
        if provider == "ollama":
            console.print("Make sure Ollama is running: `ollama serve`")
        else:
            console.print("Check your Gemini API key and internet connection")
    else:
        console.print(f"[bold red]Error:[/bold red] {e}")
    raise typer.Exit(1)


# Common CLI options
PROVIDER_OPTION = typer.Option(
    config.LLM_PROVIDER, "--provider", help="LLM provider (gemini or ollama)"
)
MODEL_OPTION = typer.Option(
    None, "--model", help="Model to use (auto-detected if not specified)"
)
OLLAMA_URL_OPTION = typer.Option(
    config.OLLAMA_URL, "--ollama-url", help="Ollama base URL"
)
GEMINI_API_KEY_OPTION = typer.Option(
    None, "--gemini-api-key", help="Gemini API key (or set GEMINI_API_KEY env var)"
)
STORE_OPTION = typer.Option(
    config.STORE_BACKEND, "--store", help="History store (redis or memory)"
)
VERBOSE_OPTION = typer.Option(
    False, "--verbose", "-v", help="Show detailed information"
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def plan(
    goal: str,
    provider: str = PROVIDER_OPTION,
    model: str = MODEL_OPTION,
    ollama_url: str = OLLAMA_URL_OPTION,
    gemini_api_key: str = GEMINI_API_KEY_OPTION,
    store: str = STORE_OPTION,
    language: str = typer.Option(None, "--language", "-l", help="Output language (en or zh)"),
    stats: bool = typer.Option(False, "--stats", help="Show step statistics"),
    verbose: bool = VERBOSE_OPTION,
):
    """Generate a phased roadmap for a goal."""
    _configure_logging(verbose)

    async def _plan():
        try:
            async with create_state(
                provider, model, ollama_url, gemini_api_key, store
            ) as state:
                if language:
                    state.set_language(language)
                final_plan = await _run_live(state, state.generate(goal))
                console.print(f"[dim]Saved plan {final_plan.id}[/dim]")
                if stats:
                    console.print(render_stats(final_plan, state.language))
        except (StrataError, ValueError) as e:
            _handle_errors(e, provider)

    asyncio.run(_plan())


@app.command()
def breakdown(
    plan_id: str,
    step: str = typer.Argument(..., help="Step id or step title to decompose"),
    provider: str = PROVIDER_OPTION,
    model: str = MODEL_OPTION,
    ollama_url: str = OLLAMA_URL_OPTION,
    gemini_api_key: str = GEMINI_API_KEY_OPTION,
    store: str = STORE_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Break one step of a stored plan into hourly sub-steps."""
    _configure_logging(verbose)

    async def _breakdown():
        try:
            async with create_state(
                provider, model, ollama_url, gemini_api_key, store
            ) as state:
                parent = state.select(plan_id)
                if parent is None:
                    console.print(f"[bold red]Error:[/bold red] Plan {plan_id} not found")
                    raise typer.Exit(1)
                found = parent.find_step(step)
                title = found.title if found else step
                await _run_live(state, state.breakdown(title))
                console.print(render_breadcrumbs(state, state.language))
        except StrataError as e:
            _handle_errors(e, provider)

    asyncio.run(_breakdown())


@app.command()
def history(store: str = STORE_OPTION):
    """List stored plans, newest first."""

    async def _history():
        async with create_state(store_backend=store) as state:
            plans = state.history.archive()
            if not plans:
                console.print(f"[dim]{t(state.language, 'empty_archive')}[/dim]")
                return
            table = Table(title=t(state.language, "archive"))
            table.add_column("createdAt")
            table.add_column("id")
            table.add_column("goal")
            table.add_column("parent")
            for p in plans:
                table.add_row(
                    f"{p.created_at} [dim]({_format_timestamp(p.created_at)})[/dim]",
                    p.id,
                    p.goal,
                    p.parent_id or "",
                )
            console.print(table)

    asyncio.run(_history())


@app.command()
def show(
    plan_id: str,
    store: str = STORE_OPTION,
    json_output: bool = typer.Option(False, "--json", help="Print the raw plan JSON"),
):
    """Show a stored plan with its breadcrumbs and sub-plans."""

    async def _show():
        async with create_state(store_backend=store) as state:
            found = state.select(plan_id)
            if found is None:
                console.print(f"[bold red]Error:[/bold red] Plan {plan_id} not found")
                raise typer.Exit(1)
            if json_output:
                typer.echo(found.model_dump_json(by_alias=True, exclude_none=True, indent=2))
                return
            console.print(render_breadcrumbs(state, state.language))
            console.print(render_plan(found, state.language))
            console.print(render_stats(found, state.language))

    asyncio.run(_show())


@app.command()
def delete(created_at: int, store: str = STORE_OPTION):
    """Delete a stored plan by its createdAt timestamp."""

    async def _delete():
        async with create_state(store_backend=store) as state:
            if not state.delete(created_at):
                console.print(f"[bold red]Error:[/bold red] No plan created at {created_at}")
                raise typer.Exit(1)
            console.print(f"[green]Deleted plan created at {created_at}[/green]")

    asyncio.run(_delete())


@app.command()
def clear(
    store: str = STORE_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete the whole plan history."""
    if not yes:
        typer.confirm("Delete all stored plans?", abort=True)

    async def _clear():
        async with create_state(store_backend=store) as state:
            state.clear_history()
            console.print("[green]History cleared[/green]")

    asyncio.run(_clear())


@app.command()
def language(
    value: str = typer.Argument(None, help="en or zh; omit to show the current setting"),
    store: str = STORE_OPTION,
):
    """Show or set the output language."""

    async def _language():
        async with create_state(store_backend=store) as state:
            if value is None:
                console.print(state.language.value)
                return
            try:
                state.set_language(value)
            except ValueError:
                console.print(f"[bold red]Error:[/bold red] Unsupported language {value!r}")
                raise typer.Exit(1)
            console.print(f"[green]Language set to {state.language.value}[/green]")

    asyncio.run(_language())


if __name__ == "__main__":
    app()
