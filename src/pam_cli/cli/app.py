"""
Main CLI application entry point.

This module contains the Typer application and is the composition root of
PAM CLI: it loads .env, resolves configuration once, builds the single API
client and hands both to the command dispatcher.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Union
import asyncio
import inspect
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm

from pam_cli import VERSION
from ..config.env_loader import load_env_with_hierarchy
from ..config.resolver import ConfigResolver
from ..config.settings import PamConfig
from ..core.client.api_client import PamApiClient
from ..core.commands import (
    ChatCommand,
    Command,
    ConfigInitCommand,
    ConfigPathCommand,
    ConfigSetCommand,
    ConfigShowCommand,
    ConfigSourcesCommand,
    ContextListCommand,
    ContextRefreshCommand,
    ContextShowCommand,
    ContextStatsCommand,
    ContextStatusCommand,
    HealthCommand,
    MemoryClearCommand,
    MemoryIndexCommand,
    MemoryListCommand,
    MemorySearchCommand,
    MemoryStatusCommand,
    ReflectCommand,
    SkillInvokeCommand,
    SkillLogCommand,
    SkillsListCommand,
    SkillTestCommand,
)
from ..core.dispatcher import CommandDispatcher, ReflectionOutcome
from ..core.errors import ConfigError, PamError
from . import render
from .chat import interactive_chat, render_single_message
from .render import console, print_error

logger = logging.getLogger(__name__)

# Create the main Typer application
app = typer.Typer(
    name="pam",
    help="PAM Chief of Staff CLI - Your AI-powered PM assistant",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
memory_app = typer.Typer(help="Memory management - search, index, and manage PAM's memory", no_args_is_help=True)
skills_app = typer.Typer(help="Skills - list, test, and invoke PAM skills", no_args_is_help=True)
context_app = typer.Typer(help="Context - manage context bundles from GCS", no_args_is_help=True)
config_app = typer.Typer(help="Config - manage PAM CLI configuration", no_args_is_help=True)

app.add_typer(memory_app, name="memory")
app.add_typer(skills_app, name="skills")
app.add_typer(context_app, name="context")
app.add_typer(config_app, name="config")

Renderer = Callable[[Any, CommandDispatcher], Union[None, Awaitable[None]]]

FAILURE_LABELS = {
    HealthCommand: "Health check failed",
    MemoryStatusCommand: "Memory system error",
    MemorySearchCommand: "Search failed",
    MemoryIndexCommand: "Indexing failed",
    MemoryListCommand: "Failed to list memories",
    MemoryClearCommand: "Failed to clear memories",
    SkillsListCommand: "Failed to list skills",
    SkillTestCommand: "Skill test failed",
    SkillInvokeCommand: "Skill failed",
    SkillLogCommand: "Failed to get skill log",
    ContextStatusCommand: "Context status failed",
    ContextRefreshCommand: "Refresh failed",
    ContextShowCommand: "Failed to load context file",
    ContextListCommand: "Failed to list context files",
    ContextStatsCommand: "Failed to get context stats",
    ChatCommand: "Chat failed",
}


@dataclass
class AppState:
    """Global options shared by every command."""
    verbose: bool = False
    config_path: Optional[Path] = None
    api_url: Optional[str] = None


def create_api_client(config: PamConfig) -> PamApiClient:
    """Build the one API client used for the whole invocation."""
    return PamApiClient(config.api_url, cli_api_key=config.cli_api_key)


def setup_logging(verbose: bool) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # Connection-level chatter is not useful even in verbose mode
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(f"[bold blue]PAM CLI[/bold blue] version [green]{VERSION}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", envvar="PAM_CONFIG", help="Configuration file path"
    ),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Override the PAM API base URL"),
) -> None:
    """
    PAM - Proactive Agentic Manager CLI.

    Chief of Staff for the AI Garage team: memory, skills, context bundles,
    reflections and chat from the terminal.
    """
    setup_logging(verbose)
    ctx.obj = AppState(verbose=verbose, config_path=config, api_url=api_url)
    if verbose:
        console.print("[bold cyan]PAM - Proactive Agentic Manager[/bold cyan]\n")


def _state(ctx: typer.Context) -> AppState:
    return ctx.find_root().obj or AppState()


def _run(ctx: typer.Context, command: Command, renderer: Renderer, resolve_config: bool = True) -> None:
    asyncio.run(_execute(_state(ctx), command, renderer, resolve_config))


async def _execute(state: AppState, command: Command, renderer: Renderer, resolve_config: bool) -> None:
    """Resolve configuration, dispatch one command and render its outcome."""
    load_env_with_hierarchy()
    resolver = ConfigResolver()

    try:
        if resolve_config:
            config = resolver.resolve(state.config_path, {"api_url": state.api_url})
        else:
            config = PamConfig()
    except ConfigError as e:
        print_error("Configuration error", e)
        raise typer.Exit(1)

    logger.debug(f"Using PAM API at {config.api_url}")

    async with create_api_client(config) as api:
        dispatcher = CommandDispatcher(config, api, resolver=resolver, config_path=state.config_path)
        try:
            result = await dispatcher.dispatch(command)
        except PamError as e:
            print_error(FAILURE_LABELS.get(type(command), "Command failed"), e)
            raise typer.Exit(1)

        rendered = renderer(result, dispatcher)
        if inspect.isawaitable(rendered):
            await rendered


# =============================================================================
# Health
# =============================================================================

@app.command("health")
def health_command(
    ctx: typer.Context,
    deep: bool = typer.Option(False, "--deep", "-d", help="Deep health check (probes all services)"),
) -> None:
    """Health - check PAM system health."""
    _run(ctx, HealthCommand(deep=deep), lambda report, _: render.render_health(report))


# =============================================================================
# Memory
# =============================================================================

@memory_app.command("status")
def memory_status_command(
    ctx: typer.Context,
    deep: bool = typer.Option(False, "--deep", "-d", help="Show per-table row counts"),
) -> None:
    """Show memory system status."""
    _run(ctx, MemoryStatusCommand(), lambda status, _: render.render_memory_status(status, deep))


@memory_app.command("search")
def memory_search_command(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="The search query"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Maximum results to return"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User email to search for"),
) -> None:
    """Search memories semantically."""
    verbose = _state(ctx).verbose
    _run(
        ctx,
        MemorySearchCommand(query=query, limit=limit, user=user),
        lambda results, _: render.render_search_results(query, results, verbose),
    )


@memory_app.command("index")
def memory_index_command(
    ctx: typer.Context,
    content: Optional[str] = typer.Argument(None, help="Content to index (or - for stdin)"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, dir_okay=False, help="File to index"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Tags for the memory (repeatable)"),
) -> None:
    """Index content into memory."""
    if content is not None and content != "-":
        text = content
    elif file is not None and content is None:
        text = file.read_text(encoding="utf-8")
    else:
        text = typer.get_text_stream("stdin").read()

    if not text.strip():
        console.print("[red]✗[/red] Nothing to index")
        raise typer.Exit(1)

    if _state(ctx).verbose:
        console.print(f"Indexing {len(text)} characters with tags: {tags or []}")
    console.print("Indexing content...")
    _run(
        ctx,
        MemoryIndexCommand(content=text, tags=tuple(tags or ())),
        lambda memory_id, _: console.print(f"[green]✓[/green] Memory indexed with ID: {memory_id}"),
    )


@memory_app.command("list")
def memory_list_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Number of memories to list"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Filter by user"),
) -> None:
    """List recent memories."""
    verbose = _state(ctx).verbose
    _run(
        ctx,
        MemoryListCommand(limit=limit, user=user),
        lambda entries, _: render.render_memory_list(entries, verbose),
    )


@memory_app.command("clear")
def memory_clear_command(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email to clear (required)"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
) -> None:
    """Clear memories (with confirmation)."""
    if not force:
        confirmed = Confirm.ask(f"Clear all memories for {user}? This cannot be undone.", default=False)
        if not confirmed:
            console.print("Cancelled.")
            return

    console.print(f"Clearing memories for {user}...")
    _run(
        ctx,
        MemoryClearCommand(user=user),
        lambda count, _: console.print(f"[green]✓[/green] Cleared {count} memories"),
    )


# =============================================================================
# Skills
# =============================================================================

@skills_app.command("list")
def skills_list_command(
    ctx: typer.Context,
    detailed: bool = typer.Option(False, "--detailed", "-d", help="Show detailed information"),
) -> None:
    """List available skills."""
    detailed = detailed or _state(ctx).verbose
    _run(ctx, SkillsListCommand(), lambda skills, _: render.render_skills(skills, detailed))


@skills_app.command("test")
def skills_test_command(
    ctx: typer.Context,
    skill: str = typer.Argument(..., help="Skill key to test (e.g., jira-query, github-commits)"),
    params: Optional[str] = typer.Option(None, "--params", "-p", help="Test parameters as JSON"),
) -> None:
    """Test a specific skill."""
    verbose = _state(ctx).verbose
    console.print("Running test...\n")
    _run(
        ctx,
        SkillTestCommand(skill=skill, params=params),
        lambda outcome, _: render.render_skill_test(outcome, verbose),
    )


@skills_app.command("invoke")
def skills_invoke_command(
    ctx: typer.Context,
    skill: str = typer.Argument(..., help="Skill key to invoke"),
    params: str = typer.Option(..., "--params", "-p", help="Parameters as JSON"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User email for audit"),
) -> None:
    """Invoke a skill."""
    console.print(f"Invoking [bold]{skill}[/bold]...")
    _run(
        ctx,
        SkillInvokeCommand(skill=skill, params=params, user=user),
        lambda outcome, _: render.render_skill_invoke(outcome),
    )


@skills_app.command("log")
def skills_log_command(
    ctx: typer.Context,
    skill: Optional[str] = typer.Option(None, "--skill", "-s", help="Skill key to filter by"),
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Number of entries to show"),
) -> None:
    """Show skill audit log."""
    _run(ctx, SkillLogCommand(skill=skill, limit=limit), lambda entries, _: render.render_skill_log(entries))


# =============================================================================
# Context
# =============================================================================

@context_app.command("status")
def context_status_command(
    ctx: typer.Context,
    freshness: bool = typer.Option(False, "--freshness", "-f", help="Check freshness of all bundles"),
) -> None:
    """Show context bundle status."""
    freshness = freshness or _state(ctx).verbose
    _run(ctx, ContextStatusCommand(), lambda status, _: render.render_context_status(status, freshness))


@context_app.command("refresh")
def context_refresh_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Force refresh even if fresh"),
) -> None:
    """Refresh context from GCS."""
    if _state(ctx).verbose:
        console.print(f"Refreshing context bundle (force={force})")
    console.print("Refreshing context from GCS...")
    _run(ctx, ContextRefreshCommand(force=force), lambda result, _: render.render_refresh(result))


@context_app.command("show")
def context_show_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Context file name (e.g., github, jira, daily-ambition)"),
    raw: bool = typer.Option(False, "--raw", "-r", help="Show raw content (no formatting)"),
) -> None:
    """Show specific context file."""
    _run(ctx, ContextShowCommand(name=name), lambda content, _: render.render_context_file(content, raw))


@context_app.command("list")
def context_list_command(ctx: typer.Context) -> None:
    """List all context files."""
    _run(ctx, ContextListCommand(), lambda files, _: render.render_context_list(files))


@context_app.command("stats")
def context_stats_command(ctx: typer.Context) -> None:
    """Show context bundle statistics."""
    _run(ctx, ContextStatsCommand(), lambda stats, _: render.render_context_stats(stats))


# =============================================================================
# Chat and reflection
# =============================================================================

@app.command("chat")
def chat_command(
    ctx: typer.Context,
    message: Optional[str] = typer.Argument(None, help="The message to send (or omit for interactive mode)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User email for context"),
    continue_session: bool = typer.Option(False, "--continue", "-c", help="Continue previous session"),
) -> None:
    """Chat - interactive conversation with PAM."""
    verbose = _state(ctx).verbose

    def _render(outcome, dispatcher):
        if message is not None:
            render_single_message(outcome, message, verbose)
            return None
        return interactive_chat(dispatcher, outcome)

    _run(ctx, ChatCommand(message=message, user=user, continue_session=continue_session), _render)


@app.command("reflect")
def reflect_command(
    ctx: typer.Context,
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Session ID to reflect on (default: today's sessions)"),
    export: bool = typer.Option(False, "--export", "-e", help="Export reflections to markdown file"),
    export_dir: Optional[Path] = typer.Option(None, "--export-dir", file_okay=False, help="Directory for the exported file"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User email to reflect for"),
) -> None:
    """Reflect - generate insights from conversations."""
    verbose = _state(ctx).verbose

    def _render(outcome: ReflectionOutcome, _):
        render.render_reflection_outcome(outcome, verbose)
        if outcome.error is not None:
            raise typer.Exit(1)

    console.print("[dim]Analyzing conversations...[/dim]")
    _run(ctx, ReflectCommand(session=session, user=user, export=export, export_dir=export_dir), _render)


# =============================================================================
# Config
# =============================================================================

@config_app.command("show")
def config_show_command(ctx: typer.Context) -> None:
    """Show current configuration."""
    _run(ctx, ConfigShowCommand(), lambda config, _: render.render_config(config))


@config_app.command("set")
def config_set_command(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Configuration key"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value."""
    console.print(f"Setting [bold]{key}[/bold] = {value}")
    _run(
        ctx,
        ConfigSetCommand(key=key, value=value),
        lambda update, _: console.print("[green]✓[/green] Configuration updated"),
        resolve_config=False,
    )


@config_app.command("init")
def config_init_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Force overwrite existing config"),
) -> None:
    """Initialize configuration."""
    _run(
        ctx,
        ConfigInitCommand(force=force),
        lambda path, _: console.print(f"[green]✓[/green] Created config file at: {path}"),
        resolve_config=False,
    )


@config_app.command("path")
def config_path_command(ctx: typer.Context) -> None:
    """Show configuration file path."""
    _run(
        ctx,
        ConfigPathCommand(),
        lambda path, _: console.print(str(path), highlight=False, markup=False),
        resolve_config=False,
    )


@config_app.command("sources")
def config_sources_command(ctx: typer.Context) -> None:
    """Show which configuration sources were found."""
    _run(ctx, ConfigSourcesCommand(), lambda sources, _: render.render_config_sources(sources))
