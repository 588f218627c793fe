"""Rich rendering of dispatcher outcomes."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from ..config.settings import PamConfig
from ..core.client.models import (
    ContextFile,
    ContextStats,
    ContextStatus,
    MemoryEntry,
    MemorySearchResult,
    MemoryStatus,
    RefreshResult,
    Skill,
    SkillInvocationResult,
    SkillLogEntry,
)
from ..core.dispatcher import (
    ContextFileContent,
    HealthReport,
    ReflectionOutcome,
    SkillInvokeOutcome,
    SkillTestOutcome,
    UserIdentity,
)
from ..core.errors import PamError, create_user_friendly_message

console = Console()

SKILL_OUTPUT_PREVIEW_CHARS = 500
SEARCH_PREVIEW_CHARS = 200


def heading(title: str) -> None:
    console.print(f"[bold]{title}[/bold]")
    console.print(Rule(style="dim"))


def print_error(prefix: str, error: Exception) -> None:
    message = create_user_friendly_message(error) if isinstance(error, PamError) else str(error)
    console.print(f"[red]✗[/red] {prefix}: {escape(message)}", highlight=False)


def warn_fallback_identity(identity: UserIdentity) -> None:
    if identity.is_fallback:
        console.print(
            f"[yellow]⚠[/yellow] No user email specified, acting as [bold]{identity.email}[/bold]. "
            "Use --user or set PAM_USER_EMAIL"
        )


def format_age(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Short relative age such as "5m ago", "3h ago" or "2d ago"."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    seconds = max((now - created_at).total_seconds(), 0)
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"


def freshness_icon(age_minutes: float) -> str:
    if age_minutes < 30:
        return "🟢"
    if age_minutes < 60:
        return "🟡"
    return "🔴"


def group_context_files(files: List[ContextFile]) -> Dict[str, List[ContextFile]]:
    """Group context files into the bundle's layers by naming convention."""
    return {
        "Real-Time Layers": [f for f in files if "context_" in f.name],
        "Project Data": [f for f in files if "summary" in f.name or "activity" in f.name],
        "Team Profiles": [f for f in files if "person" in f.name or "people/" in f.name],
    }


# Health

def render_health(report: HealthReport) -> None:
    heading("PAM Health Check")
    console.print(f"[green]•[/green] API Endpoint: {report.api_url}", highlight=False)
    if not report.checks:
        return

    console.print("\n[bold]Deep Health Check[/bold]")
    for check in report.checks:
        if check.ok:
            console.print(f"  {check.name}: [green]✓[/green] {check.detail}")
        elif check.error is not None:
            print_error(f"  {check.name}", check.error)
        else:
            console.print(f"  {check.name}: [red]✗[/red] {check.detail}")


# Memory

def render_memory_status(status: MemoryStatus, deep: bool = False) -> None:
    heading("PAM Memory Status")
    console.print("[green]•[/green] Memory system: [green]Online[/green]")
    console.print(f"  Total memories:    {status.total_memories}")
    console.print(f"  Total sessions:    {status.total_sessions}")
    console.print(f"  Total reflections: {status.total_reflections}")

    if deep:
        table = Table(title="Database Tables", show_header=True, header_style="bold magenta")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", justify="right")
        for info in status.tables:
            table.add_row(info.name, str(info.row_count))
        console.print(table)


def render_search_results(query: str, results: List[MemorySearchResult], verbose: bool = False) -> None:
    heading(f'Memory Search: "{query}"')
    if not results:
        console.print("[yellow]No memories found.[/yellow]")
        return

    for i, result in enumerate(results, 1):
        console.print(f"\n[cyan][{i}][/cyan] [bold]{escape(result.title)}[/bold]", highlight=False)
        console.print(f"    Session: {result.session_id}")
        console.print(f"    Date:    {result.created_at}")
        console.print(f"    Score:   {result.relevance_score:.2f}")
        if verbose:
            console.print(f"    Preview: {result.content[:SEARCH_PREVIEW_CHARS]}", highlight=False)
    console.print(f"\n[green]✓[/green] {len(results)} memories found")


def render_memory_list(entries: List[MemoryEntry], verbose: bool = False, now: Optional[datetime] = None) -> None:
    heading("Recent Memories")
    if not entries:
        console.print("[yellow]No memories found.[/yellow]")
        return

    for entry in entries:
        console.print(f"[cyan]•[/cyan] {entry.session_id} [dim]({format_age(entry.created_at, now)})[/dim]")
        if verbose:
            console.print(f"    {entry.preview}", highlight=False)


# Skills

def render_skills(skills: List[Skill], detailed: bool = False) -> None:
    heading("PAM Skills")
    risk_styles = {"safe": "green", "moderate": "yellow"}
    for skill in skills:
        icon = "[green]✓[/green]" if skill.enabled else "[dim]○[/dim]"
        style = risk_styles.get(skill.risk_level, "default")
        console.print(f"\n{icon} [bold]{skill.skill_key}[/bold] [[{style}]{skill.risk_level}[/{style}]]")
        if detailed:
            console.print(f"    [dim]{skill.description}[/dim]")
            console.print(f"    Usage: {skill.usage_count} invocations")
    console.print(f"\n[green]✓[/green] {len(skills)} skills available")


def _render_skill_result(result: SkillInvocationResult, preview: bool) -> None:
    content = result.content
    if content is None:
        console.print_json(json.dumps(result.payload))
        return
    if preview and len(content) > SKILL_OUTPUT_PREVIEW_CHARS:
        content = content[:SKILL_OUTPUT_PREVIEW_CHARS] + "..."
    console.print(content, highlight=False, markup=False)


def render_skill_test(outcome: SkillTestOutcome, verbose: bool = False) -> None:
    heading(f"Testing Skill: {outcome.skill}")
    if verbose:
        console.print(f"Test params: {json.dumps(outcome.params)}", highlight=False, markup=False)
    console.print("[green]✓[/green] Skill executed successfully")
    console.print(f"Duration: {outcome.duration_ms}ms")
    console.print("\n[bold]Output:[/bold]" if outcome.result.content is not None else "\n[bold]Result:[/bold]")
    _render_skill_result(outcome.result, preview=True)


def render_skill_invoke(outcome: SkillInvokeOutcome) -> None:
    warn_fallback_identity(outcome.identity)
    console.print("[green]✓[/green] Skill completed\n")
    _render_skill_result(outcome.result, preview=False)


def render_skill_log(entries: List[SkillLogEntry]) -> None:
    heading("Skill Audit Log")
    if not entries:
        console.print("[yellow]No log entries found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("", no_wrap=True)
    table.add_column("Skill", style="bold")
    table.add_column("User", style="dim")
    table.add_column("Duration", justify="right")
    table.add_column("When")
    for entry in entries:
        icon = "[green]✓[/green]" if entry.success else "[red]✗[/red]"
        table.add_row(icon, entry.skill_key, entry.user_email, f"{entry.duration_ms}ms", entry.created_at)
    console.print(table)


# Context

def render_context_status(status: ContextStatus, freshness: bool = False) -> None:
    heading("Context Bundle Status")
    console.print("[green]•[/green] Context bundle: [green]Available[/green]")
    console.print(f"  Files:  {status.file_count}")
    console.print(f"  Size:   {status.total_size_kb:.2f} KB")
    console.print(f"  Tokens: ~{status.estimated_tokens}")

    if freshness:
        console.print("\n[bold]File Freshness:[/bold]")
        for f in status.files:
            console.print(
                f"  {freshness_icon(f.age_minutes)} {f.name} ({f.age_minutes:.0f}m old, {f.size_kb:.1f} KB)",
                highlight=False,
            )


def render_refresh(result: RefreshResult) -> None:
    console.print("[green]✓[/green] Context refreshed")
    console.print(f"  Files loaded: {result.files_loaded}")
    console.print(f"  Total size:   {result.total_size_kb:.2f} KB")


def render_context_file(content: ContextFileContent, raw: bool = False) -> None:
    if not raw:
        heading(f"Context: {content.filename}")
    console.print(content.content, highlight=False, markup=False)


def render_context_list(files: List[ContextFile]) -> None:
    heading("Context Files")
    for group, members in group_context_files(files).items():
        console.print(f"\n[cyan]{group}:[/cyan]")
        for f in members:
            console.print(f"  • {f.name} ({f.size_kb:.1f} KB)", highlight=False)
    console.print(f"\n[green]✓[/green] {len(files)} files total")


def render_context_stats(stats: ContextStats) -> None:
    heading("Context Bundle Statistics")
    console.print("\n[cyan]Size Breakdown:[/cyan]")
    console.print(f"  Total Size:       {stats.total_size_kb:.2f} KB")
    console.print(f"  Estimated Tokens: ~{stats.estimated_tokens}")

    table = Table(title="By Category", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Share", justify="right")
    table.add_row("Real-Time", f"{stats.realtime_kb:.1f} KB", f"{stats.realtime_pct:.0f}%")
    table.add_row("Projects", f"{stats.projects_kb:.1f} KB", f"{stats.projects_pct:.0f}%")
    table.add_row("Team", f"{stats.team_kb:.1f} KB", f"{stats.team_pct:.0f}%")
    table.add_row("Activity", f"{stats.activity_kb:.1f} KB", f"{stats.activity_pct:.0f}%")
    console.print(table)

    console.print("\n[cyan]Team Members:[/cyan]")
    for member in stats.team_members:
        console.print(f"  • {member}")


# Reflection

def render_reflection_outcome(outcome: ReflectionOutcome, verbose: bool = False) -> None:
    warn_fallback_identity(outcome.identity)
    heading("PAM Reflection Loop")
    console.print(f"User: [cyan]{outcome.identity.email}[/cyan]")

    if outcome.error is not None:
        label = "Failed to get sessions" if outcome.error.step == "sessions" else "Reflection generation failed"
        print_error(label, outcome.error.error)
        return

    if not outcome.sessions:
        console.print("[yellow]No sessions found to reflect on.[/yellow]")
        return

    if verbose:
        console.print(f"Found {len(outcome.sessions)} sessions to analyze")

    reflection = outcome.reflection
    console.print("[green]✓[/green] Reflection generated")

    body = ["[green bold]What Worked:[/green bold]"]
    body.extend(f"  [green]✓[/green] {escape(item)}" for item in reflection.what_worked)
    body.append("\n[yellow bold]What Could Be Improved:[/yellow bold]")
    body.extend(f"  [yellow]•[/yellow] {escape(item)}" for item in reflection.what_failed)
    body.append("\n[cyan bold]Key Learnings:[/cyan bold]")
    body.extend(f"  💡 {escape(item)}" for item in reflection.learnings)
    if reflection.action_items:
        body.append("\n[magenta bold]Action Items:[/magenta bold]")
        body.extend(f"  {i}. {escape(item)}" for i, item in enumerate(reflection.action_items, 1))
    console.print(Panel("\n".join(body), title="REFLECTION SUMMARY", border_style="cyan"))

    if outcome.export_path is not None:
        console.print(f"[green]✓[/green] Exported to: {outcome.export_path}")
    if outcome.saved_id is not None:
        console.print(f"[green]✓[/green] Reflection saved (ID: {outcome.saved_id})")

    for warning in outcome.warnings:
        message = create_user_friendly_message(warning.error) if isinstance(warning.error, PamError) else str(warning.error)
        console.print(f"[yellow]⚠[/yellow] Failed to {warning.step} reflection: {escape(message)}", highlight=False)


# Config

def render_config(config: PamConfig) -> None:
    heading("PAM Configuration")
    data = config.to_dict()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for key, value in data.items():
        table.add_row(key, "(not set)" if value is None else str(value))
    console.print(table)


def render_config_sources(sources: List[Dict[str, Any]]) -> None:
    table = Table(title="Configuration Sources", show_header=True, header_style="bold magenta")
    table.add_column("Source", style="cyan")
    table.add_column("Path")
    table.add_column("Exists")
    table.add_column("Keys", style="dim")
    for source in sources:
        table.add_row(
            source["source"],
            source["path"] or "-",
            "yes" if source["exists"] else "no",
            ", ".join(source["keys"]),
        )
    console.print(table)
