"""Chat rendering and the interactive chat loop."""

import typer
from rich.markup import escape
from rich.panel import Panel

from ..core.dispatcher import ChatOutcome, CommandDispatcher, UserIdentity
from ..core.errors import PamError
from .render import console, print_error, warn_fallback_identity

EXIT_WORDS = {"quit", "exit", "q"}


def render_session_banner(outcome: ChatOutcome) -> None:
    warn_fallback_identity(outcome.identity)
    if outcome.resumed:
        console.print(f"[cyan]•[/cyan] Continuing session: {outcome.session_id}")
    elif outcome.continue_requested:
        console.print("[cyan]•[/cyan] No previous session found, starting new one")


def render_reply(text: str) -> None:
    console.print("[bold cyan]PAM:[/bold cyan]")
    console.print(text, highlight=False, markup=False)


def render_single_message(outcome: ChatOutcome, message: str, verbose: bool = False) -> None:
    """Render the reply produced by a one-shot `pam chat MESSAGE`."""
    render_session_banner(outcome)
    if verbose:
        console.print(f"Session: {outcome.session_id}")
        console.print(f"User: {outcome.identity.email}")
    console.print(f"[bold]You:[/bold] {escape(message)}\n")
    render_reply(outcome.reply.response)


async def interactive_chat(dispatcher: CommandDispatcher, outcome: ChatOutcome) -> None:
    """Run the interactive chat loop until the user quits."""
    render_session_banner(outcome)
    console.print(Panel(
        "Type 'quit' or 'exit' to end, 'clear' to reset session, 'help' for commands",
        title="PAM Chief of Staff - Interactive Chat",
        border_style="cyan",
    ))
    console.print(f"[dim]Session: {outcome.session_id}[/dim]")
    console.print(f"[dim]User: {outcome.identity.email}[/dim]\n")

    identity = outcome.identity
    while True:
        try:
            user_input = typer.prompt("You")
        except (KeyboardInterrupt, EOFError, typer.Abort):
            console.print("\n[dim]Goodbye![/dim]")
            break

        command = user_input.strip().lower()

        if command in EXIT_WORDS:
            console.print("\n👋 Goodbye!")
            break
        elif command == "clear":
            session_id = dispatcher.sessions.reset()
            console.print(f"[green]✓[/green] Started new session: {session_id}")
            continue
        elif command == "help":
            _show_chat_help()
            continue
        elif command == "/status":
            console.print(f"Session: {dispatcher.sessions.current}")
            console.print(f"User: {identity.email}")
            continue
        elif command == "/reflect":
            await _reflect(dispatcher, identity)
            continue
        elif command == "":
            continue

        try:
            with console.status("[dim]PAM is thinking...[/dim]"):
                reply = await dispatcher.send_chat(identity, user_input.strip())
        except PamError as e:
            print_error("Error", e)
            console.print()
            continue

        render_reply(reply.response)
        console.print()


async def _reflect(dispatcher: CommandDispatcher, identity: UserIdentity) -> None:
    console.print("[dim]Generating reflection...[/dim]")
    try:
        reflection = await dispatcher.reflect_on_current_session(identity)
    except PamError as e:
        print_error("Reflection failed", e)
        return

    console.print("\n[bold cyan]Reflection:[/bold cyan]")
    for learning in reflection.learnings:
        console.print(f"  💡 {escape(learning)}")


def _show_chat_help() -> None:
    help_text = """[bold]Chat Commands:[/bold]

[cyan]quit, exit, q[/cyan] - End the chat session
[cyan]clear[/cyan]         - Start a new session
[cyan]/reflect[/cyan]      - Generate reflection from this session
[cyan]/status[/cyan]       - Show current session info
[cyan]help[/cyan]          - Show this help"""

    console.print(Panel(help_text, title="Help", border_style="blue"))
