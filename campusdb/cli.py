"""Command-line interface for campusdb.

A Typer-based operator CLI for checking configuration and peeking at live
data through the same service layer the application uses.

Commands:
- config: Show the effective (redacted) configuration
- tokens: Print the design-token tables
- sessions: List active sessions
- history: List a user's closed sessions
- notifications: List a user's notifications with related summaries
- friends: List a user's friends

Example:
    $ campusdb config
    $ campusdb tokens --mode dark
    $ campusdb notifications 6f1c...
"""

import asyncio
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from campusdb.client import BackendConfigError, SupabaseBackend
from campusdb.config import settings
from campusdb.design_tokens import RADIUS, SHADOWS, SPACING, TRANSITIONS, ThemeMode, theme
from campusdb.logging import set_request_context
from campusdb.response import Result, error_message
from campusdb.service import CampusService
from campusdb.utils import format_iso

app = typer.Typer(
    name="campusdb",
    help="Data-access toolkit for the campus sessions backend",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "{message}",
    )


@asynccontextmanager
async def open_service() -> AsyncIterator[CampusService]:
    """Connect a service for the duration of one command."""
    async with SupabaseBackend() as backend:
        yield await CampusService.connect(backend)


def run_query(call: Callable[[CampusService], Awaitable[Result[Any]]]) -> Any:
    """Run one service call and return its data, exiting with code 1 on failure."""

    async def _run() -> Result[Any]:
        async with open_service() as service:
            return await call(service)

    try:
        result = asyncio.run(_run())
    except BackendConfigError as e:
        console.print(f"❌ [bold red]{e}[/bold red]")
        raise typer.Exit(code=1)

    if not result.ok:
        console.print(f"❌ [bold red]Request failed: {error_message(result.error)}[/bold red]")
        raise typer.Exit(code=1)
    return result.data


VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def config() -> None:
    """Show the effective configuration with secrets redacted."""
    table = Table(title="campusdb configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")

    table.add_row("Environment", settings.environment.value)
    table.add_row("Supabase URL", settings.supabase_url or "(not set)")
    table.add_row("Anon key", settings.redact_key())
    table.add_row("Auth flow", settings.auth_flow_type)
    table.add_row("Auto refresh", str(settings.auto_refresh_token))
    table.add_row("Persist session", str(settings.persist_session))
    table.add_row("Request timeout", f"{settings.request_timeout}s")
    table.add_row("Notification limit", str(settings.notification_limit))
    table.add_row("History limit", str(settings.history_limit))
    table.add_row("Search limit", str(settings.search_limit))
    table.add_row(
        "Notification concurrency",
        str(settings.notification_concurrency or "unbounded"),
    )
    table.add_row("Log level", settings.log_level)

    console.print(table)


@app.command()
def tokens(
    mode: ThemeMode = typer.Option(ThemeMode.LIGHT, "--mode", "-m", help="Color variant"),
) -> None:
    """Print the design-token tables."""
    colors = Table(title=f"Colors ({mode.value})")
    colors.add_column("Token", style="cyan")
    colors.add_column("Value")
    for name, value in theme(mode).items():
        colors.add_row(name, value)
    console.print(colors)

    scales = Table(title="Scales")
    scales.add_column("Group", style="cyan")
    scales.add_column("Token")
    scales.add_column("Value")
    for group, values in (
        ("spacing", SPACING),
        ("radius", RADIUS),
        ("shadow", SHADOWS),
        ("transition", TRANSITIONS),
    ):
        for name, value in values.items():
            scales.add_row(group, str(name), value)
    console.print(scales)


@app.command()
def sessions(verbose: bool = VerboseOption) -> None:
    """List active sessions."""
    setup_logging(verbose)
    data = run_query(lambda service: service.fetch_active_sessions())

    table = Table(title=f"Active sessions ({len(data)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Type")
    table.add_column("Starts")
    table.add_column("Creator")
    table.add_column("Participants", justify="right")
    for s in data:
        table.add_row(
            str(s.id),
            f"{s.emoji or ''} {s.title}".strip(),
            s.sessionType or "-",
            format_iso(s.eventTime) or "-",
            s.creator.username,
            str(len(s.participants)),
        )
    console.print(table)


@app.command()
def history(
    user_id: str = typer.Argument(..., help="User id"),
    verbose: bool = VerboseOption,
) -> None:
    """List the closed sessions a user created or joined."""
    setup_logging(verbose)
    set_request_context(user_id=user_id)
    data = run_query(lambda service: service.fetch_user_session_history(user_id))

    table = Table(title=f"Session history ({len(data)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Ended")
    table.add_column("Role")
    for s in data:
        role = s.participantRoles.get(user_id)
        table.add_row(
            str(s.id),
            s.title,
            format_iso(s.eventTime) or "-",
            "creator" if s.creatorId == user_id else (role.value if role else "-"),
        )
    console.print(table)


@app.command()
def notifications(
    user_id: str = typer.Argument(..., help="Recipient user id"),
    verbose: bool = VerboseOption,
) -> None:
    """List a user's latest notifications."""
    setup_logging(verbose)
    set_request_context(user_id=user_id)
    data = run_query(lambda service: service.fetch_notifications(user_id))

    table = Table(title=f"Notifications ({len(data)})")
    table.add_column("Type", style="cyan")
    table.add_column("From")
    table.add_column("Session")
    table.add_column("Tag")
    table.add_column("When")
    table.add_column("Read")
    for n in data:
        table.add_row(
            n.type,
            n.user.username if n.user else "-",
            n.session.title if n.session else "-",
            n.tag.name if n.tag else "-",
            format_iso(n.timestamp) or "-",
            "✓" if n.isRead else "",
        )
    console.print(table)


@app.command()
def friends(
    user_id: str = typer.Argument(..., help="User id"),
    verbose: bool = VerboseOption,
) -> None:
    """List a user's friends with their cookie scores."""
    setup_logging(verbose)
    set_request_context(user_id=user_id)
    data = run_query(lambda service: service.fetch_friends(user_id))

    if not data:
        console.print("No friends yet.")
        return

    table = Table(title=f"Friends ({len(data)})")
    table.add_column("Username", style="cyan")
    table.add_column("Branch")
    table.add_column("Year", justify="right")
    table.add_column("Cookie score", justify="right")
    for f in data:
        table.add_row(f.username, f.branch or "-", str(f.year or "-"), str(f.cookieScore))
    console.print(table)


if __name__ == "__main__":
    app()
