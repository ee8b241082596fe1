#!/usr/bin/env python3
"""
tunedup: operator CLI for accounts and promotion codes.

    tunedup users list [--plan PRO]
    tunedup users show <email>
    tunedup users set-plan <email> <plan> [--months 12] [--reset-usage]
    tunedup users reset-usage <email> [--yes]
    tunedup promotions create <code> <plan> --max-uses 100 [--expires 2026-12-31]
    tunedup promotions stats <code>
    tunedup config
"""
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .commands import promotions, users

app = typer.Typer(
    name="tunedup",
    help="Manage TunedUp users, plans and promotion codes",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(users.app, name="users")
app.add_typer(promotions.app, name="promotions")

console = Console()


def _mask(secret: str) -> str:
    return f"{secret[:6]}…{secret[-4:]}" if len(secret) > 12 else "set"


@app.command()
def version():
    """Print the CLI version."""
    console.print(f"tunedup [bold]{__version__}[/bold]")


@app.command("config")
def show_config():
    """Show where configuration was loaded from and whether it is complete."""
    from .config import get_config

    config = get_config()
    missing = config.validate()

    table = Table(show_header=False, box=None)
    table.add_row("Environment", config.environment)
    table.add_row("Loaded from", str(config.env_file) if config.env_file else "process environment")
    table.add_row("SUPABASE_URL", config.supabase_url or "[red]missing[/red]")
    table.add_row(
        "SUPABASE_SERVICE_ROLE_KEY",
        _mask(config.service_role_key) if config.service_role_key else "[red]missing[/red]",
    )
    console.print(table)

    if missing:
        console.print(f"\n[bold red]❌ Missing: {', '.join(missing)}[/bold red]")
        console.print("[dim]Set them in the environment or in ~/.tunedup/.env[/dim]")
        raise typer.Exit(1)
    console.print("\n[bold green]✅ Configuration valid[/bold green]")


def main():
    app()


if __name__ == "__main__":
    main()
