"""
Users Command Module

Inspect accounts, change plans and reset monthly usage.
"""
import calendar
from datetime import datetime, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config import PLAN_CODES

app = typer.Typer(help="User plans and usage")
console = Console()


def add_months(moment: datetime, months: int) -> datetime:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def find_user(client, email: str) -> dict:
    result = client.table('users').select('*').eq('email', email.strip().lower()).limit(1).execute()
    if not result.data:
        console.print(f"[bold red]❌ User not found: {email}[/bold red]")
        raise typer.Exit(1)
    return result.data[0]


@app.command("list")
def list_users(
    plan: Optional[str] = typer.Option(None, "--plan", "-p", help="Only users on this plan"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum users to display")
):
    """List users, newest first."""
    from ..config import get_supabase_client

    try:
        client = get_supabase_client()
        query = client.table('users').select(
            'email, plan_code, perf_used, build_used, image_used, reset_date, created_at'
        )
        if plan:
            query = query.eq('plan_code', plan.upper())
        result = query.order('created_at', desc=True).limit(limit).execute()

        if not result.data:
            console.print("[yellow]No users found.[/yellow]")
            return

        table = Table(title=f"Users ({len(result.data)} shown)")
        table.add_column("Email", style="bold cyan")
        table.add_column("Plan", justify="center")
        table.add_column("Perf", justify="right")
        table.add_column("Build", justify="right")
        table.add_column("Image", justify="right")
        table.add_column("Reset", style="green")
        table.add_column("Created", style="dim")

        for user in result.data:
            table.add_row(
                user['email'],
                user.get('plan_code', 'FREE'),
                str(user.get('perf_used', 0)),
                str(user.get('build_used', 0)),
                str(user.get('image_used', 0)),
                (user.get('reset_date') or '')[:10],
                (user.get('created_at') or '')[:10],
            )

        console.print(table)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        raise typer.Exit(1)


@app.command("show")
def show_user(
    email: str = typer.Argument(..., help="User email")
):
    """Show plan, usage and billing details for a user."""
    from ..config import get_supabase_client

    try:
        user = find_user(get_supabase_client(), email)

        console.print(f"\n[bold blue]User: {user['email']}[/bold blue]")
        console.print(f"   ID: {user.get('id')}")
        console.print(f"   Plan: {user.get('plan_code', 'FREE')}")
        console.print(f"   Renews: {(user.get('plan_renews_at') or 'N/A')[:19]}")
        console.print(f"   Stripe customer: {user.get('stripe_customer_id') or 'N/A'}")
        console.print(f"   Created: {(user.get('created_at') or '')[:19]}")
        console.print("\n[bold]Usage this period:[/bold]")
        console.print(f"   Performance: {user.get('perf_used', 0)}")
        console.print(f"   Build plans: {user.get('build_used', 0)}")
        console.print(f"   Images: {user.get('image_used', 0)}")
        console.print(f"   Period started: {(user.get('reset_date') or '')[:19]}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        raise typer.Exit(1)


@app.command("set-plan")
def set_plan(
    email: str = typer.Argument(..., help="User email"),
    plan: str = typer.Argument(..., help=f"One of {', '.join(PLAN_CODES)}"),
    months: int = typer.Option(12, "--months", "-m", help="Months until the plan renews"),
    reset_usage: bool = typer.Option(False, "--reset-usage", help="Also zero the usage counters")
):
    """Change a user's plan."""
    from ..config import get_supabase_client

    plan = plan.upper()
    if plan not in PLAN_CODES:
        console.print(f"[bold red]❌ Invalid plan: {plan}[/bold red] (expected {', '.join(PLAN_CODES)})")
        raise typer.Exit(1)

    try:
        client = get_supabase_client()
        user = find_user(client, email)

        now = datetime.now(timezone.utc)
        update = {
            'plan_code': plan,
            'plan_renews_at': add_months(now, months).isoformat() if plan != "FREE" else None,
        }
        if reset_usage:
            update.update({'perf_used': 0, 'build_used': 0, 'image_used': 0, 'reset_date': now.isoformat()})

        client.table('users').update(update).eq('email', user['email']).execute()
        console.print(f"[bold green]✅ {user['email']}: {user.get('plan_code', 'FREE')} → {plan}[/bold green]")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        raise typer.Exit(1)


@app.command("reset-usage")
def reset_usage(
    email: str = typer.Argument(..., help="User email"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
):
    """Zero a user's monthly usage counters and restart the period."""
    from ..config import get_supabase_client

    try:
        client = get_supabase_client()
        user = find_user(client, email)

        if not yes:
            typer.confirm(f"Reset usage for {user['email']}?", abort=True)

        client.table('users').update({
            'perf_used': 0,
            'build_used': 0,
            'image_used': 0,
            'reset_date': datetime.now(timezone.utc).isoformat(),
        }).eq('email', user['email']).execute()
        console.print(f"[bold green]✅ Usage reset for {user['email']}[/bold green]")

    except (typer.Exit, typer.Abort):
        raise
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        raise typer.Exit(1)
