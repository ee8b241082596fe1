"""
Promotions Command Module

Create promotion codes and inspect their redemptions.
"""
from datetime import datetime, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config import PROMOTION_PLANS

app = typer.Typer(help="Promotion codes")
console = Console()


@app.command("create")
def create_promotion(
    code: str = typer.Argument(..., help="Promotion code (stored uppercase)"),
    plan: str = typer.Argument(..., help=f"One of {', '.join(PROMOTION_PLANS)}"),
    max_uses: int = typer.Option(..., "--max-uses", "-n", min=1, help="Maximum redemptions"),
    expires: Optional[datetime] = typer.Option(
        None, "--expires", "-e",
        formats=["%Y-%m-%d"],
        help="Expiry date (UTC, YYYY-MM-DD)"
    )
):
    """Create a promotion code that upgrades users for a year."""
    from ..config import get_supabase_client

    code = code.strip().upper()
    plan = plan.upper()
    if plan not in PROMOTION_PLANS:
        console.print(f"[bold red]❌ Invalid plan: {plan}[/bold red] (expected {', '.join(PROMOTION_PLANS)})")
        raise typer.Exit(1)

    try:
        client = get_supabase_client()

        existing = client.table('promotions').select('id').eq('code', code).execute()
        if existing.data:
            console.print(f"[bold red]❌ Promotion already exists: {code}[/bold red]")
            raise typer.Exit(1)

        client.table('promotions').insert({
            'code': code,
            'plan_code': plan,
            'max_uses': max_uses,
            'used_count': 0,
            'active': True,
            'expires_at': expires.replace(tzinfo=timezone.utc).isoformat() if expires else None,
        }).execute()

        console.print(f"[bold green]✅ Created {code}[/bold green] → {plan}, {max_uses} uses")
        if expires:
            console.print(f"   Expires: {expires.date()}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        raise typer.Exit(1)


@app.command("stats")
def promotion_stats(
    code: str = typer.Argument(..., help="Promotion code")
):
    """Show usage and redemptions for a promotion."""
    from ..config import get_supabase_client

    code = code.strip().upper()
    try:
        client = get_supabase_client()
        result = client.table('promotions').select('*').eq('code', code).execute()
        if not result.data:
            console.print(f"[bold red]❌ Promotion not found: {code}[/bold red]")
            raise typer.Exit(1)

        promotion = result.data[0]
        remaining = promotion['max_uses'] - promotion.get('used_count', 0)

        console.print(f"\n[bold blue]Promotion: {promotion['code']}[/bold blue]")
        console.print(f"   Plan: {promotion['plan_code']}")
        console.print(f"   Active: {'✅' if promotion.get('active') else '❌'}")
        console.print(f"   Used: {promotion.get('used_count', 0)} / {promotion['max_uses']} ({remaining} remaining)")
        console.print(f"   Expires: {(promotion.get('expires_at') or 'never')[:19]}")

        redemptions = client.table('promotion_redemptions').select(
            'user_email, redeemed_at'
        ).eq('promotion_id', promotion['id']).order('redeemed_at', desc=True).execute()

        if not redemptions.data:
            console.print("\n[yellow]No redemptions yet.[/yellow]")
            return

        table = Table(title=f"Redemptions ({len(redemptions.data)})")
        table.add_column("Email", style="bold cyan")
        table.add_column("Redeemed", style="green")
        for row in redemptions.data:
            table.add_row(row['user_email'], (row.get('redeemed_at') or '')[:19])
        console.print(table)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        raise typer.Exit(1)
