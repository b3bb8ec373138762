"""Main CLI entry point using Typer."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from bankconnect.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, get_settings
from bankconnect.core.connect.engine import EngineClient

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

console = Console()
app = typer.Typer(
    name="bankconnect",
    help=f"{PRODUCT_NAME}: {PRODUCT_TAGLINE}",
    add_completion=False,
)


# Import and add subcommands
from bankconnect.cli.connect import app as connect_app, cli_adapters

app.add_typer(connect_app, name="connect", help="Search institutions and inspect connect params")


@app.command()
def status():
    """Show provider configuration."""
    console.print("[bold]Provider Status[/bold]\n")

    table = Table()
    table.add_column("Provider")
    table.add_column("Link Token", justify="center")
    table.add_column("Configured", justify="center")
    table.add_column("Environment")

    environments = {
        "plaid": settings.plaid_env,
        "teller": settings.teller_environment,
    }

    engine = EngineClient()
    try:
        adapters = cli_adapters(engine)
    finally:
        asyncio.run(engine.aclose())

    for provider_type, adapter in adapters.items():
        if not adapter.supports_launch:
            configured = "[dim]Not available[/dim]"
        elif adapter.is_configured():
            configured = "[green]Yes[/green]"
        else:
            configured = "[yellow]No[/yellow]"

        table.add_row(
            adapter.display_name,
            "Yes" if adapter.requires_link_token else "No",
            configured,
            environments.get(provider_type.value, "-"),
        )

    console.print(table)
    console.print(f"\nEngine API: {settings.engine_api_url}")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]{PRODUCT_NAME}[/bold]")
    console.print(f"[bold]Version:[/] {PRODUCT_VERSION}")
    console.print(f"[bold]Tagline:[/] {PRODUCT_TAGLINE}")


if __name__ == "__main__":
    app()
