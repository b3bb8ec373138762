"""Connect flow CLI commands."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bankconnect.config import get_settings
from bankconnect.core.connect import (
    AdapterTable,
    ConnectionFlowController,
    HttpInstitutionDirectory,
    LinkTokenProvisioner,
    TokenExchanger,
    WidgetHost,
    build_adapters,
    decode_params,
    get_adapter,
)
from bankconnect.core.connect.engine import EngineClient

settings = get_settings()
console = Console()
app = typer.Typer()


def cli_adapters(engine: EngineClient) -> AdapterTable:
    """Adapters whose token services share the CLI's engine client."""
    return build_adapters(
        WidgetHost().create,
        provisioner=LinkTokenProvisioner(engine),
        exchanger=TokenExchanger(engine),
    )


async def _run_search(country_code: str, query: Optional[str]) -> ConnectionFlowController:
    engine = EngineClient()
    try:
        controller = ConnectionFlowController(
            directory=HttpInstitutionDirectory(engine),
            adapters=cli_adapters(engine),
        )
        await controller.open(country_code)
        if query:
            await controller.set_query(query)
        return controller
    finally:
        await engine.aclose()


@app.command("search")
def search_institutions(
    query: Optional[str] = typer.Argument(None, help="Bank name to search for"),
    country: str = typer.Option(
        settings.default_country_code,
        "--country",
        "-c",
        help="ISO country code",
    ),
):
    """Search the institution directory."""
    controller = asyncio.run(_run_search(country.upper(), query))
    results = controller.results

    if not results:
        console.print("[yellow]No banks found.[/yellow]")
        console.print("We could not find any banks matching your criteria.")
        return

    table = Table(title=f"Institutions ({country.upper()})")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Via")
    table.add_column("History", justify="right")
    table.add_column("Connect", justify="center")

    for institution in results:
        adapter = get_adapter(controller.adapters, institution.provider)
        launchable = adapter is not None and adapter.supports_launch
        table.add_row(
            institution.id,
            institution.name,
            institution.provider.capitalize(),
            f"{institution.available_history} mo" if institution.available_history else "-",
            "[green]Yes[/green]" if launchable else "[dim]No[/dim]",
        )

    console.print(table)


@app.command("decode")
def decode_location(
    location: str = typer.Argument(..., help="Location or query string with connect params"),
):
    """Show the connect params carried by a location."""
    params = decode_params(location)

    table = Table(title="Connect Params")
    table.add_column("Field")
    table.add_column("Value")

    for field, value in (
        ("step", params.step),
        ("provider", params.provider),
        ("institution_id", params.institution_id),
        ("countryCode", params.country_code),
        ("q", params.query),
        ("token", (params.token[:6] + "...") if params.token else None),
        ("enrollment_id", params.enrollment_id),
    ):
        table.add_row(field, value if value else "[dim]-[/dim]")

    console.print(table)

    if params.has_credential and not params.provider:
        console.print("[red]Inconsistent:[/red] credential without a provider")
    elif params.step == "account" and not params.has_credential:
        console.print("[red]Inconsistent:[/red] account step without a credential")
