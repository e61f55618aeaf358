"""
CarbonChain - Command Line Interface
======================================
CLI per amministrazione piattaforma e operazioni.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Commands:
- db: Database management
- profile: Profile management
- api: REST API server
- project: Project intake and review
- market: Marketplace listings and purchases
- wallet: Portfolio, balances, history
- chain: Credit contract queries
- monitor: MRV monitoring (mock)
"""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Internal imports
from carbon_chain.config import get_settings
from carbon_chain.constants import (
    BLOCK_EXPLORER_URL,
    CHAIN_NAME,
    PLATFORM_FEE_BP,
    VERIFIER_ADDRESS,
    ProfileRole,
    ProjectStatus,
    format_address,
    format_hash,
)
from carbon_chain.domain.models import ProjectForm
from carbon_chain.errors import CarbonChainException
from carbon_chain.logging_setup import setup_logging
from carbon_chain.platform import Platform, build_platform


# ============================================================================
# CLI APP
# ============================================================================

app = typer.Typer(
    name="carbonchain",
    help="CarbonChain - Carbon Credit Platform CLI",
    add_completion=False
)

console = Console()


# ============================================================================
# GLOBAL STATE
# ============================================================================

class CLIState:
    """Global CLI state"""
    platform: Optional[Platform] = None
    verbose: bool = False


state = CLIState()


def get_platform() -> Platform:
    """Build platform on first use (logging included)"""
    if state.platform is None:
        config = get_settings()
        setup_logging(
            log_level="DEBUG" if state.verbose else config.log_level,
            log_to_file=config.log_to_file,
            log_dir=config.log_dir,
            log_format=config.log_format,
            log_rotation_mb=config.log_rotation_mb,
            log_retention_days=config.log_retention_days,
            enable_console=state.verbose,
        )
        state.platform = build_platform(config)
    return state.platform


def fail(action: str, error: CarbonChainException):
    """Print error and exit with status 1"""
    console.print(f"[red]Error {action}: {error.message}[/red]")
    if state.verbose and error.details:
        console.print(f"[dim]{json.dumps(error.details, default=str)}[/dim]")
    raise typer.Exit(1)


STATUS_STYLES = {
    ProjectStatus.PENDING.value: "yellow",
    ProjectStatus.VERIFIED.value: "cyan",
    ProjectStatus.TOKENIZED.value: "green",
    ProjectStatus.REJECTED.value: "red",
}


# ============================================================================
# DATABASE COMMANDS
# ============================================================================

db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create database schema"""
    try:
        platform = get_platform()
    except CarbonChainException as e:
        fail("initializing database", e)

    console.print(Panel.fit(
        f"[green]✅ Database ready[/green]\n\n"
        f"URL: [cyan]{platform.config.database_url}[/cyan]\n"
        f"Metadata backend: [cyan]{platform.config.metadata_backend}[/cyan]",
        title="CarbonChain",
        border_style="green"
    ))


# ============================================================================
# PROFILE COMMANDS
# ============================================================================

profile_app = typer.Typer(help="Profile management commands")
app.add_typer(profile_app, name="profile")


@profile_app.command("create")
def profile_create(
    full_name: str = typer.Option(..., "--name", help="Full name"),
    organization: Optional[str] = typer.Option(None, "--org", help="Organization"),
    role: ProfileRole = typer.Option(ProfileRole.NGO, "--role", help="Profile role"),
    address: Optional[str] = typer.Option(None, "--address", help="EVM wallet address"),
):
    """Create a profile (the id is the API bearer token)"""
    try:
        profile = get_platform().db.upsert_profile(
            full_name=full_name,
            organization=organization,
            role=role.value,
            address=address,
        )
    except CarbonChainException as e:
        fail("creating profile", e)

    console.print(Panel.fit(
        f"[green]✅ Profile created[/green]\n\n"
        f"ID: [cyan]{profile['id']}[/cyan]\n"
        f"Role: [cyan]{profile['role']}[/cyan]\n"
        f"Wallet: [cyan]{profile['address'] or '-'}[/cyan]",
        title="Profile",
        border_style="green"
    ))


# ============================================================================
# API COMMANDS
# ============================================================================

api_app = typer.Typer(help="REST API commands")
app.add_typer(api_app, name="api")


@api_app.command("serve")
def api_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """Start the REST API server"""
    import uvicorn
    from carbon_chain.api.rest_api import initialize_api

    platform = get_platform()
    api = initialize_api(platform)

    host = host or platform.config.api_host
    port = port or platform.config.api_port
    console.print(f"[cyan]Starting CarbonChain API on {host}:{port}[/cyan]")
    uvicorn.run(api, host=host, port=port, log_level="info")


# ============================================================================
# PROJECT COMMANDS
# ============================================================================

project_app = typer.Typer(help="Project intake and review commands")
app.add_typer(project_app, name="project")


@project_app.command("submit")
def project_submit(
    submitter: str = typer.Option(..., "--submitter", help="Submitting profile id"),
    name: str = typer.Option(..., "--name", help="Project name"),
    project_type: str = typer.Option("reforestation", "--type", help="Project type"),
    description: str = typer.Option(..., "--description", help="Description"),
    start_date: str = typer.Option(..., "--start-date", help="Planting date (YYYY-MM-DD)"),
    country: str = typer.Option(..., "--country", help="Country"),
    region: str = typer.Option(..., "--region", help="Region"),
    latitude: float = typer.Option(..., "--lat", help="Latitude"),
    longitude: float = typer.Option(..., "--lon", help="Longitude"),
    total_area: float = typer.Option(..., "--total-area", help="Total area (ha)"),
    planted_area: float = typer.Option(..., "--planted-area", help="Planted area (ha)"),
    species: str = typer.Option(..., "--species", help="Tree species"),
):
    """Submit a project for review"""
    form = ProjectForm(
        project_name=name,
        project_type=project_type,
        description=description,
        start_date=start_date,
        country=country,
        region=region,
        latitude=latitude,
        longitude=longitude,
        total_area=total_area,
        planted_area=planted_area,
        species=species,
    )
    try:
        project = get_platform().projects.submit_project(submitter, form)
    except CarbonChainException as e:
        fail("submitting project", e)

    console.print(Panel.fit(
        f"[green]✅ Project submitted![/green]\n\n"
        f"ID: [cyan]{project['id']}[/cyan]\n"
        f"Location: [cyan]{project['location_name']}[/cyan]\n"
        f"Estimated credits: [yellow]{project['estimated_co2_tons']} tCO2e[/yellow]\n"
        f"Status: [yellow]{project['status']}[/yellow]",
        title="Project Submission",
        border_style="green"
    ))


@project_app.command("list")
def project_list(
    status: Optional[ProjectStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    search: Optional[str] = typer.Option(None, "--search", help="Title, location or organization"),
    submitter: Optional[str] = typer.Option(None, "--submitter", help="Only this profile's projects"),
):
    """List projects"""
    try:
        projects = get_platform().projects.list_projects(
            status=status.value if status else None,
            submitted_by=submitter,
            search=search,
        )
    except CarbonChainException as e:
        fail("listing projects", e)

    if not projects:
        console.print("[yellow]No projects found[/yellow]")
        return

    table = Table(title=f"Projects ({len(projects)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Location")
    table.add_column("Credits", justify="right")
    table.add_column("Status")

    for project in projects:
        style = STATUS_STYLES.get(project["status"], "white")
        table.add_row(
            project["id"][:8],
            project["title"],
            project["location_name"] or "-",
            str(project["estimated_co2_tons"]),
            f"[{style}]{project['status']}[/{style}]",
        )

    console.print(table)


@project_app.command("show")
def project_show(project_id: str = typer.Argument(..., help="Project id")):
    """Show project details"""
    try:
        project = get_platform().projects.get_project(project_id)
    except CarbonChainException as e:
        fail("loading project", e)

    submitter = project.get("submitter") or {}

    table = Table(title=project["title"], show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("ID", project["id"])
    table.add_row("Type", project["project_type"])
    table.add_row("Status", project["status"])
    table.add_row("Location", project["location_name"] or "-")
    table.add_row("Coordinates", f"{project['latitude']}, {project['longitude']}")
    table.add_row("Area", f"{project['area_hectares']} ha")
    table.add_row("Species", ", ".join(project["tree_species"] or []))
    table.add_row("Estimated", f"{project['estimated_co2_tons']} tCO2e")
    table.add_row("Available", str(project["effective_available_credits"]))
    table.add_row("Submitted by", submitter.get("organization") or submitter.get("full_name") or "-")
    table.add_row("Media", str(len(project.get("media") or [])))
    if project["verification_notes"]:
        table.add_row("Notes", project["verification_notes"])
    if project["blockchain_hash"]:
        table.add_row("Mint TX", format_hash(project["blockchain_hash"]))
    for credit in project["credits"]:
        table.add_row("Token", f"#{credit['token_id']} ({credit['amount_tons']} t)")

    console.print(table)


@project_app.command("approve")
def project_approve(
    project_id: str = typer.Argument(..., help="Project id"),
    notes: str = typer.Option("", "--notes", "-n", help="Verification notes"),
):
    """Approve a pending project and mint its credits"""
    try:
        outcome = get_platform().issuance.approve_project(project_id, notes)
    except CarbonChainException as e:
        fail("approving project", e)

    if outcome.token_id is None:
        console.print(Panel.fit(
            "[yellow]Project verified, issuance deferred[/yellow]\n\n"
            "The submitter has no wallet address on file.",
            title="Project Approval",
            border_style="yellow"
        ))
        return

    border = "green" if outcome.is_consistent else "red"
    lines = (
        f"[green]✅ Project approved and credits minted![/green]\n\n"
        f"Token ID: [cyan]{outcome.token_id}[/cyan]\n"
        f"TX: [cyan]{outcome.transaction_hash}[/cyan]\n"
        f"Metadata: [cyan]{outcome.metadata_uri}[/cyan]"
    )
    if not outcome.is_consistent:
        lines += "\n\n[red]⚠️  Mint succeeded but local records were not fully updated[/red]"
    console.print(Panel.fit(lines, title="Project Approval", border_style=border))


@project_app.command("reject")
def project_reject(
    project_id: str = typer.Argument(..., help="Project id"),
    notes: str = typer.Option(..., "--notes", "-n", help="Rejection reason"),
):
    """Reject a pending project"""
    try:
        get_platform().issuance.reject_project(project_id, notes)
    except CarbonChainException as e:
        fail("rejecting project", e)

    console.print(f"[yellow]Project {project_id} rejected[/yellow]")


# ============================================================================
# MARKETPLACE COMMANDS
# ============================================================================

market_app = typer.Typer(help="Marketplace commands")
app.add_typer(market_app, name="market")


@market_app.command("listings")
def market_listings():
    """Show projects available for purchase"""
    try:
        listings = get_platform().projects.marketplace_listings()
    except CarbonChainException as e:
        fail("loading listings", e)

    if not listings:
        console.print("[yellow]No credits on the marketplace[/yellow]")
        return

    table = Table(
        title="Marketplace",
        caption=f"{CHAIN_NAME} - on-chain resales pay a {PLATFORM_FEE_BP / 100}% platform fee",
    )
    table.add_column("Project", style="cyan")
    table.add_column("Title")
    table.add_column("Organization")
    table.add_column("Available", justify="right")
    table.add_column("Price", justify="right")

    for listing in listings:
        available = "[red]sold out[/red]" if listing["sold_out"] else str(listing["available_credits"])
        table.add_row(
            listing["project_id"][:8],
            listing["title"],
            listing["organization"] or "-",
            available,
            f"{listing['price_per_credit']} MATIC",
        )

    console.print(table)


@market_app.command("buy")
def market_buy(
    project_id: str = typer.Argument(..., help="Project id"),
    quantity: int = typer.Option(..., "--quantity", "-q", help="Credits to buy"),
    buyer: str = typer.Option(..., "--buyer", help="Buyer profile id"),
):
    """Buy credits with the configured signer wallet"""
    try:
        receipt = get_platform().settlement.purchase(project_id, quantity, buyer)
    except CarbonChainException as e:
        fail("purchasing credits", e)

    lines = (
        f"[green]✅ Purchased {receipt.quantity} credits[/green]\n\n"
        f"Paid: [yellow]{format(receipt.total_native, 'f')} MATIC[/yellow] "
        f"(${receipt.total_amount:.2f})\n"
        f"TX: [cyan]{receipt.transaction_hash}[/cyan]\n"
        f"Explorer: {BLOCK_EXPLORER_URL}tx/{receipt.transaction_hash}\n"
        f"Remaining: [cyan]{receipt.remaining_credits if receipt.remaining_credits is not None else '?'}[/cyan]"
    )
    if not (receipt.recorded and receipt.inventory_updated):
        lines += "\n\n[red]⚠️  Payment succeeded but local records were not fully updated[/red]"
    console.print(Panel.fit(lines, title="Purchase", border_style="green"))


# ============================================================================
# WALLET COMMANDS
# ============================================================================

wallet_app = typer.Typer(help="Wallet commands")
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("portfolio")
def wallet_portfolio(buyer: str = typer.Option(..., "--buyer", help="Buyer profile id")):
    """Show a buyer's purchased credits"""
    try:
        summary = get_platform().wallets.portfolio(buyer)
    except CarbonChainException as e:
        fail("loading portfolio", e)

    table = Table(title=f"Portfolio - {summary.transaction_count} purchases")
    table.add_column("Project")
    table.add_column("Tons", justify="right", style="green")
    table.add_column("USD", justify="right", style="yellow")
    table.add_column("TX", style="cyan")

    for entry in summary.transactions:
        table.add_row(
            entry.project_title or entry.project_id or "-",
            str(entry.amount_tons),
            f"{entry.total_amount:.2f}",
            format_hash(entry.transaction_hash) if entry.transaction_hash else "-",
        )
    table.add_row("[bold]Total[/bold]", f"[bold]{summary.total_tokens}[/bold]",
                  f"[bold]{summary.total_value:.2f}[/bold]", "")

    console.print(table)


@wallet_app.command("balance")
def wallet_balance(address: str = typer.Argument(..., help="EVM address")):
    """Show CCT balance of an address"""
    try:
        balances = get_platform().wallets.token_balances(address)
    except CarbonChainException as e:
        fail("querying balance", e)

    table = Table(title=f"Balance - {format_address(address)}")
    table.add_column("Token", style="cyan")
    table.add_column("Balance", justify="right", style="green")
    table.add_column("Value (USD)", justify="right", style="yellow")

    for balance in balances:
        table.add_row(balance["symbol"], str(balance["balance"]), f"{balance['value']:.2f}")

    console.print(table)


@wallet_app.command("history")
def wallet_history(address: str = typer.Argument(..., help="EVM address")):
    """Show latest native transactions"""
    try:
        history = get_platform().wallets.transaction_history(address)
    except CarbonChainException as e:
        fail("loading history", e)

    if not history:
        console.print("[yellow]No transactions found[/yellow]")
        return

    table = Table(title=f"History - {format_address(address)}")
    table.add_column("Hash", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Status")
    table.add_column("Time")

    for tx in history:
        style = "green" if tx["status"] == "confirmed" else "red"
        table.add_row(format_hash(tx["hash"]), f"{tx['value']} {tx['token']}",
                      f"[{style}]{tx['status']}[/{style}]", tx["timestamp"])

    console.print(table)


# ============================================================================
# CHAIN COMMANDS
# ============================================================================

chain_app = typer.Typer(help="Credit contract queries")
app.add_typer(chain_app, name="chain")


@chain_app.command("token")
def chain_token(token_id: str = typer.Argument(..., help="Token id")):
    """Show on-chain state of a credit token"""
    contract = get_platform().contract
    try:
        owner = contract.owner_of(token_id)
        uri = contract.token_uri(token_id)
    except CarbonChainException as e:
        fail("querying token", e)

    table = Table(title=f"Token #{token_id}", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Owner", owner)
    table.add_row("Metadata", uri)
    table.add_row("Listed", "yes" if contract.is_listed(token_id) else "no")
    table.add_row("Price", f"{contract.get_listing_price(token_id)} MATIC")
    table.add_row("Retired", "yes" if contract.is_retired(token_id) else "no")

    console.print(table)


@chain_app.command("verifier")
def chain_verifier(address: str = typer.Argument(VERIFIER_ADDRESS, help="EVM address (default: platform verifier)")):
    """Check whether an address is an authorized verifier"""
    if get_platform().contract.is_verifier(address):
        console.print(f"[green]✅ {address} is a verifier[/green]")
    else:
        console.print(f"[yellow]{address} is not a verifier[/yellow]")


# ============================================================================
# MONITORING COMMANDS
# ============================================================================

monitor_app = typer.Typer(help="MRV monitoring commands")
app.add_typer(monitor_app, name="monitor")


@monitor_app.command("alerts")
def monitor_alerts(project_id: Optional[str] = typer.Option(None, "--project", help="Project id")):
    """Show active monitoring alerts"""
    alerts = asyncio.run(get_platform().monitoring.get_active_alerts(project_id))

    table = Table(title="Active Alerts")
    table.add_column("Severity")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Detected")

    severity_styles = {"low": "green", "medium": "yellow", "high": "red", "critical": "bold red"}
    for alert in alerts:
        style = severity_styles.get(alert["severity"], "white")
        table.add_row(f"[{style}]{alert['severity']}[/{style}]", alert["title"],
                      alert["status"], alert["detectedAt"])

    console.print(table)


@monitor_app.command("analysis")
def monitor_analysis(project_id: str = typer.Argument(..., help="Project id")):
    """Run GIS analysis for a project"""
    analysis = asyncio.run(get_platform().monitoring.perform_gis_analysis(project_id))

    table = Table(title=f"GIS Analysis - {project_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for key, value in analysis["metrics"].items():
        table.add_row(key, str(value))

    console.print(table)


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose output"
    )
):
    """
    CarbonChain - Carbon Credit Platform CLI

    Gestisci progetti, emissione crediti e marketplace.
    """
    state.verbose = verbose
    if verbose:
        console.print("[dim]Verbose mode enabled[/dim]")


if __name__ == "__main__":
    app()


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "app",
]
