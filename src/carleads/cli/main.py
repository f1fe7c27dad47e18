"""
CarLeads CLI

Command-line interface for the CarLeads dealer routing service.
"""

import json
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from ..config import settings, configure_logging

# Fix Windows console encoding
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
from ..db import get_repository
from ..errors import (
    AssignmentNotFound,
    InvalidAssignmentTransition,
    LeadValidationError,
    NoDealerAvailable,
    TransactionFailure,
)
from ..integrations import get_gateway
from ..models import AssignedBy, AssignmentStatus, Dealer, LeadStatus, Specialty
from ..routing import DealerMatcher
from ..services import LeadService

app = typer.Typer(
    name="carleads",
    help="CarLeads: buyer lead scoring and dealer routing",
    add_completion=False,
)
console = Console()


@app.callback()
def _setup(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    configure_logging(log_level)


# =============================================================================
# Setup Commands
# =============================================================================

@app.command()
def init():
    """
    Initialize the database.

    Run this once to set up the system before first use.
    """
    console.print("[cyan]Initializing CarLeads...[/cyan]")

    get_repository()
    console.print("[green]Database initialized.[/green]")

    console.print(Panel.fit(
        "[bold green]CarLeads is ready![/bold green]\n\n"
        "Next steps:\n"
        "1. Run [cyan]carleads add-dealer[/cyan] to register dealers\n"
        "2. Run [cyan]carleads submit[/cyan] to route a lead\n"
        "3. Run [cyan]carleads stats[/cyan] to see statistics",
        title="Setup Complete",
    ))


@app.command()
def version():
    """Show version information."""
    console.print(Panel(
        f"[bold]{settings.APP_NAME}[/bold] v{settings.APP_VERSION}\n"
        "Buyer lead scoring and dealer routing",
        title="Version",
    ))


# =============================================================================
# Dealer Commands
# =============================================================================

@app.command()
def add_dealer(
    name: str = typer.Argument(..., help="Dealer name"),
    capacity: int = typer.Option(10, "--capacity", "-c", min=0, help="Maximum open leads"),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher is routed first"),
    specialty: List[Specialty] = typer.Option([], "--specialty", "-s", help="Repeatable"),
    email: Optional[str] = typer.Option(None, "--email", help="Contact email"),
    phone: Optional[str] = typer.Option(None, "--phone", help="Contact phone for notifications"),
    inactive: bool = typer.Option(False, "--inactive", help="Register without routing to it"),
):
    """
    Register a dealer.

    Examples:
        carleads add-dealer "Volt Motors" --capacity 5 -s electric -s luxury
        carleads add-dealer "Budget Autos" --priority 2
    """
    repo = get_repository()
    dealer = repo.save_dealer(Dealer(
        name=name,
        email=email,
        phone=phone,
        capacity=capacity,
        priority=priority,
        specialties=specialty,
        active=not inactive,
    ))
    console.print(f"[green]Dealer created:[/green] {dealer.name} ({dealer.id})")


@app.command()
def dealers(
    active_only: bool = typer.Option(False, "--active", "-a", help="Only active dealers"),
):
    """List dealers with their capacity and load."""
    repo = get_repository()
    dealer_list = repo.list_dealers(active_only=active_only)

    if not dealer_list:
        console.print("[yellow]No dealers found.[/yellow]")
        return

    table = Table(title=f"Dealers ({len(dealer_list)} found)")
    table.add_column("ID", style="dim", width=10)
    table.add_column("Name", style="white", width=25)
    table.add_column("Priority", width=8)
    table.add_column("Load", width=8)
    table.add_column("Specialties", width=25)
    table.add_column("Active", width=6)

    for dealer in dealer_list:
        load_color = "green" if dealer.has_capacity else "red"
        table.add_row(
            dealer.id[:8],
            dealer.name[:25],
            str(dealer.priority),
            f"[{load_color}]{dealer.current_load}/{dealer.capacity}[/{load_color}]",
            ", ".join(str(s) for s in dealer.specialties) or "-",
            "[green]Yes[/green]" if dealer.active else "[dim]No[/dim]",
        )

    console.print(table)


# =============================================================================
# Lead Commands
# =============================================================================

@app.command()
def submit(
    name: str = typer.Option(..., "--name", "-n", help="Buyer name"),
    email: str = typer.Option(..., "--email", "-e", help="Buyer email"),
    phone: str = typer.Option(..., "--phone", help="Buyer phone"),
    vehicle: Optional[str] = typer.Option(None, "--vehicle", "-v", help="Vehicle interest"),
    budget: Optional[str] = typer.Option(None, "--budget", "-b", help="Budget, free text"),
    timeline: Optional[str] = typer.Option(None, "--timeline", "-t", help="Purchase timeline"),
    contact: str = typer.Option("email", "--contact", help="email, phone or sms"),
    source: str = typer.Option("website", "--source", help="website, ad, referral or chat"),
):
    """
    Submit a buyer lead: score it, store it and route it to a dealer.

    Examples:
        carleads submit -n "Jane Roe" -e jane@example.com --phone 5551234567 -v "Tesla Model 3"
    """
    repo = get_repository()
    service = LeadService(repo, gateway=get_gateway())

    try:
        result = service.submit({
            "name": name,
            "email": email,
            "phone": phone,
            "vehicle_interest": vehicle,
            "budget": budget,
            "timeline": timeline,
            "preferred_contact": contact,
            "source": source,
        })
    except LeadValidationError as e:
        console.print("[red]Lead rejected:[/red]")
        for detail in e.details:
            field = ".".join(str(part) for part in detail["loc"])
            console.print(f"  - {field}: {detail['msg']}")
        raise typer.Exit(1)

    breakdown = result.breakdown
    table = Table(title="Score Breakdown")
    table.add_column("Factor", style="cyan")
    table.add_column("Points", style="green")
    for factor, points in breakdown.to_dict().items():
        table.add_row(factor.title(), str(points))
    console.print(table)

    if result.assigned:
        routed = f"[green]{result.dealer.name}[/green] (assignment {result.assignment.id[:8]})"
    else:
        routed = f"[yellow]Unassigned[/yellow] - {result.routing_error}"

    console.print(Panel.fit(
        f"Lead: {result.lead.id}\n"
        f"Score: [bold]{result.lead.score}[/bold]\n"
        f"Status: {result.lead.status}\n"
        f"Dealer: {routed}",
        title="Lead Submitted",
    ))

    for error in result.notification_errors:
        console.print(f"[yellow]Notification failed: {error}[/yellow]")


@app.command()
def leads(
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum leads to show"),
    status: Optional[LeadStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    dealer_id: Optional[str] = typer.Option(None, "--dealer", "-d", help="Filter by dealer ID"),
):
    """
    List leads from the database.

    Shows leads newest first with score and assigned dealer.
    """
    repo = get_repository()
    leads_list = repo.list_leads(status=status, dealer_id=dealer_id, limit=limit)

    if not leads_list:
        console.print("[yellow]No leads found.[/yellow]")
        return

    table = Table(title=f"Leads ({len(leads_list)} found)")
    table.add_column("ID", style="dim", width=10)
    table.add_column("Score", style="cyan", width=6)
    table.add_column("Name", style="white", width=20)
    table.add_column("Vehicle", width=20)
    table.add_column("Status", width=10)
    table.add_column("Dealer", style="dim", width=10)

    for lead in leads_list:
        score_color = "green" if lead.score >= 70 else "yellow" if lead.score >= 40 else "red"
        table.add_row(
            lead.id[:8],
            f"[{score_color}]{lead.score}[/{score_color}]",
            (lead.name or "?")[:20],
            (lead.vehicle_interest or "-")[:20],
            lead.status,
            lead.dealer_id[:8] if lead.dealer_id else "-",
        )

    console.print(table)


@app.command()
def candidates(
    lead_id: str = typer.Argument(..., help="Lead ID"),
):
    """Show the dealers the matcher would consider for a lead."""
    repo = get_repository()
    lead = repo.get_lead(lead_id)
    if lead is None:
        console.print(f"[red]Lead not found: {lead_id}[/red]")
        raise typer.Exit(1)

    matches = DealerMatcher(repo).find_candidates(lead)
    if not matches:
        console.print("[yellow]No dealer with spare capacity matches this lead.[/yellow]")
        return

    table = Table(title=f"Candidates for {lead.vehicle_interest or 'any vehicle'}")
    table.add_column("Rank", width=4)
    table.add_column("Dealer", width=25)
    table.add_column("Priority", width=8)
    table.add_column("Available", width=9)
    table.add_column("Specialties", width=25)

    for i, dealer in enumerate(matches, 1):
        table.add_row(
            f"#{i}",
            dealer.name[:25],
            str(dealer.priority),
            str(dealer.available_capacity),
            ", ".join(str(s) for s in dealer.specialties) or "-",
        )

    console.print(table)


# =============================================================================
# Assignment Commands
# =============================================================================

@app.command()
def assign(
    lead_id: str = typer.Argument(..., help="Lead ID"),
    dealer_id: Optional[str] = typer.Argument(None, help="Dealer ID; routed automatically if omitted"),
):
    """
    Assign a lead to a dealer.

    Without a dealer ID the lead goes through the routing chain again.
    """
    repo = get_repository()

    try:
        if dealer_id:
            assignment = repo.assign_lead(lead_id, dealer_id, AssignedBy.ADMIN)
        else:
            _, assignment = LeadService(repo).reroute(lead_id)
    except (TransactionFailure, NoDealerAvailable) as e:
        console.print(f"[red]Assignment failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"Assignment: {assignment.id}\n"
        f"Lead: {assignment.lead_id}\n"
        f"Dealer: {assignment.dealer_id}\n"
        f"By: {assignment.assigned_by}",
        title="Lead Assigned",
    ))


@app.command()
def assignment_status(
    assignment_id: str = typer.Argument(..., help="Assignment ID"),
    status: AssignmentStatus = typer.Argument(..., help="accepted, rejected or closed"),
):
    """Accept, reject or close an assignment."""
    repo = get_repository()

    try:
        assignment = repo.update_assignment_status(assignment_id, status)
    except AssignmentNotFound:
        console.print(f"[red]Assignment not found: {assignment_id}[/red]")
        raise typer.Exit(1)
    except InvalidAssignmentTransition as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Assignment {assignment.id[:8]} is now {assignment.status}.[/green]")


# =============================================================================
# Stats Commands
# =============================================================================

@app.command()
def stats(
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """
    Show database statistics.

    Displays counts of leads, dealers and assignments in the system.
    """
    repo = get_repository()
    db_stats = repo.get_stats()

    if as_json:
        console.print_json(json.dumps(db_stats))
        return

    console.print(Panel.fit(
        f"[bold]{settings.APP_NAME} Statistics[/bold]",
        title="Dashboard",
    ))

    table = Table(title="Leads")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green")
    for key, value in db_stats["leads"].items():
        table.add_row(key.title(), str(value))
    console.print(table)

    table = Table(title="Dealers")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in db_stats["dealers"].items():
        table.add_row(key.replace("_", " ").title(), str(value))
    console.print(table)

    table = Table(title="Assignments")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green")
    for key, value in db_stats["assignments"].items():
        table.add_row(key.title(), str(value))
    console.print(table)


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload on code changes"),
):
    """
    Start the CarLeads API server.

    Swagger UI available at: http://localhost:8000/docs
    OpenAPI Schema: http://localhost:8000/openapi.json

    Examples:
        carleads serve
        carleads serve --port 3000
        carleads serve --reload (for development)
    """
    import uvicorn

    console.print(Panel.fit(
        "[bold green]CarLeads API Server[/bold green]\n\n"
        f"Starting server on http://{host}:{port}\n\n"
        "[cyan]Endpoints:[/cyan]\n"
        "  • Swagger UI: /docs\n"
        "  • Submit lead: POST /v1/leads\n"
        "  • Dealers: GET /v1/dealers\n"
        "  • Assignment status: POST /v1/assignments/{id}/status\n"
        "  • Gateway webhook: POST /v1/webhooks/gateway\n\n"
        "[dim]Press Ctrl+C to stop[/dim]",
        title="Server Mode",
    ))

    try:
        uvicorn.run(
            "carleads.server:app",
            host=host,
            port=port,
            reload=reload,
            log_level=settings.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
