"""
CLI interface for AquaFlow.

Provides command-line access to billing, invoices, alerts and AI insights.
"""

import base64
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from aquaflow.config.loader import DEFAULT_APP_CONFIG, AppConfig, load_app_config
from aquaflow.core.alerts import AlertFilter
from aquaflow.core.billing import InvalidReadingError, compute_bill, parse_meter_value
from aquaflow.core.customers import (
    CustomerNotFoundError,
    ReadingNotFoundError,
    get_customer,
    list_invoices,
    new_customer,
    search_customers,
)
from aquaflow.core.state import (
    AppState,
    apply_insight,
    current_alerts,
    dismiss as dismiss_alert,
    pay_reading,
    register_customer,
    select_customer,
    set_alert_filter,
    stage_pending_reading,
    submit_reading,
)
from aquaflow.core.summary import summarize
from aquaflow.sdk.insights_client import WaterInsightsClient
from aquaflow.storage.db import DEFAULT_DB_PATH
from aquaflow.storage.models import AlertLevel, ReadingStatus
from aquaflow.storage.repository import CUSTOMERS_KEY, AppRepository, get_repository

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

FILTER_CHOICES = {
    "all": AlertFilter.ALL,
    "overdue": AlertFilter.OVERDUE_BILL,
    "leak": AlertFilter.CRITICAL_LEAK,
}

_LEVEL_STYLES = {
    AlertLevel.HIGH: ("red", "Critical Leak Detected"),
    AlertLevel.MEDIUM: ("yellow", "Potential Irregularity"),
    AlertLevel.LOW: ("green", "System Healthy"),
}


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _repository(ctx: typer.Context) -> AppRepository:
    repository = get_repository(ctx.obj["db_path"])
    repository.initialize_schema()
    return repository


def _config(ctx: typer.Context) -> AppConfig:
    config_path = ctx.obj.get("config_path")
    if config_path is None:
        return DEFAULT_APP_CONFIG
    return load_app_config(config_path)


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the SQLite database"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML tariff configuration"
    ),
):
    """AquaFlow water billing CLI."""
    ctx.obj = {"db_path": db, "config_path": config}
    if ctx.invoked_subcommand is None:
        console.print("AquaFlow - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the database and store the demo customers."""
    try:
        repository = _repository(ctx)
        if repository.get_value(CUSTOMERS_KEY) is None:
            repository.save_state(repository.load_state())
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def customers(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(
        None,
        "--search",
        "-s",
        help="Filter by name or meter number"
    ),
):
    """List customers."""
    state = _repository(ctx).load_state()
    matches = search_customers(state.customers, search or "")

    if not matches:
        console.print("[dim]No customers found.[/]")
        return

    table = Table(title="Customers")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Meter")
    table.add_column("Address")
    table.add_column("Last reading", justify="right")
    for customer in matches:
        table.add_row(
            customer.id,
            customer.name,
            customer.meter_number,
            customer.address,
            f"{customer.last_reading:g}",
        )
    console.print(table)


@app.command("add-customer")
def add_customer(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Customer name"),
    meter: str = typer.Option(..., "--meter", "-m", help="Meter number"),
    address: str = typer.Option("", "--address", "-a", help="Service address"),
    last_reading: float = typer.Option(0.0, "--last-reading", "-r", help="Current meter value"),
):
    """Register a new customer."""
    repository = _repository(ctx)
    state = repository.load_state()
    try:
        customer = new_customer(name, address, meter, last_reading)
        state = register_customer(state, customer)
    except ValueError as e:
        _fail(str(e))

    repository.save_state(state)
    console.print(f"[green]✓[/] Added customer {customer.name} ({customer.id})")


@app.command("record-reading")
def record_reading(
    ctx: typer.Context,
    customer_id: str = typer.Argument(..., help="Customer ID"),
    value: Optional[str] = typer.Argument(
        None,
        help="New meter value (defaults to the value staged by `ocr`)"
    ),
):
    """Record a meter reading and generate its invoice."""
    repository = _repository(ctx)
    state = repository.load_state()

    if value is None:
        pending = state.pending_reading
        if pending is None or pending.customer_id != customer_id:
            _fail(f"No meter value given and none staged for customer {customer_id}")
        value = pending.value

    try:
        config = _config(ctx)
        new_value = parse_meter_value(value)
        state, reading = submit_reading(state, customer_id, new_value, config.tariff)
    except CustomerNotFoundError:
        _fail(f"Customer not found: {customer_id}")
    except (InvalidReadingError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        _fail(str(e))

    repository.save_state(state)
    console.print("[green]✓[/] Reading recorded successfully")
    console.print(f"Invoice #{reading.id.upper()}")
    console.print(f"Consumption: {reading.consumption:g} m3")
    console.print(f"Amount due: {_format_currency(reading.amount)}")


@app.command()
def invoices(ctx: typer.Context):
    """List all invoices, newest first."""
    state = _repository(ctx).load_state()
    rows = list_invoices(state.customers)

    if not rows:
        console.print("[dim]No invoices yet.[/]")
        return

    table = Table(title="Invoices")
    table.add_column("Invoice")
    table.add_column("Customer")
    table.add_column("Meter")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    for invoice in rows:
        reading = invoice.reading
        style = "green" if reading.status == ReadingStatus.PAID else "yellow"
        table.add_row(
            reading.id.upper(),
            invoice.customer_name,
            invoice.meter_number,
            reading.date.strftime("%b %d, %Y"),
            _format_currency(reading.amount),
            f"[{style}]{reading.status.value}[/]",
        )
    console.print(table)


@app.command()
def pay(
    ctx: typer.Context,
    customer_id: str = typer.Argument(..., help="Customer ID"),
    reading_id: str = typer.Argument(..., help="Reading (invoice) ID"),
):
    """Mark an invoice as paid."""
    repository = _repository(ctx)
    state = repository.load_state()
    try:
        state = pay_reading(state, customer_id, reading_id)
    except CustomerNotFoundError:
        _fail(f"Customer not found: {customer_id}")
    except ReadingNotFoundError:
        _fail(f"Invoice {reading_id} not found for customer {customer_id}")

    repository.save_state(state)
    console.print(f"[green]✓[/] Invoice {reading_id.upper()} marked as paid")


@app.command()
def summary(ctx: typer.Context):
    """Show revenue, outstanding balance and active meters."""
    state = _repository(ctx).load_state()
    result = summarize(state.customers)

    console.print("\n[bold]AquaFlow Summary[/bold]")
    console.print("-" * 40)
    console.print(f"Total revenue: {_format_currency(result.total_revenue)}")
    console.print(f"Unpaid: {_format_currency(result.total_unpaid)}")
    console.print(f"Active meters: {result.active_meters}")


@app.command()
def alerts(
    ctx: typer.Context,
    filter_name: Optional[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Alert filter: all, overdue or leak"
    ),
):
    """Show active alerts."""
    repository = _repository(ctx)
    state = repository.load_state()

    if filter_name is not None:
        alert_filter = FILTER_CHOICES.get(filter_name.lower())
        if alert_filter is None:
            _fail(f"--filter must be one of: {sorted(FILTER_CHOICES)}")
        state = set_alert_filter(state, alert_filter)
        repository.save_state(state)

    active = current_alerts(state)
    console.print(f"\n[bold]Priority Alerts[/bold] ({state.alert_filter.value})")
    console.print("-" * 40)

    if not active:
        console.print("[dim]No active alerts for this filter.[/]")
        return

    for alert in active:
        console.print(f"[red]●[/] [bold]{alert.customer_name}[/] [dim]{alert.type.value}[/]")
        console.print(f"  {alert.message}")
        console.print(f"  [dim]id: {alert.id}[/]")


@app.command()
def dismiss(
    ctx: typer.Context,
    alert_id: str = typer.Argument(..., help="Alert ID to dismiss"),
):
    """Dismiss an alert so it no longer appears."""
    repository = _repository(ctx)
    state = dismiss_alert(repository.load_state(), alert_id)
    repository.save_state(state)
    console.print(f"[green]✓[/] Dismissed {alert_id}")


@app.command()
def scan(
    ctx: typer.Context,
    customer_id: str = typer.Argument(..., help="Customer ID"),
):
    """Run an AI consumption analysis for a customer."""
    repository = _repository(ctx)
    state = repository.load_state()
    try:
        config = _config(ctx)
        state = select_customer(state, customer_id)
    except CustomerNotFoundError:
        _fail(f"Customer not found: {customer_id}")
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        _fail(str(e))

    client = WaterInsightsClient(model=config.insights.model)
    insight = client.get_water_insights(state.selected_customer)
    state = apply_insight(state, customer_id, insight.analysis, insight.alert_level)
    repository.save_state(state)

    style, label = _LEVEL_STYLES[insight.alert_level]
    console.print(f"\n[bold {style}]{label}[/]")
    console.print(insight.analysis)


@app.command()
def ocr(
    ctx: typer.Context,
    customer_id: str = typer.Argument(..., help="Customer ID"),
    image_path: Path = typer.Argument(..., help="Photo of the meter display"),
):
    """Extract a meter value from a photo and stage it for recording."""
    repository = _repository(ctx)
    state: AppState = repository.load_state()
    try:
        config = _config(ctx)
        get_customer(state.customers, customer_id)
        image_data = image_path.read_bytes()
    except CustomerNotFoundError:
        _fail(f"Customer not found: {customer_id}")
    except (ValueError, OSError, yaml.YAMLError) as e:
        _fail(str(e))

    mime_type = "image/png" if image_path.suffix.lower() == ".png" else "image/jpeg"
    client = WaterInsightsClient(model=config.insights.model)
    value = client.extract_meter_reading(
        base64.b64encode(image_data).decode("ascii"),
        mime_type=mime_type,
    )
    if value is None:
        _fail("Could not extract a clear reading. Please try again.")

    state = stage_pending_reading(state, customer_id, value)
    repository.save_state(state)
    console.print(f"[green]✓[/] Meter shows {value}")
    console.print(f"Run `aquaflow record-reading {customer_id}` to confirm it")


@app.command()
def bill(
    ctx: typer.Context,
    consumption: float = typer.Argument(..., help="Units consumed"),
):
    """Preview the invoice amount for a consumption."""
    try:
        config = _config(ctx)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        _fail(str(e))
    console.print(f"Amount due: {_format_currency(compute_bill(consumption, config.tariff))}")


if __name__ == "__main__":
    app()
