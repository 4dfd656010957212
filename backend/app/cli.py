# Overview: Flask CLI command groups for bootstrap, master data and scheduled notifications.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--warehouse "Main Warehouse"]
#   Idempotent bootstrap: creates tables and the default WAREHOUSE location.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Locations:
# - python -m flask locations list [--type SITE]
# - python -m flask locations create --name "Site 1" --type SITE [--address "..."]
# - python -m flask locations assign --username alice --location-id 2
#   Bind a supervisor (identity-service username) to a SITE.
#
# Stock:
# - python -m flask stock set-initial --location-id 1 --product-id 5 --quantity 200
#   Overwrite one ledger row (opening balance).
# - python -m flask stock set-limit --location-id 2 --product-id 5 --limit 40
#   Set (or with --clear remove) a site's replenishment limit.
#
# Notifications (run from cron):
# - python -m flask notify overdue-pos [--date 2026-01-31]
#   Send PO_OVERDUE for SENT / PARTIALLY_RECEIVED orders past their delivery date.
# - python -m flask notify low-stock [--warehouse-id 1]
#   Send LOW_STOCK for warehouse rows at or below zero.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Location, LOCATION_TYPES, LOCATION_TYPE_WAREHOUSE
from .services import location_service, notification_service, purchase_order_service, stock_service
from .services.concurrency import commit_session
from .time_utils import utcnow
from .validation import ServiceError, parse_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--warehouse', 'warehouse_name', default='Main Warehouse', help='Name of the default warehouse')
@with_appcontext
def init_system(warehouse_name):
    """
    Initialize the database and a default warehouse.

    Creates missing tables and, when no WAREHOUSE location exists yet, a
    warehouse named --warehouse. Safe to run repeatedly.
    """
    click.echo("START Initializing MintStock...")

    db.create_all()
    click.echo("PASS Tables ready")

    warehouse = db.session.query(Location).filter_by(type=LOCATION_TYPE_WAREHOUSE).first()
    if warehouse:
        click.echo(f"PASS Using existing warehouse: {warehouse.name} (ID: {warehouse.id})")
    else:
        warehouse = Location(name=warehouse_name, type=LOCATION_TYPE_WAREHOUSE, is_active=True)
        db.session.add(warehouse)
        commit_session()
        click.echo(f"PASS Created warehouse: {warehouse.name} (ID: {warehouse.id})")

    click.echo("DONE Initialization complete.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('locations')
def locations_group():
    """Location and supervisor assignment commands."""


@locations_group.command('list')
@click.option('--type', 'location_type', type=click.Choice(sorted(LOCATION_TYPES)), help='Filter by type')
@with_appcontext
def list_locations(location_type):
    """List locations with their supervisors."""
    locations = location_service.list_locations(location_type=location_type)
    if not locations:
        click.echo("No locations found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Type':<10} {'Active':<8} {'Supervisors'}")
    click.echo("=" * 80)
    for loc in locations:
        supervisors = ", ".join(
            a.supervisor_username for a in location_service.list_supervisor_assignments(location_id=loc.id)
        )
        active = "yes" if loc.is_active else "no"
        click.echo(f"{loc.id:<5} {loc.name:<30} {loc.type:<10} {active:<8} {supervisors or '-'}")
    click.echo("=" * 80 + "\n")


@locations_group.command('create')
@click.option('--name', required=True, help='Location name')
@click.option('--type', 'location_type', type=click.Choice(sorted(LOCATION_TYPES)), required=True)
@click.option('--address', default=None, help='Street address')
@with_appcontext
def create_location_cli(name, location_type, address):
    """Create a WAREHOUSE or SITE location."""
    try:
        location = location_service.create_location(
            {"name": name, "type": location_type, "address": address}
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {location.type} location: {location.name} (ID: {location.id})")


@locations_group.command('assign')
@click.option('--username', required=True, help='Supervisor username')
@click.option('--location-id', type=int, required=True, help='SITE location ID')
@with_appcontext
def assign_supervisor_cli(username, location_id):
    """Bind a supervisor to a SITE location."""
    try:
        location_service.assign_supervisor(username, location_id)
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Assigned {username} to location {location_id}")


@click.group('stock')
def stock_group():
    """Stock ledger commands."""


def _report_bulk(results):
    for result in results:
        if result.get("success"):
            row = result["stock_item"]
            click.echo(
                f"PASS location={row['location_id']} product={row['product_id']} "
                f"quantity={row['quantity']} limit={row['limit_qty']}"
            )
        else:
            raise click.ClickException(result.get("error") or "Failed")


@stock_group.command('set-initial')
@click.option('--location-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@with_appcontext
def set_initial_cli(location_id, product_id, quantity):
    """Overwrite one ledger row with an opening balance."""
    try:
        results = stock_service.set_initial_stock(
            [{"location_id": location_id, "product_id": product_id, "quantity": quantity}]
        )
        _report_bulk(results)
        commit_session()
    except (ServiceError, click.ClickException) as e:
        db.session.rollback()
        raise click.ClickException(str(e))


@stock_group.command('set-limit')
@click.option('--location-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--limit', 'limit_qty', type=int, default=None)
@click.option('--clear', is_flag=True, help='Remove the limit')
@with_appcontext
def set_limit_cli(location_id, product_id, limit_qty, clear):
    """Set or clear a SITE replenishment limit."""
    if not clear and limit_qty is None:
        raise click.UsageError("Provide --limit or --clear")
    try:
        results = stock_service.set_site_limits(
            [{"location_id": location_id, "product_id": product_id, "limit_qty": None if clear else limit_qty}]
        )
        _report_bulk(results)
        commit_session()
    except (ServiceError, click.ClickException) as e:
        db.session.rollback()
        raise click.ClickException(str(e))


@click.group('notify')
def notify_group():
    """Scheduled notification commands."""


@notify_group.command('overdue-pos')
@click.option('--date', 'as_of', default=None, help='Treat this ISO date as today')
@with_appcontext
def notify_overdue_pos(as_of):
    """Send PO_OVERDUE for open orders past their delivery date."""
    try:
        today = parse_date(as_of, "date") or utcnow().date()
    except ServiceError as e:
        raise click.ClickException(str(e))

    orders = purchase_order_service.find_overdue_purchase_orders(today)
    for po in orders:
        notification_service.notify_po_overdue(po, today)
        click.echo(f"SENT {po.po_number} (due {po.delivery_date.isoformat()})")
    click.echo(f"DONE {len(orders)} overdue purchase order(s)")


@notify_group.command('low-stock')
@click.option('--warehouse-id', type=int, default=None)
@with_appcontext
def notify_low_stock_cli(warehouse_id):
    """Send LOW_STOCK for warehouse rows at or below zero."""
    try:
        rows = stock_service.low_stock(warehouse_id=warehouse_id)
    except ServiceError as e:
        raise click.ClickException(str(e))
    if rows:
        notification_service.notify_low_stock(rows)
    click.echo(f"DONE {len(rows)} low-stock row(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(notify_group)
