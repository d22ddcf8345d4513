# Overview: Flask CLI command groups for bootstrap, locations, and feed import.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Locations:
# - python -m flask locations list [--all]
#   List active locations (use --all to include inactive).
# - python -m flask locations create --name "East Warehouse" --city Austin --state TX
#   Create a stock-holding location.
#
# Inventory:
# - python -m flask inventory sync-shipstation [--sku ABC-123]
#   Import quantities from the ShipStation feed (whole feed or one SKU).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Location
from .validation import InventoryError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    click.echo("BUILD  Creating missing tables...")
    db.create_all()
    click.echo("PASS Database initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the movement ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('locations')
def locations_group():
    """Stock location commands."""


@locations_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive locations')
@with_appcontext
def list_locations(include_inactive):
    """List locations."""
    query = db.session.query(Location)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    locations = query.order_by(Location.name.asc()).all()

    if not locations:
        click.echo("No locations found.")
        return

    click.echo(f"\n{'ID':<6} {'Name':<30} {'City':<20} {'State':<8} {'Active':<6}")
    click.echo("-" * 74)
    for loc in locations:
        click.echo(
            f"{loc.id:<6} {loc.name:<30} {(loc.city or ''):<20} "
            f"{(loc.state or ''):<8} {'yes' if loc.is_active else 'no':<6}"
        )


@locations_group.command('create')
@click.option('--name', prompt=True, help='Location name (unique)')
@click.option('--city', default=None, help='City')
@click.option('--state', default=None, help='State / region code')
@with_appcontext
def create_location(name, city, state):
    """Create a location."""
    name = name.strip()
    if not name:
        raise click.ClickException("Location name cannot be blank")
    if db.session.query(Location).filter_by(name=name).first():
        raise click.ClickException(f"Location '{name}' already exists")

    location = Location(name=name, city=city, state=state, is_active=True)
    db.session.add(location)
    db.session.commit()
    click.echo(f"PASS Created location: {location.name} (ID: {location.id})")


@click.group('inventory')
def inventory_group():
    """Inventory ledger commands."""


@inventory_group.command('sync-shipstation')
@click.option('--sku', default=None, help='Sync a single ShipStation SKU')
@with_appcontext
def sync_shipstation(sku):
    """Import on-hand quantities from the ShipStation inventory feed."""
    import httpx
    from .services.feed_import_service import sync_feed_inventory, sync_feed_sku

    try:
        if sku:
            result = sync_feed_sku(sku)
            click.echo(f"PASS {result['sku']}: {result['quantity']} units at location {result['location_id']}")
            return
        result = sync_feed_inventory()
    except (InventoryError, httpx.HTTPError) as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS Synced {result.synced} of {result.total} items "
        f"({result.skipped} skipped, {result.errors} errors)"
    )
    for skipped_sku in result.skipped_skus:
        click.echo(f"  SKIP {skipped_sku}: no matching variant")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(inventory_group)
