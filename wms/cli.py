# Overview: Flask CLI command groups for store bootstrap, backup and maintenance.

# wms/cli.py
# Commands Legend:
# - flask --app wms db init
#   Create tables and seed defaults if the store is empty (idempotent).
# - flask --app wms db migrate
#   Apply pending additive column migrations.
# - flask --app wms db reset --yes
#   Discard the snapshot and re-seed from defaults (deletes all data).
# - flask --app wms db export backup.json
#   Write every table to a JSON document.
# - flask --app wms db import backup.json --yes
#   Replace the whole store with a JSON document (validated first).
# - flask --app wms db reconcile
#   Check stock against the inventory ledger.
# - flask --app wms users list
# - flask --app wms users create --username bob --role employee
#   Prompts for the password if omitted.
# - flask --app wms currency refresh USD
#   Fetch a live rate and make USD the display currency.

import json

import click
from flask.cli import with_appcontext

from .services import auth_service, backup_service, ledger_service, schema_service, settings_service
from .services.concurrency import persist_snapshot
from .validation import ConflictError, ValidationError


@click.group('db')
def db_group():
    """Store bootstrap, migration and backup commands."""


@db_group.command('init')
@with_appcontext
def init_db():
    """Create the schema and seed defaults when the store is empty."""
    created = schema_service.ensure_schema()
    persist_snapshot()
    if created:
        click.echo("PASS Created and seeded a new store")
    else:
        click.echo("PASS Store already initialized; schema is up to date")


@db_group.command('migrate')
@with_appcontext
def migrate_db():
    """Apply additive column migrations (already-applied ones are skipped)."""
    applied = schema_service.run_migrations()
    persist_snapshot()
    if not applied:
        click.echo("PASS No pending migrations")
        return
    for name in applied:
        click.echo(f"PASS Applied {name}")


@db_group.command('reset')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@click.option('--demo/--no-demo', default=None, help='Seed sample products and contacts')
@with_appcontext
def reset_db(yes, demo):
    """
    DANGER: Discard every table and re-seed from defaults.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)
    backup_service.reset_database(seed_demo=demo)
    click.echo("PASS Store reset to defaults")


@db_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_db(path):
    """Write every table to a JSON document."""
    document = backup_service.export_data()
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(document, fh, indent=2, ensure_ascii=False)
    total = sum(len(rows) for rows in document.values())
    click.echo(f"PASS Exported {total} rows from {len(document)} tables to {path}")


@db_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_db(path, yes):
    """
    DANGER: Replace the whole store with a JSON document.

    The document is validated before anything is touched; a failed import
    leaves the previous data in place.
    """
    if not yes:
        click.confirm("WARN This will REPLACE ALL DATA. Are you sure?", abort=True)
    with open(path, "r", encoding="utf-8") as fh:
        text = fh.read()
    try:
        counts = backup_service.import_data(text)
    except backup_service.ImportValidationError as exc:
        raise click.ClickException(f"Import rejected: {exc}")
    for table, count in counts.items():
        click.echo(f"  {table:<24} {count}")
    click.echo("PASS Import complete")


@db_group.command('reconcile')
@with_appcontext
def reconcile_db():
    """Report products whose stock the inventory ledger does not explain."""
    mismatches = ledger_service.reconcile_stock()
    if not mismatches:
        click.echo("PASS Stock matches the inventory ledger")
        return
    for row in mismatches:
        click.echo(f"FAIL Product {row['product_id']}: stock {row['stock']} expected {row['expected']}")
    raise click.ClickException(f"{len(mismatches)} product(s) out of balance")


@click.group('users')
def users_group():
    """User account commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<30} {'Role':<10} {'Logged in'}")
    click.echo("=" * 80)
    for user in users:
        logged_in = "Yes" if user.is_logged_in else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {(user.name or ''):<30} {user.role:<10} {logged_in}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name')
@click.option('--role', type=click.Choice(sorted(auth_service.USER_ROLES)), default='employee', help='Role')
@with_appcontext
def create_user_cli(username, password, name, role):
    """Create a user (password hashed with bcrypt)."""
    try:
        user = auth_service.create_user(username, password, name=name, role=role)
    except (ValidationError, ConflictError) as exc:
        raise click.ClickException(str(exc))
    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


@click.group('currency')
def currency_group():
    """Display currency commands."""


@currency_group.command('refresh')
@click.argument('code')
@with_appcontext
def refresh_currency(code):
    """Fetch a live rate for CODE and make it the display currency."""
    try:
        config, warning = settings_service.refresh_exchange_rate(code)
    except ValidationError as exc:
        raise click.ClickException(str(exc))
    if warning:
        click.echo(f"WARN {warning}; keeping {config.display_currency} at {config.exchange_rate}")
        return
    click.echo(f"PASS 1 AED = {config.exchange_rate} {config.display_currency}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_group)
    app.cli.add_command(users_group)
    app.cli.add_command(currency_group)
