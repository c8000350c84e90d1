# Overview: Flask CLI command groups for users, sweeps and CSV import/export.

# backend/numberflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to numberflow (PowerShell: $env:FLASK_APP="numberflow").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask db upgrade
#   Create or migrate the documents table.
#
# Users:
# - python -m flask users create --uid admin --name "Admin" --email admin@numberflow.local --role admin
#   Create a user document (keyed by uid).
# - python -m flask users list
#   List users with their roles.
#
# Sweeps:
# - python -m flask sweeps run [--only rts|safe-custody|reminders]
#   Run the consistency sweeps once as the system identity.
#
# Numbers:
# - python -m flask numbers import numbers.csv --as admin [--report failures.csv]
#   Validate and import a CSV; failed rows can be written to a report.
# - python -m flask numbers export numbers.csv
#   Export the whole inventory using the import headers.

import click
from flask import current_app
from flask.cli import with_appcontext

from .records import NUMBERS, ROLES, SYSTEM_IDENTITY, USERS
from .services import import_service, sweep_service, user_service
from .services.session_service import open_session
from .validation import ConflictError, ValidationError


@click.group('users')
def users_group():
    """User documents and roles."""


@users_group.command('create')
@click.option('--uid', required=True, help='User id (document id in users)')
@click.option('--name', 'display_name', required=True, help='Display name; also the assignment name')
@click.option('--email', default=None, help='Email address')
@click.option('--role', type=click.Choice(ROLES), default='employee', show_default=True)
@with_appcontext
def create_user_command(uid, display_name, email, role):
    """Create a user document."""
    try:
        identity = user_service.create_user(
            current_app.extensions["document_store"], uid, display_name, email, role
        )
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {identity.uid} ({identity.display_name}) with role '{identity.role}'")


@users_group.command('list')
@with_appcontext
def list_users_command():
    """List users with roles."""
    users = current_app.extensions["document_store"].fetch(USERS)
    if not users:
        click.echo("No users found.")
        return
    for user in sorted(users, key=lambda u: u["id"]):
        click.echo(f"{user['id']:<20} {user.get('display_name') or '':<24} {user.get('role')}")


@click.group('sweeps')
def sweeps_group():
    """Consistency sweeps."""


@sweeps_group.command('run')
@click.option('--only', type=click.Choice(sweep_service.SWEEP_NAMES), default=None, help='Run a single sweep')
@with_appcontext
def run_sweeps_command(only):
    """Run the sweeps once."""
    results = sweep_service.run_sweeps(current_app._get_current_object(), only=only)
    for name, result in results.items():
        click.echo(f"{name}: {result.processed} updated")


@click.group('numbers')
def numbers_group():
    """Inventory import and export."""


@numbers_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--as', 'uid', required=True, help='uid of the user the import is attributed to')
@click.option('--report', 'report_path', type=click.Path(dir_okay=False), default=None,
              help='Write failed rows with ReasonForFailure to this CSV')
@with_appcontext
def import_numbers_command(path, uid, report_path):
    """Validate and import numbers from a CSV file."""
    identity = user_service.get_identity(current_app.extensions["document_store"], uid)
    if identity is None:
        raise click.ClickException(f"Unknown user '{uid}'")

    try:
        with open(path, newline='', encoding='utf-8-sig') as fh:
            rows = import_service.read_import_csv(fh)
    except ValidationError as e:
        raise click.ClickException(str(e))

    with open_session(identity) as engine:
        result = engine.bulk_add_numbers(rows)

    click.echo(f"Accepted: {len(result['valid_records'])}")
    click.echo(f"Failed:   {len(result['failed_records'])}")
    if report_path and result['failed_records']:
        headers, report_rows = import_service.failure_report_rows(result['failed_records'])
        with open(report_path, 'w', newline='', encoding='utf-8') as fh:
            import_service.write_csv(fh, headers, report_rows)
        click.echo(f"Failure report written to {report_path}")


@numbers_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False))
@with_appcontext
def export_numbers_command(path):
    """Export every inventory number to CSV."""
    with open_session(SYSTEM_IDENTITY) as engine:
        rows = import_service.export_rows(engine.state.snapshot(NUMBERS))
    with open(path, 'w', newline='', encoding='utf-8') as fh:
        import_service.write_csv(fh, import_service.EXPORT_HEADERS, rows)
    click.echo(f"Exported {len(rows)} numbers to {path}")


def register_commands(app):
    app.cli.add_command(users_group)
    app.cli.add_command(sweeps_group)
    app.cli.add_command(numbers_group)
