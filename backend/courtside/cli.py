# Overview: Flask CLI command groups for bootstrap, shift handling, and ledger inspection.

# backend/courtside/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables and seed the payment settings row from config.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shifts:
# - python -m flask shifts current
#   Show the open shift and its running drawer balance.
# - python -m flask shifts open --staff-id 1 --opening 1000.00
#   Open the drawer with a float (amount in major units).
# - python -m flask shifts close --staff-id 1 --counted 1280.00
#   Close the open shift with the counted cash and print the variance.
# - python -m flask shifts report 12
#   Reconciliation report for a shift.
#
# Ledger:
# - python -m flask ledger list --shift-id 12 --limit 50
#   List ledger entries (newest first).

import click
from flask.cli import with_appcontext

from .extensions import db
from .money import format_currency, to_cents
from .services import ledger_service, settings_service, shift_service
from .validation import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

DOMAIN_ERRORS = (ValidationError, ConflictError, NotFoundError, AuthenticationRequiredError)


def _money(cents):
    return format_currency(cents) if cents is not None else "-"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """
    Create tables and seed payment settings.

    Safe to run repeatedly. Production deployments use `flask db upgrade`.
    """
    db.create_all()
    settings = settings_service.get_payment_settings()
    click.echo("PASS Tables created.")
    click.echo(f"   payment methods: {', '.join(settings_service.get_available_payment_methods()) or 'none'}")
    click.echo(f"   currency:        {settings.currency}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init-db' to seed settings.")


@click.group('shifts')
def shifts_group():
    """Cash drawer shift commands."""


@shifts_group.command('current')
@with_appcontext
def current_shift_cli():
    """Show the open shift and its running balance."""
    summary = shift_service.get_summary()
    shift = summary["open_shift"]
    if not shift:
        click.echo("No open shift.")
        return

    click.echo(f"Shift {shift['id']} opened {shift['opened_at']} by staff {shift['staff_id']}")
    click.echo(f"   opening float:  {_money(shift['opening_balance_cents'])}")
    click.echo(f"   cash in:        {_money(summary['inflow_cents'])}")
    click.echo(f"   cash out:       {_money(summary['outflow_cents'])}")
    click.echo(f"   drawer balance: {_money(summary['current_balance_cents'])}")
    click.echo(f"   QR (bank):      {_money(summary['qr_inflow_cents'])}")


@shifts_group.command('open')
@click.option('--staff-id', type=int, required=True, help='Staff member opening the drawer')
@click.option('--opening', default="0", show_default=True, help='Opening float (major units)')
@click.option('--notes', help='Optional notes')
@with_appcontext
def open_shift_cli(staff_id, opening, notes):
    """
    Open the cash drawer.

    Example:
        flask shifts open --staff-id 1 --opening 1000.00
    """
    try:
        shift = shift_service.open_shift(staff_id, to_cents(opening), notes)
    except DOMAIN_ERRORS as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Shift {shift.id} opened with float {_money(shift.opening_balance_cents)}")


@shifts_group.command('close')
@click.option('--staff-id', type=int, required=True, help='Staff member closing the drawer')
@click.option('--counted', required=True, help='Counted cash (major units)')
@click.option('--notes', help='Optional notes')
@with_appcontext
def close_shift_cli(staff_id, counted, notes):
    """
    Close the open shift with the counted cash.

    Example:
        flask shifts close --staff-id 1 --counted 1280.00
    """
    try:
        shift = shift_service.close_shift(to_cents(counted), notes, user_id=staff_id)
    except DOMAIN_ERRORS as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Shift {shift.id} closed")
    click.echo(f"   expected: {_money(shift.expected_closing_cents)}")
    click.echo(f"   counted:  {_money(shift.closing_balance_cents)}")
    if shift.variance_cents:
        click.echo(f"   WARN variance: {_money(shift.variance_cents)}")
    else:
        click.echo("   variance: none")


@shifts_group.command('report')
@click.argument('shift_id', type=int)
@with_appcontext
def shift_report_cli(shift_id):
    """Reconciliation report for a shift."""
    try:
        report = shift_service.get_shift_report(shift_id)
    except DOMAIN_ERRORS as e:
        raise click.ClickException(str(e))

    shift = report["shift"]
    click.echo("\n" + "="*60)
    click.echo(f"Shift {shift['id']} ({shift['status']})  {shift['opened_at']} -> {shift['closed_at'] or 'open'}")
    click.echo("="*60)
    click.echo(f"{'Opening float':<24} {_money(shift['opening_balance_cents']):>20}")
    for entry_type, total in sorted(report["totals_by_type"].items()):
        click.echo(f"{entry_type:<24} {_money(total):>20}")
    click.echo("-"*60)
    click.echo(f"{'Drawer inflow':<24} {_money(report['inflow_cents']):>20}")
    click.echo(f"{'Drawer outflow':<24} {_money(report['outflow_cents']):>20}")
    click.echo(f"{'QR (bank)':<24} {_money(report['qr_inflow_cents']):>20}")
    click.echo(f"{'Expected closing':<24} {_money(report['expected_closing_cents']):>20}")
    click.echo(f"{'Counted':<24} {_money(shift['closing_balance_cents']):>20}")
    click.echo(f"{'Variance':<24} {_money(report['variance_cents']):>20}")
    click.echo(f"{'Entries':<24} {report['entry_count']:>20}")
    click.echo("="*60 + "\n")


@click.group('ledger')
def ledger_group():
    """Cash ledger inspection commands."""


@ledger_group.command('list')
@click.option('--shift-id', type=int, help='Filter by shift ID')
@click.option('--type', 'entry_type', type=click.Choice(ledger_service.ENTRY_TYPES), help='Filter by entry type')
@click.option('--limit', type=int, default=50, help='Max entries to show')
@with_appcontext
def list_ledger_cli(shift_id, entry_type, limit):
    """
    List ledger entries, newest first.

    Example:
        flask ledger list
        flask ledger list --shift-id 3 --type sale_cash
    """
    entries = ledger_service.query_entries(
        shift_id=shift_id,
        entry_types=[entry_type] if entry_type else None,
        order="desc",
        limit=limit,
    )

    if not entries:
        click.echo("No ledger entries found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<6} {'Shift':<6} {'Type':<13} {'Amount':>16}  {'Created':<20} {'Reference':<22} {'Description'}")
    click.echo("="*110)

    for entry in entries:
        reference = f"{entry.reference_type}:{entry.reference_id}" if entry.reference_type else "-"
        click.echo(f"{entry.id:<6} {entry.shift_id:<6} {entry.entry_type:<13} {_money(entry.amount_cents):>16}  "
                   f"{str(entry.created_at)[:19]:<20} {reference[:22]:<22} {entry.description[:40]}")

    click.echo("="*110 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(ledger_group)
