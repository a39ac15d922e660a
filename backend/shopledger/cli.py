# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection/intake:
# - python -m flask ledger supplier-add --name "Acme Traders" --phone "017..."
#   Create a supplier (code allocated from the supplier counter).
# - python -m flask ledger bill-import bill.json
#   Register a bill and its product lines from a JSON file.
# - python -m flask ledger bill-balance B1
#   Show deal / paid / remaining for a bill, recomputed from its payments.
# - python -m flask ledger sequences
#   Show the last value of every counter.
# - python -m flask ledger traces --table supplier_adjustments --limit 20
#   List recent delete traces.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Counter
from .services import payment_service, supplier_service, trace_service
from .services.errors import LedgerError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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

    click.echo("PASS Database reset complete.")


@click.group('ledger')
def ledger_group():
    """Supplier, bill and ledger inspection commands."""


@ledger_group.command('supplier-add')
@click.option('--name', required=True, help='Supplier name')
@click.option('--address', default=None, help='Address')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def supplier_add(name, address, phone):
    """Create a supplier."""
    try:
        supplier = supplier_service.create_supplier(name, address=address, phone=phone)
    except (LedgerError, ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created supplier {supplier.name} (ID: {supplier.id}, Code: {supplier.supplier_code})")


@ledger_group.command('bill-import')
@click.argument('bill_file', type=click.File('r'))
@with_appcontext
def bill_import(bill_file):
    """
    Register a bill from a JSON file.

    Example file:
        {"supplier_id": 1, "bill_number": "B1", "deal_amount_cents": 50000,
         "paid_amount_cents": 0,
         "lines": [{"barcode": "111", "name": "Soap", "quantity": 10,
                    "unit_price_cents": 2500, "retail_price_cents": 3000}]}
    """
    try:
        data = json.load(bill_file)
    except json.JSONDecodeError as e:
        click.echo(f"FAIL Invalid JSON: {e}")
        raise SystemExit(1)

    try:
        bill = supplier_service.register_bill(
            data.get("supplier_id"),
            data.get("bill_number"),
            data.get("deal_amount_cents"),
            paid_amount_cents=data.get("paid_amount_cents", 0),
            lines=data.get("lines"),
        )
    except (LedgerError, ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Registered bill {bill.bill_number} with {len(bill.products)} line(s)")


@ledger_group.command('bill-balance')
@click.argument('bill_number')
@with_appcontext
def bill_balance(bill_number):
    """Show the recomputed balance of a bill."""
    try:
        balance = payment_service.get_bill_balance(bill_number)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"Bill {balance['bill_number']}")
    click.echo(f"  Deal amount:     {balance['deal_amount_cents']}")
    click.echo(f"  Base paid:       {balance['base_paid_amount_cents']}")
    click.echo(f"  Payments total:  {balance['transactions_total_cents']}")
    click.echo(f"  Paid:            {balance['paid_amount_cents']}")
    click.echo(f"  Remaining:       {balance['remaining_cents']}")


@ledger_group.command('sequences')
@with_appcontext
def sequences():
    """Show every counter and its last issued value."""
    counters = db.session.query(Counter).order_by(Counter.key).all()
    if not counters:
        click.echo("No counters yet.")
        return
    for counter in counters:
        click.echo(f"{counter.key:<20} {counter.value}")


@ledger_group.command('traces')
@click.option('--table', 'table_name', default=None, help='Filter by table name')
@click.option('--limit', default=20, type=int, help='Maximum rows')
@with_appcontext
def traces(table_name, limit):
    """List recent delete traces."""
    rows = trace_service.list_delete_traces(table_name=table_name)[:limit]
    if not rows:
        click.echo("No delete traces found.")
        return

    click.echo(f"{'ID':<6} {'Table':<24} {'Record':<8} {'Type':<14} {'By':<16} Reason")
    click.echo("-" * 90)
    for t in rows:
        click.echo(f"{t.id:<6} {t.table_name:<24} {str(t.deleted_id):<8} {t.trace_type:<14} {t.deleted_by:<16} {t.reason}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
