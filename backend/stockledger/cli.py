# Overview: Flask CLI command group for bootstrap, inspection and stock maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask ledger seed-demo
#   Idempotently create a demo category and a few products with stock.
# - python -m flask ledger on-hand 4006381333931
#   Print derived on-hand quantity and live batches in consumption order.
# - python -m flask ledger receive 4006381333931 12 --unit-cost-cents 95 --expiry 2026-12-31
#   Receive a new batch.
# - python -m flask ledger correct 4006381333931 -3
#   Manual stock correction (positive receives, negative removes).
# - python -m flask ledger movements 4006381333931
#   Print the movement log, oldest first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .models import Category, Product
from .services import catalog_service, inventory_service
from .validation import optional_date


DEMO_CATEGORY = ("Snacks", "\U0001F36A")
DEMO_PRODUCTS = [
    # barcode, name, emoji, price_cents, initial stock
    ("4006381333931", "Chocolate Bar", "\U0001F36B", 150, 24),
    ("5000112637922", "Cola 330ml", "\U0001F964", 120, 48),
    ("8710398500113", "Salted Crisps", "\U0001F954", 199, 12),
]


@click.group('ledger')
def ledger_group():
    """Stock ledger bootstrap and maintenance commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for a fresh database."""
    db.create_all()
    click.echo("PASS Tables created")


@ledger_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create a demo category and products (skips anything that exists)."""
    name, emoji = DEMO_CATEGORY
    category = db.session.query(Category).filter_by(name=name).first()
    if category is None:
        category = catalog_service.create_category(name=name, emoji=emoji)
        click.echo(f"PASS Created category: {category.name} (ID: {category.id})")
    else:
        click.echo(f"PASS Using existing category: {category.name} (ID: {category.id})")

    for barcode, product_name, product_emoji, price_cents, stock in DEMO_PRODUCTS:
        if db.session.get(Product, barcode) is not None:
            click.echo(f"WARN  Product {barcode} already exists, skipping...")
            continue
        catalog_service.create_product(
            barcode=barcode,
            name=product_name,
            category_id=category.id,
            price_cents=price_cents,
            emoji=product_emoji,
            initial_stock=stock,
        )
        click.echo(f"PASS Created product: {product_name} ({barcode}) with {stock} in stock")


@ledger_group.command('on-hand')
@click.argument('barcode')
@with_appcontext
def on_hand(barcode):
    """Show on-hand quantity and live batches for a product."""
    click.echo(f"{barcode}: {inventory_service.get_on_hand(barcode)} on hand")
    try:
        batches = inventory_service.list_batches(barcode)
    except LedgerError as e:
        raise click.ClickException(e.message)
    for batch in batches:
        expiry = batch.expiry_date.isoformat() if batch.expiry_date else "-"
        click.echo(
            f"  batch {batch.id:>6}  seq {batch.sequence:>4}  expiry {expiry:<10}  "
            f"{batch.quantity_remaining}/{batch.quantity_received}  @ {batch.unit_cost_cents}c"
        )


@ledger_group.command('receive')
@click.argument('barcode')
@click.argument('quantity', type=int)
@click.option('--unit-cost-cents', type=int, required=True, help='Unit cost of this batch in cents')
@click.option('--expiry', default=None, help='Expiry date (YYYY-MM-DD)')
@click.option('--note', default=None)
@with_appcontext
def receive(barcode, quantity, unit_cost_cents, expiry, note):
    """Receive a new batch of stock."""
    try:
        batch = inventory_service.receive_stock(
            barcode,
            quantity,
            unit_cost_cents,
            expiry_date=optional_date(expiry, "expiry"),
            note=note,
        )
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Batch {batch.id} received; on hand now {inventory_service.get_on_hand(barcode)}")


@ledger_group.command('correct', context_settings={'ignore_unknown_options': True})
@click.argument('barcode')
@click.argument('delta', type=int)
@click.option('--note', default=None)
@with_appcontext
def correct(barcode, delta, note):
    """Apply a manual stock correction."""
    try:
        new_on_hand = inventory_service.correct_stock(barcode, delta, note=note)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {barcode} on hand now {new_on_hand}")


@ledger_group.command('movements')
@click.argument('barcode')
@with_appcontext
def movements(barcode):
    """Print the movement log for a product, oldest first."""
    for m in inventory_service.list_movements(barcode):
        sale = f" sale {m.sale_id}" if m.sale_id else ""
        click.echo(f"{m.id:>8}  {m.kind:<10} {m.quantity_delta:>+6}  batch {m.batch_id}{sale}")


def register_commands(app):
    app.cli.add_command(ledger_group)
