# Overview: Flask CLI command groups for bootstrap, inspection, and reporting.

# backend/riderpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Create an admin, two riders, a small catalog, warehouse stock and distributions.
#
# Riders and stock:
# - python -m flask riders list
# - python -m flask riders distribute --rider-id 2 --product-id 1 --quantity 10
#
# Settings:
# - python -m flask tax set --name PPN --rate 11 --active
#
# Reports:
# - python -m flask reports sales --start 2026-01-01T00:00:00Z --end 2026-01-31T23:59:59Z [--rider-id 2]

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Product, Profile, ROLE_ADMIN, ROLE_RIDER
from .errors import CheckoutError
from .services import inventory_service, reporting_service, tax_service
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset.')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


DEMO_PRODUCTS = [
    # sku, name, category, cost, price, warehouse qty, min stock
    ("KOPI-001", "Kopi Susu Botol", "Minuman", 9000, 15000, 120, 20),
    ("TEH-001", "Teh Melati Botol", "Minuman", 5000, 9000, 80, 20),
    ("ROTI-001", "Roti Coklat", "Makanan", 4000, 7000, 15, 20),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Seed a small demo dataset (idempotent on emails and SKUs)."""
    db.create_all()

    admin = db.session.query(Profile).filter_by(email="admin@riderpos.local").first()
    if not admin:
        admin = Profile(email="admin@riderpos.local", full_name="Admin", role=ROLE_ADMIN)
        db.session.add(admin)

    riders = []
    for email, name in (("rider1@riderpos.local", "Rider Satu"), ("rider2@riderpos.local", "Rider Dua")):
        rider = db.session.query(Profile).filter_by(email=email).first()
        if not rider:
            rider = Profile(email=email, full_name=name, role=ROLE_RIDER)
            db.session.add(rider)
        riders.append(rider)

    categories = {}
    products = []
    for sku, name, category_name, cost, price, _, _ in DEMO_PRODUCTS:
        category = categories.get(category_name) or db.session.query(Category).filter_by(name=category_name).first()
        if not category:
            category = Category(name=category_name)
            db.session.add(category)
        categories[category_name] = category

        product = db.session.query(Product).filter_by(sku=sku).first()
        if not product:
            product = Product(sku=sku, name=name, cost=cost, price=price, category=category)
            db.session.add(product)
        products.append(product)
    db.session.commit()

    for product, row in zip(products, DEMO_PRODUCTS):
        inventory_service.set_warehouse_stock(product_id=product.id, quantity=row[5], min_stock=row[6])

    for rider in riders:
        for product in products:
            if inventory_service.get_quantity_on_hand(rider.id, product.id) == 0:
                inventory_service.distribute_to_rider(
                    rider_id=rider.id,
                    product_id=product.id,
                    quantity=10,
                    actor_id=admin.id,
                    note="Demo seed",
                )

    if tax_service.get_active_tax_policy() is None:
        tax_service.save_tax_policy(name="PPN", rate="11", is_active=True)

    click.echo(f"Seeded {len(riders)} riders and {len(products)} products.")


@click.group('riders')
def riders_group():
    """Rider inspection and stock commands."""


@riders_group.command('list')
@with_appcontext
def list_riders():
    for rider in reporting_service.list_riders():
        click.echo(f"{rider.id}\t{rider.full_name}\t{rider.email}\t{rider.role or '-'}")


@riders_group.command('distribute')
@click.option('--rider-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--note', default=None)
@with_appcontext
def distribute(rider_id, product_id, quantity, note):
    """Hand stock to a rider."""
    try:
        distribution = inventory_service.distribute_to_rider(
            rider_id=rider_id,
            product_id=product_id,
            quantity=quantity,
            note=note,
        )
    except (CheckoutError, ValidationError) as exc:
        raise click.ClickException(str(exc))
    on_hand = inventory_service.get_quantity_on_hand(rider_id, product_id)
    click.echo(f"Distribution {distribution.id} recorded; rider now holds {on_hand}.")


@click.group('tax')
def tax_group():
    """Tax policy commands."""


@tax_group.command('set')
@click.option('--name', required=True)
@click.option('--rate', required=True, help='Percentage, e.g. 11 or 7.5')
@click.option('--active/--inactive', default=True)
@with_appcontext
def set_tax(name, rate, active):
    try:
        policy = tax_service.save_tax_policy(name=name, rate=rate, is_active=active)
    except CheckoutError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Tax policy {policy.id}: {policy.name} {policy.rate}% active={policy.is_active}")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('sales')
@click.option('--start', required=True)
@click.option('--end', required=True)
@click.option('--rider-id', type=int, default=None)
@with_appcontext
def sales(start, end, rider_id):
    """Print the sales report as JSON."""
    try:
        report = reporting_service.sales_report(start=start, end=end, rider_id=rider_id)
    except reporting_service.ReportError as exc:
        raise click.ClickException(str(exc))
    click.echo(json.dumps(report, indent=2))


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(riders_group)
    app.cli.add_command(tax_group)
    app.cli.add_command(reports_group)
