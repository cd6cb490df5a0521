# Overview: Flask CLI command groups for bootstrap, stock inspection and order maintenance.

# backend/wms/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent demo data: raw materials, finished goods, opening stock.
#
# Stock inspection/correction:
# - python -m flask stock show RM-STEEL
#   Current, reserved and available stock plus weighted average price.
# - python -m flask stock adjust RM-STEEL 25 --direction IN --reason "Cycle count"
#   Manual adjustment through the ledger (writes movement + history).
#
# Order maintenance:
# - python -m flask orders refresh-status [--order-number SPK/2026/02/001]
#   Recompute derived order status from items and shipments (idempotent).
# - python -m flask orders anomalies [--order-number SPK/2026/02/001]
#   List items whose ready/approved/shipped quantities drifted past qty.

import click
from flask.cli import with_appcontext

from .errors import WmsError
from .extensions import db
from .models import Item, ItemCategory, WorkOrder
from .services import fulfillment_service, ledger_service
from .services.concurrency import unit_of_work
from .services.order_status_service import refresh_order_status


SYSTEM_ACTOR_ID = 0

SEED_ITEMS = [
    # code, name, category, unit, unit_price, opening stock
    ("RM-STEEL", "Steel sheet 1.2mm", ItemCategory.RAW_MATERIAL, "KG", 14500.0, 500.0),
    ("RM-PAINT", "Powder coat paint", ItemCategory.RAW_MATERIAL, "KG", 62000.0, 80.0),
    ("FG-RACK", "Storage rack 4-tier", ItemCategory.FINISHED_GOOD, "PCS", 850000.0, 40.0),
    ("FG-LOCKER", "Locker 6-door", ItemCategory.FINISHED_GOOD, "PCS", 2300000.0, 12.0),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created")


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

    click.echo("DONE Database reset complete")


@system_group.command('seed')
@with_appcontext
def seed():
    """Create demo items with opening stock. Existing codes are skipped."""
    created = 0
    with unit_of_work() as uow:
        for code, name, category, unit, unit_price, opening in SEED_ITEMS:
            if uow.query(Item).filter(Item.code == code).first() is not None:
                click.echo(f"WARN  Item '{code}' already exists, skipping...")
                continue
            item = uow.add(Item(
                code=code,
                name=name,
                category=category,
                unit=unit,
                unit_price=unit_price,
            ))
            uow.flush()
            ledger_service.post_manual_adjustment(
                uow,
                item_id=item.id,
                quantity=opening,
                direction="IN",
                reason="Seeded opening stock",
                actor_id=SYSTEM_ACTOR_ID,
                price=unit_price,
            )
            created += 1
            click.echo(f"PASS Created item {code}: {name} ({opening} {unit})")

    click.echo(f"DONE Seed complete ({created} new item(s))")


@click.group('stock')
def stock_group():
    """Stock inspection and manual correction."""


@stock_group.command('show')
@click.argument('code')
@with_appcontext
def stock_show(code):
    try:
        item = ledger_service.get_item_by_code(code)
    except WmsError as e:
        raise click.ClickException(e.message)

    summary = ledger_service.get_stock_summary(item.id)
    click.echo(f"{summary['code']}  {summary['name']}")
    click.echo(f"  current:   {summary['current_stock']} {summary['unit']}")
    click.echo(f"  reserved:  {summary['reserved_stock']} {summary['unit']}")
    click.echo(f"  available: {summary['available_stock']} {summary['unit']}")
    click.echo(f"  avg price: {summary['weighted_average_price']}")
    click.echo(f"  value:     {summary['stock_value']}")


@stock_group.command('adjust')
@click.argument('code')
@click.argument('quantity', type=float)
@click.option('--direction', type=click.Choice(['IN', 'OUT'], case_sensitive=False), required=True)
@click.option('--reason', required=True, help='Audit reason (required)')
@click.option('--price', type=float, default=None, help='Unit purchase price (IN only)')
@with_appcontext
def stock_adjust(code, quantity, direction, reason, price):
    """Post a manual IN/OUT adjustment for an item code."""
    try:
        item = ledger_service.get_item_by_code(code)
        with unit_of_work() as uow:
            result = ledger_service.post_manual_adjustment(
                uow,
                item_id=item.id,
                quantity=quantity,
                direction=direction,
                reason=reason,
                actor_id=SYSTEM_ACTOR_ID,
                price=price,
            )
    except WmsError as e:
        raise click.ClickException(e.message)

    ledger = result["ledger"]
    click.echo(
        f"PASS {code}: {ledger['previous_stock']} -> {ledger['new_stock']} "
        f"(reserved {ledger['new_reserved']})"
    )


@click.group('orders')
def orders_group():
    """Work order maintenance."""


def _select_orders(order_number):
    query = db.session.query(WorkOrder)
    if order_number:
        query = query.filter(WorkOrder.order_number == order_number)
    orders = query.order_by(WorkOrder.id).all()
    if order_number and not orders:
        raise click.ClickException(f"Order {order_number} not found")
    return orders


@orders_group.command('refresh-status')
@click.option('--order-number', default=None, help='Limit to one order')
@with_appcontext
def orders_refresh_status(order_number):
    """Recompute derived status. Safe to run repeatedly."""
    orders = _select_orders(order_number)
    changed = 0
    with unit_of_work() as uow:
        for order in orders:
            before = order.status
            after = refresh_order_status(uow, order.id)
            if before != after:
                changed += 1
                click.echo(f"FIX  {order.order_number}: {before.value} -> {after.value}")

    click.echo(f"DONE {len(orders)} order(s) checked, {changed} updated")


@orders_group.command('anomalies')
@click.option('--order-number', default=None, help='Limit to one order')
@with_appcontext
def orders_anomalies(order_number):
    """List quantity drift; read-only."""
    orders = _select_orders(order_number)
    if order_number:
        anomalies = fulfillment_service.find_anomalies(order_id=orders[0].id)
    else:
        anomalies = fulfillment_service.find_anomalies()

    if not anomalies:
        click.echo("PASS No anomalies found")
        return

    for entry in anomalies:
        click.echo(f"WARN {entry['order_number']} item {entry['order_item_id']} ({entry['name']}):")
        for problem in entry["problems"]:
            click.echo(f"     - {problem}")
    click.echo(f"DONE {len(anomalies)} anomalous item(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(orders_group)
