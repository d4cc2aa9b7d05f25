# Overview: Flask CLI command groups for bootstrap, user tokens, and ledger maintenance.

# backend/bizledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--org "Org Name"] [--org-code DEFAULT]
#   Idempotent bootstrap: creates tables, the default organization and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Corp" --code "ACME"
#
# Users and bearer tokens:
# - python -m flask users list [--org-id 1]
# - python -m flask users create --org-id 1 --username ana --name "Ana" --role seller --commission-bps 500
# - python -m flask users token --username ana --org-id 1
#   Issue a bearer token; the plaintext is printed once.
#
# Inventory maintenance:
# - python -m flask inventory verify [--org-id 1]
#   Compare every product's quantity with the sum of its movements.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, User
from .permissions import ROLES
from .services import session_service
from .services.inventory_service import verify_stock_conservation


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@with_appcontext
def init_system(org_name, org_code):
    """
    Create tables, a default organization and an admin user.

    Safe to run repeatedly; existing rows are reused.
    """
    click.echo("START Initializing ledger...")
    db.create_all()

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    admin = db.session.query(User).filter_by(org_id=org.id, username='admin').first()
    if not admin:
        admin = User(org_id=org.id, username='admin', name='Administrator', role='admin', is_active=True)
        db.session.add(admin)
        db.session.commit()
        click.echo(f"PASS Created admin user (ID: {admin.id})")
    else:
        click.echo(f"PASS Using existing admin user (ID: {admin.id})")

    click.echo("DONE Issue a token with: flask users token --username admin --org-id " + str(org.id))


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# ORGANIZATION MANAGEMENT COMMANDS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs_cli():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} Users")
    click.echo("-" * 70)
    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "yes" if org.is_active else "no"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {user_count}")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User and bearer token commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--username', required=True)
@click.option('--name', default=None, help='Display name (defaults to username)')
@click.option('--email', default=None)
@click.option('--role', type=click.Choice(ROLES), default='seller', show_default=True)
@click.option('--commission-bps', type=int, default=None, help='Seller default commission rate in basis points')
@with_appcontext
def create_user_cli(org_id, username, name, email, role, commission_bps):
    """Create a user inside an organization."""
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return
    if db.session.query(User).filter_by(org_id=org_id, username=username).first():
        click.echo(f"FAIL User '{username}' already exists in this organization")
        return
    if commission_bps is not None and not 0 <= commission_bps <= 10000:
        click.echo("FAIL --commission-bps must be between 0 and 10000")
        return

    user = User(
        org_id=org_id,
        username=username,
        name=name or username,
        email=email,
        role=role,
        default_commission_rate_bps=commission_bps,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Role: {user.role}, Org: {org.name})")


@users_group.command('list')
@click.option('--org-id', type=int, default=None, help='Filter by organization')
@with_appcontext
def list_users_cli(org_id):
    """List users with role and active status."""
    q = db.session.query(User)
    if org_id is not None:
        q = q.filter_by(org_id=org_id)
    users = q.order_by(User.org_id, User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Org':<5} {'Username':<20} {'Role':<12} {'Active':<8} Commission bps")
    click.echo("-" * 70)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        bps = "-" if user.default_commission_rate_bps is None else str(user.default_commission_rate_bps)
        click.echo(f"{user.id:<5} {user.org_id:<5} {user.username:<20} {user.role:<12} {active_str:<8} {bps}")


@users_group.command('token')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--username', required=True)
@with_appcontext
def issue_token_cli(org_id, username):
    """Issue a bearer token for a user and print it once."""
    user = db.session.query(User).filter_by(org_id=org_id, username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found in organization {org_id}")
        return

    session, token = session_service.create_session(user.id)
    click.echo(f"PASS Token for {user.username} (expires {session.expires_at.isoformat()}):")
    click.echo(token)


# =============================================================================
# INVENTORY MAINTENANCE COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory ledger maintenance commands."""


@inventory_group.command('verify')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@with_appcontext
def verify_inventory_cli(org_id):
    """Check that each product quantity equals the signed sum of its movements."""
    q = db.session.query(Organization)
    if org_id is not None:
        q = q.filter_by(id=org_id)

    failures = 0
    for org in q.order_by(Organization.id).all():
        for row in verify_stock_conservation(org.id):
            failures += 1
            click.echo(
                f"FAIL org={org.id} product={row['product_id']} ({row['name']}): "
                f"quantity={row['quantity_on_hand']} movements={row['movement_sum']}"
            )

    if failures:
        raise click.ClickException(f"{failures} product(s) out of balance")
    click.echo("PASS All product quantities match their movements")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
