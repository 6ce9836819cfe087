# Overview: Flask CLI command groups for bootstrap, inspection, and ledger checks.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "ChangeMe123"]
#   Idempotent bootstrap: creates tables, default settings and the admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username jane --name "Jane Doe" --role manager
#   Prompts for the password when --password is omitted.
#
# Ledger:
# - python -m flask ledger verify
#   Checks every stock level against the sum of its movements. Exits 1 on mismatch.
#
# Schema migrations (Flask-Migrate): python -m flask db <command>

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import USER_ROLES
from .services import ledger_service, settings_service
from .services.auth_service import (
    create_user,
    list_users as list_user_records,
    PasswordValidationError,
    UserValidationError,
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the bootstrap admin')
@click.option('--admin-password', default='ChangeMe123', help='Password of the bootstrap admin')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Create tables, persist default settings and the first admin user.

    Safe to run repeatedly: existing rows are left alone.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing shopledger...")

    db.create_all()
    click.echo("PASS Tables created")

    if settings_service.get_settings_record() is None:
        settings_service.update_settings({}, actor_id=None)
        click.echo("PASS Default settings stored")
    else:
        click.echo("PASS Using existing settings")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(
                username=admin_username,
                password=admin_password,
                name="Administrator",
                role="admin",
            )
        except (PasswordValidationError, UserValidationError) as e:
            click.echo(f"FAIL Could not create admin user: {e}")
            raise SystemExit(1)
        click.echo(f"PASS Created user: {admin_username} with role 'admin'")

    click.echo("DONE System initialized")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='staff', show_default=True, help='Role')
@click.option('--email', default=None, help='Email address')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_user_cli(username, name, password, role, email, phone):
    """
    Create a new user.

    Password: 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(
            username=username,
            password=password,
            name=name,
            role=role,
            email=email,
            phone=phone,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
        raise SystemExit(1)
    except UserValidationError as e:
        click.echo(f"FAIL Failed to create user: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = list_user_records()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<10} {'Active'}")
    click.echo("=" * 72)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<25} {user.role:<10} {active_str}")
    click.echo("=" * 72 + "\n")


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection commands."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger_cli():
    """Check that every stock level equals the sum of its movements."""
    mismatches = ledger_service.verify_ledger()
    if not mismatches:
        click.echo("PASS Ledger consistent: every stock level matches its movement history")
        return

    for row in mismatches:
        click.echo(
            f"FAIL product {row['product_id']}: stock={row['stock_quantity']} "
            f"movements={row['movement_sum']}"
        )
    click.echo(f"FAIL {len(mismatches)} product(s) out of balance")
    raise SystemExit(1)


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
