# Overview: Flask CLI command groups for bootstrap and user management.

# backend/mdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@mdesk.local]
#   Idempotent bootstrap: creates tables, the default payment term, the
#   settings row and a first admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Jo Admin" --email jo@mdesk.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users deactivate jo@mdesk.local
#   Deactivate a user and revoke their sessions.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import USER_ROLES
from .services import billing_service
from .services import settings_service
from .services import session_service
from .services.auth_service import (
    register_user,
    normalize_email,
    PasswordValidationError,
    RegistrationError,
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Administrator', help='Name of the first admin')
@click.option('--admin-email', default='admin@mdesk.local', help='Email of the first admin')
@click.option('--admin-password', default='Password123!', help='Password of the first admin')
@with_appcontext
def init_system(admin_name, admin_email, admin_password):
    """
    Initialize MDesk: schema, default payment term, settings row and an admin.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing MDesk...")

    db.create_all()
    click.echo("PASS Tables created")

    term = billing_service.ensure_default_term()
    db.session.commit()
    click.echo(f"PASS Default payment term: {term.name}")

    settings = settings_service.get_settings_row()
    click.echo(f"PASS Settings row ready (automatic invoicing: {settings.automatic_invoicing})")

    if db.session.query(User).filter_by(email=normalize_email(admin_email)).first():
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
    else:
        try:
            register_user(name=admin_name, email=admin_email, password=admin_password, role="admin")
            click.echo(f"PASS Created admin: {admin_email}")
        except (PasswordValidationError, RegistrationError) as e:
            db.session.rollback()
            click.echo(f"FAIL Could not create admin '{admin_email}': {str(e)}")

    click.echo("\n" + "="*60)
    click.echo("DONE MDesk Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nPassword requirements: 8+ chars, uppercase, lowercase, digit, special char")
    click.echo("")


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

    click.echo("PASS Database reset. Run: python -m flask system init")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<35} {'Role':<10} {'Active'}")
    click.echo("="*90)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.name:<25} {user.email:<35} {user.role:<10} {active_str}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES), default='customer', help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a user and its linked contact."""
    try:
        user = register_user(name=name, email=email, password=password, role=role)
    except (PasswordValidationError, RegistrationError) as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('deactivate')
@click.argument('email')
@with_appcontext
def deactivate_user(email):
    """Deactivate a user and revoke all of their sessions."""
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise click.ClickException(f"User '{email}' not found")

    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated {user.email}; revoked {revoked} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
