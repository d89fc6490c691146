# Overview: Flask CLI command groups for database setup and housekeeping.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
#
# Users:
# - python -m flask users create-admin --name "Admin" --email admin@storefront.local --phone 000 --password "Password123!"
#   Create an admin account (prompts if options are omitted).
# - python -m flask users list [--role admin]
#   List users with role, verification and active status.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked sessions older than the window.
# - python -m flask maintenance cleanup-email-tokens
#   Forget verification and reset tokens that have expired.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .errors import StorefrontError
from .extensions import db, get_settings
from .models import ROLE_ADMIN, VALID_ROLES, User
from .services import auth_service, maintenance_service
from .validation import validate_new_password


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-admin')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--phone', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin(name, email, phone, password):
    """Create an admin account with a verified email."""
    try:
        validate_new_password(password, password)
        user = auth_service.create_account(
            name=name,
            email=email,
            phone=phone,
            password=password,
            settings=get_settings(),
            role=ROLE_ADMIN,
            email_verified=True,
        )
    except StorefrontError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"Created admin {user.email} (id={user.id})")


@users_group.command('list')
@click.option('--role', type=click.Choice(VALID_ROLES), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users."""
    query = db.session.query(User).order_by(User.id.asc())

    if role:
        query = query.filter_by(role=role)

    users = query.all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<12} {'Verified':<10} {'Active':<8} {'Store'}")
    click.echo("="*90)

    for user in users:
        verified_str = "Yes" if user.email_verified else "No"
        active_str = "Yes" if user.is_active else "No"
        store_str = user.store.slug if user.store else "-"
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<12} {verified_str:<10} {active_str:<8} {store_str}")

    click.echo("="*90 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Retention and cleanup commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked session tokens."""
    deleted = maintenance_service.cleanup_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


@maintenance_group.command('cleanup-email-tokens')
@with_appcontext
def cleanup_email_tokens_cli():
    """Clear expired email verification and password reset tokens."""
    cleared = maintenance_service.clear_expired_email_tokens()
    click.echo(f"Cleared expired tokens on {cleared} accounts.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """Delete security events older than the retention window."""
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
