# Overview: Flask CLI command groups for bootstrap, user admin and maintenance.

# backend/tillbook/cli.py
# Commands (run from the backend directory with FLASK_APP=wsgi.py):
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the business settings row and a default admin.
# - python -m flask users list
# - python -m flask users create --username clerk --email clerk@example.com --password "..." [--admin]
# - python -m flask users deactivate --username clerk
#   Deactivate a user and revoke their sessions.
# - python -m flask maintenance cleanup-old-files [--retention-days 14]
#   Delete bucket files older than the retention window (schedule daily from cron).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, list_users, PasswordValidationError, UserError
from .services import maintenance_service, session_service, settings_service
from .services.storage_service import StorageError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', show_default=True)
@click.option('--admin-email', default='admin@tillbook.local', show_default=True)
@click.option('--admin-password', default='Password123', show_default=True)
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """Create tables, the settings row and a default admin user."""
    click.echo("START Initializing tillbook...")
    db.create_all()

    settings = settings_service.get_business_settings()
    click.echo(f"PASS Business settings: {settings.business_name}")

    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(admin_username, admin_email, admin_password, is_admin=True)
        except (PasswordValidationError, UserError) as e:
            click.echo(f"FAIL Failed to create admin: {e}")
            return
        click.echo(f"PASS Created admin: {admin_username} ({admin_email})")
        click.echo("WARN  Change the default password before going live!")

    click.echo("DONE tillbook initialized")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Admin':<6} {'Active'}")
    click.echo("=" * 70)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.email:<30} "
            f"{'yes' if user.is_admin else 'no':<6} {'yes' if user.is_active else 'no'}"
        )
    click.echo("=" * 70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--admin', 'is_admin', is_flag=True, default=False, help='Grant admin (hard delete) rights')
@with_appcontext
def create_user_cli(username, email, password, is_admin):
    """
    Create a staff user.

    Password: 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(username, email, password, is_admin=is_admin)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except UserError as e:
        click.echo(f"FAIL Failed to create user: {e}")
        return
    click.echo(f"PASS Created user: {user.username} ({user.email}){' as admin' if is_admin else ''}")


@users_group.command('deactivate')
@click.option('--username', required=True)
@with_appcontext
def deactivate_user_cli(username):
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id)
    click.echo(f"PASS Deactivated {username}; revoked {revoked} session(s)")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-old-files')
@click.option('--retention-days', type=click.IntRange(min=0), default=None, help='Defaults to FILE_RETENTION_DAYS (14)')
@with_appcontext
def cleanup_old_files_cli(retention_days):
    """Delete invoice bucket files older than the retention window."""
    try:
        result = maintenance_service.cleanup_old_files(retention_days=retention_days)
    except StorageError as e:
        raise click.ClickException(f"Failed to cleanup old files: {e}")

    click.echo(result.message)
    click.echo(
        f"Deleted: {result.deleted_count}, Failed: {result.failed_count}, "
        f"Total in bucket: {result.total_files}"
    )
    for outcome in result.results:
        if not outcome.success:
            click.echo(f"  FAIL {outcome.file_name}: {outcome.error}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
