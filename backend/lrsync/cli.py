# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/lrsync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --email admin@lrsync.local --password "Password123!"
#   Create tables, seed purchase categories and the first super admin (idempotent).
#
# Users:
# - python -m flask users list [--role secretary]
# - python -m flask users create --email a@b.c --first-name Ana --last-name Cruz --role secretary --area Cebu --password "Password123!"
# - python -m flask users set-password a@b.c --password "NewPassword1!"
#
# Purchase categories:
# - python -m flask categories list
# - python -m flask categories add "Office Supplies"
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired/revoked session tokens older than the cutoff.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import UserProfile
from .services import purchase_service, session_service, user_service
from .services.auth_service import PasswordValidationError
from .validation import ConflictError, ValidationError


@click.group("system")
def system_group():
    """System bootstrap commands."""


@system_group.command("init")
@click.option("--email", default="admin@lrsync.local", help="First super admin email")
@click.option("--password", default="Password123!", help="First super admin password")
@click.option("--first-name", default="System", help="First name")
@click.option("--last-name", default="Administrator", help="Last name")
@with_appcontext
def init_system(email, password, first_name, last_name):
    """
    Create tables, default purchase categories and the first super admin.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing LR Sync...")

    db.create_all()
    click.echo("PASS Tables ready")

    added = purchase_service.ensure_default_categories()
    click.echo(f"PASS Purchase categories seeded ({added} added)")

    existing = db.session.query(UserProfile).filter_by(role="super_admin").first()
    if existing:
        click.echo(f"PASS Using existing super admin: {existing.email}")
    else:
        try:
            profile = user_service.create_user(None, {
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "role": "super_admin",
                "password": password,
            })
        except (ValidationError, ConflictError, PasswordValidationError) as e:
            raise click.ClickException(str(e))
        click.echo(f"PASS Created super admin: {profile.email}")

    click.echo("DONE")


@click.group("users")
def users_group():
    """User inspection and bootstrap."""


@users_group.command("list")
@click.option("--role", default=None, help="Filter by role")
@with_appcontext
def list_users(role):
    result = user_service.list_users(role=role)
    if not result["items"]:
        click.echo("No users found.")
        return
    for u in result["items"]:
        area = u["assigned_area"] or "-"
        login = "yes" if u["has_credentials"] else "no"
        click.echo(f"{u['email']:<35} {u['role']:<12} {u['status']:<10} area={area:<15} login={login}")


@users_group.command("create")
@click.option("--email", prompt=True)
@click.option("--first-name", prompt=True)
@click.option("--last-name", prompt=True)
@click.option("--role", type=click.Choice(["secretary", "admin", "super_admin"]), default="secretary")
@click.option("--area", default=None, help="Assigned area")
@click.option("--password", default=None, help="Leave empty for a profile-only account")
@with_appcontext
def create_user_cmd(email, first_name, last_name, role, area, password):
    try:
        profile = user_service.create_user(None, {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "role": role,
            "assigned_area": area,
            "password": password,
        })
    except (ValidationError, ConflictError, PasswordValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {profile.role} {profile.email} (id {profile.id})")


@users_group.command("set-password")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def set_password_cmd(email, password):
    profile = db.session.query(UserProfile).filter_by(email=email.strip().lower()).first()
    if not profile:
        raise click.ClickException(f"No user with email {email}")
    try:
        user_service.set_password(None, profile.id, password)
    except PasswordValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Password updated for {profile.email}")


@click.group("categories")
def categories_group():
    """Purchase category management."""


@categories_group.command("list")
@click.option("--all", "include_deleted", is_flag=True, help="Include deleted categories")
@with_appcontext
def list_categories(include_deleted):
    for c in purchase_service.list_categories(include_deleted=include_deleted):
        suffix = " (deleted)" if c.is_deleted else ""
        click.echo(f"{c.id:>4}  {c.category}{suffix}")


@categories_group.command("add")
@click.argument("label")
@with_appcontext
def add_category(label):
    try:
        category = purchase_service.create_category(None, label)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Category {category.category} (id {category.id})")


@click.group("maintenance")
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command("cleanup-sessions")
@click.option("--older-than-days", default=30, show_default=True, type=int)
@with_appcontext
def cleanup_sessions(older_than_days):
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"PASS Deleted {deleted} session tokens")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(categories_group)
    app.cli.add_command(maintenance_group)
