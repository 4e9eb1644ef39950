"""
Custom Flask CLI commands.

These commands are registered with the app via ``register_commands()``
in the application factory. Run them with ``flask <command_name>``.

Usage::

    flask db-check                        # Verify database connectivity
    flask seed-templates                  # Create the universal template
    flask seed-dev-user --role owner      # Local user for /auth/dev-login
    flask create-admin --email a@b.com    # Provision an admin account
"""

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.constants import ROLES
from app.errors import ServiceError
from app.extensions import db

# -- Default values for dev users ------------------------------------------
_DEV_PASSWORD = "devpassword"
_EXPECTED_TABLES = (
    "user",
    "template",
    "business",
    "media_asset",
    "service",
    "reservation",
    "audit_log",
)


@click.command("db-check")
@with_appcontext
def db_check_command():
    """
    Verify database connectivity and confirm the expected tables exist.
    """
    click.echo("=" * 60)
    click.echo("  BookSite — Database Connectivity Check")
    click.echo("=" * 60)

    click.echo(f"\n  Database: {db.engine.url.render_as_string(hide_password=True)}\n")

    # -- Step 1: Basic connectivity ----------------------------------------
    click.echo("[1/2] Testing connection...")
    try:
        db.session.execute(db.text("SELECT 1"))
        click.secho("      ✓ Connected.", fg="green")
    except SQLAlchemyError as exc:
        click.secho(f"      ✗ Connection failed: {exc}", fg="red")
        click.echo("    - Does DATABASE_URL point at a reachable database?")
        return

    # -- Step 2: Tables ----------------------------------------------------
    click.echo("[2/2] Checking tables...")
    existing = set(inspect(db.engine).get_table_names())
    missing = [name for name in _EXPECTED_TABLES if name not in existing]
    if missing:
        click.secho(f"      ✗ Missing tables: {', '.join(missing)}", fg="red")
        click.echo("        Run: flask db upgrade")
        return

    click.secho("      ✓ All tables present.", fg="green")
    click.echo("\n" + "=" * 60)
    click.secho("  All checks passed. Database is ready.", fg="green", bold=True)
    click.echo("=" * 60)


@click.command("seed-templates")
@with_appcontext
def seed_templates_command():
    """Create the universal default template if it does not exist yet."""
    from app.services import template_service  # pylint: disable=import-outside-toplevel

    template, created = template_service.ensure_universal_template()
    if created:
        click.secho(f"✓ Created '{template.name}' (id={template.id}).", fg="green")
    else:
        click.echo(f"'{template.name}' already exists (id={template.id}).")


@click.command("seed-dev-user")
@click.option(
    "--role",
    type=click.Choice(ROLES),
    default="admin",
    show_default=True,
    help="Role of the dev user.",
)
@click.option("--email", default=None, help="Defaults to dev.<role>@localhost.")
@with_appcontext
def seed_dev_user_command(role: str, email: str | None):
    """
    Create a development user for local testing with /auth/dev-login.

    Re-running the command for an existing email reactivates the user and
    resets their role instead of creating a duplicate.
    """
    from app.models.user import User  # pylint: disable=import-outside-toplevel

    email = email or f"dev.{role}@localhost"
    user = User.query.filter_by(email=email).first()
    if user is not None:
        user.role = role
        user.is_active = True
        user.failed_login_attempts = 0
        user.locked_until = None
        db.session.commit()
        click.echo(f"Dev user {email} already exists; role set to {role}.")
        return

    user = User(email=email, first_name="Dev", last_name=role.title(), role=role)
    user.set_password(_DEV_PASSWORD)
    db.session.add(user)
    db.session.commit()
    click.secho(f"✓ Created dev user {email} (id={user.id}, role={role}).", fg="green")
    if not current_app.config.get("DEV_LOGIN_ENABLED"):
        click.secho("  DEV_LOGIN_ENABLED is off; /auth/dev-login will refuse.", fg="yellow")


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--first", "first_name", default="Admin", show_default=True)
@click.option("--last", "last_name", default="User", show_default=True)
@click.password_option()
@with_appcontext
def create_admin_command(email: str, first_name: str, last_name: str, password: str):
    """Provision an administrator account."""
    from app.services import user_service  # pylint: disable=import-outside-toplevel

    try:
        user = user_service.provision_admin(email, password, first_name, last_name)
    except ServiceError as exc:
        raise click.ClickException(exc.message) from exc
    click.secho(f"✓ Created admin {user.email} (id={user.id}).", fg="green")


def register_commands(app):
    """Register all custom CLI commands with the Flask application."""
    app.cli.add_command(db_check_command)
    app.cli.add_command(seed_templates_command)
    app.cli.add_command(seed_dev_user_command)
    app.cli.add_command(create_admin_command)
