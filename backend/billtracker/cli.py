# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/billtracker/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Demo Co" --code DEMO]
#   Idempotent bootstrap: creates tables, a default company and an owner user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Companies (tenants):
# - python -m flask companies list
# - python -m flask companies create --name "Acme Co" --code ACME [--threshold 10000]
# - python -m flask companies set-threshold ACME 5000   (use "none" to disable approval)
#
# Users:
# - python -m flask users list
# - python -m flask users create --username somchai --email somchai@example.com --password "Password123!"
# - python -m flask users deactivate somchai   (also revokes open sessions)
#
# Company access:
# - python -m flask access grant somchai ACME --preset accountant
# - python -m flask access grant somchai ACME --permission expenses:* --permission audit:read
# - python -m flask access grant owner ACME --owner
# - python -m flask access revoke somchai ACME
#
# Reminders:
# - python -m flask reminders scan [--min-age-days 7]
#   Notify about incomes still waiting for the customer's 50 Tawi certificate.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import BillTrackerError
from .extensions import db
from .models import CompanyAccess, User
from .permissions import DEFAULT_ROLE_PERMISSIONS
from .services import company_service, permission_service, reminder_service, session_service
from .services.auth_service import create_user


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Demo Company', help='Company name')
@click.option('--code', 'company_code', default='DEMO', help='Company code (used in API URLs)')
@with_appcontext
def init_system(company_name, company_code):
    """
    Initialize Bill Tracker: tables, a default company and an owner account.

    Creates:
    - Company (if the code does not exist yet)
    - User owner/owner@billtracker.local with password "Password123!"
    - Owner access to the company

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing Bill Tracker...")
    db.create_all()

    try:
        company = company_service.get_by_code(company_code)
        click.echo(f"PASS Using existing company: {company.name} ({company.code})")
    except BillTrackerError:
        company = company_service.create_company(company_name, company_code)
        click.echo(f"PASS Created company: {company.name} ({company.code})")

    owner = db.session.query(User).filter_by(username="owner").first()
    if owner is None:
        owner = create_user("owner", "owner@billtracker.local", DEFAULT_PASSWORD, display_name="Owner")
        click.echo(f"PASS Created user: owner (password: {DEFAULT_PASSWORD})")
    else:
        click.echo("PASS Using existing user: owner")

    permission_service.grant_access(user_id=owner.id, company_id=company.id, is_owner=True)
    click.echo(f"PASS owner is owner of {company.code}")
    click.echo("\nDONE System initialized.")


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


@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive companies')
@with_appcontext
def list_companies(include_inactive):
    companies = company_service.list_companies(include_inactive=include_inactive)
    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<35} {'Threshold':<15} {'Active'}")
    click.echo("=" * 80)
    for company in companies:
        threshold = str(company.approval_threshold) if company.approval_threshold is not None else "-"
        active = "Yes" if company.is_active else "No"
        click.echo(f"{company.id:<5} {company.code:<12} {company.name:<35} {threshold:<15} {active}")
    click.echo("=" * 80 + "\n")


@companies_group.command('create')
@click.option('--name', prompt=True, help='Company name')
@click.option('--code', prompt=True, help='Company code (used in API URLs)')
@click.option('--tax-id', default=None, help='13-digit tax id')
@click.option('--threshold', default=None, help='Approval threshold (net amount)')
@click.option('--line-group-id', default=None, help='LINE group for notifications')
@with_appcontext
def create_company_cli(name, code, tax_id, threshold, line_group_id):
    try:
        company = company_service.create_company(
            name, code, tax_id=tax_id, approval_threshold=threshold, line_group_id=line_group_id,
        )
    except BillTrackerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created company: {company.name} ({company.code}, ID: {company.id})")


@companies_group.command('set-threshold')
@click.argument('code')
@click.argument('threshold')
@with_appcontext
def set_threshold_cli(code, threshold):
    """Set the approval threshold; "none" disables approval."""
    try:
        company = company_service.get_by_code(code)
        value = None if threshold.lower() == "none" else threshold
        company_service.set_approval_threshold(company, value)
    except BillTrackerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {company.code} approval threshold: {company.approval_threshold or 'none'}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--display-name', default=None, help='Name shown in the app')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, email, display_name, password):
    """Create a login. Weak passwords are refused (8+ chars, mixed case, digit, symbol)."""
    try:
        user = create_user(username, email, password, display_name=display_name)
    except BillTrackerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} ({user.email}), ID: {user.id}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with the companies they can access."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Companies'}")
    click.echo("=" * 100)
    for user in users:
        access_rows = db.session.query(CompanyAccess).filter_by(user_id=user.id).all()
        companies = ", ".join(
            f"{a.company.code}{'*' if a.is_owner else ''}" for a in access_rows
        ) or "none"
        active = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active:<8} {companies}")
    click.echo("=" * 100 + "\n")


@users_group.command('deactivate')
@click.argument('username')
@with_appcontext
def deactivate_user_cli(username):
    """Disable login and revoke every open session."""
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User {username} not found")
    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated {username}, revoked {revoked} session(s)")


@click.group('access')
def access_group():
    """Company access (permissions) commands."""


@access_group.command('grant')
@click.argument('username')
@click.argument('code')
@click.option('--preset', type=click.Choice(sorted(DEFAULT_ROLE_PERMISSIONS)), default=None)
@click.option('--permission', 'permissions', multiple=True, help='module:action, module:* or *')
@click.option('--owner', is_flag=True, help='Owner bypasses every permission check')
@with_appcontext
def grant_access_cli(username, code, preset, permissions, owner):
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User {username} not found")
    try:
        company = company_service.get_by_code(code)
        access = permission_service.grant_access(
            user_id=user.id,
            company_id=company.id,
            permissions=list(permissions),
            preset=preset,
            is_owner=owner,
        )
    except BillTrackerError as e:
        raise click.ClickException(e.message)
    granted = "owner" if access.is_owner else (", ".join(access.permissions) or "none")
    click.echo(f"PASS {username} @ {company.code}: {granted}")


@access_group.command('revoke')
@click.argument('username')
@click.argument('code')
@with_appcontext
def revoke_access_cli(username, code):
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User {username} not found")
    try:
        company = company_service.get_by_code(code)
    except BillTrackerError as e:
        raise click.ClickException(e.message)
    if permission_service.revoke_access(user_id=user.id, company_id=company.id):
        click.echo(f"PASS Revoked {username} @ {company.code}")
    else:
        click.echo(f"SKIP {username} had no access to {company.code}")


@click.group('reminders')
def reminders_group():
    """Scheduled reminder commands (run from cron)."""


@reminders_group.command('scan')
@click.option('--min-age-days', type=int, default=None,
              help='Days since payment before reminding (default: WHT_REMINDER_MIN_AGE_DAYS)')
@with_appcontext
def scan_reminders_cli(min_age_days):
    """Notify about incomes still waiting for the customer's 50 Tawi certificate."""
    if min_age_days is None:
        min_age_days = current_app.config["WHT_REMINDER_MIN_AGE_DAYS"]
    notified = reminder_service.scan_wht_reminders(min_age_days=min_age_days)
    click.echo(f"Notified {len(notified)} income(s) waiting for 50 Tawi.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(access_group)
    app.cli.add_command(reminders_group)
