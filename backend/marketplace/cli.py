# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to marketplace (PowerShell: $env:FLASK_APP="marketplace").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables (if missing) and an approved admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role tailor]
#   List users with role, approval and active status.
# - python -m flask users create --name "Asha" --mobile 9000000001 --role tailor [--approve]
#   Create a user (registration itself lives outside this service).
# - python -m flask users approve --mobile 9000000001
#   Approve a pending user so it can authenticate.
#
# Sessions:
# - python -m flask sessions issue --mobile 9000000001
#   Issue a bearer token for an existing approved user (prints plaintext once).
#
# Payouts:
# - python -m flask payouts pending [--source-type invoice]
#   Preview settlement-eligible sources with the computed split.
# - python -m flask payouts list [--status pending]
#   List payouts.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import MarketplaceError
from .models import Payout, User
from .permissions import ALL_ROLES, APPROVAL_APPROVED, APPROVAL_PENDING, ROLE_ADMIN, ROLE_SUPER_ADMIN
from .services import payout_service, session_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Platform Admin', help='Admin display name')
@click.option('--admin-mobile', default='9999999999', help='Admin mobile number')
@with_appcontext
def init_system(admin_name, admin_mobile):
    """Create tables if missing and ensure one approved super admin exists."""
    click.echo("START Initializing marketplace...")
    db.create_all()

    admin = db.session.query(User).filter_by(mobile=admin_mobile).first()
    if admin:
        click.echo(f"WARN  User with mobile {admin_mobile} already exists (ID: {admin.id}), skipping...")
    else:
        admin = User(
            name=admin_name,
            mobile=admin_mobile,
            role=ROLE_SUPER_ADMIN,
            approval_status=APPROVAL_APPROVED,
            is_active=True,
        )
        db.session.add(admin)
        db.session.commit()
        click.echo(f"PASS Created super admin: {admin.name} (ID: {admin.id})")

    click.echo("DONE Marketplace initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(ALL_ROLES), default=None)
@with_appcontext
def list_users(role):
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.mobile:<15} {user.role:<12} {user.approval_status:<9} {status:<8} {user.name}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--mobile', prompt=True)
@click.option('--role', type=click.Choice(ALL_ROLES), prompt=True)
@click.option('--approve', is_flag=True, help='Create already approved')
@with_appcontext
def create_user_cmd(name, mobile, role, approve):
    if db.session.query(User).filter_by(mobile=mobile).first():
        click.echo(f"FAIL Mobile {mobile} already registered")
        raise SystemExit(1)
    user = User(
        name=name.strip(),
        mobile=mobile.strip(),
        role=role,
        approval_status=APPROVAL_APPROVED if approve else APPROVAL_PENDING,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.id} ({user.role}, {user.approval_status})")


@users_group.command('approve')
@click.option('--mobile', required=True)
@with_appcontext
def approve_user(mobile):
    user = db.session.query(User).filter_by(mobile=mobile).first()
    if not user:
        click.echo(f"FAIL No user with mobile {mobile}")
        raise SystemExit(1)
    user.approval_status = APPROVAL_APPROVED
    db.session.commit()
    click.echo(f"PASS Approved user {user.id}")


@click.group('sessions')
def sessions_group():
    """Session token commands."""


@sessions_group.command('issue')
@click.option('--mobile', required=True)
@with_appcontext
def issue_session(mobile):
    user = db.session.query(User).filter_by(mobile=mobile).first()
    if not user:
        click.echo(f"FAIL No user with mobile {mobile}")
        raise SystemExit(1)
    try:
        session, token = session_service.create_session(user.id, user_agent="flask-cli")
    except MarketplaceError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Session {session.id} expires {session.expires_at.isoformat()}Z")
    click.echo(token)


@click.group('payouts')
def payouts_group():
    """Settlement inspection commands."""


def _cli_admin() -> User:
    admin = (
        db.session.query(User)
        .filter(User.role.in_([ROLE_ADMIN, ROLE_SUPER_ADMIN]))
        .order_by(User.id.asc())
        .first()
    )
    if not admin:
        click.echo("FAIL No admin user; run `flask system init` first")
        raise SystemExit(1)
    return admin


@payouts_group.command('pending')
@click.option('--source-type', type=click.Choice(['order', 'invoice']), default=None)
@click.option('--context', default=None, help='Override settlement context for the preview')
@with_appcontext
def pending_settlements(source_type, context):
    try:
        rows = payout_service.list_pending_settlements(_cli_admin(), source_type=source_type, context=context)
    except MarketplaceError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    if not rows:
        click.echo("Nothing to settle")
        return
    for row in rows:
        click.echo(
            f"{row['source_type']:<8}{row['source_id']:>6}  beneficiary={row['beneficiary_id']:<6}"
            f" gross={row['gross_amount_cents']:>10} commission={row['platform_commission_cents']:>8}"
            f" payable={row['payable_amount_cents']:>10} ({row['settlement_context']})"
        )


@payouts_group.command('list')
@click.option('--status', type=click.Choice(['pending', 'paid']), default=None)
@with_appcontext
def list_payouts_cmd(status):
    query = db.session.query(Payout)
    if status:
        query = query.filter_by(payout_status=status)
    payouts = query.order_by(Payout.id.asc()).all()
    if not payouts:
        click.echo("No payouts found")
        return
    for p in payouts:
        click.echo(
            f"{p.id:>5}  beneficiary={p.beneficiary_id:<6} {p.settlement_context:<18}"
            f" gross={p.gross_amount_cents:>10} payable={p.payable_amount_cents:>10} {p.payout_status}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(payouts_group)
