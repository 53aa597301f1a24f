# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--shop "Shop Name"] [--code MAIN]
#   Idempotent bootstrap: permissions, default shop, roles and default users.
# - python -m flask system init-roles [--shop-id 1]
#   Create default roles (owner, manager, salesperson, accountant) and their permissions.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shop management (MULTI-TENANT):
# - python -m flask shops list
# - python -m flask shops create --name "Atelier Or" --code ATELIER --currency EUR
#
# Users:
# - python -m flask users list [--shop-id 1]
# - python -m flask users create --shop-id 1 --username owner --email owner@shop.local --role owner
#
# Permissions:
# - python -m flask perms list [--shop-id 1 --role salesperson] [--category SALES]
# - python -m flask perms grant --shop-id 1 salesperson VOID_SALE
# - python -m flask perms revoke --shop-id 1 salesperson VOID_SALE
# - python -m flask perms check --shop-id 1 owner SYSTEM_ADMIN
#
# Scheduled jobs:
# - python -m flask expenses generate-recurring [--shop-id 1] [--as-of 2024-01-31]
#   Create every recurring expense due on or before the date (default: today).
# - python -m flask reminders overdue [--shop-id 1]
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
# - python -m flask maintenance cleanup-security-events --retention-days 90

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Permission, Role, RolePermission, Shop, User
from .permissions import group_permissions_by_category
from .services import expense_service, maintenance_service, permission_service, reminder_service, shop_service
from .services.auth_service import PasswordValidationError, assign_role, create_default_roles, create_user
from .validation import ConflictError, ValidationError, parse_date


ROLE_CHOICES = ["owner", "manager", "salesperson", "accountant"]


def _resolve_shop(shop_id):
    """Explicit shop, or the first shop when none is given."""
    if shop_id:
        return db.session.get(Shop, shop_id)
    return db.session.query(Shop).order_by(Shop.id.asc()).first()


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--shop', 'shop_name', default='Main Shop', help='Shop name')
@click.option('--code', 'shop_code', default='MAIN', help='Shop code')
@click.option('--currency', default='USD', show_default=True)
@with_appcontext
def init_system(shop_name, shop_code, currency):
    """
    Initialize GemLedger: permissions, a default shop, its roles and one
    user per role.

    All passwords default to "Password123!". Change them in production.
    """
    click.echo("START Initializing GemLedger...")

    perm_count = permission_service.initialize_permissions()
    click.echo(f"PASS Permission catalog ready ({perm_count} new)")

    shop = db.session.query(Shop).filter_by(code=shop_code.upper()).first()
    if shop:
        click.echo(f"PASS Using existing shop: {shop.name} (ID: {shop.id})")
    else:
        try:
            shop = shop_service.create_shop(name=shop_name, code=shop_code, currency=currency)
        except (ValidationError, ConflictError) as e:
            click.echo(f"FAIL Could not create shop: {e}")
            return
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id}, Code: {shop.code})")

    default_password = "Password123!"
    for role_name in ROLE_CHOICES:
        username = role_name
        email = f"{role_name}@{(shop.code or 'shop').lower()}.local"
        existing = db.session.query(User).filter_by(shop_id=shop.id, username=username).first()
        if existing:
            click.echo(f"WARN  User '{username}' already exists in shop, skipping...")
            continue
        try:
            user = create_user(username=username, email=email, password=default_password, shop_id=shop.id)
            assign_role(user.id, role_name)
            click.echo(f"PASS Created user: {username} ({email}) with role '{role_name}'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{username}': {e}")
        except ValueError as e:
            click.echo(f"FAIL Failed to create user '{username}': {e}")

    click.echo("=" * 60)
    click.echo(f"DONE GemLedger initialized for shop '{shop.name}' (ID: {shop.id})")
    click.echo("=" * 60)
    click.echo("Default password for all users: Password123! (CHANGE IN PRODUCTION)")


@system_group.command('init-roles')
@click.option('--shop-id', type=int, help='Shop ID (defaults to the first shop)')
@with_appcontext
def init_roles(shop_id):
    """Create default roles and their permission sets for a shop."""
    shop = _resolve_shop(shop_id)
    if not shop:
        click.echo("FAIL No shop exists. Run: python -m flask system init")
        return
    permission_service.initialize_permissions()
    roles = create_default_roles(shop.id)
    assigned = permission_service.assign_default_role_permissions(shop.id)
    click.echo(f"PASS Roles for shop {shop.id}: {', '.join(r.name for r in roles)} ({assigned} new grants)")


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

    click.echo("START Dropping all tables...")
    db.drop_all()
    click.echo("START Creating all tables...")
    db.create_all()
    click.echo("DONE Database reset. Run: python -m flask system init")


# =============================================================================
# SHOPS (MULTI-TENANT)
# =============================================================================

@click.group('shops')
def shops_group():
    """Shop (tenant) management commands."""


@shops_group.command('list')
@with_appcontext
def list_shops_cli():
    shops = shop_service.list_shops()
    if not shops:
        click.echo("No shops found.")
        return

    click.echo("=" * 90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<12} {'Curr':<6} {'Timezone':<22} {'Active':<7} {'Users'}")
    click.echo("=" * 90)
    for shop in shops:
        user_count = db.session.query(User).filter_by(shop_id=shop.id).count()
        active_str = "Yes" if shop.is_active else "No"
        click.echo(
            f"{shop.id:<5} {shop.name[:30]:<30} {shop.code or '-':<12} {shop.currency:<6} "
            f"{shop.timezone:<22} {active_str:<7} {user_count}"
        )
    click.echo("=" * 90)


@shops_group.command('create')
@click.option('--name', required=True, help='Shop name')
@click.option('--code', help='Short code (unique)')
@click.option('--currency', default='USD', show_default=True)
@click.option('--timezone', default='UTC', show_default=True)
@click.option('--language', default='en', show_default=True)
@with_appcontext
def create_shop_cli(name, code, currency, timezone, language):
    """Create a shop with its default roles."""
    try:
        shop = shop_service.create_shop(
            name=name,
            code=code,
            currency=currency,
            timezone=timezone,
            language=language,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id}, Code: {shop.code or '-'})")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--shop-id', type=int, help='Shop ID (defaults to the first shop)')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--full-name', default=None, help='Display name')
@click.option('--role', type=click.Choice(ROLE_CHOICES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(shop_id, username, email, password, full_name, role):
    """
    Create a user in a shop.

    Password must be 8+ characters with uppercase, lowercase, digit and
    special character.
    """
    shop = _resolve_shop(shop_id)
    if not shop:
        click.echo("FAIL Shop not found. Run: python -m flask system init")
        return
    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            shop_id=shop.id,
            full_name=full_name,
        )
        assign_role(user.id, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) in shop {shop.id} with role '{role}'")


@users_group.command('list')
@click.option('--shop-id', type=int, help='Filter by shop ID')
@with_appcontext
def list_users_cli(shop_id):
    """List users with their roles."""
    query = db.session.query(User)
    if shop_id:
        query = query.filter_by(shop_id=shop_id)
    users = query.order_by(User.shop_id.asc(), User.username.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("=" * 100)
    click.echo(f"{'ID':<5} {'Shop':<5} {'Username':<20} {'Email':<32} {'Active':<7} {'Roles'}")
    click.echo("=" * 100)
    for user in users:
        roles_str = ", ".join(permission_service.get_user_role_names(user.id)) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.shop_id:<5} {user.username:<20} {user.email:<32} {active_str:<7} {roles_str}")
    click.echo("=" * 100)


# =============================================================================
# PERMISSIONS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection and repair commands."""


@perms_group.command('list')
@click.option('--shop-id', type=int, help='Shop ID used with --role (defaults to the first shop)')
@click.option('--role', help='Filter by role name')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(shop_id, role, category):
    """List the permission catalog, or what one shop role holds."""
    if not role:
        total = 0
        for name, definitions in group_permissions_by_category().items():
            if category and name != category.upper():
                continue
            click.echo(f"CATEGORY {name}")
            for definition in definitions:
                click.echo(f"  {definition['code']:<28} {definition['name']}")
            total += len(definitions)
        click.echo(f"Total: {total} permissions")
        return

    shop = _resolve_shop(shop_id)
    if not shop:
        click.echo("FAIL Shop not found")
        return
    role_obj = db.session.query(Role).filter_by(shop_id=shop.id, name=role).first()
    if not role_obj:
        click.echo(f"FAIL Role '{role}' not found in shop {shop.id}")
        return
    query = (
        db.session.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_obj.id)
    )
    if category:
        query = query.filter(Permission.category == category.upper())
    perms = query.order_by(Permission.category, Permission.code).all()

    click.echo(f"Permissions for role {role} (shop {shop.id}):")
    current_category = None
    for perm in perms:
        if perm.category != current_category:
            click.echo(f"CATEGORY {perm.category}")
            current_category = perm.category
        click.echo(f"  {perm.code:<28} {perm.name}")

    click.echo(f"Total: {len(perms)} permissions")


@perms_group.command('grant')
@click.option('--shop-id', type=int, help='Shop ID (defaults to the first shop)')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def grant_permission_cli(shop_id, role_name, permission_code):
    """Grant a permission to a shop role."""
    shop = _resolve_shop(shop_id)
    if not shop:
        click.echo("FAIL Shop not found")
        return
    try:
        permission_service.grant_permission_to_role(shop.id, role_name, permission_code)
        click.echo(f"PASS Granted '{permission_code}' to role '{role_name}' in shop {shop.id}")
    except ValueError as e:
        click.echo(f"FAIL Error: {e}")


@perms_group.command('revoke')
@click.option('--shop-id', type=int, help='Shop ID (defaults to the first shop)')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def revoke_permission_cli(shop_id, role_name, permission_code):
    """Revoke a permission from a shop role."""
    shop = _resolve_shop(shop_id)
    if not shop:
        click.echo("FAIL Shop not found")
        return
    try:
        revoked = permission_service.revoke_permission_from_role(shop.id, role_name, permission_code)
    except ValueError as e:
        click.echo(f"FAIL Error: {e}")
        return
    if revoked:
        click.echo(f"PASS Revoked '{permission_code}' from role '{role_name}' in shop {shop.id}")
    else:
        click.echo(f"WARN  Permission '{permission_code}' was not granted to '{role_name}'")


@perms_group.command('check')
@click.option('--shop-id', type=int, help='Shop ID (defaults to the first shop)')
@click.argument('username')
@click.argument('permission_code')
@with_appcontext
def check_permission_cli(shop_id, username, permission_code):
    """Check whether a user has a permission (roles plus overrides)."""
    shop = _resolve_shop(shop_id)
    if not shop:
        click.echo("FAIL Shop not found")
        return
    user = db.session.query(User).filter_by(shop_id=shop.id, username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found in shop {shop.id}")
        return

    if permission_service.user_has_permission(user.id, permission_code):
        click.echo(f"PASS User '{username}' HAS permission '{permission_code}'")
    else:
        click.echo(f"FAIL User '{username}' DOES NOT HAVE permission '{permission_code}'")

    click.echo(f"User roles: {', '.join(permission_service.get_user_role_names(user.id)) or 'none'}")
    click.echo(f"Total permissions: {len(permission_service.get_user_permissions(user.id))}")


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

@click.group('expenses')
def expenses_group():
    """Expense jobs."""


@expenses_group.command('generate-recurring')
@click.option('--shop-id', type=int, help='Only this shop (default: all shops)')
@click.option('--as-of', 'as_of', default=None, help='YYYY-MM-DD (default: today, UTC)')
@with_appcontext
def generate_recurring_cli(shop_id, as_of):
    """Generate every recurring expense due on or before --as-of."""
    try:
        as_of_date = parse_date("as_of", as_of) if as_of else None
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo("START Generating due recurring expenses...")
    generated = expense_service.generate_due_recurring(shop_id=shop_id, as_of=as_of_date)
    for expense in generated:
        click.echo(
            f"PASS {expense.expense_number} shop={expense.shop_id} "
            f"date={expense.expense_date.isoformat()} amount={expense.to_dict()['amount']}"
        )
    click.echo(f"DONE Generated {len(generated)} expenses")


@click.group('reminders')
def reminders_group():
    """Payment reminder jobs."""


@reminders_group.command('overdue')
@click.option('--shop-id', type=int, help='Only this shop (default: all shops)')
@with_appcontext
def overdue_reminders_cli(shop_id):
    """List reminders that are past due and not completed."""
    rows = reminder_service.overdue(shop_id=shop_id)
    if not rows:
        click.echo("PASS No overdue reminders")
        return
    for reminder in rows:
        days = -reminder_service.days_until_due(reminder)
        click.echo(
            f"WARN  #{reminder.id} shop={reminder.shop_id} {reminder.entity_type}:{reminder.entity_id} "
            f"{reminder.reminder_type} due={reminder.due_date.isoformat()} ({days} days overdue)"
        )
    click.echo(f"DONE {len(rows)} overdue reminders")


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions past the retention window."""
    deleted = maintenance_service.cleanup_sessions()
    click.echo(f"DONE Deleted {deleted} expired sessions.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"DONE Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(expenses_group)
    app.cli.add_command(reminders_group)
    app.cli.add_command(maintenance_group)
