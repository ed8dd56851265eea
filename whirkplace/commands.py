"""
Flask CLI commands.

    flask ensure-super-admin --email admin@example.com --password '...'
    flask ensure-super-admin            # uses SUPER_ADMIN_EMAIL
"""
import logging

import click
from flask import current_app
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash

from whirkplace import storage
from whirkplace.models.user import ROLE_ADMIN
from whirkplace.services.organization_resolver import ensure_default_organization

logger = logging.getLogger(__name__)


def ensure_super_admin(email, password=None, name=None):
    """
    Create or promote the super admin in the default organization.

    Idempotent: an existing identity is reactivated and promoted; its
    password only changes when one is given.
    """
    organization = ensure_default_organization()
    if organization is None:
        raise click.ClickException('Default organization could not be created')

    changes = {'is_super_admin': True, 'role': ROLE_ADMIN, 'is_active': True}
    if password:
        changes['password_hash'] = generate_password_hash(password)

    user = storage.get_user_by_email(organization.id, email)
    if user:
        user = storage.update_user(organization.id, user.id, changes)
        logger.info(f"Promoted existing user {user.id} to super admin")
        return user, False

    changes.update({'email': email, 'name': name or email, 'auth_provider': 'local'})
    user = storage.create_user(organization.id, changes)
    return user, True


@click.command('ensure-super-admin')
@click.option('--email', default=None, help='Email of the super admin (defaults to SUPER_ADMIN_EMAIL)')
@click.option('--password', default=None, help='Password (omit to keep the current one)')
@click.option('--name', default=None, help='Display name for a new account')
@with_appcontext
def ensure_super_admin_command(email, password, name):
    email = email or current_app.config.get('SUPER_ADMIN_EMAIL')
    if not email:
        raise click.ClickException('Pass --email or set SUPER_ADMIN_EMAIL')
    user, created = ensure_super_admin(email, password, name)
    verb = 'Created' if created else 'Updated'
    click.echo(f"{verb} super admin {user.email} ({user.id}) in organization {user.organization_id}")


def register_commands(app):
    app.cli.add_command(ensure_super_admin_command)
