"""
Authentication and authorization decorators.

Stack them under the route decorator, authentication first:

    @bp.route('/teams', methods=['GET'])
    @authenticate_user
    @require_role(ROLE_ADMIN, ROLE_MANAGER)
    def list_teams():
        ...

The role checks only read g.current_user; they never write to the
session or the database. Super admins pass every check except
require_super_admin itself.
"""
from functools import wraps

from flask import g

from whirkplace import storage
from whirkplace.errors import AuthenticationRequired, InsufficientRole, OrganizationNotFound
from whirkplace.models.user import ROLE_ADMIN, ROLE_MANAGER, ROLE_PARTNER_ADMIN
from whirkplace.security import get_security_config
from whirkplace.services.auth_service import AuthService


def _current_user():
    user = getattr(g, 'current_user', None)
    if user is None:
        raise AuthenticationRequired('no authenticated identity on request')
    return user


def authenticate_user(fn):
    """Run the authentication strategies and bind g.current_user."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        organization = getattr(g, 'organization', None)
        if organization is None:
            raise OrganizationNotFound('authentication attempted before organization resolution')

        outcome = AuthService.authenticate_request(organization, get_security_config())
        if outcome.error is not None:
            raise outcome.error

        g.current_user = outcome.user
        g.organization = outcome.organization
        g.org_id = outcome.organization.id
        return fn(*args, **kwargs)

    return wrapper


def require_auth(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        _current_user()
        return fn(*args, **kwargs)

    return wrapper


def require_role(*roles):
    """Allow only identities whose role is one of roles."""
    allowed = set(roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = _current_user()
            if not user.is_super_admin and user.role not in allowed:
                raise InsufficientRole(f"user {user.id} role {user.role} not in {sorted(allowed)}")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_super_admin(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _current_user()
        if not user.is_super_admin:
            raise InsufficientRole(f"user {user.id} is not a super admin")
        return fn(*args, **kwargs)

    return wrapper


def require_partner_admin(fn):
    """
    Partner admins of an organization attached to an active partner firm.

    Exposes the firm as g.partner_firm.
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _current_user()
        g.partner_firm = None
        if user.is_super_admin:
            return fn(*args, **kwargs)

        if user.role != ROLE_PARTNER_ADMIN:
            raise InsufficientRole(f"user {user.id} is not a partner admin")
        organization = storage.get_organization(user.organization_id)
        if organization is None or not organization.partner_firm_id:
            raise InsufficientRole(f"organization of user {user.id} has no partner firm")
        firm = storage.get_partner_firm(organization.partner_firm_id)
        if firm is None or not firm.is_active:
            raise InsufficientRole(f"partner firm {organization.partner_firm_id} missing or inactive")

        g.partner_firm = firm
        return fn(*args, **kwargs)

    return wrapper


def require_team_lead(fn):
    """Admins, managers with a team, or the recorded leader of a team in the tenant."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _current_user()
        if user.is_super_admin or user.role == ROLE_ADMIN:
            return fn(*args, **kwargs)
        if user.role == ROLE_MANAGER and user.team_id:
            return fn(*args, **kwargs)
        if any(team.leader_id == user.id for team in storage.get_all_teams(g.org_id)):
            return fn(*args, **kwargs)
        raise InsufficientRole(f"user {user.id} leads no team")

    return wrapper


def require_onboarded(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _current_user()
        if user.is_super_admin:
            return fn(*args, **kwargs)
        organization = storage.get_organization(user.organization_id)
        if organization is None:
            raise OrganizationNotFound(f"organization {user.organization_id} vanished")
        if organization.onboarding_status != 'completed':
            raise InsufficientRole(f"organization {organization.slug} has not completed onboarding")
        return fn(*args, **kwargs)

    return wrapper
