"""
Persistence collaborator used by the auth core.

Narrow, tenant-aware read/write functions over the SQLAlchemy models. Route
handlers and services never build queries against User/Organization
themselves; they go through here so every tenant-scoped lookup carries an
organization id.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from whirkplace.extensions import db
from whirkplace.models import Organization, PartnerFirm, Team, User

logger = logging.getLogger(__name__)

Membership = Tuple[User, Organization]

_USER_FIELDS = {
    'email', 'username', 'name', 'password_hash', 'role', 'is_super_admin',
    'is_active', 'team_id', 'slack_user_id', 'microsoft_user_id', 'auth_provider',
}

_ORGANIZATION_FIELDS = {
    'name', 'slug', 'plan', 'is_active', 'enable_local_auth', 'enable_slack_auth',
    'enable_microsoft_auth', 'slack_workspace_id', 'microsoft_tenant_id',
    'partner_firm_id', 'onboarding_status',
}


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def get_user(org_id: str, user_id: str) -> Optional[User]:
    if not org_id or not user_id:
        return None
    return User.query.filter_by(id=user_id, organization_id=org_id).first()


def get_user_global(user_id: str) -> Optional[User]:
    if not user_id:
        return None
    return db.session.get(User, user_id)


def get_user_by_email(org_id: str, email: str) -> Optional[User]:
    return User.query.filter_by(organization_id=org_id, email=normalize_email(email)).first()


def get_user_by_username(org_id: str, username: str) -> Optional[User]:
    return User.query.filter_by(organization_id=org_id, username=username).first()


def get_user_by_provider_id(org_id: str, provider: str, provider_user_id: str) -> Optional[User]:
    if provider == 'slack':
        column = User.slack_user_id
    elif provider == 'microsoft':
        column = User.microsoft_user_id
    else:
        raise ValueError(f"Unknown identity provider: {provider}")
    return User.query.filter(User.organization_id == org_id, column == provider_user_id).first()


def get_user_organizations(email: str) -> List[Membership]:
    """
    Every (user, organization) membership for an email, across tenants.

    Ordered by membership creation time, then organization id, so "first
    active membership" is deterministic.
    """
    email = normalize_email(email)
    if not email:
        return []
    rows = (
        db.session.query(User, Organization)
        .join(Organization, User.organization_id == Organization.id)
        .filter(User.email == email)
        .order_by(User.created_at.asc(), Organization.id.asc())
        .all()
    )
    return [(user, organization) for user, organization in rows]


def get_users_by_login(login: str) -> List[User]:
    """Cross-tenant lookup of active identities by email or username."""
    if not login:
        return []
    return (
        User.query
        .filter(db.or_(User.email == normalize_email(login), User.username == login))
        .filter(User.is_active.is_(True))
        .order_by(User.created_at.asc())
        .all()
    )


def get_super_admins() -> List[User]:
    return User.query.filter(User.is_super_admin.is_(True)).order_by(User.created_at.asc()).all()


def create_user(org_id: str, data: dict) -> User:
    values = {key: value for key, value in data.items() if key in _USER_FIELDS}
    values['email'] = normalize_email(values.get('email'))
    values.setdefault('username', values['email'])
    values.setdefault('name', values['username'])
    user = User(organization_id=org_id, **values)
    db.session.add(user)
    db.session.commit()
    logger.info(f"Created user {user.id} in organization {org_id}")
    return user


def update_user(org_id: str, user_id: str, data: dict) -> Optional[User]:
    user = get_user(org_id, user_id)
    if not user:
        return None
    for key, value in data.items():
        if key not in _USER_FIELDS:
            continue
        if key == 'email':
            value = normalize_email(value)
        setattr(user, key, value)
    db.session.commit()
    return user


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

def get_organization(org_id: str) -> Optional[Organization]:
    if not org_id:
        return None
    return db.session.get(Organization, org_id)


def get_organization_by_slug(slug: str, active_only: bool = False) -> Optional[Organization]:
    if not slug:
        return None
    query = Organization.query.filter_by(slug=slug.strip().lower())
    if active_only:
        query = query.filter(Organization.is_active.is_(True))
    # Prefer the active record when legacy inactive duplicates exist
    return query.order_by(Organization.is_active.desc(), Organization.created_at.asc()).first()


def get_all_organizations() -> List[Organization]:
    return Organization.query.order_by(Organization.created_at.asc()).all()


def create_organization(data: dict) -> Organization:
    """
    Create an organization.

    Raises:
        ValueError: If an active organization already uses the slug
    """
    values = {key: value for key, value in data.items() if key in _ORGANIZATION_FIELDS}
    values['slug'] = values['slug'].strip().lower()
    if get_organization_by_slug(values['slug'], active_only=True):
        raise ValueError(f"Organization slug already in use: {values['slug']}")
    organization = Organization(**values)
    if data.get('id'):
        organization.id = data['id']
    db.session.add(organization)
    db.session.commit()
    logger.info(f"Created organization {organization.id} ({organization.slug})")
    return organization


def upsert_organization(org_id: str, data: dict) -> Organization:
    """Idempotent create keyed by a fixed id. Existing rows are returned untouched."""
    organization = get_organization(org_id)
    if organization:
        return organization
    try:
        return create_organization(dict(data, id=org_id))
    except IntegrityError:
        # Lost a race with a concurrent request creating the same row
        db.session.rollback()
        return get_organization(org_id)


# ---------------------------------------------------------------------------
# Teams / partner firms
# ---------------------------------------------------------------------------

def get_all_teams(org_id: str) -> List[Team]:
    return Team.query.filter_by(organization_id=org_id).all()


def get_partner_firm(firm_id: str) -> Optional[PartnerFirm]:
    if not firm_id:
        return None
    return db.session.get(PartnerFirm, firm_id)
