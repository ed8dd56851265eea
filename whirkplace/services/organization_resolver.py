"""
Organization Resolver

Binds every request to exactly one active organization. The organization is
taken from the session (re-validated against the identity's memberships),
from the identity's memberships, from the request host's subdomain, or
falls back to the default organization. It is never taken from headers,
query parameters or request bodies supplied by the client.

This module is the only place that writes the organization binding into
the session.
"""
import ipaddress
import logging
from typing import Optional, Tuple

from flask import current_app, request

from whirkplace import storage
from whirkplace.errors import OrganizationInactive, OrganizationNotFound, SessionCorrupted
from whirkplace.models import Organization, User
from whirkplace.services.oauth_service import OAuthService
from whirkplace.services.session_store import (
    clear_organization_binding,
    clear_session_user,
    get_session_user,
    set_session_user,
)

logger = logging.getLogger(__name__)

RESERVED_SUBDOMAINS = frozenset({'www', 'app', 'api'})

CLIENT_ORGANIZATION_KEYS = ('organizationId', 'organization_id')


def sanitize_for_organization(data: dict, trusted_org_id: str, key: str = 'organizationId') -> dict:
    """
    Replace any client-supplied organization id with the trusted one.

    Example:
        sanitize_for_organization({"name": "x", "organizationId": "other"}, "org-a")
        -> {"name": "x", "organizationId": "org-a"}
    """
    sanitized = {k: v for k, v in (data or {}).items() if k not in CLIENT_ORGANIZATION_KEYS}
    sanitized[key] = trusted_org_id
    return sanitized


def extract_subdomain(host: Optional[str], base_domain: Optional[str] = None) -> Optional[str]:
    """
    Tenant label of a host name, or None.

    With base_domain set only hosts under it count (acme.whirkplace.com with
    base whirkplace.com -> acme). Without it the left-most label of a host
    with at least three labels is used. IP addresses, localhost and reserved
    labels (www, app, api) never yield a tenant.
    """
    if not host:
        return None
    hostname = host.strip().lower()
    if hostname.startswith('['):
        return None
    hostname = hostname.split(':')[0].rstrip('.')
    if not hostname or hostname == 'localhost':
        return None
    try:
        ipaddress.ip_address(hostname)
        return None
    except ValueError:
        pass

    if base_domain:
        base = base_domain.strip().lower().lstrip('.')
        if hostname == base or not hostname.endswith('.' + base):
            return None
        label = hostname[: -len(base) - 1].split('.')[-1]
    else:
        parts = hostname.split('.')
        if len(parts) < 3:
            return None
        label = parts[0]

    if not label or label in RESERVED_SUBDOMAINS:
        return None
    return label


def ensure_default_organization() -> Optional[Organization]:
    """Return the well-known default organization, creating it on first use."""
    config = current_app.config
    org_id = config['DEFAULT_ORGANIZATION_ID']
    slug = config['DEFAULT_ORGANIZATION_SLUG']

    organization = storage.get_organization(org_id) or storage.get_organization_by_slug(slug, active_only=True)
    if organization:
        return organization

    try:
        organization = storage.upsert_organization(org_id, {
            'name': config['DEFAULT_ORGANIZATION_NAME'],
            'slug': slug,
            'plan': 'enterprise',
            'enable_local_auth': True,
            'enable_slack_auth': OAuthService.is_configured('slack'),
            'enable_microsoft_auth': OAuthService.is_configured('microsoft'),
            'onboarding_status': 'completed',
        })
    except ValueError:
        # Slug taken by another active organization; use that one
        organization = storage.get_organization_by_slug(slug, active_only=True)
    if organization:
        logger.info(f"Default organization ready: {organization.id} ({organization.slug})")
    return organization


def _session_identity() -> Tuple[Optional[User], Optional[dict]]:
    try:
        binding = get_session_user()
    except SessionCorrupted as err:
        logger.warning(f"Corrupted session destroyed during organization resolution: {err.detail}")
        clear_session_user()
        return None, None

    if not binding or not binding.get('user_id'):
        return None, binding

    user = storage.get_user_global(binding['user_id'])
    if user is None:
        logger.warning(f"Session references unknown user {binding['user_id']}, destroying session")
        clear_session_user()
        return None, None
    if not user.is_active:
        logger.info(f"Session user {user.id} is deactivated, destroying session")
        clear_session_user()
        return None, None
    return user, binding


def _resolve_for_identity(user: User, binding: dict) -> Optional[Organization]:
    memberships = storage.get_user_organizations(user.email)
    session_org_id = binding.get('organization_id')

    if session_org_id:
        for member, organization in memberships:
            if organization.id != session_org_id:
                continue
            if organization.is_active and member.is_active:
                if member.id != binding['user_id']:
                    set_session_user(member.id, organization.id, organization.slug)
                return organization
            break

        logger.info(
            f"Session organization {session_org_id} is no longer an active membership "
            f"of user {user.id}; clearing binding"
        )
        clear_organization_binding()

    for member, organization in memberships:
        if organization.is_active and member.is_active:
            set_session_user(member.id, organization.id, organization.slug)
            logger.info(f"Bound user {member.id} to organization {organization.slug}")
            return organization

    return None


def _organization_from_host() -> Optional[Organization]:
    label = extract_subdomain(request.host, current_app.config.get('BASE_DOMAIN'))
    if not label:
        return None
    organization = storage.get_organization_by_slug(label, active_only=True)
    if organization:
        logger.debug(f"Resolved organization {organization.slug} from host {request.host}")
    return organization


def resolve_organization() -> Organization:
    """
    Resolve the organization for the current request.

    Order: session binding (re-validated) -> identity's first active
    membership -> host subdomain -> default organization.

    Raises:
        OrganizationInactive: The default organization exists but is deactivated
        OrganizationNotFound: No organization could be determined
    """
    user, binding = _session_identity()
    if user is not None:
        organization = _resolve_for_identity(user, binding)
        if organization is not None:
            return organization
        logger.info(f"User {user.id} has no active organizations; continuing anonymously")
        clear_session_user()

    organization = _organization_from_host()
    if organization is not None:
        return organization

    organization = ensure_default_organization()
    if organization is None:
        raise OrganizationNotFound("no organization could be determined for request")
    if not organization.is_active:
        raise OrganizationInactive(f"default organization {organization.id} is deactivated")
    return organization
