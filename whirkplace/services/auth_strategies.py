"""
Authentication strategies

Each strategy validates one kind of credential against the already-resolved
organization. Strategies never raise for a bad credential: they return a
StrategyResult saying whether they succeeded, were not applicable, or
rejected what the client supplied. is_eligible() is asked on every request
with the current SecurityConfig.
"""
import hmac
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from whirkplace import storage
from whirkplace.errors import SessionCorrupted
from whirkplace.models import Organization, User
from whirkplace.models.user import ROLE_ADMIN
from whirkplace.security import SecurityConfig, backdoor_auth_allowed, development_auth_enabled, redact
from whirkplace.services.session_store import get_session_user, set_session_user

logger = logging.getLogger(__name__)

HEADER_BACKDOOR_USER = 'X-Backdoor-User'
HEADER_BACKDOOR_KEY = 'X-Backdoor-Key'
HEADER_BACKDOOR_IMPERSONATE = 'X-Backdoor-Impersonate'
HEADER_DEV_USER_ID = 'X-Dev-User-Id'

COOKIE_DEV_USER_ID = 'auth_user_id'
COOKIE_DEV_ORG_ID = 'auth_org_id'
COOKIE_DEV_TOKEN = 'auth_session_token'

LEGACY_BACKDOOR_USERNAME = 'backdoor'


@dataclass
class AuthContext:
    """What a strategy may look at for one request."""
    organization: Organization
    config: SecurityConfig
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)


@dataclass
class StrategyResult:
    user: Optional[User] = None
    organization: Optional[Organization] = None
    # True when the client supplied a credential for this strategy and it was refused
    rejected: bool = False
    reason: str = ''

    @property
    def succeeded(self) -> bool:
        return self.user is not None

    @classmethod
    def success(cls, user, organization):
        return cls(user=user, organization=organization)

    @classmethod
    def skip(cls, reason):
        return cls(reason=reason)

    @classmethod
    def reject(cls, reason):
        return cls(rejected=True, reason=reason)


class AuthenticationStrategy:
    name = 'base'

    def is_eligible(self, config: SecurityConfig) -> bool:
        return False

    def attempt(self, ctx: AuthContext) -> StrategyResult:
        raise NotImplementedError


class SessionStrategy(AuthenticationStrategy):
    """Primary, production-safe path: the identity bound in the server-side session."""
    name = 'session'

    def is_eligible(self, config):
        return True

    def attempt(self, ctx):
        try:
            binding = get_session_user()
        except SessionCorrupted as err:
            return StrategyResult.reject(f"corrupted session: {err.detail}")
        if not binding or not binding.get('user_id'):
            return StrategyResult.skip('no user in session')

        user = storage.get_user(ctx.organization.id, binding['user_id'])
        if user is None:
            return StrategyResult.reject(
                f"session user {binding['user_id']} is not a member of organization {ctx.organization.id}"
            )
        if not user.is_active:
            return StrategyResult.reject(f"session user {user.id} is deactivated")
        return StrategyResult.success(user, ctx.organization)


def verify_backdoor_credentials(config: SecurityConfig, username: Optional[str], key: Optional[str]) -> bool:
    """Constant-time comparison of both values against the configured pair."""
    if not config.backdoor_configured or not username or not key:
        return False
    user_ok = hmac.compare_digest(username.encode('utf-8'), config.backdoor_user.encode('utf-8'))
    key_ok = hmac.compare_digest(key.encode('utf-8'), config.backdoor_key.encode('utf-8'))
    return user_ok and key_ok


def designated_admin_email(config: SecurityConfig) -> str:
    if config.backdoor_profile_email:
        return config.backdoor_profile_email.strip().lower()
    if '@' in config.backdoor_user:
        return config.backdoor_user.strip().lower()
    return f"{config.backdoor_user.strip().lower()}@localhost.dev"


def _deactivate_legacy_placeholder(organization: Organization, admin_email: str) -> None:
    placeholder = storage.get_user_by_username(organization.id, LEGACY_BACKDOOR_USERNAME)
    if placeholder and placeholder.is_active and placeholder.email != admin_email:
        storage.update_user(organization.id, placeholder.id, {'is_active': False})
        logger.info(f"Deactivated legacy backdoor placeholder account {placeholder.id}")


def provision_development_admin(config: SecurityConfig, organization: Organization) -> User:
    """
    Resolve or create the single designated development administrator.

    Idempotent: repeated calls return the same identity and only reactivate
    or re-promote it when needed.
    """
    email = designated_admin_email(config)
    _deactivate_legacy_placeholder(organization, email)

    admin = storage.get_user_by_email(organization.id, email)
    if admin:
        if not admin.is_active or admin.role != ROLE_ADMIN:
            admin = storage.update_user(organization.id, admin.id, {'is_active': True, 'role': ROLE_ADMIN})
        return admin

    logger.info(f"Provisioning development admin in organization {organization.slug}")
    return storage.create_user(organization.id, {
        'email': email,
        'username': email,
        'name': config.backdoor_profile_name or 'Development Admin',
        'role': ROLE_ADMIN,
        'is_active': True,
        'auth_provider': 'local',
    })


def find_production_admin(config: SecurityConfig, organization: Optional[Organization] = None) -> Optional[User]:
    """
    An existing, active admin or super admin matching the backdoor user. Never creates one.

    An admin in the requested organization wins; otherwise the oldest eligible
    admin in any active organization is used and the login switches tenant.
    """
    eligible = []
    for candidate in storage.get_users_by_login(config.backdoor_user):
        if not (candidate.is_super_admin or candidate.role == ROLE_ADMIN):
            continue
        if organization is not None and candidate.organization_id == organization.id and organization.is_active:
            return candidate
        eligible.append(candidate)

    for candidate in eligible:
        home = storage.get_organization(candidate.organization_id)
        if home and home.is_active:
            return candidate
    return None


def resolve_backdoor_identity(config: SecurityConfig, organization: Organization) -> Optional[User]:
    """Provision in development, otherwise only an existing admin."""
    if development_auth_enabled(config):
        return provision_development_admin(config, organization)
    return find_production_admin(config, organization)


class BackdoorStrategy(AuthenticationStrategy):
    """Shared-secret login for development, or emergencies when explicitly allowed in production."""
    name = 'backdoor'

    def is_eligible(self, config):
        return backdoor_auth_allowed(config)

    def attempt(self, ctx):
        username = ctx.headers.get(HEADER_BACKDOOR_USER)
        key = ctx.headers.get(HEADER_BACKDOOR_KEY)
        if not username and not key:
            return StrategyResult.skip('no backdoor headers')

        if not verify_backdoor_credentials(ctx.config, username, key):
            return StrategyResult.reject(
                f"backdoor credentials mismatch (user={redact(username)}, key={redact(key)})"
            )

        identity = resolve_backdoor_identity(ctx.config, ctx.organization)
        if identity is None:
            return StrategyResult.reject('no existing active admin matches the backdoor user')

        organization = storage.get_organization(identity.organization_id)
        if organization is None or not organization.is_active:
            return StrategyResult.reject(f"backdoor identity organization {identity.organization_id} is not active")

        set_session_user(identity.id, organization.id, organization.slug)
        logger.warning(f"Backdoor login as user {identity.id} in organization {organization.slug}")
        return StrategyResult.success(identity, organization)


class DevHeaderStrategy(AuthenticationStrategy):
    """Development only: identity id sent by the client (mirrors a localStorage login)."""
    name = 'dev-header'

    def is_eligible(self, config):
        return development_auth_enabled(config)

    def attempt(self, ctx):
        user_id = ctx.headers.get(HEADER_DEV_USER_ID)
        if not user_id:
            return StrategyResult.skip('no dev user header')
        user = storage.get_user(ctx.organization.id, user_id)
        if user is None or not user.is_active:
            return StrategyResult.reject(f"dev header user {user_id} not active in {ctx.organization.id}")
        return StrategyResult.success(user, ctx.organization)


class DevCookieStrategy(AuthenticationStrategy):
    """Development only: unsigned user/org/token cookie triple."""
    name = 'dev-cookie'

    def is_eligible(self, config):
        return development_auth_enabled(config)

    def attempt(self, ctx):
        user_id = ctx.cookies.get(COOKIE_DEV_USER_ID)
        org_id = ctx.cookies.get(COOKIE_DEV_ORG_ID)
        token = ctx.cookies.get(COOKIE_DEV_TOKEN)
        if not user_id and not org_id and not token:
            return StrategyResult.skip('no dev cookies')
        if not (user_id and org_id and token):
            return StrategyResult.reject('incomplete dev cookie triple')
        if org_id != ctx.organization.id:
            return StrategyResult.reject(f"dev cookie organization {org_id} != resolved {ctx.organization.id}")
        user = storage.get_user(ctx.organization.id, user_id)
        if user is None or not user.is_active:
            return StrategyResult.reject(f"dev cookie user {user_id} not active")
        return StrategyResult.success(user, ctx.organization)


DEFAULT_STRATEGIES = (
    SessionStrategy(),
    BackdoorStrategy(),
    DevHeaderStrategy(),
    DevCookieStrategy(),
)
