"""
Auth Service

Authentication orchestrator plus the session-level operations used by the
auth routes (password login, organization switching, logout).
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from flask import request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash

from whirkplace import storage
from whirkplace.errors import (
    AuthError,
    AuthenticationRequired,
    FeatureRemoved,
    InsufficientRole,
    InvalidCredentials,
    SessionCorrupted,
)
from whirkplace.models import Organization, User
from whirkplace.security import SecurityConfig
from whirkplace.services.auth_strategies import (
    DEFAULT_STRATEGIES,
    HEADER_BACKDOOR_IMPERSONATE,
    AuthContext,
    AuthenticationStrategy,
)
from whirkplace.services.session_store import (
    clear_session_user,
    get_session_user,
    set_session_user,
    touch_session,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthOutcome:
    user: Optional[User] = None
    organization: Optional[Organization] = None
    strategy: Optional[str] = None
    error: Optional[AuthError] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None


class AuthService:
    """Service for establishing and managing the authenticated session."""

    @staticmethod
    def authenticate_request(
        organization: Organization,
        config: SecurityConfig,
        strategies: Optional[Iterable[AuthenticationStrategy]] = None,
    ) -> AuthOutcome:
        """
        Try each eligible strategy in order and stop at the first success.

        Never raises for a failed credential. The outcome carries either the
        identity and its organization, or the error to answer with:
        FeatureRemoved for an impersonation attempt, InvalidCredentials when
        a supplied credential was refused, AuthenticationRequired otherwise.
        Database errors propagate.
        """
        if request.headers.get(HEADER_BACKDOOR_IMPERSONATE):
            logger.warning(f"Rejected impersonation attempt on {request.method} {request.path}")
            return AuthOutcome(error=FeatureRemoved('impersonation header present'))

        ctx = AuthContext(
            organization=organization,
            config=config,
            headers=request.headers,
            cookies=request.cookies,
        )

        credential_rejected = False
        for strategy in strategies or DEFAULT_STRATEGIES:
            if not strategy.is_eligible(config):
                continue
            try:
                result = strategy.attempt(ctx)
            except SQLAlchemyError:
                raise
            except Exception:
                logger.exception(f"Authentication strategy {strategy.name} failed unexpectedly")
                continue

            if result.succeeded:
                logger.debug(f"Authenticated user {result.user.id} via {strategy.name}")
                return AuthOutcome(user=result.user, organization=result.organization, strategy=strategy.name)
            if result.rejected:
                credential_rejected = True
                logger.info(f"Authentication strategy {strategy.name} rejected request: {result.reason}")

        if credential_rejected:
            return AuthOutcome(error=InvalidCredentials('every supplied credential was rejected'))
        return AuthOutcome(error=AuthenticationRequired('no credential supplied'))

    @staticmethod
    def authenticate_password(
        email: str,
        password: str,
        organization_slug: Optional[str] = None,
    ) -> Tuple[User, Organization]:
        """
        Verify an email/password pair against the identity's memberships.

        With organization_slug only that membership is considered; without it
        the first membership (creation order) whose password matches wins.

        Raises:
            InvalidCredentials: No active membership with local login accepts the password
        """
        slug = organization_slug.strip().lower() if organization_slug else None
        for member, organization in storage.get_user_organizations(email):
            if slug and organization.slug != slug:
                continue
            if not organization.is_active or not member.is_active:
                continue
            if not organization.enable_local_auth:
                logger.info(f"Local login disabled for organization {organization.slug}")
                continue
            if not member.password_hash:
                continue
            if check_password_hash(member.password_hash, password):
                logger.info(f"Password login for user {member.id} in organization {organization.slug}")
                return member, organization

        raise InvalidCredentials(f"password login failed for {storage.normalize_email(email)}")

    @staticmethod
    def create_session(user: User, organization: Organization) -> None:
        set_session_user(user.id, organization.id, organization.slug)

    @staticmethod
    def destroy_session() -> None:
        clear_session_user()

    @staticmethod
    def get_current_user() -> Optional[User]:
        """The active identity bound in the session, if any."""
        binding = get_session_user()
        if not binding or not binding.get('user_id') or not binding.get('organization_id'):
            return None
        user = storage.get_user(binding['organization_id'], binding['user_id'])
        if user is None or not user.is_active:
            return None
        return user

    @staticmethod
    def is_session_valid() -> bool:
        try:
            return AuthService.get_current_user() is not None
        except SessionCorrupted:
            return False

    @staticmethod
    def refresh_session() -> bool:
        if not AuthService.is_session_valid():
            return False
        touch_session()
        return True

    @staticmethod
    def list_memberships(user: User) -> List[Tuple[User, Organization]]:
        """Active memberships of the identity's email, in resolution order."""
        return [
            (member, organization)
            for member, organization in storage.get_user_organizations(user.email)
            if member.is_active and organization.is_active
        ]

    @staticmethod
    def switch_organization(user: User, target_org_id: str) -> Tuple[User, Organization]:
        """
        Rebind the session to another organization the identity belongs to.

        Raises:
            InsufficientRole: The identity has no active membership there
        """
        for member, organization in AuthService.list_memberships(user):
            if organization.id == target_org_id:
                set_session_user(member.id, organization.id, organization.slug)
                logger.info(f"User {user.id} switched to organization {organization.slug}")
                return member, organization
        raise InsufficientRole(f"user {user.id} has no active membership in {target_org_id}")
