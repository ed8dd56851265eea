"""
OAuth Service for Slack (OpenID Connect) and Microsoft identity platform

Handles the authorization redirect, the code-for-token exchange, the minimal
profile lookup and finding or creating the tenant-scoped identity. Tokens are
only used for the profile call and are never stored.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlencode

import requests
from flask import current_app, request

from whirkplace import storage
from whirkplace.errors import InvalidCredentials, OAuthFailed, OrganizationInactive, OrganizationNotFound, ProviderUnavailable
from whirkplace.models import Organization, User
from whirkplace.models.user import ROLE_MEMBER
from whirkplace.security import redact
from whirkplace.services.session_store import (
    is_secure_request,
    pop_oauth_state,
    pop_return_to,
    set_return_to,
    store_oauth_state,
)

logger = logging.getLogger(__name__)

PROVIDERS = ('slack', 'microsoft')

SLACK_AUTHORIZE_URL = 'https://slack.com/openid/connect/authorize'
SLACK_TOKEN_URL = 'https://slack.com/api/openid.connect.token'
SLACK_USERINFO_URL = 'https://slack.com/api/openid.connect.userInfo'
SLACK_TEAM_CLAIM = 'https://slack.com/team_id'

MICROSOFT_AUTHORITY = 'https://login.microsoftonline.com/{tenant}/oauth2/v2.0'
MICROSOFT_GRAPH_ME_URL = 'https://graph.microsoft.com/v1.0/me'


@dataclass
class OAuthProfile:
    provider: str
    provider_user_id: str
    email: Optional[str]
    name: Optional[str]
    workspace_id: Optional[str] = None


class OAuthService:
    """Service for delegated login through Slack and Microsoft."""

    @staticmethod
    def _setting(provider: str, name: str) -> Optional[str]:
        return current_app.config.get(f"{provider.upper()}_{name}")

    @staticmethod
    def is_configured(provider: str) -> bool:
        return bool(OAuthService._setting(provider, 'CLIENT_ID') and OAuthService._setting(provider, 'CLIENT_SECRET'))

    @staticmethod
    def resolve_redirect_uri(provider: str) -> str:
        """
        Callback URL registered with the provider.

        Order: the provider's explicit redirect URI, OAUTH_REDIRECT_BASE_URL,
        then the public host of this request (forwarded host/proto aware).
        """
        explicit = OAuthService._setting(provider, 'REDIRECT_URI')
        if explicit:
            return explicit
        path = f"/auth/{provider}/callback"
        base = current_app.config.get('OAUTH_REDIRECT_BASE_URL')
        if base:
            return base.rstrip('/') + path
        host = request.headers.get('X-Forwarded-Host', '').split(',')[0].strip() or request.host
        scheme = 'https' if is_secure_request() else 'http'
        return f"{scheme}://{host}{path}"

    @staticmethod
    def _check_provider(provider: str, organization: Optional[Organization]) -> None:
        if provider not in PROVIDERS:
            raise ProviderUnavailable(f"unknown provider {provider}")
        if organization is None:
            raise OrganizationNotFound('OAuth login requested for an unknown organization')
        if not organization.is_active:
            raise OrganizationInactive(f"OAuth login requested for inactive organization {organization.id}")
        if not organization.provider_enabled(provider):
            raise ProviderUnavailable(f"{provider} login disabled for organization {organization.slug}")
        if not OAuthService.is_configured(provider):
            raise ProviderUnavailable(f"{provider} OAuth client is not configured")

    @staticmethod
    def _microsoft_tenant(organization: Organization) -> str:
        return organization.microsoft_tenant_id or current_app.config.get('MICROSOFT_TENANT_ID') or 'common'

    @staticmethod
    def get_authorization_url(provider: str, organization: Optional[Organization], return_to: Optional[str] = None) -> str:
        """
        Build the provider authorization URL and record the pending login in the session.

        Raises:
            ProviderUnavailable: Unknown, disabled or unconfigured provider
            OrganizationNotFound / OrganizationInactive: Bad target organization
        """
        OAuthService._check_provider(provider, organization)

        redirect_uri = OAuthService.resolve_redirect_uri(provider)
        state = store_oauth_state(provider, organization.id, redirect_uri)
        set_return_to(return_to)

        params = {
            'client_id': OAuthService._setting(provider, 'CLIENT_ID'),
            'response_type': 'code',
            'redirect_uri': redirect_uri,
            'scope': OAuthService._setting(provider, 'SCOPES'),
            'state': state,
        }
        if provider == 'slack':
            if organization.slack_workspace_id:
                params['team'] = organization.slack_workspace_id
            base_url = SLACK_AUTHORIZE_URL
        else:
            params['response_mode'] = 'query'
            params['prompt'] = 'select_account'
            base_url = MICROSOFT_AUTHORITY.format(tenant=OAuthService._microsoft_tenant(organization)) + '/authorize'

        logger.info(f"Generated {provider} OAuth URL for organization {organization.slug}")
        return f"{base_url}?{urlencode(params)}"

    @staticmethod
    def _post_token(provider: str, url: str, data: dict) -> dict:
        timeout = current_app.config.get('OAUTH_HTTP_TIMEOUT', 10)
        try:
            response = requests.post(url, data=data, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(f"{provider} token exchange failed: {str(e)}")
            raise OAuthFailed(f"{provider} token exchange failed")
        except ValueError:
            raise OAuthFailed(f"{provider} token endpoint returned non-JSON")

        access_token = payload.get('access_token')
        if provider == 'slack' and not payload.get('ok', False):
            logger.warning(f"Slack token exchange refused: {payload.get('error')}")
            raise OAuthFailed('slack token exchange refused')
        if not access_token:
            raise OAuthFailed(f"no access token received from {provider}")
        logger.debug(f"{provider} access token received: {redact(access_token)}")
        return payload

    @staticmethod
    def _get_profile_json(provider: str, url: str, access_token: str) -> dict:
        timeout = current_app.config.get('OAUTH_HTTP_TIMEOUT', 10)
        try:
            response = requests.get(url, headers={'Authorization': f"Bearer {access_token}"}, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"{provider} profile lookup failed: {str(e)}")
            raise OAuthFailed(f"{provider} profile lookup failed")
        except ValueError:
            raise OAuthFailed(f"{provider} profile endpoint returned non-JSON")

    @staticmethod
    def exchange_code(provider: str, code: str, redirect_uri: str, organization: Organization) -> OAuthProfile:
        """Exchange an authorization code and fetch the minimal profile (id, name, email)."""
        token_data = {
            'client_id': OAuthService._setting(provider, 'CLIENT_ID'),
            'client_secret': OAuthService._setting(provider, 'CLIENT_SECRET'),
            'code': code,
            'redirect_uri': redirect_uri,
            'grant_type': 'authorization_code',
        }

        if provider == 'slack':
            token = OAuthService._post_token(provider, SLACK_TOKEN_URL, token_data)
            info = OAuthService._get_profile_json(provider, SLACK_USERINFO_URL, token['access_token'])
            if not info.get('ok', False) or not info.get('sub'):
                raise OAuthFailed('slack userInfo refused')
            return OAuthProfile(
                provider=provider,
                provider_user_id=info['sub'],
                email=info.get('email'),
                name=info.get('name') or info.get('given_name'),
                workspace_id=info.get(SLACK_TEAM_CLAIM),
            )

        token_data['scope'] = OAuthService._setting(provider, 'SCOPES')
        token_url = MICROSOFT_AUTHORITY.format(tenant=OAuthService._microsoft_tenant(organization)) + '/token'
        token = OAuthService._post_token(provider, token_url, token_data)
        info = OAuthService._get_profile_json(provider, MICROSOFT_GRAPH_ME_URL, token['access_token'])
        if not info.get('id'):
            raise OAuthFailed('microsoft profile has no id')
        return OAuthProfile(
            provider=provider,
            provider_user_id=info['id'],
            email=info.get('mail') or info.get('userPrincipalName'),
            name=info.get('displayName'),
        )

    @staticmethod
    def find_or_create_identity(organization: Organization, profile: OAuthProfile) -> User:
        """
        Tenant-scoped identity for a provider profile.

        Matched by provider user id, then by email (linking the provider id),
        otherwise created as a member. Never grants elevated roles.

        Raises:
            InvalidCredentials: The matched identity is deactivated
            OAuthFailed: A new identity is needed but the provider gave no email
        """
        provider_field = f"{profile.provider}_user_id"
        user = storage.get_user_by_provider_id(organization.id, profile.provider, profile.provider_user_id)

        if user is None and profile.email:
            user = storage.get_user_by_email(organization.id, profile.email)
            if user is not None:
                changes = {provider_field: profile.provider_user_id}
                if not user.auth_provider or user.auth_provider == 'local':
                    changes['auth_provider'] = profile.provider
                user = storage.update_user(organization.id, user.id, changes)
                logger.info(f"Linked {profile.provider} account to user {user.id}")

        if user is None:
            if not profile.email:
                raise OAuthFailed(f"{profile.provider} profile has no email address")
            user = storage.create_user(organization.id, {
                'email': profile.email,
                'username': profile.email,
                'name': profile.name or profile.email,
                'role': ROLE_MEMBER,
                'is_super_admin': False,
                'is_active': True,
                'auth_provider': profile.provider,
                provider_field: profile.provider_user_id,
            })
            logger.info(f"Created user {user.id} from {profile.provider} login in {organization.slug}")

        if not user.is_active:
            raise InvalidCredentials(f"user {user.id} is deactivated")
        return user

    @staticmethod
    def handle_callback(provider: str, code: Optional[str], state: Optional[str]) -> Tuple[User, Organization, Optional[str]]:
        """
        Complete a delegated login.

        Returns:
            Tuple of (user, organization, return_to path or None)
        """
        if provider not in PROVIDERS:
            raise ProviderUnavailable(f"unknown provider {provider}")

        pending = pop_oauth_state(provider, state)
        return_to = pop_return_to()
        if pending is None:
            raise OAuthFailed('invalid or expired OAuth state')
        organization_id, redirect_uri = pending

        organization = storage.get_organization(organization_id)
        OAuthService._check_provider(provider, organization)
        if not code:
            raise OAuthFailed('missing authorization code')

        profile = OAuthService.exchange_code(provider, code, redirect_uri, organization)
        if provider == 'slack' and organization.slack_workspace_id and profile.workspace_id != organization.slack_workspace_id:
            raise OAuthFailed(f"slack workspace {profile.workspace_id} does not belong to {organization.slug}")

        user = OAuthService.find_or_create_identity(organization, profile)
        return user, organization, return_to
