"""
OAuth API Endpoints

Delegated login through Slack and Microsoft. The start endpoint redirects
to the provider; the callback establishes the session and redirects into
the app.
"""
from urllib.parse import quote

from flask import Blueprint, current_app, g, redirect, request

from whirkplace import storage
from whirkplace.errors import OAuthFailed
from whirkplace.services.auth_service import AuthService
from whirkplace.services.oauth_service import OAuthService

bp = Blueprint('oauth', __name__)


@bp.route('/<provider>', methods=['GET'])
def authorize(provider):
    """
    Start an OAuth login.

    Query Parameters:
        org: Slug of the organization to sign in to (defaults to the resolved one)
        returnTo: Relative path to land on afterwards

    Returns:
        302 to the provider's authorization endpoint
    """
    slug = request.args.get('org')
    organization = storage.get_organization_by_slug(slug) if slug else g.organization

    auth_url = OAuthService.get_authorization_url(provider, organization, request.args.get('returnTo'))
    current_app.logger.debug(f"{provider} OAuth authorize: redirecting for organization {organization.slug}")
    return redirect(auth_url)


@bp.route('/<provider>/callback', methods=['GET'])
def callback(provider):
    """
    Handle the provider callback.

    Query Parameters:
        code: Authorization code
        state: State nonce issued by the start endpoint
        error / error_description: Set by the provider when the user declined

    Returns:
        302 to returnTo, or to the dashboard of the organization
    """
    error = request.args.get('error')
    if error:
        current_app.logger.warning(
            f"{provider} OAuth callback error: {error} - {request.args.get('error_description')}"
        )
        raise OAuthFailed(f"provider returned error {error}")

    user, organization, return_to = OAuthService.handle_callback(
        provider,
        request.args.get('code'),
        request.args.get('state'),
    )
    AuthService.create_session(user, organization)
    current_app.logger.info(f"{provider} OAuth login for user {user.id} in organization {organization.slug}")

    return redirect(return_to or f"/#/dashboard?org={quote(organization.slug)}")
