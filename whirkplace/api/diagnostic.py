"""
Auth Diagnostic Endpoints

Operational troubleshooting for the authentication setup. Reports which
settings are present (never their values), the session binding, the
organizations and super admins, and known data-integrity issues.
"""
from collections import Counter
from datetime import datetime

from flask import Blueprint, abort, current_app, g, jsonify, request, session
from marshmallow import ValidationError

from whirkplace import storage
from whirkplace.errors import InvalidCredentials
from whirkplace.schemas.auth_schema import BackdoorTestSchema, organization_schema, sanitize_user, sanitize_users
from whirkplace.security import backdoor_auth_allowed, development_auth_enabled, get_security_config, redact
from whirkplace.services.auth_service import AuthService
from whirkplace.services.auth_strategies import (
    HEADER_BACKDOOR_KEY,
    HEADER_BACKDOOR_USER,
    resolve_backdoor_identity,
    verify_backdoor_credentials,
)
from whirkplace.services.oauth_service import OAuthService

bp = Blueprint('diagnostic', __name__)

backdoor_test_schema = BackdoorTestSchema()


def _diagnostic_allowed(config):
    if development_auth_enabled(config):
        return True
    outcome = AuthService.authenticate_request(g.organization, config)
    return outcome.authenticated and outcome.user.is_super_admin


def _find_issues(config, organizations, super_admins, slack_configured, microsoft_configured):
    issues = []
    recommendations = []

    active_slugs = Counter(org.slug for org in organizations if org.is_active)
    for slug, count in sorted(active_slugs.items()):
        if count > 1:
            issues.append(f"Duplicate active organization slug: {slug} ({count} organizations)")
            recommendations.append({'priority': 'HIGH', 'action': f"Deactivate or rename duplicates of '{slug}'"})

    default_id = current_app.config['DEFAULT_ORGANIZATION_ID']
    default_slug = current_app.config['DEFAULT_ORGANIZATION_SLUG']
    if not any(org.id == default_id or org.slug == default_slug for org in organizations):
        issues.append(f"Default organization '{default_slug}' not found")
        recommendations.append({'priority': 'MEDIUM', 'action': 'It is created on the next anonymous request'})

    if not super_admins:
        issues.append('No super admin users found')
        recommendations.append({'priority': 'HIGH', 'action': 'Run: flask ensure-super-admin --email <email>'})

    if not slack_configured and any(org.enable_slack_auth for org in organizations):
        issues.append('Slack login enabled for an organization but the Slack OAuth client is not configured')
    if not microsoft_configured and any(org.enable_microsoft_auth for org in organizations):
        issues.append('Microsoft login enabled for an organization but the Microsoft OAuth client is not configured')

    if config.is_production and (config.backdoor_user or config.backdoor_key):
        issues.append('Backdoor secrets are present in a production environment')
        recommendations.append({'priority': 'HIGH', 'action': 'Remove BACKDOOR_USER and BACKDOOR_KEY from production'})

    if not issues:
        recommendations.append({'priority': 'INFO', 'action': 'Authentication system appears properly configured'})
    return issues, recommendations


@bp.route('', methods=['GET'])
def diagnostic():
    """
    Configuration presence and integrity report.

    Reachable when development authentication is enabled, or by an
    authenticated super admin. Everyone else gets 404.
    """
    config = get_security_config()
    if not _diagnostic_allowed(config):
        abort(404)

    current_app.logger.info("Running authentication diagnostic")

    app_config = current_app.config
    slack_configured = OAuthService.is_configured('slack')
    microsoft_configured = OAuthService.is_configured('microsoft')
    organizations = storage.get_all_organizations()
    super_admins = storage.get_super_admins()
    issues, recommendations = _find_issues(config, organizations, super_admins, slack_configured, microsoft_configured)

    return jsonify({
        "timestamp": datetime.utcnow().isoformat(),
        "environment": {
            "runtimeMode": config.runtime_mode,
            "deployContext": config.deploy_context,
            "developmentAuthEnabled": development_auth_enabled(config),
            "backdoorAuthAllowed": backdoor_auth_allowed(config),
            "strictMode": config.strict_mode,
        },
        "credentials": {
            "slack": {
                "clientId": bool(app_config.get('SLACK_CLIENT_ID')),
                "clientSecret": bool(app_config.get('SLACK_CLIENT_SECRET')),
                "configured": slack_configured,
            },
            "microsoft": {
                "clientId": bool(app_config.get('MICROSOFT_CLIENT_ID')),
                "clientSecret": bool(app_config.get('MICROSOFT_CLIENT_SECRET')),
                "tenantId": bool(app_config.get('MICROSOFT_TENANT_ID')),
                "configured": microsoft_configured,
            },
            "backdoor": {
                "userConfigured": bool(config.backdoor_user),
                "keyConfigured": bool(config.backdoor_key),
                "profileEmailConfigured": bool(config.backdoor_profile_email),
                "allowed": backdoor_auth_allowed(config),
            },
        },
        "sessionInfo": {
            "hasUser": bool(session.get('user_id')),
            "userId": session.get('user_id'),
            "organizationId": session.get('organization_id'),
        },
        "currentRequest": {
            "host": request.host,
            "scheme": request.scheme,
            "headers": {
                HEADER_BACKDOOR_USER: '[PRESENT]' if request.headers.get(HEADER_BACKDOOR_USER) else None,
                HEADER_BACKDOOR_KEY: '[PRESENT]' if request.headers.get(HEADER_BACKDOOR_KEY) else None,
            },
        },
        "database": {
            "organizations": [organization_schema.dump(org) for org in organizations],
            "superAdmins": sanitize_users(super_admins),
            "issues": issues,
        },
        "recommendations": recommendations,
    }), 200


@bp.route('/test-backdoor', methods=['POST'])
def test_backdoor():
    """
    Try the backdoor credential pair and establish a session with it.

    Request Body:
        {"username": "...", "key": "..."}

    Returns:
        200: Session established for the resolved admin
        400: Validation error
        401: Credentials do not match, or no eligible admin exists
        404: Backdoor authentication is not allowed in this environment
    """
    config = get_security_config()
    if not backdoor_auth_allowed(config):
        abort(404)

    try:
        validated_data = backdoor_test_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error": "Validation failed", "details": err.messages}), 400

    if not verify_backdoor_credentials(config, validated_data['username'], validated_data['key']):
        raise InvalidCredentials(f"test-backdoor mismatch for user {redact(validated_data['username'])}")

    identity = resolve_backdoor_identity(config, g.organization)
    if identity is None:
        raise InvalidCredentials('test-backdoor found no eligible admin identity')
    organization = storage.get_organization(identity.organization_id)
    if organization is None or not organization.is_active:
        raise InvalidCredentials(f"test-backdoor identity organization {identity.organization_id} is not active")

    AuthService.create_session(identity, organization)
    current_app.logger.warning(f"Backdoor test login as user {identity.id} in organization {organization.slug}")
    return jsonify({
        "success": True,
        "message": "Backdoor login successful",
        "user": sanitize_user(identity),
        "organization": organization_schema.dump(organization),
    }), 200
