from flask import Blueprint, current_app, g, jsonify, request, session
from marshmallow import ValidationError

from whirkplace import storage
from whirkplace.errors import SessionCorrupted
from whirkplace.middleware.auth import authenticate_user
from whirkplace.schemas.auth_schema import (
    LoginSchema,
    SwitchOrganizationSchema,
    organization_schema,
    sanitize_user,
)
from whirkplace.services.auth_service import AuthService
from whirkplace.services.session_store import clear_session_user, get_session_user

# Create Blueprint
bp = Blueprint('auth', __name__)

# Initialize schemas
login_schema = LoginSchema()
switch_schema = SwitchOrganizationSchema()


@bp.route('/login', methods=['POST'])
def login():
    """
    Password Login Endpoint

    Request Body:
        {
            "email": "user@example.com",
            "password": "SecurePass123",
            "organization_slug": "acme"      (optional)
        }

    Returns:
        200: Session established, user and organization returned
        400: Validation error
        401: Invalid credentials
    """
    try:
        validated_data = login_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error": "Validation failed", "details": err.messages}), 400

    user, organization = AuthService.authenticate_password(
        validated_data['email'],
        validated_data['password'],
        validated_data.get('organization_slug'),
    )
    AuthService.create_session(user, organization)

    return jsonify({
        "message": "Login successful",
        "user": sanitize_user(user),
        "organization": organization_schema.dump(organization),
    }), 200


@bp.route('/logout', methods=['POST'])
def logout():
    """Destroy the session record and its cookie."""
    AuthService.destroy_session()
    return jsonify({"message": "Logged out successfully"}), 200


@bp.route('/me', methods=['GET'])
@authenticate_user
def me():
    return jsonify({
        "user": sanitize_user(g.current_user),
        "organization": organization_schema.dump(g.organization),
    }), 200


@bp.route('/my-organizations', methods=['GET'])
@authenticate_user
def my_organizations():
    """
    Every active organization the signed-in person belongs to (by email).

    Returns:
        {
            "organizations": [{"organization": {...}, "user": {...}, "isCurrent": true}],
            "currentOrganizationId": "..."
        }
    """
    memberships = AuthService.list_memberships(g.current_user)
    current_app.logger.debug(f"Found {len(memberships)} organizations for user {g.current_user.id}")

    return jsonify({
        "organizations": [
            {
                "organization": organization_schema.dump(organization),
                "user": sanitize_user(member),
                "isCurrent": organization.id == g.org_id,
            }
            for member, organization in memberships
        ],
        "currentOrganizationId": g.org_id,
    }), 200


@bp.route('/switch-organization', methods=['POST'])
@authenticate_user
def switch_organization():
    """
    Rebind the session to another organization of the same person.

    Request Body:
        {"organizationId": "..."}

    Returns:
        200: Switched (or already there)
        400: Validation error
        403: No active membership in the target organization
    """
    try:
        validated_data = switch_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error": "Validation failed", "details": err.messages}), 400

    target_id = validated_data['organizationId']
    if target_id == g.org_id:
        return jsonify({
            "message": "Already in this organization",
            "organization": organization_schema.dump(g.organization),
            "user": sanitize_user(g.current_user),
        }), 200

    member, organization = AuthService.switch_organization(g.current_user, target_id)
    current_app.logger.info(
        f"[AUDIT] Organization switch: user={g.current_user.id} from={g.org_id} to={organization.id}"
    )
    return jsonify({
        "message": "Successfully switched organization",
        "organization": organization_schema.dump(organization),
        "user": sanitize_user(member),
    }), 200


@bp.route('/session-info', methods=['GET'])
@authenticate_user
def session_info():
    binding = get_session_user() or {}
    return jsonify({
        "session": {
            "userId": binding.get('user_id'),
            "organizationId": binding.get('organization_id'),
            "organizationSlug": binding.get('organization_slug'),
            "permanent": session.permanent,
        },
        "user": sanitize_user(g.current_user),
        "organization": organization_schema.dump(g.organization),
    }), 200


@bp.route('/cleanup-session', methods=['POST'])
def cleanup_session():
    """
    Detect and destroy a session that references a malformed value or a
    missing organization. Runs without organization resolution so the raw
    session can be inspected.
    """
    try:
        binding = get_session_user()
    except SessionCorrupted as err:
        current_app.logger.warning(f"[CLEANUP] Corrupted session cleared: {err.detail}")
        clear_session_user()
        return jsonify({"cleaned": True, "message": "Corrupted session detected and cleared. Please log in again."}), 200

    organization_id = (binding or {}).get('organization_id')
    if organization_id and storage.get_organization(organization_id) is None:
        current_app.logger.warning(f"[CLEANUP] Session organization {organization_id} not found, clearing session")
        clear_session_user()
        return jsonify({
            "cleaned": True,
            "message": "Invalid organization in session. Session cleared.",
            "invalidOrgId": organization_id,
        }), 200

    return jsonify({"cleaned": False, "message": "Session is valid.", "organizationId": organization_id}), 200
