from functools import wraps

from flask import g, jsonify, request

from whirkplace.services.organization_resolver import resolve_organization

# Endpoints that must answer even when no organization can be resolved
UNSCOPED_ENDPOINTS = {'health', 'static', 'auth.logout', 'auth.cleanup_session'}


def init_organization_context(app):
    """Resolve the tenant for every request before any route handler runs."""

    @app.before_request
    def bind_organization():
        g.org_id = None
        g.organization = None
        g.current_user = None
        if request.endpoint in UNSCOPED_ENDPOINTS or request.method == 'OPTIONS':
            return None
        organization = resolve_organization()
        g.org_id = organization.id
        g.organization = organization
        return None


def require_organization(fn):
    """Reject the request when no organization context was resolved."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not getattr(g, 'org_id', None):
            return jsonify({"error": "Organization context required but not found"}), 400
        return fn(*args, **kwargs)

    return wrapper
