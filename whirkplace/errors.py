"""
Auth error taxonomy and the JSON error handlers for it.

Client-facing messages are generic; the detail passed to an
exception is for logs only and is never serialised.
"""
from flask import jsonify, request
from werkzeug.exceptions import HTTPException


class AuthError(Exception):
    status_code = 401
    code = 'AUTH_ERROR'
    message = 'Authentication failed'

    def __init__(self, detail=None):
        super().__init__(detail or self.message)
        self.detail = detail

    def to_response(self):
        return jsonify({"error": self.message, "code": self.code}), self.status_code


class AuthenticationRequired(AuthError):
    status_code = 401
    code = 'AUTHENTICATION_REQUIRED'
    message = 'Authentication required. Please sign in.'


class InvalidCredentials(AuthError):
    status_code = 401
    code = 'INVALID_CREDENTIALS'
    message = 'Invalid credentials'


class InsufficientRole(AuthError):
    status_code = 403
    code = 'INSUFFICIENT_ROLE'
    message = 'Access denied'


class OrganizationNotFound(AuthError):
    status_code = 404
    code = 'ORGANIZATION_NOT_FOUND'
    message = 'Organization not found'


class OrganizationInactive(AuthError):
    status_code = 403
    code = 'ORGANIZATION_INACTIVE'
    message = 'Organization is not active'


class FeatureRemoved(AuthError):
    status_code = 400
    code = 'FEATURE_REMOVED'
    message = 'This feature has been removed'


class SessionCorrupted(AuthError):
    status_code = 401
    code = 'SESSION_CORRUPTED'
    message = 'Your session is no longer valid. Please sign in again.'


class ProviderUnavailable(AuthError):
    status_code = 400
    code = 'PROVIDER_UNAVAILABLE'
    message = 'This sign-in method is not available'


class OAuthFailed(AuthError):
    status_code = 400
    code = 'OAUTH_FAILED'
    message = 'Sign-in with the identity provider failed'


class StartupSecurityError(RuntimeError):
    """Raised by the startup validator when strict mode refuses a configuration."""


def register_error_handlers(app):

    @app.errorhandler(SessionCorrupted)
    def handle_session_corrupted(err):
        from whirkplace.services.session_store import clear_session_user

        app.logger.warning(f"Session corrupted, destroying it: {err.detail}")
        clear_session_user()
        return err.to_response()

    @app.errorhandler(AuthError)
    def handle_auth_error(err):
        app.logger.info(f"{err.code} on {request.method} {request.path}: {err.detail or err.message}")
        return err.to_response()

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        if isinstance(err, HTTPException):
            return jsonify({"error": err.description}), err.code
        app.logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "Internal server error"}), 500
