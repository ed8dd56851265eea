"""
Session Store integration

Server-side sessions through Flask-Session. One store, one secret, one
30-day sliding expiry; the cookie attributes are chosen per request from the
connection's protocol (the "secure" and "non-secure" profiles).

The session holds:
    user_id, organization_id, organization_slug  - the authenticated binding
    oauth_state / oauth_provider / oauth_org_id   - pending OAuth login
    oauth_redirect_uri / oauth_created_at
    return_to                                     - post-login redirect
"""
import hmac
import logging
import secrets
import time
from typing import Optional, Tuple

from flask import current_app, request, session
from flask_session.cachelib import CacheLibSessionInterface
from flask_session.redis import RedisSessionInterface

from whirkplace.errors import SessionCorrupted
from whirkplace.extensions import server_session
from whirkplace.security import redact

logger = logging.getLogger(__name__)

OAUTH_STATE_TTL_SECONDS = 600

_BINDING_KEYS = ('user_id', 'organization_id', 'organization_slug')
_OAUTH_KEYS = ('oauth_state', 'oauth_provider', 'oauth_org_id', 'oauth_redirect_uri', 'oauth_created_at')


def is_secure_request() -> bool:
    """True when the client connection is HTTPS (directly or via a proxy)."""
    forwarded = request.headers.get('X-Forwarded-Proto', '')
    if forwarded:
        return forwarded.split(',')[0].strip().lower() == 'https'
    return request.scheme == 'https'


class ConnectionAwareCookieMixin:
    """Cookie attributes follow the protocol of the current request."""

    def get_cookie_secure(self, app):
        return is_secure_request()

    def get_cookie_samesite(self, app):
        return 'None' if is_secure_request() else 'Lax'


class ConnectionAwareRedisSessionInterface(ConnectionAwareCookieMixin, RedisSessionInterface):
    """Redis-backed sessions with the per-request cookie profile."""


class ConnectionAwareCacheLibSessionInterface(ConnectionAwareCookieMixin, CacheLibSessionInterface):
    """cachelib-backed sessions with the per-request cookie profile."""


# SESSION_TYPE -> (interface class, config key holding its client)
SESSION_INTERFACES = {
    'redis': (ConnectionAwareRedisSessionInterface, 'SESSION_REDIS'),
    'cachelib': (ConnectionAwareCacheLibSessionInterface, 'SESSION_CACHELIB'),
}


def init_session_store(app):
    """Attach Flask-Session to the app with per-request cookie profiles."""
    session_type = app.config.get('SESSION_TYPE')
    if session_type not in SESSION_INTERFACES:
        raise RuntimeError(f"Unsupported SESSION_TYPE: {session_type!r}")

    if session_type == 'redis' and not app.config.get('SESSION_REDIS'):
        import redis

        app.config['SESSION_REDIS'] = redis.from_url(app.config['REDIS_URL'])

    server_session.init_app(app)

    interface_class, client_key = SESSION_INTERFACES[session_type]
    app.session_interface = interface_class(
        app=app,
        client=app.config.get(client_key),
        key_prefix=app.config.get('SESSION_KEY_PREFIX', 'session:'),
        use_signer=app.config.get('SESSION_USE_SIGNER', False),
        permanent=app.config.get('SESSION_PERMANENT', True),
    )

    logger.info(
        f"Session store: type={app.config.get('SESSION_TYPE')} "
        f"cookie={app.config.get('SESSION_COOKIE_NAME')} "
        f"lifetime={app.permanent_session_lifetime}"
    )


def get_session_user() -> Optional[dict]:
    """
    The authenticated binding stored in the session, or None.

    Raises:
        SessionCorrupted: If the stored values are not the expected shape
    """
    user_id = session.get('user_id')
    organization_id = session.get('organization_id')
    if user_id is None and organization_id is None:
        return None
    for key in _BINDING_KEYS:
        value = session.get(key)
        if value is not None and not isinstance(value, str):
            raise SessionCorrupted(f"session field {key} has type {type(value).__name__}")
    return {
        'user_id': user_id,
        'organization_id': organization_id,
        'organization_slug': session.get('organization_slug'),
    }


def set_session_user(user_id: str, organization_id: str, organization_slug: Optional[str] = None) -> None:
    """
    Bind an identity and organization to the session.

    On the first login of a session over a secure connection the session id
    is regenerated before the identity is written (session fixation). The
    record is persisted by the session interface before the response leaves
    the process, so an immediate redirect never sees an unsaved session.
    """
    if not session.get('user_id') and is_secure_request():
        current_app.session_interface.regenerate(session)
        logger.info("Session id regenerated on login")

    session['user_id'] = user_id
    session['organization_id'] = organization_id
    if organization_slug:
        session['organization_slug'] = organization_slug
    else:
        session.pop('organization_slug', None)
    session.permanent = True
    session.modified = True
    logger.info(f"Session bound: user_id={user_id} organization_id={organization_id}")


def touch_session() -> None:
    """Push the sliding expiry forward without changing the contents."""
    session.permanent = True
    session.modified = True


def clear_organization_binding() -> None:
    """Drop a stale organization binding but keep the user."""
    session.pop('organization_id', None)
    session.pop('organization_slug', None)
    session.modified = True


def clear_session_user() -> None:
    """Destroy the whole session record (and its cookie), not just the user fields."""
    had_user = session.get('user_id')
    session.clear()
    session.modified = True
    if had_user:
        logger.info(f"Session destroyed for user_id={had_user}")


def store_oauth_state(provider: str, organization_id: str, redirect_uri: str) -> str:
    state = secrets.token_urlsafe(32)
    session['oauth_state'] = state
    session['oauth_provider'] = provider
    session['oauth_org_id'] = organization_id
    session['oauth_redirect_uri'] = redirect_uri
    session['oauth_created_at'] = int(time.time())
    session.modified = True
    logger.debug(f"Stored OAuth state {redact(state)} for provider={provider}")
    return state


def is_safe_return_path(path: Optional[str]) -> bool:
    """Only same-site relative paths; no scheme, no //host, no backslashes."""
    if not path or not path.startswith('/') or path.startswith('//'):
        return False
    return '\\' not in path and '://' not in path


def set_return_to(path: Optional[str]) -> None:
    if is_safe_return_path(path):
        session['return_to'] = path
    else:
        session.pop('return_to', None)
    session.modified = True


def pop_return_to() -> Optional[str]:
    path = session.pop('return_to', None)
    session.modified = True
    return path if is_safe_return_path(path) else None


def pop_oauth_state(provider: str, state: str) -> Optional[Tuple[str, str]]:
    """
    Validate and consume the pending OAuth state.

    Returns:
        (organization_id, redirect_uri) or None if invalid, expired or for
        another provider. The pending state is removed either way.
    """
    stored = {key: session.pop(key, None) for key in _OAUTH_KEYS}
    session.modified = True

    expected = stored['oauth_state']
    if not expected or not state or not hmac.compare_digest(str(expected), str(state)):
        logger.warning(f"OAuth state mismatch for provider={provider}: got {redact(state)}")
        return None
    if stored['oauth_provider'] != provider:
        logger.warning(f"OAuth state issued for {stored['oauth_provider']}, used for {provider}")
        return None
    created_at = stored['oauth_created_at'] or 0
    if time.time() - created_at > OAUTH_STATE_TTL_SECONDS:
        logger.warning(f"OAuth state expired for provider={provider}")
        return None
    if not stored['oauth_org_id'] or not stored['oauth_redirect_uri']:
        return None
    return stored['oauth_org_id'], stored['oauth_redirect_uri']
