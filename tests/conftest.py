"""
Pytest configuration and fixtures for testing.

This module provides:
- An application factory with per-test configuration overrides
- SQLite in-memory database and an in-process session store
- Organization / user factories
"""
from typing import Callable

import pytest
from cachelib import SimpleCache
from werkzeug.security import generate_password_hash

from whirkplace import create_app, storage
from whirkplace.config import Config
from whirkplace.extensions import db
from whirkplace.models import Organization, User
from whirkplace.services.organization_resolver import ensure_default_organization

from tests.helpers import DEFAULT_PASSWORD


class UnitTestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'

    SESSION_TYPE = 'cachelib'

    APP_ENV = 'development'
    DEV_AUTH_ENABLED = False
    ALLOW_PRODUCTION_BACKDOOR = False
    BACKDOOR_USER = None
    BACKDOOR_KEY = None
    BACKDOOR_PROFILE_EMAIL = None
    BACKDOOR_PROFILE_NAME = 'Development Admin'
    SECURITY_STRICT_MODE = False
    SKIP_SECURITY_VALIDATION = False
    DEPLOY_CONTEXT = None

    BASE_DOMAIN = 'example.com'
    SUPER_ADMIN_EMAIL = None

    SLACK_CLIENT_ID = None
    SLACK_CLIENT_SECRET = None
    SLACK_REDIRECT_URI = None
    MICROSOFT_CLIENT_ID = None
    MICROSOFT_CLIENT_SECRET = None
    MICROSOFT_TENANT_ID = None
    MICROSOFT_REDIRECT_URI = None
    OAUTH_REDIRECT_BASE_URL = None


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================


@pytest.fixture
def make_app():
    """
    Build an app with config overrides; its app context stays pushed for the test.

    Usage:
        app = make_app(APP_ENV='production', ALLOW_PRODUCTION_BACKDOOR=True)
    """
    created = []

    def _make(**overrides):
        attrs = dict(overrides)
        attrs.setdefault('SESSION_CACHELIB', SimpleCache())
        config_class = type('OverrideConfig', (UnitTestConfig,), attrs)
        app = create_app(config_class)
        ctx = app.app_context()
        ctx.push()
        db.create_all()
        created.append(ctx)
        return app

    yield _make

    for ctx in reversed(created):
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture
def app_config():
    """Config overrides for the `app` fixture; override per module, class or via parametrize."""
    return {}


@pytest.fixture
def app(make_app, app_config):
    return make_app(**app_config)


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# DATA FIXTURES
# =============================================================================


@pytest.fixture
def org_factory(app) -> Callable[..., Organization]:
    def _create(slug, **fields):
        data = {'name': slug.title(), 'slug': slug, 'onboarding_status': 'completed'}
        data.update(fields)
        return storage.create_organization(data)

    return _create


@pytest.fixture
def user_factory(app) -> Callable[..., User]:
    def _create(organization, email, password=DEFAULT_PASSWORD, **fields):
        data = {'email': email, 'name': email.split('@')[0].title()}
        if password:
            data['password_hash'] = generate_password_hash(password)
        data.update(fields)
        return storage.create_user(organization.id, data)

    return _create


@pytest.fixture
def default_org(app):
    return ensure_default_organization()


@pytest.fixture
def acme(org_factory):
    return org_factory('acme')


