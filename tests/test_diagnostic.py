"""
Tests for the auth diagnostic endpoints.

These tests verify:
- The report is hidden (404) unless development auth is on or a super admin asks
- Only the presence of credentials is reported, never their values
- Integrity issues are detected
- test-backdoor exists only where the backdoor is allowed
"""
import pytest

from whirkplace.extensions import db
from whirkplace.models import Organization
from whirkplace.services.auth_strategies import HEADER_BACKDOOR_KEY, HEADER_BACKDOOR_USER

from tests.helpers import login

BACKDOOR_USER = 'ops.admin@whirkplace.test'
BACKDOOR_KEY = 'diag-backdoor-key-456'
SLACK_SECRET = 'slack-secret-value-789'

DEV_CONFIG = {
    'APP_ENV': 'development',
    'DEV_AUTH_ENABLED': True,
    'BACKDOOR_USER': BACKDOOR_USER,
    'BACKDOOR_KEY': BACKDOOR_KEY,
    'SLACK_CLIENT_ID': 'slack-client',
    'SLACK_CLIENT_SECRET': SLACK_SECRET,
}

DIAGNOSTIC_URL = '/api/auth/diagnostic'
TEST_BACKDOOR_URL = '/api/auth/diagnostic/test-backdoor'


class TestDiagnosticInDevelopment:
    """Test suite for GET /api/auth/diagnostic with development auth on."""

    @pytest.fixture
    def app_config(self):
        return dict(DEV_CONFIG)

    def test_report_sections(self, client, default_org):
        response = client.get(DIAGNOSTIC_URL)
        assert response.status_code == 200
        data = response.get_json()
        for section in ('timestamp', 'environment', 'credentials', 'sessionInfo', 'currentRequest', 'database', 'recommendations'):
            assert section in data
        assert data['environment']['developmentAuthEnabled'] is True
        assert data['credentials']['slack'] == {'clientId': True, 'clientSecret': True, 'configured': True}
        assert data['credentials']['backdoor']['keyConfigured'] is True

    def test_no_secret_values(self, client, default_org):
        body = client.get(
            DIAGNOSTIC_URL,
            headers={HEADER_BACKDOOR_USER: BACKDOOR_USER, HEADER_BACKDOOR_KEY: 'wrong-key-value'},
        ).get_data(as_text=True)
        assert BACKDOOR_KEY not in body
        assert SLACK_SECRET not in body
        assert 'wrong-key-value' not in body
        assert '[PRESENT]' in body

    def test_missing_super_admin_issue(self, client, default_org):
        issues = client.get(DIAGNOSTIC_URL).get_json()['database']['issues']
        assert 'No super admin users found' in issues

    def test_duplicate_active_slug_issue(self, client, acme):
        db.session.add(Organization(name='Acme Again', slug='acme', onboarding_status='completed'))
        db.session.commit()
        issues = client.get(DIAGNOSTIC_URL).get_json()['database']['issues']
        assert any('Duplicate active organization slug: acme' in issue for issue in issues)

    def test_provider_enabled_but_unconfigured_issue(self, client, org_factory):
        org_factory('contoso', enable_microsoft_auth=True)
        issues = client.get(DIAGNOSTIC_URL).get_json()['database']['issues']
        assert any('Microsoft login enabled' in issue for issue in issues)

    def test_healthy_setup(self, client, default_org, user_factory):
        user_factory(default_org, 'root@whirkplace.test', is_super_admin=True)
        data = client.get(DIAGNOSTIC_URL).get_json()
        assert data['database']['issues'] == []
        assert data['recommendations'][0]['priority'] == 'INFO'
        assert data['database']['superAdmins'][0]['email'] == 'root@whirkplace.test'
        assert 'passwordHash' not in data['database']['superAdmins'][0]


class TestDiagnosticInProduction:

    @pytest.fixture
    def app_config(self):
        return {'APP_ENV': 'production'}

    def test_anonymous_gets_404(self, client, default_org):
        assert client.get(DIAGNOSTIC_URL).status_code == 404

    def test_admin_gets_404(self, client, acme, user_factory):
        user_factory(acme, 'boss@acme.test', role='admin')
        login(client, 'boss@acme.test')
        assert client.get(DIAGNOSTIC_URL).status_code == 404

    def test_super_admin(self, client, acme, user_factory):
        user_factory(acme, 'root@acme.test', is_super_admin=True)
        login(client, 'root@acme.test')
        response = client.get(DIAGNOSTIC_URL)
        assert response.status_code == 200
        assert response.get_json()['environment']['runtimeMode'] == 'production'

    def test_development_flag_has_no_effect(self, make_app):
        client = make_app(APP_ENV='production', DEV_AUTH_ENABLED=True).test_client()
        assert client.get(DIAGNOSTIC_URL).status_code == 404

    def test_backdoor_secret_issue(self, make_app, org_factory, user_factory):
        app = make_app(APP_ENV='production', BACKDOOR_USER='ops', BACKDOOR_KEY='prod-key')
        user_factory(org_factory('acme'), 'root@acme.test', is_super_admin=True)
        client = app.test_client()
        login(client, 'root@acme.test')
        body = client.get(DIAGNOSTIC_URL).get_data(as_text=True)
        assert 'Backdoor secrets are present in a production environment' in body
        assert 'prod-key' not in body


class TestTestBackdoor:
    """Test suite for POST /api/auth/diagnostic/test-backdoor."""

    def test_hidden_when_backdoor_not_allowed(self, client, default_org):
        response = client.post(TEST_BACKDOOR_URL, json={'username': 'x', 'key': 'y'})
        assert response.status_code == 404

    def test_hidden_in_production_without_override(self, make_app):
        client = make_app(APP_ENV='production', BACKDOOR_USER='ops', BACKDOOR_KEY='prod-key').test_client()
        response = client.post(TEST_BACKDOOR_URL, json={'username': 'ops', 'key': 'prod-key'})
        assert response.status_code == 404

    @pytest.mark.parametrize('app_config', [DEV_CONFIG])
    def test_development_login(self, client, default_org):
        response = client.post(TEST_BACKDOOR_URL, json={'username': BACKDOOR_USER, 'key': BACKDOOR_KEY})
        assert response.status_code == 200
        data = response.get_json()
        assert data['user']['email'] == BACKDOOR_USER
        assert data['user']['role'] == 'admin'
        assert data['organization']['id'] == default_org.id

        me = client.get('/api/auth/me')
        assert me.status_code == 200
        assert me.get_json()['user']['id'] == data['user']['id']

    @pytest.mark.parametrize('app_config', [DEV_CONFIG])
    def test_wrong_key(self, client, default_org):
        response = client.post(TEST_BACKDOOR_URL, json={'username': BACKDOOR_USER, 'key': 'nope'})
        assert response.status_code == 401
        assert response.get_json()['code'] == 'INVALID_CREDENTIALS'

    @pytest.mark.parametrize('app_config', [DEV_CONFIG])
    def test_validation(self, client, default_org):
        response = client.post(TEST_BACKDOOR_URL, json={'username': BACKDOOR_USER})
        assert response.status_code == 400

    def test_production_override_without_admin(self, make_app):
        client = make_app(
            APP_ENV='production', ALLOW_PRODUCTION_BACKDOOR=True, BACKDOOR_USER='ops', BACKDOOR_KEY='prod-key',
        ).test_client()
        response = client.post(TEST_BACKDOOR_URL, json={'username': 'ops', 'key': 'prod-key'})
        assert response.status_code == 401

    def test_production_override_with_admin(self, make_app, org_factory, user_factory):
        app = make_app(
            APP_ENV='production', ALLOW_PRODUCTION_BACKDOOR=True, BACKDOOR_USER='ops', BACKDOOR_KEY='prod-key',
        )
        acme = org_factory('acme')
        admin = user_factory(acme, 'ops@acme.test', username='ops', role='admin')
        response = app.test_client().post(TEST_BACKDOOR_URL, json={'username': 'ops', 'key': 'prod-key'})
        assert response.status_code == 200
        assert response.get_json()['user']['id'] == admin.id
        assert response.get_json()['organization']['id'] == acme.id
