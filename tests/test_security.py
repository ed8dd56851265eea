"""
Tests for the security gate.

These tests verify:
- Gate predicates follow runtime mode and flags on every call
- Startup validation escalates by deployment context
- Strict mode refuses to build the app
"""
from unittest.mock import MagicMock

import pytest

from whirkplace.errors import StartupSecurityError
from whirkplace.security import (
    SecurityConfig,
    backdoor_auth_allowed,
    development_auth_enabled,
    get_security_config,
    redact,
    validate_startup_security,
)

SECRETS = {'backdoor_user': 'ops', 'backdoor_key': 'k3y-material'}


class TestGatePredicates:
    """Test suite for development_auth_enabled / backdoor_auth_allowed."""

    @pytest.mark.parametrize('mode,flag,expected', [
        ('development', True, True),
        ('development', False, False),
        ('production', True, False),
        ('test', True, False),
    ])
    def test_development_auth_needs_mode_and_flag(self, mode, flag, expected):
        cfg = SecurityConfig(runtime_mode=mode, dev_auth_flag=flag)
        assert development_auth_enabled(cfg) is expected

    def test_backdoor_allowed_in_development(self):
        cfg = SecurityConfig(runtime_mode='development', dev_auth_flag=True)
        assert backdoor_auth_allowed(cfg) is True

    def test_backdoor_needs_override_in_production(self):
        assert backdoor_auth_allowed(SecurityConfig(runtime_mode='production')) is False
        assert backdoor_auth_allowed(
            SecurityConfig(runtime_mode='production', production_backdoor_flag=True)
        ) is True

    def test_override_flag_ignored_outside_production(self):
        cfg = SecurityConfig(runtime_mode='staging', production_backdoor_flag=True)
        assert backdoor_auth_allowed(cfg) is False

    def test_from_mapping_defaults_to_production(self):
        cfg = SecurityConfig.from_mapping({})
        assert cfg.is_production
        assert development_auth_enabled(cfg) is False

    def test_repr_hides_secrets(self):
        cfg = SecurityConfig(runtime_mode='production', **SECRETS)
        assert 'k3y-material' not in repr(cfg)

    def test_app_holds_config_built_at_startup(self, make_app):
        app = make_app(APP_ENV='development', DEV_AUTH_ENABLED=True)
        cfg = get_security_config()
        assert cfg is get_security_config(app)
        assert development_auth_enabled(cfg)


class TestRedact:

    @pytest.mark.parametrize('value,expected', [
        (None, '<absent>'),
        ('', '<absent>'),
        ('abc', '***'),
        ('supersecret', 'su***'),
    ])
    def test_redact(self, value, expected):
        assert redact(value) == expected


class TestStartupValidation:
    """Test suite for validate_startup_security escalation."""

    def test_development_is_ok(self):
        log = MagicMock()
        report = validate_startup_security(SecurityConfig(runtime_mode='development', **SECRETS), log)
        assert report.level == 'ok'
        log.error.assert_not_called()

    def test_production_without_secrets_is_ok(self):
        report = validate_startup_security(SecurityConfig(runtime_mode='production'), MagicMock())
        assert report.level == 'ok'
        assert report.findings == []

    @pytest.mark.parametrize('context', ['preview', 'review'])
    def test_preview_contexts_are_informational(self, context):
        log = MagicMock()
        report = validate_startup_security(
            SecurityConfig(runtime_mode='production', deploy_context=context, **SECRETS), log
        )
        assert report.level == 'info'
        log.info.assert_called_once()

    def test_deployment_context_warns(self):
        log = MagicMock()
        report = validate_startup_security(
            SecurityConfig(runtime_mode='production', deploy_context='deployment', **SECRETS), log
        )
        assert report.level == 'warning'
        assert report.findings == ['BACKDOOR_USER', 'BACKDOOR_KEY']

    def test_override_flag_warns(self):
        log = MagicMock()
        report = validate_startup_security(
            SecurityConfig(runtime_mode='production', production_backdoor_flag=True, **SECRETS), log
        )
        assert report.level == 'warning'
        log.warning.assert_called_once()

    def test_plain_production_logs_guidance(self):
        log = MagicMock()
        report = validate_startup_security(SecurityConfig(runtime_mode='production', **SECRETS), log)
        assert report.level == 'error'
        message = log.error.call_args[0][0]
        assert 'ALLOW_PRODUCTION_BACKDOOR' in message
        assert 'k3y-material' not in message

    def test_skip_flag_bypasses_validation(self):
        log = MagicMock()
        report = validate_startup_security(
            SecurityConfig(runtime_mode='production', skip_validation=True, **SECRETS), log
        )
        assert report.skipped is True
        log.warning.assert_called_once()
        log.error.assert_not_called()

    @pytest.mark.parametrize('extra', [{}, {'production_backdoor_flag': True}])
    def test_strict_mode_raises(self, extra):
        cfg = SecurityConfig(runtime_mode='production', strict_mode=True, **SECRETS, **extra)
        with pytest.raises(StartupSecurityError):
            validate_startup_security(cfg, MagicMock())

    def test_strict_mode_still_allows_preview(self):
        cfg = SecurityConfig(runtime_mode='production', strict_mode=True, deploy_context='preview', **SECRETS)
        assert validate_startup_security(cfg, MagicMock()).level == 'info'

    def test_strict_mode_aborts_create_app(self, make_app):
        with pytest.raises(StartupSecurityError):
            make_app(APP_ENV='production', BACKDOOR_USER='ops', BACKDOOR_KEY='k3y-material', SECURITY_STRICT_MODE=True)

    def test_non_strict_production_still_starts(self, make_app):
        app = make_app(APP_ENV='production', BACKDOOR_USER='ops', BACKDOOR_KEY='k3y-material')
        assert app is not None
