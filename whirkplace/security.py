"""
Security Gate

Decides whether the non-primary authentication paths (backdoor, development
header, development cookie) may run in the current process, and checks the
configuration for development-only secrets at startup.

All predicates take the SecurityConfig built once by create_app() and are
evaluated on every call; nothing here caches a decision at import time.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app

from whirkplace.errors import StartupSecurityError

logger = logging.getLogger(__name__)

MODE_DEVELOPMENT = 'development'
MODE_PRODUCTION = 'production'

PREVIEW_CONTEXTS = ('preview', 'review')
DEPLOYMENT_CONTEXT = 'deployment'

EXTENSION_KEY = 'whirkplace.security'


@dataclass(frozen=True)
class SecurityConfig:
    """Immutable view of the security-relevant settings."""

    runtime_mode: str = MODE_PRODUCTION
    dev_auth_flag: bool = False
    production_backdoor_flag: bool = False
    backdoor_user: Optional[str] = field(default=None, repr=False)
    backdoor_key: Optional[str] = field(default=None, repr=False)
    backdoor_profile_email: Optional[str] = field(default=None, repr=False)
    backdoor_profile_name: Optional[str] = None
    strict_mode: bool = False
    skip_validation: bool = False
    deploy_context: Optional[str] = None

    @classmethod
    def from_mapping(cls, config):
        return cls(
            runtime_mode=(config.get('APP_ENV') or MODE_PRODUCTION).strip().lower(),
            dev_auth_flag=bool(config.get('DEV_AUTH_ENABLED')),
            production_backdoor_flag=bool(config.get('ALLOW_PRODUCTION_BACKDOOR')),
            backdoor_user=config.get('BACKDOOR_USER') or None,
            backdoor_key=config.get('BACKDOOR_KEY') or None,
            backdoor_profile_email=config.get('BACKDOOR_PROFILE_EMAIL') or None,
            backdoor_profile_name=config.get('BACKDOOR_PROFILE_NAME') or None,
            strict_mode=bool(config.get('SECURITY_STRICT_MODE')),
            skip_validation=bool(config.get('SKIP_SECURITY_VALIDATION')),
            deploy_context=config.get('DEPLOY_CONTEXT') or None,
        )

    @property
    def is_development(self) -> bool:
        return self.runtime_mode == MODE_DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.runtime_mode == MODE_PRODUCTION

    @property
    def backdoor_configured(self) -> bool:
        return bool(self.backdoor_user and self.backdoor_key)


def get_security_config(app=None) -> SecurityConfig:
    """The SecurityConfig built by create_app() for this application."""
    app = app or current_app
    return app.extensions[EXTENSION_KEY]


def development_auth_enabled(config: SecurityConfig) -> bool:
    return config.is_development and config.dev_auth_flag


def backdoor_auth_allowed(config: SecurityConfig) -> bool:
    if development_auth_enabled(config):
        return True
    return config.is_production and config.production_backdoor_flag


def redact(value: Optional[str]) -> str:
    """Loggable stand-in for a secret: presence plus at most two characters."""
    if not value:
        return '<absent>'
    if len(value) <= 4:
        return '***'
    return f"{value[:2]}***"


@dataclass
class StartupReport:
    level: str
    findings: List[str]
    skipped: bool = False


def _development_secrets(config: SecurityConfig) -> List[str]:
    present = []
    if config.backdoor_user:
        present.append('BACKDOOR_USER')
    if config.backdoor_key:
        present.append('BACKDOOR_KEY')
    if config.backdoor_profile_email:
        present.append('BACKDOOR_PROFILE_EMAIL')
    return present


def validate_startup_security(config: SecurityConfig, log: Optional[logging.Logger] = None) -> StartupReport:
    """
    Scan for development-only secrets while running in production.

    Non-blocking by default: findings escalate from INFO (preview/review
    deployments) to WARNING (deployment context, or the production override
    flag is set) to ERROR with remediation steps (plain production). With
    strict mode on, the WARNING and ERROR cases raise StartupSecurityError
    instead. The bypass flag skips validation entirely.

    Returns:
        StartupReport describing what was found and at which level

    Raises:
        StartupSecurityError: Strict mode and a dangerous configuration
    """
    log = log or logger

    if config.skip_validation:
        log.warning(
            "SECURITY VALIDATION SKIPPED (SKIP_SECURITY_VALIDATION is set). "
            "Development-only authentication secrets will not be checked."
        )
        return StartupReport(level='skipped', findings=[], skipped=True)

    if not config.is_production:
        return StartupReport(level='ok', findings=[])

    findings = _development_secrets(config)
    if not findings:
        return StartupReport(level='ok', findings=[])

    names = ', '.join(findings)

    if config.deploy_context in PREVIEW_CONTEXTS:
        log.info(f"Development auth secrets present in {config.deploy_context} environment: {names}")
        return StartupReport(level='info', findings=findings)

    if config.deploy_context == DEPLOYMENT_CONTEXT or config.production_backdoor_flag:
        message = (
            f"Development auth secrets present in production: {names}. "
            f"Backdoor login is {'ENABLED' if config.production_backdoor_flag else 'disabled'} "
            "by ALLOW_PRODUCTION_BACKDOOR."
        )
        if config.strict_mode:
            raise StartupSecurityError(message)
        log.warning(message)
        return StartupReport(level='warning', findings=findings)

    guidance = (
        f"Development-only secrets found in a production environment: {names}.\n"
        "  1. Remove BACKDOOR_USER, BACKDOOR_KEY and BACKDOOR_PROFILE_EMAIL from the production environment.\n"
        "  2. If emergency admin access is genuinely required, set ALLOW_PRODUCTION_BACKDOOR=true "
        "and rotate BACKDOOR_KEY afterwards.\n"
        "  3. Set SECURITY_STRICT_MODE=true to refuse to start with this configuration."
    )
    if config.strict_mode:
        raise StartupSecurityError(guidance)
    log.error(guidance)
    return StartupReport(level='error', findings=findings)
