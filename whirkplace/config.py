import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()


def _flag(name, default='false'):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Database - Render provides this as DATABASE_URL
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')

    # Fix for Render's postgres:// vs postgresql://
    if SQLALCHEMY_DATABASE_URI and SQLALCHEMY_DATABASE_URI.startswith('postgres://'):
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv('SECRET_KEY')

    CORS_ORIGINS = [origin.strip() for origin in os.getenv('CORS_ORIGINS', '*').split(',')]

    # Runtime mode: development | production | test
    APP_ENV = os.getenv('APP_ENV', 'development').strip().lower()

    # Server-side sessions (Flask-Session). Redis in deployment.
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    SESSION_TYPE = os.getenv('SESSION_TYPE', 'redis')
    SESSION_PERMANENT = True
    SESSION_KEY_PREFIX = 'whirkplace:session:'
    SESSION_COOKIE_NAME = 'whirkplace.sid'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_REFRESH_EACH_REQUEST = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)

    # Development-only authentication paths
    DEV_AUTH_ENABLED = _flag('DEV_AUTH_ENABLED')
    ALLOW_PRODUCTION_BACKDOOR = _flag('ALLOW_PRODUCTION_BACKDOOR')
    BACKDOOR_USER = os.getenv('BACKDOOR_USER')
    BACKDOOR_KEY = os.getenv('BACKDOOR_KEY')
    BACKDOOR_PROFILE_EMAIL = os.getenv('BACKDOOR_PROFILE_EMAIL')
    BACKDOOR_PROFILE_NAME = os.getenv('BACKDOOR_PROFILE_NAME', 'Development Admin')

    # Startup validation policy
    SECURITY_STRICT_MODE = _flag('SECURITY_STRICT_MODE')
    SKIP_SECURITY_VALIDATION = _flag('SKIP_SECURITY_VALIDATION')
    # preview | review | deployment (unset for a plain production host)
    DEPLOY_CONTEXT = os.getenv('DEPLOY_CONTEXT', '').strip().lower() or None

    # Tenant routing
    BASE_DOMAIN = os.getenv('BASE_DOMAIN')
    DEFAULT_ORGANIZATION_ID = os.getenv('DEFAULT_ORGANIZATION_ID', 'enterprise-whirkplace')
    DEFAULT_ORGANIZATION_SLUG = os.getenv('DEFAULT_ORGANIZATION_SLUG', 'whirkplace')
    DEFAULT_ORGANIZATION_NAME = os.getenv('DEFAULT_ORGANIZATION_NAME', 'Whirkplace Enterprise')
    SUPER_ADMIN_EMAIL = os.getenv('SUPER_ADMIN_EMAIL')

    # Slack OpenID Connect
    SLACK_CLIENT_ID = os.getenv('SLACK_CLIENT_ID')
    SLACK_CLIENT_SECRET = os.getenv('SLACK_CLIENT_SECRET')
    SLACK_REDIRECT_URI = os.getenv('SLACK_REDIRECT_URI')
    SLACK_SCOPES = 'openid profile email'

    # Microsoft OAuth Configuration
    MICROSOFT_CLIENT_ID = os.getenv('MICROSOFT_CLIENT_ID')
    MICROSOFT_CLIENT_SECRET = os.getenv('MICROSOFT_CLIENT_SECRET')
    MICROSOFT_TENANT_ID = os.getenv('MICROSOFT_TENANT_ID')
    MICROSOFT_REDIRECT_URI = os.getenv('MICROSOFT_REDIRECT_URI')
    MICROSOFT_SCOPES = 'openid profile email User.Read'

    OAUTH_REDIRECT_BASE_URL = os.getenv('OAUTH_REDIRECT_BASE_URL')
    OAUTH_HTTP_TIMEOUT = int(os.getenv('OAUTH_HTTP_TIMEOUT', '10'))
