from flask import Flask, jsonify
from flask_cors import CORS

from whirkplace.config import Config
from whirkplace.extensions import db, migrate


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Security configuration is fixed for the life of the app
    from whirkplace.security import EXTENSION_KEY, SecurityConfig, validate_startup_security

    security_config = SecurityConfig.from_mapping(app.config)
    validate_startup_security(security_config, app.logger)
    app.extensions[EXTENSION_KEY] = security_config

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    CORS(app, supports_credentials=True, origins=app.config.get('CORS_ORIGINS', '*'))

    from whirkplace.services.session_store import init_session_store
    init_session_store(app)

    # Health check endpoint - register early so it's always available
    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({"status": "ok"}), 200

    # Import models
    from whirkplace.models import Organization, PartnerFirm, Team, User  # noqa: F401

    from whirkplace.errors import register_error_handlers
    from whirkplace.middleware.headers import init_security_headers
    from whirkplace.middleware.organization import init_organization_context
    register_error_handlers(app)
    init_organization_context(app)
    init_security_headers(app, security_config)

    # Register blueprints
    from whirkplace.api import auth
    app.register_blueprint(auth.bp, url_prefix='/api/auth')
    from whirkplace.api import diagnostic
    app.register_blueprint(diagnostic.bp, url_prefix='/api/auth/diagnostic')
    from whirkplace.api import oauth
    app.register_blueprint(oauth.bp, url_prefix='/auth')

    from whirkplace.commands import register_commands
    register_commands(app)

    return app
