from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_session import Session

"""
Flask Extensions - created unbound here, bound to the app in create_app()

Services and models import these singletons directly, so the module must
not import anything from whirkplace itself.
"""
# ORM session and models
# Usage: from whirkplace.extensions import db

db = SQLAlchemy()

# Alembic migrations (flask db upgrade)

migrate = Migrate()

# Server-side session store; backend chosen by SESSION_TYPE
# (redis in deployment, cachelib in tests)

server_session = Session()
