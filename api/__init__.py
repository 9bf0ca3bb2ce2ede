import logging

import click
from flask import Flask, current_app
from flasgger import Swagger
from flask_cors import CORS
from marshmallow import ValidationError

from .config import get_config
from .errors import register_error_handlers
from models.db_storage import DBStorage
from services.auth_service import AuthService
from services.exceptions import AuthError
from utils.mailer import Mailer
from utils.otp import OtpManager
from utils.revocation import TokenRevocationRegistry
from utils.security import TokenIssuer, make_hasher

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Campus App API",
        "version": "1.0.0",
        "description": "REST API for campus app accounts: registration, login, tokens and password reset.",
    },
    "basePath": "/",  # Blueprints are mounted under /api/v1
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Paste the access token as-is, without a `Bearer ` prefix."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def build_auth_service(config, storage, mailer=None) -> AuthService:
    """Wire the auth components from a config mapping."""
    issuer = TokenIssuer(
        secret=config["JWT_SECRET"],
        algorithm=config["JWT_ALGORITHM"],
        issuer=config["JWT_ISSUER"],
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
    )
    otp = OtpManager(
        mailer or Mailer.from_config(config),
        ttl_seconds=int(config["OTP_EXPIRES"].total_seconds()),
        digits=config["OTP_DIGITS"],
    )
    return AuthService(
        storage,
        issuer,
        revocations=TokenRevocationRegistry(),
        otp=otp,
        institution_domain=config["INSTITUTION_EMAIL_DOMAIN"],
        rotate_refresh_tokens=config["REFRESH_TOKEN_ROTATION"],
        hasher=make_hasher(
            config["ARGON2_TIME_COST"], config["ARGON2_MEMORY_COST"], config["ARGON2_PARALLELISM"]
        ),
    )


def create_app(config_name: str | None = None, mailer=None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Each app gets its own store, token blacklist and OTP state.
    `mailer` and keyword overrides exist for tests.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    app.extensions["storage"] = storage
    app.extensions["auth_service"] = build_auth_service(app.config, storage, mailer=mailer)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--first-name", prompt=True)
    @click.option("--last-name", prompt=True)
    @click.password_option()
    def create_admin(email, first_name, last_name, password):
        """Create a user with the admin role."""
        try:
            user = current_app.extensions["auth_service"].create_admin(first_name, last_name, email, password)
        except (ValidationError, AuthError) as exc:
            raise click.ClickException(str(getattr(exc, "messages", exc)))
        click.echo(f"Created admin {user['email']} ({user['id']})")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Campus App API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
