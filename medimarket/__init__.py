"""
Medication Marketplace - Flask Blueprint Package
================================================
This module can be used standalone OR integrated into a parent Flask app.

Standalone usage:
    from medimarket import create_app
    app = create_app()
    app.run()

Integration into a parent app:
    from medimarket import create_market_blueprint, init_market_module, ensure_tables_exist

    # Option A: share the parent's database, tables in their own schema
    init_market_module(parent_app, db_config={...}, schema='medimarket')
    ensure_tables_exist(parent_app)
    parent_app.register_blueprint(create_market_blueprint(), url_prefix='/market/api')

    # Option B: hand over an existing psycopg2 pool
    init_market_module(parent_app, pool=my_pool, schema='medimarket')
    parent_app.register_blueprint(create_market_blueprint(), url_prefix='/market/api')
"""
import logging
from dataclasses import dataclass
from typing import Any

import click
from flask import Flask, current_app, request
from flask_cors import CORS

from .config import MarketConfig

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'medimarket'


@dataclass
class MarketContext:
    """Store handles and collaborators bound to one Flask app."""
    config: MarketConfig
    store: Any
    accounts: Any
    pharmacies: Any
    medications: Any
    chatbot: Any


def get_market():
    """Market context of the current app. Must call init_market_module first."""
    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError:
        raise RuntimeError("Marketplace module not initialised; call init_market_module(app) first.")


def init_market_module(app, config=None, db_config=None, schema=None, pool=None, chatbot=None):
    """
    Initialize the marketplace module on a Flask app.
    Call this BEFORE registering the blueprint when integrating into a parent app.

    Args:
        app: The Flask application.
        config: A MarketConfig instance, or None to use defaults.
        db_config: Database connection dict with keys: host, port, database, user, password.
                   If provided, overrides config's DB settings.
        schema: PostgreSQL schema name for marketplace tables.
        pool: Optional external psycopg2 pool.
        chatbot: Optional chat client exposing ask(question); defaults to MistralChatClient.

    Returns:
        MarketContext: The context stored in app.extensions.
    """
    from .auth import init_jwt
    from .cache import init_cache
    from .chatbot import MistralChatClient
    from .repositories import build_repositories

    config = config if config is not None else MarketConfig()

    # Override DB config if provided externally
    if db_config:
        config.DB_HOST = db_config.get('host', config.DB_HOST)
        config.DB_PORT = db_config.get('port', config.DB_PORT)
        config.DB_NAME = db_config.get('database', config.DB_NAME)
        config.DB_USER = db_config.get('user', config.DB_USER)
        config.DB_PASSWORD = db_config.get('password', config.DB_PASSWORD)
    if schema:
        config.DB_SCHEMA = schema

    app.config.setdefault('JWT_SECRET_KEY', config.JWT_SECRET_KEY)
    app.config.setdefault('JWT_ACCESS_TOKEN_EXPIRES', config.JWT_ACCESS_TOKEN_EXPIRES)
    app.config.setdefault('BCRYPT_ROUNDS', config.BCRYPT_ROUNDS)

    store, accounts, pharmacies, medications = build_repositories(config, pool=pool)
    context = MarketContext(
        config=config,
        store=store,
        accounts=accounts,
        pharmacies=pharmacies,
        medications=medications,
        chatbot=chatbot if chatbot is not None else MistralChatClient.from_config(config),
    )
    app.extensions[EXTENSION_KEY] = context

    init_jwt(app)
    init_cache(app, cache_type=config.CACHE_TYPE, redis_url=config.REDIS_URL,
               default_timeout=config.CACHE_DEFAULT_TIMEOUT)

    logger.info("Marketplace module ready (store=%s, schema=%s)", config.STORE_BACKEND, config.DB_SCHEMA)
    return context


def create_market_blueprint():
    """
    Return the marketplace API blueprint, ready to register on any Flask app
    that went through init_market_module().
    """
    from .routes import api_bp
    return api_bp


def ensure_tables_exist(app):
    """
    Create the marketplace tables if they don't exist.
    Safe to call multiple times (uses IF NOT EXISTS). No-op for the memory store.
    """
    store = app.extensions[EXTENSION_KEY].store
    if hasattr(store, 'ensure_tables_exist'):
        store.ensure_tables_exist()


def configure_logging(level='INFO'):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _register_cli(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create the marketplace tables."""
        ensure_tables_exist(app)
        click.echo("Tables ready.")

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.argument('password')
    @click.option('--telephone', default=None)
    def create_admin_command(email, password, telephone):
        """Create a validated admin account."""
        from .auth import hash_password
        from .models import Account, ROLE_ADMIN
        from .repositories import DuplicateEmailError

        account = Account(
            email=email.strip().lower(),
            password=hash_password(password),
            role=ROLE_ADMIN,
            telephone=telephone,
            valide=True,
        )
        try:
            account = get_market().accounts.save(account)
        except DuplicateEmailError:
            raise click.ClickException(f"Email already registered: {account.email}")
        click.echo(f"Admin {account.email} created (id={account.id}).")


def create_app(config=None, chatbot=None):
    """
    Create a standalone Flask application (for running the module independently).

    Args:
        config: Optional MarketConfig instance.
        chatbot: Optional chat client (see init_market_module).

    Returns:
        Flask: Configured Flask application.
    """
    resolved_config = config if config is not None else MarketConfig()
    configure_logging(resolved_config.LOG_LEVEL)

    app = Flask(__name__)
    app.config.from_object(resolved_config)

    CORS(app, origins=resolved_config.cors_origins())

    init_market_module(app, config=resolved_config, chatbot=chatbot)

    app.register_blueprint(create_market_blueprint(), url_prefix='/api')
    _register_cli(app)

    request_logger = logging.getLogger('medimarket.request')

    @app.after_request
    def log_request(response):
        request_logger.info("%s %s -> %s", request.method, request.path, response.status_code)
        return response

    # Health check route
    @app.route('/')
    def health():
        return {
            'status': 'ok',
            'service': 'Medication Marketplace API',
            'version': '1.0.0',
            'mode': 'standalone'
        }

    return app
