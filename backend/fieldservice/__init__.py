from flask import Flask, current_app
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

from fieldservice.lifecycle.errors import LifecycleError

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

BACKEND_SQL = 'sql'
BACKEND_LOCAL = 'local'


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['TICKET_BACKEND'] = os.getenv('TICKET_BACKEND', BACKEND_SQL)
    app.config['LOCAL_STORAGE_DIR'] = os.getenv('LOCAL_STORAGE_DIR', 'var/local-storage')
    app.config['TICKET_STATUS_GUARD'] = os.getenv('TICKET_STATUS_GUARD', 'permissive')
    app.config['CHANGE_FEED_DEBOUNCE'] = float(os.getenv('CHANGE_FEED_DEBOUNCE', '0.25'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('fieldservice').setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    factory = sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False)
    SessionLocal = scoped_session(factory)

    jwt.init_app(app)
    app.extensions['fieldservice'] = {
        'session_factory': factory,
        'store': _build_store(app.config, factory),
    }

    from .routes.auth import auth_bp
    from .routes.tickets import tickets_bp
    from .routes.stats import stats_bp
    from .routes.users import users_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(tickets_bp, url_prefix='/tickets')
    app.register_blueprint(stats_bp)
    app.register_blueprint(users_bp, url_prefix='/users')

    @app.route('/healthz')
    def health():
        return {'status': 'ok', 'backend': app.config['TICKET_BACKEND']}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        if isinstance(e, LifecycleError):
            if e.retryable:
                app.logger.warning('%s: %s', e.title, e.detail)
            return {
                'error': {
                    'status': e.status,
                    'title': e.title,
                    'detail': e.detail,
                }
            }, e.status
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def _build_store(config, factory):
    from fieldservice.lifecycle.fixtures import DemoFixtures, EmptyFixtures
    backend = config['TICKET_BACKEND']
    if backend == BACKEND_SQL:
        from fieldservice.lifecycle.stores.sql import SqlTicketStore
        return SqlTicketStore(factory)
    if backend == BACKEND_LOCAL:
        from fieldservice.lifecycle.stores.local import LocalJsonStore, LocalStorage
        fixtures = DemoFixtures() if config.get('LOCAL_SEED_DEMO', True) else EmptyFixtures()
        return LocalJsonStore(LocalStorage(config['LOCAL_STORAGE_DIR']), fixtures=fixtures)
    raise ValueError(f'unknown TICKET_BACKEND {backend}')


def get_db():
    return SessionLocal()


def get_session_factory():
    return current_app.extensions['fieldservice']['session_factory']


def get_store():
    return current_app.extensions['fieldservice']['store']
