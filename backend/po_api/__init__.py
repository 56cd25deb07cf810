from flask import Flask, current_app
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

from po_api.config.settings import load_settings
from po_api.config.cors import register_cors
from po_api.errors import ApiError, unauthenticated_payload

load_dotenv()

jwt = JWTManager()
API_PREFIX = '/api/v1'


class Database:
    """Engine + session factory owned by one application instance."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        if url.endswith(':memory:'):
            # Ensure a single shared in-memory SQLite database across all sessions
            self.engine = create_engine(
                url,
                echo=echo,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(url, echo=echo, future=True)
        self.session = scoped_session(sessionmaker(bind=self.engine, expire_on_commit=False, autoflush=False))

    def create_all(self):
        from po_api.models import Base
        Base.metadata.create_all(self.engine)

    def remove(self, exc: Optional[BaseException] = None):
        self.session.remove()


def create_app(config: Optional[Dict[str, Any]] = None):
    app = Flask(__name__)

    app.config.update(load_settings())
    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(level=app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    db = Database(app.config['DATABASE_URL'], echo=app.config.get('SQLALCHEMY_ECHO', False))
    app.extensions['db'] = db
    app.teardown_appcontext(db.remove)

    jwt.init_app(app)
    _register_jwt_callbacks()
    register_cors(app)

    from po_api.routes.auth import auth_bp
    from po_api.routes.users import users_bp
    from po_api.routes.roles import roles_bp
    from po_api.routes.permissions import permissions_bp
    from po_api.routes.suppliers import suppliers_bp
    from po_api.routes.purchase_orders import po_bp
    from po_api.routes.divisions import divisions_bp
    from po_api.routes.delivery_addresses import addresses_bp
    app.register_blueprint(auth_bp, url_prefix=f'{API_PREFIX}/auth')
    app.register_blueprint(users_bp, url_prefix=f'{API_PREFIX}/users')
    app.register_blueprint(roles_bp, url_prefix=f'{API_PREFIX}/roles')
    app.register_blueprint(permissions_bp, url_prefix=f'{API_PREFIX}/permissions')
    app.register_blueprint(suppliers_bp, url_prefix=f'{API_PREFIX}/suppliers')
    app.register_blueprint(po_bp, url_prefix=f'{API_PREFIX}/purchase-orders')
    app.register_blueprint(divisions_bp, url_prefix=f'{API_PREFIX}/divisions')
    app.register_blueprint(addresses_bp, url_prefix=f'{API_PREFIX}/delivery-addresses')

    @app.route('/health')
    def health():
        return {'status': 'ok', 'service': 'po-api'}

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
            if isinstance(e, ApiError):
                payload['error']['code'] = e.error_code
                payload['error'].update(e.extra)
            elif e.code == 404:
                payload['error']['code'] = 'not_found'
            return payload, e.code
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def _register_jwt_callbacks():
    # Every token failure surfaces as 401 unauthenticated (never 422)
    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return unauthenticated_payload(reason), 401

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return unauthenticated_payload(reason), 401

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return unauthenticated_payload('Token has expired'), 401

    @jwt.revoked_token_loader
    def _revoked_token(jwt_header, jwt_payload):
        return unauthenticated_payload('Token has been revoked'), 401


def get_database() -> Database:
    return current_app.extensions['db']


def get_db() -> Session:
    return get_database().session()
