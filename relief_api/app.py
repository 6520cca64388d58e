"""
Relief API - Flask Application Factory

Builds the Flask application with OpenAPI 3.0 support, wires persistence,
authentication and the workflow services, and registers the HTTP routes of
the disaster-relief coordination platform.
"""

import os
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from .observability.config import setup_observability, SERVICE_NAME
from .observability.middleware import add_observability_middleware
from .middleware.auth import AuthMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware, validation_error_response
from .domain.authorization import AccessPolicy
from .domain.help_requests import HelpRequestAggregate
from .domain.support_requests import SupportRequestWorkflow
from .domain.logistics import LogisticsPipeline
from .domain.users import UserDirectory
from .services.persistence import Persistence
from .services.memory import MemoryPersistence
from .services.mongodb import MongoDBPersistence
from .services.audit import ActivityLogger
from .services.auth import AuthService
from .routes import ALL_BLUEPRINTS

SERVICE_VERSION = "1.0.0"

info = Info(
    title="Relief API",
    version=SERVICE_VERSION,
    description="Disaster-relief coordination: help requests, offers, moderation and logistics"
)

health_tag = Tag(name="Health", description="System health and status")


def create_persistence(backend: str) -> Persistence:
    """Build the configured persistence backend."""
    if backend == 'memory':
        return MemoryPersistence()
    if backend == 'mongodb':
        return MongoDBPersistence()
    raise ValueError(f"Unknown persistence backend: {backend}")


def create_app(persistence: Persistence = None, auth_service: AuthService = None,
               activity_logger: ActivityLogger = None) -> OpenAPI:
    """
    Create and configure the Flask application.

    Collaborators not supplied are built from environment configuration.

    Args:
        persistence: Storage backend, defaults to ``PERSISTENCE_BACKEND``
        auth_service: Token and password service
        activity_logger: Activity trail writer

    Returns:
        Configured OpenAPI (Flask) application
    """
    setup_observability()

    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=400,
        validation_error_callback=validation_error_response
    )
    add_observability_middleware(app)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
    app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')
    app.config['PERSISTENCE_BACKEND'] = os.getenv('PERSISTENCE_BACKEND', 'mongodb')

    # Initialize services
    persistence = persistence or create_persistence(app.config['PERSISTENCE_BACKEND'])
    activity_logger = activity_logger or ActivityLogger(persistence)
    auth_service = auth_service or AuthService(persistence)
    access_policy = AccessPolicy()

    # Make services available to routes
    app.persistence = persistence
    app.activity_logger = activity_logger
    app.auth_service = auth_service
    app.access_policy = access_policy
    app.auth_middleware = AuthMiddleware(auth_service)
    app.help_requests = HelpRequestAggregate(persistence, activity_logger, access_policy)
    app.support_requests = SupportRequestWorkflow(persistence, activity_logger, access_policy)
    app.logistics = LogisticsPipeline(persistence, activity_logger, access_policy)
    app.users = UserDirectory(persistence, auth_service, activity_logger, access_policy)

    ErrorHandlerMiddleware(app, app.config['BASE_URL'])

    for blueprint in ALL_BLUEPRINTS:
        app.register_api(blueprint)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Service health with the persistence backend status."""
        storage = app.persistence.health_check()
        healthy = storage.get('status') == 'healthy'
        return jsonify({
            "status": "healthy" if healthy else "unhealthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": app.config['ENVIRONMENT'],
            "persistence": storage
        }), 200 if healthy else 503

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
