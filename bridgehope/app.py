"""
Bridge Hope API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the services behind the donation
distribution workflow.
"""

import os
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from . import __version__
from .domain.matching import get_match_policy
from .middleware.auth import AuthMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .services.audit import DistributionHistoryService
from .services.auth import AuthService
from .services.distribution import DistributionEngine
from .services.donations import DirectoryService, DonationService, RequestLedgerService
from .services.hal import create_hal_builder
from .services.memory import InMemoryDistributionRepository
from .services.mongodb import MongoDBService
from .services.repository import DistributionRepository, MongoDistributionRepository

logger = logging.getLogger(__name__)

info = Info(
    title="Bridge Hope API",
    version=__version__,
    description="Donation distribution between donors, NGOs and orphanages, with HAL responses"
)

health_tag = Tag(name="Health", description="System health and status")


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Read configuration from the environment, then apply overrides."""
    environment = os.getenv('ENVIRONMENT', 'development')

    config = {
        # Environment configuration
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': os.getenv('DOCS_ENABLED', 'true').lower() == 'true',
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'SERVICE_VERSION': os.getenv('SERVICE_VERSION', __version__),

        # Database configuration
        'STORE_BACKEND': os.getenv('STORE_BACKEND', 'mongodb'),
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/bridge_hope_dev?replicaSet=rs0'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'bridge_hope_dev'),

        # Workflow configuration
        'REQUEST_MATCH_POLICY': os.getenv('REQUEST_MATCH_POLICY', 'kind'),

        # Security configuration
        'JWT_ACCESS_TOKEN_EXPIRES_MINUTES': int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES_MINUTES', '15')),

        # Feature flags
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true'
    }

    config.update(overrides or {})
    return config


def build_repository(config: Dict[str, Any]) -> DistributionRepository:
    """Build the store selected by STORE_BACKEND."""
    backend = config['STORE_BACKEND']

    if backend == 'memory':
        logger.warning("Using in-memory store, data is lost on restart")
        return InMemoryDistributionRepository()

    if backend == 'mongodb':
        mongodb_service = MongoDBService(config['MONGODB_URI'], config['MONGODB_DATABASE'])
        return MongoDistributionRepository(mongodb_service)

    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    repository: Optional[DistributionRepository] = None,
    auth_service: Optional[AuthService] = None
) -> OpenAPI:
    """
    Create the Flask application.

    Args:
        config_overrides: Values replacing environment configuration
        repository: Store to use instead of the one selected by STORE_BACKEND
        auth_service: Token service to use instead of one built from JWT_* keys

    Returns:
        Configured OpenAPI (Flask) application
    """
    config = load_config(config_overrides)

    # Initialize observability first
    otel_active = setup_observability(config['ENVIRONMENT'], config['OTEL_ENABLED'])

    app = OpenAPI(__name__, info=info, doc_ui=config['DOCS_ENABLED'])
    app.config.update(config)

    add_observability_middleware(app, instrument=otel_active)

    # Initialize services
    repository = repository or build_repository(config)
    auth_service = auth_service or AuthService(
        access_token_expire_minutes=config['JWT_ACCESS_TOKEN_EXPIRES_MINUTES']
    )
    history_service = DistributionHistoryService(repository)
    hal_builder = create_hal_builder(config['BASE_URL'])

    # Make services available to routes
    app.repository = repository
    app.auth_service = auth_service
    app.auth_middleware = AuthMiddleware(auth_service)
    app.hal_builder = hal_builder
    app.history_service = history_service
    app.distribution_engine = DistributionEngine(
        repository,
        history_service=history_service,
        match_policy=get_match_policy(config['REQUEST_MATCH_POLICY'])
    )
    app.donation_service = DonationService(repository)
    app.request_ledger = RequestLedgerService(repository)
    app.directory_service = DirectoryService(repository)

    ErrorHandlerMiddleware(app, hal_builder)

    # Register routes
    from .routes import donations_bp, ngos_bp, orphanages_bp

    app.register_api(ngos_bp)
    app.register_api(donations_bp)
    app.register_api(orphanages_bp)

    @app.get('/api/health', tags=[health_tag])
    def health_check():
        """Service health with store status."""
        store_health = repository.health_check()
        healthy = store_health.get('status') == 'healthy'

        health_data = {
            "status": "healthy" if healthy else "unhealthy",
            "service": "bridge-hope-api",
            "version": app.config['SERVICE_VERSION'],
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "dependencies": {"store": store_health}
        }

        response = hal_builder.build_success_response(
            health_data,
            message="Service is healthy" if healthy else "Service is unhealthy",
            self_path="/api/health"
        )
        return jsonify(response), 200 if healthy else 503

    logger.info(
        "Bridge Hope API initialized",
        extra={
            "environment": config['ENVIRONMENT'],
            "store_backend": type(repository).__name__,
            "match_policy": app.distribution_engine.match_policy.name
        }
    )
    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
