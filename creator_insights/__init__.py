"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
import importlib
from flask import Flask, request


CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization',
}


def create_app():
    """Create and configure the Flask application."""
    from creator_insights.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # The widget is embedded on customer pages, so /api/* answers any origin
    @app.after_request
    def add_cors_headers(response):
        if request.path.startswith('/api/'):
            response.headers.update(CORS_HEADERS)
        return response

    # Register blueprints
    from creator_insights.routes.health import bp as health_bp
    from creator_insights.routes.briefing import bp as briefing_bp
    from creator_insights.routes.ask import bp as ask_bp
    from creator_insights.routes.action import bp as action_bp
    from creator_insights.routes.benchmarks import bp as benchmarks_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(briefing_bp)
    app.register_blueprint(ask_bp)
    app.register_blueprint(action_bp)
    app.register_blueprint(benchmarks_bp)

    # Circuit breakers for the text-generation backends
    from creator_insights.extensions import redis_client
    from creator_insights.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them.
    # Owned tables are managed by Alembic; tenant tables belong to the dashboard.
    importlib.import_module('creator_insights.models.benchmark')
    importlib.import_module('creator_insights.models.briefing')
    importlib.import_module('creator_insights.models.tenant')

    return app
