"""Flask application factory."""
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from architrack.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking, production only
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Prometheus metrics instrumentation
    from architrack.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* from the reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Initialize database
    init_db(app)

    from architrack.middleware import load_identity

    @app.before_request
    def before_request_handler():
        """Load the caller's identity for each request."""
        load_identity()

    # Error Handlers
    from architrack.exceptions import ArchitrackError

    @app.errorhandler(ArchitrackError)
    def handle_architrack_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"{error.code} [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"{error.code} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'code': 'NOT_FOUND', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'code': 'METHOD_NOT_ALLOWED', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException) and error.code != 500:
            return jsonify({'status': 'error', 'code': error.name.upper().replace(' ', '_'),
                            'message': error.description}), error.code
        app.logger.error(f"Unhandled Exception on {request.path}: {error}", exc_info=error)
        return jsonify({'status': 'error', 'code': 'INTERNAL_ERROR', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from architrack.blueprints.itemized_statements import itemized_statements_bp
    from architrack.blueprints.metrics import metrics_bp

    app.register_blueprint(itemized_statements_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from architrack.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
