"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from app.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    CSRFProtect(app)

    # Error tracking in production only
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    from app.services.cache_service import init_cache
    init_cache(app)

    from app.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    from app.middleware import load_user_and_branch

    @app.before_request
    def before_request_handler():
        """Load user and branch context for each request."""
        load_user_and_branch()

    # Error Handlers
    from app.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'error': 'CSRFError',
                        'message': 'Missing or expired CSRF token. Fetch /auth/csrf-token.'}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'status': 'error', 'error': e.name, 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled exception on {request.method} {request.path}: {error}")
        return jsonify({'status': 'error', 'error': 'InternalServerError',
                        'message': 'Internal Server Error'}), 500

    # Register blueprints
    from app.blueprints.auth import auth_bp
    from app.blueprints.main import main_bp
    from app.blueprints.dashboard import dashboard_bp
    from app.blueprints.catalog import catalog_bp
    from app.blueprints.pos import pos_bp
    from app.blueprints.sales import sales_bp
    from app.blueprints.customers import customers_bp
    from app.blueprints.reports import reports_bp
    from app.blueprints.settings import settings_bp
    from app.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(metrics_bp)

    from app.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
