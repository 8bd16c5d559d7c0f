# __init__.py
"""
Application factory for the event check-in system.
This module creates and configures the Flask application using the application factory pattern.
"""

import os
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from ingress.config import config_by_name, ProductionConfig
from ingress.exceptions import IngressError
from ingress.extensions import init_extensions, db
from ingress.services.scan_debouncer import DebouncerRegistry


def setup_logging(app):
    """
    Configure structured logging for the application.

    Args:
        app: Flask application instance
    """
    log_dir = app.config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    # Configure log format
    log_format = logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s'
    )

    # File handler with rotation
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'ingress.log'),
        maxBytes=1024 * 1024 * 10,  # 10MB
        backupCount=5
    )
    file_handler.setFormatter(log_format)
    file_handler.setLevel(logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_format)
    console_handler.setLevel(logging.DEBUG if app.debug else logging.INFO)

    # Service loggers are named per module, so attach to the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Check-in outcomes are the audit trail
    logging.getLogger('redemption_service').setLevel(logging.INFO)

    # Forcefully suppress SQLAlchemy logs
    sa_logger = logging.getLogger('sqlalchemy.engine')
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


def register_blueprints(app):
    """
    Register all application blueprints.

    Args:
        app: Flask application instance
    """
    try:
        # Import blueprints here to avoid circular imports
        from .controllers.auth import auth_bp
        from .controllers.admin import admin_bp
        from .controllers.check_in import check_in_bp

        # Register blueprints with their URL prefixes
        app.register_blueprint(auth_bp, url_prefix='/auth')
        app.register_blueprint(admin_bp, url_prefix='/admin')
        app.register_blueprint(check_in_bp, url_prefix='/check-in')

        app.logger.info("All blueprints registered successfully")

    except ImportError as e:
        app.logger.error(f"Failed to import blueprint: {str(e)}")
        raise


def register_error_handlers(app):
    """
    Register global error handlers.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(IngressError)
    def handle_ingress_error(e):
        app.logger.warning(f"Unhandled service error: {e}")
        return jsonify({'success': False, 'message': e.message, 'error_code': e.error_code}), 400

    @app.errorhandler(404)
    def handle_404(e):
        return jsonify({'success': False, 'error': 'Resource not found', 'error_code': 'not_found'}), 404

    @app.errorhandler(403)
    def handle_403(e):
        return jsonify({'success': False, 'error': 'Access forbidden', 'error_code': 'permission_denied'}), 403

    @app.errorhandler(413)
    def handle_413(e):
        return jsonify({'success': False, 'error': 'Uploaded file is too large', 'error_code': 'file_too_large'}), 413

    @app.errorhandler(500)
    def handle_500(e):
        app.logger.error(f"Internal server error: {str(e)}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.errorhandler(Exception)
    def handle_exception(e):
        # Let Flask render other HTTP errors (405 and friends) with their own status
        if isinstance(e, HTTPException):
            return jsonify({'success': False, 'error': e.description}), e.code

        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'An unexpected error occurred',
            'message': str(e) if app.debug else 'Internal server error'
        }), 500


def register_shell_context(app):
    """
    Register shell context for flask shell command.

    Args:
        app: Flask application instance
    """

    @app.shell_context_processor
    def make_shell_context():
        from ingress.models import User, Event, Participant
        return {
            'db': db,
            'User': User,
            'Event': Event,
            'Participant': Participant
        }


def register_health_checks(app):
    """
    Register health check endpoints.

    Args:
        app: Flask application instance
    """

    @app.route('/health')
    def health_check():
        """Basic health check endpoint."""
        return jsonify({
            'status': 'ok',
            'timestamp': datetime.now().isoformat(),
            'version': app.config.get('VERSION', '1.0.0')
        })

    @app.route('/health/database')
    def database_health_check():
        """Database health check endpoint."""
        from ingress.extensions import check_database_health, get_connection_stats

        healthy, message = check_database_health()
        stats = get_connection_stats()

        if healthy:
            from ingress.models import Event
            stats['event_count'] = db.session.query(Event).count()

        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': stats,
            'timestamp': datetime.now().isoformat()
        }), 200 if healthy else 503


def create_app(config_name=None, config_overrides=None):
    """
    Application factory function.

    Args:
        config_name (str): Configuration name ('development', 'production', 'testing')
        config_overrides (dict): Settings applied on top of the named configuration

    Returns:
        Flask: Configured Flask application instance
    """
    # Load environment variables
    load_dotenv()

    # Create Flask application
    app = Flask(__name__)

    # Load configuration
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    if config_name == 'production':
        ProductionConfig.validate()
    app.config.from_object(config_by_name[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    # Setup logging first
    if app.config.get('LOGGING_ENABLED', True):
        setup_logging(app)
    app.logger.info(f"Starting application with config: {config_name}")

    # Initialize extensions
    init_extensions(app)

    # Per-device duplicate scan suppression for the check-in API
    app.extensions['ingress_debouncers'] = DebouncerRegistry(app.config['SCAN_DEBOUNCE_WINDOW_MS'])

    # Register components
    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_health_checks(app)

    # Register CLI commands
    from .cli import register_cli_commands
    register_cli_commands(app)

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            # Import models so their tables are registered
            from ingress import models  # noqa: F401
            db.create_all()

    app.logger.info("Application factory completed successfully")

    return app
