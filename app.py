# app.py
"""
WSGI entry point for the check-in service (gunicorn loads `app:app`).
"""

import os

from ingress import create_app


def check_production_settings(app):
    """Create working directories and warn about settings that weaken a live deployment."""
    for directory in (app.config['UPLOAD_FOLDER'], app.config['LOG_DIR']):
        os.makedirs(directory, exist_ok=True)

    if app.config['QR_SIGNATURE_MODE'] == 'legacy':
        app.logger.warning("QR_SIGNATURE_MODE is 'legacy': QR code signatures are not checked")
    if not app.config.get('MAIL_USERNAME') and not app.config.get('MAIL_SUPPRESS_SEND'):
        app.logger.warning("MAIL_USERNAME is not set: password reset mail may be refused by the server")


config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

if config_name == 'production':
    check_production_settings(app)


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.logger.info(f"Starting development server on port {port}")
    app.run(host='0.0.0.0', port=port, debug=app.config['DEBUG'], threaded=True)
