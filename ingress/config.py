import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class with all settings as static attributes."""

    # Core configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here'
    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    VERSION = '1.0.0'

    # Session settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=12)  # One event day
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_REFRESH_EACH_REQUEST = True

    REMEMBER_COOKIE_DURATION = timedelta(days=7)
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    REMEMBER_COOKIE_HTTPONLY = True

    # MySQL connection timeouts
    MYSQL_CONNECT_TIMEOUT = 30
    MYSQL_READ_TIMEOUT = 30
    MYSQL_WRITE_TIMEOUT = 30

    # Database configuration
    base_db_uri = os.environ.get('DATABASE_URL')

    # Fallback to SQLite if no DATABASE_URL is provided
    if not base_db_uri:
        base_db_uri = 'sqlite:///ingress.db'

    if base_db_uri.startswith('mysql'):
        from urllib.parse import urlparse, urlunparse
        parsed = urlparse(base_db_uri)

        # PyMySQL specific parameters only
        query_params = {
            'charset': 'utf8mb4',
            'connect_timeout': str(MYSQL_CONNECT_TIMEOUT),
            'read_timeout': str(MYSQL_READ_TIMEOUT),
            'write_timeout': str(MYSQL_WRITE_TIMEOUT),
        }

        query_string = '&'.join([f"{k}={v}" for k, v in query_params.items()])
        new_query = f"{parsed.query}&{query_string}" if parsed.query else query_string

        SQLALCHEMY_DATABASE_URI = urlunparse((
            parsed.scheme,
            parsed.netloc,
            parsed.path,
            parsed.params,
            new_query,
            parsed.fragment
        ))

        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_recycle": 3600,  # Recycle connections after 1 hour
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
        }
    else:
        SQLALCHEMY_DATABASE_URI = base_db_uri
        SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables on startup (migrations are preferred in production)
    AUTO_CREATE_TABLES = os.environ.get('AUTO_CREATE_TABLES', 'true').lower() == 'true'

    # QR token signing. 'hmac' signs (eventId, participantId) with QR_SIGNING_SECRET,
    # 'legacy' emits the fixed "valid" marker and accepts any signature.
    QR_SIGNING_SECRET = os.environ.get('QR_SIGNING_SECRET') or 'change-me-qr-secret'
    QR_SIGNATURE_MODE = os.environ.get('QR_SIGNATURE_MODE', 'hmac').lower()

    # QR image settings
    QR_BOX_SIZE = 10
    QR_BORDER = 4

    # Scanner settings
    SCAN_DEBOUNCE_WINDOW_MS = int(os.environ.get('SCAN_DEBOUNCE_WINDOW_MS', 3000))
    SCANNER_PREFERENCE_FILE = os.environ.get(
        'SCANNER_PREFERENCE_FILE',
        os.path.join(os.path.expanduser('~'), '.ingress_scanner.json')
    )

    # Transient conflict retry for the check-in transaction
    REDEMPTION_MAX_RETRIES = 3
    REDEMPTION_RETRY_DELAY = 0.2  # seconds, multiplied by attempt number

    # Password reset mail
    SITE_NAME = os.environ.get('SITE_NAME', 'Ingress')
    BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
    PASSWORD_RESET_HOURS = 2
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 465))
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'false').lower() == 'true'
    MAIL_USE_SSL = os.environ.get('MAIL_USE_SSL', 'true').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'Ingress <no-reply@localhost>')
    MAIL_TIMEOUT = 10
    MAIL_SUPPRESS_SEND = os.environ.get('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'

    # Directory configuration
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    UPLOAD_FOLDER = os.path.join(BASE_DIR, 'uploads')
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(BASE_DIR, 'logs')

    # File upload configuration
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB
    ALLOWED_EXTENSIONS = {'csv', 'xlsx', 'xls'}  # Roster imports

    @staticmethod
    def allowed_file(filename):
        """Check if a roster upload has an allowed extension."""
        if not filename or '.' not in filename:
            return False

        ext = filename.rsplit('.', 1)[1].lower()
        return ext in Config.ALLOWED_EXTENSIONS


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    SQLALCHEMY_ECHO = os.environ.get('SQL_DEBUG', 'false').lower() == 'true'


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    AUTO_CREATE_TABLES = os.environ.get('AUTO_CREATE_TABLES', 'false').lower() == 'true'

    SECRET_KEY = os.environ.get('SECRET_KEY')
    QR_SIGNING_SECRET = os.environ.get('QR_SIGNING_SECRET')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or Config.SQLALCHEMY_DATABASE_URI

    @staticmethod
    def validate():
        """Ensure secrets are provided by the environment."""
        missing = [
            key for key in ('SECRET_KEY', 'DATABASE_URL', 'QR_SIGNING_SECRET')
            if not os.environ.get(key)
        ]
        if missing:
            raise ValueError(f"Environment variables must be set in production: {', '.join(missing)}")


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    AUTO_CREATE_TABLES = True
    QR_SIGNING_SECRET = 'test-qr-secret'
    QR_SIGNATURE_MODE = 'hmac'
    REDEMPTION_RETRY_DELAY = 0.01
    MAIL_SUPPRESS_SEND = True
    LOGGING_ENABLED = False


# Configuration dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}

