# =============================================================================
# CropGenesis Backend
# config.py - Configuration Management
#
# One class per environment (development, testing, production), selected by
# FLASK_ENV. Values come from the process environment, with a .env file
# loaded first through python-dotenv.
# =============================================================================

import os
import tempfile
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Origins the Vite / CRA dev servers run on
LOCAL_DEV_ORIGINS = [
    'http://localhost:5173',
    'http://localhost:3000',
    'http://localhost:5174',
    'http://127.0.0.1:5173',
    'http://127.0.0.1:3000',
    'http://127.0.0.1:5174'
]


def env_flag(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    return int(os.getenv(name, default))


def env_float(name, default):
    return float(os.getenv(name, default))


def get_allowed_origins(include_local=True):
    """
    Build the CORS allow-list.

    Local development origins are included unless disabled; deployed
    frontends come from the comma-separated FRONTEND_URL (or CORS_ORIGINS)
    environment variable. Trailing slashes are stripped and duplicates dropped.

    Args:
        include_local: Whether to include localhost dev server origins

    Returns:
        list: Allowed origin URLs
    """
    origins = list(LOCAL_DEV_ORIGINS) if include_local else []

    raw = os.getenv('FRONTEND_URL') or os.getenv('CORS_ORIGINS', '')
    for url in raw.split(','):
        url = url.strip().rstrip('/')
        if url and url not in origins:
            origins.append(url)

    return origins


class Config:
    """
    Settings shared by every environment.
    Subclasses override only what differs.
    """

    # --- Flask -----------------------------------------------------------------
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = False
    TESTING = False

    # --- Database ----------------------------------------------------------------
    # Any SQLAlchemy URL; local runs fall back to a SQLite file
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///cropgenesis.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # --- Authentication ------------------------------------------------------------
    # Access tokens live 7 days; the SPA logs out on any 401
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=env_int('JWT_ACCESS_TOKEN_DAYS', 7))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=env_int('JWT_REFRESH_TOKEN_DAYS', 30))
    JWT_TOKEN_LOCATION = ['headers']
    JWT_HEADER_TYPE = 'Bearer'

    # --- Rate limiting (Flask-Limiter) ---------------------------------------------
    RATELIMIT_ENABLED = env_flag('RATELIMIT_ENABLED', True)
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URL', 'memory://')
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '100 per 15 minutes')
    RATELIMIT_HEADERS_ENABLED = True

    # --- CORS ----------------------------------------------------------------------
    CORS_ORIGINS = get_allowed_origins(include_local=True)
    CORS_SUPPORTS_CREDENTIALS = True

    # --- Uploads -------------------------------------------------------------------
    # Diagnosis media stays here until its record is deleted; crop-plan
    # media is removed as soon as the plan is generated
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'static', 'uploads'))
    MAX_UPLOAD_SIZE_MB = env_float('MAX_UPLOAD_SIZE_MB', 5)
    MAX_UPLOAD_SIZE = int(MAX_UPLOAD_SIZE_MB * 1024 * 1024)
    # Whole request: up to two files plus form fields
    MAX_CONTENT_LENGTH = 2 * MAX_UPLOAD_SIZE + 1024 * 1024

    # --- Gemini --------------------------------------------------------------------
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', '')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-2.5-flash-lite')
    GEMINI_API_BASE_URL = os.getenv(
        'GEMINI_API_BASE_URL',
        'https://generativelanguage.googleapis.com/v1beta'
    )
    AI_MAX_ATTEMPTS = env_int('AI_MAX_ATTEMPTS', 3)
    AI_RETRY_BASE_DELAY_MS = env_int('AI_RETRY_BASE_DELAY_MS', 1000)
    # Seconds per attempt
    AI_REQUEST_TIMEOUT = env_float('AI_REQUEST_TIMEOUT', 60)

    # Stored plan text cap (characters)
    MAX_PLAN_CHARS = env_int('MAX_PLAN_CHARS', 10000)


class DevelopmentConfig(Config):
    """Local development: debug on, SQLite file database."""
    DEBUG = True
    SQLALCHEMY_ECHO = env_flag('SQLALCHEMY_ECHO', False)
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///cropgenesis_dev.db')
    RATELIMIT_DEFAULT = '1000 per hour'


class TestingConfig(Config):
    """
    Automated tests: in-memory SQLite, no rate limits, no real API key.
    Fixtures replace UPLOAD_FOLDER with a per-test directory.
    """
    TESTING = True
    DEBUG = True

    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    RATELIMIT_ENABLED = False

    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-enough-length'

    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'cropgenesis-test-uploads')

    GEMINI_API_KEY = ''
    AI_RETRY_BASE_DELAY_MS = 1


class ProductionConfig(Config):
    """
    Deployed service: DATABASE_URL is required, only configured frontends
    may call the API, and rate-limit counters go to Redis when available.
    """
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
        'max_overflow': 20,
        'pool_timeout': 30
    }

    CORS_ORIGINS = get_allowed_origins(include_local=False)

    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL', 'memory://')


# Environment name -> configuration class
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
