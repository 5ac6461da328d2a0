import os
from pathlib import Path


class Config:
    """Base configuration - shared across all environments"""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    LOGS_DIR = os.environ.get('LOGS_DIR', os.path.join(BASE_DIR, 'logs'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Payroll settings
    DISPLAY_TIMEZONE = os.environ.get('DISPLAY_TIMEZONE', 'Asia/Manila')
    PAYROLL_PAYOUT_HOUR = int(os.environ.get('PAYROLL_PAYOUT_HOUR', 9))
    RATE_CACHE_TTL_SECONDS = int(os.environ.get('RATE_CACHE_TTL_SECONDS', 300))

    # Status policy points
    PAYOUT_STATUS_CASCADE = os.environ.get('PAYOUT_STATUS_CASCADE', 'true').lower() == 'true'
    LOCK_RELEASED_STATUS = os.environ.get('LOCK_RELEASED_STATUS', 'false').lower() == 'true'
    ENFORCE_UNIQUE_PAYOUT_PERIOD = os.environ.get('ENFORCE_UNIQUE_PAYOUT_PERIOD', 'false').lower() == 'true'

    # Bounded wait on the database driver (seconds)
    DB_TIMEOUT_SECONDS = int(os.environ.get('DB_TIMEOUT_SECONDS', 15))


class DevConfig(Config):
    """Development configuration"""
    DEBUG = True
    FLASK_HOST = '0.0.0.0'
    FLASK_PORT = 5000

    DB_TYPE = 'sqlite'
    STORAGE_PATH = str(Path(__file__).resolve().parents[1] / "crewpay-storage" / "database")
    DB_PATH = os.path.join(STORAGE_PATH, 'crewpay.db')
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI', f"sqlite:///{DB_PATH}")
    SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': Config.DB_TIMEOUT_SECONDS}}


class TestConfig(Config):
    """Test configuration - in-memory SQLite"""
    TESTING = True
    DEBUG = False
    LOG_LEVEL = 'DEBUG'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 1}}
    RATE_CACHE_TTL_SECONDS = 0


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    FLASK_HOST = '::'
    FLASK_PORT = 5000

    # Production database - MUST be set via environment (PostgreSQL)
    DB_TYPE = 'postgresql'
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_timeout': Config.DB_TIMEOUT_SECONDS,
        'connect_args': {
            'connect_timeout': Config.DB_TIMEOUT_SECONDS,
            'options': f"-c statement_timeout={Config.DB_TIMEOUT_SECONDS * 1000} "
                       f"-c lock_timeout={Config.DB_TIMEOUT_SECONDS * 1000}",
        },
    }
