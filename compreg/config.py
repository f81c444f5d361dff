import os
from datetime import timedelta


def _env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///compreg.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # JWT (tokens are issued by the auth service, we only verify them)
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'your-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_COOKIE_SECURE = True
    JWT_COOKIE_CSRF_PROTECT = True
    JWT_COOKIE_SAMESITE = 'Lax'
    JWT_ACCESS_COOKIE_NAME = 'access_token_cookie'
    JWT_ROLE_CLAIM = 'role'

    # Registration engine
    REGISTRATION_TRANSACTION_TIMEOUT_MS = int(os.getenv('REGISTRATION_TRANSACTION_TIMEOUT_MS', '5000'))
    REGISTRATION_LOCK_AFTER_DEADLINE = _env_flag('REGISTRATION_LOCK_AFTER_DEADLINE', True)

    # Scheduled reconciliation
    SCHEDULER_API_ENABLED = False
    RECONCILE_SCHEDULE_ENABLED = _env_flag('RECONCILE_SCHEDULE_ENABLED', False)
    RECONCILE_CRON_HOUR = os.getenv('RECONCILE_CRON_HOUR', '3')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE')


class DevelopmentConfig(Config):
    DEBUG = True
    JWT_COOKIE_SECURE = False


class ProductionConfig(Config):
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    PREFERRED_URL_SCHEME = 'https'
    RECONCILE_SCHEDULE_ENABLED = _env_flag('RECONCILE_SCHEDULE_ENABLED', True)
    LOG_FILE = os.getenv('LOG_FILE', 'logs/compreg.log')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'testing-secret-key-with-enough-length-for-hs256'
    JWT_TOKEN_LOCATION = ['headers']
    JWT_COOKIE_SECURE = False
    RECONCILE_SCHEDULE_ENABLED = False
    LOG_FILE = None


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
