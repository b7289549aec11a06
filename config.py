"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import json
import os


def _json_env(name: str, default: dict) -> dict:
    """Read a JSON object from an environment variable, falling back to default."""
    raw = os.environ.get(name)
    if not raw:
        return default
    return json.loads(raw)


class Config:
    """Base configuration class with common settings."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/coworking.db'
    # Seconds a connection waits on a locked database before giving up
    DATABASE_TIMEOUT = float(os.environ.get('DATABASE_TIMEOUT', 10))
    # Whole-operation retries when SQLite reports the database as locked
    LOCK_RETRY_ATTEMPTS = int(os.environ.get('LOCK_RETRY_ATTEMPTS', 3))

    # Timezone used for stored instants and "today"
    TIMEZONE = os.environ.get('TIMEZONE', 'Africa/Algiers')

    # Billing
    CURRENCY = os.environ.get('CURRENCY', 'DZD')
    DEFAULT_TAX_RATE = os.environ.get('DEFAULT_TAX_RATE', '0.19')
    INVOICE_DUE_DAYS = int(os.environ.get('INVOICE_DUE_DAYS', 15))

    # Promo codes registered by init-db: flat deductions in whole currency units
    PROMO_CODES = _json_env('PROMO_CODES', {
        'BIENVENUE10': 10,
        'COWORK20': 20,
    })

    # Optional duration discounts per pricing tier, e.g. {"half_day": "0.05", "day": "0.10"}
    DURATION_DISCOUNTS = _json_env('DURATION_DISCOUNTS', {})

    # Application settings
    APP_NAME = 'Coworking Core'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False

    SECRET_KEY = os.environ.get('SECRET_KEY') or Config.SECRET_KEY
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or Config.DATABASE_PATH

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    DATABASE_PATH = os.environ.get('DATABASE_PATH', ':memory:')
    SECRET_KEY = 'test-secret-key'
    PROMO_CODES = {
        'BIENVENUE10': 10,
        'COWORK20': 20,
    }
    DURATION_DISCOUNTS = {}


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}
