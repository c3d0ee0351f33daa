"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > local SQLite file
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST')
        if DB_HOST:
            DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
            DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'ravenpos')
            DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'ravenpos')
            DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'ravenpos')

            DATABASE_URL = (
                f"postgresql://{DB_USER}:{DB_PASSWORD}"
                f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
            )
        else:
            DATABASE_URL = 'sqlite:///ravenpos.db'

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Consignment defaults
    DEFAULT_COMMISSION_SPLIT = os.getenv('DEFAULT_COMMISSION_SPLIT', '0.60')

    # Shopify inventory sync
    # Sync is disabled unless store name, token and location are all set
    SHOPIFY_STORE_NAME = os.getenv('SHOPIFY_STORE_NAME')
    SHOPIFY_ACCESS_TOKEN = os.getenv('SHOPIFY_ACCESS_TOKEN')
    SHOPIFY_LOCATION_ID = os.getenv('SHOPIFY_LOCATION_ID')
    SHOPIFY_API_VERSION = os.getenv('SHOPIFY_API_VERSION', '2024-01')
    SHOPIFY_TIMEOUT = int(os.getenv('SHOPIFY_TIMEOUT', '10'))  # seconds

    # Inbound webhooks whose item was pushed locally within this window are echoes
    SYNC_ECHO_WINDOW_SECONDS = int(os.getenv('SYNC_ECHO_WINDOW_SECONDS', '10'))

    # Load category tax rates from the database when the app starts
    LOAD_TAX_RATES_ON_STARTUP = os.getenv('LOAD_TAX_RATES_ON_STARTUP', 'true').lower() == 'true'


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    SHOPIFY_STORE_NAME = None
    SHOPIFY_ACCESS_TOKEN = None
    SHOPIFY_LOCATION_ID = None
    LOAD_TAX_RATES_ON_STARTUP = False
