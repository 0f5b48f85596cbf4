"""
Marketplace Module Configuration
================================
Supports standalone and integrated modes.
In integrated mode, the parent app injects config via init_market_module().
"""
import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


class MarketConfig:
    """Medication marketplace configuration."""

    # Database configuration
    DB_HOST = os.getenv('DB_HOST', 'localhost')
    DB_PORT = os.getenv('DB_PORT', '5432')
    DB_NAME = os.getenv('DB_NAME', 'medimarket_db')
    DB_USER = os.getenv('DB_USER', 'postgres')
    DB_PASSWORD = os.getenv('DB_PASSWORD', 'postgres')

    # Schema for table isolation (parent app can set to 'medimarket' or custom)
    DB_SCHEMA = os.getenv('DB_SCHEMA', 'public')

    # 'postgres' or 'memory'
    STORE_BACKEND = os.getenv('STORE_BACKEND', 'postgres')

    # Auth
    JWT_SECRET_KEY = os.getenv('JWT_SECRET', 'dev-secret')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv('JWT_EXPIRES_HOURS', 1)))
    BCRYPT_ROUNDS = int(os.getenv('BCRYPT_ROUNDS', 10))

    # Chatbot (Mistral chat completions)
    MISTRAL_API_KEY = os.getenv('MISTRAL_API_KEY', '')
    MISTRAL_API_URL = os.getenv('MISTRAL_API_URL', 'https://api.mistral.ai/v1/chat/completions')
    MISTRAL_MODEL = os.getenv('MISTRAL_MODEL', 'mistral-tiny')
    MISTRAL_TIMEOUT = int(os.getenv('MISTRAL_TIMEOUT', 30))

    # Cache
    CACHE_TYPE = os.getenv('CACHE_TYPE', 'RedisCache')
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CACHE_DEFAULT_TIMEOUT = int(os.getenv('CACHE_DEFAULT_TIMEOUT', 300))

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    def get_db_uri(self):
        """Get database connection URI."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    def get_db_config(self):
        """Get database configuration as dict."""
        return {
            'host': self.DB_HOST,
            'port': self.DB_PORT,
            'database': self.DB_NAME,
            'user': self.DB_USER,
            'password': self.DB_PASSWORD
        }

    def cors_origins(self):
        """CORS_ORIGINS as a list, '*' stays a wildcard."""
        raw = self.CORS_ORIGINS or '*'
        if raw.strip() == '*':
            return '*'
        return [o.strip().rstrip('/') for o in raw.split(',') if o.strip()]
