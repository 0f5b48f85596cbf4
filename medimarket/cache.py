"""
Cache Module - Redis-backed Caching
=====================================
Uses Flask-Caching with Redis for scalable caching.
Falls back to SimpleCache if Redis is unavailable.

Only store reads are cached (medication candidates, pharmacy list); distance
ranking always runs on the caller's exact coordinates.

Cache invalidation:
    Every write route calls clear_market_cache().
"""
import logging
from flask_caching import Cache

logger = logging.getLogger(__name__)

# Module-level cache instance
cache = Cache()

_default_config = {
    'CACHE_TYPE': 'RedisCache',
    'CACHE_DEFAULT_TIMEOUT': 300,
    'CACHE_KEY_PREFIX': 'medimarket:',  # Namespace to avoid key collisions with parent app
}


def init_cache(app, cache_type='RedisCache', redis_url=None, default_timeout=300):
    """
    Initialize the cache with the Flask app.

    Args:
        app: Flask application instance.
        cache_type: 'RedisCache', 'SimpleCache' or 'NullCache'.
        redis_url: Redis URL, used when cache_type is 'RedisCache'.
        default_timeout: TTL in seconds.

    Falls back to SimpleCache if Redis connection fails.
    """
    config = _default_config.copy()
    config['CACHE_TYPE'] = cache_type
    config['CACHE_DEFAULT_TIMEOUT'] = default_timeout

    if cache_type == 'RedisCache':
        config['CACHE_REDIS_URL'] = redis_url
        try:
            app.config.update(config)
            cache.init_app(app)
            # Test the connection
            with app.app_context():
                cache.set('_ping', 'pong', timeout=5)
                if cache.get('_ping') == 'pong':
                    cache.delete('_ping')
                    logger.info("Redis cache connected")
                    return
        except Exception as e:
            logger.warning("Redis unavailable (%s), falling back to SimpleCache", e)

        config['CACHE_TYPE'] = 'SimpleCache'
        config.pop('CACHE_REDIS_URL', None)

    app.config.update(config)
    cache.init_app(app)
    logger.info("Using %s", config['CACHE_TYPE'])


def make_cache_key_candidates(name_filter, max_price):
    """Cache key for the store-level medication pre-filter."""
    name_key = (name_filter or '').lower()
    price_key = '' if max_price is None else repr(float(max_price))
    return f"candidates:{name_key}:{price_key}"


def make_cache_key_pharmacies():
    return "pharmacies:all"


def clear_market_cache():
    """Clear all marketplace cache entries."""
    try:
        cache.clear()
    except Exception as e:
        logger.warning("Could not clear cache: %s", e)
