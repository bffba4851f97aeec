# hunt_lifecycle/db/redis.py
import redis

from hunt_lifecycle.core.config import settings


def get_redis_client() -> redis.Redis:
    """
    Creates and returns a new Redis client instance.
    Used by the background jobs for their short-lived sweep locks.
    """
    return redis.from_url(settings.REDIS_URL, decode_responses=True)
