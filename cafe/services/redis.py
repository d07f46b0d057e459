import redis
import json
import logging
from typing import Optional, Any
from ..config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self, url: str = None):
        self.client = redis.from_url(url or settings.REDIS_URL, decode_responses=True)

    def ping(self) -> bool:
        return self.client.ping()

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self.client.get(key)
        except redis.ConnectionError:
            logger.warning("Redis unavailable while reading %s", key)
            return None
        if value:
            try:
                return json.loads(value)
            except ValueError:
                return value
        return None

    def set(self, key: str, value: Any, expire: Optional[int] = None):
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        if expire:
            self.client.setex(key, expire, value)
        else:
            self.client.set(key, value)

    def delete(self, *keys: str):
        if keys:
            self.client.delete(*keys)

    def exists(self, key: str) -> bool:
        return self.client.exists(key) > 0

    # Rate limiting
    def incr(self, key: str) -> int:
        return self.client.incr(key)

    def expire(self, key: str, seconds: int):
        self.client.expire(key, seconds)

    def ttl(self, key: str) -> int:
        return self.client.ttl(key)

    def close(self):
        self.client.close()

redis_client = RedisClient()
