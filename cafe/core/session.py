"""Customer session identity

A session id is an opaque per-browser value. It only decides which orders the
customer screens show; it is not a credential. Logging out drops it, after which
earlier orders stay in the store but are no longer visible from this browser.
"""
import logging
import uuid
from typing import Optional

import redis
from fastapi import Request, Response
from pydantic import BaseModel

from ..config import settings
from ..services.redis import RedisClient, redis_client
from ..utils.dates import cafe_now

logger = logging.getLogger(__name__)

SESSION_KEY = settings.SESSION_COOKIE_NAME
CUSTOMER_NAME_KEY = "customer_name"
CUSTOMER_PHONE_KEY = "customer_phone"


class CustomerIdentity(BaseModel):
    name: str
    phone: str


class SessionStorage:
    """Durable client-side key/value storage"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class CookieSessionStorage(SessionStorage):
    """The browser's cookie jar, read from the request and written to the response"""

    def __init__(self, request: Request, response: Response):
        self.request = request
        self.response = response
        self._pending = {}

    def get(self, key: str) -> Optional[str]:
        if key in self._pending:
            return self._pending[key]
        return self.request.cookies.get(key)

    def set(self, key: str, value: str):
        self._pending[key] = value
        self.response.set_cookie(
            key=key,
            value=value,
            max_age=settings.SESSION_COOKIE_MAX_AGE,
            httponly=True,
            secure=settings.is_production,
            samesite="lax"
        )

    def delete(self, key: str):
        self._pending[key] = None
        self.response.delete_cookie(key)


class SessionRegistry:
    """Issued session ids, kept in Redis so live channels can reject unknown ones"""

    def __init__(self, client: RedisClient = None, ttl: int = None):
        self.client = client or redis_client
        self.ttl = ttl or settings.SESSION_TTL_SECONDS

    @staticmethod
    def _key(session_id: str) -> str:
        return f"customer_session:{session_id}"

    # Registry failures never block the customer: the cookie alone identifies the session

    def register(self, session_id: str):
        try:
            self.client.set(self._key(session_id), {
                "session_id": session_id,
                "created_at": cafe_now().isoformat()
            }, self.ttl)
        except redis.RedisError as e:
            logger.warning("Could not register session %s: %s", session_id, e)

    def touch(self, session_id: str) -> bool:
        """Refresh the expiry of a known session"""
        try:
            if not self.client.exists(self._key(session_id)):
                return False
            self.client.expire(self._key(session_id), self.ttl)
        except redis.RedisError as e:
            logger.warning("Could not refresh session %s: %s", session_id, e)
            return False
        return True

    def is_active(self, session_id: str) -> bool:
        if not session_id:
            return False
        try:
            return self.client.get(self._key(session_id)) is not None
        except redis.RedisError as e:
            logger.warning("Could not look up session %s: %s", session_id, e)
            return False

    def revoke(self, session_id: str):
        try:
            self.client.delete(self._key(session_id))
        except redis.RedisError as e:
            logger.warning("Could not revoke session %s: %s", session_id, e)


class SessionIdentityProvider:
    def __init__(self, storage: SessionStorage, registry: Optional[SessionRegistry] = None):
        self.storage = storage
        self.registry = registry

    def existing_session_id(self) -> Optional[str]:
        return self.storage.get(SESSION_KEY) or None

    def get_session_id(self) -> str:
        """Return the stored session id, creating one on first use"""
        session_id = self.existing_session_id()
        if session_id:
            if self.registry and not self.registry.touch(session_id):
                self.registry.register(session_id)
            return session_id

        session_id = str(uuid.uuid4())
        self.storage.set(SESSION_KEY, session_id)
        if self.registry:
            self.registry.register(session_id)
        logger.info("New session created: %s", session_id)
        return session_id

    def get_identity(self) -> Optional[CustomerIdentity]:
        name = self.storage.get(CUSTOMER_NAME_KEY)
        phone = self.storage.get(CUSTOMER_PHONE_KEY)
        if name and phone:
            return CustomerIdentity(name=name, phone=phone)
        return None

    def set_identity(self, name: str, phone: str) -> CustomerIdentity:
        name, phone = (name or "").strip(), (phone or "").strip()
        if not name or not phone:
            raise ValueError("Customer name and phone are required")
        self.storage.set(CUSTOMER_NAME_KEY, name)
        self.storage.set(CUSTOMER_PHONE_KEY, phone)
        return CustomerIdentity(name=name, phone=phone)

    def reset(self) -> Optional[str]:
        """Logout: forget the session id and customer identity"""
        old_session_id = self.existing_session_id()
        self.storage.delete(CUSTOMER_NAME_KEY)
        self.storage.delete(CUSTOMER_PHONE_KEY)
        self.storage.delete(SESSION_KEY)
        if old_session_id and self.registry:
            self.registry.revoke(old_session_id)
        logger.info("Session cleared: %s", old_session_id)
        return old_session_id
