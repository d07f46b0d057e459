import secrets
from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader
from ..config import settings

kitchen_key_header = APIKeyHeader(name="X-KITCHEN-KEY", auto_error=False)
admin_key_header = APIKeyHeader(name="X-ADMIN-KEY", auto_error=False)


def _matches(key: str, expected: str) -> bool:
    # Header values are latin-1 decoded; compare_digest only takes ASCII str
    return bool(key) and secrets.compare_digest(key.encode(), expected.encode())


def is_kitchen_key(key: str) -> bool:
    return _matches(key, settings.KITCHEN_API_KEY)


def is_admin_key(key: str) -> bool:
    return _matches(key, settings.ADMIN_API_KEY)


async def require_kitchen_staff(
    kitchen_key: str = Security(kitchen_key_header),
    admin_key: str = Security(admin_key_header)
):
    if is_kitchen_key(kitchen_key) or is_admin_key(admin_key):
        return True
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED if not (kitchen_key or admin_key) else status.HTTP_403_FORBIDDEN,
        detail="Kitchen access required"
    )


async def require_admin(admin_key: str = Security(admin_key_header)):
    if is_admin_key(admin_key):
        return True
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED if not admin_key else status.HTTP_403_FORBIDDEN,
        detail="Admin access required"
    )
