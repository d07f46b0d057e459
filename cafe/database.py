from typing import Dict
from supabase import acreate_client, AsyncClient
from .config import settings

_clients: Dict[str, AsyncClient] = {}


async def get_supabase() -> AsyncClient:
    """Public client, subject to row-level security"""
    if "public" not in _clients:
        _clients["public"] = await acreate_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY
        )
    return _clients["public"]


async def get_supabase_admin() -> AsyncClient:
    """Service client for admin operations"""
    if "admin" not in _clients:
        _clients["admin"] = await acreate_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY
        )
    return _clients["admin"]
