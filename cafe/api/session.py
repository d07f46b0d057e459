from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..core.session import SessionIdentityProvider
from .deps import get_session_provider

router = APIRouter(prefix="/session", tags=["Session"])


class IdentityUpdate(BaseModel):
    name: str
    phone: str


def session_response(provider: SessionIdentityProvider, session_id: Optional[str]) -> dict:
    identity = provider.get_identity()
    return {
        "session_id": session_id,
        "customer": identity.model_dump() if identity else None
    }


@router.get("")
@router.post("")
async def get_or_create_session(provider: SessionIdentityProvider = Depends(get_session_provider)):
    """Return this browser's session id, issuing one on first use"""
    return session_response(provider, provider.get_session_id())


@router.delete("")
async def reset_session(provider: SessionIdentityProvider = Depends(get_session_provider)):
    """Logout: earlier orders stay in the store but are no longer shown here"""
    old_session_id = provider.reset()
    return {"message": "Session cleared", "previous_session_id": old_session_id}


@router.put("/identity")
async def save_identity(
    identity: IdentityUpdate,
    provider: SessionIdentityProvider = Depends(get_session_provider)
):
    session_id = provider.get_session_id()
    try:
        saved = provider.set_identity(identity.name, identity.phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"session_id": session_id, "customer": saved.model_dump()}
